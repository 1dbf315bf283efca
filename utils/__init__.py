"""Utility functions"""
from utils.logger import get_logger, log_conversation
from utils.config import ConfigManager, get_config_manager, load_global_config

__all__ = ['get_logger', 'log_conversation', 'ConfigManager', 'get_config_manager', 'load_global_config']

"""
Logging System

Named loggers under one application root ('ragchat.rag.retriever', ...),
UTF-8 rotating log files and a dedicated conversation log.

- Console only shows warnings and above
- Provider API keys are masked in every formatted record
- LOG_DIR / LOG_LEVEL environment variables move the files and set the level
"""

import logging
import os
import re
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from datetime import datetime

ROOT_LOGGER = 'ragchat'
CONVERSATION_LOGGER = f'{ROOT_LOGGER}_conversations'

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
CONVERSATION_FORMAT = '%(asctime)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# OpenAI (sk-..., sk-proj-...), Anthropic (sk-ant-...) and Google (AIza...) keys
SECRET_PATTERN = re.compile(r'\b(sk-(?:ant-|proj-)?|AIza)[A-Za-z0-9_\-]{8,}')


def mask_secrets(text: str) -> str:
    """Keep the key prefix, hide the rest"""
    return SECRET_PATTERN.sub(lambda m: f"{m.group(1)}***", text)


class RedactingFormatter(logging.Formatter):
    """Formatter that never writes an API key and survives unencodable text"""

    def format(self, record):
        try:
            formatted = super().format(record)
        except UnicodeEncodeError:
            record.msg = str(record.msg).encode('ascii', 'replace').decode('ascii')
            formatted = super().format(record)
        return mask_secrets(formatted)


class LoggerManager:
    """Creates the application loggers once per process"""

    _instance = None
    _loggers = {}
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(LoggerManager, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self.log_dir = Path(os.getenv('LOG_DIR', 'logs'))
            self.log_dir.mkdir(parents=True, exist_ok=True)
            self.level = getattr(logging, os.getenv('LOG_LEVEL', 'INFO').upper(), logging.INFO)

            self._loggers[ROOT_LOGGER] = self._build_root_logger()
            self._loggers[CONVERSATION_LOGGER] = self._build_conversation_logger()
            self._initialized = True

    def _file_handler(self, filename: str, backup_count: int, fmt: str):
        try:
            handler = RotatingFileHandler(
                self.log_dir / filename,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=backup_count,
                encoding='utf-8'
            )
        except OSError as e:
            print(f"Warning: file logging to {filename} disabled ({e})")
            return None
        handler.setFormatter(RedactingFormatter(fmt, datefmt=DATE_FORMAT))
        return handler

    def _build_root_logger(self) -> logging.Logger:
        logger = logging.getLogger(ROOT_LOGGER)
        logger.setLevel(self.level)
        logger.handlers = []
        logger.propagate = False

        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(RedactingFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        console.setLevel(logging.WARNING)
        logger.addHandler(console)

        file_handler = self._file_handler('ragchat.log', 5, LOG_FORMAT)
        if file_handler:
            logger.addHandler(file_handler)
        return logger

    def _build_conversation_logger(self) -> logging.Logger:
        """File only, one file per day"""
        logger = logging.getLogger(CONVERSATION_LOGGER)
        logger.setLevel(logging.INFO)
        logger.handlers = []
        logger.propagate = False

        filename = f"conversations_{datetime.now().strftime('%Y%m%d')}.log"
        file_handler = self._file_handler(filename, 30, CONVERSATION_FORMAT)
        if file_handler:
            logger.addHandler(file_handler)
        return logger

    def get_logger(self, name: str = ROOT_LOGGER) -> logging.Logger:
        """Child of the application root; records propagate to its handlers"""
        full_name = name if name == ROOT_LOGGER else f'{ROOT_LOGGER}.{name}'

        if full_name not in self._loggers:
            self._loggers[full_name] = logging.getLogger(full_name)
        return self._loggers[full_name]

    def log_conversation(self, user_input: str, assistant_response: str, model: str = ""):
        """
        Append a finished exchange to the conversation log.

        Args:
            user_input: Last user message
            assistant_response: Full assistant reply
            model: Model that produced the reply
        """
        logger = self._loggers[CONVERSATION_LOGGER]
        logger.info(f"USER: {_plain(user_input)}")
        logger.info(f"ASSISTANT ({model or 'unknown'}): {_plain(assistant_response)}")
        logger.info("=" * 80)


_TYPOGRAPHIC = str.maketrans({
    '\u2012': '-',   # figure dash
    '\u2013': '-',   # en dash
    '\u2014': '--',  # em dash
    '\u2015': '--',  # horizontal bar
    '\u2018': "'",
    '\u2019': "'",
    '\u201c': '"',
    '\u201d': '"',
})


def _plain(text: str) -> str:
    """Typographic dashes and quotes as ASCII"""
    return text.translate(_TYPOGRAPHIC)


# Global instance
_logger_manager = None


def _manager() -> LoggerManager:
    global _logger_manager
    if _logger_manager is None:
        _logger_manager = LoggerManager()
    return _logger_manager


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """
    Get logger for a component.

    Args:
        name: Component name (e.g., 'rag.retriever', 'ai.router')

    Returns:
        Logger instance
    """
    return _manager().get_logger(name)


def log_conversation(user_input: str, assistant_response: str, model: str = ""):
    """Log conversation - convenience function."""
    _manager().log_conversation(user_input, assistant_response, model)

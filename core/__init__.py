"""Core: provider routing, completion services, errors and configuration"""

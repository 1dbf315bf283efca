"""
API Routes Module

Organizes all API endpoints into logical groups.
"""

from api.routes import chat, models, retrieval, files

__all__ = ['chat', 'models', 'retrieval', 'files']

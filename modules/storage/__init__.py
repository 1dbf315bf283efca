"""
Storage - relational collaborators (documents, chat messages)
"""

from modules.storage.sqlite_store import SQLiteStore, MessageRecord

__all__ = [
    'SQLiteStore',
    'MessageRecord'
]

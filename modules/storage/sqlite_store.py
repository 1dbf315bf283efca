"""
Storage - SQLite Document Registry and Message Store

Stand-ins for the relational collaborators of the chat backend:
- documents: uploaded files (metadata only, contents stay on disk)
- messages: chat history with a strictly increasing sequence number per chat
"""

import asyncio
import sqlite3
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, List, Dict, Iterable

from modules.rag.base import DocumentCatalog, DocumentRecord
from utils.logger import get_logger

logger = get_logger('storage.sqlite')


@dataclass
class MessageRecord:
    """One stored chat message"""
    id: str
    chat_id: str
    user_id: str
    role: str
    content: str
    model: Optional[str]
    sequence_number: int
    created_at: datetime


class SQLiteStore(DocumentCatalog):
    """SQLite storage for documents and chat messages"""

    def __init__(self, db_path: str = "data/ragchat.db"):
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()
        logger.info(f"SQLiteStore initialized (path={db_path})")

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection"""
        if self.conn is None:
            self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
        return self.conn

    def initialize(self):
        """Create tables and indexes"""
        conn = self._get_connection()
        with self._lock, conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    file_path TEXT NOT NULL,
                    mime_type TEXT NOT NULL DEFAULT 'text/plain',
                    description TEXT,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_documents_user
                ON documents(user_id, created_at DESC)
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id TEXT PRIMARY KEY,
                    chat_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    model TEXT,
                    sequence_number INTEGER NOT NULL,
                    created_at TEXT NOT NULL,

                    UNIQUE(chat_id, sequence_number)
                )
            """)
        logger.info("Database schema ready")

    # ===== DOCUMENTS =====

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> DocumentRecord:
        return DocumentRecord(
            id=row['id'],
            user_id=row['user_id'],
            name=row['name'],
            file_path=row['file_path'],
            mime_type=row['mime_type'],
            description=row['description'],
            created_at=datetime.fromisoformat(row['created_at'])
        )

    def register_document(
        self,
        user_id: str,
        name: str,
        file_path: str,
        mime_type: str = "text/plain",
        description: Optional[str] = None
    ) -> DocumentRecord:
        """Record an uploaded file"""
        record = DocumentRecord(
            id=uuid.uuid4().hex,
            user_id=user_id,
            name=name,
            file_path=file_path,
            mime_type=mime_type,
            description=description,
            created_at=datetime.now(timezone.utc)
        )
        conn = self._get_connection()
        with self._lock, conn:
            conn.execute(
                """
                INSERT INTO documents (id, user_id, name, file_path, mime_type, description, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (record.id, user_id, name, file_path, mime_type, description,
                 record.created_at.isoformat())
            )
        logger.info(f"Registered document {record.id} ({name})")
        return record

    def fetch_document(self, document_id: str) -> Optional[DocumentRecord]:
        with self._lock:
            row = self._get_connection().execute(
                "SELECT * FROM documents WHERE id = ?", (document_id,)
            ).fetchone()
        return self._row_to_document(row) if row else None

    def list_documents(self, user_id: str) -> List[DocumentRecord]:
        with self._lock:
            rows = self._get_connection().execute(
                "SELECT * FROM documents WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,)
            ).fetchall()
        return [self._row_to_document(r) for r in rows]

    def remove_document(self, document_id: str) -> bool:
        """Delete a document record, True if it existed"""
        conn = self._get_connection()
        with self._lock, conn:
            cursor = conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
        return cursor.rowcount > 0

    def fetch_document_names(self, document_ids: Iterable[str]) -> Dict[str, str]:
        ids = list(document_ids)
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        with self._lock:
            rows = self._get_connection().execute(
                f"SELECT id, name FROM documents WHERE id IN ({placeholders})", ids
            ).fetchall()
        return {row['id']: row['name'] for row in rows}

    async def get_document(self, document_id: str) -> Optional[DocumentRecord]:
        return await asyncio.to_thread(self.fetch_document, document_id)

    async def document_names(self, document_ids: Iterable[str]) -> Dict[str, str]:
        return await asyncio.to_thread(self.fetch_document_names, list(document_ids))

    # ===== MESSAGES =====

    def next_sequence_number(self, chat_id: str) -> int:
        """One more than the highest sequence number of the chat (1 for a new chat)"""
        with self._lock:
            return self._next_sequence_number(chat_id)

    def _next_sequence_number(self, chat_id: str) -> int:
        row = self._get_connection().execute(
            "SELECT MAX(sequence_number) AS last FROM messages WHERE chat_id = ?",
            (chat_id,)
        ).fetchone()
        return (row['last'] or 0) + 1

    def create_message(
        self,
        chat_id: str,
        user_id: str,
        role: str,
        content: str,
        model: Optional[str] = None
    ) -> MessageRecord:
        """Append a message to a chat with the next sequence number"""
        conn = self._get_connection()
        with self._lock, conn:
            record = MessageRecord(
                id=uuid.uuid4().hex,
                chat_id=chat_id,
                user_id=user_id,
                role=role,
                content=content,
                model=model,
                sequence_number=self._next_sequence_number(chat_id),
                created_at=datetime.now(timezone.utc)
            )
            conn.execute(
                """
                INSERT INTO messages (id, chat_id, user_id, role, content, model, sequence_number, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (record.id, chat_id, user_id, role, content, model,
                 record.sequence_number, record.created_at.isoformat())
            )
        logger.debug(f"Stored {role} message #{record.sequence_number} in chat {chat_id}")
        return record

    def get_messages(self, chat_id: str) -> List[MessageRecord]:
        with self._lock:
            rows = self._get_connection().execute(
                "SELECT * FROM messages WHERE chat_id = ? ORDER BY sequence_number",
                (chat_id,)
            ).fetchall()
        return [
            MessageRecord(
                id=r['id'],
                chat_id=r['chat_id'],
                user_id=r['user_id'],
                role=r['role'],
                content=r['content'],
                model=r['model'],
                sequence_number=r['sequence_number'],
                created_at=datetime.fromisoformat(r['created_at'])
            )
            for r in rows
        ]

    async def save_message(
        self,
        chat_id: str,
        user_id: str,
        role: str,
        content: str,
        model: Optional[str] = None
    ) -> MessageRecord:
        return await asyncio.to_thread(self.create_message, chat_id, user_id, role, content, model)

    def close(self):
        """Close connection"""
        if self.conn:
            self.conn.close()
            self.conn = None

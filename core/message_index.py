# --- File: core/message_index.py ---
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional

from security.secure_envelope import MessageRecord, MessageStatus, parse_status
from zk_crypto_package.errors import BackendUnavailableError, ValidationError

# --- Message Index ---


class MessageIndex(ABC):
    """Lookup of message metadata by id and by participant."""

    @abstractmethod
    def insert(self, record: MessageRecord) -> None:
        ...

    @abstractmethod
    def get(self, message_id: str) -> Optional[MessageRecord]:
        ...

    @abstractmethod
    def find_by_participant(self, participant_id: str, order_id_prefix: Optional[str] = None) -> List[MessageRecord]:
        """Messages where the participant is sender or recipient, newest first."""

    @abstractmethod
    def update_status(self, message_id: str, status: MessageStatus, blob_id: Optional[str] = None) -> bool:
        """Returns False if no message has this id."""

    def close(self):
        pass


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SQLiteMessageIndex(MessageIndex):
    """
    SQLite-backed index. One row per message carries both the sender and the
    recipient, so both views change with a single write.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._lock = threading.Lock()
        try:
            self.conn = sqlite3.connect(db_path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            cursor = self.conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    message_id TEXT PRIMARY KEY,
                    order_id TEXT NOT NULL,
                    sender_id TEXT NOT NULL,
                    recipient_id TEXT NOT NULL,
                    blob_id TEXT,
                    timestamp INTEGER NOT NULL,
                    status TEXT NOT NULL,
                    created_at TEXT NOT NULL -- Stored as ISO string
                )
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_messages_sender ON messages (sender_id)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_messages_recipient ON messages (recipient_id)")
            self.conn.commit()
            logging.info(f"SQLite message index initialized at {db_path}")
        except sqlite3.Error as e:
            logging.error(f"Error initializing SQLite message index: {e}")
            raise BackendUnavailableError("Message index could not be opened.", {"path": db_path}) from e

    def _row_to_record(self, row: sqlite3.Row) -> MessageRecord:
        return MessageRecord(
            message_id=row["message_id"],
            order_id=row["order_id"],
            sender_id=row["sender_id"],
            recipient_id=row["recipient_id"],
            blob_id=row["blob_id"],
            timestamp=row["timestamp"],
            status=parse_status(row["status"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def insert(self, record: MessageRecord) -> None:
        created_at = record.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        try:
            with self._lock:
                self.conn.execute("""
                    INSERT INTO messages
                    (message_id, order_id, sender_id, recipient_id, blob_id, timestamp, status, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    record.message_id,
                    record.order_id,
                    record.sender_id,
                    record.recipient_id,
                    record.blob_id,
                    record.timestamp,
                    record.status.value,
                    created_at.isoformat(),
                ))
                self.conn.commit()
        except sqlite3.IntegrityError as e:
            raise ValidationError(f"Message '{record.message_id}' already exists.") from e
        except sqlite3.Error as e:
            logging.error(f"Error inserting message {record.message_id} into SQLite: {e}")
            raise BackendUnavailableError("Message index write failed.") from e
        logging.info(f"Message {record.message_id} indexed (status: {record.status.value}).")

    def get(self, message_id: str) -> Optional[MessageRecord]:
        try:
            with self._lock:
                row = self.conn.execute(
                    "SELECT * FROM messages WHERE message_id = ?", (message_id,)
                ).fetchone()
        except sqlite3.Error as e:
            logging.error(f"Error reading message {message_id} from SQLite: {e}")
            raise BackendUnavailableError("Message index read failed.") from e
        return self._row_to_record(row) if row else None

    def find_by_participant(self, participant_id: str, order_id_prefix: Optional[str] = None) -> List[MessageRecord]:
        query = "SELECT * FROM messages WHERE (sender_id = ? OR recipient_id = ?)"
        params: list = [participant_id, participant_id]
        if order_id_prefix:
            query += " AND order_id LIKE ? ESCAPE '\\'"
            params.append(_escape_like(order_id_prefix) + "%")
        query += " ORDER BY timestamp DESC, created_at DESC"
        try:
            with self._lock:
                rows = self.conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            logging.error(f"Error listing messages for {participant_id}: {e}")
            raise BackendUnavailableError("Message index read failed.") from e
        return [self._row_to_record(row) for row in rows]

    def update_status(self, message_id: str, status: MessageStatus, blob_id: Optional[str] = None) -> bool:
        status = parse_status(status)
        if blob_id is None:
            sql, params = "UPDATE messages SET status = ? WHERE message_id = ?", (status.value, message_id)
        else:
            sql = "UPDATE messages SET status = ?, blob_id = ? WHERE message_id = ?"
            params = (status.value, blob_id, message_id)
        try:
            with self._lock:
                cursor = self.conn.execute(sql, params)
                self.conn.commit()
        except sqlite3.Error as e:
            logging.error(f"Error updating status of message {message_id}: {e}")
            raise BackendUnavailableError("Message index write failed.") from e
        return cursor.rowcount > 0

    def close(self):
        with self._lock:
            self.conn.close()
        logging.info("SQLite message index closed.")

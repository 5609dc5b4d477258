"""
Database module for the SafeHarbor service.

Provides SQLite-based storage for records and the hash-chained event log.
Connections are thread-local and run in autocommit mode; every write goes
through an explicit transaction.
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from safeharbor.events import EventSink
from safeharbor.hashing import chain_hash, record_hash
from safeharbor.pubkey import Pubkey
from safeharbor.store import RecordSlot, RecordStore, record_from_dict


class Database:
    """
    One SQLite file shared by the record store and the event log.

    Usage:
        db = Database("data/safeharbor.db")
        db.init_db()
        store = SqliteRecordStore(db)
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._local = threading.local()

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a thread-local database connection.
        Connections are reused within the same thread for performance.
        """
        conn = getattr(self._local, "conn", None)
        if conn is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.path), timeout=30, isolation_level=None,
                                   check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA cache_size=10000;")  # ~10MB cache
            conn.execute("PRAGMA temp_store=MEMORY;")
            conn.row_factory = sqlite3.Row
            self._local.conn = conn
        return conn

    @contextmanager
    def _transaction(self, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """
        Context manager for database transactions.
        Commits on success, rolls back on failure.

        immediate=True takes the write lock up front, so two writers never
        interleave their read-modify-write.
        """
        conn = self._get_connection()
        conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
        try:
            yield conn
            conn.execute("COMMIT")
        except BaseException:
            conn.execute("ROLLBACK")
            raise

    def init_db(self) -> None:
        """
        Initialize database schema with indexes.
        Safe to call multiple times (uses IF NOT EXISTS).
        """
        with self._transaction() as conn:
            conn.execute("""
            CREATE TABLE IF NOT EXISTS records (
                address TEXT PRIMARY KEY,
                kind TEXT NOT NULL,
                capacity INTEGER NOT NULL,
                record_json TEXT NOT NULL,
                updated_at INTEGER DEFAULT (strftime('%s', 'now'))
            );""")
            conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_records_kind
            ON records(kind);""")

            conn.execute("""
            CREATE TABLE IF NOT EXISTS event_log (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                event_type TEXT NOT NULL,
                payload_hash TEXT NOT NULL,
                prev_entry_hash TEXT,
                entry_hash TEXT NOT NULL,
                event_json TEXT NOT NULL
            );""")
            conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_event_log_type
            ON event_log(event_type);""")

            # Request nonces with index for cleanup
            conn.execute("""
            CREATE TABLE IF NOT EXISTS request_nonces (
                nonce TEXT PRIMARY KEY,
                expires_at INTEGER NOT NULL
            );""")
            conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_request_nonces_expires
            ON request_nonces(expires_at);""")

    # ============================================================
    # Metrics and Health
    # ============================================================

    def get_db_stats(self) -> Dict[str, int]:
        """Get database statistics for monitoring."""
        conn = self._get_connection()
        stats = {}
        for table in ['records', 'event_log', 'request_nonces']:
            cur = conn.execute(f"SELECT COUNT(*) as cnt FROM {table}")
            stats[f"{table}_count"] = cur.fetchone()['cnt']
        return stats

    # ============================================================
    # Test Support: Database Reset
    # ============================================================

    def reset_db(self) -> None:
        """
        Reset the database for test isolation.
        Clears all tables but preserves schema.
        """
        with self._transaction() as conn:
            conn.execute("DELETE FROM records")
            conn.execute("DELETE FROM event_log")
            conn.execute("DELETE FROM request_nonces")

    # ============================================================
    # Replay Protection
    # ============================================================

    def insert_nonce(self, nonce: str, expires_at: int, now: int) -> bool:
        """
        Insert a request nonce for replay protection.
        Returns True if successful, False if nonce already exists.
        Also cleans up nonces that expired before `now`.
        """
        try:
            with self._transaction(immediate=True) as conn:
                conn.execute("DELETE FROM request_nonces WHERE expires_at < ?", (now,))
                conn.execute("INSERT INTO request_nonces(nonce, expires_at) VALUES(?,?)", (nonce, expires_at))
            return True
        except sqlite3.IntegrityError:
            return False

    def close_connection(self) -> None:
        """Close the thread-local connection (for cleanup)."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None


# ============================================================
# Records
# ============================================================

class SqliteRecordStore(RecordStore):
    """
    Persistent record store.

    exclusive() runs inside a BEGIN IMMEDIATE transaction, which serializes
    writers across threads and processes sharing the file. The staged record
    is written and committed on clean exit; any exception rolls back.
    """

    def __init__(self, db: Database):
        self.db = db

    @staticmethod
    def _decode(row: Optional[sqlite3.Row]):
        if row is None:
            return None
        return record_from_dict(json.loads(row["record_json"]))

    @contextmanager
    def exclusive(self, address: Pubkey) -> Iterator[RecordSlot]:
        with self.db._transaction(immediate=True) as conn:
            row = conn.execute(
                "SELECT record_json FROM records WHERE address=?", (str(address),)
            ).fetchone()
            slot = RecordSlot(address, self._decode(row))
            yield slot
            if slot.dirty:
                record = slot.staged
                conn.execute(
                    "INSERT OR REPLACE INTO records(address, kind, capacity, record_json, updated_at) "
                    "VALUES(?,?,?,?,strftime('%s','now'))",
                    (str(address), record.kind, record.allocated,
                     json.dumps(record.to_dict(), sort_keys=True))
                )

    def get(self, address: Pubkey):
        conn = self.db._get_connection()
        row = conn.execute(
            "SELECT record_json FROM records WHERE address=?", (str(address),)
        ).fetchone()
        return self._decode(row)

    def list_addresses(self, kind: Optional[str] = None) -> List[Pubkey]:
        conn = self.db._get_connection()
        if kind is None:
            cur = conn.execute("SELECT address FROM records ORDER BY rowid ASC")
        else:
            cur = conn.execute("SELECT address FROM records WHERE kind=? ORDER BY rowid ASC", (kind,))
        return [Pubkey.from_string(row["address"]) for row in cur.fetchall()]

    def close(self) -> None:
        self.db.close_connection()


# ============================================================
# Event Log: hash chain
# ============================================================

class SqliteEventLog(EventSink):
    """
    Append-only event log.

    entry_hash = chain_hash(prev_entry_hash, payload_hash), so editing or
    dropping any entry breaks every hash after it.
    """

    def __init__(self, db: Database):
        self.db = db

    def latest_entry_hash(self) -> Optional[str]:
        """Get the hash of the most recent log entry for chain linking."""
        conn = self.db._get_connection()
        cur = conn.execute("SELECT entry_hash FROM event_log ORDER BY seq DESC LIMIT 1")
        row = cur.fetchone()
        return row['entry_hash'] if row else None

    def emit(self, event) -> None:
        body = event.to_dict()
        payload_hash = record_hash(body)
        with self.db._transaction(immediate=True) as conn:
            prev = self.latest_entry_hash()
            conn.execute(
                "INSERT INTO event_log(event_type, payload_hash, prev_entry_hash, entry_hash, event_json) "
                "VALUES(?,?,?,?,?)",
                (body["event_type"], payload_hash, prev, chain_hash(prev or "", payload_hash),
                 json.dumps(body, sort_keys=True))
            )

    def query(self, event_type: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        conn = self.db._get_connection()
        if event_type is None:
            cur = conn.execute(
                "SELECT seq, entry_hash, event_json FROM event_log ORDER BY seq DESC LIMIT ?", (limit,))
        else:
            cur = conn.execute(
                "SELECT seq, entry_hash, event_json FROM event_log WHERE event_type=? "
                "ORDER BY seq DESC LIMIT ?", (event_type, limit))
        results = []
        for row in cur.fetchall():
            event = json.loads(row["event_json"])
            event["seq"] = row["seq"]
            event["entry_hash"] = row["entry_hash"]
            results.append(event)
        return results

    def export_full(self) -> List[Dict[str, Any]]:
        """Export the complete event log, oldest first."""
        conn = self.db._get_connection()
        cur = conn.execute(
            "SELECT seq, event_type, payload_hash, prev_entry_hash, entry_hash, event_json "
            "FROM event_log ORDER BY seq ASC"
        )
        return [dict(row) for row in cur.fetchall()]

    def verify_chain(self) -> bool:
        """Recompute every payload and entry hash from the stored JSON."""
        prev = None
        for row in self.export_full():
            payload_hash = record_hash(json.loads(row["event_json"]))
            if payload_hash != row["payload_hash"] or row["prev_entry_hash"] != prev:
                return False
            if chain_hash(prev or "", payload_hash) != row["entry_hash"]:
                return False
            prev = row["entry_hash"]
        return True

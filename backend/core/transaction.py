"""
All-or-nothing write groups and retry of SQLite lock contention.
"""
import logging
import sqlite3
import time
from contextlib import contextmanager
from functools import wraps
from typing import Optional

from core.database import Database, db

logger = logging.getLogger(__name__)

TRANSIENT_MARKERS = ("locked", "busy")


class TransactionManager:
    """Runs groups of writes as a single all-or-nothing unit."""

    def __init__(self, database: Optional[Database] = None):
        self.db = database or db

    @contextmanager
    def transaction(self, mode: Optional[str] = None):
        """
        Yield a connection inside BEGIN ... COMMIT.

        Any exception inside the block rolls back every write made on the
        yielded connection, then propagates.

        Args:
            mode: SQLite transaction mode; "IMMEDIATE" takes the write lock
                up front so read-check-write sequences cannot interleave.
        """
        conn = self.db.get_connection_raw()
        # Explicit BEGIN/COMMIT below; stop the driver from opening its own
        conn.isolation_level = None
        try:
            conn.execute(f"BEGIN {mode}" if mode else "BEGIN")
            yield conn
            conn.execute("COMMIT")
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()


def is_transient_error(error: Exception) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in TRANSIENT_MARKERS)


def retry_on_transient_error(max_retries: int = 3, base_delay: float = 0.2):
    """Retry the wrapped call with exponential backoff while SQLite reports lock contention."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except sqlite3.OperationalError as e:
                    if not is_transient_error(e) or attempt == max_retries - 1:
                        raise
                    delay = base_delay * (2 ** attempt)
                    logger.warning(f"Database busy, retrying {func.__name__} in {delay}s: {e}")
                    time.sleep(delay)
        return wrapper
    return decorator

from sqlite3 import Connection
from typing import Optional
from wmap.storage.db import init_db
from wmap.utils.log import get_logger

logger = get_logger(__name__)


class DAO:
    """
    Encapsulates all inserts/queries against the wmap SQLite DB.
    """

    def __init__(self, db_path: str):
        """
        Create/connect and apply schema if needed.
        """
        self.conn: Connection = init_db(db_path)

    def get_snapshot(self, key: str) -> Optional[str]:
        """
        Return the serialized snapshot stored under `key`, or None.
        """
        cursor = self.conn.execute(
            "SELECT body FROM snapshots WHERE key = ?",
            (key,),
        )
        row = cursor.fetchone()
        return None if row is None else row["body"]

    def put_snapshot(self, key: str, body: str, updated_ts: int) -> None:
        """
        Insert or replace the snapshot stored under `key` in one transaction.
        """
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO snapshots
                  (key, body, updated_ts)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                  body       = excluded.body,
                  updated_ts = excluded.updated_ts
                """,
                (key, body, updated_ts),
            )

    def close(self) -> None:
        self.conn.close()

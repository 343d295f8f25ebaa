import os
import sqlite3
from wmap.utils.log import get_logger

logger = get_logger(__name__)

# seconds to wait on a locked database before giving up
BUSY_TIMEOUT_S = 5.0

def get_connection(db_path: str, timeout: float = BUSY_TIMEOUT_S) -> sqlite3.Connection:
    """
    Get a SQLite connection in WAL mode with rows returned as sqlite3.Row.

    The connection may be used from several threads (the HTTP server calls
    the store from its worker pool); the cluster store serializes access
    with its own lock. WAL lets `wmap count`/`export` read while a server
    process holds the same file.
    """
    conn = sqlite3.connect(db_path, timeout=timeout, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL;")
    return conn

def init_db(db_path: str) -> sqlite3.Connection:
    """
    Initialize (or migrate) the database by running the
    DDL in schema.sql, then return a live connection.
    """
    conn = get_connection(db_path)
    schema_path = os.path.join(os.path.dirname(__file__), "schema.sql")
    logger.debug("Initializing DB schema %s on %s", schema_path, db_path)
    with open(schema_path, "r") as f:
        conn.executescript(f.read())
    conn.commit()
    return conn

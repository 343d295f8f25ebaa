"""
Persistence backings for the cluster store.

A backing only moves the serialized snapshot text in and out of some medium;
it knows nothing about clusters.
"""

import os
import sqlite3
import tempfile
import time
from pathlib import Path
from typing import Optional, Protocol

from wmap.errors import BackingError
from wmap.storage.dao import DAO
from wmap.utils.log import get_logger

logger = get_logger(__name__)


class SnapshotBacking(Protocol):
    def read(self) -> Optional[str]:
        """Return the stored snapshot text, or None if nothing was stored yet."""
        ...

    def write(self, text: str) -> None:
        """Durably replace the stored snapshot text."""
        ...


def _fsync_dir(directory: Path) -> None:
    """Make a rename inside `directory` durable (no-op where directories cannot be opened)."""
    if os.name != "posix":
        return
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


class FileBacking:
    """
    Snapshot stored as a single JSON file, replaced atomically on write.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def read(self) -> Optional[str]:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise BackingError(f"cannot read {self.path}: {e}") from e

    def write(self, text: str) -> None:
        directory = self.path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=directory,
                prefix=f".{self.path.name}.", suffix=".tmp", delete=False,
            ) as f:
                tmp_name = f.name
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
            _fsync_dir(directory)
        except OSError as e:
            raise BackingError(f"cannot write {self.path}: {e}") from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.warning("Could not remove temp file %s", tmp_name)

    def __repr__(self) -> str:
        return f"FileBacking({str(self.path)!r})"


class SqliteBacking:
    """
    Snapshot stored as one row of the `snapshots` table, keyed by store name.
    """

    def __init__(self, db_path: str | Path, key: str = "default"):
        self.db_path = str(db_path)
        self.key = key
        self._dao: Optional[DAO] = None

    def _get_dao(self) -> DAO:
        # opened lazily so a broken DB file surfaces through read/write
        if self._dao is None:
            self._dao = DAO(self.db_path)
        return self._dao

    def read(self) -> Optional[str]:
        try:
            return self._get_dao().get_snapshot(self.key)
        except (sqlite3.Error, OSError) as e:
            raise BackingError(f"cannot read {self.db_path}[{self.key}]: {e}") from e

    def write(self, text: str) -> None:
        try:
            self._get_dao().put_snapshot(self.key, text, int(time.time()))
        except (sqlite3.Error, OSError) as e:
            raise BackingError(f"cannot write {self.db_path}[{self.key}]: {e}") from e

    def close(self) -> None:
        if self._dao is not None:
            self._dao.close()
            self._dao = None

    def __repr__(self) -> str:
        return f"SqliteBacking({self.db_path!r}, key={self.key!r})"


def open_backing(path: str | Path) -> SnapshotBacking:
    """
    Pick a backing from the file extension: `.json` is a plain file,
    anything else is treated as a SQLite database.
    """
    if Path(path).suffix.lower() == ".json":
        return FileBacking(path)
    return SqliteBacking(path)

# vfs.py
import logging
import posixpath
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import fsspec
from fsspec.spec import AbstractFileSystem

from .exceptions import StorageError
from .storage.base import EntryType, StorageEntry, StorageProvider, WriteBuffer


@contextmanager
def _storage_errors(action: str, uri: str):
    """Re-raises back end failures as StorageError."""
    try:
        yield
    except StorageError:
        raise
    except (OSError, ValueError, NotImplementedError) as e:
        logging.error(f"Failed to {action} '{uri}': {e}")
        raise StorageError(f"Failed to {action} '{uri}': {e}") from e


def _info_type(info: Dict[str, Any]) -> EntryType:
    kind = info.get("type")
    if kind == "file":
        return EntryType.FILE
    if kind == "directory":
        return EntryType.FOLDER
    return EntryType.OTHER


class _FsspecWriteBuffer(WriteBuffer):
    """Buffers written bytes and writes them to the filesystem on close."""

    def __init__(self, entry: "FsspecEntry"):
        super().__init__()
        self._entry = entry

    def commit(self, data: bytes):
        with _storage_errors("write", self._entry.uri):
            with self._entry.fs.open(self._entry.path, "wb") as f:
                f.write(data)


def _mtime(info: Dict[str, Any]) -> Optional[datetime]:
    mtime = info.get("mtime")
    if isinstance(mtime, datetime):
        return mtime
    if isinstance(mtime, (int, float)):
        return datetime.fromtimestamp(mtime, tz=timezone.utc)
    return None


class FsspecEntry(StorageEntry):
    """
    An entry of an fsspec filesystem. The filesystem class is chosen by the
    URI scheme (file://, sftp://, memory://, ...).
    """

    def __init__(
        self,
        uri: str,
        fs: AbstractFileSystem,
        path: str,
        info: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(uri)
        self.fs = fs
        self.path = path
        # Known when the entry comes from a folder listing.
        self._info = info

    @property
    def base_name(self) -> str:
        return posixpath.basename(self.path.rstrip("/"))

    def _child(self, info: Dict[str, Any]) -> "FsspecEntry":
        name = posixpath.basename(info["name"].rstrip("/"))
        uri = f"{self.uri.rstrip('/')}/{name}"
        return FsspecEntry(uri, self.fs, info["name"], info=info)

    def type(self) -> EntryType:
        if self._info is not None:
            return _info_type(self._info)
        with _storage_errors("stat", self.uri):
            try:
                info = self.fs.info(self.path)
            except FileNotFoundError:
                return EntryType.IMAGINARY
            return _info_type(info)

    def children(self) -> List[StorageEntry]:
        with _storage_errors("list", self.uri):
            entries = self.fs.ls(self.path, detail=True)
        # Some back ends list the folder itself as well.
        own_path = self.path.rstrip("/")
        return [
            self._child(info)
            for info in entries
            if info["name"].rstrip("/") != own_path
        ]

    def last_modified_time(self) -> Optional[datetime]:
        modified = _mtime(self._info) if self._info is not None else None
        if modified is None:
            try:
                modified = self.fs.modified(self.path)
            except Exception as e:
                # Unsupported for symbolic links and by several back ends.
                logging.debug(f"Could not read last modified time of '{self.uri}': {e}")
                return None
        if modified.tzinfo is None:
            modified = modified.replace(tzinfo=timezone.utc)
        return modified

    def open_read(self):
        with _storage_errors("read", self.uri):
            return self.fs.open(self.path, "rb")

    def open_write(self):
        return _FsspecWriteBuffer(self)

    def create_file(self):
        with _storage_errors("create file", self.uri):
            if self.fs.exists(self.path):
                return
            parent = posixpath.dirname(self.path.rstrip("/"))
            if parent:
                self.fs.makedirs(parent, exist_ok=True)
            self.fs.touch(self.path)
            logging.info(f"Created file '{self.uri}'")

    def create_folder(self):
        with _storage_errors("create folder", self.uri):
            self.fs.makedirs(self.path, exist_ok=True)
            logging.info(f"Created folder '{self.uri}'")

    def delete(self):
        with _storage_errors("delete", self.uri):
            if not self.fs.exists(self.path):
                logging.info(f"Nothing to delete at '{self.uri}'")
                return
            self.fs.rm(self.path, recursive=True)
            logging.info(f"Deleted '{self.uri}'")


class FsspecStorageProvider(StorageProvider):
    """
    Storage provider backed by fsspec, implementing the StorageProvider interface.
    """

    def __init__(self, storage_options: Optional[Dict[str, Any]] = None):
        self.storage_options = dict(storage_options or {})

    def resolve(self, uri: str) -> FsspecEntry:
        try:
            fs, path = fsspec.core.url_to_fs(uri, **self.storage_options)
        except (ImportError, ValueError, OSError) as e:
            # Unknown scheme, missing back end package or unreachable host.
            logging.error(f"Failed to resolve '{uri}': {e}")
            raise StorageError(f"Failed to resolve '{uri}': {e}") from e
        return FsspecEntry(uri, fs, path)

# storage/base.py
import io
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import BinaryIO, List, Optional


class EntryType(str, Enum):
    FILE = "FILE"
    FOLDER = "FOLDER"
    OTHER = "OTHER"
    # The URI resolved, but nothing exists there (yet).
    IMAGINARY = "IMAGINARY"


class WriteBuffer(io.BytesIO, ABC):
    """
    Collects written bytes in memory and commits them to storage on close,
    unless discard() was called first.
    """

    def __init__(self):
        super().__init__()
        self._discarded = False

    @abstractmethod
    def commit(self, data: bytes):
        pass

    def discard(self):
        """Drops the buffered bytes; close() then leaves storage untouched."""
        self._discarded = True

    def close(self):
        if self.closed:
            return
        try:
            if not self._discarded:
                self.commit(self.getvalue())
        finally:
            super().close()


class StorageEntry(ABC):
    """
    A handle on a single location of a storage back end.
    Obtaining a handle never requires the location to exist; every
    method raises StorageError when the back end reports a failure.
    """

    def __init__(self, uri: str):
        self.uri = uri

    @property
    @abstractmethod
    def base_name(self) -> str:
        """The last segment of the entry's path."""
        pass

    @abstractmethod
    def type(self) -> EntryType:
        pass

    def exists(self) -> bool:
        return self.type() != EntryType.IMAGINARY

    @abstractmethod
    def children(self) -> List["StorageEntry"]:
        """
        Lists the direct children of a folder entry.

        :return: Handles of the children, in no particular order.
        """
        pass

    @abstractmethod
    def last_modified_time(self) -> Optional[datetime]:
        """
        Returns the last modification time, or None when the entry kind
        does not support it (e.g., symbolic links, some folders).
        """
        pass

    @abstractmethod
    def open_read(self) -> BinaryIO:
        """Opens a binary stream over the entry's content. The caller closes it."""
        pass

    @abstractmethod
    def open_write(self) -> WriteBuffer:
        """
        Opens a buffer replacing the entry's content. The content is
        committed when the buffer is closed, unless it was discarded.
        """
        pass

    @abstractmethod
    def create_file(self):
        """Creates an empty file, including missing parent folders. No-op if it exists."""
        pass

    @abstractmethod
    def create_folder(self):
        """Creates a folder and any missing intermediate folders. No-op if it exists."""
        pass

    @abstractmethod
    def delete(self):
        """Deletes the entry, a folder together with its contents. No-op if missing."""
        pass

    def __repr__(self):
        return f"{type(self).__name__}({self.uri!r})"


class StorageProvider(ABC):
    """
    Abstract base class for a storage back end reachable through URIs.
    Defines the common interface that all specific providers
    (e.g., fsspec filesystems, Dropbox) must implement.
    """

    @abstractmethod
    def resolve(self, uri: str) -> StorageEntry:
        """
        Resolves a URI to an entry handle.

        :param uri: The location to resolve.
        :return: A StorageEntry, whether or not the location exists.
        """
        pass

# dbox.py
import io
import logging
import posixpath
from datetime import datetime, timezone
from typing import List, Optional

import dropbox
from dropbox.exceptions import ApiError
from dropbox.files import (
    CommitInfo,
    FileMetadata as DropboxFileMetadata,
    FolderMetadata as DropboxFolderMetadata,
    WriteMode,
)

from .exceptions import StorageError
from .storage.base import EntryType, StorageEntry, StorageProvider, WriteBuffer

SCHEME = "dropbox://"
DEFAULT_CHUNK_SIZE = 8 * 1024 * 1024


def _is_not_found(e: ApiError) -> bool:
    error = getattr(e, "error", None)
    try:
        return bool(error.is_path() and error.get_path().is_not_found())
    except AttributeError:
        return False


def to_dropbox_path(uri: str) -> str:
    """
    Maps 'dropbox:///a/b/' (or '/a/b') to '/a/b'. Dropbox names its root ''.
    """
    path = uri[len(SCHEME):] if uri.startswith(SCHEME) else uri
    path = "/" + "/".join(part for part in path.split("/") if part)
    return "" if path == "/" else path


class _UploadStream(WriteBuffer):
    """Buffers written bytes and uploads them to Dropbox on close."""

    def __init__(self, entry: "DropboxEntry"):
        super().__init__()
        self._entry = entry

    def commit(self, data: bytes):
        self._entry.upload(data)


class DropboxEntry(StorageEntry):
    """
    An entry of a Dropbox account, implementing the StorageEntry interface.
    """

    def __init__(self, provider: "DropboxStorageProvider", path: str, metadata=None):
        super().__init__(SCHEME + path)
        self.provider = provider
        self.dbx = provider.dbx
        self.path = path
        # Known when the entry comes from a folder listing.
        self._metadata = metadata

    @property
    def base_name(self) -> str:
        return posixpath.basename(self.path)

    def _get_metadata(self):
        if self._metadata is not None:
            return self._metadata
        try:
            return self.dbx.files_get_metadata(self.path)
        except ApiError as e:
            if _is_not_found(e):
                return None
            logging.error(f"Failed to get metadata for Dropbox path '{self.path}': {e}")
            raise StorageError(f"Failed to get metadata for '{self.path}': {e}") from e

    def type(self) -> EntryType:
        # For Dropbox, an empty string signifies the root folder, which always exists.
        if self.path == "":
            return EntryType.FOLDER
        metadata = self._get_metadata()
        if metadata is None:
            return EntryType.IMAGINARY
        if isinstance(metadata, DropboxFolderMetadata):
            return EntryType.FOLDER
        if isinstance(metadata, DropboxFileMetadata):
            return EntryType.FILE
        return EntryType.OTHER

    def children(self) -> List[StorageEntry]:
        """
        Returns the entries of the folder, handling pagination automatically.
        """
        try:
            logging.info(f"Listing Dropbox path: '{self.path}'")
            result = self.dbx.files_list_folder(self.path)  # Non-recursive
            all_entries = list(result.entries)
            while result.has_more:
                logging.info("Found more entries, continuing listing...")
                result = self.dbx.files_list_folder_continue(result.cursor)
                all_entries.extend(result.entries)
        except ApiError as e:
            logging.error(f"Failed to list Dropbox path '{self.path}': {e}")
            raise StorageError(f"Failed to list '{self.path}': {e}") from e

        return [
            DropboxEntry(self.provider, f"{self.path}/{entry.name}", metadata=entry)
            for entry in all_entries
        ]

    def last_modified_time(self) -> Optional[datetime]:
        try:
            metadata = self._get_metadata()
        except StorageError as e:
            logging.debug(f"Could not read last modified time of '{self.path}': {e}")
            return None
        if not isinstance(metadata, DropboxFileMetadata):
            # Dropbox keeps no modification time for folders.
            return None
        return metadata.server_modified.replace(tzinfo=timezone.utc)

    def open_read(self):
        try:
            logging.info(f"Downloading {self.path}...")
            _, response = self.dbx.files_download(self.path)
            return io.BytesIO(response.content)
        except ApiError as e:
            logging.error(f"Failed to download file '{self.path}': {e}")
            raise StorageError(f"Failed to download '{self.path}': {e}") from e

    def open_write(self):
        return _UploadStream(self)

    def upload(self, data: bytes):
        """Uploads content to Dropbox using chunked uploading for large payloads."""
        chunk_size = self.provider.chunk_size
        try:
            if len(data) <= chunk_size:
                logging.info(f"Uploading to {self.path} (single upload)...")
                self.dbx.files_upload(data, self.path, mode=WriteMode("overwrite"))
                return

            logging.info(f"Starting chunked upload to {self.path}...")
            stream = io.BytesIO(data)
            file_size = len(data)
            session = self.dbx.files_upload_session_start(stream.read(chunk_size))
            cursor = dropbox.files.UploadSessionCursor(
                session_id=session.session_id, offset=stream.tell()
            )
            commit_info = CommitInfo(path=self.path, mode=WriteMode("overwrite"))

            while stream.tell() < file_size:
                next_chunk = stream.read(chunk_size)
                if stream.tell() >= file_size:
                    logging.info(f"Uploading final chunk for {self.path}...")
                    self.dbx.files_upload_session_finish(next_chunk, cursor, commit_info)
                else:
                    logging.info(
                        f"Uploading chunk for {self.path} (offset: {cursor.offset})..."
                    )
                    self.dbx.files_upload_session_append_v2(next_chunk, cursor)
                    cursor.offset = stream.tell()
            logging.info(f"Chunked upload completed for {self.path}.")
        except ApiError as e:
            logging.error(f"Failed to upload file to '{self.path}': {e}")
            raise StorageError(f"Failed to upload '{self.path}': {e}") from e

    def create_file(self):
        if self.exists():
            return
        # Dropbox creates missing parent folders on upload.
        self.upload(b"")

    def create_folder(self):
        if self.exists():
            return
        try:
            logging.info(f"Creating Dropbox folder {self.path}...")
            self.dbx.files_create_folder_v2(self.path)
        except ApiError as e:
            logging.error(f"Failed to create folder '{self.path}': {e}")
            raise StorageError(f"Failed to create folder '{self.path}': {e}") from e

    def delete(self):
        """Deletes a file or folder in Dropbox."""
        try:
            logging.info(f"Deleting {self.path}...")
            self.dbx.files_delete_v2(self.path)
        except ApiError as e:
            if _is_not_found(e):
                logging.info(f"Nothing to delete at '{self.path}'")
                return
            logging.error(f"Failed to delete path '{self.path}': {e}")
            raise StorageError(f"Failed to delete '{self.path}': {e}") from e


class DropboxStorageProvider(StorageProvider):
    """
    Storage provider for the Dropbox API, implementing the StorageProvider interface.
    """

    def __init__(self, app_key, app_secret, refresh_token, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.chunk_size = chunk_size
        try:
            self.dbx = dropbox.Dropbox(
                app_key=app_key,
                app_secret=app_secret,
                oauth2_refresh_token=refresh_token,
            )
            # Verify successful authentication by requesting current user info
            self.dbx.users_get_current_account()
            logging.info("Dropbox storage provider initialized successfully.")
        except Exception as e:
            logging.error(
                f"Failed to initialize Dropbox client. Check your credentials. Error: {e}"
            )
            raise

    def resolve(self, uri: str) -> DropboxEntry:
        return DropboxEntry(self, to_dropbox_path(uri))

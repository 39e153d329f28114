# vfs_connector.py
import io
import logging
import posixpath
import shutil
from pathlib import Path
from typing import List, Mapping, Optional

from .config import (
    BASE_PATH_KEY,
    DEFAULT_BASE_PATH,
    ConnectorConfiguration,
    placeholder_name,
    system_values,
    to_file_uri,
)
from .connector import Connector
from .exceptions import ConfigurationError, NotFoundError, StorageError, UnsupportedTypeError
from .storage.base import EntryType, StorageEntry, StorageProvider, WriteBuffer
from .storage.dto import ContentType, Node, NodeType, node_sort_key
from .vfs import FsspecStorageProvider

SEPARATOR = "/"
NO_PICTURE_PATH = Path(__file__).resolve().parent / "resources" / "no-picture.png"


def preview_id(node_id: str) -> str:
    """
    Returns the id of the .png image previewing a node: the extension of the
    last path segment is replaced, or '.png' is appended if it has none.
    """
    stem, _ = posixpath.splitext(node_id)
    return stem + ".png"


def child_id(parent_id: str, base_name: str) -> str:
    if parent_id.endswith(SEPARATOR):
        return parent_id + base_name
    return parent_id + SEPARATOR + base_name


def _node_type(entry_type: EntryType) -> NodeType:
    return NodeType.FILE if entry_type == EntryType.FILE else NodeType.FOLDER


class VfsConnector(Connector):
    """
    Exposes a filesystem reachable through a storage provider as a tree of
    nodes rooted at the configured base path.

    Node ids are slash-delimited paths relative to the base path; the
    connector keeps no state between calls apart from its configuration.
    """

    def __init__(
        self,
        storage_provider: Optional[StorageProvider] = None,
        values: Optional[Mapping[str, str]] = None,
        connector_id: Optional[str] = None,
        name: Optional[str] = None,
    ):
        super().__init__(connector_id=connector_id, name=name)
        self.storage_provider = storage_provider or FsspecStorageProvider()
        self.values = values
        self.base_path: Optional[str] = None

    def initialize(self, config: ConnectorConfiguration):
        if config is None:
            raise ConfigurationError("Connector configuration is missing")
        super().initialize(config)

        base_path = config.properties.get(BASE_PATH_KEY)
        if base_path is None or not base_path.strip():
            raise ConfigurationError(f"Property {BASE_PATH_KEY} is required")

        # Load the base path from a system value, e.g. ${user.home}
        name = placeholder_name(base_path)
        if name is not None:
            values = system_values() if self.values is None else self.values
            value = values.get(name)
            if value is None:
                logging.warning(
                    f"System value {name} is not defined. Keeping base path {base_path}"
                )
            else:
                try:
                    base_path = to_file_uri(value)
                    logging.info(f"Loading base path from system value {name}: {base_path}")
                except (OSError, ValueError) as e:
                    logging.warning(
                        f"Could not read base path from system value {name}: {e}. "
                        f"Using {DEFAULT_BASE_PATH}"
                    )
                    base_path = DEFAULT_BASE_PATH

        self.base_path = base_path

    def _resolve(self, node_id: str) -> StorageEntry:
        if self.base_path is None:
            raise ConfigurationError("Connector has not been initialized")
        base_path = self.base_path
        if base_path.endswith(SEPARATOR) and node_id.startswith(SEPARATOR):
            node_id = node_id[1:]
        return self.storage_provider.resolve(base_path + node_id)

    def get_root(self) -> Node:
        return Node(id=SEPARATOR, label=SEPARATOR, type=NodeType.FOLDER)

    def get_node(self, node_id: str) -> Node:
        entry = self._resolve(node_id)
        return Node(id=node_id, label=entry.base_name, type=_node_type(entry.type()))

    def get_children(self, parent: Node) -> List[Node]:
        entry = self._resolve(parent.id)
        if entry.type() == EntryType.FILE:
            return []

        nodes = []
        for child in entry.children():
            base_name = child.base_name
            nodes.append(
                Node(
                    id=child_id(parent.id, base_name),
                    label=base_name,
                    type=_node_type(child.type()),
                    last_modified=child.last_modified_time(),
                    connector_id=self.connector_id,
                )
            )
        return sorted(nodes, key=node_sort_key)

    def get_content(self, node: Node, content_type: ContentType = ContentType.DEFAULT):
        entry = self._resolve(node.id)
        if entry.type() != EntryType.FILE:
            raise StorageError(f"Cannot get content of non-file node '{node.id}'")

        if content_type == ContentType.PNG:
            preview = self._resolve(preview_id(node.id))
            if preview.exists():
                return preview.open_read()
            return io.BytesIO(NO_PICTURE_PATH.read_bytes())
        return entry.open_read()

    def update_content(self, node: Node, new_content):
        entry = self._resolve(node.id)
        entry_type = entry.type()
        if entry_type == EntryType.IMAGINARY:
            raise NotFoundError(f"File '{node.label}' does not exist.")
        if entry_type != EntryType.FILE:
            raise StorageError(
                f"Unable to update content of file '{node.label}': Assigned file is not a file."
            )

        output = entry.open_write()
        try:
            shutil.copyfileobj(new_content, output)
        except Exception as e:
            # Leave the stored content as it was.
            if isinstance(output, WriteBuffer):
                output.discard()
            if isinstance(e, OSError):
                raise StorageError(f"Failed to write content of '{node.id}': {e}") from e
            raise
        finally:
            output.close()
        logging.info(f"Updated content of '{node.id}'")

    def create_node(self, node_id: str, label: str, node_type: NodeType) -> Node:
        entry = self._resolve(node_id)
        if node_type == NodeType.FILE:
            entry.create_file()
        elif node_type == NodeType.FOLDER:
            entry.create_folder()
        else:
            raise UnsupportedTypeError(f"Unsupported node type: {node_type}")
        return Node(id=node_id, label=label, type=node_type)

    def delete_node(self, node_id: str):
        self._resolve(node_id).delete()

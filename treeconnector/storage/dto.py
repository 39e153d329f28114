# storage/dto.py
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel


class NodeType(str, Enum):
    FILE = "FILE"
    FOLDER = "FOLDER"


class ContentType(str, Enum):
    DEFAULT = "DEFAULT"
    PNG = "PNG"


class Node(BaseModel):
    """
    A standardized Data Transfer Object for a file tree entry, independent of
    the storage provider that backs it.
    """

    id: str
    label: str
    type: NodeType
    last_modified: Optional[datetime] = None
    connector_id: Optional[str] = None

    @property
    def is_folder(self) -> bool:
        return self.type == NodeType.FOLDER


def node_sort_key(node: Node) -> Tuple[bool, str, str]:
    """
    Folders first, then labels compared case-insensitively.
    The raw label breaks ties so the order is total.
    """
    return (not node.is_folder, node.label.casefold(), node.label)

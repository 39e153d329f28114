# connector.py
from abc import ABC, abstractmethod
from typing import BinaryIO, List, Optional

from .config import ConnectorConfiguration
from .storage.dto import ContentType, Node, NodeType


class Connector(ABC):
    """
    Abstract base class for a connector exposing a repository as a tree of nodes.
    Defines the operations the repository application calls on every connector.
    """

    def __init__(self, connector_id: Optional[str] = None, name: Optional[str] = None):
        self.connector_id = connector_id
        self.name = name
        self.configuration: Optional[ConnectorConfiguration] = None

    def initialize(self, config: ConnectorConfiguration):
        """
        Applies a configuration to the connector. Subclasses read their
        properties here.
        """
        self.configuration = config
        if config.connector_id is not None:
            self.connector_id = config.connector_id
        if config.name is not None:
            self.name = config.name

    @abstractmethod
    def get_root(self) -> Node:
        pass

    @abstractmethod
    def get_node(self, node_id: str) -> Node:
        pass

    @abstractmethod
    def get_children(self, parent: Node) -> List[Node]:
        pass

    @abstractmethod
    def get_content(self, node: Node, content_type: ContentType = ContentType.DEFAULT) -> BinaryIO:
        pass

    @abstractmethod
    def update_content(self, node: Node, new_content: BinaryIO):
        pass

    @abstractmethod
    def create_node(self, node_id: str, label: str, node_type: NodeType) -> Node:
        pass

    @abstractmethod
    def delete_node(self, node_id: str):
        pass

# tests/test_dto.py
from treeconnector.storage.dto import Node, NodeType, node_sort_key


def _node(label, node_type=NodeType.FILE):
    return Node(id=f"/{label}", label=label, type=node_type)


def test_folders_sort_before_files():
    nodes = [_node("a.bpmn"), _node("z-folder", NodeType.FOLDER)]

    assert [n.label for n in sorted(nodes, key=node_sort_key)] == ["z-folder", "a.bpmn"]


def test_labels_sort_case_insensitively():
    nodes = [_node("beta"), _node("Alpha"), _node("alpha2"), _node("Gamma")]

    assert [n.label for n in sorted(nodes, key=node_sort_key)] == [
        "Alpha",
        "alpha2",
        "beta",
        "Gamma",
    ]


def test_order_is_total_for_labels_differing_in_case():
    first = sorted([_node("readme"), _node("README")], key=node_sort_key)
    second = sorted([_node("README"), _node("readme")], key=node_sort_key)

    assert [n.label for n in first] == [n.label for n in second] == ["README", "readme"]


def test_node_defaults():
    node = _node("a.bpmn")

    assert node.last_modified is None
    assert node.connector_id is None
    assert not node.is_folder

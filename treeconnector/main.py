# main.py
import argparse
import logging
import sys
from typing import List, Optional

from .config import get_settings
from .dbox import DropboxStorageProvider
from .exceptions import ConnectorError
from .storage.base import StorageProvider
from .storage.dto import ContentType, Node, NodeType
from .vfs import FsspecStorageProvider
from .vfs_connector import VfsConnector


def setup_logging():
    """Configures logging to file and console explicitly."""
    settings = get_settings()
    log_level_name = settings.LOG_LEVEL.upper()

    # Get the root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level_name)

    # Clear any existing handlers to prevent duplicate logs on re-runs or implicit configs
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Console output goes to stderr so that `cat` can write content to stdout
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    try:
        file_handler = logging.FileHandler(settings.LOG_FILE)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
    except OSError as e:
        root_logger.error(f"Failed to set up file logging to {settings.LOG_FILE}: {e}")

    # Reducing "noise" from third-party libraries
    for name in ("dropbox", "urllib3", "fsspec", "paramiko"):
        logging.getLogger(name).setLevel(logging.WARNING)


def initialize_storage_provider(settings) -> Optional[StorageProvider]:
    """Initializes and returns the storage provider selected by the settings."""
    if settings.STORAGE_PROVIDER == "vfs":
        logging.info("Using fsspec storage provider.")
        return FsspecStorageProvider(storage_options=settings.STORAGE_OPTIONS)

    if settings.STORAGE_PROVIDER == "dropbox":
        logging.info("Using Dropbox storage provider.")
        try:
            return DropboxStorageProvider(
                app_key=settings.DROPBOX_APP_KEY,
                app_secret=settings.DROPBOX_APP_SECRET,
                refresh_token=settings.DROPBOX_REFRESH_TOKEN,
                chunk_size=settings.DROPBOX_UPLOAD_CHUNK_SIZE,
            )
        except Exception as e:
            logging.error(
                f"Failed to initialize Dropbox storage provider. Error: {e}", exc_info=True
            )
            return None

    logging.critical(f"Unknown STORAGE_PROVIDER: {settings.STORAGE_PROVIDER}")
    return None


def initialize_connector(settings) -> Optional[VfsConnector]:
    provider = initialize_storage_provider(settings)
    if provider is None:
        return None
    connector = VfsConnector(storage_provider=provider)
    connector.initialize(settings.connector_configuration())
    return connector


def _format_node(node: Node) -> str:
    kind = "d" if node.type == NodeType.FOLDER else "-"
    modified = node.last_modified.isoformat(timespec="seconds") if node.last_modified else "-"
    return f"{kind} {modified:<25} {node.label}"


def _parent_and_label(node_id: str):
    parent, _, label = node_id.rstrip("/").rpartition("/")
    return parent or "/", label


def run_command(connector: VfsConnector, args) -> int:
    if args.command == "ls":
        parent = connector.get_root() if args.id == "/" else connector.get_node(args.id)
        for node in connector.get_children(parent):
            print(_format_node(node))

    elif args.command == "stat":
        print(connector.get_node(args.id).model_dump_json(indent=2))

    elif args.command == "cat":
        node = connector.get_node(args.id)
        content_type = ContentType.PNG if args.preview else ContentType.DEFAULT
        stream = connector.get_content(node, content_type)
        try:
            sys.stdout.buffer.write(stream.read())
            sys.stdout.buffer.flush()
        finally:
            stream.close()

    elif args.command == "write":
        node = connector.get_node(args.id)
        if args.file:
            with open(args.file, "rb") as f:
                connector.update_content(node, f)
        else:
            connector.update_content(node, sys.stdin.buffer)

    elif args.command in ("mkdir", "touch"):
        node_type = NodeType.FOLDER if args.command == "mkdir" else NodeType.FILE
        _, label = _parent_and_label(args.id)
        connector.create_node(args.id, label, node_type)

    elif args.command == "rm":
        connector.delete_node(args.id)

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Browse and edit a filesystem through the file tree connector."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ls = subparsers.add_parser("ls", help="List the children of a folder node.")
    ls.add_argument("id", nargs="?", default="/", help="Node id (default: root).")

    stat = subparsers.add_parser("stat", help="Show a node.")
    stat.add_argument("id")

    cat = subparsers.add_parser("cat", help="Write the content of a file node to stdout.")
    cat.add_argument("id")
    cat.add_argument(
        "--preview", action="store_true", help="Write the .png preview image instead."
    )

    write = subparsers.add_parser("write", help="Replace the content of a file node.")
    write.add_argument("id")
    write.add_argument("file", nargs="?", help="Source file (default: stdin).")

    for command, help_text in (
        ("mkdir", "Create a folder node, including missing parents."),
        ("touch", "Create an empty file node."),
        ("rm", "Delete a node and its contents."),
    ):
        subparser = subparsers.add_parser(command, help=help_text)
        subparser.add_argument("id")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging()
    settings = get_settings()

    try:
        connector = initialize_connector(settings)
    except ConnectorError as e:
        logging.critical(f"Could not initialize the connector: {e}")
        return 1
    if connector is None:
        logging.critical(
            f"Could not establish a connection to {settings.STORAGE_PROVIDER}."
        )
        return 1

    try:
        return run_command(connector, args)
    except ConnectorError as e:
        logging.error(f"{args.command} {args.id} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

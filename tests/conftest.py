# tests/conftest.py
import pytest
from unittest.mock import MagicMock
from pathlib import Path

from treeconnector.config import BASE_PATH_KEY, ConnectorConfiguration, Settings, get_settings
from treeconnector.vfs_connector import VfsConnector


@pytest.fixture
def mock_settings(tmp_path):
    """
    Provides a mock of the application settings for testing.
    This avoids the need for environment variables during tests.
    """
    settings = MagicMock(spec=Settings)
    settings.STORAGE_PROVIDER = "vfs"
    settings.BASE_PATH = (tmp_path / "repo").as_uri()
    settings.CONNECTOR_ID = "test-connector"
    settings.CONNECTOR_NAME = "Test Connector"
    settings.LOG_LEVEL = "DEBUG"
    settings.STORAGE_OPTIONS = {}
    settings.DROPBOX_APP_KEY = "test_key"
    settings.DROPBOX_APP_SECRET = "test_secret"
    settings.DROPBOX_REFRESH_TOKEN = "test_token"
    settings.DROPBOX_UPLOAD_CHUNK_SIZE = 1024
    settings.BASE_DIR = tmp_path
    settings.LOG_FILE = tmp_path / "treeconnector.log"
    settings.connector_configuration.return_value = ConnectorConfiguration(
        connector_id="test-connector",
        name="Test Connector",
        properties={BASE_PATH_KEY: settings.BASE_PATH},
    )
    return settings


@pytest.fixture(autouse=True)
def patch_settings_class(monkeypatch, mock_settings):
    """
    Replaces the `Settings` constructor so that no real settings are loaded
    by code calling `get_settings()` during a test run.
    """
    get_settings.cache_clear()
    monkeypatch.setattr("treeconnector.config.Settings", lambda *args, **kwargs: mock_settings)
    yield
    get_settings.cache_clear()


@pytest.fixture
def repo(tmp_path) -> Path:
    """
    A small repository on the local disk:

        repo/
          B-folder/
            nested.bpmn
          a-folder/
          diagram.bpmn
          diagram.png
          Notes.txt
          zeta.bpmn
    """
    root = tmp_path / "repo"
    (root / "B-folder").mkdir(parents=True)
    (root / "a-folder").mkdir()
    (root / "B-folder" / "nested.bpmn").write_bytes(b"<nested/>")
    (root / "diagram.bpmn").write_bytes(b"<definitions/>")
    (root / "diagram.png").write_bytes(b"\x89PNG-diagram")
    (root / "Notes.txt").write_bytes(b"some notes")
    (root / "zeta.bpmn").write_bytes(b"")
    return root


@pytest.fixture
def connector(repo) -> VfsConnector:
    """A connector initialized on the `repo` fixture."""
    connector = VfsConnector()
    connector.initialize(
        ConnectorConfiguration(
            connector_id="test-connector",
            properties={BASE_PATH_KEY: repo.as_uri()},
        )
    )
    return connector

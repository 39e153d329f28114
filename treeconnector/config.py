import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_PATH_KEY = "BASE_PATH"


def _file_uri(path: Path) -> str:
    # Not percent-encoded: fsspec hands the path after file:// to the OS unchanged.
    return "file://" + path.as_posix()


DEFAULT_BASE_PATH = _file_uri(Path.home().joinpath("cycle")) + "/"

PLACEHOLDER_PATTERN = re.compile(r"\$\{(.*)\}")


class ConnectorConfiguration(BaseModel):
    """
    The configuration a connector is initialized with. Only the BASE_PATH
    property is recognized by the file tree connector.
    """

    connector_id: Optional[str] = None
    name: Optional[str] = None
    properties: Dict[str, str] = Field(default_factory=dict)


def system_values(environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Returns the value store used to resolve ${NAME} placeholders: the
    environment, plus user.home and user.dir when the environment lacks them.
    """
    values = {
        "user.home": str(Path.home()),
        "user.dir": os.getcwd(),
    }
    values.update(os.environ if environ is None else environ)
    return values


def placeholder_name(value: str) -> Optional[str]:
    """Returns NAME if the value is exactly a ${NAME} placeholder."""
    match = PLACEHOLDER_PATTERN.fullmatch(value)
    return match.group(1) if match else None


def to_file_uri(value: str) -> str:
    """Converts a filesystem path to an absolute file:// URI."""
    return _file_uri(Path(value).expanduser().resolve())


class Settings(BaseSettings):
    """
    Centralized application configuration with type validation.
    Automatically reads variables from the environment and the .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- General Settings ---
    STORAGE_PROVIDER: str = "vfs"  # "vfs" or "dropbox"
    BASE_PATH: str = DEFAULT_BASE_PATH
    CONNECTOR_ID: str = "vfs"
    CONNECTOR_NAME: str = "File System"
    LOG_LEVEL: str = "INFO"

    # Passed through to fsspec, e.g. {"username": "...", "password": "..."} for sftp://
    STORAGE_OPTIONS: Dict[str, Any] = Field(default_factory=dict)

    # --- Dropbox Settings (optional) ---
    DROPBOX_APP_KEY: Optional[str] = None
    DROPBOX_APP_SECRET: Optional[str] = None
    DROPBOX_REFRESH_TOKEN: Optional[str] = None
    DROPBOX_UPLOAD_CHUNK_SIZE: int = Field(
        8 * 1024 * 1024, validation_alias="DROPBOX_UPLOAD_CHUNK_SIZE"
    )  # 8 MB default

    # --- Constants and Computed Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent

    @model_validator(mode="after")
    def validate_storage_provider_settings(self):
        if self.STORAGE_PROVIDER == "dropbox":
            required_dropbox_keys = [
                "DROPBOX_APP_KEY",
                "DROPBOX_APP_SECRET",
                "DROPBOX_REFRESH_TOKEN",
            ]
            for key in required_dropbox_keys:
                value = getattr(self, key)
                if not value or not str(value).strip():
                    raise ValueError(
                        f"{key} is required and cannot be empty when STORAGE_PROVIDER is 'dropbox'"
                    )
        elif self.STORAGE_PROVIDER != "vfs":
            raise ValueError("Invalid STORAGE_PROVIDER. Must be 'vfs' or 'dropbox'.")

        if self.DROPBOX_UPLOAD_CHUNK_SIZE <= 0:
            raise ValueError("DROPBOX_UPLOAD_CHUNK_SIZE must be positive")
        return self

    @property
    def LOG_FILE(self) -> Path:
        return self.BASE_DIR / "treeconnector.log"

    def connector_configuration(self) -> ConnectorConfiguration:
        return ConnectorConfiguration(
            connector_id=self.CONNECTOR_ID,
            name=self.CONNECTOR_NAME,
            properties={BASE_PATH_KEY: self.BASE_PATH},
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Returns a cached instance of the application settings.
    The first call to this function will initialize the settings.
    """
    settings = Settings()
    logging.debug(f"Settings loaded for storage provider '{settings.STORAGE_PROVIDER}'")
    return settings

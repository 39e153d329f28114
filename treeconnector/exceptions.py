# exceptions.py

class ConnectorError(Exception):
    """Base class for every error raised by a connector."""
    pass

class ConfigurationError(ConnectorError):
    """The connector configuration is missing or invalid (e.g., no base path)."""
    pass

class StorageError(ConnectorError):
    """A failure reported by the storage provider, or an operation the entry does not support."""
    pass

class NotFoundError(ConnectorError):
    """The target entry does not exist."""
    pass

class UnsupportedTypeError(ConnectorError):
    """A node kind other than FILE or FOLDER was requested."""
    pass

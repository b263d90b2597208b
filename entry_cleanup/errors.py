class CleanupError(Exception):
    """Base class for cleanup errors"""


class ConfigError(CleanupError):
    """A setting could not be parsed"""


class ConnectionsError(CleanupError):
    """connections.json is missing or malformed"""


class CredentialsError(CleanupError):
    """No cloud credentials could be resolved"""


class StorageError(CleanupError):
    """A list or delete call against the object store failed"""

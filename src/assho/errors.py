"""Exceptions raised by assho."""


class AsshoError(Exception):
    """Base class for all assho errors."""


class ValidationError(AsshoError, ValueError):
    """Input was rejected before any state was touched."""


class PersistenceError(AsshoError):
    """Saving the config document failed; in-memory state was rolled back."""


class ConfigFormatError(AsshoError):
    """The config document could not be parsed in any known layout."""


class SSHConfigError(AsshoError):
    """The SSH client config file could not be read or written."""


class KeychainError(AsshoError):
    """The OS secret store rejected a store or lookup."""


class ScanError(AsshoError):
    """Docker discovery on a host failed."""

"""Exception types shared across the capture subsystem."""


class GitifyPromptError(Exception):
    """Base class for all gitify-prompt errors."""


class ConfigError(GitifyPromptError):
    """Raised when a configuration file or update cannot be applied."""


class ProtocolError(GitifyPromptError):
    """Raised when a wire message cannot be decoded or is malformed."""


class PersistenceError(GitifyPromptError):
    """Raised when a session record cannot be written to disk."""


class DaemonError(GitifyPromptError):
    """Base class for daemon server/client failures."""


class DaemonUnreachableError(DaemonError):
    """The daemon socket refused the connection, is missing, or timed out."""


class DaemonRequestError(DaemonError):
    """The daemon answered a request with an error response."""


class DaemonAlreadyRunningError(DaemonError):
    """Another live daemon instance owns the runtime directory."""


class HookExistsError(GitifyPromptError):
    """A post-commit hook not written by gitify-prompt is already present."""

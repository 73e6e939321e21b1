"""Custom exceptions for GemChat."""


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


class StartupConfigError(ConfigError):
    """Raised when the session cannot start, e.g. no API key was provided."""
    pass


class ValidationError(Exception):
    """Raised when a requested tool call has malformed arguments."""

    def __init__(self, message: str, kind: str = "invalid"):
        super().__init__(message)
        self.kind = kind


class ToolExecutionError(Exception):
    """Raised when a tool fails during execution."""
    pass


class RemoteCallError(Exception):
    """Raised when the remote model API call fails or returns garbage."""
    pass


class HistoryPersistError(Exception):
    """Raised when the chat transcript cannot be written."""
    pass


class PromptTemplateError(Exception):
    """Raised when a prompt template fails to render."""
    pass

"""
Error types raised by the toolkit.
"""

from typing import Optional


class PolicyAsCodeError(Exception):
    """Base class for all toolkit errors."""
    pass


class ConfigError(PolicyAsCodeError):
    """Missing credentials or an unreadable config file."""
    pass


class DocumentNotFoundError(PolicyAsCodeError, FileNotFoundError):
    """An input document does not exist."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"File not found: {path}")


class DocumentReadError(PolicyAsCodeError):
    """An input document exists but could not be read."""

    def __init__(self, path, reason):
        self.path = path
        super().__init__(f"Could not read {path}: {reason}")


class ApiError(PolicyAsCodeError):
    """Transport failure, provider error or schema-violating response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"[{self.status_code}] {self.message}"
        return self.message


class UnknownRuleError(PolicyAsCodeError):
    """An edit references rule ids that are not in the store."""

    def __init__(self, ids):
        self.ids = list(ids)
        super().__init__(f"Edit references unknown rule ids: {', '.join(self.ids)}")

"""Exceptions and error classification for spec-sync.

The parsing core never raises for malformed input; these types cover the
orchestration layer (generation backend, configuration).
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Structured classification of generation failures."""

    TIMEOUT = "TIMEOUT"
    RATE_LIMIT = "RATE_LIMIT"
    AUTH = "AUTH"
    NETWORK = "NETWORK"
    BAD_RESPONSE = "BAD_RESPONSE"
    UNSUPPORTED_PROVIDER = "UNSUPPORTED_PROVIDER"
    CLI_FAILURE = "CLI_FAILURE"
    UNKNOWN = "UNKNOWN"


class SpecSyncError(Exception):
    """Base class for spec-sync errors."""


class ConfigError(SpecSyncError):
    """Raised when configuration is invalid."""


class GenerationError(SpecSyncError):
    """Raised when the generation backend fails."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.UNKNOWN):
        super().__init__(message)
        self.error_code = error_code

    def __str__(self) -> str:
        return f"[{self.error_code.value}] {super().__str__()}"

"""
Error Handling - Centralized error policies and custom exceptions.

This module defines how different error types should be handled throughout
the indexing pipeline. Only an invalid target directory aborts a run;
everything else is logged and the affected file is skipped.
"""

import logging
from enum import Enum, auto
from dataclasses import dataclass
from typing import Optional
from pathlib import Path


logger = logging.getLogger(__name__)


class ErrorAction(Enum):
    """What to do when an error occurs."""
    SKIP = auto()           # Skip this item, continue processing
    ABORT = auto()          # Stop the entire run


@dataclass
class ErrorPolicy:
    """Policy for handling a specific error type."""
    action: ErrorAction
    log_level: int
    message_template: str = "{file}: {error}"


class IndexingError(Exception):
    """Base exception for indexing errors."""
    pass


class InvalidDirectoryError(IndexingError):
    """Target of a directory run is missing or not a directory."""
    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{reason}: {path}")


class EmbeddingError(IndexingError):
    """Error during embedding generation."""
    pass


class CacheError(IndexingError):
    """Error reading or writing the embedding cache."""
    pass


class CacheCorruptError(CacheError):
    """Cache entry could not be decoded."""
    pass


# Error type to policy mapping (first match wins, so subclasses go first)
ERROR_POLICIES: dict[type, ErrorPolicy] = {
    InvalidDirectoryError: ErrorPolicy(
        action=ErrorAction.ABORT,
        log_level=logging.ERROR,
        message_template="{error}"
    ),
    EmbeddingError: ErrorPolicy(
        action=ErrorAction.SKIP,
        log_level=logging.ERROR,
        message_template="Embedding failed: {file} - {error}"
    ),
    PermissionError: ErrorPolicy(
        action=ErrorAction.SKIP,
        log_level=logging.WARNING,
        message_template="Permission denied: {file}"
    ),
    FileNotFoundError: ErrorPolicy(
        action=ErrorAction.SKIP,
        log_level=logging.WARNING,
        message_template="File not found (possibly deleted): {file}"
    ),
    IsADirectoryError: ErrorPolicy(
        action=ErrorAction.SKIP,
        log_level=logging.DEBUG,
        message_template="Expected file, got directory: {file}"
    ),
    OSError: ErrorPolicy(
        action=ErrorAction.SKIP,
        log_level=logging.WARNING,
        message_template="OS error reading file: {file} - {error}"
    ),
}


def handle_error(
    error: Exception,
    file_path: Optional[Path] = None,
    context: str = ""
) -> ErrorAction:
    """
    Handle an error according to the defined policies.

    Args:
        error: The exception that occurred
        file_path: Path to the file being processed (if applicable)
        context: Additional context for logging

    Returns:
        The action to take (SKIP or ABORT)
    """
    # Look up policy for this error type (or its base classes)
    policy = None
    for error_type, p in ERROR_POLICIES.items():
        if isinstance(error, error_type):
            policy = p
            break

    # Default policy for unknown errors
    if policy is None:
        policy = ErrorPolicy(
            action=ErrorAction.SKIP,
            log_level=logging.ERROR,
            message_template="Unexpected error: {file} - {error}"
        )

    # Format and log the message
    file_str = str(file_path) if file_path else "<unknown>"
    message = policy.message_template.format(file=file_str, error=str(error))
    if context:
        message = f"[{context}] {message}"

    logger.log(
        policy.log_level,
        message,
        exc_info=policy.log_level >= logging.ERROR,
    )

    return policy.action


@dataclass
class ProcessingResult:
    """Result of processing a single file."""
    success: bool
    path: Optional[Path] = None
    from_cache: bool = False
    partial: bool = False
    segments: int = 0
    error: Optional[Exception] = None

    @classmethod
    def ok(
        cls,
        path: Path,
        segments: int,
        from_cache: bool = False,
        partial: bool = False,
    ) -> "ProcessingResult":
        return cls(
            success=True,
            path=path,
            from_cache=from_cache,
            partial=partial,
            segments=segments,
        )

    @classmethod
    def failed(cls, path: Path, error: Exception) -> "ProcessingResult":
        return cls(success=False, path=path, error=error)

"""Exception types for setup, input and capture errors.

Setup and input errors are fatal and abort a run before any work starts.
Capture errors are raised inside a single item's unit of work and are
converted to a failed result at the item boundary.
"""

from pathlib import Path
from typing import Any


class ProblemSnapException(Exception):
    """Base class for all problemsnap errors."""

    pass


class BrowserSetupException(ProblemSnapException):
    """Raised when the attached browser has no usable context or page.

    Attributes:
        message: Human-readable description of what was missing.
        endpoint_url: The CDP endpoint that was attached to, if known.
    """

    def __init__(self, message: str, endpoint_url: str | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable description of what was missing.
            endpoint_url: The CDP endpoint that was attached to, if known.
        """
        self.message = message
        self.endpoint_url = endpoint_url
        if endpoint_url:
            super().__init__(f"{message} (endpoint: {endpoint_url})")
        else:
            super().__init__(message)


class InputFileException(ProblemSnapException):
    """Raised when a problem list cannot be read or parsed.

    Attributes:
        message: Human-readable description of the failure.
        path: The file that was being read.
        context: Optional dict of additional context.
    """

    def __init__(
        self,
        message: str,
        path: Path | str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable description of the failure.
            path: The file that was being read.
            context: Optional dict of additional context (line, index, etc).
        """
        self.message = message
        self.path = Path(path)
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with context.

        Returns:
            Formatted error message string.
        """
        parts = [self.message, f"File: {self.path}"]

        if self.context:
            parts.append("Context:")
            for key, value in self.context.items():
                parts.append(f"  {key}: {value}")

        return "\n".join(parts)


class RecordFormatException(InputFileException):
    """Raised when an entry of a problem list fails validation.

    Attributes:
        errors: List of Pydantic validation errors.
        index: Position of the failing entry in the input array.
        failed_doc: The entry that failed validation.
    """

    def __init__(
        self,
        errors: list[dict[str, Any]],
        index: int,
        failed_doc: Any,
        path: Path | str,
    ) -> None:
        """Initialize the exception.

        Args:
            errors: List of Pydantic validation errors.
            index: Position of the failing entry in the input array.
            failed_doc: The entry that failed validation.
            path: The file that was being read.
        """
        self.errors = errors
        self.index = index
        self.failed_doc = failed_doc

        error_summary = ", ".join(
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}"
            for err in errors
        )
        message = f"Invalid problem record at index {index}: {error_summary}"

        context = {
            "index": index,
            "error_count": len(errors),
            "failed_doc": failed_doc,
        }

        super().__init__(message, path, context)


class SnapshotCaptureException(ProblemSnapException):
    """Raised when the browser returns no snapshot data for a page.

    Attributes:
        url: The URL of the page being captured.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self.message = f"Snapshot capture returned no data for {url}"
        super().__init__(self.message)

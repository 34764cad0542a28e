"""
Error kinds raised by the transcription workflow.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for errors surfaced to the user as an alert."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class InitializationError(PipelineError):
    """Raised when the codec engine fails to load."""


class TranscodeError(PipelineError):
    """Raised when the engine is not ready or the conversion command fails."""


class EncodingError(PipelineError):
    """Raised when a blob cannot be read for base64 encoding."""


class TranscriptionError(PipelineError):
    """Raised on network failure or a non-success response from the API."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        self.status = status
        self.body = body
        super().__init__(message, cause)

    @classmethod
    def from_response(cls, status: int, body: str) -> "TranscriptionError":
        return cls(f"Transcription request failed: {status} - {body}", status=status, body=body)


class UnknownError(PipelineError):
    """Catch-all for failures that are not one of the kinds above."""


class WorkflowStateError(Exception):
    """Raised when an action is not allowed in the current workflow state."""

    def __init__(self, action: str, state):
        self.action = action
        self.state = state
        super().__init__(f"Cannot {action} while workflow is {state.name}")

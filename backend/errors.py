"""
Error taxonomy for the study backend.

Only InvalidInput, QueryInFlight and the post-parse failures reach the caller;
NotationError is absorbed per segment by the renderer.
"""


class StudyError(Exception):
    """Base class for every error raised by the study core."""


class InvalidInput(StudyError):
    """Rejected before any external call (empty topic, unknown mode, bad index)."""


class QueryInFlight(StudyError):
    """A query is already outstanding for this session."""


class GenerationFailed(StudyError):
    """The generation capability failed (network, auth, quota, timeout)."""


class EmptyResponse(GenerationFailed):
    """The generation capability answered with nothing."""


class MalformedStructuredResponse(StudyError):
    """A practice-mode payload did not match the output schema."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class NotationError(StudyError):
    """The math renderer could not typeset a notation string."""

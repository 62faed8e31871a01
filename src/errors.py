"""Exception hierarchy for the tutor pipeline.

Every failure the chat pipeline can report derives from ``TutorError`` so
the top-level send handler can catch one type.
"""


class TutorError(Exception):
    """Base class for tutor pipeline failures."""

    pass


class EmptyMessageError(TutorError):
    """Raised when a send has neither text nor an attachment."""

    pass


class UnsupportedAttachmentError(TutorError):
    """Raised when an attachment has a media type or size we cannot send."""

    pass


class SessionInitError(TutorError):
    """Raised when a remote conversation session cannot be created."""

    pass


class StreamFailureError(TutorError):
    """Raised when the response stream fails while being drained."""

    pass

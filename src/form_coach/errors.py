"""Exception types raised by the form coach session layer.

Missing or low-confidence landmark data is never an error: analyzers turn it
into neutral frames.  The exceptions here cover what the caller has to react
to: a bad session configuration, an unavailable camera/detector, and
transitions requested in the wrong session phase.
"""


class FormCoachError(Exception):
    """Base class for all form coach errors."""


class InvalidSessionConfigError(FormCoachError, ValueError):
    """Session configuration rejected before the session starts.

    ``errors`` holds one human-readable message per rejected field.
    """

    def __init__(self, message: str, errors=None):
        super().__init__(message)
        self.errors = list(errors or [message])


class CollaboratorUnavailableError(FormCoachError):
    """The pose source (camera + detector) could not be acquired or failed.

    When ``recoverable`` is true the caller may retry ``start_session()``.
    """

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.recoverable = recoverable


class SessionStateError(FormCoachError):
    """A transition was requested that is not valid in the current phase."""

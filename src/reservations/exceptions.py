"""Error taxonomy for the reservation engine.

Every error carries a stable ``kind`` plus a ``context`` dictionary with the
details a caller needs to render a precise message (conflicting references,
computed amounts, current status, ...). Lifecycle operations convert these
into error results instead of letting them escape.
"""

from typing import Any, Dict, List, Optional


class ReservationError(ValueError):
    """Base class for all recoverable engine errors"""

    kind = "ReservationError"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context


class NotFound(ReservationError):
    kind = "NotFound"


class ResourceUnavailable(ReservationError):
    kind = "ResourceUnavailable"

    def __init__(self, message: str, conflicts: Optional[List[str]] = None, **context: Any):
        super().__init__(message, conflicts=conflicts or [], **context)
        self.conflicts = conflicts or []


class InvalidWindow(ReservationError):
    kind = "InvalidWindow"


class InvalidAmount(ReservationError):
    kind = "InvalidAmount"


class AlreadySettled(ReservationError):
    kind = "AlreadySettled"


class InvalidTransition(ReservationError):
    kind = "InvalidTransition"

    def __init__(self, current: str, target: str, **context: Any):
        super().__init__(
            f"Invalid status transition: {current} -> {target}",
            current=current,
            target=target,
            **context
        )
        self.current = current
        self.target = target


class Unauthorized(ReservationError):
    kind = "Unauthorized"


class InvalidConfiguration(ReservationError):
    kind = "InvalidConfiguration"

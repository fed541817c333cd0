"""
Consortium Error Kinds

Every rejection is a precondition violation detected before any write. Each
error class carries a stable ``kind`` string that callers can match on.
"""

from typing import Optional


class ConsortiumError(ValueError):
    """Base class for all rejected consortium operations"""

    kind = "ConsortiumError"

    def __init__(self, message: str, subject: Optional[str] = None):
        super().__init__(message)
        self.subject = subject


class Unauthorized(ConsortiumError):
    """Caller is not the consortium admin"""
    kind = "NotAdmin"


class BankAlreadyExists(ConsortiumError):
    kind = "AlreadyExists"


class BankNotFound(ConsortiumError):
    """Address is not a registered bank"""
    kind = "BankNotFound"


class BankNotRegistered(BankNotFound):
    """Admin operation targeting an address that is not registered"""
    kind = "NotFound"


class NotEligible(ConsortiumError):
    """Caller bank has lost its voting eligibility"""
    kind = "NotEligible"


class CustomerExists(ConsortiumError):
    kind = "CustomerExists"


class CustomerNotFound(ConsortiumError):
    kind = "CustomerNotFound"


class RequestExists(ConsortiumError):
    kind = "RequestExists"


class RequestNotFound(ConsortiumError):
    kind = "RequestNotFound"


class AlreadyVoted(ConsortiumError):
    kind = "AlreadyVoted"


class NoActiveRequest(ConsortiumError):
    kind = "NoActiveRequest"


class AlreadyReported(ConsortiumError):
    kind = "AlreadyReported"

"""
KYC Consortium

A shared KYC ledger for a consortium of mutually distrusting banks. Banks
register customers, request verification and cast single-use votes; peers
that misbehave can be reported and lose their voting rights.
"""

from .consortium import KYCConsortium, create_consortium
from .config import ConsortiumConfig
from .errors import ConsortiumError

__version__ = "1.0.0"

__all__ = [
    "KYCConsortium",
    "create_consortium",
    "ConsortiumConfig",
    "ConsortiumError",
]

"""
KYC Request Queue Module

At most one open verification request per customer. Votes are only
accepted while a request is live.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import List, Optional

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .events import EventOutbox, DomainEvent
from .access import AccessControl
from .banks import BankRegistry
from .customers import CustomerRegistry
from .errors import RequestExists, RequestNotFound
from .logging_config import get_logger, log_action


@dataclass
class KYCRequest(StorageRecord):
    """Pending verification request. ``id`` is the customer username."""
    fingerprint: str  # snapshot of the data under verification
    requesting_bank: str

    @property
    def username(self) -> str:
        return self.id


class KYCRequestQueue:

    table_name = "kyc_requests"

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail,
                 access: AccessControl, banks: BankRegistry,
                 customers: CustomerRegistry, outbox: EventOutbox):
        self.storage = storage
        self.audit_trail = audit_trail
        self.access = access
        self.banks = banks
        self.customers = customers
        self.outbox = outbox
        self.logger = get_logger("kyc_consortium.kyc_requests")

        # Modifying a customer cancels its pending request
        customers.on_modified(self._discard)

    def add_request(self, caller: str, username: str, fingerprint: str) -> KYCRequest:
        """
        Open a verification request and count it against the caller

        Raises:
            CustomerNotFound: no such customer
            BankNotFound, NotEligible: caller cannot act
            RequestExists: a request for username is already live
        """
        self.customers.require_customer(username)
        self.access.require_eligible_bank(caller)
        if self.storage.exists(self.table_name, username):
            raise RequestExists(f"A KYC request for {username} is already pending", subject=username)

        now = datetime.now(timezone.utc)
        request = KYCRequest(
            id=username,
            created_at=now,
            updated_at=now,
            fingerprint=fingerprint,
            requesting_bank=caller
        )
        self.storage.save(self.table_name, request.id, request.to_dict())
        bank = self.banks.record_request_submitted(caller)

        self.audit_trail.log_event(
            event_type=AuditEventType.KYC_REQUEST_ADDED,
            entity_type="kyc_request",
            entity_id=username,
            metadata={
                "fingerprint": fingerprint,
                "requests_submitted": bank.kyc_requests_submitted
            },
            user_id=caller
        )
        self.outbox.stage(DomainEvent.KYC_REQUEST_ADDED, "kyc_request", username, {
            "requesting_bank": caller
        })
        log_action(
            self.logger, "info", f"KYC request added: {username}",
            user_id=caller, action="add_request", resource=f"kyc_request:{username}"
        )
        return request

    def remove_request(self, caller: str, username: str) -> KYCRequest:
        """
        Cancel a pending request. Any eligible bank may cancel any request,
        not only the bank that opened it.
        """
        self.access.require_eligible_bank(caller)
        request = self.require_request(username)
        self._delete(request, caller, reason="removed")
        return request

    def view_request(self, caller: str, username: str) -> KYCRequest:
        self.access.require_eligible_bank(caller)
        return self.require_request(username)

    def list_requests(self, caller: str) -> List[KYCRequest]:
        self.access.require_eligible_bank(caller)
        return [KYCRequest.from_dict(data) for data in self.storage.load_all(self.table_name)]

    def get_request(self, username: str) -> Optional[KYCRequest]:
        data = self.storage.load(self.table_name, username)
        if data:
            return KYCRequest.from_dict(data)
        return None

    def require_request(self, username: str) -> KYCRequest:
        request = self.get_request(username)
        if request is None:
            raise RequestNotFound(f"No KYC request pending for {username}", subject=username)
        return request

    def has_request(self, username: str) -> bool:
        return self.storage.exists(self.table_name, username)

    def _discard(self, username: str, caller: str) -> None:
        request = self.get_request(username)
        if request is not None:
            self._delete(request, caller, reason="customer_modified")

    def _delete(self, request: KYCRequest, caller: str, reason: str) -> None:
        self.storage.delete(self.table_name, request.id)

        self.audit_trail.log_event(
            event_type=AuditEventType.KYC_REQUEST_REMOVED,
            entity_type="kyc_request",
            entity_id=request.id,
            metadata={"requesting_bank": request.requesting_bank, "reason": reason},
            user_id=caller
        )
        self.outbox.stage(DomainEvent.KYC_REQUEST_REMOVED, "kyc_request", request.id, {
            "requesting_bank": request.requesting_bank,
            "reason": reason
        })
        log_action(
            self.logger, "info", f"KYC request removed: {request.id}",
            user_id=caller, action="remove_request", resource=f"kyc_request:{request.id}",
            extra={"reason": reason}
        )

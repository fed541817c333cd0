"""
Customer Registry Module

Owns customer records and their derived approval status. A customer is
keyed by username, created by an eligible bank and never deleted.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Callable, List, Optional

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .events import EventOutbox, DomainEvent
from .access import AccessControl
from .ledgers import VoteLedger
from .errors import CustomerExists, CustomerNotFound
from .logging_config import get_logger, log_action


@dataclass
class Customer(StorageRecord):
    """
    Customer record shared by the consortium. ``id`` is the username.

    ``fingerprint`` is an opaque digest of the customer's KYC data and is
    never parsed here.
    """
    fingerprint: str
    initiating_bank: str
    is_approved: bool = False
    upvotes: int = 0
    downvotes: int = 0

    @property
    def username(self) -> str:
        return self.id

    def recompute_approval(self, threshold: int) -> bool:
        """Approved while downvotes stay under threshold and upvotes lead"""
        self.is_approved = self.downvotes < threshold and self.upvotes > self.downvotes
        return self.is_approved


class CustomerRegistry:
    """
    Manages customer lifecycle. Every operation requires an eligible bank.
    """

    table_name = "customers"

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail,
                 access: AccessControl, vote_ledger: VoteLedger, outbox: EventOutbox):
        self.storage = storage
        self.audit_trail = audit_trail
        self.access = access
        self.vote_ledger = vote_ledger
        self.outbox = outbox
        self.logger = get_logger("kyc_consortium.customers")
        self._modified_hooks: List[Callable[[str, str], None]] = []

    def on_modified(self, hook: Callable[[str, str], None]) -> None:
        """Run ``hook(username, caller)`` inside every modify_customer"""
        self._modified_hooks.append(hook)

    def add_customer(self, caller: str, username: str, fingerprint: str) -> Customer:
        """
        Register a new customer on behalf of an eligible bank

        Raises:
            BankNotFound, NotEligible: caller cannot act
            CustomerExists: username is already taken
        """
        self.access.require_eligible_bank(caller)
        if self.storage.exists(self.table_name, username):
            raise CustomerExists(f"Customer {username} already exists", subject=username)

        now = datetime.now(timezone.utc)
        customer = Customer(
            id=username,
            created_at=now,
            updated_at=now,
            fingerprint=fingerprint,
            initiating_bank=caller
        )
        self._save_customer(customer)

        self.audit_trail.log_event(
            event_type=AuditEventType.CUSTOMER_CREATED,
            entity_type="customer",
            entity_id=username,
            metadata={"fingerprint": fingerprint, "initiating_bank": caller},
            user_id=caller
        )
        self.outbox.stage(DomainEvent.CUSTOMER_CREATED, "customer", username, {
            "initiating_bank": caller
        })
        log_action(
            self.logger, "info", f"Customer created: {username}",
            user_id=caller, action="add_customer", resource=f"customer:{username}"
        )
        return customer

    def view_customer(self, caller: str, username: str) -> Customer:
        self.access.require_eligible_bank(caller)
        return self.require_customer(username)

    def modify_customer(self, caller: str, username: str, new_fingerprint: str) -> Customer:
        """
        Replace a customer's fingerprint and start a new voting cycle.

        Both counters drop to zero, approval is cleared, any pending request is
        deleted, and every bank may vote again.
        """
        self.access.require_eligible_bank(caller)
        customer = self.require_customer(username)

        old_fingerprint = customer.fingerprint
        was_approved = customer.is_approved

        customer.fingerprint = new_fingerprint
        customer.upvotes = 0
        customer.downvotes = 0
        customer.is_approved = False
        customer.updated_at = datetime.now(timezone.utc)
        self._save_customer(customer)

        vote_cycle = self.vote_ledger.reset_votes(username)
        for hook in self._modified_hooks:
            hook(username, caller)

        self.audit_trail.log_event(
            event_type=AuditEventType.CUSTOMER_MODIFIED,
            entity_type="customer",
            entity_id=username,
            metadata={
                "old_fingerprint": old_fingerprint,
                "new_fingerprint": new_fingerprint,
                "vote_cycle": vote_cycle
            },
            user_id=caller
        )
        self.outbox.stage(DomainEvent.CUSTOMER_MODIFIED, "customer", username, {
            "vote_cycle": vote_cycle
        })
        if was_approved:
            self.outbox.stage(DomainEvent.CUSTOMER_APPROVAL_CHANGED, "customer", username, {
                "is_approved": False
            })
        log_action(
            self.logger, "info", f"Customer modified: {username}",
            user_id=caller, action="modify_customer", resource=f"customer:{username}",
            extra={"vote_cycle": vote_cycle}
        )
        return customer

    def get_customer(self, username: str) -> Optional[Customer]:
        data = self.storage.load(self.table_name, username)
        if data:
            return Customer.from_dict(data)
        return None

    def require_customer(self, username: str) -> Customer:
        customer = self.get_customer(username)
        if customer is None:
            raise CustomerNotFound(f"Customer {username} not found", subject=username)
        return customer

    def exists(self, username: str) -> bool:
        return self.storage.exists(self.table_name, username)

    def save_customer(self, customer: Customer) -> None:
        customer.updated_at = datetime.now(timezone.utc)
        self._save_customer(customer)

    def _save_customer(self, customer: Customer) -> None:
        self.storage.save(self.table_name, customer.id, customer.to_dict())

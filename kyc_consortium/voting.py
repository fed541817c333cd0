"""
Voting Engine Module

Applies single-use up/down votes on customers with a live KYC request and
recomputes approval against the consortium threshold.

Per customer and voting cycle each eligible bank moves from "not voted" to
"voted up" or "voted down" exactly once. A cycle ends only when the
customer's data is modified.
"""

from enum import Enum
from typing import Optional

from .audit import AuditTrail, AuditEventType
from .events import EventOutbox, DomainEvent
from .access import AccessControl
from .banks import BankRegistry
from .customers import Customer, CustomerRegistry
from .kyc_requests import KYCRequestQueue
from .ledgers import VoteLedger
from .errors import AlreadyVoted, NoActiveRequest
from .logging_config import get_logger, log_action


class VoteDirection(Enum):
    UP = "up"
    DOWN = "down"


class VotingEngine:

    def __init__(self, audit_trail: AuditTrail, access: AccessControl,
                 banks: BankRegistry, customers: CustomerRegistry,
                 requests: KYCRequestQueue, vote_ledger: VoteLedger,
                 outbox: EventOutbox):
        self.audit_trail = audit_trail
        self.access = access
        self.banks = banks
        self.customers = customers
        self.requests = requests
        self.vote_ledger = vote_ledger
        self.outbox = outbox
        self.logger = get_logger("kyc_consortium.voting")

    def upvote(self, caller: str, username: str) -> Customer:
        return self.vote(caller, username, VoteDirection.UP)

    def downvote(self, caller: str, username: str) -> Customer:
        """
        Record a downvote. Every downvote also revokes the eligibility of the
        bank that created the customer, whatever the current counts are.
        """
        return self.vote(caller, username, VoteDirection.DOWN)

    def vote(self, caller: str, username: str, direction: VoteDirection) -> Customer:
        """
        Apply one vote

        Raises:
            CustomerNotFound: no such customer
            BankNotFound, NotEligible: caller cannot vote
            AlreadyVoted: caller already voted on username this cycle
            NoActiveRequest: no KYC request is pending for username
        """
        customer = self.customers.require_customer(username)
        self.access.require_eligible_bank(caller)
        if self.vote_ledger.has_voted(username, caller):
            raise AlreadyVoted(f"Bank {caller} already voted on {username}", subject=username)
        if not self.requests.has_request(username):
            raise NoActiveRequest(f"No KYC request pending for {username}", subject=username)

        was_approved = customer.is_approved
        if direction is VoteDirection.UP:
            customer.upvotes += 1
        else:
            customer.downvotes += 1

        threshold = self.banks.threshold
        customer.recompute_approval(threshold)
        self.customers.save_customer(customer)
        self.vote_ledger.record_vote(username, caller, direction.value)

        if direction is VoteDirection.DOWN:
            self.banks.suspend(customer.initiating_bank, reason="customer_downvoted",
                               performed_by=caller)

        metadata = {
            "direction": direction.value,
            "upvotes": customer.upvotes,
            "downvotes": customer.downvotes,
            "threshold": threshold,
            "is_approved": customer.is_approved
        }
        self.audit_trail.log_event(
            event_type=AuditEventType.VOTE_CAST,
            entity_type="customer",
            entity_id=username,
            metadata=metadata,
            user_id=caller
        )
        self.outbox.stage(DomainEvent.VOTE_CAST, "customer", username, metadata)
        if customer.is_approved != was_approved:
            self.outbox.stage(DomainEvent.CUSTOMER_APPROVAL_CHANGED, "customer", username, {
                "is_approved": customer.is_approved
            })
        log_action(
            self.logger, "info", f"Vote cast on {username}: {direction.value}",
            user_id=caller, action=f"{direction.value}vote", resource=f"customer:{username}",
            extra=metadata
        )
        return customer

    def has_voted(self, caller: str, username: str) -> bool:
        self.customers.require_customer(username)
        return self.vote_ledger.has_voted(username, caller)

    def vote_of(self, username: str, bank_address: str) -> Optional[VoteDirection]:
        direction = self.vote_ledger.vote_direction(username, bank_address)
        return VoteDirection(direction) if direction else None

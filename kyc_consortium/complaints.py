"""
Complaint Engine Module

Bank-to-bank reports. A bank keeps its voting eligibility only while its
complaint count stays under the consortium threshold.
"""

from typing import List

from .audit import AuditTrail, AuditEventType
from .events import EventOutbox, DomainEvent
from .access import AccessControl
from .banks import Bank, BankRegistry
from .ledgers import ComplaintLedger
from .errors import AlreadyReported
from .logging_config import get_logger, log_action


class ComplaintEngine:

    def __init__(self, audit_trail: AuditTrail, access: AccessControl,
                 banks: BankRegistry, complaint_ledger: ComplaintLedger,
                 outbox: EventOutbox):
        self.audit_trail = audit_trail
        self.access = access
        self.banks = banks
        self.complaint_ledger = complaint_ledger
        self.outbox = outbox
        self.logger = get_logger("kyc_consortium.complaints")

    def report_bank(self, caller: str, target: str) -> Bank:
        """
        Report target as misbehaving

        Raises:
            BankNotFound: target, or caller, is not registered
            NotEligible: caller has lost its voting rights
            AlreadyReported: caller reported target in the current cycle
        """
        bank = self.banks.require_bank(target)
        self.access.require_eligible_bank(caller)
        if self.complaint_ledger.has_reported(target, caller):
            raise AlreadyReported(f"Bank {caller} already reported {target}", subject=target)

        was_eligible = bank.is_eligible
        threshold = self.banks.threshold
        bank.complaints_received += 1
        bank.is_eligible = bank.complaints_received < threshold
        self.banks.save_bank(bank)
        self.complaint_ledger.record_report(target, caller)

        metadata = {
            "complaints_received": bank.complaints_received,
            "threshold": threshold,
            "is_eligible": bank.is_eligible
        }
        self.audit_trail.log_event(
            event_type=AuditEventType.BANK_REPORTED,
            entity_type="bank",
            entity_id=target,
            metadata=metadata,
            user_id=caller
        )
        self.outbox.stage(DomainEvent.BANK_REPORTED, "bank", target, metadata)
        if bank.is_eligible != was_eligible:
            self.outbox.stage(DomainEvent.BANK_ELIGIBILITY_CHANGED, "bank", target, {
                "old_value": was_eligible,
                "new_value": bank.is_eligible,
                "reason": "complaints"
            })
        log_action(
            self.logger, "info", f"Bank reported: {target}",
            user_id=caller, action="report_bank", resource=f"bank:{target}", extra=metadata
        )
        return bank

    def get_complaint_count(self, caller: str, address: str) -> int:
        return self.banks.require_bank(address).complaints_received

    def view_bank(self, caller: str, address: str) -> Bank:
        return self.banks.require_bank(address)

    def get_reporters(self, caller: str, address: str) -> List[str]:
        """Banks that reported address in its current complaint cycle"""
        self.banks.require_bank(address)
        return self.complaint_ledger.actors(address)

"""
Bank Registry Module

Owns consortium membership: bank records keyed by address, the member count,
and the eligibility threshold derived from it.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .events import EventOutbox, DomainEvent
from .ledgers import ComplaintLedger
from .errors import BankAlreadyExists, BankNotFound, BankNotRegistered
from .logging_config import get_logger, log_action


# Banks lose approval and voting power once a third of the membership objects
THRESHOLD_DIVISOR = 3


@dataclass
class Bank(StorageRecord):
    """
    Consortium member. ``id`` is the bank's address.
    """
    name: str
    registration_number: str
    complaints_received: int = 0
    kyc_requests_submitted: int = 0
    is_eligible: bool = True

    @property
    def address(self) -> str:
        return self.id


class BankRegistry:
    """
    Manages bank records. Admin authorization is enforced by the caller
    (see ``access.AdminController``); methods here only apply effects.
    """

    table_name = "banks"

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail,
                 complaint_ledger: ComplaintLedger, outbox: EventOutbox):
        self.storage = storage
        self.audit_trail = audit_trail
        self.complaint_ledger = complaint_ledger
        self.outbox = outbox
        self.logger = get_logger("kyc_consortium.banks")

    @property
    def total_banks(self) -> int:
        return self.storage.count(self.table_name)

    @property
    def threshold(self) -> int:
        """floor(total_banks / 3)"""
        return self.total_banks // THRESHOLD_DIVISOR

    def get_bank(self, address: str) -> Optional[Bank]:
        data = self.storage.load(self.table_name, address)
        if data:
            return Bank.from_dict(data)
        return None

    def require_bank(self, address: str) -> Bank:
        bank = self.get_bank(address)
        if bank is None:
            raise BankNotFound(f"Bank {address} is not registered", subject=address)
        return bank

    def list_banks(self) -> List[Bank]:
        return [Bank.from_dict(data) for data in self.storage.load_all(self.table_name)]

    def save_bank(self, bank: Bank) -> None:
        bank.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.table_name, bank.id, bank.to_dict())

    def add_bank(self, address: str, name: str, registration_number: str,
                 performed_by: Optional[str] = None) -> Bank:
        """
        Register a new bank

        Args:
            address: Unique bank identity
            name: Display name
            registration_number: Regulator-issued registration number
            performed_by: Admin identity, recorded in the audit trail

        Returns:
            Created Bank, eligible and with zeroed counters

        Raises:
            BankAlreadyExists: if the address is already registered
        """
        if self.storage.exists(self.table_name, address):
            raise BankAlreadyExists(f"Bank {address} is already registered", subject=address)

        now = datetime.now(timezone.utc)
        bank = Bank(
            id=address,
            created_at=now,
            updated_at=now,
            name=name,
            registration_number=registration_number
        )
        self.storage.save(self.table_name, bank.id, bank.to_dict())

        self._record(AuditEventType.BANK_ADDED, DomainEvent.BANK_ADDED, bank, performed_by, {
            "name": name,
            "registration_number": registration_number,
            "total_banks": self.total_banks
        })
        return bank

    def remove_bank(self, address: str, performed_by: Optional[str] = None) -> Bank:
        """
        Remove a bank. Vote and complaint records keyed by the address are
        left in place; authorization never consults them.
        """
        bank = self.get_bank(address)
        if bank is None:
            raise BankNotRegistered(f"Bank {address} is not registered", subject=address)

        self.storage.delete(self.table_name, address)

        self._record(AuditEventType.BANK_REMOVED, DomainEvent.BANK_REMOVED, bank, performed_by, {
            "name": bank.name,
            "total_banks": self.total_banks
        })
        return bank

    def set_eligibility(self, address: str, value: bool,
                        performed_by: Optional[str] = None) -> Bank:
        """
        Administratively set a bank's voting eligibility.

        Reinstating (``value=True``) starts a fresh complaint cycle: every bank
        that reported this one may report it again.
        """
        bank = self.get_bank(address)
        if bank is None:
            raise BankNotRegistered(f"Bank {address} is not registered", subject=address)

        previous = bank.is_eligible
        bank.is_eligible = value
        self.save_bank(bank)

        complaint_cycle = None
        if value:
            complaint_cycle = self.complaint_ledger.reset_reports(address)

        self._record(
            AuditEventType.BANK_ELIGIBILITY_CHANGED, DomainEvent.BANK_ELIGIBILITY_CHANGED,
            bank, performed_by, {
                "old_value": previous,
                "new_value": value,
                "reason": "admin",
                "complaint_cycle": complaint_cycle
            }
        )
        return bank

    def suspend(self, address: str, reason: str, performed_by: Optional[str] = None) -> Optional[Bank]:
        """Revoke eligibility without an admin check; no-op for unknown banks"""
        bank = self.get_bank(address)
        if bank is None:
            return None

        previous = bank.is_eligible
        bank.is_eligible = False
        self.save_bank(bank)

        self._record(
            AuditEventType.BANK_ELIGIBILITY_CHANGED, DomainEvent.BANK_ELIGIBILITY_CHANGED,
            bank, performed_by, {
                "old_value": previous,
                "new_value": False,
                "reason": reason
            }
        )
        return bank

    def record_request_submitted(self, address: str) -> Bank:
        bank = self.require_bank(address)
        bank.kyc_requests_submitted += 1
        self.save_bank(bank)
        return bank

    def _record(self, audit_type: AuditEventType, event_type: DomainEvent, bank: Bank,
                performed_by: Optional[str], metadata: Dict[str, Any]) -> None:
        self.audit_trail.log_event(
            event_type=audit_type,
            entity_type="bank",
            entity_id=bank.id,
            metadata=metadata,
            user_id=performed_by
        )
        self.outbox.stage(event_type, "bank", bank.id, metadata)
        log_action(
            self.logger, "info", f"{audit_type.value}: {bank.id}",
            user_id=performed_by, action=audit_type.value,
            resource=f"bank:{bank.id}", extra=metadata
        )

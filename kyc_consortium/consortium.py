"""
KYC Consortium

Single entry point for every consortium operation. Each call runs under one
process-wide lock and inside a storage transaction: preconditions are checked
against the current state and either every effect lands or none does.
Events raised by an operation reach subscribers only after it commits.
"""

import threading
from typing import Any, Callable, List, Optional

from .storage import StorageInterface
from .config import ConsortiumConfig, get_config, create_storage
from .audit import AuditTrail
from .events import EventDispatcher, EventOutbox
from .ledgers import VoteLedger, ComplaintLedger
from .banks import Bank, BankRegistry
from .access import AccessControl, AdminController
from .customers import Customer, CustomerRegistry
from .kyc_requests import KYCRequest, KYCRequestQueue
from .voting import VotingEngine
from .complaints import ComplaintEngine
from .errors import ConsortiumError
from .logging_config import get_logger, log_action, setup_logging


class KYCConsortium:
    """
    Shared KYC ledger operated by a consortium of banks.

    Every method takes the authenticated caller identity as its first
    argument.
    """

    def __init__(self, config: Optional[ConsortiumConfig] = None,
                 storage: Optional[StorageInterface] = None,
                 dispatcher: Optional[EventDispatcher] = None):
        self.config = config or get_config()
        self.storage = storage or create_storage(self.config)
        self.logger = get_logger("kyc_consortium")
        self._lock = threading.RLock()

        if dispatcher is None and self.config.enable_events:
            dispatcher = EventDispatcher()
        self.dispatcher = dispatcher
        self.outbox = EventOutbox(dispatcher)

        self.audit_trail = AuditTrail(self.storage, enabled=self.config.enable_audit_logging)
        self.vote_ledger = VoteLedger(self.storage)
        self.complaint_ledger = ComplaintLedger(self.storage)

        self.banks = BankRegistry(self.storage, self.audit_trail, self.complaint_ledger, self.outbox)
        self.access = AccessControl(self.config.admin_address, self.banks)
        self.admin = AdminController(self.access, self.banks)
        self.customers = CustomerRegistry(
            self.storage, self.audit_trail, self.access, self.vote_ledger, self.outbox
        )
        self.requests = KYCRequestQueue(
            self.storage, self.audit_trail, self.access, self.banks, self.customers, self.outbox
        )
        self.voting = VotingEngine(
            self.audit_trail, self.access, self.banks, self.customers,
            self.requests, self.vote_ledger, self.outbox
        )
        self.complaints = ComplaintEngine(
            self.audit_trail, self.access, self.banks, self.complaint_ledger, self.outbox
        )

    # Execution

    def _execute(self, action: str, caller: str, operation: Callable[..., Any], *args) -> Any:
        """Run a mutating operation atomically and serially"""
        with self._lock:
            try:
                with self.storage.atomic():
                    result = operation(caller, *args)
            except ConsortiumError as e:
                self.outbox.discard()
                log_action(
                    self.logger, "warning", f"{action} rejected: {e}",
                    user_id=caller, action=action, error_kind=e.kind,
                    resource=e.subject
                )
                raise
            except Exception:
                self.outbox.discard()
                self.logger.exception(f"{action} failed")
                raise
            self.outbox.flush()
            return result

    def _read(self, action: str, caller: str, operation: Callable[..., Any], *args) -> Any:
        """Run a read under the lock so it never sees a half-applied write"""
        with self._lock:
            try:
                return operation(caller, *args)
            except ConsortiumError as e:
                log_action(
                    self.logger, "debug", f"{action} rejected: {e}",
                    user_id=caller, action=action, error_kind=e.kind,
                    resource=e.subject
                )
                raise

    # Admin

    def add_bank(self, caller: str, address: str, name: str, registration_number: str) -> Bank:
        return self._execute("add_bank", caller, self.admin.add_bank, address, name, registration_number)

    def remove_bank(self, caller: str, address: str) -> Bank:
        return self._execute("remove_bank", caller, self.admin.remove_bank, address)

    def set_eligibility(self, caller: str, address: str, value: bool) -> Bank:
        return self._execute("set_eligibility", caller, self.admin.set_eligibility, address, value)

    # Customers

    def add_customer(self, caller: str, username: str, fingerprint: str) -> Customer:
        return self._execute("add_customer", caller, self.customers.add_customer, username, fingerprint)

    def view_customer(self, caller: str, username: str) -> Customer:
        return self._read("view_customer", caller, self.customers.view_customer, username)

    def modify_customer(self, caller: str, username: str, new_fingerprint: str) -> Customer:
        return self._execute("modify_customer", caller, self.customers.modify_customer,
                             username, new_fingerprint)

    # KYC requests

    def add_request(self, caller: str, username: str, fingerprint: str) -> KYCRequest:
        return self._execute("add_request", caller, self.requests.add_request, username, fingerprint)

    def remove_request(self, caller: str, username: str) -> KYCRequest:
        return self._execute("remove_request", caller, self.requests.remove_request, username)

    def view_request(self, caller: str, username: str) -> KYCRequest:
        return self._read("view_request", caller, self.requests.view_request, username)

    def list_requests(self, caller: str) -> List[KYCRequest]:
        return self._read("list_requests", caller, self.requests.list_requests)

    # Voting

    def upvote(self, caller: str, username: str) -> Customer:
        return self._execute("upvote", caller, self.voting.upvote, username)

    def downvote(self, caller: str, username: str) -> Customer:
        return self._execute("downvote", caller, self.voting.downvote, username)

    def has_voted(self, caller: str, username: str) -> bool:
        return self._read("has_voted", caller, self.voting.has_voted, username)

    # Complaints and bank queries

    def report_bank(self, caller: str, target: str) -> Bank:
        return self._execute("report_bank", caller, self.complaints.report_bank, target)

    def get_complaint_count(self, caller: str, address: str) -> int:
        return self._read("get_complaint_count", caller, self.complaints.get_complaint_count, address)

    def view_bank(self, caller: str, address: str) -> Bank:
        return self._read("view_bank", caller, self.complaints.view_bank, address)

    def get_reporters(self, caller: str, address: str) -> List[str]:
        return self._read("get_reporters", caller, self.complaints.get_reporters, address)

    @property
    def total_banks(self) -> int:
        with self._lock:
            return self.banks.total_banks

    @property
    def threshold(self) -> int:
        with self._lock:
            return self.banks.threshold

    def verify_audit_integrity(self):
        with self._lock:
            return self.audit_trail.verify_integrity()

    def close(self) -> None:
        with self._lock:
            self.storage.close()


def create_consortium(config: Optional[ConsortiumConfig] = None,
                      dispatcher: Optional[EventDispatcher] = None) -> KYCConsortium:
    """Configure logging and storage from config and build a consortium"""
    config = config or get_config()
    setup_logging(
        level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file
    )
    return KYCConsortium(config=config, dispatcher=dispatcher)

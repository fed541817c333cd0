"""
Test suite for bank membership

Tests admin-only bank lifecycle, member counting, the threshold derived from
it, and the capability checks shared by every operation.
"""

import pytest

from kyc_consortium.storage import InMemoryStorage
from kyc_consortium.audit import AuditTrail, AuditEventType
from kyc_consortium.events import EventOutbox
from kyc_consortium.ledgers import ComplaintLedger
from kyc_consortium.banks import BankRegistry
from kyc_consortium.access import AccessControl, AdminController
from kyc_consortium.errors import (
    Unauthorized, BankAlreadyExists, BankNotFound, BankNotRegistered, NotEligible
)


ADMIN = "0xadmin"


@pytest.fixture
def storage():
    """Create in-memory storage for tests"""
    return InMemoryStorage()


@pytest.fixture
def audit(storage):
    """Create audit trail for tests"""
    return AuditTrail(storage)


@pytest.fixture
def registry(storage, audit):
    return BankRegistry(storage, audit, ComplaintLedger(storage), EventOutbox())


@pytest.fixture
def access(registry):
    return AccessControl(ADMIN, registry)


@pytest.fixture
def admin(access, registry):
    return AdminController(access, registry)


class TestAddBank:
    """Test bank registration"""

    def test_add_bank_defaults(self, admin):
        """New banks are eligible with zeroed counters"""
        bank = admin.add_bank(ADMIN, "0xb1", "First Bank", "REG-001")

        assert bank.address == "0xb1"
        assert bank.name == "First Bank"
        assert bank.registration_number == "REG-001"
        assert bank.complaints_received == 0
        assert bank.kyc_requests_submitted == 0
        assert bank.is_eligible

    def test_duplicate_address_rejected(self, admin, registry):
        admin.add_bank(ADMIN, "0xb1", "First Bank", "REG-001")

        with pytest.raises(BankAlreadyExists) as exc_info:
            admin.add_bank(ADMIN, "0xb1", "Imposter", "REG-999")

        assert exc_info.value.kind == "AlreadyExists"
        assert registry.get_bank("0xb1").name == "First Bank"
        assert registry.total_banks == 1

    def test_only_admin_may_add(self, admin, registry):
        admin.add_bank(ADMIN, "0xb1", "First Bank", "REG-001")

        with pytest.raises(Unauthorized) as exc_info:
            admin.add_bank("0xb1", "0xb2", "Second Bank", "REG-002")

        assert exc_info.value.kind == "NotAdmin"
        assert registry.total_banks == 1

    def test_add_bank_is_audited(self, admin, audit):
        admin.add_bank(ADMIN, "0xb1", "First Bank", "REG-001")

        events = audit.get_events_for_entity("bank", "0xb1")
        assert len(events) == 1
        assert events[0].event_type == AuditEventType.BANK_ADDED
        assert events[0].user_id == ADMIN


class TestMembershipCount:
    """Test total_banks and threshold arithmetic"""

    @pytest.mark.parametrize("count,threshold", [(0, 0), (2, 0), (3, 1), (5, 1), (6, 2), (10, 3)])
    def test_threshold_is_floor_of_third(self, admin, registry, count, threshold):
        for i in range(count):
            admin.add_bank(ADMIN, f"0xb{i}", f"Bank {i}", f"REG-{i}")

        assert registry.total_banks == count
        assert registry.threshold == threshold

    def test_remove_bank_shrinks_count(self, admin, registry):
        for i in range(4):
            admin.add_bank(ADMIN, f"0xb{i}", f"Bank {i}", f"REG-{i}")

        admin.remove_bank(ADMIN, "0xb3")

        assert registry.total_banks == 3
        assert registry.threshold == 1
        assert registry.get_bank("0xb3") is None
        assert [b.address for b in registry.list_banks()] == ["0xb0", "0xb1", "0xb2"]

    def test_removed_address_can_be_added_again(self, admin, registry):
        admin.add_bank(ADMIN, "0xb1", "First Bank", "REG-001")
        admin.remove_bank(ADMIN, "0xb1")

        bank = admin.add_bank(ADMIN, "0xb1", "First Bank Reborn", "REG-101")
        assert bank.name == "First Bank Reborn"
        assert registry.total_banks == 1


class TestRemoveBank:

    def test_remove_unknown_bank(self, admin):
        with pytest.raises(BankNotRegistered) as exc_info:
            admin.remove_bank(ADMIN, "0xghost")
        assert exc_info.value.kind == "NotFound"
        # Still a BankNotFound for callers matching the broader kind
        assert isinstance(exc_info.value, BankNotFound)

    def test_only_admin_may_remove(self, admin, registry):
        admin.add_bank(ADMIN, "0xb1", "First Bank", "REG-001")
        with pytest.raises(Unauthorized):
            admin.remove_bank("0xb1", "0xb1")
        assert registry.total_banks == 1


class TestSetEligibility:

    def test_revoke_and_reinstate(self, admin, registry):
        admin.add_bank(ADMIN, "0xb1", "First Bank", "REG-001")

        assert not admin.set_eligibility(ADMIN, "0xb1", False).is_eligible
        assert not registry.get_bank("0xb1").is_eligible

        assert admin.set_eligibility(ADMIN, "0xb1", True).is_eligible
        assert registry.get_bank("0xb1").is_eligible

    def test_reinstating_clears_reporters(self, admin, registry):
        admin.add_bank(ADMIN, "0xb1", "First Bank", "REG-001")
        ledger = registry.complaint_ledger
        ledger.record_report("0xb1", "0xb2")
        assert ledger.has_reported("0xb1", "0xb2")

        admin.set_eligibility(ADMIN, "0xb1", False)
        assert ledger.has_reported("0xb1", "0xb2")

        admin.set_eligibility(ADMIN, "0xb1", True)
        assert not ledger.has_reported("0xb1", "0xb2")

    def test_unknown_bank(self, admin):
        with pytest.raises(BankNotRegistered):
            admin.set_eligibility(ADMIN, "0xghost", True)

    def test_only_admin(self, admin):
        admin.add_bank(ADMIN, "0xb1", "First Bank", "REG-001")
        with pytest.raises(Unauthorized):
            admin.set_eligibility("0xb1", "0xb1", True)


class TestAccessControl:
    """Test the shared capability checks"""

    def test_admin_identity_is_fixed(self, access):
        assert access.admin_address == ADMIN
        assert access.is_admin(ADMIN)
        assert not access.is_admin("0xb1")
        assert not access.is_admin(None)

    def test_require_bank(self, admin, access):
        admin.add_bank(ADMIN, "0xb1", "First Bank", "REG-001")
        assert access.require_bank("0xb1").name == "First Bank"

        with pytest.raises(BankNotFound) as exc_info:
            access.require_bank("0xghost")
        assert exc_info.value.kind == "BankNotFound"

    def test_require_eligible_bank(self, admin, access):
        admin.add_bank(ADMIN, "0xb1", "First Bank", "REG-001")
        admin.set_eligibility(ADMIN, "0xb1", False)

        with pytest.raises(NotEligible):
            access.require_eligible_bank("0xb1")

    def test_admin_is_not_a_bank(self, access):
        """The admin identity has no bank capabilities unless registered as one"""
        with pytest.raises(BankNotFound):
            access.require_eligible_bank(ADMIN)

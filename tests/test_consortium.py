"""
Integration tests for the consortium facade

Covers all-or-nothing execution, event delivery after commit, structured
logging of rejections, configuration and SQLite-backed persistence.
"""

import json
import logging
import threading

import pytest

from kyc_consortium.config import ConsortiumConfig, create_storage
from kyc_consortium.consortium import KYCConsortium, create_consortium
from kyc_consortium.storage import InMemoryStorage, SQLiteStorage
from kyc_consortium.events import DomainEvent, EventDispatcher
from kyc_consortium.errors import ConsortiumError, CustomerExists, Unauthorized


ADMIN = "admin"


@pytest.fixture
def dispatcher():
    return EventDispatcher()


@pytest.fixture
def consortium(dispatcher):
    config = ConsortiumConfig(admin_address=ADMIN, database_url="memory://")
    consortium = KYCConsortium(config=config, storage=InMemoryStorage(), dispatcher=dispatcher)
    for i in range(4):
        consortium.add_bank(ADMIN, f"bank{i}", f"Bank {i}", f"REG-{i}")
    consortium.add_customer("bank0", "alice", "fp-1")
    consortium.add_request("bank0", "alice", "fp-1")
    return consortium


@pytest.fixture
def restore_logging():
    logger = logging.getLogger("kyc_consortium")
    yield
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


class TestAtomicity:
    """Operations either apply every effect or none"""

    def test_failure_mid_operation_rolls_back(self, consortium, monkeypatch):
        audit_before = consortium.audit_trail.count_events()

        def broken_suspend(*args, **kwargs):
            raise RuntimeError("storage went away")

        monkeypatch.setattr(consortium.banks, "suspend", broken_suspend)

        with pytest.raises(RuntimeError):
            consortium.downvote("bank1", "alice")

        customer = consortium.view_customer("bank2", "alice")
        assert customer.downvotes == 0
        assert not consortium.has_voted("bank1", "alice")
        assert consortium.audit_trail.count_events() == audit_before

    def test_rejection_changes_nothing(self, consortium):
        before = consortium.storage.get_all_data()

        with pytest.raises(CustomerExists):
            consortium.add_customer("bank1", "alice", "fp-other")
        with pytest.raises(Unauthorized):
            consortium.add_bank("bank1", "bank9", "Bank 9", "REG-9")

        assert consortium.storage.get_all_data() == before

    def test_modify_is_one_atomic_step(self, consortium, monkeypatch):
        consortium.upvote("bank1", "alice")

        def broken_reset(username):
            raise RuntimeError("ledger unavailable")

        monkeypatch.setattr(consortium.vote_ledger, "reset_votes", broken_reset)

        with pytest.raises(RuntimeError):
            consortium.modify_customer("bank2", "alice", "fp-2")

        customer = consortium.view_customer("bank2", "alice")
        assert customer.fingerprint == "fp-1"
        assert customer.upvotes == 1
        assert consortium.requests.has_request("alice")

    def test_concurrent_votes_are_serialized(self):
        config = ConsortiumConfig(admin_address=ADMIN, database_url="memory://")
        consortium = KYCConsortium(config=config, storage=InMemoryStorage())
        for i in range(30):
            consortium.add_bank(ADMIN, f"bank{i}", f"Bank {i}", f"REG-{i}")
        consortium.add_customer("bank0", "alice", "fp-1")
        consortium.add_request("bank0", "alice", "fp-1")

        threads = [
            threading.Thread(target=consortium.upvote, args=(f"bank{i}", "alice"))
            for i in range(1, 30)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        customer = consortium.view_customer("bank0", "alice")
        assert customer.upvotes == 29
        assert customer.is_approved


class TestEvents:

    def test_events_published_after_commit(self, consortium, dispatcher):
        seen = []
        dispatcher.subscribe_all(lambda event: seen.append(event.event_type))

        consortium.upvote("bank1", "alice")

        assert seen == [DomainEvent.VOTE_CAST, DomainEvent.CUSTOMER_APPROVAL_CHANGED]

    def test_downvote_events(self, consortium, dispatcher):
        seen = []
        dispatcher.subscribe_all(lambda event: seen.append((event.event_type, event.entity_id)))

        consortium.downvote("bank1", "alice")

        assert (DomainEvent.VOTE_CAST, "alice") in seen
        assert (DomainEvent.BANK_ELIGIBILITY_CHANGED, "bank0") in seen

    def test_no_events_for_rejected_operation(self, consortium, dispatcher):
        seen = []
        dispatcher.subscribe_all(seen.append)

        with pytest.raises(ConsortiumError):
            consortium.report_bank("ghost", "bank0")

        assert seen == []

    def test_modify_cancels_request_event(self, consortium, dispatcher):
        seen = []
        dispatcher.subscribe(DomainEvent.KYC_REQUEST_REMOVED, seen.append)

        consortium.modify_customer("bank1", "alice", "fp-2")

        assert len(seen) == 1
        assert seen[0].data["reason"] == "customer_modified"

    def test_events_disabled_by_config(self):
        config = ConsortiumConfig(admin_address=ADMIN, database_url="memory://", enable_events=False)
        consortium = KYCConsortium(config=config, storage=InMemoryStorage())
        assert consortium.dispatcher is None
        consortium.add_bank(ADMIN, "bank0", "Bank 0", "REG-0")


class TestLogging:

    def test_rejection_logged_with_kind(self, consortium, caplog):
        with caplog.at_level(logging.WARNING, logger="kyc_consortium"):
            with pytest.raises(CustomerExists):
                consortium.add_customer("bank1", "alice", "fp-other")

        records = [r for r in caplog.records if getattr(r, "error_kind", None)]
        assert len(records) == 1
        assert records[0].error_kind == "CustomerExists"
        assert records[0].user_id == "bank1"
        assert records[0].action == "add_customer"

    def test_success_logged(self, consortium, caplog):
        with caplog.at_level(logging.INFO, logger="kyc_consortium"):
            consortium.report_bank("bank1", "bank2")

        actions = [getattr(r, "action", None) for r in caplog.records]
        assert "report_bank" in actions

    def test_create_consortium_writes_json_log(self, tmp_path, restore_logging):
        log_file = tmp_path / "consortium.log"
        config = ConsortiumConfig(
            admin_address=ADMIN,
            database_url="memory://",
            log_file=str(log_file),
            log_level="INFO"
        )
        consortium = create_consortium(config)
        consortium.add_bank(ADMIN, "bank0", "Bank 0", "REG-0")

        for handler in logging.getLogger("kyc_consortium").handlers:
            handler.flush()
        entries = [json.loads(line) for line in log_file.read_text().splitlines()]
        assert any(e.get("action") == "bank_added" and e.get("user_id") == ADMIN for e in entries)


class TestConfiguration:

    def test_env_configuration(self, monkeypatch):
        monkeypatch.setenv("KYC_ADMIN_ADDRESS", "0xdeployer")
        monkeypatch.setenv("KYC_DATABASE_URL", "memory://")
        config = ConsortiumConfig()

        assert config.admin_address == "0xdeployer"
        consortium = KYCConsortium(config=config)
        assert isinstance(consortium.storage, InMemoryStorage)
        assert consortium.access.admin_address == "0xdeployer"

    def test_create_storage(self, tmp_path):
        sqlite_config = ConsortiumConfig(database_url=f"sqlite:///{tmp_path / 'db' / 'kyc.db'}")
        storage = create_storage(sqlite_config)
        assert isinstance(storage, SQLiteStorage)
        storage.close()

        with pytest.raises(ValueError):
            create_storage(ConsortiumConfig(database_url="postgresql://nowhere"))

    def test_audit_disabled(self):
        config = ConsortiumConfig(admin_address=ADMIN, database_url="memory://",
                                  enable_audit_logging=False)
        consortium = KYCConsortium(config=config, storage=InMemoryStorage())
        consortium.add_bank(ADMIN, "bank0", "Bank 0", "REG-0")
        assert consortium.audit_trail.count_events() == 0


class TestSQLiteConsortium:

    def test_state_survives_restart(self, tmp_path):
        config = ConsortiumConfig(admin_address=ADMIN, database_url=f"sqlite:///{tmp_path / 'kyc.db'}")

        consortium = KYCConsortium(config=config)
        for i in range(3):
            consortium.add_bank(ADMIN, f"bank{i}", f"Bank {i}", f"REG-{i}")
        consortium.add_customer("bank0", "alice", "fp-1")
        consortium.add_request("bank0", "alice", "fp-1")
        consortium.upvote("bank1", "alice")
        consortium.report_bank("bank1", "bank2")
        consortium.close()

        restarted = KYCConsortium(config=config)
        assert restarted.total_banks == 3
        customer = restarted.view_customer("bank1", "alice")
        assert customer.upvotes == 1
        assert customer.is_approved
        assert restarted.has_voted("bank1", "alice")
        assert restarted.get_reporters(ADMIN, "bank2") == ["bank1"]
        assert restarted.verify_audit_integrity()["valid"]
        restarted.close()

    def test_sqlite_rejection_rolls_back(self, tmp_path):
        config = ConsortiumConfig(admin_address=ADMIN, database_url=f"sqlite:///{tmp_path / 'kyc.db'}")
        consortium = KYCConsortium(config=config)
        consortium.add_bank(ADMIN, "bank0", "Bank 0", "REG-0")

        with pytest.raises(ConsortiumError):
            consortium.add_bank(ADMIN, "bank0", "Bank 0", "REG-0")

        assert consortium.total_banks == 1
        assert consortium.audit_trail.count_events() == 1
        consortium.close()


class TestAuditIntegration:

    def test_every_accepted_mutation_is_chained(self, consortium):
        consortium.upvote("bank1", "alice")
        consortium.report_bank("bank2", "bank3")
        consortium.modify_customer("bank2", "alice", "fp-2")

        result = consortium.verify_audit_integrity()
        assert result["valid"]
        # 4 banks, customer, request, vote, report, request removal, modification
        assert result["total_events"] == 10

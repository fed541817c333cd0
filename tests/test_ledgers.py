"""
Tests for the vote and complaint dedup ledgers
"""

from kyc_consortium.storage import InMemoryStorage
from kyc_consortium.ledgers import VoteLedger, ComplaintLedger


class TestVoteLedger:

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.ledger = VoteLedger(self.storage)

    def test_record_and_check(self):
        assert not self.ledger.has_voted("alice", "bank1")

        self.ledger.record_vote("alice", "bank1", "up")

        assert self.ledger.has_voted("alice", "bank1")
        assert self.ledger.vote_direction("alice", "bank1") == "up"
        assert not self.ledger.has_voted("alice", "bank2")
        assert not self.ledger.has_voted("bob", "bank1")

    def test_reset_clears_every_voter(self):
        self.ledger.record_vote("alice", "bank1", "up")
        self.ledger.record_vote("alice", "bank2", "down")
        self.ledger.record_vote("bob", "bank1", "up")

        assert self.ledger.reset_votes("alice") == 1

        assert not self.ledger.has_voted("alice", "bank1")
        assert not self.ledger.has_voted("alice", "bank2")
        assert self.ledger.vote_direction("alice", "bank2") is None
        assert self.ledger.has_voted("bob", "bank1")

    def test_votes_in_new_cycle(self):
        self.ledger.record_vote("alice", "bank1", "up")
        self.ledger.reset_votes("alice")
        self.ledger.record_vote("alice", "bank1", "down")

        assert self.ledger.current_cycle("alice") == 1
        assert self.ledger.vote_direction("alice", "bank1") == "down"
        assert self.ledger.actors("alice") == ["bank1"]

    def test_composite_keys_do_not_collide(self):
        """Separator characters inside identities stay unambiguous"""
        self.ledger.record_vote("a:b", "c", "up")
        assert not self.ledger.has_voted("a", "b:c")


class TestComplaintLedger:

    def test_reports_per_target(self):
        ledger = ComplaintLedger(InMemoryStorage())
        ledger.record_report("bank0", "bank1")
        ledger.record_report("bank0", "bank2")
        ledger.record_report("bank3", "bank1")

        assert ledger.actors("bank0") == ["bank1", "bank2"]

        ledger.reset_reports("bank0")

        assert ledger.actors("bank0") == []
        assert ledger.has_reported("bank3", "bank1")

    def test_ledgers_use_separate_tables(self):
        storage = InMemoryStorage()
        votes = VoteLedger(storage)
        complaints = ComplaintLedger(storage)

        votes.record_vote("x", "bank1", "up")
        assert not complaints.has_reported("x", "bank1")

"""
Dedup Ledgers

Per-(subject, actor) records that stop a bank from voting on the same
customer, or reporting the same peer, twice in one cycle.

A cycle is tracked by a per-subject counter. A record only counts while its
stored cycle equals the subject's current cycle, so resetting a subject is a
single counter increment instead of a sweep over every registered bank.
Records left behind by older cycles or by removed banks are never consulted.
"""

import json
from datetime import datetime, timezone
from typing import List, Optional

from .storage import StorageInterface


class CycleLedger:
    """Boolean ledger keyed by (subject, actor) with bulk reset per subject"""

    records_table = ""
    cycles_table = ""

    def __init__(self, storage: StorageInterface):
        self.storage = storage

    @staticmethod
    def _record_id(subject: str, actor: str) -> str:
        # JSON keeps the composite key unambiguous for any characters
        return json.dumps([subject, actor])

    def current_cycle(self, subject: str) -> int:
        data = self.storage.load(self.cycles_table, subject)
        return data["cycle"] if data else 0

    def _load_record(self, subject: str, actor: str) -> Optional[dict]:
        record = self.storage.load(self.records_table, self._record_id(subject, actor))
        if record and record["cycle"] == self.current_cycle(subject):
            return record
        return None

    def has_recorded(self, subject: str, actor: str) -> bool:
        return self._load_record(subject, actor) is not None

    def record(self, subject: str, actor: str, detail: Optional[str] = None) -> None:
        self.storage.save(self.records_table, self._record_id(subject, actor), {
            "id": self._record_id(subject, actor),
            "subject": subject,
            "actor": actor,
            "cycle": self.current_cycle(subject),
            "detail": detail,
            "recorded_at": datetime.now(timezone.utc).isoformat(),
        })

    def reset(self, subject: str) -> int:
        """Start a new cycle for subject; every actor may act again"""
        cycle = self.current_cycle(subject) + 1
        self.storage.save(self.cycles_table, subject, {"id": subject, "cycle": cycle})
        return cycle

    def actors(self, subject: str) -> List[str]:
        """Actors recorded against subject in the current cycle"""
        records = self.storage.find(self.records_table, {
            "subject": subject,
            "cycle": self.current_cycle(subject),
        })
        return sorted(r["actor"] for r in records)


class VoteLedger(CycleLedger):
    """VoteRecord[customer username][bank address]"""

    records_table = "vote_records"
    cycles_table = "vote_cycles"

    def has_voted(self, username: str, bank_address: str) -> bool:
        return self.has_recorded(username, bank_address)

    def vote_direction(self, username: str, bank_address: str) -> Optional[str]:
        record = self._load_record(username, bank_address)
        return record["detail"] if record else None

    def record_vote(self, username: str, bank_address: str, direction: str) -> None:
        self.record(username, bank_address, detail=direction)

    def reset_votes(self, username: str) -> int:
        return self.reset(username)


class ComplaintLedger(CycleLedger):
    """ComplaintRecord[target bank][reporting bank]"""

    records_table = "complaint_records"
    cycles_table = "complaint_cycles"

    def has_reported(self, target_address: str, reporter_address: str) -> bool:
        return self.has_recorded(target_address, reporter_address)

    def record_report(self, target_address: str, reporter_address: str) -> None:
        self.record(target_address, reporter_address)

    def reset_reports(self, target_address: str) -> int:
        return self.reset(target_address)

#!/usr/bin/env python3
"""
Example: a verification round across a six-bank consortium

Walks through membership, a customer registration, a verification request,
voting, and a bank report against an in-memory ledger.
"""

import os
import sys

# Add the package to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from kyc_consortium import ConsortiumConfig, ConsortiumError, create_consortium
from kyc_consortium.events import DomainEvent


ADMIN = "0xadmin"


def main():
    print("KYC Consortium - verification round")
    print("=" * 60)

    config = ConsortiumConfig(admin_address=ADMIN, database_url="memory://", log_level="WARNING")
    consortium = create_consortium(config)
    consortium.dispatcher.subscribe(
        DomainEvent.CUSTOMER_APPROVAL_CHANGED,
        lambda event: print(f"   event: {event.entity_id} approved={event.data['is_approved']}")
    )

    print("\n1. Membership")
    for i in range(6):
        consortium.add_bank(ADMIN, f"0xbank{i}", f"Bank {i}", f"REG-{i:03d}")
    print(f"   Banks: {consortium.total_banks}, threshold: {consortium.threshold}")

    print("\n2. Customer and verification request")
    consortium.add_customer("0xbank0", "alice", "sha256:3f2a9c")
    consortium.add_request("0xbank0", "alice", "sha256:3f2a9c")

    print("\n3. Voting")
    for voter in ("0xbank1", "0xbank2"):
        customer = consortium.upvote(voter, "alice")
        print(f"   {voter} up -> {customer.upvotes}/{customer.downvotes}, approved={customer.is_approved}")

    try:
        consortium.upvote("0xbank1", "alice")
    except ConsortiumError as e:
        print(f"   repeat vote rejected: {e.kind}")

    print("\n4. Reports")
    consortium.report_bank("0xbank1", "0xbank5")
    bank = consortium.report_bank("0xbank2", "0xbank5")
    print(f"   0xbank5 complaints={bank.complaints_received}, eligible={bank.is_eligible}")

    integrity = consortium.verify_audit_integrity()
    print(f"\n5. Audit chain: {integrity['total_events']} events, valid={integrity['valid']}")


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Transaction review CLI

Lists the ledger transactions waiting for review and writes an approved
category back to the ledger, optionally learning a rule from the approval.
"""
import argparse
import sys

from ledger_sync.core.errors import LedgerSyncError, NotAuthenticatedError
from ledger_sync.core.financial_data import FinancialDataService
from ledger_sync.core.models import PATTERN_CONTAINS, PATTERN_TYPES, SourceSystem
from ledger_sync.core.rule_store import RuleStore
from ledger_sync.core.transaction_review import approve_category
from ledger_sync.sources.quickbooks_client import QuickBooksClient
from ledger_sync.storage.kv_store import create_store
from ledger_sync.utils.config import Settings


def display_review_queue(transactions):
    ledger_items = [t for t in transactions if t.source_system == SourceSystem.LEDGER]
    if not ledger_items:
        print("\n🎉 No transactions need review!")
        return

    print("\n" + "=" * 80)
    print(f"📝 NEEDS REVIEW ({len(ledger_items)})")
    print("=" * 80)
    for txn in ledger_items:
        print(f"{txn.source_type:14s} {txn.source_id:>8s}  {txn.date}  ${abs(txn.amount):>10,.2f}  "
              f"{txn.description[:36]:36s} {txn.category or '-'}")
    print("=" * 80)
    print("Approve with: ledger-review approve ENTITY_TYPE RECORD_ID CATEGORY_ID CATEGORY_NAME")


def main(argv=None):
    parser = argparse.ArgumentParser(description='Review and approve ledger transaction categories')
    subparsers = parser.add_subparsers(dest='command', required=True)

    listing = subparsers.add_parser('list', help='Show transactions needing review')
    listing.add_argument('--start-date', help='YYYY-MM-DD (default: Jan 1st two years ago)')
    listing.add_argument('--end-date', help='YYYY-MM-DD (default: today)')

    approve = subparsers.add_parser('approve', help='Write a category back to a ledger transaction')
    approve.add_argument('entity_type', help="Ledger entity, e.g. 'Purchase'")
    approve.add_argument('record_id')
    approve.add_argument('category_id')
    approve.add_argument('category_name')
    approve.add_argument('--teach', metavar='PATTERN', help='Also learn a rule for this pattern')
    approve.add_argument('--type', dest='pattern_type', choices=PATTERN_TYPES, default=PATTERN_CONTAINS)

    args = parser.parse_args(argv)
    settings = Settings.from_env()
    ledger = QuickBooksClient(settings.qb_access_token, settings.qb_realm_id, settings.qb_environment)

    try:
        if args.command == 'list':
            data = FinancialDataService(ledger).fetch_financial_data(args.start_date, args.end_date)
            display_review_queue(data.needs_review)
        elif args.command == 'approve':
            rule_store = RuleStore(create_store(settings)) if args.teach else None
            approval = approve_category(
                ledger, args.entity_type, args.record_id, args.category_id, args.category_name,
                rule_store=rule_store, pattern=args.teach, pattern_type=args.pattern_type,
            )
            if approval.rule is not None:
                print(f"   Future \"{approval.rule.pattern}\" transactions → {approval.rule.category_name}")
    except NotAuthenticatedError as e:
        print(f"❌ {e}. Set QB_ACCESS_TOKEN and QB_REALM_ID.")
        sys.exit(1)
    except (LedgerSyncError, ValueError) as e:
        print(f"❌ {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()

#!/usr/bin/env python3
"""
Learned rules CLI

List, teach and delete the pattern -> category rules used by the resolver.
"""
import argparse
import sys

from ledger_sync.core.errors import LedgerSyncError
from ledger_sync.core.models import PATTERN_CONTAINS, PATTERN_TYPES
from ledger_sync.core.rule_store import RuleStore
from ledger_sync.storage.kv_store import create_store
from ledger_sync.utils.config import Settings


def print_rules(rule_store: RuleStore):
    rules = rule_store.list_rules()
    if not rules:
        print("No learned rules yet")
        return

    print("\n" + "=" * 80)
    print(f"📚 LEARNED RULES ({len(rules)})")
    print("=" * 80)
    for rule in rules:
        print(f"{rule.id}  {rule.pattern_type:12s} \"{rule.pattern}\" → {rule.category_name} "
              f"(used {rule.times_used}x)")
    print("=" * 80)


def main(argv=None):
    parser = argparse.ArgumentParser(description='Manage learned categorization rules')
    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('list', help='Show all rules')

    teach = subparsers.add_parser('teach', help='Learn a pattern -> category mapping')
    teach.add_argument('pattern')
    teach.add_argument('category_id')
    teach.add_argument('category_name')
    teach.add_argument('--type', dest='pattern_type', choices=PATTERN_TYPES, default=PATTERN_CONTAINS)

    delete = subparsers.add_parser('delete', help='Remove a rule')
    delete.add_argument('rule_id')

    args = parser.parse_args(argv)
    settings = Settings.from_env()

    try:
        rule_store = RuleStore(create_store(settings))

        if args.command == 'list':
            print_rules(rule_store)
        elif args.command == 'teach':
            rule_store.teach(args.pattern, args.category_id, args.category_name, args.pattern_type)
        elif args.command == 'delete':
            if not rule_store.delete(args.rule_id):
                print(f"⚠️  No rule with id {args.rule_id}")
                sys.exit(1)
    except LedgerSyncError as e:
        print(f"❌ {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()

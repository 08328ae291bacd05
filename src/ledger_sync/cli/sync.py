#!/usr/bin/env python3
"""
Ledger sync CLI

Runs one aggregation pass over the ledger, optionally pulls the linked bank
feeds into it and resolves categories for the review queue and the new bank
transactions.
"""
import argparse
import json
import sys
from datetime import timedelta
from pathlib import Path

from ledger_sync.core.categorization_orchestrator import CategoryResolver, apply_result
from ledger_sync.core.category_cache import CategoryCache
from ledger_sync.core.errors import LedgerSyncError, NotAuthenticatedError
from ledger_sync.core.financial_data import FinancialData, FinancialDataService
from ledger_sync.core.llm_categorizer import LLMCategorizer
from ledger_sync.core.models import SourceSystem
from ledger_sync.core.rule_matcher import RuleMatcher
from ledger_sync.core.rule_store import RuleStore
from ledger_sync.sources.plaid_client import PlaidClient
from ledger_sync.sources.quickbooks_client import QuickBooksClient
from ledger_sync.storage.connection_registry import ConnectionRegistry, refresh_bank_feeds, sync_bank_feeds
from ledger_sync.storage.kv_store import create_store
from ledger_sync.utils.config import Settings


def build_resolver(settings: Settings, rule_store: RuleStore, ledger: QuickBooksClient) -> CategoryResolver:
    """Wire rules, category cache and (optionally) the LLM into a resolver"""
    classifier = None
    if settings.enable_llm:
        classifier = LLMCategorizer(api_key=settings.anthropic_api_key, model=settings.anthropic_model)

    max_age = timedelta(seconds=settings.category_cache_ttl)
    return CategoryResolver(
        rule_matcher=RuleMatcher(rule_store),
        category_cache=CategoryCache(ledger.fetch_categories, max_age=max_age),
        classifier=classifier,
        auto_approve_threshold=settings.auto_approve_threshold,
        max_category_age=max_age,
    )


def sync_bank(settings: Settings, store, data: FinancialData, refresh: bool = False):
    """
    Pull new bank-feed transactions into the run

    The cursor moves forward as soon as a sync page is read, so everything
    returned here has to land in data. With refresh, each institution is then
    asked to pull fresh data for the next run.
    """
    print("\n🏦 Syncing bank feeds...")
    plaid = PlaidClient(settings.plaid_client_id, settings.plaid_secret, settings.plaid_env)
    if not plaid.is_configured:
        print("⚠️  Plaid not configured, skipping bank feeds. Set PLAID_CLIENT_ID and PLAID_SECRET.")
        return

    registry = ConnectionRegistry(store)
    bank = sync_bank_feeds(registry, plaid)
    data.add_transactions(bank.transactions)
    for conn_id, error in bank.errors.items():
        data.diagnostics.errors[f"bank:{conn_id}"] = error

    print(f"   ✅ {len(bank.transactions)} bank transactions from "
          f"{len(registry.list_connections())} connections")

    if refresh:
        for conn_id, error in refresh_bank_feeds(registry, plaid).items():
            data.diagnostics.errors[f"bank-refresh:{conn_id}"] = error


def print_summary(data):
    summary = data.summary

    print("\n" + "=" * 80)
    print("📊 SUMMARY")
    print("=" * 80)
    print(f"Income:        ${summary.total_income:,.2f}")
    print(f"Expenses:      ${summary.total_expenses:,.2f}")
    print(f"Net profit:    ${summary.net_profit:,.2f}")
    print(f"Transactions:  {summary.transaction_count}")
    print(f"Needs review:  {summary.needs_review_count}")

    if data.categories:
        print("\n💰 Top expense categories:")
        for cat in data.categories[:10]:
            print(f"  {cat.name:40s} ${cat.amount:,.2f}")

    if data.diagnostics.errors:
        print("\n⚠️  Fetch errors:")
        for entity, error in data.diagnostics.errors.items():
            print(f"  {entity}: {error}")

    print("=" * 80)


def main(argv=None):
    """Main sync function"""
    parser = argparse.ArgumentParser(description='Fetch, normalize and summarize ledger transactions')
    parser.add_argument('--start-date', help='YYYY-MM-DD (default: Jan 1st two years ago)')
    parser.add_argument('--end-date', help='YYYY-MM-DD (default: today)')
    parser.add_argument('--categorize', action='store_true',
                        help='Resolve categories for the review queue and synced bank transactions')
    parser.add_argument('--bank', action='store_true', help='Also sync linked bank feeds')
    parser.add_argument('--refresh', action='store_true',
                        help='With --bank: ask each bank to pull fresh data for the next sync')
    parser.add_argument('--json', dest='json_path', help='Write the full result to this JSON file')

    args = parser.parse_args(argv)
    settings = Settings.from_env()

    print("=" * 80)
    print("🔄 LEDGER SYNC")
    print("=" * 80)
    print(f"Environment:  {settings.qb_environment}")
    print(f"Storage:      {settings.storage_backend}")
    print(f"Categorize:   {args.categorize}")
    print(f"Bank feeds:   {args.bank}")
    print("=" * 80)

    ledger = QuickBooksClient(settings.qb_access_token, settings.qb_realm_id, settings.qb_environment)

    try:
        data = FinancialDataService(ledger).fetch_financial_data(args.start_date, args.end_date)
    except NotAuthenticatedError as e:
        print(f"❌ {e}. Set QB_ACCESS_TOKEN and QB_REALM_ID.")
        sys.exit(1)

    store = None
    if args.categorize or args.bank:
        try:
            store = create_store(settings)
        except (LedgerSyncError, ValueError) as e:
            print(f"❌ Could not open storage: {e}")
            sys.exit(1)

    try:
        if args.bank:
            sync_bank(settings, store, data, refresh=args.refresh)

        if args.categorize:
            pending = [
                t for t in data.transactions
                if t.needs_review or t.source_system == SourceSystem.BANK_FEED
            ]
            if pending:
                print(f"\n🏷️  Categorizing {len(pending)} transactions...")
                resolver = build_resolver(settings, RuleStore(store), ledger)
                results = resolver.resolve_batch(pending)
                data.replace_transactions([apply_result(t, r) for t, r in zip(pending, results)])
                resolver.print_stats()
    except LedgerSyncError as e:
        print(f"❌ {e}")
        sys.exit(1)

    print_summary(data)

    if args.json_path:
        output = Path(args.json_path)
        with open(output, 'w') as f:
            json.dump(data.to_dict(), f, indent=2)
        print(f"\n✅ Wrote {output}")


if __name__ == '__main__':
    main()

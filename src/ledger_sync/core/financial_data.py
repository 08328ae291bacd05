"""
Financial data run

One pass over the ledger: monthly P&L report, every transaction entity type
in the date range, then the account and vendor lists used to resolve names.
Everything is normalized into Transactions and aggregated.

A failing entity type does not sink the run; it comes back empty and the
error is kept in the diagnostics. A single malformed record is skipped the
same way.
"""
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from .aggregator import (
    CategoryTotal, MonthlyTotal, Summary,
    category_totals, expense_totals, merge_transactions, parse_monthly_pl,
    review_queue, sort_transactions, source_counts, summarize,
)
from .errors import SourceFetchError
from .ledger_normalizer import TRANSACTION_ENTITY_TYPES, LedgerLookups, normalize_records
from .models import Transaction


REPORT_TYPE = 'ProfitAndLoss'
LOOKUP_ENTITY_TYPES = ('Account', 'Vendor')


def default_date_range(today: Optional[date] = None):
    """January 1st two years back through today, as ISO strings"""
    today = today or date.today()
    start = date(today.year - 2, 1, 1)
    return start.isoformat(), today.isoformat()


@dataclass
class Diagnostics:
    realm_id: Optional[str]
    start_date: str
    end_date: str
    record_counts: Dict[str, int] = field(default_factory=dict)
    sources: Dict[str, int] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            'realm_id': self.realm_id,
            'date_range': f"{self.start_date} to {self.end_date}",
            'record_counts': dict(self.record_counts),
            'sources': dict(self.sources),
            'errors': dict(self.errors),
        }


@dataclass
class FinancialData:
    summary: Summary
    monthly_data: List[MonthlyTotal]
    categories: List[CategoryTotal]
    transactions: List[Transaction]
    needs_review: List[Transaction]
    expenses: Dict
    diagnostics: Diagnostics
    timestamp: float

    def to_dict(self) -> Dict:
        return {
            'summary': self.summary.to_dict(),
            'monthly_data': [m.to_dict() for m in self.monthly_data],
            'categories': [{'name': c.name, 'amount': str(c.amount)} for c in self.categories],
            'transactions': [t.to_dict() for t in self.transactions],
            'needs_review': [t.to_dict() for t in self.needs_review],
            'expenses': {name: str(amount) for name, amount in self.expenses.items()},
            'timestamp': self.timestamp,
            'diagnostics': self.diagnostics.to_dict(),
        }

    def recompute(self):
        """Rebuild the review queue, totals and source counts from transactions"""
        self.transactions = sort_transactions(self.transactions)
        self.needs_review = review_queue(self.transactions)
        self.summary = summarize(self.transactions)
        self.categories = category_totals(self.transactions)
        self.expenses = expense_totals(self.transactions)
        self.diagnostics.sources = source_counts(self.transactions)

    def add_transactions(self, extra: List[Transaction]):
        """
        Fold in transactions from another source (bank feeds)

        Ids already present are kept as they are; the extra copy is dropped.
        """
        self.transactions = merge_transactions(self.transactions, extra)
        self.recompute()

    def replace_transactions(self, updated: List[Transaction]):
        """Swap in updated copies by id (e.g. after categorization)"""
        by_id = {t.id: t for t in updated}
        self.transactions = [by_id.get(t.id, t) for t in self.transactions]
        self.recompute()


class FinancialDataService:
    """
    Runs the ledger fetch + normalize + aggregate pass
    """

    def __init__(self, ledger_client):
        """
        Args:
            ledger_client: QuickBooksClient (or anything with the same fetch methods)
        """
        self.ledger = ledger_client

    def _fetch_entities(self, entity_type: str, where: str, diagnostics: Diagnostics) -> List[Dict]:
        try:
            records = self.ledger.fetch_all_records(entity_type, where)
        except SourceFetchError as e:
            print(f"⚠️  Could not fetch {entity_type}: {e}")
            diagnostics.errors[entity_type] = str(e)
            records = []

        diagnostics.record_counts[entity_type] = len(records)
        print(f"  → {entity_type}: {len(records)} records")
        return records

    def _fetch_report(self, start_date: str, end_date: str, diagnostics: Diagnostics) -> Optional[Dict]:
        try:
            return self.ledger.fetch_report_summary(REPORT_TYPE, start_date, end_date, 'Month')
        except SourceFetchError as e:
            print(f"⚠️  Could not fetch {REPORT_TYPE} report: {e}")
            diagnostics.errors[REPORT_TYPE] = str(e)
            return None

    def fetch_financial_data(self, start_date: Optional[str] = None, end_date: Optional[str] = None) -> FinancialData:
        """
        Fetch, normalize and aggregate the ledger for a date range

        Args:
            start_date: YYYY-MM-DD (default: Jan 1st two years ago)
            end_date: YYYY-MM-DD (default: today)

        Returns:
            FinancialData

        Raises:
            NotAuthenticatedError: the ledger client has no credential
        """
        self.ledger.ensure_authenticated()

        default_start, default_end = default_date_range()
        start_date = start_date or default_start
        end_date = end_date or default_end

        diagnostics = Diagnostics(
            realm_id=getattr(self.ledger, 'realm_id', None),
            start_date=start_date,
            end_date=end_date,
        )

        print(f"📊 Fetching ledger data {start_date} to {end_date}")

        report = self._fetch_report(start_date, end_date, diagnostics)

        where = f"TxnDate >= '{start_date}' AND TxnDate <= '{end_date}'"
        records_by_type = {
            entity_type: self._fetch_entities(entity_type, where, diagnostics)
            for entity_type in TRANSACTION_ENTITY_TYPES
        }
        accounts = self._fetch_entities('Account', '', diagnostics)
        vendors = self._fetch_entities('Vendor', '', diagnostics)

        lookups = LedgerLookups.build(accounts, vendors)

        transactions = []
        for entity_type, records in records_by_type.items():
            transactions.extend(normalize_records(entity_type, records, lookups, diagnostics.errors))

        transactions = sort_transactions(transactions)
        needs_review = review_queue(transactions)
        diagnostics.sources = source_counts(transactions)

        print(f"\n✅ Fetched {len(transactions)} total transactions")
        print(f"  {len(needs_review)} need review")

        return FinancialData(
            summary=summarize(transactions),
            monthly_data=parse_monthly_pl(report),
            categories=category_totals(transactions),
            transactions=transactions,
            needs_review=needs_review,
            expenses=expense_totals(transactions),
            diagnostics=diagnostics,
            timestamp=time.time(),
        )

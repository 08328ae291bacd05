"""
Aggregator

Read-only views over normalized (and optionally categorized) transactions:
category totals, income/expense summary, the review queue, and the monthly
P&L series parsed from the ledger's summary report.

All transaction lists are sorted by date descending with a stable sort, so
transactions sharing a date keep their input order.
"""
from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from .models import Transaction, TransactionKind


@dataclass(frozen=True)
class CategoryTotal:
    name: str
    amount: Decimal


@dataclass(frozen=True)
class Summary:
    total_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    transaction_count: int
    needs_review_count: int

    def to_dict(self) -> Dict:
        return {
            'total_income': str(self.total_income),
            'total_expenses': str(self.total_expenses),
            'net_profit': str(self.net_profit),
            'transaction_count': self.transaction_count,
            'needs_review_count': self.needs_review_count,
        }


@dataclass(frozen=True)
class MonthlyTotal:
    month: str
    revenue: float
    expenses: float
    profit: float

    def to_dict(self) -> Dict:
        return asdict(self)


def sort_transactions(transactions: Iterable[Transaction]) -> List[Transaction]:
    """Date descending; equal dates keep input order"""
    return sorted(transactions, key=lambda t: t.date, reverse=True)


def merge_transactions(*groups: Iterable[Transaction]) -> List[Transaction]:
    """Concatenate groups, keeping the first transaction seen for each id"""
    seen = set()
    merged = []
    for group in groups:
        for txn in group:
            if txn.id in seen:
                continue
            seen.add(txn.id)
            merged.append(txn)
    return merged


def expense_totals(transactions: Iterable[Transaction]) -> Dict[str, Decimal]:
    """Sum of abs(amount) per category over expense transactions"""
    totals: Dict[str, Decimal] = {}
    for txn in transactions:
        if txn.kind != TransactionKind.EXPENSE:
            continue
        name = txn.category or 'Uncategorized'
        totals[name] = totals.get(name, Decimal('0')) + abs(txn.amount)
    return totals


def category_totals(transactions: Iterable[Transaction]) -> List[CategoryTotal]:
    """Expense totals per category, largest first"""
    totals = [CategoryTotal(name, amount) for name, amount in expense_totals(transactions).items()]
    return sorted(totals, key=lambda c: c.amount, reverse=True)


def summarize(transactions: Iterable[Transaction]) -> Summary:
    """Income, expenses and net over a transaction set"""
    transactions = list(transactions)

    total_income = sum(
        (t.amount for t in transactions if t.kind == TransactionKind.INCOME),
        Decimal('0'),
    )
    total_expenses = sum(
        (abs(t.amount) for t in transactions if t.kind == TransactionKind.EXPENSE),
        Decimal('0'),
    )

    return Summary(
        total_income=total_income,
        total_expenses=total_expenses,
        net_profit=total_income - total_expenses,
        transaction_count=len(transactions),
        needs_review_count=sum(1 for t in transactions if t.needs_review),
    )


def review_queue(transactions: Iterable[Transaction]) -> List[Transaction]:
    """Transactions needing review, date descending"""
    return sort_transactions(t for t in transactions if t.needs_review)


def source_counts(transactions: Iterable[Transaction]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for txn in transactions:
        counts[txn.source_type] = counts.get(txn.source_type, 0) + 1
    return counts


def find_summary_row(rows: List[Dict], label: str) -> Optional[Dict]:
    """
    Depth-first search of a report row tree for a summary row

    A row matches when its Summary's first column contains the label
    (case-insensitive). Rows are checked before their children.

    Args:
        rows: Report rows (each may nest more under Rows.Row)
        label: Text to look for, e.g. 'Total Income'

    Returns:
        The matching row's Summary dict, or None
    """
    needle = label.lower()
    for row in rows or []:
        summary = row.get('Summary') or {}
        col_data = summary.get('ColData') or []
        if col_data:
            value = col_data[0].get('value') or ''
            if needle in str(value).lower():
                return summary

        children = (row.get('Rows') or {}).get('Row')
        if children:
            found = find_summary_row(children, label)
            if found is not None:
                return found
    return None


def _column_value(summary: Optional[Dict], idx: int) -> float:
    if not summary:
        return 0.0
    col_data = summary.get('ColData') or []
    if idx >= len(col_data):
        return 0.0
    try:
        return float(col_data[idx].get('value'))
    except (TypeError, ValueError):
        return 0.0


def parse_monthly_pl(report: Optional[Dict]) -> List[MonthlyTotal]:
    """
    Build the monthly revenue/expenses/profit series from a P&L report

    Args:
        report: Summary report grouped by month (Columns + nested Rows)

    Returns:
        One MonthlyTotal per month column, in report order
    """
    monthly_data = []
    rows = ((report or {}).get('Rows') or {}).get('Row')
    if not rows:
        return monthly_data

    columns = (report.get('Columns') or {}).get('Column') or []
    # First column is the row label; "Jan 2025" -> "Jan"
    month_names = [(c.get('ColTitle') or '').split(' ')[0] for c in columns[1:]]

    income_row = find_summary_row(rows, 'Total Income')
    expense_row = find_summary_row(rows, 'Total Expenses')

    for idx, month in enumerate(month_names):
        if not month:
            continue
        revenue = _column_value(income_row, idx + 1)
        expenses = _column_value(expense_row, idx + 1)
        monthly_data.append(MonthlyTotal(
            month=month,
            revenue=revenue,
            expenses=expenses,
            profit=revenue - expenses,
        ))

    return monthly_data

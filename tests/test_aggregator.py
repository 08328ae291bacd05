"""Tests for aggregation views and the monthly P&L parser."""

from datetime import date
from decimal import Decimal

from ledger_sync.core.aggregator import (
    category_totals,
    find_summary_row,
    merge_transactions,
    parse_monthly_pl,
    review_queue,
    sort_transactions,
    source_counts,
    summarize,
)
from ledger_sync.core.models import TransactionKind


def test_sort_is_date_descending_and_stable(make_transaction):
    """Test same-date transactions keep their input order."""
    old = make_transaction(description='old', txn_date=date(2025, 1, 1))
    first = make_transaction(description='first', txn_date=date(2025, 2, 1))
    second = make_transaction(description='second', txn_date=date(2025, 2, 1))
    newest = make_transaction(description='newest', txn_date=date(2025, 3, 1))

    ordered = sort_transactions([old, first, second, newest])

    assert [t.description for t in ordered] == ['newest', 'first', 'second', 'old']


def test_summary_and_category_totals(make_transaction):
    """Test income, expense and per-category totals."""
    txns = [
        make_transaction(amount='-50.00', category='Office Supplies'),
        make_transaction(amount='-10.00', category='Office Supplies'),
        make_transaction(amount='-100.00', category='Rent', needs_review=True),
        make_transaction(amount='-5.00', category=''),
        make_transaction(amount='500.00', category='Income', kind=TransactionKind.INCOME),
    ]

    summary = summarize(txns)
    totals = category_totals(txns)

    assert summary.total_income == Decimal('500.00')
    assert summary.total_expenses == Decimal('165.00')
    assert summary.net_profit == Decimal('335.00')
    assert summary.transaction_count == 5
    assert summary.needs_review_count == 1
    assert [(c.name, c.amount) for c in totals] == [
        ('Rent', Decimal('100.00')),
        ('Office Supplies', Decimal('60.00')),
        ('Uncategorized', Decimal('5.00')),
    ]


def test_review_queue_and_source_counts(make_transaction):
    """Test the review queue and per-source counts."""
    flagged = make_transaction(needs_review=True, txn_date=date(2025, 1, 1))
    fine = make_transaction(source_type='Bill')
    later_flagged = make_transaction(needs_review=True, txn_date=date(2025, 5, 1))

    queue = review_queue([flagged, fine, later_flagged])

    assert queue == [later_flagged, flagged]
    assert source_counts([flagged, fine, later_flagged]) == {'Purchase': 2, 'Bill': 1}


def test_merge_dedupes_by_id(make_transaction):
    """Test repeated fetches collapse to one transaction per id."""
    a = make_transaction(id='purchase-1-0')
    b = make_transaction(id='purchase-2-0')
    a_again = make_transaction(id='purchase-1-0', description='refetched')

    merged = merge_transactions([a, b], [a_again])

    assert merged == [a, b]


def pl_report():
    """P&L report with Total Expenses nested two levels down."""
    return {
        'Columns': {'Column': [
            {'ColTitle': ''},
            {'ColTitle': 'Jan 2025'},
            {'ColTitle': 'Feb 2025'},
        ]},
        'Rows': {'Row': [
            {
                'Header': {'ColData': [{'value': 'Income'}]},
                'Rows': {'Row': [{'ColData': [{'value': 'Sales'}, {'value': '1000.00'}, {'value': '1500.00'}]}]},
                'Summary': {'ColData': [{'value': 'Total Income'}, {'value': '1000.00'}, {'value': '1500.00'}]},
            },
            {
                'Header': {'ColData': [{'value': 'Operating'}]},
                'Rows': {'Row': [
                    {
                        'Rows': {'Row': [
                            {'Summary': {'ColData': [
                                {'value': 'Total Expenses'}, {'value': '400.00'}, {'value': '600.00'},
                            ]}},
                        ]},
                    },
                ]},
            },
        ]},
    }


def test_monthly_pl_finds_nested_rows():
    """Test the summary search descends into nested row groups."""
    months = parse_monthly_pl(pl_report())

    assert [m.to_dict() for m in months] == [
        {'month': 'Jan', 'revenue': 1000.0, 'expenses': 400.0, 'profit': 600.0},
        {'month': 'Feb', 'revenue': 1500.0, 'expenses': 600.0, 'profit': 900.0},
    ]


def test_monthly_pl_missing_rows():
    """Test empty or partial reports."""
    assert parse_monthly_pl(None) == []
    assert parse_monthly_pl({'Rows': {}}) == []
    assert find_summary_row([], 'Total Income') is None

    report = pl_report()
    report['Rows']['Row'] = report['Rows']['Row'][:1]
    months = parse_monthly_pl(report)
    assert months[0].expenses == 0.0
    assert months[0].profit == 1000.0

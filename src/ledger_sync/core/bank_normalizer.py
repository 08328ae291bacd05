"""
Bank Feed Normalizer

Maps bank-aggregation transactions (Plaid shapes) to canonical Transactions.
Upstream reports positive amounts for money going out; we flip that so
negative always means money out.
"""
from typing import Dict, Iterable, List

from .ledger_normalizer import parse_amount, parse_date
from .models import BankConnection, SourceSystem, Transaction, TransactionKind


def _upstream_category(item: Dict) -> str:
    pfc = item.get('personal_finance_category') or {}
    legacy = item.get('category') or []
    return pfc.get('primary') or (legacy[0] if legacy else None) or 'Uncategorized'


def _upstream_category_detailed(item: Dict):
    pfc = item.get('personal_finance_category') or {}
    legacy = item.get('category') or []
    return pfc.get('detailed') or (' > '.join(legacy) if legacy else None)


def normalize_bank_transaction(item: Dict, connection: BankConnection, source_type: str = 'sync') -> Transaction:
    """
    Normalize a single bank-feed transaction

    Review status is left False here; the resolver decides it later.
    """
    upstream_amount = parse_amount(item.get('amount'))
    merchant_name = item.get('merchant_name') or ''

    return Transaction(
        id=f"plaid-{item['transaction_id']}",
        source_system=SourceSystem.BANK_FEED,
        source_type=source_type,
        source_id=str(item['transaction_id']),
        date=parse_date(item.get('date')),
        description=item.get('name') or merchant_name or 'Bank Transaction',
        counterparty_name=merchant_name,
        amount=-upstream_amount if upstream_amount else upstream_amount,
        kind=TransactionKind.EXPENSE if upstream_amount > 0 else TransactionKind.INCOME,
        category=_upstream_category(item),
        category_detailed=_upstream_category_detailed(item),
        account_id=item.get('account_id'),
        institution=connection.institution_name,
        pending=bool(item.get('pending', False)),
        needs_review=False,
    )


def normalize_bank_transactions(items: Iterable[Dict], connection: BankConnection, source_type: str = 'sync') -> List[Transaction]:
    """
    Normalize upstream items, dropping those from excluded accounts

    Args:
        items: Upstream transaction dicts
        connection: The connection they were fetched through
        source_type: 'sync' for cursor sync, 'transactions' for date-range fetch

    Returns:
        List of Transactions in upstream order
    """
    return [
        normalize_bank_transaction(item, connection, source_type)
        for item in items
        if not connection.is_excluded(item.get('account_id'))
    ]

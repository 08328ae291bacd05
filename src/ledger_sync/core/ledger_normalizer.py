"""
Ledger Record Normalizer

Maps accounting-ledger records (QuickBooks entity shapes) to canonical
Transactions. Each entity type has one pure function; `NORMALIZERS` is the
dispatch table, so supporting a new record kind means adding a function and
an entry there.

Conventions:
- amount < 0 is money leaving the business, amount > 0 is money received
- multi-line records produce one Transaction per qualifying line
- ids are "<kind>-<record Id>[-<line index>]" so re-fetches dedupe by id
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Iterable, List, Optional

from .errors import UnsupportedRecordError
from .models import (
    SourceSystem,
    Transaction,
    TransactionKind,
    is_uncategorized,
)


PAYROLL_KEYWORDS = ('payroll', 'wage', 'salary', 'paychex')
PAYROLL_CATEGORY = 'Payroll Expenses'

EXPENSE_ACCOUNT_TYPES = ('Expense', 'Cost of Goods Sold', 'Other Expense')
INCOME_ACCOUNT_TYPES = ('Income', 'Other Income')
# Journal lines on these are skipped. Other balance-sheet types (Credit Card,
# Accounts Payable, Equity, ...) fall through to the debit-is-expense arm.
BALANCE_SHEET_ACCOUNT_TYPES = (
    'Other Current Liability',
    'Long Term Liability',
    'Bank',
    'Other Current Asset',
    'Fixed Asset',
)


@dataclass
class LedgerLookups:
    """Id -> name lookups for accounts and vendors"""
    accounts: Dict[str, Dict] = field(default_factory=dict)
    vendors: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def build(cls, account_records: Iterable[Dict], vendor_records: Iterable[Dict]) -> 'LedgerLookups':
        """
        Build lookups from raw chart-of-accounts and vendor records

        Args:
            account_records: Raw Account records
            vendor_records: Raw Vendor records

        Returns:
            LedgerLookups keyed by record Id
        """
        accounts = {}
        for a in account_records:
            accounts[str(a.get('Id'))] = {
                'name': a.get('Name', ''),
                'type': a.get('AccountType', ''),
                'sub_type': a.get('AccountSubType'),
                'full_name': a.get('FullyQualifiedName') or a.get('Name', ''),
            }

        vendors = {}
        for v in vendor_records:
            vendors[str(v.get('Id'))] = v.get('DisplayName') or v.get('CompanyName') or 'Unknown Vendor'

        return cls(accounts=accounts, vendors=vendors)

    def account_name(self, account_id: Optional[str]) -> str:
        if account_id is None:
            return ''
        return self.accounts.get(str(account_id), {}).get('name', '')

    def account_type(self, account_id: Optional[str]) -> str:
        if account_id is None:
            return ''
        return self.accounts.get(str(account_id), {}).get('type', '')

    def vendor_name(self, vendor_id: Optional[str]) -> str:
        if vendor_id is None:
            return ''
        return self.vendors.get(str(vendor_id), '')


def parse_amount(value) -> Decimal:
    """Parse a JSON number or string to Decimal (missing -> 0)"""
    if value is None or value == '':
        return Decimal('0')
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).replace('$', '').replace(',', '').strip())
    except InvalidOperation:
        raise ValueError(f"Could not parse amount: {value!r}")


def parse_date(value) -> date:
    """Parse a ledger date (YYYY-MM-DD, optionally with a time part)"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise ValueError("Missing transaction date")
    return datetime.strptime(str(value)[:10], '%Y-%m-%d').date()


def _ref_name(ref: Optional[Dict]) -> str:
    return (ref or {}).get('name') or ''


def _ref_value(ref: Optional[Dict]) -> Optional[str]:
    value = (ref or {}).get('value')
    return str(value) if value is not None else None


def _contains_payroll_keyword(*texts: str) -> bool:
    for text in texts:
        lower = (text or '').lower()
        if any(kw in lower for kw in PAYROLL_KEYWORDS):
            return True
    return False


def _ledger_transaction(txn_id: str, source_type: str, record: Dict, **kwargs) -> Transaction:
    return Transaction(
        id=txn_id,
        source_system=SourceSystem.LEDGER,
        source_type=source_type,
        source_id=str(record.get('Id')),
        date=parse_date(record.get('TxnDate')),
        **kwargs,
    )


def _account_expense_line(line: Dict, lookups: LedgerLookups) -> Dict:
    detail = line['AccountBasedExpenseLineDetail']
    acct_ref = detail.get('AccountRef')
    acct_id = _ref_value(acct_ref)
    acct_name = _ref_name(acct_ref) or lookups.account_name(acct_id)
    return {
        'description': line.get('Description') or acct_name,
        'category': acct_name,
        'category_id': acct_id,
        'amount': parse_amount(line.get('Amount')),
    }


def _item_expense_line(line: Dict) -> Dict:
    detail = line['ItemBasedExpenseLineDetail']
    return {
        'description': line.get('Description') or _ref_name(detail.get('ItemRef')),
        'category': 'Items',
        'category_id': None,
        'amount': parse_amount(line.get('Amount')),
    }


def normalize_purchase(record: Dict, lookups: LedgerLookups) -> List[Transaction]:
    """Purchase: one expense per account/item-based line, else one for the record"""
    entity_ref = record.get('EntityRef')
    vendor_name = _ref_name(entity_ref) or lookups.vendor_name(_ref_value(entity_ref))
    memo = record.get('PrivateNote') or ''
    payment_type = record.get('PaymentType') or 'Unknown'

    lines = []
    for line in record.get('Line') or []:
        if line.get('AccountBasedExpenseLineDetail') is not None:
            lines.append(_account_expense_line(line, lookups))
        elif line.get('ItemBasedExpenseLineDetail') is not None:
            lines.append(_item_expense_line(line))

    if not lines:
        # Nothing to categorize against: keep the total, flag it
        return [_ledger_transaction(
            f"purchase-{record.get('Id')}",
            'Purchase',
            record,
            description=vendor_name or memo or 'Purchase',
            counterparty_name=vendor_name,
            category='Uncategorized',
            category_id=None,
            amount=-abs(parse_amount(record.get('TotalAmt'))),
            kind=TransactionKind.EXPENSE,
            payment_type=payment_type,
            needs_review=True,
        )]

    transactions = []
    for idx, line in enumerate(lines):
        transactions.append(_ledger_transaction(
            f"purchase-{record.get('Id')}-{idx}",
            'Purchase',
            record,
            description=line['description'] or vendor_name or memo or 'Purchase',
            counterparty_name=vendor_name,
            category=line['category'] or 'Uncategorized',
            category_id=line['category_id'],
            amount=-abs(line['amount']),
            kind=TransactionKind.EXPENSE,
            payment_type=payment_type,
            needs_review=is_uncategorized(line['category']),
        ))
    return transactions


def normalize_bill(record: Dict, lookups: LedgerLookups) -> List[Transaction]:
    """Bill: one expense per account-based line; no lines, no transactions"""
    vendor_ref = record.get('VendorRef')
    vendor_name = _ref_name(vendor_ref) or lookups.vendor_name(_ref_value(vendor_ref))
    memo = record.get('PrivateNote') or ''

    lines = [
        _account_expense_line(line, lookups)
        for line in record.get('Line') or []
        if line.get('AccountBasedExpenseLineDetail') is not None
    ]

    return [
        _ledger_transaction(
            f"bill-{record.get('Id')}-{idx}",
            'Bill',
            record,
            description=line['description'] or vendor_name or memo or 'Bill',
            counterparty_name=vendor_name,
            category=line['category'] or 'Uncategorized',
            category_id=line['category_id'],
            amount=-abs(line['amount']),
            kind=TransactionKind.EXPENSE,
            needs_review=is_uncategorized(line['category']),
        )
        for idx, line in enumerate(lines)
    ]


def journal_line_effect(account_type: str, posting_type: Optional[str]):
    """
    Decide how a journal line lands on the P&L

    Args:
        account_type: Ledger account type of the line's account
        posting_type: 'Debit' or 'Credit'

    Returns:
        (TransactionKind, sign) where sign is -1 or 1, or None when the line
        is not a P&L event and must be skipped
    """
    is_debit = posting_type == 'Debit'

    if account_type in EXPENSE_ACCOUNT_TYPES:
        return (TransactionKind.EXPENSE, -1) if is_debit else (TransactionKind.EXPENSE, 1)
    if account_type in INCOME_ACCOUNT_TYPES:
        return (TransactionKind.INCOME, -1) if is_debit else (TransactionKind.INCOME, 1)
    if account_type in BALANCE_SHEET_ACCOUNT_TYPES:
        return None
    if is_debit:
        return (TransactionKind.EXPENSE, -1)
    return None


def normalize_journal_entry(record: Dict, lookups: LedgerLookups) -> List[Transaction]:
    """JournalEntry: P&L lines only, signed by account type and posting type"""
    memo = record.get('PrivateNote') or record.get('DocNumber') or ''
    transactions = []

    for idx, line in enumerate(record.get('Line') or []):
        detail = line.get('JournalEntryLineDetail')
        if detail is None:
            continue

        acct_ref = detail.get('AccountRef')
        acct_id = _ref_value(acct_ref)
        acct_name = _ref_name(acct_ref) or lookups.account_name(acct_id) or 'Journal Entry'
        amount = parse_amount(line.get('Amount'))
        if amount == 0:
            continue

        effect = journal_line_effect(lookups.account_type(acct_id), detail.get('PostingType'))
        if effect is None:
            continue
        kind, sign = effect

        is_payroll = _contains_payroll_keyword(acct_name, memo)

        transactions.append(_ledger_transaction(
            f"journal-{record.get('Id')}-{idx}",
            'JournalEntry',
            record,
            description=line.get('Description') or memo or acct_name,
            category=PAYROLL_CATEGORY if is_payroll else acct_name,
            category_id=acct_id,
            amount=sign * abs(amount),
            kind=kind,
            is_payroll=is_payroll,
            needs_review=False,
        ))

    return transactions


def normalize_deposit(record: Dict, lookups: LedgerLookups) -> List[Transaction]:
    """Deposit: one income per deposit line, else one for the record"""
    lines = []
    for line in record.get('Line') or []:
        detail = line.get('DepositLineDetail')
        if detail is None:
            continue
        entity_name = _ref_name(detail.get('Entity'))
        lines.append({
            'description': entity_name or line.get('Description') or 'Deposit',
            'customer': entity_name,
            'amount': parse_amount(line.get('Amount')),
        })

    if not lines:
        return [_ledger_transaction(
            f"deposit-{record.get('Id')}",
            'Deposit',
            record,
            description=record.get('PrivateNote') or 'Bank Deposit',
            category='Income',
            amount=abs(parse_amount(record.get('TotalAmt'))),
            kind=TransactionKind.INCOME,
        )]

    return [
        _ledger_transaction(
            f"deposit-{record.get('Id')}-{idx}",
            'Deposit',
            record,
            description=line['description'],
            counterparty_name=line['customer'],
            category='Income',
            amount=abs(line['amount']),
            kind=TransactionKind.INCOME,
        )
        for idx, line in enumerate(lines)
    ]


def normalize_sales_receipt(record: Dict, lookups: LedgerLookups) -> List[Transaction]:
    customer = _ref_name(record.get('CustomerRef'))
    return [_ledger_transaction(
        f"salesreceipt-{record.get('Id')}",
        'SalesReceipt',
        record,
        description=f"Payment - {customer}" if customer else 'Sales Receipt',
        counterparty_name=customer,
        category='Income',
        amount=abs(parse_amount(record.get('TotalAmt'))),
        kind=TransactionKind.INCOME,
    )]


def normalize_payment(record: Dict, lookups: LedgerLookups) -> List[Transaction]:
    customer = _ref_name(record.get('CustomerRef'))
    return [_ledger_transaction(
        f"payment-{record.get('Id')}",
        'Payment',
        record,
        description=f"Payment - {customer}" if customer else 'Payment Received',
        counterparty_name=customer,
        category='Income',
        amount=abs(parse_amount(record.get('TotalAmt'))),
        kind=TransactionKind.INCOME,
    )]


def normalize_refund_receipt(record: Dict, lookups: LedgerLookups) -> List[Transaction]:
    customer = _ref_name(record.get('CustomerRef'))
    return [_ledger_transaction(
        f"refund-{record.get('Id')}",
        'RefundReceipt',
        record,
        description=f"Refund to {customer or 'Customer'}",
        counterparty_name=customer,
        category='Refunds',
        amount=-abs(parse_amount(record.get('TotalAmt'))),
        kind=TransactionKind.EXPENSE,
    )]


def normalize_vendor_credit(record: Dict, lookups: LedgerLookups) -> List[Transaction]:
    """VendorCredit: positive amount, but stays in the expense bucket"""
    vendor_ref = record.get('VendorRef')
    vendor_name = _ref_name(vendor_ref) or lookups.vendor_name(_ref_value(vendor_ref))
    return [_ledger_transaction(
        f"vendorcredit-{record.get('Id')}",
        'VendorCredit',
        record,
        description=f"Credit from {vendor_name or 'Vendor'}",
        counterparty_name=vendor_name,
        category='Vendor Credits',
        amount=abs(parse_amount(record.get('TotalAmt'))),
        kind=TransactionKind.EXPENSE,
    )]


NORMALIZERS: Dict[str, Callable[[Dict, LedgerLookups], List[Transaction]]] = {
    'Purchase': normalize_purchase,
    'Bill': normalize_bill,
    'JournalEntry': normalize_journal_entry,
    'VendorCredit': normalize_vendor_credit,
    'SalesReceipt': normalize_sales_receipt,
    'Payment': normalize_payment,
    'Deposit': normalize_deposit,
    'RefundReceipt': normalize_refund_receipt,
}

# Fetch order for an aggregation run
TRANSACTION_ENTITY_TYPES = tuple(NORMALIZERS)


def normalize_record(entity_type: str, record: Dict, lookups: Optional[LedgerLookups] = None) -> List[Transaction]:
    """
    Normalize one raw ledger record

    Args:
        entity_type: Ledger entity name (e.g. 'Purchase')
        record: Raw record as returned by the ledger query API
        lookups: Account/vendor lookups (empty if not given)

    Returns:
        Zero or more Transactions
    """
    normalizer = NORMALIZERS.get(entity_type)
    if normalizer is None:
        raise UnsupportedRecordError(f"No normalizer for ledger entity type: {entity_type}")
    return normalizer(record, lookups or LedgerLookups())


def normalize_records(entity_type: str,
                      records: Iterable[Dict],
                      lookups: Optional[LedgerLookups] = None,
                      errors: Optional[Dict[str, str]] = None) -> List[Transaction]:
    """
    Normalize a list of records of one entity type, in order

    Args:
        entity_type: Ledger entity name
        records: Raw records
        lookups: Account/vendor lookups
        errors: If given, a record that cannot be normalized (no date,
            unparseable amount) is skipped and its error stored here under
            "<entity_type>#<Id>". Otherwise the ValueError propagates.
    """
    lookups = lookups or LedgerLookups()
    transactions = []
    for record in records:
        try:
            transactions.extend(normalize_record(entity_type, record, lookups))
        except ValueError as e:
            if errors is None:
                raise
            key = f"{entity_type}#{record.get('Id')}"
            print(f"⚠️  Skipped {key}: {e}")
            errors[key] = str(e)
    return transactions

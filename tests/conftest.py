"""Shared pytest fixtures for ledger-sync tests."""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from ledger_sync.core.errors import NotAuthenticatedError, SourceFetchError
from ledger_sync.core.models import Category, SourceSystem, Transaction, TransactionKind
from ledger_sync.core.rule_store import RuleStore
from ledger_sync.sources.plaid_client import SyncPage
from ledger_sync.storage.kv_store import JsonFileStore


class MemoryStore:
    """In-memory stand-in for the persistence collaborator."""

    def __init__(self):
        self.data = {}
        self.puts = 0

    def get(self, key, default=None):
        return self.data.get(key, default)

    def put(self, key, value):
        self.puts += 1
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)


class FailingStore(MemoryStore):
    """Store whose writes always fail."""

    def put(self, key, value):
        raise OSError("disk full")


class FakeClassifier:
    """Classifier returning canned suggestions and recording its calls."""

    def __init__(self, suggestion=None, error=None, enabled=True):
        self.suggestion = suggestion
        self.error = error
        self.enabled = enabled
        self.calls = []

    def classify(self, transaction, categories):
        self.calls.append((transaction, categories))
        if self.error is not None:
            raise self.error
        if callable(self.suggestion):
            return self.suggestion(transaction)
        return self.suggestion


class FakeLedgerClient:
    """Ledger client serving canned records per entity type."""

    def __init__(self, records=None, report=None, failing=(), authenticated=True, categories=None):
        self.records = records or {}
        self.report = report
        self.failing = set(failing)
        self.authenticated = authenticated
        self.categories = categories or []
        self.realm_id = 'realm-1'
        self.updates = []
        self.calls = []

    def ensure_authenticated(self):
        if not self.authenticated:
            raise NotAuthenticatedError("QuickBooks is not connected")

    def fetch_all_records(self, entity_type, where=''):
        self.calls.append((entity_type, where))
        if entity_type in self.failing:
            raise SourceFetchError('quickbooks', f"/query: 500 - {entity_type} unavailable", status_code=500)
        return list(self.records.get(entity_type, []))

    def fetch_report_summary(self, report_type, start_date, end_date, group_by='Month'):
        self.calls.append((report_type, group_by))
        if report_type in self.failing:
            raise SourceFetchError('quickbooks', 'report unavailable', status_code=500)
        return self.report

    def fetch_categories(self):
        self.calls.append(('categories', ''))
        return list(self.categories)

    def update_transaction_category(self, entity_type, record_id, category_id, category_name):
        self.ensure_authenticated()
        self.updates.append((entity_type, record_id, category_id, category_name))
        return {'Id': record_id, 'SyncToken': '1'}


class FakePlaid:
    """Bank-feed client with scripted responses per access token."""

    is_configured = True

    def __init__(self, pages=None, listings=None, failing_tokens=(), remove_error=None):
        self.pages = pages or {}
        self.listings = listings or {}
        self.failing_tokens = set(failing_tokens)
        self.remove_error = remove_error
        self.sync_calls = []
        self.removed = []
        self.refreshed = []

    def exchange_public_token(self, public_token):
        return {'access_token': f"access-{public_token}", 'item_id': 'item-1'}

    def get_accounts(self, access_token):
        return [
            {'account_id': 'acc-chk', 'name': 'Checking', 'mask': '0001', 'type': 'depository', 'subtype': 'checking'},
            {'account_id': 'acc-cc', 'name': 'Card', 'mask': '0002', 'type': 'credit', 'subtype': 'credit card'},
        ]

    def remove_item(self, access_token):
        self.removed.append(access_token)
        if self.remove_error is not None:
            raise self.remove_error

    def refresh_transactions(self, access_token):
        self.refreshed.append(access_token)
        if access_token in self.failing_tokens:
            raise SourceFetchError('plaid', '/transactions/refresh: ITEM_LOGIN_REQUIRED')

    def sync_transactions(self, access_token, cursor=None, count=500):
        self.sync_calls.append((access_token, cursor))
        if access_token in self.failing_tokens:
            raise SourceFetchError('plaid', '/transactions/sync: ITEM_LOGIN_REQUIRED')
        return self.pages.get(access_token, SyncPage())

    def fetch_all_transactions(self, access_token, start_date, end_date):
        if access_token in self.failing_tokens:
            raise SourceFetchError('plaid', '/transactions/get: ITEM_LOGIN_REQUIRED')
        return self.listings.get(access_token, [])


def bank_item(transaction_id, amount, day=1, account_id='acc-chk', **extra):
    item = {
        'transaction_id': transaction_id,
        'amount': amount,
        'date': f"2025-06-{day:02d}",
        'name': f"Txn {transaction_id}",
        'account_id': account_id,
    }
    item.update(extra)
    return item


class FakeAnthropicClient:
    """Mimics anthropic.Anthropic().messages.create."""

    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.requests = []
        self.messages = self

    def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(content=[SimpleNamespace(text=self.text)])


@pytest.fixture
def memory_store():
    """Fresh in-memory store."""
    return MemoryStore()


@pytest.fixture
def file_store(tmp_path):
    """JSON file store in a temporary directory."""
    return JsonFileStore(tmp_path / "store.json")


@pytest.fixture
def rule_store(memory_store):
    """RuleStore over an in-memory store."""
    return RuleStore(memory_store)


@pytest.fixture
def categories():
    """A small chart of expense categories."""
    return [
        Category(id='42', name='Office Supplies', fully_qualified_name='Office Supplies', type='Expense'),
        Category(id='7', name='Payroll Expenses', fully_qualified_name='Payroll Expenses', type='Expense'),
        Category(id='13', name='Meals', fully_qualified_name='Travel:Meals', type='Expense'),
    ]


@pytest.fixture
def make_transaction():
    """Factory for normalized transactions with sensible defaults."""
    counter = {'n': 0}

    def _make(description='Office Depot #123', amount='-25.00', txn_date=date(2025, 3, 1),
              kind=TransactionKind.EXPENSE, category='Uncategorized', **kwargs):
        counter['n'] += 1
        defaults = dict(
            id=f"purchase-{counter['n']}",
            source_system=SourceSystem.LEDGER,
            source_type='Purchase',
            source_id=str(counter['n']),
            date=txn_date,
            description=description,
            amount=Decimal(amount),
            kind=kind,
            category=category,
        )
        defaults.update(kwargs)
        return Transaction(**defaults)

    return _make

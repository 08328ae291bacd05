"""Tests for the QuickBooks and Plaid clients over a mock transport."""

import json

import httpx
import pytest

from ledger_sync.core.errors import NotAuthenticatedError, NotFoundError, SourceFetchError, ValidationError
from ledger_sync.sources.plaid_client import MAX_TRANSACTIONS_PER_ITEM, PlaidClient
from ledger_sync.sources.quickbooks_client import MAX_START_POSITION, PAGE_SIZE, QuickBooksClient


def quickbooks(handler, **kwargs):
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return QuickBooksClient(kwargs.pop('access_token', 'token'), kwargs.pop('realm_id', '123'),
                            http_client=http, **kwargs)


def plaid(handler, client_id='client', secret='secret'):
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return PlaidClient(client_id, secret, 'sandbox', http_client=http)


def query_page(entity_type, count):
    return {'QueryResponse': {entity_type: [{'Id': str(i)} for i in range(count)]}}


def test_quickbooks_query_request():
    """Test the query endpoint, headers and query text."""
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=query_page('Purchase', 3))

    client = quickbooks(handler, environment='sandbox')
    records = client.fetch_all_records('Purchase', "TxnDate >= '2025-01-01'")

    assert len(records) == 3
    request = seen[0]
    assert request.url.host == 'sandbox-quickbooks.api.intuit.com'
    assert request.url.path == '/v3/company/123/query'
    assert request.headers['Authorization'] == 'Bearer token'
    assert request.url.params['query'] == (
        "SELECT * FROM Purchase WHERE TxnDate >= '2025-01-01' STARTPOSITION 1 MAXRESULTS 1000"
    )


def test_quickbooks_stops_on_short_page():
    """Test pagination ends when a page is not full."""
    pages = [PAGE_SIZE, 5]
    starts = []

    def handler(request):
        starts.append(request.url.params['query'].split('STARTPOSITION ')[1].split(' ')[0])
        return httpx.Response(200, json=query_page('Bill', pages.pop(0)))

    records = quickbooks(handler).fetch_all_records('Bill')

    assert len(records) == PAGE_SIZE + 5
    assert starts == ['1', '1001']


def test_quickbooks_pagination_cap():
    """Test pagination stops once the start position passes the cap."""
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=query_page('Purchase', PAGE_SIZE))

    records = quickbooks(handler).fetch_all_records('Purchase')

    assert len(calls) == MAX_START_POSITION // PAGE_SIZE
    assert len(records) == MAX_START_POSITION


def test_quickbooks_errors():
    """Test HTTP failures and missing credentials."""
    unauthorized = quickbooks(lambda request: httpx.Response(401, json={}))
    broken = quickbooks(lambda request: httpx.Response(500, text='oops'))
    calls = []
    anonymous = quickbooks(lambda request: calls.append(request), access_token=None)

    with pytest.raises(SourceFetchError) as exc:
        unauthorized.list_entities('Account')
    assert exc.value.status_code == 401
    with pytest.raises(SourceFetchError):
        broken.list_entities('Account')
    with pytest.raises(NotAuthenticatedError):
        anonymous.fetch_all_records('Account')
    assert calls == []


def test_quickbooks_report_and_categories():
    """Test the report request and the category account filter."""
    def handler(request):
        if request.url.path.endswith('/reports/ProfitAndLoss'):
            assert request.url.params['summarize_column_by'] == 'Month'
            assert request.url.params['start_date'] == '2025-01-01'
            return httpx.Response(200, json={'Rows': {'Row': []}})
        return httpx.Response(200, json={'QueryResponse': {'Account': [
            {'Id': '1', 'Name': 'Office Supplies', 'AccountType': 'Expense'},
            {'Id': '2', 'Name': 'Checking', 'AccountType': 'Bank'},
            {'Id': '3', 'Name': 'Materials', 'AccountType': 'Cost of Goods Sold'},
        ]}})

    client = quickbooks(handler)

    assert client.fetch_report_summary('ProfitAndLoss', '2025-01-01', '2025-12-31') == {'Rows': {'Row': []}}
    assert [c.name for c in client.fetch_categories()] == ['Office Supplies', 'Materials']


def purchase_record():
    return {
        'Id': '12',
        'SyncToken': '3',
        'TxnDate': '2025-03-01',
        'Line': [
            {'Id': '1', 'Amount': 40, 'DetailType': 'AccountBasedExpenseLineDetail',
             'AccountBasedExpenseLineDetail': {'AccountRef': {'value': '99', 'name': 'Uncategorized Expense'}}},
            {'Id': '2', 'Amount': 5, 'DetailType': 'ItemBasedExpenseLineDetail',
             'ItemBasedExpenseLineDetail': {'ItemRef': {'value': '4'}}},
        ],
    }


def test_quickbooks_update_transaction_category():
    """Test the record is re-read, expense lines repointed and posted as an update."""
    seen = []

    def handler(request):
        seen.append(request)
        if request.method == 'GET':
            return httpx.Response(200, json={'QueryResponse': {'Purchase': [purchase_record()]}})
        body = json.loads(request.content)
        body['SyncToken'] = '4'
        return httpx.Response(200, json={'Purchase': body})

    updated = quickbooks(handler).update_transaction_category('Purchase', '12', '42', 'Office Supplies')

    lookup, update = seen
    assert lookup.url.params['query'] == "SELECT * FROM Purchase WHERE Id = '12'"
    assert update.method == 'POST'
    assert update.url.path == '/v3/company/123/purchase'
    assert update.url.params['operation'] == 'update'
    assert update.headers['Authorization'] == 'Bearer token'
    assert update.headers['Content-Type'] == 'application/json'

    posted = json.loads(update.content)
    assert posted['SyncToken'] == '3'
    assert posted['Line'][0]['AccountBasedExpenseLineDetail']['AccountRef'] == {'value': '42', 'name': 'Office Supplies'}
    assert 'AccountBasedExpenseLineDetail' not in posted['Line'][1]
    assert updated['SyncToken'] == '4'


def test_quickbooks_update_missing_or_unsupported_record():
    """Test an unknown record and a record without expense lines are rejected before any write."""
    posts = []

    def handler(request):
        if request.method == 'POST':
            posts.append(request)
            return httpx.Response(200, json={})
        if "Id = '404'" in request.url.params['query']:
            return httpx.Response(200, json={'QueryResponse': {}})
        return httpx.Response(200, json={'QueryResponse': {'Deposit': [{'Id': '7', 'Line': [
            {'Amount': 10, 'DetailType': 'DepositLineDetail', 'DepositLineDetail': {}},
        ]}]}})

    client = quickbooks(handler)

    with pytest.raises(NotFoundError):
        client.update_transaction_category('Purchase', '404', '42', 'Office Supplies')
    with pytest.raises(ValidationError):
        client.update_transaction_category('Deposit', '7', '42', 'Office Supplies')
    assert posts == []


def test_plaid_sync_request():
    """Test the sync call sends credentials and cursor."""
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={'added': [{'transaction_id': 't1'}], 'next_cursor': 'c2', 'has_more': False})

    page = plaid(handler).sync_transactions('access-1', 'c1')

    assert bodies[0] == {'client_id': 'client', 'secret': 'secret', 'access_token': 'access-1',
                         'cursor': 'c1', 'count': 500}
    assert page.next_cursor == 'c2'
    assert page.added == [{'transaction_id': 't1'}]


def test_plaid_refresh_request():
    """Test the refresh call posts the access token with credentials."""
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={'request_id': 'r1'})

    plaid(handler).refresh_transactions('access-1')

    assert seen[0].url.path == '/transactions/refresh'
    assert json.loads(seen[0].content) == {'client_id': 'client', 'secret': 'secret', 'access_token': 'access-1'}


def test_plaid_pages_until_total():
    """Test offset pagination stops at the reported total."""
    offsets = []

    def handler(request):
        offset = json.loads(request.content)['options']['offset']
        offsets.append(offset)
        count = min(500, 1200 - offset)
        return httpx.Response(200, json={
            'transactions': [{'transaction_id': f"t{offset + i}"} for i in range(count)],
            'total_transactions': 1200,
        })

    items = plaid(handler).fetch_all_transactions('access-1', '2025-01-01', '2025-12-31')

    assert len(items) == 1200
    assert offsets == [0, 500, 1000]


def test_plaid_pagination_cap():
    """Test offset pagination stops at the per-item cap."""
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={
            'transactions': [{'transaction_id': 'x'}] * 500,
            'total_transactions': 100000,
        })

    items = plaid(handler).fetch_all_transactions('access-1', '2025-01-01', '2025-12-31')

    assert len(items) == MAX_TRANSACTIONS_PER_ITEM
    assert len(calls) == MAX_TRANSACTIONS_PER_ITEM // 500


def test_plaid_errors():
    """Test error payloads and missing configuration."""
    client = plaid(lambda request: httpx.Response(400, json={
        'error_code': 'ITEM_LOGIN_REQUIRED', 'error_message': 'login required',
    }))

    with pytest.raises(SourceFetchError) as exc:
        client.remove_item('access-1')
    assert 'login required' in str(exc.value)
    assert exc.value.status_code == 400

    with pytest.raises(NotAuthenticatedError):
        plaid(lambda request: httpx.Response(200, json={}), client_id=None).get_accounts('access-1')

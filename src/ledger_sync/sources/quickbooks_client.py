"""
QuickBooks Online client

Thin wrapper over the accounting query, report and update endpoints. OAuth
is not handled here: the caller supplies a current access token and realm id.
"""
from typing import Dict, List, Optional

import httpx

from ledger_sync.core.errors import NotAuthenticatedError, NotFoundError, SourceFetchError, ValidationError
from ledger_sync.core.models import Category


QB_API_BASE = {
    'sandbox': 'https://sandbox-quickbooks.api.intuit.com',
    'production': 'https://quickbooks.api.intuit.com',
}

PAGE_SIZE = 1000
# Hard stop for pagination even if upstream keeps returning full pages
MAX_START_POSITION = 10000

CATEGORY_ACCOUNT_TYPES = ('Expense', 'Cost of Goods Sold', 'Other Expense', 'Other Current Liability')
EXPENSE_LINE_DETAIL = 'AccountBasedExpenseLineDetail'


class QuickBooksClient:
    """
    Ledger source: paginated entity queries, summary reports and category write-back
    """

    def __init__(self,
                 access_token: Optional[str],
                 realm_id: Optional[str],
                 environment: str = 'production',
                 http_client: Optional[httpx.Client] = None,
                 timeout: float = 60.0):
        """
        Args:
            access_token: OAuth bearer token (None means not connected)
            realm_id: Company id
            environment: 'sandbox' or 'production'
            http_client: Pre-built httpx client (tests pass one with a MockTransport)
            timeout: Request timeout in seconds
        """
        self.access_token = access_token
        self.realm_id = realm_id
        self.environment = environment
        self.base_url = QB_API_BASE['sandbox'] if environment == 'sandbox' else QB_API_BASE['production']
        self.http = http_client or httpx.Client(timeout=timeout)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token and self.realm_id)

    def ensure_authenticated(self):
        if not self.is_authenticated:
            raise NotAuthenticatedError("QuickBooks is not connected")

    def close(self):
        self.http.close()

    def _request(self, method: str, endpoint: str, params: Optional[Dict] = None, body: Optional[Dict] = None) -> Dict:
        self.ensure_authenticated()

        url = f"{self.base_url}/v3/company/{self.realm_id}{endpoint}"
        headers = {
            'Authorization': f"Bearer {self.access_token}",
            'Accept': 'application/json',
        }

        try:
            response = self.http.request(method, url, params=params, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise SourceFetchError('quickbooks', f"{endpoint}: {e}") from e

        if response.status_code == 401:
            raise SourceFetchError('quickbooks', f"{endpoint}: unauthorized", status_code=401)
        if response.is_error:
            raise SourceFetchError(
                'quickbooks',
                f"{endpoint}: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )
        return response.json()

    def _get(self, endpoint: str, params: Dict) -> Dict:
        return self._request('GET', endpoint, params=params)

    def _post(self, endpoint: str, body: Dict, params: Optional[Dict] = None) -> Dict:
        return self._request('POST', endpoint, params=params, body=body)

    def list_entities(self,
                      entity_type: str,
                      where: str = '',
                      start_position: int = 1,
                      max_results: int = PAGE_SIZE) -> List[Dict]:
        """
        Fetch one page of an entity type

        Args:
            entity_type: e.g. 'Purchase', 'Account'
            where: Filter expression without the WHERE keyword
            start_position: 1-based offset
            max_results: Page size

        Returns:
            Raw records (possibly empty)
        """
        query = f"SELECT * FROM {entity_type}"
        if where:
            query += f" WHERE {where}"
        query += f" STARTPOSITION {start_position} MAXRESULTS {max_results}"

        result = self._get('/query', {'query': query})
        return (result.get('QueryResponse') or {}).get(entity_type) or []

    def fetch_all_records(self, entity_type: str, where: str = '') -> List[Dict]:
        """
        Fetch every record of an entity type, page by page

        Stops on a short page or once the start position passes the cap.
        """
        all_records = []
        start_position = 1

        while True:
            records = self.list_entities(entity_type, where, start_position, PAGE_SIZE)
            all_records.extend(records)

            if len(records) < PAGE_SIZE:
                break
            start_position += PAGE_SIZE
            if start_position > MAX_START_POSITION:
                print(f"⚠️  {entity_type}: stopped at {len(all_records)} records (pagination cap)")
                break

        return all_records

    def fetch_report_summary(self,
                             report_type: str,
                             start_date: str,
                             end_date: str,
                             group_by: str = 'Month') -> Dict:
        """Fetch a summary report (e.g. ProfitAndLoss) as its row/column tree"""
        return self._get(f"/reports/{report_type}", {
            'start_date': start_date,
            'end_date': end_date,
            'summarize_column_by': group_by,
        })

    def fetch_categories(self) -> List[Category]:
        """Chart of accounts filtered to expense-bearing account types"""
        accounts = self.fetch_all_records('Account')
        return [
            Category.from_account(a)
            for a in accounts
            if a.get('AccountType') in CATEGORY_ACCOUNT_TYPES
        ]

    def get_record(self, entity_type: str, record_id: str) -> Dict:
        """
        Fetch one record by Id

        Raises:
            NotFoundError: no record of that type has the Id
        """
        result = self._get('/query', {'query': f"SELECT * FROM {entity_type} WHERE Id = '{record_id}'"})
        records = (result.get('QueryResponse') or {}).get(entity_type) or []
        if not records:
            raise NotFoundError(f"{entity_type} {record_id} not found")
        return records[0]

    def update_transaction_category(self,
                                    entity_type: str,
                                    record_id: str,
                                    category_id: str,
                                    category_name: str) -> Dict:
        """
        Write an approved category back to a ledger transaction

        Re-reads the record so the update carries the current SyncToken, then
        points every account-based expense line at the new account.

        Args:
            entity_type: e.g. 'Purchase', 'Bill'
            record_id: Ledger Id of the transaction
            category_id: Target account id
            category_name: Target account name

        Returns:
            The updated record as returned by the ledger

        Raises:
            NotFoundError: the record does not exist
            ValidationError: the record has no account-based expense lines
        """
        record = self.get_record(entity_type, record_id)

        expense_lines = [
            line for line in record.get('Line') or []
            if line.get('DetailType') == EXPENSE_LINE_DETAIL or line.get(EXPENSE_LINE_DETAIL) is not None
        ]
        if not expense_lines:
            raise ValidationError(f"{entity_type} {record_id} has no expense lines to recategorize")

        for line in expense_lines:
            detail = line.get(EXPENSE_LINE_DETAIL) or {}
            detail['AccountRef'] = {'value': category_id, 'name': category_name}
            line[EXPENSE_LINE_DETAIL] = detail

        result = self._post(f"/{entity_type.lower()}", record, params={'operation': 'update'})
        print(f"✅ Updated {entity_type} {record_id} → {category_name}")
        return result.get(entity_type) or record

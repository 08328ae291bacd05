"""
Plaid client

Bank-feed source: cursor-based transaction sync, offset-paginated
transaction listing, and the link/remove calls the connection registry
needs. Amounts are passed through untouched (Plaid: positive = money out).
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import httpx

from ledger_sync.core.errors import NotAuthenticatedError, SourceFetchError


PLAID_ENVS = {
    'sandbox': 'https://sandbox.plaid.com',
    'development': 'https://development.plaid.com',
    'production': 'https://production.plaid.com',
}

SYNC_PAGE_SIZE = 500
LIST_PAGE_SIZE = 500
# Hard stop per institution for offset pagination
MAX_TRANSACTIONS_PER_ITEM = 5000


@dataclass
class SyncPage:
    added: List[Dict] = field(default_factory=list)
    next_cursor: Optional[str] = None
    has_more: bool = False


@dataclass
class TransactionPage:
    items: List[Dict] = field(default_factory=list)
    total: int = 0


class PlaidClient:
    """
    Minimal Plaid API client over httpx
    """

    def __init__(self,
                 client_id: Optional[str],
                 secret: Optional[str],
                 environment: str = 'sandbox',
                 http_client: Optional[httpx.Client] = None,
                 timeout: float = 60.0):
        self.client_id = client_id
        self.secret = secret
        self.environment = environment
        self.base_url = PLAID_ENVS.get(environment, PLAID_ENVS['sandbox'])
        self.http = http_client or httpx.Client(
            timeout=timeout,
            headers={'Content-Type': 'application/json'},
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.secret)

    def close(self):
        self.http.close()

    def _post(self, endpoint: str, payload: Dict) -> Dict:
        if not self.is_configured:
            raise NotAuthenticatedError("Plaid not configured. Set PLAID_CLIENT_ID and PLAID_SECRET.")

        body = {'client_id': self.client_id, 'secret': self.secret}
        body.update(payload)

        try:
            response = self.http.post(f"{self.base_url}{endpoint}", json=body)
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise SourceFetchError('plaid', f"{endpoint}: {e}") from e

        if data.get('error_code'):
            raise SourceFetchError(
                'plaid',
                f"{endpoint}: {data.get('error_message') or data['error_code']}",
                status_code=response.status_code,
            )
        if response.is_error:
            raise SourceFetchError('plaid', f"{endpoint}: HTTP {response.status_code}",
                                   status_code=response.status_code)
        return data

    def create_link_token(self, user_id: str = 'ledger-sync-user', client_name: str = 'Ledger Sync') -> str:
        data = self._post('/link/token/create', {
            'user': {'client_user_id': user_id},
            'client_name': client_name,
            'products': ['transactions'],
            'country_codes': ['US'],
            'language': 'en',
            'account_filters': {
                'depository': {'account_subtypes': ['checking', 'savings']},
                'credit': {'account_subtypes': ['credit card']},
            },
        })
        return data['link_token']

    def exchange_public_token(self, public_token: str) -> Dict:
        """Returns dict with access_token and item_id"""
        return self._post('/item/public_token/exchange', {'public_token': public_token})

    def get_accounts(self, access_token: str) -> List[Dict]:
        data = self._post('/accounts/get', {'access_token': access_token})
        return data.get('accounts') or []

    def remove_item(self, access_token: str) -> None:
        """Invalidate the access token upstream"""
        self._post('/item/remove', {'access_token': access_token})

    def refresh_transactions(self, access_token: str) -> None:
        """Ask the institution to pull fresh data; it shows up in a later sync"""
        self._post('/transactions/refresh', {'access_token': access_token})

    def sync_transactions(self, access_token: str, cursor: Optional[str] = None,
                          count: int = SYNC_PAGE_SIZE) -> SyncPage:
        """One /transactions/sync call from the given cursor"""
        data = self._post('/transactions/sync', {
            'access_token': access_token,
            'cursor': cursor or '',
            'count': count,
        })
        return SyncPage(
            added=data.get('added') or [],
            next_cursor=data.get('next_cursor'),
            has_more=bool(data.get('has_more', False)),
        )

    def list_transactions(self, access_token: str, start_date: str, end_date: str,
                          offset: int = 0, count: int = LIST_PAGE_SIZE) -> TransactionPage:
        """One page of /transactions/get"""
        data = self._post('/transactions/get', {
            'access_token': access_token,
            'start_date': start_date,
            'end_date': end_date,
            'options': {'count': count, 'offset': offset},
        })
        return TransactionPage(
            items=data.get('transactions') or [],
            total=int(data.get('total_transactions') or 0),
        )

    def fetch_all_transactions(self, access_token: str, start_date: str, end_date: str) -> List[Dict]:
        """
        Page through /transactions/get

        Stops when offset reaches the reported total, a page comes back
        empty, or the per-item cap is hit.
        """
        items = []
        offset = 0

        while True:
            page = self.list_transactions(access_token, start_date, end_date, offset, LIST_PAGE_SIZE)
            items.extend(page.items)

            if not page.items:
                break
            offset += len(page.items)
            if offset >= page.total:
                break
            if offset >= MAX_TRANSACTIONS_PER_ITEM:
                print(f"⚠️  Stopped at {offset} transactions (pagination cap)")
                break

        return items

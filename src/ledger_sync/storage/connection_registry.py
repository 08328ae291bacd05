"""
Bank connection registry

Keeps the linked institutions (access token, account list, exclusions, sync
cursor) as one list under the 'bank_connections' key, and runs the bank-feed
fetches and refresh requests across all of them.
"""
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from ledger_sync.core.aggregator import sort_transactions
from ledger_sync.core.bank_normalizer import normalize_bank_transactions
from ledger_sync.core.errors import LedgerSyncError, NotFoundError, PersistenceError, SourceFetchError
from ledger_sync.core.models import BankConnection, Transaction


CONNECTIONS_KEY = 'bank_connections'


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class BankSyncResult:
    transactions: List[Transaction] = field(default_factory=list)
    # connection id -> error message
    errors: Dict[str, str] = field(default_factory=dict)


class ConnectionRegistry:
    """
    Linked bank-feed institutions
    """

    def __init__(self, store):
        self.store = store
        self._lock = threading.Lock()
        data = self.store.get(CONNECTIONS_KEY) or []
        self._connections: Tuple[BankConnection, ...] = tuple(BankConnection.from_dict(d) for d in data)

    def list_connections(self) -> Tuple[BankConnection, ...]:
        return self._connections

    def get(self, conn_id: str) -> BankConnection:
        for conn in self._connections:
            if conn.id == conn_id:
                return conn
        raise NotFoundError(f"Connection {conn_id} not found")

    def link(self, plaid, public_token: str, institution: Optional[Dict] = None) -> BankConnection:
        """
        Exchange a link public token and register the new connection

        Args:
            plaid: PlaidClient
            public_token: Token handed back by the link flow
            institution: Link metadata ({'name', 'institution_id'}), optional

        Returns:
            The stored BankConnection
        """
        institution = institution or {}
        exchange = plaid.exchange_public_token(public_token)
        access_token = exchange['access_token']
        accounts = plaid.get_accounts(access_token)

        connection = BankConnection(
            id=f"plaid-{uuid.uuid4().hex[:12]}",
            access_token=access_token,
            item_id=exchange.get('item_id'),
            institution_name=institution.get('name') or 'Unknown Bank',
            institution_id=institution.get('institution_id'),
            accounts=[
                {
                    'id': a.get('account_id'),
                    'name': a.get('name'),
                    'mask': a.get('mask'),
                    'type': a.get('type'),
                    'subtype': a.get('subtype'),
                }
                for a in accounts
            ],
            connected_at=_utcnow(),
        )

        with self._lock:
            self._save(self._connections + (connection,))

        print(f"✅ Connected {connection.institution_name} ({len(connection.accounts)} accounts)")
        return connection

    def set_account_excluded(self, conn_id: str, account_id: str, exclude: bool = True) -> BankConnection:
        """Include or exclude one account's transactions from future fetches"""
        def update(conn):
            excluded = [a for a in conn.excluded_accounts if a != account_id]
            if exclude:
                excluded.append(account_id)
            return replace(conn, excluded_accounts=excluded)

        return self._update(conn_id, update)

    def record_sync(self, conn_id: str, next_cursor: Optional[str], synced_at: Optional[str] = None) -> BankConnection:
        """
        Store the cursor returned by a sync

        An empty next cursor keeps the previous one, so the position never
        goes backwards.
        """
        def update(conn):
            return replace(
                conn,
                cursor=next_cursor or conn.cursor,
                last_synced=synced_at or _utcnow(),
            )

        return self._update(conn_id, update)

    def disconnect(self, conn_id: str, plaid=None) -> BankConnection:
        """
        Remove a connection

        The upstream token is invalidated first when a configured client is
        given; if that fails the connection is still removed locally.
        """
        connection = self.get(conn_id)

        if plaid is not None and getattr(plaid, 'is_configured', True):
            try:
                plaid.remove_item(connection.access_token)
            except LedgerSyncError as e:
                print(f"⚠️  Could not remove item upstream for {connection.institution_name}: {e}")

        with self._lock:
            self._save(tuple(c for c in self._connections if c.id != conn_id))

        print(f"✅ Disconnected {connection.institution_name}")
        return connection

    def _update(self, conn_id: str, fn) -> BankConnection:
        with self._lock:
            connections = list(self._connections)
            for idx, conn in enumerate(connections):
                if conn.id == conn_id:
                    updated = fn(conn)
                    connections[idx] = updated
                    break
            else:
                raise NotFoundError(f"Connection {conn_id} not found")

            self._save(tuple(connections))
        return updated

    def _save(self, connections: Tuple[BankConnection, ...]):
        try:
            self.store.put(CONNECTIONS_KEY, [c.to_dict() for c in connections])
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Could not save bank connections: {e}") from e
        self._connections = connections


def sync_bank_feeds(registry: ConnectionRegistry, plaid) -> BankSyncResult:
    """
    One cursor sync per connection

    A failing institution is recorded in errors and the others continue.
    """
    result = BankSyncResult()

    for connection in registry.list_connections():
        try:
            page = plaid.sync_transactions(connection.access_token, connection.cursor)
        except SourceFetchError as e:
            print(f"⚠️  Sync failed for {connection.institution_name}: {e}")
            result.errors[connection.id] = str(e)
            continue

        transactions = normalize_bank_transactions(page.added, connection, source_type='sync')
        result.transactions.extend(transactions)
        registry.record_sync(connection.id, page.next_cursor)
        print(f"  → {connection.institution_name}: {len(transactions)} transactions")

    result.transactions = sort_transactions(result.transactions)
    return result


def list_bank_transactions(registry: ConnectionRegistry, plaid, start_date: str, end_date: str) -> BankSyncResult:
    """Date-range fetch across all connections, sorted date descending"""
    result = BankSyncResult()

    for connection in registry.list_connections():
        try:
            items = plaid.fetch_all_transactions(connection.access_token, start_date, end_date)
        except SourceFetchError as e:
            print(f"⚠️  Fetch failed for {connection.institution_name}: {e}")
            result.errors[connection.id] = str(e)
            continue

        result.transactions.extend(
            normalize_bank_transactions(items, connection, source_type='transactions')
        )

    result.transactions = sort_transactions(result.transactions)
    return result


def refresh_bank_feeds(registry: ConnectionRegistry, plaid) -> Dict[str, str]:
    """
    Request an upstream refresh for every connection

    Returns:
        conn_id -> error for the connections whose request failed
    """
    errors = {}

    for connection in registry.list_connections():
        try:
            plaid.refresh_transactions(connection.access_token)
        except SourceFetchError as e:
            print(f"⚠️  Refresh failed for {connection.institution_name}: {e}")
            errors[connection.id] = str(e)
            continue
        print(f"  → {connection.institution_name}: refresh requested")

    return errors

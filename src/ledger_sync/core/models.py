"""
Core data structures

Canonical shapes shared by the normalizers, the resolver, the rule store
and the aggregator. Source-native records never leave the normalizers;
everything downstream works on these.
"""
from dataclasses import dataclass, field, asdict
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional


# Category names that mean "nobody has decided yet"
UNCATEGORIZED_KEYWORDS = ('uncategorized', 'ask my accountant', 'undeposited')

AUTO_APPROVE_THRESHOLD = 0.95
UNCLEAR_THRESHOLD = 0.5

PATTERN_EXACT = 'exact'
PATTERN_STARTS_WITH = 'starts_with'
PATTERN_CONTAINS = 'contains'
PATTERN_TYPES = (PATTERN_EXACT, PATTERN_STARTS_WITH, PATTERN_CONTAINS)

SOURCE_LEARNED_RULE = 'learned_rule'
SOURCE_AI = 'ai'


class SourceSystem(str, Enum):
    LEDGER = 'ledger'
    BANK_FEED = 'bank_feed'


class TransactionKind(str, Enum):
    EXPENSE = 'expense'
    INCOME = 'income'


def is_uncategorized(category_name: Optional[str]) -> bool:
    """True when a category is unset or one of the generic placeholders"""
    if not category_name:
        return True
    lower = category_name.lower()
    return any(kw in lower for kw in UNCATEGORIZED_KEYWORDS)


@dataclass(frozen=True)
class Transaction:
    """One normalized transaction line"""
    id: str
    source_system: SourceSystem
    source_type: str
    source_id: str
    date: date
    description: str
    amount: Decimal
    kind: TransactionKind
    category: Optional[str]
    counterparty_name: str = ''
    category_id: Optional[str] = None
    needs_review: bool = False
    confidence: Optional[float] = None
    confidence_source: Optional[str] = None
    is_payroll: bool = False

    # Source extras
    payment_type: Optional[str] = None
    account_id: Optional[str] = None
    institution: Optional[str] = None
    category_detailed: Optional[str] = None
    pending: bool = False

    @property
    def search_text(self) -> str:
        """Lower-cased text that rules are matched against"""
        parts = [self.description or '', self.counterparty_name or '']
        return ' '.join(p for p in parts if p).lower()

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['source_system'] = self.source_system.value
        data['kind'] = self.kind.value
        data['date'] = self.date.isoformat()
        data['amount'] = str(self.amount)
        return data


@dataclass(frozen=True)
class Category:
    """Candidate category (an expense-bearing ledger account)"""
    id: str
    name: str
    fully_qualified_name: str
    type: str
    sub_type: Optional[str] = None
    active: bool = True

    @classmethod
    def from_account(cls, account: Dict) -> 'Category':
        """Build from a raw chart-of-accounts record"""
        return cls(
            id=str(account.get('Id')),
            name=account.get('Name', ''),
            fully_qualified_name=account.get('FullyQualifiedName') or account.get('Name', ''),
            type=account.get('AccountType', ''),
            sub_type=account.get('AccountSubType'),
            active=bool(account.get('Active', True)),
        )


@dataclass
class Rule:
    """Learned pattern -> category mapping"""
    id: str
    pattern: str
    pattern_type: str
    category_id: Optional[str]
    category_name: str
    confidence: float = 1.0
    times_used: int = 1
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> 'Rule':
        return cls(
            id=data['id'],
            pattern=data['pattern'],
            pattern_type=data.get('pattern_type') or PATTERN_CONTAINS,
            category_id=data.get('category_id'),
            category_name=data.get('category_name', ''),
            confidence=float(data.get('confidence', 1.0)),
            times_used=int(data.get('times_used', 1)),
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
        )


@dataclass(frozen=True)
class Suggestion:
    """A proposed category with its provenance"""
    category_id: Optional[str]
    category_name: Optional[str]
    confidence: float
    source: str
    reasoning: Optional[str] = None
    rule_id: Optional[str] = None

    @property
    def is_unclear(self) -> bool:
        return not self.category_id and not self.category_name

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class CategorizationResult:
    """Outcome of resolving one transaction"""
    transaction_id: str
    suggestion: Optional[Suggestion]
    auto_approved: bool = False

    @property
    def needs_review(self) -> bool:
        return not self.auto_approved

    def to_dict(self) -> Dict:
        return {
            'transaction_id': self.transaction_id,
            'suggestion': self.suggestion.to_dict() if self.suggestion else None,
            'auto_approved': self.auto_approved,
        }


@dataclass
class BankConnection:
    """One linked institution at the bank-feed provider"""
    id: str
    access_token: str
    institution_name: str
    item_id: Optional[str] = None
    institution_id: Optional[str] = None
    accounts: List[Dict] = field(default_factory=list)
    excluded_accounts: List[str] = field(default_factory=list)
    cursor: Optional[str] = None
    connected_at: Optional[str] = None
    last_synced: Optional[str] = None

    def is_excluded(self, account_id: Optional[str]) -> bool:
        return account_id in self.excluded_accounts

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> 'BankConnection':
        return cls(
            id=data['id'],
            access_token=data['access_token'],
            institution_name=data.get('institution_name') or 'Unknown Bank',
            item_id=data.get('item_id'),
            institution_id=data.get('institution_id'),
            accounts=list(data.get('accounts') or []),
            excluded_accounts=list(data.get('excluded_accounts') or []),
            cursor=data.get('cursor'),
            connected_at=data.get('connected_at'),
            last_synced=data.get('last_synced'),
        )

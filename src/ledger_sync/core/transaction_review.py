"""
Review approval

Writes a reviewed category back to the ledger transaction and, optionally,
learns a rule from it so the next matching transaction is auto-approved.
"""
from dataclasses import dataclass
from typing import Dict, Optional

from .errors import ValidationError
from .models import PATTERN_CONTAINS, PATTERN_TYPES, Rule, SourceSystem, Transaction
from .rule_store import RuleStore


# Ledger entity types whose lines carry an expense account reference
WRITABLE_ENTITY_TYPES = ('Purchase', 'Bill', 'VendorCredit')


@dataclass
class Approval:
    entity_type: str
    record_id: str
    category_id: str
    category_name: str
    record: Dict
    rule: Optional[Rule] = None


def approve_category(ledger_client,
                     entity_type: str,
                     record_id: str,
                     category_id: str,
                     category_name: str,
                     rule_store: Optional[RuleStore] = None,
                     pattern: Optional[str] = None,
                     pattern_type: str = PATTERN_CONTAINS) -> Approval:
    """
    Apply a reviewed category to a ledger transaction

    Inputs are checked before anything is written, so a bad rule pattern
    never leaves a half-applied approval behind.

    Args:
        ledger_client: QuickBooksClient (anything with update_transaction_category)
        entity_type: Ledger entity name, e.g. 'Purchase'
        record_id: Ledger Id of the transaction
        category_id: Approved category (account) id
        category_name: Approved category name
        rule_store: Where to learn the rule (required with pattern)
        pattern: Optional text to learn as a rule for this category
        pattern_type: 'exact', 'starts_with' or 'contains'

    Returns:
        Approval with the updated ledger record and the learned rule, if any

    Raises:
        ValidationError: unsupported entity type, missing category or bad pattern
        NotFoundError: the ledger has no such record
    """
    if entity_type not in WRITABLE_ENTITY_TYPES:
        raise ValidationError(
            f"Cannot recategorize {entity_type} (expected one of {', '.join(WRITABLE_ENTITY_TYPES)})"
        )
    if not category_id or not category_name:
        raise ValidationError("Category id and name are required")
    if pattern is not None:
        if rule_store is None:
            raise ValidationError("A rule store is needed to learn a rule")
        if not pattern.strip():
            raise ValidationError("Rule pattern must not be empty")
        if pattern_type not in PATTERN_TYPES:
            raise ValidationError(f"Unknown pattern type '{pattern_type}'")

    record = ledger_client.update_transaction_category(entity_type, record_id, category_id, category_name)

    rule = None
    if pattern is not None:
        rule = rule_store.teach(pattern, category_id, category_name, pattern_type)

    return Approval(
        entity_type=entity_type,
        record_id=record_id,
        category_id=category_id,
        category_name=category_name,
        record=record,
        rule=rule,
    )


def approve_transaction(ledger_client,
                        transaction: Transaction,
                        category_id: str,
                        category_name: str,
                        rule_store: Optional[RuleStore] = None,
                        pattern: Optional[str] = None,
                        pattern_type: str = PATTERN_CONTAINS) -> Approval:
    """Same as approve_category, addressed by a normalized ledger Transaction"""
    if transaction.source_system != SourceSystem.LEDGER:
        raise ValidationError(f"{transaction.id} is not a ledger transaction")
    return approve_category(
        ledger_client, transaction.source_type, transaction.source_id,
        category_id, category_name, rule_store, pattern, pattern_type,
    )

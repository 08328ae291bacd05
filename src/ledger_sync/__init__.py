"""
Ledger Sync

Pulls transactions from an accounting ledger and linked bank feeds,
normalizes them into one signed-amount model, and categorizes them with
learned rules backed by an LLM suggestion.
"""

__version__ = "1.0.0"

# Expose main classes for easy imports
from .core.models import Transaction, Category, Rule, Suggestion
from .core.rule_store import RuleStore
from .core.rule_matcher import RuleMatcher
from .core.categorization_orchestrator import CategoryResolver
from .core.financial_data import FinancialDataService

__all__ = [
    'Transaction',
    'Category',
    'Rule',
    'Suggestion',
    'RuleStore',
    'RuleMatcher',
    'CategoryResolver',
    'FinancialDataService',
]

"""
Categorization Orchestrator

Resolves a category for a normalized transaction by trying, in order:
1. Learned rules (auto-approved at >= 95% confidence, classifier skipped)
2. LLM suggestion (never auto-approved, whatever confidence it reports)
3. Nothing -> the transaction stays in the review queue

A rule match below the auto-approve threshold is kept as the fallback
when the LLM has nothing to say.
"""
from dataclasses import replace
from datetime import timedelta
from typing import Iterable, List, Optional

from .errors import NotAuthenticatedError
from .models import (
    AUTO_APPROVE_THRESHOLD,
    SOURCE_LEARNED_RULE,
    Category,
    CategorizationResult,
    Suggestion,
    Transaction,
    is_uncategorized,
)
from .rule_matcher import RuleMatcher


class CategoryResolver:
    """
    Orchestrates transaction categorization using rules then the LLM
    """

    def __init__(self,
                 rule_matcher: RuleMatcher,
                 category_cache=None,
                 classifier=None,
                 auto_approve_threshold: float = AUTO_APPROVE_THRESHOLD,
                 max_category_age: Optional[timedelta] = None):
        """
        Args:
            rule_matcher: Matcher over the current rule set
            category_cache: CategoryCache supplying candidate categories
            classifier: LLMCategorizer (or anything with classify()); None disables tier 2
            auto_approve_threshold: Rule confidence at which review is skipped
            max_category_age: Staleness threshold for the category cache
        """
        self.rule_matcher = rule_matcher
        self.category_cache = category_cache
        self.classifier = classifier
        self.auto_approve_threshold = auto_approve_threshold
        self.max_category_age = max_category_age

        # Fixed order; first auto-approved suggestion ends the chain
        self.tiers = (self._rule_tier, self._classifier_tier)

        self.stats = {
            'total': 0,
            'rule_match': 0,
            'auto_approved': 0,
            'llm_suggest': 0,
            'llm_failures': 0,
            'needs_review': 0,
        }

    def _rule_tier(self, transaction: Transaction, categories: Optional[List[Category]]) -> Optional[Suggestion]:
        suggestion = self.rule_matcher.categorize(transaction)
        if suggestion is not None:
            self.stats['rule_match'] += 1
        return suggestion

    def _classifier_tier(self, transaction: Transaction, categories: Optional[List[Category]]) -> Optional[Suggestion]:
        if self.classifier is None or not getattr(self.classifier, 'enabled', True):
            return None

        if categories is None:
            categories = self.candidate_categories()

        suggestion = self.classifier.classify(transaction, categories)
        if suggestion is not None:
            self.stats['llm_suggest'] += 1
        return suggestion

    def _auto_approves(self, suggestion: Suggestion) -> bool:
        return (suggestion.source == SOURCE_LEARNED_RULE
                and suggestion.confidence >= self.auto_approve_threshold)

    def candidate_categories(self) -> List[Category]:
        """Categories from the cache, refreshed first if missing or stale"""
        if self.category_cache is None:
            return []
        return self.category_cache.get(self.max_category_age)

    def resolve(self, transaction: Transaction, categories: Optional[List[Category]] = None) -> CategorizationResult:
        """
        Categorize a single transaction

        Args:
            transaction: Normalized transaction
            categories: Candidate categories; taken from the cache when omitted

        Returns:
            CategorizationResult; suggestion is None when nothing matched
        """
        self.stats['total'] += 1
        suggestion = None

        for tier in self.tiers:
            candidate = tier(transaction, categories)
            if candidate is None:
                continue
            if self._auto_approves(candidate):
                self.stats['auto_approved'] += 1
                return CategorizationResult(transaction.id, candidate, auto_approved=True)
            suggestion = candidate

        self.stats['needs_review'] += 1
        return CategorizationResult(transaction.id, suggestion, auto_approved=False)

    def resolve_batch(self,
                      transactions: Iterable[Transaction],
                      categories: Optional[List[Category]] = None) -> List[CategorizationResult]:
        """
        Categorize transactions one at a time, in order

        One transaction failing does not fail the batch; it comes back with
        no suggestion. Missing authentication still aborts.

        Returns:
            One CategorizationResult per input transaction, same order
        """
        results = []
        for txn in transactions:
            try:
                results.append(self.resolve(txn, categories))
            except NotAuthenticatedError:
                raise
            except Exception as e:
                print(f"⚠️  Categorization failed for {txn.id}: {e}")
                self.stats['llm_failures'] += 1
                self.stats['needs_review'] += 1
                results.append(CategorizationResult(txn.id, None, auto_approved=False))
        return results

    def print_stats(self):
        """Print categorization statistics"""
        if self.stats['total'] == 0:
            print("No transactions categorized yet")
            return

        total = self.stats['total']

        print("\n" + "=" * 80)
        print("📊 CATEGORIZATION STATISTICS")
        print("=" * 80)
        print(f"Total transactions: {total}")
        print(f"\n✅ Categorization Results:")
        print(f"  • Rule match: {self.stats['rule_match']} ({self.stats['rule_match']/total*100:.1f}%)")

        if self.classifier is not None:
            print(f"  • LLM suggestion: {self.stats['llm_suggest']} ({self.stats['llm_suggest']/total*100:.1f}%)")
            if self.stats['llm_failures']:
                print(f"  • Failed: {self.stats['llm_failures']}")

        print(f"\n📋 Review Status:")
        print(f"  • Auto-approved (≥{self.auto_approve_threshold*100:.0f}%): {self.stats['auto_approved']} ({self.stats['auto_approved']/total*100:.1f}%)")
        print(f"  • Needs review: {self.stats['needs_review']} ({self.stats['needs_review']/total*100:.1f}%)")

        print("=" * 80)


def apply_result(transaction: Transaction, result: CategorizationResult) -> Transaction:
    """
    Return a copy of the transaction carrying the resolved category

    Unclear or missing suggestions leave the category alone and flag review.
    """
    suggestion = result.suggestion

    if suggestion is None or suggestion.is_unclear:
        return replace(
            transaction,
            needs_review=True,
            confidence=suggestion.confidence if suggestion else None,
            confidence_source=suggestion.source if suggestion else None,
        )

    return replace(
        transaction,
        category=suggestion.category_name,
        category_id=suggestion.category_id,
        confidence=suggestion.confidence,
        confidence_source=suggestion.source,
        needs_review=(not result.auto_approved) or is_uncategorized(suggestion.category_name),
    )

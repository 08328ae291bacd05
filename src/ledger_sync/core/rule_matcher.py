"""
Rule Matcher Engine

Matches transactions against learned rules. Match types:
- exact: search text equals the pattern
- starts_with: search text starts with the pattern
- contains (default): pattern appears anywhere in the search text

Rules are scanned in stored order and the first match wins. There is no
ranking by specificity, so the order rules were taught in matters.
"""
from typing import Iterable, Optional

from .models import (
    PATTERN_EXACT,
    PATTERN_STARTS_WITH,
    SOURCE_LEARNED_RULE,
    Rule,
    Suggestion,
    Transaction,
)


def match_rule(rule: Rule, search_text: str) -> bool:
    """
    Check if a rule matches the given search text

    Args:
        rule: Rule to test
        search_text: Lower-cased description + counterparty

    Returns:
        True if rule matches
    """
    pattern = rule.pattern.lower()

    if rule.pattern_type == PATTERN_EXACT:
        return search_text == pattern
    if rule.pattern_type == PATTERN_STARTS_WITH:
        return search_text.startswith(pattern)
    # Anything else behaves as 'contains'
    return pattern in search_text


def find_matching_rule(rules: Iterable[Rule], search_text: str) -> Optional[Rule]:
    """Return the first rule (in iteration order) that matches"""
    for rule in rules:
        if match_rule(rule, search_text):
            return rule
    return None


def rule_suggestion(rule: Rule) -> Suggestion:
    """Turn a matched rule into a Suggestion"""
    return Suggestion(
        category_id=rule.category_id,
        category_name=rule.category_name,
        confidence=rule.confidence if rule.confidence is not None else 1.0,
        source=SOURCE_LEARNED_RULE,
        reasoning=f"Matched rule {rule.id} ({rule.pattern_type}: '{rule.pattern}')",
        rule_id=rule.id,
    )


class RuleMatcher:
    """
    Matches transactions against the current rule set of a RuleStore
    """

    def __init__(self, rule_store):
        """
        Args:
            rule_store: Anything with a list_rules() method returning rules
                        in stored order (normally a RuleStore)
        """
        self.rule_store = rule_store
        self.stats = {
            'matches': 0,
            'no_match': 0,
            'by_pattern_type': {},
        }

    def categorize(self, transaction: Transaction) -> Optional[Suggestion]:
        """
        Categorize a transaction using rules

        Args:
            transaction: Normalized transaction

        Returns:
            Suggestion from the first matching rule, or None
        """
        # One snapshot per lookup; a concurrent teach swaps the list, never edits it
        rules = self.rule_store.list_rules()
        rule = find_matching_rule(rules, transaction.search_text)

        if rule is None:
            self.stats['no_match'] += 1
            return None

        self.stats['matches'] += 1
        by_type = self.stats['by_pattern_type']
        by_type[rule.pattern_type] = by_type.get(rule.pattern_type, 0) + 1
        return rule_suggestion(rule)

    def print_stats(self):
        """Print matching statistics"""
        total = self.stats['matches'] + self.stats['no_match']
        if total == 0:
            print("No transactions processed yet")
            return

        print("\n" + "=" * 80)
        print("📊 RULE MATCHER STATISTICS")
        print("=" * 80)
        print(f"Total transactions: {total}")
        print(f"  ✅ Matched: {self.stats['matches']} ({self.stats['matches']/total*100:.1f}%)")
        print(f"  ❌ No match: {self.stats['no_match']} ({self.stats['no_match']/total*100:.1f}%)")

        if self.stats['by_pattern_type']:
            print(f"\nMatches by pattern type:")
            for pattern_type, count in sorted(self.stats['by_pattern_type'].items(),
                                              key=lambda x: x[1], reverse=True):
                print(f"  • {pattern_type}: {count}")
        print("=" * 80)

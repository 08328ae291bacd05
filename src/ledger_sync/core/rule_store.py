"""
Rule Store

Owns the learned rules. Rules are kept as one ordered list under a single
key in the persistence collaborator. Every mutation builds a new list,
writes it, and only then swaps the in-memory snapshot, so a reader sees the
old rule set or the new one and never a half-written rule.
"""
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from .errors import PersistenceError, ValidationError
from .models import PATTERN_CONTAINS, PATTERN_TYPES, Rule


RULES_KEY = 'rules'


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_rule_id() -> str:
    return f"rule-{uuid.uuid4().hex[:12]}"


class RuleStore:
    """
    Learned pattern -> category rules, at most one per (pattern, pattern_type)
    """

    def __init__(self, store):
        """
        Args:
            store: Persistence collaborator with get/put/delete
        """
        self.store = store
        self._lock = threading.Lock()
        self._rules: Tuple[Rule, ...] = ()
        self.load()

    def load(self):
        """(Re)load rules from the persistence collaborator"""
        data = self.store.get(RULES_KEY) or []
        self._rules = tuple(Rule.from_dict(item) for item in data)
        if self._rules:
            print(f"✅ Loaded {len(self._rules)} learned rules")

    def list_rules(self) -> Tuple[Rule, ...]:
        """Current rules in stored order"""
        return self._rules

    def get(self, rule_id: str) -> Optional[Rule]:
        for rule in self._rules:
            if rule.id == rule_id:
                return rule
        return None

    def __len__(self):
        return len(self._rules)

    def teach(self,
              pattern: str,
              category_id: Optional[str],
              category_name: str,
              pattern_type: str = PATTERN_CONTAINS) -> Rule:
        """
        Learn (or re-learn) a pattern -> category mapping

        A repeat of the same (pattern, pattern_type) updates the existing rule
        in place: new target category, times_used + 1.

        Args:
            pattern: Text fragment to match (stored lower-cased)
            category_id: Target category id
            category_name: Target category name
            pattern_type: 'exact', 'starts_with' or 'contains'

        Returns:
            The created or updated Rule

        Raises:
            ValidationError: empty pattern or unknown pattern type
            PersistenceError: the rule set could not be written
        """
        normalized = (pattern or '').strip().lower()
        if not normalized:
            raise ValidationError("Rule pattern must not be empty")
        if pattern_type not in PATTERN_TYPES:
            raise ValidationError(
                f"Unknown pattern type '{pattern_type}' (expected one of {', '.join(PATTERN_TYPES)})"
            )

        with self._lock:
            now = _utcnow()
            rules: List[Rule] = list(self._rules)

            for idx, existing in enumerate(rules):
                if existing.pattern.lower() == normalized and existing.pattern_type == pattern_type:
                    rule = replace(
                        existing,
                        category_id=category_id,
                        category_name=category_name,
                        times_used=(existing.times_used or 1) + 1,
                        updated_at=now,
                    )
                    rules[idx] = rule
                    break
            else:
                rule = Rule(
                    id=_new_rule_id(),
                    pattern=normalized,
                    pattern_type=pattern_type,
                    category_id=category_id,
                    category_name=category_name,
                    confidence=1.0,
                    times_used=1,
                    created_at=now,
                    updated_at=now,
                )
                rules.append(rule)

            self._persist(rules)
            self._rules = tuple(rules)

        print(f"✅ Learned rule: \"{normalized}\" ({pattern_type}) → {category_name}")
        return rule

    def delete(self, rule_id: str) -> bool:
        """
        Remove a rule. Already-categorized transactions are left as they are.

        Returns:
            True if a rule was removed, False if no rule had that id

        Raises:
            PersistenceError: the rule set could not be written
        """
        with self._lock:
            rules = [r for r in self._rules if r.id != rule_id]
            if len(rules) == len(self._rules):
                return False

            self._persist(rules)
            self._rules = tuple(rules)

        print(f"✅ Deleted rule {rule_id}")
        return True

    def _persist(self, rules: List[Rule]):
        try:
            self.store.put(RULES_KEY, [r.to_dict() for r in rules])
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Could not save rules: {e}") from e

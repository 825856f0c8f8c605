"""
Escalation rule evaluation.

Pure functions over an already resolved escalation ladder; nothing here does
I/O.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from modcase.datatypes.moderation_config import EscalationRule
from modcase.errors import InvalidConfigError


def sorted_ladder(rules: Iterable[EscalationRule]) -> List[EscalationRule]:
    """Rules in ascending threshold order; ties keep their configured order."""
    return sorted(rules, key=lambda rule: rule.threshold)


def evaluate(rules: Iterable[EscalationRule], trigger_count: int) -> Optional[EscalationRule]:
    """
    Return the rule that fires for ``trigger_count``, if any.

    A rule fires only when the count equals its threshold exactly, so a rule
    that has been passed does not fire again on later cases while a higher
    rule can still fire once the count reaches it.
    """
    for rule in sorted_ladder(rules):
        if rule.threshold == trigger_count:
            return rule
        if rule.threshold > trigger_count:
            break
    return None


def validate_ladder(rules: Iterable[EscalationRule]) -> None:
    """
    Check ladder-wide invariants.

    Raises:
        InvalidConfigError: duplicate rule ids or non-positive thresholds.
    """
    seen: set[str] = set()
    for rule in rules:
        if rule.id in seen:
            raise InvalidConfigError(f"duplicate escalation rule id {rule.id!r}")
        seen.add(rule.id)
        if rule.threshold < 1:
            raise InvalidConfigError(f"escalation rule {rule.id!r} needs a positive threshold")

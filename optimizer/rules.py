"""
Ordered rule lists with first-match-wins semantics.

The mode cascade, price triggers, diagnostic blocks and guard bank are all
written as lists of ``Rule`` objects so that their precedence is the list
order and nothing else.
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors a check may hit on malformed numbers; the check is skipped instead
CHECK_ERRORS = (ArithmeticError, TypeError, ValueError)


@dataclass(frozen=True)
class Rule(Generic[T]):
    """A named predicate/action pair; ``then`` runs only when ``when`` holds."""

    name: str
    when: Callable[..., bool]
    then: Callable[..., T]


def always(*_args: Any) -> bool:
    return True


def first_match(rules: Sequence[Rule[T]], *args: Any) -> T | None:
    """Evaluate rules in order and return the action result of the first match."""
    for rule in rules:
        if rule.when(*args):
            logger.debug(f"Rule matched: {rule.name}")
            return rule.then(*args)
    return None


def run_check(name: str, check: Callable[..., T | None], *args: Any) -> T | None:
    """
    Run one independent check, treating a numeric failure inside it as
    "no finding" so the remaining checks still run.
    """
    try:
        return check(*args)
    except CHECK_ERRORS as e:
        logger.warning(f"Check {name} skipped: {type(e).__name__}: {e}")
        return None


def collect(checks: Iterable[tuple[str, Callable[..., T | None]]], *args: Any) -> list[T]:
    """Run every check in order and keep the non-empty results."""
    results = []
    for name, check in checks:
        result = run_check(name, check, *args)
        if result is not None:
            results.append(result)
    return results

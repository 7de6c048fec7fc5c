"""Ignore-rule matching for commands that should not be logged."""

from __future__ import annotations

import functools
import logging
import re
from collections.abc import Iterable

logger = logging.getLogger(__name__)

DEFAULT_IGNORE_RULES: list[str] = [
    "clear",
    "cmdw_enable",
    "cmdw_disable",
    "cmdw_history",
    "cmdw_history +[0-9]{1,}",
]


@functools.lru_cache(maxsize=256)
def compile_rule(rule: str) -> re.Pattern[str] | None:
    """Compile a rule anchored to the whole command, with one optional trailing ';'.

    Returns None for a malformed pattern.
    """
    try:
        return re.compile(f"(?:{rule});?")
    except re.error as e:
        logger.error("Invalid ignore pattern %r skipped: %s", rule, e)
        return None


def matches(command: str, rules: Iterable[str]) -> bool:
    """Check whether any rule matches the full command. First match wins."""
    for rule in rules:
        compiled = compile_rule(rule)
        if compiled is not None and compiled.fullmatch(command):
            logger.debug("Ignored command: %s (rule: %s)", command, rule)
            return True
    return False


class PatternFilter:
    """Ordered, runtime-extensible set of ignore rules."""

    def __init__(self, rules: Iterable[str] | None = None) -> None:
        self.rules: list[str] = list(DEFAULT_IGNORE_RULES if rules is None else rules)

    def add(self, rule: str) -> None:
        if rule not in self.rules:
            self.rules.append(rule)

    def remove(self, rule: str) -> bool:
        try:
            self.rules.remove(rule)
        except ValueError:
            return False
        return True

    def matches(self, command: str) -> bool:
        return matches(command, self.rules)

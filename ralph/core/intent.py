"""Intent filtering: tell a declared promise apart from one being described.

Each rule looks at the lower-cased text just before a candidate tag and
says whether the candidate should be rejected. Rules are plain callables
so new heuristics can be appended without touching the existing ones.
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

# Characters of context inspected before each candidate.
CONTEXT_WINDOW = 100

_VERBS = r"(say|output|write|respond|print)"

NEGATION_PATTERNS = [
    re.compile(r"\bnot\s+(yet\s+)?" + _VERBS),
    re.compile(r"\bdon'?t\s+" + _VERBS),
    re.compile(r"\bwon'?t\s+" + _VERBS),
    re.compile(r"\bwill\s+not\s+" + _VERBS),
    re.compile(r"\bshould\s+not\s+" + _VERBS),
    re.compile(r"\bwouldn'?t\s+" + _VERBS),
    re.compile(r"\bavoid\s+(saying|outputting|writing)"),
    re.compile(r"\bwithout\s+(saying|outputting|writing)"),
    re.compile(r"\bbefore\s+(saying|outputting|i\s+say)"),
    re.compile(r"\buntil\s+(i\s+)?(say|output|can\s+say)"),
]

QUOTE_CHARS = frozenset("\"'`")


@dataclass(frozen=True)
class RejectionRule:
    """A named predicate over the context window."""

    name: str
    check: Callable[[str], bool]

    def rejects(self, window: str) -> bool:
        return self.check(window)


def context_window(text: str, offset: int, size: int = CONTEXT_WINDOW) -> str:
    """Lower-cased ``size`` characters immediately before ``offset``."""
    return text[max(0, offset - size):offset].lower()


def is_negated(window: str) -> bool:
    """True when a prohibition such as "do not output" precedes the tag."""
    return any(pattern.search(window) for pattern in NEGATION_PATTERNS)


def is_quoted(window: str) -> bool:
    """True when an odd number of quote characters precedes the tag.

    This is a parity count over a fixed window, not a quote parser: a
    quote that opened just outside the window flips the answer.
    """
    return sum(1 for char in window if char in QUOTE_CHARS) % 2 == 1


DEFAULT_RULES: tuple[RejectionRule, ...] = (
    RejectionRule("negation", is_negated),
    RejectionRule("quoting", is_quoted),
)


class IntentFilter:
    """Ordered chain of rejection rules."""

    def __init__(self, rules: Optional[Sequence[RejectionRule]] = None):
        self.rules = tuple(DEFAULT_RULES if rules is None else rules)

    def with_rule(self, rule: RejectionRule) -> "IntentFilter":
        """Return a new filter with ``rule`` appended."""
        return IntentFilter(self.rules + (rule,))

    def rejected_by(self, window: str) -> Optional[str]:
        """Name of the first rule rejecting ``window``, or None."""
        for rule in self.rules:
            if rule.rejects(window):
                return rule.name
        return None

    def accepts(self, window: str) -> bool:
        return self.rejected_by(window) is None

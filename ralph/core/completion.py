"""Completion detection for Ralph.

An agent signals completion by printing ``<promise>TOKEN</promise>`` on a
line of its own. The same tag also shows up when the agent quotes its
instructions, shows an example in a code block, or says it will *not*
print it yet, so every match is checked before it counts.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterator, Optional

import structlog

from ralph.core.fencing import FenceIndex
from ralph.core.intent import CONTEXT_WINDOW, IntentFilter, context_window

log = structlog.get_logger()


@dataclass(frozen=True)
class Candidate:
    """A promise tag located in the output."""

    start: int
    end: int
    text: str
    output: str = field(repr=False, compare=False)

    @property
    def line(self) -> str:
        """Full text of the line holding the tag."""
        line_start = self.output.rfind("\n", 0, self.start) + 1
        line_end = self.output.find("\n", self.end)
        if line_end == -1:
            line_end = len(self.output)
        return self.output[line_start:line_end]

    @property
    def is_standalone(self) -> bool:
        """Whether the tag is the only content on its line.

        Only the whitespace run on either side of the tag is inspected,
        so long lines full of inline tags stay linear.
        """
        before = self.start - 1
        while before >= 0 and self.output[before] != "\n" and self.output[before].isspace():
            before -= 1
        if before >= 0 and self.output[before] != "\n":
            return False

        after = self.end
        while after < len(self.output) and self.output[after] != "\n" and self.output[after].isspace():
            after += 1
        return after == len(self.output) or self.output[after] == "\n"


def promise_pattern(promise: str) -> re.Pattern:
    """Case-insensitive pattern for the tag wrapping ``promise`` literally."""
    return re.compile(
        r"<promise>\s*" + re.escape(promise) + r"\s*</promise>", re.IGNORECASE
    )


def find_candidates(output: str, promise: str) -> Iterator[Candidate]:
    """Yield every non-overlapping promise tag in ``output``."""
    for match in promise_pattern(promise).finditer(output):
        yield Candidate(
            start=match.start(),
            end=match.end(),
            text=match.group(0),
            output=output,
        )


class CompletionDetector:
    """Detects when an agent has declared its task complete."""

    def __init__(
        self,
        promise: str,
        intent: Optional[IntentFilter] = None,
        window: int = CONTEXT_WINDOW,
    ):
        self.promise = promise
        self.intent = intent or IntentFilter()
        self.window = window

    def rejection_reason(
        self, output: str, candidate: Candidate, fences: FenceIndex
    ) -> Optional[str]:
        """Why ``candidate`` does not count, or None when it does."""
        if not candidate.is_standalone:
            return "inline"
        if fences.is_inside(candidate.start):
            return "fenced"
        return self.intent.rejected_by(
            context_window(output, candidate.start, self.window)
        )

    def is_complete(self, output: str) -> bool:
        """Check whether ``output`` contains a genuine completion promise."""
        if not self.promise or not self.promise.strip():
            log.warning("blank_completion_promise")
            return False

        fences = None
        rejected = Counter()
        for candidate in find_candidates(output, self.promise):
            if fences is None:
                fences = FenceIndex(output)
            reason = self.rejection_reason(output, candidate, fences)
            if reason is None:
                log.info(
                    "completion_detected",
                    promise=self.promise,
                    offset=candidate.start,
                )
                return True
            rejected[reason] += 1

        if rejected:
            log.debug("completion_not_detected", rejected=dict(rejected))
        return False


def check_completion(output: str, promise: str) -> bool:
    """Return True if ``output`` declares completion with ``promise``.

    The tag must stand alone on its line, sit outside any fenced code
    block, and not be preceded by a negation or an unclosed quote.
    """
    return CompletionDetector(promise).is_complete(output)

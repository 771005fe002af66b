"""Markdown code-fence tracking for completion detection.

Promise tags shown inside fenced blocks are examples, not declarations.
"""

import re
from bisect import bisect_right
from enum import Enum

BACKTICK_FENCE = "```"
TILDE_FENCE = "~~~"

LINE_BREAK = re.compile(r"\r?\n")


class FenceState(Enum):
    """Which fence, if any, is open."""

    NONE = "none"
    BACKTICK = "backtick"
    TILDE = "tilde"


def next_fence_state(state: FenceState, line: str) -> FenceState:
    """Return the fence state after scanning one line.

    Only one fence kind is open at a time; a marker of the other kind
    seen while a fence is open leaves it untouched.
    """
    stripped = line.lstrip()
    if stripped.startswith(BACKTICK_FENCE):
        if state is FenceState.NONE:
            return FenceState.BACKTICK
        if state is FenceState.BACKTICK:
            return FenceState.NONE
        return state

    if stripped.startswith(TILDE_FENCE):
        if state is FenceState.NONE:
            return FenceState.TILDE
        if state is FenceState.TILDE:
            return FenceState.NONE

    return state


def fence_state_at(text: str, offset: int) -> FenceState:
    """Scan every line before ``offset`` and return the resulting state."""
    state = FenceState.NONE
    for line in LINE_BREAK.split(text[:offset]):
        state = next_fence_state(state, line)
    return state


def is_inside_fence(text: str, offset: int) -> bool:
    return fence_state_at(text, offset) is not FenceState.NONE


class FenceIndex:
    """Fence states for every line of a text, computed in one forward pass.

    ``fence_state_at`` rescans from the top on each call; this index gives
    the same answers with a binary search per lookup.
    """

    def __init__(self, text: str):
        self.text = text
        # Offset where each line starts, and the state before that line.
        self._line_starts: list[int] = [0]
        self._states_before: list[FenceState] = [FenceState.NONE]

        state = FenceState.NONE
        position = 0
        for match in LINE_BREAK.finditer(text):
            state = next_fence_state(state, text[position:match.start()])
            position = match.end()
            self._line_starts.append(position)
            self._states_before.append(state)

    def state_at(self, offset: int) -> FenceState:
        """Fence state at ``offset``.

        The partial line up to ``offset`` is scanned too, since a marker
        prefix on the same line counts as a fence line.
        """
        line = bisect_right(self._line_starts, offset) - 1
        start = self._line_starts[line]
        return next_fence_state(self._states_before[line], self.text[start:offset])

    def is_inside(self, offset: int) -> bool:
        return self.state_at(offset) is not FenceState.NONE

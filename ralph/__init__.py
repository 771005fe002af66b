"""Ralph - iterative agent loops with completion-promise detection.

Runs a coding agent on the same prompt until it declares the task done
by printing ``<promise>TOKEN</promise>`` on a line of its own.
"""

__version__ = "1.0.0"

from ralph.core.completion import CompletionDetector, check_completion
from ralph.core.loop import AgentLoop, LoopConfig, LoopResult
from ralph.config import RalphConfig

__all__ = [
    "__version__",
    "AgentLoop",
    "CompletionDetector",
    "LoopConfig",
    "LoopResult",
    "RalphConfig",
    "check_completion",
]

"""Context window management, stuck detection and turn budgeting for agents."""

from graphlit.helpers.context_management import (
    ContextStrategy,
    TokenBudgetTracker,
    estimate_tokens,
    set_token_encoder,
    truncate_tool_result,
    use_tiktoken,
    window_tool_rounds,
)
from graphlit.helpers.stuck_detector import StuckDetector, StuckEvaluation, trigram_similarity
from graphlit.helpers.turn_evaluator import BudgetConfig, TurnEvaluator, TurnInstructionConfig

__all__ = [
    "ContextStrategy",
    "TokenBudgetTracker",
    "estimate_tokens",
    "set_token_encoder",
    "use_tiktoken",
    "truncate_tool_result",
    "window_tool_rounds",
    "StuckDetector",
    "StuckEvaluation",
    "trigram_similarity",
    "BudgetConfig",
    "TurnEvaluator",
    "TurnInstructionConfig",
]

"""Top-level package exports for the cosmic project.

Expose a small, stable API so callers can `from cosmic import Engine, init_game`.
"""

from .engine import Engine, Replay, init_game, apply_ai_decision, perform_ai_move
from .actions import take_gems, reserve_card, buy_card

__all__ = [
  "Engine", "Replay", "init_game", "apply_ai_decision", "perform_ai_move",
  "take_gems", "reserve_card", "buy_card",
]

"""BalancedAgent: a probabilistic blend of buying, reserving and collecting.

Exactly one random draw is made per decision, so two agents seeded alike
make identical choices on identical states.
"""
from ..state import PlayerState, GameState
from ..typings import AIStrategy, ActionType, Gem
from .core import AIActionDecision, AIHelpers, Agent, DEFAULT_HELPERS, pass_decision
from .heuristics import (AffordableCard, choose_gem_take, list_affordable_cards,
                         pick_highest_value_market_card, prioritize_needed_colors, score_card_balanced)

BUY_THRESHOLD = 0.45
RESERVE_THRESHOLD = 0.65


class BalancedAgent(Agent):
  strategy = AIStrategy.BALANCED

  def _buy(self, buyable: list[AffordableCard], reasoning: str) -> AIActionDecision | None:
    if not buyable:
      return None
    return AIActionDecision(kind=ActionType.BUY, strategy_used=self.strategy,
                            card_id=buyable[0].card.id, from_reserve=buyable[0].from_reserve,
                            reasoning=reasoning)

  def _gems(self, gems: tuple[Gem, ...] | None) -> AIActionDecision | None:
    if gems is None:
      return None
    return AIActionDecision(kind=ActionType.TAKE_GEMS, strategy_used=self.strategy, gems=gems,
                            reasoning="Gathering gems to unlock more buys")

  def decide(self, state: GameState, player: PlayerState,
             helpers: AIHelpers = DEFAULT_HELPERS) -> AIActionDecision:
    roll = self.rng.random()
    buyable = sorted(list_affordable_cards(state, player, helpers),
                     key=lambda a: score_card_balanced(a.card), reverse=True)
    gems = choose_gem_take(state, player, helpers, prioritize_needed_colors(state, player))

    chosen: AIActionDecision | None
    if roll < BUY_THRESHOLD:
      chosen = self._buy(buyable, "Buying efficiently scored card")
    elif roll < RESERVE_THRESHOLD:
      chosen = None
      candidate = pick_highest_value_market_card(state)
      if player.can_reserve(state.config) and candidate is not None:
        chosen = AIActionDecision(kind=ActionType.RESERVE, strategy_used=self.strategy,
                                  card_id=candidate.id, reasoning="Holding a useful card for later")
    else:
      chosen = self._gems(gems)
    if chosen is not None:
      return chosen

    # the chosen branch gave nothing: buy, then gems, then pass
    return (self._buy(buyable, "Fallback to available purchase")
            or self._gems(gems)
            or pass_decision(self.strategy))

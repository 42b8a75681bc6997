"""AggressiveAgent: chase points as fast as possible."""
from ..state import PlayerState, GameState
from ..typings import AIStrategy, ActionType
from .core import AIActionDecision, AIHelpers, Agent, DEFAULT_HELPERS, pass_decision
from .heuristics import (choose_gem_take, list_affordable_cards, pick_highest_value_market_card,
                         prioritize_needed_colors, score_card_aggressive)


class AggressiveAgent(Agent):
  strategy = AIStrategy.AGGRESSIVE

  def decide(self, state: GameState, player: PlayerState,
             helpers: AIHelpers = DEFAULT_HELPERS) -> AIActionDecision:
    buyable = sorted(list_affordable_cards(state, player, helpers),
                     key=lambda a: score_card_aggressive(a.card), reverse=True)
    if buyable:
      return AIActionDecision(kind=ActionType.BUY, strategy_used=self.strategy,
                              card_id=buyable[0].card.id, from_reserve=buyable[0].from_reserve,
                              reasoning="Buying the highest value card available")

    if player.can_reserve(state.config):
      candidate = pick_highest_value_market_card(state)
      if candidate is not None:
        return AIActionDecision(kind=ActionType.RESERVE, strategy_used=self.strategy,
                                card_id=candidate.id,
                                reasoning="Reserving a high value card to secure points")

    gems = choose_gem_take(state, player, helpers, prioritize_needed_colors(state, player))
    if gems is not None:
      return AIActionDecision(kind=ActionType.TAKE_GEMS, strategy_used=self.strategy, gems=gems,
                              reasoning="Gathering gems to afford high value cards")

    return pass_decision(self.strategy)

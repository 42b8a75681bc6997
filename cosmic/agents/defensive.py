"""DefensiveAgent: bank points when possible, otherwise deny opponents."""
from ..state import PlayerState, GameState
from ..typings import AIStrategy, ActionType
from .core import AIActionDecision, AIHelpers, Agent, DEFAULT_HELPERS, pass_decision
from .heuristics import choose_gem_take, find_block_candidate, list_affordable_cards, prioritize_needed_colors


class DefensiveAgent(Agent):
  strategy = AIStrategy.DEFENSIVE

  def decide(self, state: GameState, player: PlayerState,
             helpers: AIHelpers = DEFAULT_HELPERS) -> AIActionDecision:
    buyable = list_affordable_cards(state, player, helpers)
    if buyable:
      return AIActionDecision(kind=ActionType.BUY, strategy_used=self.strategy,
                              card_id=buyable[0].card.id, from_reserve=buyable[0].from_reserve,
                              reasoning="Converting resources into secured points")

    if player.can_reserve(state.config):
      block = find_block_candidate(state, player)
      if block is not None:
        return AIActionDecision(kind=ActionType.RESERVE, strategy_used=self.strategy,
                                card_id=block.id,
                                reasoning="Blocking an opponent who is close to buying")

    gems = choose_gem_take(state, player, helpers, prioritize_needed_colors(state, player))
    if gems is not None:
      return AIActionDecision(kind=ActionType.TAKE_GEMS, strategy_used=self.strategy, gems=gems,
                              reasoning="Collecting gems while limiting opponent access")

    return pass_decision(self.strategy)

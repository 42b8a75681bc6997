"""RandomAgent: uniform choice over every candidate move."""
from ..state import PlayerState, GameState
from ..typings import AIStrategy, ActionType
from .core import AIActionDecision, AIHelpers, Agent, DEFAULT_HELPERS, pass_decision
from .heuristics import choose_gem_take, list_affordable_cards, prioritize_needed_colors, MARKET_SCAN_LEVELS


class RandomAgent(Agent):
  strategy = AIStrategy.RANDOM

  def candidates(self, state: GameState, player: PlayerState,
                 helpers: AIHelpers = DEFAULT_HELPERS) -> list[AIActionDecision]:
    """Every affordable buy, every reserve (market or blind, slots permitting) and one gem take."""
    options = [
        AIActionDecision(kind=ActionType.BUY, strategy_used=self.strategy,
                         card_id=a.card.id, from_reserve=a.from_reserve)
        for a in list_affordable_cards(state, player, helpers)
    ]
    if player.can_reserve(state.config):
      options.extend(AIActionDecision(kind=ActionType.RESERVE, strategy_used=self.strategy, card_id=c.id)
                     for c in state.market_cards(MARKET_SCAN_LEVELS))
      options.extend(AIActionDecision(kind=ActionType.RESERVE, strategy_used=self.strategy,
                                      reserve_from_deck_level=lvl)
                     for lvl in state.config.card_levels if state.decks.get(lvl))
    gems = choose_gem_take(state, player, helpers, prioritize_needed_colors(state, player))
    if gems is not None:
      options.append(AIActionDecision(kind=ActionType.TAKE_GEMS, strategy_used=self.strategy, gems=gems))
    return options

  def decide(self, state: GameState, player: PlayerState,
             helpers: AIHelpers = DEFAULT_HELPERS) -> AIActionDecision:
    options = self.candidates(state, player, helpers)
    if not options:
      return pass_decision(self.strategy)
    return self.rng.choice(options)

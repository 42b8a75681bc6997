"""Shared scoring and gem-selection helpers for the local strategies."""
from dataclasses import dataclass

from ..state import PlayerState, GameState
from ..typings import Card, Gem, NON_GOLD_GEMS
from ..utils import _dedupe
from .core import AIHelpers

# Small tie-breaking nudge per produced colour.
BONUS_WEIGHTS: dict[Gem, int] = {
  Gem.WHITE: 5,
  Gem.BLUE: 4,
  Gem.GREEN: 5,
  Gem.RED: 3,
  Gem.BLACK: 5,
}

MARKET_SCAN_LEVELS = (3, 2, 1)


@dataclass(frozen=True)
class AffordableCard:
  card: Card
  from_reserve: bool


def list_affordable_cards(state: GameState, player: PlayerState, helpers: AIHelpers) -> list[AffordableCard]:
  """Reserved cards first, then the market from level 3 down to level 1."""
  cards = [AffordableCard(c, True) for c in player.reserved_cards if helpers.can_buy_card(player, c)]
  cards.extend(AffordableCard(c, False) for c in state.market_cards(MARKET_SCAN_LEVELS)
               if helpers.can_buy_card(player, c))
  return cards


def score_card_aggressive(card: Card) -> int:
  return card.points * 3 + BONUS_WEIGHTS[card.bonus] - card.total_cost()


def score_card_balanced(card: Card) -> int:
  return card.points * 2 + BONUS_WEIGHTS[card.bonus] - card.total_cost()


def pick_highest_value_market_card(state: GameState) -> Card | None:
  cards = state.market_cards(MARKET_SCAN_LEVELS)
  if not cards:
    return None
  # sorted() is stable, so equal scores keep the scan order
  return sorted(cards, key=score_card_aggressive, reverse=True)[0]


def prioritize_needed_colors(state: GameState, player: PlayerState) -> list[Gem]:
  """Non-gold colours ordered by how much of the best market card is still missing."""
  top = pick_highest_value_market_card(state)
  if top is None:
    return list(NON_GOLD_GEMS)

  def missing(g: Gem) -> int:
    return max(0, top.cost.get(g) - player.gems.get(g) - player.bonuses.get(g))

  return sorted(NON_GOLD_GEMS, key=missing, reverse=True)


def choose_gem_take(state: GameState, player: PlayerState, helpers: AIHelpers,
                    priority: list[Gem]) -> tuple[Gem, ...] | None:
  """Pick a legal gem take, or None when there is none.

  Preference order: three distinct colours following `priority`, then two
  of the first colour whose pile holds at least `take2_min_in_bank`, then a
  single gem of the highest-priority colour still in the bank.
  """
  config = state.config
  capacity = config.max_gems_per_player - helpers.get_gem_count(player)
  if capacity <= 0:
    return None

  available = [g for g in NON_GOLD_GEMS if state.bank.get(g) > 0]
  if not available:
    return None

  if capacity >= 3 and len(available) >= 3:
    ordered = [g for g in priority if g in available]
    pick = _dedupe(ordered + available)[:3]
    if len(pick) == 3:
      return tuple(pick)

  if capacity >= 2:
    for g in available:
      if state.bank.get(g) >= config.take2_min_in_bank:
        return (g, g)

  for g in priority:
    if g in available:
      return (g,)
  return (available[0],)


def threat_score(opponent: PlayerState, card: Card) -> int:
  gap = opponent.missing_cost(card)
  soon = 3 if gap <= 2 else 1 if gap <= 4 else 0
  return soon + (1 if card.points >= 3 else 0)


def find_block_candidate(state: GameState, player: PlayerState) -> Card | None:
  """The market card the opponents are collectively closest to affording.

  Returns None when no card puts any pressure on anyone.
  """
  opponents = [p for p in state.players if p.id != player.id]
  best: Card | None = None
  best_pressure = 0
  for card in state.market_cards(MARKET_SCAN_LEVELS):
    pressure = sum(threat_score(opp, card) for opp in opponents)
    if best is None or pressure > best_pressure:
      best, best_pressure = card, pressure
  return best if best_pressure > 0 else None

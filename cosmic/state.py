import time
from dataclasses import dataclass, field, replace
from collections.abc import Iterable, Mapping
from typing import Any

from cosmic.consts import GameConfig

from .typings import AIStrategy, Gem, GemList, Card, CardList, LogKind, Noble, NON_GOLD_GEMS
from .utils import _replace_level, _replace_tuple


def now_ms() -> int:
  return int(time.time() * 1000)


def _remaining_cost(cost: GemList, bonuses: GemList) -> dict[Gem, int]:
  """Return colour -> amount still owed after permanent bonuses, floored at zero."""
  remaining: dict[Gem, int] = {}
  for g in NON_GOLD_GEMS:
    req = cost.get(g)
    if req == 0:
      continue
    remaining[g] = max(0, req - bonuses.get(g))
  return remaining


@dataclass(frozen=True)
class PlayerState:
  """Per-seat snapshot with affordability helpers.

  Every field is immutable; engine code builds replacements with
  `dataclasses.replace`.
  """
  id: str
  name: str
  is_human: bool = False
  avatar_id: int = 0
  ai_strategy: AIStrategy | None = None
  gems: GemList = field(default_factory=GemList.zeros)
  bonuses: GemList = field(default_factory=lambda: GemList.zeros(NON_GOLD_GEMS))
  reserved_cards: CardList = field(default_factory=CardList)
  points: int = 0
  nobles: tuple[Noble, ...] = ()
  last_action: str | None = None

  def __post_init__(self):
    # accept plain mappings/iterables from callers and tests
    object.__setattr__(self, 'gems', GemList.coerce(self.gems))
    object.__setattr__(self, 'bonuses', GemList.coerce(self.bonuses))
    object.__setattr__(self, 'reserved_cards', CardList(self.reserved_cards))
    object.__setattr__(self, 'nobles', tuple(self.nobles))
    if self.ai_strategy is not None and not isinstance(self.ai_strategy, AIStrategy):
      object.__setattr__(self, 'ai_strategy', AIStrategy(self.ai_strategy))

  def gem_count(self) -> int:
    return self.gems.count()

  def gold_needed(self, card: Card) -> int:
    """Gold tokens required to cover the shortfall after bonuses and own tokens."""
    needed = 0
    for g, remaining in _remaining_cost(card.cost, self.bonuses).items():
      owned = self.gems.get(g)
      if owned < remaining:
        needed += remaining - owned
    return needed

  def can_afford(self, card: Card) -> bool:
    return self.gems.get(Gem.GOLD) >= self.gold_needed(card)

  def payment_for(self, card: Card) -> dict[Gem, int]:
    """Return the tokens spent to buy `card`: own colour first, gold second."""
    payment: dict[Gem, int] = {}
    for g, remaining in _remaining_cost(card.cost, self.bonuses).items():
      if remaining == 0:
        continue
      spent = min(self.gems.get(g), remaining)
      if spent:
        payment[g] = spent
      if remaining > spent:
        payment[Gem.GOLD] = payment.get(Gem.GOLD, 0) + remaining - spent
    return payment

  def missing_cost(self, card: Card) -> int:
    """Total tokens still missing for `card` ignoring gold."""
    missing = 0
    for g, n in card.cost:
      missing += max(0, n - self.bonuses.get(g) - self.gems.get(g))
    return missing

  def can_reserve(self, config: GameConfig) -> bool:
    return len(self.reserved_cards) < config.max_reserved

  def to_dict(self) -> dict:
    return {
        'id': self.id,
        'name': self.name,
        'is_human': self.is_human,
        'avatar_id': self.avatar_id,
        'ai_strategy': self.ai_strategy.value if self.ai_strategy is not None else None,
        'gems': self.gems.to_json(),
        'bonuses': self.bonuses.to_json(),
        'reserved_cards': self.reserved_cards.to_json(),
        'points': self.points,
        'nobles': [n.to_dict() for n in self.nobles],
        'last_action': self.last_action,
    }

  @classmethod
  def from_dict(cls, d: dict) -> 'PlayerState':
    strategy = d.get('ai_strategy')
    return cls(id=d['id'], name=d['name'], is_human=bool(d.get('is_human', False)),
               avatar_id=int(d.get('avatar_id', 0)),
               ai_strategy=AIStrategy(strategy) if strategy else None,
               gems=GemList.from_json(d.get('gems')),
               bonuses=GemList.from_json(d.get('bonuses')),
               reserved_cards=CardList.from_json(d.get('reserved_cards')),
               points=int(d.get('points', 0)),
               nobles=tuple(Noble.from_dict(n) for n in d.get('nobles', ())),
               last_action=d.get('last_action'))


@dataclass(frozen=True)
class ActionLogEntry:
  """One append-only line of match history."""
  turn: int
  player_id: str
  player_name: str
  kind: LogKind
  summary: str
  payload: Mapping[str, Any] = field(default_factory=dict)
  timestamp: int = 0

  def to_dict(self) -> dict:
    return {
        'turn': self.turn,
        'player_id': self.player_id,
        'player_name': self.player_name,
        'kind': self.kind.value,
        'summary': self.summary,
        'payload': dict(self.payload),
        'timestamp': self.timestamp,
    }

  @classmethod
  def from_dict(cls, d: dict) -> 'ActionLogEntry':
    return cls(turn=int(d['turn']), player_id=d['player_id'], player_name=d['player_name'],
               kind=LogKind(d['kind']), summary=d.get('summary', ''),
               payload=dict(d.get('payload') or {}), timestamp=int(d.get('timestamp', 0)))


@dataclass(frozen=True)
class GameState:
  """A read-only view of the full game.

  Market rows and decks are keyed by card level; index 0 of a deck is its
  top card. Transitions never mutate a GameState, they build a new one.
  """
  players: tuple[PlayerState, ...]
  config: GameConfig = field(default_factory=GameConfig)
  current_player_index: int = 0
  market: Mapping[int, CardList] = field(default_factory=dict)
  decks: Mapping[int, CardList] = field(default_factory=dict)
  nobles: tuple[Noble, ...] = ()
  bank: GemList = field(default_factory=GemList)
  winner_id: str | None = None
  target_score: int | None = None
  turn: int = 1
  last_action: str | None = None
  history: tuple[ActionLogEntry, ...] = ()

  def __post_init__(self):
    # normalize inputs into immutable containers so callers may pass lists
    # or dicts.
    object.__setattr__(self, 'players', tuple(self.players))
    if len(self.players) <= 0:
      raise ValueError("GameState must have at least one player")
    market = {lvl: CardList(self.market.get(lvl, ())) for lvl in self.config.card_levels}
    decks = {lvl: CardList(self.decks.get(lvl, ())) for lvl in self.config.card_levels}
    object.__setattr__(self, 'market', market)
    object.__setattr__(self, 'decks', decks)
    object.__setattr__(self, 'nobles', tuple(self.nobles))
    object.__setattr__(self, 'bank', GemList.coerce(self.bank))
    object.__setattr__(self, 'history', tuple(self.history))
    if self.target_score is None:
      object.__setattr__(self, 'target_score', self.config.target_score_default)

  @property
  def current_player(self) -> PlayerState:
    return self.players[self.current_player_index]

  def get_player(self, player_id: str) -> PlayerState | None:
    for p in self.players:
      if p.id == player_id:
        return p
    return None

  def market_cards(self, levels: Iterable[int] | None = None) -> list[Card]:
    """Face-up cards, highest level first unless `levels` says otherwise."""
    if levels is None:
      levels = sorted(self.market, reverse=True)
    return [c for lvl in levels for c in self.market.get(lvl, ())]

  def find_market_card(self, card_id: str) -> Card | None:
    for card in self.market_cards():
      if card.id == card_id:
        return card
    return None

  def total_tokens(self, gem: Gem) -> int:
    """Bank plus every player's holding of `gem`."""
    return self.bank.get(gem) + sum(p.gems.get(gem) for p in self.players)

  def with_current_player(self, player: PlayerState) -> 'GameState':
    players = _replace_tuple(self.players, self.current_player_index, player)
    return replace(self, players=players)

  def take_market_slot(self, level: int, slot: int) -> 'GameState':
    """Return a state with market slot refilled from the top of the deck.

    When the deck is exhausted the row shrinks instead of keeping a gap.
    """
    top, deck = self.decks[level].draw_top()
    row = self.market[level].replace_at(slot, top)
    return replace(self, market=_replace_level(self.market, level, row),
                   decks=_replace_level(self.decks, level, deck))

  def log(self, kind: LogKind, summary: str, payload: Mapping[str, Any] | None = None,
          now: int | None = None) -> 'GameState':
    """Append a history entry attributed to the acting player."""
    actor = self.current_player
    entry = ActionLogEntry(turn=self.turn, player_id=actor.id, player_name=actor.name,
                           kind=kind, summary=summary, payload=dict(payload or {}),
                           timestamp=now_ms() if now is None else now)
    return replace(self, history=self.history + (entry,))

  def end_turn(self, now: int | None = None) -> 'GameState':
    """Resolve the end of the acting player's turn.

    1. Award at most one noble: the pool is scanned from its last entry
       towards its first and the first one the actor qualifies for wins.
    2. Advance to the next seat.
    3. On wrapping back to seat 0, bump `turn` and check for a winner.
    """
    state = self
    player = state.current_player
    for i in range(len(state.nobles) - 1, -1, -1):
      noble = state.nobles[i]
      if noble.is_met_by(player.bonuses):
        player = replace(player, nobles=player.nobles + (noble,), points=player.points + noble.points)
        state = replace(state.with_current_player(player),
                        nobles=state.nobles[:i] + state.nobles[i+1:])
        state = state.log(LogKind.NOBLE, f"{player.name} gained {noble.name or noble.id}",
                          {'nobleId': noble.id}, now=now)
        break

    next_index = (state.current_player_index + 1) % len(state.players)
    state = replace(state, current_player_index=next_index)
    if next_index == 0:
      state = replace(state, turn=state.turn + 1)
      winners = [p for p in state.players if p.points >= state.target_score]
      if winners:
        # stable sort: equal scores keep seat order
        winners.sort(key=lambda p: p.points, reverse=True)
        state = replace(state, winner_id=winners[0].id)
    return state

  def to_dict(self) -> dict:
    """Return a JSON-ready dict; `from_dict` restores an equal GameState."""
    return {
        'config': self.config.serialize(),
        'players': [p.to_dict() for p in self.players],
        'current_player_index': self.current_player_index,
        'market': {str(lvl): row.to_json() for lvl, row in self.market.items()},
        'decks': {str(lvl): deck.to_json() for lvl, deck in self.decks.items()},
        'nobles': [n.to_dict() for n in self.nobles],
        'bank': self.bank.to_json(),
        'winner_id': self.winner_id,
        'target_score': self.target_score,
        'turn': self.turn,
        'last_action': self.last_action,
        'history': [h.to_dict() for h in self.history],
    }

  @classmethod
  def from_dict(cls, d: dict) -> 'GameState':
    config_raw = d.get('config')
    config = GameConfig.deserialize(config_raw) if config_raw else GameConfig()
    return cls(
      players=tuple(PlayerState.from_dict(p) for p in d['players']),
      config=config,
      current_player_index=int(d.get('current_player_index', 0)),
      market={int(lvl): CardList.from_json(row) for lvl, row in (d.get('market') or {}).items()},
      decks={int(lvl): CardList.from_json(deck) for lvl, deck in (d.get('decks') or {}).items()},
      nobles=tuple(Noble.from_dict(n) for n in d.get('nobles', ())),
      bank=GemList.from_json(d.get('bank')),
      winner_id=d.get('winner_id'),
      target_score=d.get('target_score'),
      turn=int(d.get('turn', 1)),
      last_action=d.get('last_action'),
      history=tuple(ActionLogEntry.from_dict(h) for h in d.get('history', ())),
    )

  def print_summary(self, show_market: bool = True) -> None:
    """Print a short, human-readable summary of this GameState.

    This is a convenience for development and quick debugging; callers should
    avoid parsing the printed output in tests.
    """
    print("--" * 20)
    print(f"Turn: {self.turn} Acting: {self.current_player.name} Target: {self.target_score}")
    print("Players:")
    for p in self.players:
      reserved = ",".join(c.id for c in p.reserved_cards)
      print(f"  id={p.id} name={p.name!r} points={p.points} gems={p.gems} bonuses={p.bonuses} reserved=[{reserved}] nobles={len(p.nobles)}")
    print(f"Bank: {self.bank}")
    if show_market:
      for lvl in sorted(self.market, reverse=True):
        cards = "\t".join(f"{str(c):25}" for c in self.market[lvl])
        print(f"{len(self.decks[lvl]):3d}\t{cards}")
    if self.winner_id:
      print(f"Winner: {self.winner_id}")

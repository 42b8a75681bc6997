from dataclasses import dataclass, field, replace
from abc import ABC, abstractmethod
from collections.abc import Sequence

from .consts import GameConfig
from .typings import ActionType, AIStrategy, Gem, GemList, Card, LogKind, MoveSource
from .state import PlayerState, GameState
from .utils import _replace_level


@dataclass(frozen=True)
class Accepted:
  """The action was legal; `state` is the new, independent GameState."""
  state: GameState
  accepted = True


@dataclass(frozen=True)
class Rejected:
  """The action was illegal; `state` is the unchanged input (same object)."""
  reason: str
  state: GameState
  accepted = False


ActionResult = Accepted | Rejected


@dataclass(frozen=True)
class Action(ABC):
  """Base Action used as a type tag for polymorphism.

  Concrete action types subclass this and add strongly-typed fields.
  Validation is split into checks that only need the config and checks
  that need the acting player and the full state; both return a rejection
  reason, or None when the action may go ahead.
  """
  type: ActionType

  @classmethod
  def take_gems(cls, *gems: Gem) -> 'TakeGemsAction':
    return TakeGemsAction.create(*gems)

  @classmethod
  def reserve(cls, card_id: str | None = None, deck_level: int | None = None) -> 'ReserveCardAction':
    return ReserveCardAction.create(card_id, deck_level)

  @classmethod
  def buy(cls, card_id: str, from_reserve: bool = False) -> 'BuyCardAction':
    return BuyCardAction.create(card_id, from_reserve)

  @classmethod
  def pass_turn(cls, strategy: AIStrategy | None = None, source: MoveSource | None = None) -> 'PassAction':
    return PassAction.create(strategy, source)

  def apply(self, state: GameState, *, now: int | None = None) -> ActionResult:
    """Apply this action for the acting seat and resolve the end of turn.

    Illegal actions never raise: a `Rejected` result carrying the very same
    `state` object is returned instead.
    """
    player = state.current_player
    config = state.config
    if state.winner_id is not None:
      return Rejected("game is already over", state)

    reason = self._validate_without_state(config) or self._validate_with_state(player, state, config)
    if reason is not None:
      return Rejected(reason, state)

    new_state = self._apply(player, state, config, now)
    return Accepted(new_state.end_turn(now=now))

  # Serialization helpers
  def serialize(self) -> dict:
    return self.to_dict()

  @classmethod
  def deserialize(cls, d: dict) -> 'Action':
    """Reconstruct an Action object from a dict produced by `serialize`."""
    atype = ActionType(d.get('type'))
    if atype == ActionType.TAKE_GEMS:
      return TakeGemsAction.from_dict(d)
    if atype == ActionType.RESERVE:
      return ReserveCardAction.from_dict(d)
    if atype == ActionType.BUY:
      return BuyCardAction.from_dict(d)
    if atype == ActionType.PASS:
      return PassAction.from_dict(d)
    raise ValueError(f"Unknown action type for deserialization: {d.get('type')}")

  @abstractmethod
  def to_dict(self) -> dict:
    """Return a JSON-serializable dict representation of this Action."""

  @abstractmethod
  def _apply(self, player: PlayerState, state: GameState, config: GameConfig, now: int | None) -> GameState:
    """Return the post-action GameState (before end-of-turn resolution).

    Implementations must not mutate `state`.
    """

  def _validate_without_state(self, config: GameConfig) -> str | None:
    return None

  @abstractmethod
  def _validate_with_state(self, player: PlayerState, state: GameState, config: GameConfig) -> str | None:
    """Return a rejection reason, or None if the action is legal in `state`."""


@dataclass(frozen=True)
class TakeGemsAction(Action):
  gems: tuple[Gem, ...] = field(default_factory=tuple)

  @classmethod
  def create(cls, *gems: Gem) -> 'TakeGemsAction':
    return cls(type=ActionType.TAKE_GEMS, gems=tuple(Gem(g) for g in gems))

  def __str__(self) -> str:
    return f"Action.TakeGems({''.join(g.color_circle() for g in self.gems)})"

  def to_dict(self) -> dict:
    return {'type': self.type.value, 'gems': [g.value for g in self.gems]}

  @classmethod
  def from_dict(cls, d: dict) -> 'TakeGemsAction':
    return cls.create(*(Gem(g) for g in d.get('gems', ())))

  def requested(self) -> GemList:
    counts: dict[Gem, int] = {}
    for g in self.gems:
      counts[g] = counts.get(g, 0) + 1
    return GemList(counts)

  def _validate_without_state(self, config: GameConfig) -> str | None:
    if not self.gems:
      return "no gems requested"
    if Gem.GOLD in self.gems:
      return "gold cannot be taken directly"
    n = len(self.gems)
    distinct = self.requested().count_distinct()
    if n == 3 and distinct == 3:
      return None
    if n == 2 and distinct == 1:
      return None
    if n == 1:
      return None
    return "take 3 distinct colours, 2 of one colour, or a single gem"

  def _validate_with_state(self, player: PlayerState, state: GameState, config: GameConfig) -> str | None:
    for g in set(self.gems):
      if state.bank.get(g) <= 0:
        return f"bank has no {g.value}"
    if len(self.gems) == 2 and state.bank.get(self.gems[0]) < config.take2_min_in_bank:
      return f"taking two {self.gems[0].value} needs at least {config.take2_min_in_bank} in the bank"
    if player.gem_count() + len(self.gems) > config.max_gems_per_player:
      return f"would exceed {config.max_gems_per_player} tokens"
    return None

  def _apply(self, player: PlayerState, state: GameState, config: GameConfig, now: int | None) -> GameState:
    bank = state.bank
    gems = player.gems
    for g in self.gems:
      bank = bank.subtract(g)
      gems = gems.add(g)

    gem_counts = self.requested().to_json()
    new_player = replace(player, gems=gems, last_action=f"Took {', '.join(g.value for g in self.gems)}")
    summary = f"{player.name} took gems"
    new_state = replace(state.with_current_player(new_player), bank=bank, last_action=summary)
    return new_state.log(LogKind.TAKE_GEMS, summary,
                         {'gems': [g.value for g in self.gems], 'gemCounts': gem_counts}, now=now)


@dataclass(frozen=True)
class ReserveCardAction(Action):
  """Reserve a face-up market card by id, or the top card of a deck level."""
  card_id: str | None = None
  deck_level: int | None = None

  @classmethod
  def create(cls, card_id: str | None = None, deck_level: int | None = None) -> 'ReserveCardAction':
    return cls(type=ActionType.RESERVE, card_id=card_id, deck_level=deck_level)

  def __str__(self) -> str:
    if self.deck_level is not None:
      return f"Action.Reserve(<D[{self.deck_level}]>)"
    return f"Action.Reserve(<{self.card_id}>)"

  def to_dict(self) -> dict:
    return {'type': self.type.value, 'card_id': self.card_id, 'deck_level': self.deck_level}

  @classmethod
  def from_dict(cls, d: dict) -> 'ReserveCardAction':
    return cls.create(d.get('card_id'), d.get('deck_level'))

  def _validate_without_state(self, config: GameConfig) -> str | None:
    if self.deck_level is None and not self.card_id:
      return "no card or deck level given"
    if self.deck_level is not None and self.deck_level not in config.card_levels:
      return f"unknown deck level {self.deck_level}"
    return None

  def _validate_with_state(self, player: PlayerState, state: GameState, config: GameConfig) -> str | None:
    if not player.can_reserve(config):
      return f"already holding {config.max_reserved} reserved cards"
    if self.deck_level is not None:
      if not state.decks[self.deck_level]:
        return f"deck {self.deck_level} is empty"
      return None
    if state.find_market_card(self.card_id or "") is None:
      return f"card {self.card_id} is not in the market"
    return None

  def _apply(self, player: PlayerState, state: GameState, config: GameConfig, now: int | None) -> GameState:
    if self.deck_level is not None:
      card, deck = state.decks[self.deck_level].draw_top()
      assert card is not None
      state = replace(state, decks=_replace_level(state.decks, self.deck_level, deck))
    else:
      card = state.find_market_card(self.card_id or "")
      assert card is not None
      state = state.take_market_slot(card.level, state.market[card.level].index_of(card.id))

    gems = player.gems
    bank = state.bank
    if bank.get(Gem.GOLD) > 0 and player.gem_count() < config.max_gems_per_player:
      bank = bank.subtract(Gem.GOLD)
      gems = gems.add(Gem.GOLD)

    new_player = replace(player, gems=gems, reserved_cards=tuple(player.reserved_cards) + (card,),
                         last_action=f"Reserved {card.id}")
    summary = f"{player.name} reserved a card"
    new_state = replace(state.with_current_player(new_player), bank=bank, last_action=summary)
    return new_state.log(LogKind.RESERVE, summary, {
        'cardId': card.id,
        'cardName': card.name,
        'cardLevel': card.level,
        'cardPoints': card.points,
        'cardBonus': card.bonus.value,
        'fromDeckLevel': self.deck_level,
    }, now=now)


@dataclass(frozen=True)
class BuyCardAction(Action):
  card_id: str = ""
  from_reserve: bool = False

  @classmethod
  def create(cls, card_id: str, from_reserve: bool = False) -> 'BuyCardAction':
    return cls(type=ActionType.BUY, card_id=card_id, from_reserve=bool(from_reserve))

  def __str__(self) -> str:
    prefix = "R:" if self.from_reserve else ""
    return f"Action.Buy(<{prefix}{self.card_id}>)"

  def to_dict(self) -> dict:
    return {'type': self.type.value, 'card_id': self.card_id, 'from_reserve': self.from_reserve}

  @classmethod
  def from_dict(cls, d: dict) -> 'BuyCardAction':
    return cls.create(d.get('card_id', ''), bool(d.get('from_reserve', False)))

  def _locate(self, player: PlayerState, state: GameState) -> Card | None:
    if self.from_reserve:
      return player.reserved_cards.find(self.card_id)
    return state.find_market_card(self.card_id)

  def _validate_without_state(self, config: GameConfig) -> str | None:
    if not self.card_id:
      return "no card given"
    return None

  def _validate_with_state(self, player: PlayerState, state: GameState, config: GameConfig) -> str | None:
    card = self._locate(player, state)
    if card is None:
      where = "reserve" if self.from_reserve else "market"
      return f"card {self.card_id} is not in the {where}"
    if not player.can_afford(card):
      return f"cannot afford {card.id}"
    return None

  def _apply(self, player: PlayerState, state: GameState, config: GameConfig, now: int | None) -> GameState:
    card = self._locate(player, state)
    assert card is not None

    bank = state.bank
    gems = player.gems
    for g, amt in player.payment_for(card).items():
      gems = gems.subtract(g, amt)
      bank = bank.add(g, amt)

    reserved = player.reserved_cards
    if self.from_reserve:
      reserved = reserved.remove(card.id)
    else:
      state = state.take_market_slot(card.level, state.market[card.level].index_of(card.id))

    label = card.bonus.label()
    new_player = replace(player, gems=gems, reserved_cards=reserved,
                         bonuses=player.bonuses.add(card.bonus), points=player.points + card.points,
                         last_action=f"Built {card.id} ({label}, {card.points} pts)")
    summary = f"{player.name} built {label} module ({card.points} pts)"
    new_state = replace(state.with_current_player(new_player), bank=bank, last_action=summary)
    return new_state.log(LogKind.BUY, summary, {
        'cardId': card.id,
        'cardName': card.name,
        'cardLevel': card.level,
        'cardPoints': card.points,
        'cardBonus': card.bonus.value,
        'isReserved': self.from_reserve,
    }, now=now)


@dataclass(frozen=True)
class PassAction(Action):
  """Give up the turn. Always legal while the game is running."""
  strategy: AIStrategy | None = None
  source: MoveSource | None = None

  @classmethod
  def create(cls, strategy: AIStrategy | None = None, source: MoveSource | None = None) -> 'PassAction':
    return cls(type=ActionType.PASS, strategy=strategy, source=source)

  def __str__(self) -> str:  # pragma: no cover - trivial
    return "Action.Pass()"

  def to_dict(self) -> dict:
    return {
        'type': self.type.value,
        'strategy': self.strategy.value if self.strategy is not None else None,
        'source': self.source.value if self.source is not None else None,
    }

  @classmethod
  def from_dict(cls, d: dict) -> 'PassAction':
    strategy = d.get('strategy')
    source = d.get('source')
    return cls.create(AIStrategy(strategy) if strategy else None, MoveSource(source) if source else None)

  def _validate_with_state(self, player: PlayerState, state: GameState, config: GameConfig) -> str | None:
    return None

  def _apply(self, player: PlayerState, state: GameState, config: GameConfig, now: int | None) -> GameState:
    summary = f"{player.name} passed"
    new_state = replace(state, last_action=summary)
    return new_state.log(LogKind.PASS, summary, {
        'strategy': self.strategy.value if self.strategy is not None else None,
        'source': self.source.value if self.source is not None else None,
    }, now=now)


# Plain-state convenience wrappers. On rejection they hand back the very
# object they were given, so `result is state` tells the caller nothing
# happened.

def take_gems(state: GameState, colors: Sequence[Gem], *, now: int | None = None) -> GameState:
  return TakeGemsAction.create(*colors).apply(state, now=now).state


def reserve_card(state: GameState, card: Card | None = None, from_deck_level: int | None = None,
                 *, now: int | None = None) -> GameState:
  if from_deck_level is None and card is None:
    return state
  action = ReserveCardAction.create(card.id if card is not None and from_deck_level is None else None,
                                    from_deck_level)
  return action.apply(state, now=now).state


def buy_card(state: GameState, card: Card, from_reserve: bool, *, now: int | None = None) -> GameState:
  return BuyCardAction.create(card.id, from_reserve).apply(state, now=now).state


def can_buy_card(player: PlayerState, card: Card) -> bool:
  return player.can_afford(card)


def get_gem_count(player: PlayerState) -> int:
  return player.gem_count()

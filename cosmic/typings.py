from enum import Enum
from typing import Any, TypeAlias
from dataclasses import field
from pydantic import field_validator
from pydantic.dataclasses import dataclass as pydantic_dataclass
from collections.abc import Mapping, Iterator, Sequence, Iterable


class Gem(Enum):
  """Enumeration of gem/token colours used across the engine.

  Values are the lowercase colour names used in serialization, prompts and
  the card catalog. Gold is the wildcard token and is never taken directly.
  """
  WHITE = "white"
  BLUE = "blue"
  GREEN = "green"
  RED = "red"
  BLACK = "black"
  GOLD = "gold"

  def __str__(self) -> str:  # pragma: no cover - tiny convenience
    return self.value

  def label(self) -> str:
    return self.value.capitalize()

  def color_circle(self) -> str:  # pragma: no cover - tiny convenience
    """Return a coloured circle emoji representing this gem."""
    if self == Gem.RED:
      return "🔴"
    if self == Gem.BLUE:
      return "🔵"
    if self == Gem.WHITE:
      return "⚪"
    if self == Gem.BLACK:
      return "⚫"
    if self == Gem.GREEN:
      return "🟢"
    if self == Gem.GOLD:
      return "🟡"
    return "⭕"


NON_GOLD_GEMS: tuple[Gem, ...] = (Gem.WHITE, Gem.BLUE, Gem.GREEN, Gem.RED, Gem.BLACK)
ALL_GEMS: tuple[Gem, ...] = NON_GOLD_GEMS + (Gem.GOLD,)


class ActionType(Enum):
  """Kinds of move a seat can make on its turn."""
  TAKE_GEMS = "TAKE_GEMS"
  RESERVE = "RESERVE"
  BUY = "BUY"
  PASS = "PASS"

  def __str__(self) -> str:
    return self.value


class LogKind(Enum):
  """Kinds of entry in the match history; a superset of ActionType."""
  TAKE_GEMS = "TAKE_GEMS"
  RESERVE = "RESERVE"
  BUY = "BUY"
  PASS = "PASS"
  NOBLE = "NOBLE"
  SYSTEM = "SYSTEM"

  def __str__(self) -> str:
    return self.value


class AIStrategy(Enum):
  AGGRESSIVE = "aggressive"
  DEFENSIVE = "defensive"
  BALANCED = "balanced"
  RANDOM = "random"
  GEMINI = "gemini"
  GEMMA = "gemma"

  @property
  def is_remote(self) -> bool:
    return self in (AIStrategy.GEMINI, AIStrategy.GEMMA)

  def __str__(self) -> str:
    return self.value


class MoveSource(Enum):
  LOCAL = "local"
  GEMINI = "gemini"
  GEMMA = "gemma"

  def __str__(self) -> str:
    return self.value


@pydantic_dataclass(frozen=True)
class GemList:
  """Immutable gem-colour -> count mapping.

  Used for card costs, noble requirements, player inventories, bonus
  tallies and the bank. Construction accepts another GemList, a mapping
  (keys may be `Gem` members or their string values) or an iterable of
  (gem, count) pairs. Counts may never be negative.
  """
  COLOR_ORDER = ALL_GEMS
  counts: dict[Gem, int] = field(default_factory=dict)

  @field_validator('counts', mode='before')
  @classmethod
  def validate_counts(cls, vals):
    if isinstance(vals, GemList):
      return dict(vals.counts)
    if vals is None:
      return {}
    return dict(vals)

  @field_validator('counts', mode='after')
  @classmethod
  def validate_non_negative(cls, vals: dict[Gem, int]) -> dict[Gem, int]:
    for g, n in vals.items():
      if n < 0:
        raise ValueError(f"negative count {n} for {g}")
    return vals

  @classmethod
  def coerce(cls, v: 'GemListInput | None') -> 'GemList':
    if isinstance(v, GemList):
      return v
    return cls(dict(v) if v is not None else {})

  @classmethod
  def zeros(cls, gems: Sequence[Gem] = ALL_GEMS) -> 'GemList':
    return cls({g: 0 for g in gems})

  def __iter__(self) -> Iterator[tuple[Gem, int]]:
    return iter(self.counts.items())

  def __len__(self) -> int:
    return len(self.counts)

  def __getitem__(self, gem: Gem) -> int:
    return self.counts[gem]

  def __hash__(self) -> int:
    return hash(frozenset(self.normalized().counts.items()))

  def normalized(self) -> 'GemList':
    """Return a new GemList in COLOR_ORDER with zero counts removed."""
    return GemList({g: self.counts[g] for g in self.COLOR_ORDER if self.counts.get(g, 0) > 0})

  def count(self) -> int:
    """Return the total count of all gems in this GemList."""
    return sum(self.counts.values())

  def count_distinct(self) -> int:
    """Return the count of distinct gem types with a positive count."""
    return len([g for g, n in self.counts.items() if n > 0])

  def get(self, gem: Gem) -> int:
    return self.counts.get(gem, 0)

  def add(self, gem: Gem, n: int = 1) -> 'GemList':
    counts = dict(self.counts)
    counts[gem] = counts.get(gem, 0) + n
    return GemList(counts)

  def subtract(self, gem: Gem, n: int = 1) -> 'GemList':
    return self.add(gem, -n)

  def to_dict(self) -> dict[Gem, int]:
    return dict(self.counts)

  def to_json(self) -> dict[str, int]:
    return {g.value: n for g, n in self.counts.items()}

  @classmethod
  def from_json(cls, d: Mapping[str, int] | None) -> 'GemList':
    return cls({Gem(g): int(n) for g, n in (d or {}).items()})

  def __repr__(self) -> str:  # pragma: no cover - convenience
    return f"GemList({self.counts!r})"

  def __str__(self) -> str:  # pragma: no cover - convenience
    return "".join(f"{n}{g.color_circle()}" for g, n in self.normalized()) or "⭕"


GemListInput: TypeAlias = GemList | Mapping[Gem, int] | Mapping[str, int] | Sequence[tuple[Gem, int]]


@pydantic_dataclass(frozen=True)
class Card:
  """A development card.

  - `level` is the market tier (1..3).
  - `points` is the prestige the card is worth.
  - `bonus` is the permanent non-gold discount it produces once bought.
  - `cost` is an immutable GemList over non-gold colours.
  """
  id: str
  bonus: Gem
  level: int = 1
  points: int = 0
  cost: GemList = field(default_factory=GemList)
  name: str | None = None

  @field_validator('cost', mode='before')
  @classmethod
  def validate_cost(cls, v):
    return GemList.coerce(v)

  @field_validator('bonus')
  @classmethod
  def validate_bonus(cls, v: Gem) -> Gem:
    if v == Gem.GOLD:
      raise ValueError("cards never produce a gold bonus")
    return v

  @field_validator('level')
  @classmethod
  def validate_level(cls, v: int) -> int:
    if v not in (1, 2, 3):
      raise ValueError(f"card level must be 1..3, got {v}")
    return v

  def total_cost(self) -> int:
    return self.cost.count()

  def to_dict(self) -> dict:
    """Return a JSON-serializable dict representation of the Card."""
    return {
        'id': self.id,
        'level': self.level,
        'points': self.points,
        'bonus': self.bonus.value,
        'cost': self.cost.to_json(),
        'name': self.name,
    }

  @classmethod
  def from_dict(cls, d: dict) -> 'Card':
    cid = d.get('id')
    if not cid:
      raise ValueError("Card id is required")
    return cls(id=cid, bonus=Gem(d['bonus']), level=d.get('level', 1),
               points=d.get('points', 0), cost=GemList.from_json(d.get('cost')),
               name=d.get('name'))

  def __str__(self) -> str:  # pragma: no cover - tiny convenience
    points = f"[{self.points}]" if self.points > 0 else ""
    return f"Card{self.level}(<{self.id}>{points}{self.bonus.color_circle()}:{self.cost})"


@pydantic_dataclass(frozen=True)
class Noble:
  """A noble tile: awarded automatically once a player's bonuses meet
  `requirements`. Worth `points` prestige.
  """
  id: str
  points: int = 3
  requirements: GemList = field(default_factory=GemList)
  name: str | None = None

  @field_validator('requirements', mode='before')
  @classmethod
  def validate_requirements(cls, v):
    return GemList.coerce(v)

  def is_met_by(self, bonuses: GemList) -> bool:
    return all(bonuses.get(g) >= n for g, n in self.requirements)

  def to_dict(self) -> dict:
    return {
        'id': self.id,
        'points': self.points,
        'requirements': self.requirements.to_json(),
        'name': self.name,
    }

  @classmethod
  def from_dict(cls, d: dict) -> 'Noble':
    return cls(id=d['id'], points=int(d.get('points', 3)),
               requirements=GemList.from_json(d.get('requirements')),
               name=d.get('name'))


class CardList(Sequence['Card']):
  """Immutable list-like wrapper for a sequence of Card objects.

  Used for market rows, decks and reserved cards. All "mutators" return a
  new CardList.
  """
  __slots__ = ('_items',)

  def __init__(self, items: Iterable['Card'] = ()) -> None:
    object.__setattr__(self, '_items', tuple(items))

  def __setattr__(self, name: str, value: Any) -> None:
    raise AttributeError("CardList is immutable")

  def __iter__(self):
    return iter(self._items)

  def __len__(self) -> int:
    return len(self._items)

  def __getitem__(self, i):
    return self._items[i]

  def __eq__(self, other: object) -> bool:
    if isinstance(other, CardList):
      return self._items == other._items
    return NotImplemented

  def __hash__(self) -> int:
    return hash(self._items)

  def __repr__(self) -> str:  # pragma: no cover - convenience
    return f"CardList({self._items!r})"

  def find(self, card_id: str) -> Card | None:
    """Return the Card with the given ID, or None if not found."""
    for c in self._items:
      if c.id == card_id:
        return c
    return None

  def index_of(self, card_id: str) -> int:
    for i, c in enumerate(self._items):
      if c.id == card_id:
        return i
    return -1

  def remove(self, card_id: str) -> 'CardList':
    return CardList(c for c in self._items if c.id != card_id)

  def replace_at(self, i: int, card: Card | None) -> 'CardList':
    """Return a copy with slot `i` replaced by `card`, or dropped when `card` is None."""
    items = list(self._items)
    if card is None:
      del items[i]
    else:
      items[i] = card
    return CardList(items)

  def draw_top(self) -> tuple[Card | None, 'CardList']:
    """Return (top card, remaining deck). Index 0 is the top of a deck."""
    if not self._items:
      return None, self
    return self._items[0], CardList(self._items[1:])

  def draw_many(self, n: int) -> tuple['CardList', 'CardList']:
    return CardList(self._items[:n]), CardList(self._items[n:])

  def to_json(self) -> list[dict]:
    return [c.to_dict() for c in self._items]

  @classmethod
  def from_json(cls, d: Iterable[dict] | None) -> 'CardList':
    return cls(Card.from_dict(c) for c in (d or ()))


@pydantic_dataclass(frozen=True)
class PlayerConfig:
  """Who sits in a seat when a game starts.

  Missing fields are filled per seat by `init_game`: humans default to
  `player-<n>`, AI seats to `ai-<n>`.
  """
  id: str | None = None
  name: str | None = None
  is_human: bool = False
  avatar_id: int | None = None
  ai_strategy: AIStrategy | None = None

  def to_dict(self) -> dict:
    return {
        'id': self.id,
        'name': self.name,
        'is_human': self.is_human,
        'avatar_id': self.avatar_id,
        'ai_strategy': self.ai_strategy.value if self.ai_strategy is not None else None,
    }

  @classmethod
  def from_dict(cls, d: dict) -> 'PlayerConfig':
    strategy = d.get('ai_strategy')
    return cls(id=d.get('id'), name=d.get('name'), is_human=bool(d.get('is_human', False)),
               avatar_id=d.get('avatar_id'), ai_strategy=AIStrategy(strategy) if strategy else None)

import csv
import io
import random
from dataclasses import asdict
from pathlib import Path
from pydantic.dataclasses import dataclass as pydantic_dataclass

from cosmic.typings import AIStrategy, Card, Gem, GemList, Noble, NON_GOLD_GEMS

ASSETS_DIR = Path(__file__).parent / "assets"

DEFAULT_SEATS = 4
TARGET_SCORE_DEFAULT = 15

AVATAR_NAMES = (
  "Capt. Pixel", "Unit 734", "X-Æ-12", "Star Gazer",
  "Void Runner", "Nebula", "Quasar", "Pulsar",
)

# Seat-indexed fallback used whenever a seat has no strategy of its own.
DEFAULT_AI_STRATEGIES = (
  AIStrategy.AGGRESSIVE,
  AIStrategy.DEFENSIVE,
  AIStrategy.BALANCED,
  AIStrategy.RANDOM,
)


def default_strategy_for_seat(seat_index: int) -> AIStrategy:
  return DEFAULT_AI_STRATEGIES[seat_index % len(DEFAULT_AI_STRATEGIES)]


@pydantic_dataclass(frozen=True)
class GameConfig:
  """Validated immutable configuration for a game.

  Uses pydantic's dataclass wrapper to provide runtime validation while
  retaining a light dataclass footprint.
  """
  seat_count: int = DEFAULT_SEATS
  gem_init: int = 7
  gold_init: int = 5
  max_gems_per_player: int = 10
  max_reserved: int = 3
  take2_min_in_bank: int = 4
  market_size: int = 4
  card_levels: tuple[int, ...] = (1, 2, 3)
  noble_count: int = 5
  target_score_default: int = TARGET_SCORE_DEFAULT

  def __post_init__(self):
    # pydantic already ran basic type validation; now apply domain rules.
    if self.seat_count <= 0:
      raise ValueError(f'seat_count must be positive, got {self.seat_count}')
    if self.gem_init < 0 or self.gold_init < 0:
      raise ValueError('bank allotments must be non-negative')
    if self.max_gems_per_player <= 0:
      raise ValueError(f'max_gems_per_player must be positive, got {self.max_gems_per_player}')
    if self.target_score_default < 1:
      raise ValueError(f'target_score_default must be at least 1, got {self.target_score_default}')

  def initial_bank(self) -> GemList:
    bank = {g: self.gem_init for g in NON_GOLD_GEMS}
    bank[Gem.GOLD] = self.gold_init
    return GemList(bank)

  def serialize(self) -> dict:
    return asdict(self)

  @classmethod
  def deserialize(cls, data: dict) -> 'GameConfig':
    return cls(**data)


_CATALOG_COLORS = {
  'black': Gem.BLACK,
  'blue': Gem.BLUE,
  'green': Gem.GREEN,
  'red': Gem.RED,
  'white': Gem.WHITE,
}
# Column order of the catalog table after the colour/points columns.
_CATALOG_COST_COLUMNS = (Gem.BLACK, Gem.WHITE, Gem.RED, Gem.BLUE, Gem.GREEN)


def _to_int(v: str) -> int:
  try:
    return int(v)
  except ValueError:
    return 0


def parse_cards(text: str) -> list[Card]:
  """Parse the flat card catalog table into Cards.

  One row per card: bonus colour label, points, cost in Black, White, Red,
  Blue, Green, tier. The header row, blank rows, short rows and rows with an
  unknown colour label are skipped. Tier is clamped to 1..3. Ids are
  `card-<n>` where n counts data rows.
  """
  cards: list[Card] = []
  rows = [r for r in csv.reader(io.StringIO(text)) if r and any(p.strip() for p in r)]
  rows = [r for r in rows if not r[0].strip().lower().startswith('color')]
  for idx, row in enumerate(rows):
    parts = [p.strip() for p in row]
    if len(parts) < 8:
      continue
    bonus = _CATALOG_COLORS.get(parts[0].lower())
    if bonus is None:
      continue
    cost = {g: _to_int(v) for g, v in zip(_CATALOG_COST_COLUMNS, parts[2:7])}
    level = max(1, min(3, _to_int(parts[7]) or 1))
    cards.append(Card(id=f"card-{idx}", bonus=bonus, level=level,
                      points=_to_int(parts[1]), cost={g: n for g, n in cost.items() if n > 0}))
  return cards


@pydantic_dataclass(frozen=True)
class GameAssets:
  decks_by_level: dict[int, tuple[Card, ...]]
  nobles: tuple[Noble, ...]

  @classmethod
  def init(cls, cards: list[Card], nobles: list[Noble]) -> 'GameAssets':
    decks_by_level: dict[int, list[Card]] = {}
    for card in cards:
      decks_by_level.setdefault(card.level, []).append(card)
    return cls(
      decks_by_level={level: tuple(deck) for level, deck in decks_by_level.items()},
      nobles=tuple(nobles)
    )

  @classmethod
  def load_default(cls, path: str | Path | None = None) -> 'GameAssets':
    """Load the card catalog (CSV) and the noble list (YAML).

    `path` is a directory holding `cards.csv` and `nobles.yaml`; the
    packaged assets are used when omitted.
    """
    import yaml
    base = Path(path) if path is not None else ASSETS_DIR
    cards = parse_cards((base / "cards.csv").read_text(encoding='utf8'))
    with (base / "nobles.yaml").open('r', encoding='utf8') as fh:
      j = yaml.safe_load(fh)
    nobles = [Noble.from_dict(n) for n in j.get('nobles', [])]
    return cls.init(cards, nobles)

  def shuffle(self, seed: int | None = None) -> 'GameAssets':
    rng = random.Random(seed)
    shuffled_decks_by_level = {
      level: tuple(rng.sample(deck, len(deck)))
      for level, deck in sorted(self.decks_by_level.items())
    }
    shuffled_nobles = tuple(rng.sample(self.nobles, len(self.nobles)))
    return GameAssets(
      decks_by_level=shuffled_decks_by_level,
      nobles=shuffled_nobles
    )


GAME_ASSETS_DEFAULT = GameAssets.load_default()

"""Core agent base class for cosmic agents.

An agent looks at a GameState and the acting PlayerState and recommends
exactly one move as an `AIActionDecision`. Agents never mutate state; the
engine turns a decision into an Action and applies it.
"""
from dataclasses import dataclass
import random
from collections.abc import Callable
from typing import ClassVar

from ..actions import can_buy_card, get_gem_count
from ..state import PlayerState, GameState
from ..typings import AIStrategy, ActionType, Card, Gem, MoveSource


def AGENT_SEED_GENERATOR(): return random.Random().randint(0, 2**31 - 1)


@dataclass(frozen=True)
class AIActionDecision:
  """One recommended move.

  `card_id` names a market or reserved card for BUY/RESERVE; a blind reserve
  uses `reserve_from_deck_level` instead. `gems` is only meaningful for
  TAKE_GEMS.
  """
  kind: ActionType
  strategy_used: AIStrategy
  source: MoveSource = MoveSource.LOCAL
  gems: tuple[Gem, ...] | None = None
  card_id: str | None = None
  from_reserve: bool = False
  reserve_from_deck_level: int | None = None
  reasoning: str | None = None

  def to_dict(self) -> dict:
    return {
        'kind': self.kind.value,
        'strategyUsed': self.strategy_used.value,
        'source': self.source.value,
        'gems': [g.value for g in self.gems] if self.gems is not None else None,
        'cardId': self.card_id,
        'fromReserve': self.from_reserve,
        'reserveFromDeckLevel': self.reserve_from_deck_level,
        'reasoning': self.reasoning,
    }


@dataclass(frozen=True)
class AIHelpers:
  """Legality predicates handed to the strategies by the engine."""
  can_buy_card: Callable[[PlayerState, Card], bool] = can_buy_card
  get_gem_count: Callable[[PlayerState], int] = get_gem_count


DEFAULT_HELPERS = AIHelpers()


def pass_decision(strategy: AIStrategy) -> AIActionDecision:
  return AIActionDecision(kind=ActionType.PASS, strategy_used=strategy, reasoning="No valid move found")


class Agent:
  """Base class for local strategies.

  Subclasses set `strategy` and are registered under it automatically.
  Every agent owns (or shares) a `random.Random` so that a seed reproduces
  its choices exactly.
  """
  strategy: ClassVar[AIStrategy]

  agent_strategy_to_cls: ClassVar[dict[AIStrategy, type["Agent"]]] = {}

  def __init__(self, *, seed: int | None = None, rng: random.Random | None = None) -> None:
    if rng is None:
      if seed is None:
        seed = AGENT_SEED_GENERATOR()
      rng = random.Random(seed)
    self._seed = seed
    self.rng = rng

  @classmethod
  def __init_subclass__(cls, **kwargs):
    super().__init_subclass__(**kwargs)
    strategy = cls.__dict__.get('strategy')
    if strategy is not None:
      cls.agent_strategy_to_cls[strategy] = cls

  @classmethod
  def build(cls, strategy: AIStrategy | str, *, seed: int | None = None,
            rng: random.Random | None = None, **kwargs) -> "Agent":
    """Instantiate the agent registered for `strategy`."""
    try:
      strategy = AIStrategy(strategy)
    except ValueError:
      raise ValueError(f"Unknown AI strategy: {strategy}")
    agent_cls = cls.agent_strategy_to_cls.get(strategy)
    if agent_cls is None:
      raise ValueError(f"No agent registered for strategy: {strategy}")
    return agent_cls(seed=seed, rng=rng, **kwargs)

  def reset(self, seed: int | None = None) -> None:
    if seed is None:
      seed = AGENT_SEED_GENERATOR()
    self._seed = seed
    self.rng.seed(seed)

  def decide(self, state: GameState, player: PlayerState,
             helpers: AIHelpers = DEFAULT_HELPERS) -> AIActionDecision:
    """Return one decision for `player` in `state`."""
    raise NotImplementedError()

  def metadata(self) -> dict:
    return {
        "type": self.__class__.__name__,
        "strategy": self.strategy.value,
        "seed": self._seed,
    }


__all__ = ["AIActionDecision", "AIHelpers", "Agent", "DEFAULT_HELPERS", "pass_decision"]

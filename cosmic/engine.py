"""Game engine helpers: initialization, AI turns and replays.

This module provides the public API the rest of the project (the room
layer, scripts and tests) imports: `init_game`, `apply_ai_decision`,
`perform_ai_move` and the stateful `Engine` wrapper.
"""
import logging
from typing import Any
from collections.abc import Callable, Sequence

from pydantic import BaseModel

from .agents.core import AIActionDecision, AIHelpers
from .agents.decision import DecisionEngine
from .consts import AVATAR_NAMES, GAME_ASSETS_DEFAULT, GameAssets, GameConfig, default_strategy_for_seat
from .typings import ActionType, CardList, PlayerConfig
from .state import PlayerState, GameState, now_ms
from .actions import Action, ActionResult, BuyCardAction, PassAction, ReserveCardAction, TakeGemsAction

logger = logging.getLogger(__name__)

MISSION_STARTED = "Mission Started"


def _seat_player(seat_index: int, provided: PlayerConfig | None) -> PlayerState:
  if provided is None:
    return PlayerState(
      id=f"ai-{seat_index + 1}",
      name=AVATAR_NAMES[seat_index] if seat_index < len(AVATAR_NAMES) else f"AI {seat_index + 1}",
      is_human=False,
      avatar_id=seat_index + 5,
      ai_strategy=default_strategy_for_seat(seat_index),
    )
  if provided.is_human:
    default_id, default_avatar = f"player-{seat_index + 1}", seat_index + 1
  else:
    default_id, default_avatar = f"ai-{seat_index + 1}", seat_index + 5
  return PlayerState(
    id=provided.id or default_id,
    name=provided.name or f"Explorer {seat_index + 1}",
    is_human=provided.is_human,
    avatar_id=provided.avatar_id if provided.avatar_id is not None else default_avatar,
    ai_strategy=None if provided.is_human else provided.ai_strategy,
  )


def init_game(
    players: Sequence[PlayerConfig | None] = (),
    *,
    target_score: int | None = None,
    seed: int | None = None,
    config: GameConfig | None = None,
    assets: GameAssets | None = None,
) -> GameState:
  """Create the opening GameState.

  Decks and nobles are shuffled with `random.Random(seed)`, so the same seed
  always deals the same board. Seats beyond `players` (or given as None)
  are filled by AI players using the rotating default strategies.
  """
  config = config or GameConfig()
  if target_score is not None and target_score < 1:
    raise ValueError(f"target_score must be at least 1, got {target_score}")
  if len(players) > config.seat_count:
    raise ValueError(f"{len(players)} players given for {config.seat_count} seats")

  shuffled = (assets or GAME_ASSETS_DEFAULT).shuffle(seed)
  market: dict[int, CardList] = {}
  decks: dict[int, CardList] = {}
  for lvl in config.card_levels:
    market[lvl], decks[lvl] = CardList(shuffled.decks_by_level.get(lvl, ())).draw_many(config.market_size)

  seats = [_seat_player(i, players[i] if i < len(players) else None) for i in range(config.seat_count)]

  return GameState(
    players=tuple(seats),
    config=config,
    market=market,
    decks=decks,
    nobles=shuffled.nobles[:config.noble_count],
    bank=config.initial_bank(),
    target_score=target_score,
    turn=1,
    last_action=MISSION_STARTED,
  )


def decision_to_action(state: GameState, decision: AIActionDecision) -> Action:
  """Map a decision onto a concrete Action; anything unresolvable becomes a pass."""
  pass_action = PassAction.create(decision.strategy_used, decision.source)
  player = state.current_player

  if decision.kind == ActionType.TAKE_GEMS:
    if decision.gems:
      return TakeGemsAction.create(*decision.gems)
    return pass_action

  if decision.kind == ActionType.RESERVE:
    if decision.reserve_from_deck_level is not None:
      return ReserveCardAction.create(deck_level=decision.reserve_from_deck_level)
    if decision.card_id and state.find_market_card(decision.card_id) is not None:
      return ReserveCardAction.create(card_id=decision.card_id)
    return pass_action

  if decision.kind == ActionType.BUY:
    if not decision.card_id:
      return pass_action
    in_reserve = player.reserved_cards.find(decision.card_id) is not None
    in_market = state.find_market_card(decision.card_id) is not None
    if in_reserve and (decision.from_reserve or not in_market):
      return BuyCardAction.create(decision.card_id, True)
    if in_market:
      return BuyCardAction.create(decision.card_id, False)
    return pass_action

  return pass_action


def resolve_ai_decision(state: GameState, decision: AIActionDecision,
                        *, now: int | None = None) -> tuple[Action, GameState]:
  """Apply `decision` and return the action that was actually taken.

  A decision whose action is rejected by the rules is replaced by a pass,
  so an AI turn always advances play.
  """
  action = decision_to_action(state, decision)
  result = action.apply(state, now=now)
  if not result.accepted and not isinstance(action, PassAction):
    logger.info("[AI] %s: %s rejected (%s), passing", state.current_player.name, action, result.reason)
    action = PassAction.create(decision.strategy_used, decision.source)
    result = action.apply(state, now=now)
  return action, result.state


def apply_ai_decision(state: GameState, decision: AIActionDecision, *, now: int | None = None) -> GameState:
  return resolve_ai_decision(state, decision, now=now)[1]


def perform_ai_move(state: GameState, decision_engine: DecisionEngine, *,
                    helpers: AIHelpers | None = None, now: int | None = None) -> GameState:
  """Let the acting AI seat move. Human seats and finished games are left untouched."""
  player = state.current_player
  if player.is_human or state.winner_id is not None:
    return state
  decision = decision_engine.choose_ai_move(state, player, helpers)
  logger.info("[AI] %s strategy=%s source=%s kind=%s", player.name,
              (player.ai_strategy or "balanced"), decision.source, decision.kind)
  return apply_ai_decision(state, decision, now=now)


class Engine:
  """A small, stateful wrapper around the engine helpers.

  Suitable for hot-seat play, simulations and tests. It keeps the current
  `GameState` and the list of accepted actions (with the timestamps they
  were logged at) so that the whole game can be exported as a `Replay`.
  """

  config: GameConfig
  _state: GameState
  _players: list[PlayerConfig | None]
  _seed: int | None
  _clock: Callable[[], int]
  _action_history: list[Action]
  _timestamps: list[int]
  _passes_in_a_row: int

  def __init__(
      self,
      *,
      state: GameState,
      players: Sequence[PlayerConfig | None] = (),
      seed: int | None = None,
      clock: Callable[[], int] | None = None,
      decision_engine: DecisionEngine | None = None,
  ) -> None:
    self._state = state
    self.config = state.config
    self._players = list(players)
    self._seed = seed
    self._clock = clock or now_ms
    self.decision_engine = decision_engine or DecisionEngine(seed=seed)
    self._action_history = []
    self._timestamps = []
    self._passes_in_a_row = 0

  @staticmethod
  def new(
      players: Sequence[PlayerConfig | None] = (),
      *,
      seed: int | None = None,
      target_score: int | None = None,
      config: GameConfig | None = None,
      assets: GameAssets | None = None,
      clock: Callable[[], int] | None = None,
      decision_engine: DecisionEngine | None = None,
  ) -> "Engine":
    state = init_game(players, target_score=target_score, seed=seed, config=config, assets=assets)
    return Engine(state=state, players=players, seed=seed, clock=clock, decision_engine=decision_engine)

  def get_state(self) -> GameState:
    """Return the current (immutable) GameState object."""
    return self._state

  @property
  def action_history(self) -> list[Action]:
    return list(self._action_history)

  def _record(self, action: Action, state: GameState, now: int) -> None:
    self._state = state
    self._action_history.append(action)
    self._timestamps.append(now)
    self._passes_in_a_row = self._passes_in_a_row + 1 if isinstance(action, PassAction) else 0

  def step(self, action: Action) -> ActionResult:
    """Apply `action` for the acting seat. Rejected actions leave the engine as it was."""
    now = self._clock()
    result = action.apply(self._state, now=now)
    if result.accepted:
      self._record(action, result.state, now)
    return result

  def play_ai_turn(self, helpers: AIHelpers | None = None) -> GameState:
    """Let the acting seat move through the decision engine, whoever sits there."""
    player = self._state.current_player
    if self.game_end():
      return self._state
    decision = self.decision_engine.choose_ai_move(self._state, player, helpers)
    logger.info("[AI] %s strategy=%s source=%s kind=%s", player.name,
                (player.ai_strategy or "balanced"), decision.source, decision.kind)
    now = self._clock()
    action, state = resolve_ai_decision(self._state, decision, now=now)
    self._record(action, state, now)
    return self._state

  def play_until_end(self, max_turns: int = 200, debug: bool = False) -> GameState:
    """Play AI turns until someone wins, play stalls or `max_turns` is reached."""
    while not self.game_end() and self._state.turn <= max_turns:
      self.play_ai_turn()
      if debug:
        self.print_summary()
    return self._state

  def stalled(self) -> bool:
    """True once every seat passed in a row."""
    return self._passes_in_a_row >= len(self._state.players)

  def game_end(self) -> bool:
    return self._state.winner_id is not None or self.stalled()

  def winner(self) -> PlayerState | None:
    if self._state.winner_id is None:
      return None
    return self._state.get_player(self._state.winner_id)

  def export(self) -> "Replay":
    """Export this Engine's setup and accepted actions as a Replay object."""
    return Replay(
      config=self.config,
      players=[p.to_dict() if p is not None else None for p in self._players],
      target_score=self._state.target_score,
      action_history=[a.to_dict() for a in self._action_history],
      timestamps=list(self._timestamps),
      metadata={
        'seed': self._seed,
      },
    )

  def print_summary(self) -> None:
    """Print a short, human-readable summary of the current game.

    This is a convenience for development and quick debugging; callers should
    avoid parsing the printed output in tests.
    """
    self._state.print_summary()
    for entry in self._state.history[-4:]:
      print(f"  [{entry.turn}] {entry.kind}: {entry.summary}")


class Replay(BaseModel):
  config: GameConfig
  players: list[dict | None]
  target_score: int | None = None
  action_history: list[dict[str, Any]]
  timestamps: list[int]
  metadata: dict[str, Any]  # seed and others

  def replay(self, assets: GameAssets | None = None) -> tuple[list[GameState], Engine]:
    """Re-apply the stored actions, returning every intermediate GameState.

    Each action is logged at the timestamp recorded for it, so the rebuilt
    history matches the exported game entry for entry.
    """
    timestamps = iter(self.timestamps)
    engine = Engine.new(
      [PlayerConfig.from_dict(p) if p is not None else None for p in self.players],
      seed=self.metadata.get('seed', None),
      target_score=self.target_score,
      config=self.config,
      assets=assets,
      clock=lambda: next(timestamps),
    )
    states: list[GameState] = [engine.get_state()]
    for d in self.action_history:
      result = engine.step(Action.deserialize(d))
      if not result.accepted:
        raise ValueError(f"replayed action was rejected: {d} ({result.reason})")
      states.append(engine.get_state())
    return states, engine

"""One client's view of a room.

The session caches the last record it saw, keyed by revision, and rebuilds
everything it shows from that record. Failures never escape: they end up
in `notice`, and a room that disappears sends the client back to ENTRY.
"""
import logging
import threading
from dataclasses import replace
from collections.abc import Callable, Sequence
from enum import Enum
from typing import TypeVar

from ..actions import Action, ActionResult, BuyCardAction, ReserveCardAction, TakeGemsAction
from ..agents.decision import DecisionEngine
from ..agents.remote import RemoteModelClient
from ..engine import perform_ai_move
from ..settings import Settings
from ..state import GameState
from ..typings import AIStrategy, Gem, PlayerConfig
from .errors import RoomError, RoomNotFoundError, StoreNotConfiguredError
from .lobby import LobbySnapshot
from .service import RoomService
from .store import RoomRecord, RoomStatus, normalize_code, open_store

logger = logging.getLogger(__name__)

T = TypeVar('T')


class Phase(Enum):
  ENTRY = "ENTRY"
  LOBBY = "LOBBY"
  IN_GAME = "IN_GAME"
  COMPLETE = "COMPLETE"

  def __str__(self) -> str:
    return self.value


_PHASE_BY_STATUS = {
  RoomStatus.LOBBY: Phase.LOBBY,
  RoomStatus.IN_PROGRESS: Phase.IN_GAME,
  RoomStatus.COMPLETE: Phase.COMPLETE,
}


class RoomSession:
  """Client-side state machine for one player in one room."""

  def __init__(self, service: RoomService | None, player: PlayerConfig, *,
               settings: Settings | None = None,
               decision_engine: DecisionEngine | None = None,
               notice: str | None = None) -> None:
    if not player.id:
      raise ValueError("a session player needs an id")
    self.service = service
    self.player = player if player.is_human else replace(player, is_human=True, ai_strategy=None)
    self.settings = settings or Settings()
    self.decision_engine = decision_engine or DecisionEngine(RemoteModelClient.from_settings(self.settings))
    self.room_code: str | None = None
    self.record: RoomRecord | None = None
    self.revision = -1
    self.phase = Phase.ENTRY
    self.notice = notice
    self._lock = threading.RLock()

  @classmethod
  def from_settings(cls, settings: Settings, player: PlayerConfig,
                    decision_engine: DecisionEngine | None = None) -> 'RoomSession':
    """Open the configured store; without one the session only carries a notice."""
    try:
      service = RoomService(open_store(settings))
    except StoreNotConfiguredError as e:
      logger.info("%s", e)
      return cls(None, player, settings=settings, decision_engine=decision_engine, notice=str(e))
    return cls(service, player, settings=settings, decision_engine=decision_engine)

  @property
  def multiplayer_enabled(self) -> bool:
    return self.service is not None

  @property
  def lobby(self) -> LobbySnapshot | None:
    return self.record.lobby_snapshot if self.record is not None else None

  @property
  def state(self) -> GameState | None:
    return self.record.game_state if self.record is not None else None

  @property
  def is_host(self) -> bool:
    return self.record is not None and self.record.lobby_snapshot.host_id == self.player.id

  @property
  def is_my_turn(self) -> bool:
    state = self.state
    return (self.phase == Phase.IN_GAME and state is not None
            and state.current_player.id == self.player.id)

  def clear_notice(self) -> None:
    self.notice = None

  # -- reconciliation

  def _reset(self, notice: str | None = None) -> None:
    self.room_code = None
    self.record = None
    self.revision = -1
    self.phase = Phase.ENTRY
    if notice is not None:
      self.notice = notice

  def _adopt(self, record: RoomRecord) -> None:
    """Replace local state wholesale with `record`."""
    self.room_code = record.room_code
    self.record = record
    self.revision = record.revision
    self.phase = _PHASE_BY_STATUS[record.status]
    if self.phase == Phase.LOBBY and record.lobby_snapshot.seat_of(self.player.id or "") == -1:
      self._reset(f"You are no longer seated in room {record.room_code}")

  def _guard(self, fn: Callable[[RoomService], T]) -> T | None:
    if self.service is None:
      self.notice = self.notice or str(StoreNotConfiguredError())
      return None
    try:
      return fn(self.service)
    except RoomNotFoundError as e:
      logger.info("room lost: %s", e)
      self._reset(str(e))
    except RoomError as e:
      logger.warning("room operation failed: %s", e)
      self.notice = str(e)
    return None

  def poll_once(self) -> bool:
    """Fetch the record once; returns True when local state changed."""
    with self._lock:
      if self.service is None or self.room_code is None:
        return False
      code = self.room_code
      try:
        fetched = self.service.fetch_room(code)
      except RoomError as e:
        logger.warning("poll of room %s failed: %s", code, e)
        self.notice = str(e)
        return False
      if fetched is None:
        self._reset(f"Room {code} is gone")
        return True
      if fetched.revision == self.revision:
        return False
      self._adopt(fetched)
      return True

  # -- lobby

  def create_room(self, desired_code: str | None = None, **kwargs) -> bool:
    with self._lock:
      record = self._guard(lambda s: s.create_room(self.player, desired_code, **kwargs))
      if record is None:
        return False
      self._adopt(record)
      return True

  def join_room(self, room_code: str, preferred_index: int | None = None) -> bool:
    with self._lock:
      joined = self._guard(lambda s: s.join_room(normalize_code(room_code), self.player, preferred_index))
      if joined is None:
        return False
      self._adopt(joined[0])
      return True

  def leave_room(self) -> bool:
    with self._lock:
      if self.room_code is None:
        return False
      code = self.room_code
      self._guard(lambda s: s.leave_room(code, self.player.id or ""))
      self._reset()
      return True

  def _host_update(self, fn: Callable[[RoomService, str], RoomRecord | None]) -> bool:
    with self._lock:
      if self.room_code is None:
        return False
      code = self.room_code
      record = self._guard(lambda s: fn(s, code))
      if record is None:
        return False
      self._adopt(record)
      return True

  def set_seat_strategy(self, seat_index: int, strategy: AIStrategy | None) -> bool:
    return self._host_update(lambda s, code: s.set_seat_strategy(code, self.player.id, seat_index, strategy))

  def set_default_strategy(self, strategy: AIStrategy) -> bool:
    return self._host_update(lambda s, code: s.set_default_strategy(code, self.player.id, strategy))

  def set_target_score(self, target_score: int) -> bool:
    return self._host_update(lambda s, code: s.set_target_score(code, self.player.id, target_score))

  def kick(self, occupant_id: str) -> bool:
    return self._host_update(lambda s, code: s.kick(code, self.player.id, occupant_id))

  def start_game(self, seed: int | None = None) -> bool:
    return self._host_update(lambda s, code: s.start_game(code, self.player.id, seed))

  def abort_game(self) -> bool:
    return self._host_update(lambda s, code: s.abort_game(code, self.player.id))

  def close_room(self) -> bool:
    with self._lock:
      if self.room_code is None:
        return False
      code = self.room_code
      if self._guard(lambda s: s.close_room(code, self.player.id or "")) is None:
        return False
      self._reset()
      return True

  # -- game

  def _play(self, action: Action) -> ActionResult | None:
    """Apply one of our own moves and persist it only when the rules accept it."""
    with self._lock:
      state = self.state
      if state is None or self.room_code is None or not self.is_my_turn:
        self.notice = "It is not your turn"
        return None
      result = action.apply(state)
      if not result.accepted:
        self.notice = result.reason
        return result
      code = self.room_code
      record = self._guard(lambda s: s.save_game_state(code, result.state))
      if record is not None:
        self._adopt(record)
      return result

  def take_gems(self, colors: Sequence[Gem]) -> ActionResult | None:
    return self._play(TakeGemsAction.create(*colors))

  def reserve_card(self, card_id: str | None = None, deck_level: int | None = None) -> ActionResult | None:
    return self._play(ReserveCardAction.create(card_id, deck_level))

  def buy_card(self, card_id: str, from_reserve: bool = False) -> ActionResult | None:
    return self._play(BuyCardAction.create(card_id, from_reserve))

  def ai_turn_pending(self) -> bool:
    state = self.state
    return (self.is_host and self.phase == Phase.IN_GAME and state is not None
            and state.winner_id is None and not state.current_player.is_human)

  def run_ai_turn(self) -> bool:
    """Host only: let the acting AI seat move.

    The move is dropped when the stored record moved on while the AI was
    thinking, so a stale decision is never written over a newer state.
    """
    with self._lock:
      if not self.ai_turn_pending() or self.room_code is None:
        return False
      seen = self.revision
      state = self.state
      assert state is not None
      code = self.room_code

    new_state = perform_ai_move(state, self.decision_engine)

    with self._lock:
      if self.revision != seen or self.room_code != code:
        logger.info("room %s: discarding stale AI move (revision %s -> %s)", code, seen, self.revision)
        return False
      current = self._guard(lambda s: s.fetch_room(code))
      if current is None or current.revision != seen:
        logger.info("room %s: discarding stale AI move", code)
        if current is not None:
          self._adopt(current)
        return False
      record = self._guard(lambda s: s.save_game_state(code, new_state))
      if record is None:
        return False
      self._adopt(record)
      return True


class Poller:
  """Background polling loop for a RoomSession.

  The next wait starts only after the previous poll (and any AI turn it
  triggered) has settled, so polls never overlap. Failures are left in the
  session's notice and the loop carries on.
  """

  def __init__(self, session: RoomSession, *, interval: float | None = None,
               ai_delay: float | None = None,
               on_change: Callable[[RoomSession], None] | None = None) -> None:
    self.session = session
    self.interval = interval if interval is not None else session.settings.poll_interval
    self.ai_delay = ai_delay if ai_delay is not None else session.settings.ai_delay
    self.on_change = on_change
    self._stop = threading.Event()
    self._thread: threading.Thread | None = None

  @property
  def running(self) -> bool:
    return self._thread is not None and self._thread.is_alive()

  def start(self) -> None:
    if self.running:
      return
    self._stop.clear()
    self._thread = threading.Thread(target=self._run, name="cosmic-room-poller", daemon=True)
    self._thread.start()

  def stop(self, timeout: float | None = None) -> None:
    self._stop.set()
    if self._thread is not None:
      self._thread.join(timeout)
      self._thread = None

  def tick(self) -> bool:
    """One poll, plus the AI turn it may unlock. Returns True on any change."""
    changed = self.session.poll_once()
    if self.session.ai_turn_pending():
      if self._stop.wait(self.ai_delay):
        return changed
      changed = self.session.run_ai_turn() or changed
    if changed and self.on_change is not None:
      self.on_change(self.session)
    return changed

  def _run(self) -> None:
    while not self._stop.wait(self.interval):
      try:
        self.tick()
      except Exception as e:
        logger.exception("poll of room %s failed", self.session.room_code)
        self.session.notice = f"Sync failed: {e}"

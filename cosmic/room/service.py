"""Room operations on top of a RoomStore.

`RoomService` is built once per process around one store and passed to
whoever needs it. It prepares the store schema on first use. Every
operation reads the current record, computes a new lobby snapshot or game
state with the pure lobby and engine functions and writes it back whole.
"""
import logging
import random
from collections.abc import Callable

from ..engine import init_game
from ..state import GameState
from ..typings import AIStrategy, PlayerConfig
from . import lobby
from .errors import NotHostError, RoomCodeExhaustedError, RoomError, RoomFullError, RoomNotFoundError
from .store import RoomRecord, RoomStatus, RoomStore, generate_room_code, normalize_code

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 10


class RoomService:

  def __init__(self, store: RoomStore, *, rng: random.Random | None = None,
               code_generator: Callable[[random.Random], str] = generate_room_code) -> None:
    self.store = store
    self.rng = rng or random.Random()
    self.code_generator = code_generator
    self._schema_ready = False

  def _store(self) -> RoomStore:
    if not self._schema_ready:
      self.store.ensure_schema()
      self._schema_ready = True
    return self.store

  def _require(self, room_code: str) -> RoomRecord:
    record = self._store().fetch(room_code)
    if record is None:
      raise RoomNotFoundError(normalize_code(room_code))
    return record

  def _require_host(self, room_code: str, requester_id: str) -> RoomRecord:
    record = self._require(room_code)
    if record.lobby_snapshot.host_id != requester_id:
      raise NotHostError(requester_id)
    return record

  def fetch_room(self, room_code: str) -> RoomRecord | None:
    return self._store().fetch(room_code)

  def create_room(self, host: PlayerConfig, desired_code: str | None = None, *,
                  target_score: int | None = None,
                  default_strategy: AIStrategy = lobby.DEFAULT_LOBBY_STRATEGY) -> RoomRecord:
    """Open a room with `host` in seat 0, at revision 0.

    A taken code is retried with fresh random codes, at most
    `MAX_CODE_ATTEMPTS` times in total.
    """
    snapshot = lobby.create_lobby_snapshot(default_ai_strategy=default_strategy)
    if target_score is not None:
      snapshot = lobby.set_target_score(snapshot, target_score)
    snapshot, _ = lobby.assign_occupant_to_seat(snapshot, host, 0)

    store = self._store()
    code = normalize_code(desired_code) if desired_code else self.code_generator(self.rng)
    for _ in range(MAX_CODE_ATTEMPTS):
      record = store.insert(code, snapshot)
      if record is not None:
        logger.info("room %s created by %s", record.room_code, host.id)
        return record
      code = self.code_generator(self.rng)
    raise RoomCodeExhaustedError(MAX_CODE_ATTEMPTS)

  def join_room(self, room_code: str, occupant: PlayerConfig,
                preferred_index: int | None = None) -> tuple[RoomRecord, int]:
    """Seat `occupant`; returns the stored record and their seat index.

    Rejoining a room one already sits in changes nothing.
    """
    record = self._require(room_code)
    seated = record.lobby_snapshot.seat_of(occupant.id or "")
    if seated != -1 and (preferred_index is None or preferred_index == seated):
      return record, seated
    if record.status != RoomStatus.LOBBY:
      raise RoomError(f"Room {record.room_code} already started")

    snapshot, seat_index = lobby.assign_occupant_to_seat(record.lobby_snapshot, occupant, preferred_index)
    if seat_index == -1:
      raise RoomFullError(record.room_code)
    return self._store().update(record.room_code, lobby_snapshot=snapshot), seat_index

  def leave_room(self, room_code: str, occupant_id: str) -> RoomRecord | None:
    """Free the occupant's seat. The room is deleted once nobody is left."""
    record = self._require(room_code)
    snapshot = lobby.remove_occupant_by_id(record.lobby_snapshot, occupant_id)
    if not snapshot.occupants():
      self._store().delete(record.room_code)
      logger.info("room %s closed: last occupant left", record.room_code)
      return None
    return self._store().update(record.room_code, lobby_snapshot=snapshot)

  def kick(self, room_code: str, requester_id: str, occupant_id: str) -> RoomRecord:
    record = self._require_host(room_code, requester_id)
    if occupant_id == requester_id:
      raise RoomError("The host cannot kick themselves")
    snapshot = lobby.remove_occupant_by_id(record.lobby_snapshot, occupant_id)
    return self._store().update(record.room_code, lobby_snapshot=snapshot)

  def set_seat_strategy(self, room_code: str, requester_id: str, seat_index: int,
                        strategy: AIStrategy | None) -> RoomRecord:
    record = self._require_host(room_code, requester_id)
    snapshot = lobby.update_seat_strategy(record.lobby_snapshot, seat_index, strategy)
    return self._store().update(record.room_code, lobby_snapshot=snapshot)

  def set_default_strategy(self, room_code: str, requester_id: str, strategy: AIStrategy) -> RoomRecord:
    record = self._require_host(room_code, requester_id)
    snapshot = lobby.set_default_ai_strategy(record.lobby_snapshot, strategy)
    return self._store().update(record.room_code, lobby_snapshot=snapshot)

  def set_target_score(self, room_code: str, requester_id: str, target_score: int) -> RoomRecord:
    record = self._require_host(room_code, requester_id)
    snapshot = lobby.set_target_score(record.lobby_snapshot, target_score)
    return self._store().update(record.room_code, lobby_snapshot=snapshot)

  def start_game(self, room_code: str, requester_id: str, seed: int | None = None) -> RoomRecord:
    """Deal a new game from the lobby and move the room to IN_PROGRESS."""
    record = self._require_host(room_code, requester_id)
    if record.status == RoomStatus.IN_PROGRESS:
      raise RoomError(f"Room {record.room_code} already started")
    if seed is None:
      seed = self.rng.randint(0, 2**31 - 1)
    snapshot = record.lobby_snapshot
    state = init_game(lobby.to_player_config_list(snapshot.seats),
                      target_score=snapshot.target_score, seed=seed)
    logger.info("room %s: game started (seed=%s)", record.room_code, seed)
    return self._store().update(record.room_code, game_state=state, status=RoomStatus.IN_PROGRESS)

  def save_game_state(self, room_code: str, state: GameState) -> RoomRecord:
    """Persist `state`; a state with a winner completes the room."""
    status = RoomStatus.COMPLETE if state.winner_id is not None else RoomStatus.IN_PROGRESS
    return self._store().update(room_code, game_state=state, status=status)

  def abort_game(self, room_code: str, requester_id: str) -> RoomRecord:
    """Drop the game and send everyone back to the lobby."""
    record = self._require_host(room_code, requester_id)
    return self._store().update(record.room_code, game_state=None, status=RoomStatus.LOBBY)

  def close_room(self, room_code: str, requester_id: str) -> RoomRecord:
    """Delete the room; returns its last record."""
    record = self._require_host(room_code, requester_id)
    self._store().delete(record.room_code)
    logger.info("room %s closed by host", record.room_code)
    return record

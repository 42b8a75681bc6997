"""Persisted room records.

A room record is the only thing clients share: the lobby snapshot, the
optional game state, a status and a revision counter. Every write replaces
the record wholesale and bumps the revision by one; there is no merging.
"""
import logging
import random
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeVar

from sqlalchemy import JSON, Integer, String, create_engine, delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from ..settings import Settings
from ..state import GameState
from .errors import RevisionConflictError, RoomNotFoundError, StoreError, StoreNotConfiguredError
from .lobby import LobbySnapshot

logger = logging.getLogger(__name__)

T = TypeVar('T')

ROOM_TABLE = "cosmic_rooms"
ROOM_CODE_ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"
ROOM_CODE_LENGTH = 5

# Sentinel meaning "leave this column as it is".
_KEEP: Any = object()


class RoomStatus(Enum):
  LOBBY = "LOBBY"
  IN_PROGRESS = "IN_PROGRESS"
  COMPLETE = "COMPLETE"

  def __str__(self) -> str:
    return self.value


def generate_room_code(rng: random.Random | None = None) -> str:
  rng = rng or random.Random()
  return "".join(rng.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def normalize_code(room_code: str) -> str:
  return room_code.strip().upper()


def _utc_now() -> str:
  return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class RoomRecord:
  room_code: str
  lobby_snapshot: LobbySnapshot
  game_state: GameState | None = None
  status: RoomStatus = RoomStatus.LOBBY
  host_id: str | None = None
  revision: int = 0
  updated_at: str = ""

  def to_dict(self) -> dict:
    return {
        'room_code': self.room_code,
        'lobby_snapshot': self.lobby_snapshot.to_dict(),
        'game_state': self.game_state.to_dict() if self.game_state is not None else None,
        'status': self.status.value,
        'host_id': self.host_id,
        'revision': self.revision,
        'updated_at': self.updated_at,
    }

  @classmethod
  def from_dict(cls, d: dict) -> 'RoomRecord':
    game_state = d.get('game_state')
    return cls(room_code=d['room_code'],
               lobby_snapshot=LobbySnapshot.from_dict(d['lobby_snapshot']),
               game_state=GameState.from_dict(game_state) if game_state else None,
               status=RoomStatus(d.get('status', RoomStatus.LOBBY.value)),
               host_id=d.get('host_id'),
               revision=int(d.get('revision', 0)),
               updated_at=d.get('updated_at', ''))


class RoomStore(ABC):
  """Storage contract for room records.

  `insert` returns None when the code is taken. `update` always increments
  the revision; when `expected_revision` is given the write is refused with
  `RevisionConflictError` unless the record is still at that revision.
  """

  @abstractmethod
  def ensure_schema(self) -> None:
    """Create whatever the store needs. Safe to call more than once."""

  @abstractmethod
  def insert(self, room_code: str, lobby_snapshot: LobbySnapshot) -> RoomRecord | None:
    pass

  @abstractmethod
  def fetch(self, room_code: str) -> RoomRecord | None:
    pass

  @abstractmethod
  def update(self, room_code: str, *, lobby_snapshot: LobbySnapshot = _KEEP,
             game_state: GameState | None = _KEEP, status: RoomStatus | None = None,
             expected_revision: int | None = None) -> RoomRecord:
    pass

  @abstractmethod
  def delete(self, room_code: str) -> None:
    pass

  def close(self) -> None:
    pass


class MemoryRoomStore(RoomStore):
  """Process-local store, for tests and single-machine play."""

  def __init__(self) -> None:
    self._rooms: dict[str, RoomRecord] = {}
    self._lock = threading.Lock()

  def ensure_schema(self) -> None:
    pass

  def insert(self, room_code: str, lobby_snapshot: LobbySnapshot) -> RoomRecord | None:
    code = normalize_code(room_code)
    with self._lock:
      if code in self._rooms:
        return None
      record = RoomRecord(room_code=code, lobby_snapshot=lobby_snapshot, host_id=lobby_snapshot.host_id,
                          revision=0, updated_at=_utc_now())
      self._rooms[code] = record
      return record

  def fetch(self, room_code: str) -> RoomRecord | None:
    with self._lock:
      return self._rooms.get(normalize_code(room_code))

  def update(self, room_code: str, *, lobby_snapshot: LobbySnapshot = _KEEP,
             game_state: GameState | None = _KEEP, status: RoomStatus | None = None,
             expected_revision: int | None = None) -> RoomRecord:
    code = normalize_code(room_code)
    with self._lock:
      current = self._rooms.get(code)
      if current is None:
        raise RoomNotFoundError(code)
      if expected_revision is not None and current.revision != expected_revision:
        raise RevisionConflictError(code, expected_revision, current.revision)
      changes: dict[str, Any] = {'revision': current.revision + 1, 'updated_at': _utc_now()}
      if lobby_snapshot is not _KEEP:
        changes['lobby_snapshot'] = lobby_snapshot
        changes['host_id'] = lobby_snapshot.host_id
      if game_state is not _KEEP:
        changes['game_state'] = game_state
      if status is not None:
        changes['status'] = status
      record = replace(current, **changes)
      self._rooms[code] = record
      return record

  def delete(self, room_code: str) -> None:
    with self._lock:
      self._rooms.pop(normalize_code(room_code), None)


class Base(DeclarativeBase):
  pass


class RoomRow(Base):
  """One room; lobby snapshot and game state are stored as JSON documents."""

  __tablename__ = ROOM_TABLE

  room_code: Mapped[str] = mapped_column(String(16), primary_key=True)
  lobby_snapshot: Mapped[dict] = mapped_column(JSON, nullable=False)
  # None is stored as SQL NULL, not as the JSON literal null
  game_state: Mapped[dict | None] = mapped_column(JSON(none_as_null=True), nullable=True, default=None)
  status: Mapped[str] = mapped_column(String(16), nullable=False, default=RoomStatus.LOBBY.value)
  host_id: Mapped[str | None] = mapped_column(String(64), nullable=True, default=None)
  revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  updated_at: Mapped[str] = mapped_column(String(40), nullable=False)

  def to_record(self) -> RoomRecord:
    try:
      return RoomRecord(
        room_code=self.room_code,
        lobby_snapshot=LobbySnapshot.from_dict(self.lobby_snapshot),
        game_state=GameState.from_dict(self.game_state) if self.game_state else None,
        status=RoomStatus(self.status),
        host_id=self.host_id,
        revision=self.revision,
        updated_at=self.updated_at,
      )
    except (ValueError, KeyError, TypeError) as e:
      raise StoreError(f"corrupt room row {self.room_code}: {e}") from e


def _engine_options(url: str) -> dict[str, Any]:
  if not url.startswith("sqlite"):
    return {}
  options: dict[str, Any] = {'connect_args': {'check_same_thread': False}}
  if url in ("sqlite://", "sqlite:///:memory:"):
    # every connection must see the same in-memory database
    options['poolclass'] = StaticPool
  return options


class SqlRoomStore(RoomStore):
  """Room records in the `cosmic_rooms` table of any SQLAlchemy database."""

  def __init__(self, url: str) -> None:
    self.url = url
    try:
      self.engine = create_engine(url, **_engine_options(url))
    except (SQLAlchemyError, ImportError) as e:
      raise StoreError(f"cannot open room store at {url}: {e}") from e
    self._sessions = sessionmaker(self.engine, expire_on_commit=False)

  def _transaction(self, fn: Callable[[Session], T]) -> T:
    """Run `fn` in one transaction, committed when it returns."""
    try:
      with self._sessions.begin() as session:
        return fn(session)
    except IntegrityError:
      raise
    except SQLAlchemyError as e:
      logger.warning("room store query failed: %s", e)
      raise StoreError(str(e)) from e

  def ensure_schema(self) -> None:
    try:
      Base.metadata.create_all(self.engine)
    except SQLAlchemyError as e:
      raise StoreError(f"cannot create room table: {e}") from e

  def insert(self, room_code: str, lobby_snapshot: LobbySnapshot) -> RoomRecord | None:
    row = RoomRow(room_code=normalize_code(room_code),
                  lobby_snapshot=lobby_snapshot.to_dict(),
                  game_state=None,
                  status=RoomStatus.LOBBY.value,
                  host_id=lobby_snapshot.host_id,
                  revision=0,
                  updated_at=_utc_now())

    def add(session: Session) -> RoomRecord:
      session.add(row)
      session.flush()
      return row.to_record()

    try:
      return self._transaction(add)
    except IntegrityError:
      return None

  def fetch(self, room_code: str) -> RoomRecord | None:
    def get(session: Session) -> RoomRecord | None:
      row = session.get(RoomRow, normalize_code(room_code))
      return row.to_record() if row is not None else None

    return self._transaction(get)

  def update(self, room_code: str, *, lobby_snapshot: LobbySnapshot = _KEEP,
             game_state: GameState | None = _KEEP, status: RoomStatus | None = None,
             expected_revision: int | None = None) -> RoomRecord:
    code = normalize_code(room_code)
    values: dict[str, Any] = {'revision': RoomRow.revision + 1, 'updated_at': _utc_now()}
    if lobby_snapshot is not _KEEP:
      values['lobby_snapshot'] = lobby_snapshot.to_dict()
      values['host_id'] = lobby_snapshot.host_id
    if game_state is not _KEEP:
      values['game_state'] = game_state.to_dict() if game_state is not None else None
    if status is not None:
      values['status'] = status.value

    stmt = update(RoomRow).where(RoomRow.room_code == code)
    if expected_revision is not None:
      stmt = stmt.where(RoomRow.revision == expected_revision)
    stmt = stmt.values(**values).execution_options(synchronize_session=False)

    def write(session: Session) -> RoomRecord:
      if session.execute(stmt).rowcount == 0:
        current = session.get(RoomRow, code)
        if current is None:
          raise RoomNotFoundError(code)
        assert expected_revision is not None
        raise RevisionConflictError(code, expected_revision, current.revision)
      row = session.get(RoomRow, code, populate_existing=True)
      assert row is not None
      return row.to_record()

    return self._transaction(write)

  def delete(self, room_code: str) -> None:
    code = normalize_code(room_code)
    self._transaction(lambda session: session.execute(delete(RoomRow).where(RoomRow.room_code == code)))

  def close(self) -> None:
    self.engine.dispose()


def open_store(settings: Settings) -> RoomStore:
  """Build the store named by `settings.database_url`.

  `memory://` gives a MemoryRoomStore. Any SQLAlchemy URL (for example
  `sqlite:///rooms.db`) gives a SqlRoomStore, and a bare path is taken as a
  sqlite file. An empty URL raises StoreNotConfiguredError.
  """
  url = settings.database_url
  if not url:
    raise StoreNotConfiguredError()
  if url == "memory://":
    return MemoryRoomStore()
  if "://" not in url:
    url = f"sqlite:///{url}"
  return SqlRoomStore(url)

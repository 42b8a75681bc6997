from .errors import (NotHostError, RevisionConflictError, RoomCodeExhaustedError, RoomError, RoomFullError,
                     RoomNotFoundError, StoreError, StoreNotConfiguredError)
from .lobby import LobbySeatState, LobbySnapshot, create_lobby_snapshot
from .store import MemoryRoomStore, RoomRecord, RoomStatus, RoomStore, SqlRoomStore, open_store
from .service import RoomService
from .session import Phase, Poller, RoomSession

__all__ = [
  "NotHostError", "RevisionConflictError", "RoomCodeExhaustedError", "RoomError", "RoomFullError",
  "RoomNotFoundError", "StoreError", "StoreNotConfiguredError",
  "LobbySeatState", "LobbySnapshot", "create_lobby_snapshot",
  "MemoryRoomStore", "RoomRecord", "RoomStatus", "RoomStore", "SqlRoomStore", "open_store",
  "RoomService", "Phase", "Poller", "RoomSession",
]

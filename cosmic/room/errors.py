"""Exceptions raised by the room layer.

The service raises these; `RoomSession` turns them into a transient notice
for the player instead of letting them escape.
"""


class RoomError(Exception):
  """Base class for every room synchronization failure."""


class RoomNotFoundError(RoomError):
  def __init__(self, room_code: str) -> None:
    super().__init__(f"Room {room_code} was not found")
    self.room_code = room_code


class RoomCodeExhaustedError(RoomError):
  def __init__(self, attempts: int) -> None:
    super().__init__(f"Failed to allocate a unique room code after {attempts} attempts")
    self.attempts = attempts


class RoomFullError(RoomError):
  def __init__(self, room_code: str) -> None:
    super().__init__(f"Room {room_code} has no free seat")
    self.room_code = room_code


class NotHostError(RoomError):
  def __init__(self, requester_id: str | None) -> None:
    super().__init__(f"Only the host may do that ({requester_id} is not the host)")
    self.requester_id = requester_id


class RevisionConflictError(RoomError):
  """A guarded write found the record at a different revision."""

  def __init__(self, room_code: str, expected: int, actual: int) -> None:
    super().__init__(f"Room {room_code} is at revision {actual}, expected {expected}")
    self.room_code = room_code
    self.expected = expected
    self.actual = actual


class StoreError(RoomError):
  """The backing store failed (I/O, corrupt row, lost connection)."""


class StoreNotConfiguredError(RoomError):
  def __init__(self) -> None:
    super().__init__("Multiplayer is disabled: COSMIC_DATABASE_URL is not set")

"""Pure functions over the pre-game lobby.

A lobby has a fixed number of seats; each either holds an occupant or
stands for an AI player with a configured strategy. Every function returns a
new snapshot, the room store always persists the whole snapshot.
"""
from dataclasses import replace
from pydantic.dataclasses import dataclass as pydantic_dataclass

from ..consts import AVATAR_NAMES, DEFAULT_SEATS, TARGET_SCORE_DEFAULT, default_strategy_for_seat
from ..typings import AIStrategy, PlayerConfig
from ..utils import _replace_tuple

DEFAULT_LOBBY_STRATEGY = AIStrategy.BALANCED


@pydantic_dataclass(frozen=True)
class LobbySeatState:
  ai_strategy: AIStrategy | None = DEFAULT_LOBBY_STRATEGY
  occupant: PlayerConfig | None = None

  def to_dict(self) -> dict:
    return {
        'ai_strategy': self.ai_strategy.value if self.ai_strategy is not None else None,
        'occupant': self.occupant.to_dict() if self.occupant is not None else None,
    }

  @classmethod
  def from_dict(cls, d: dict) -> 'LobbySeatState':
    occupant = d.get('occupant')
    strategy = d.get('ai_strategy')
    return cls(ai_strategy=AIStrategy(strategy) if strategy else None,
               occupant=PlayerConfig.from_dict(occupant) if occupant else None)


@pydantic_dataclass(frozen=True)
class LobbySnapshot:
  seats: tuple[LobbySeatState, ...]
  host_id: str | None = None
  target_score: int = TARGET_SCORE_DEFAULT
  default_ai_strategy: AIStrategy = DEFAULT_LOBBY_STRATEGY

  def __post_init__(self):
    if self.target_score < 1:
      raise ValueError(f"target_score must be at least 1, got {self.target_score}")

  def seat_of(self, occupant_id: str) -> int:
    for i, seat in enumerate(self.seats):
      if seat.occupant is not None and seat.occupant.id == occupant_id:
        return i
    return -1

  def occupants(self) -> list[PlayerConfig]:
    return [s.occupant for s in self.seats if s.occupant is not None]

  def open_seats(self) -> list[int]:
    return [i for i, s in enumerate(self.seats) if s.occupant is None]

  def to_dict(self) -> dict:
    return {
        'seats': [s.to_dict() for s in self.seats],
        'host_id': self.host_id,
        'target_score': self.target_score,
        'default_ai_strategy': self.default_ai_strategy.value,
    }

  @classmethod
  def from_dict(cls, d: dict) -> 'LobbySnapshot':
    return cls(seats=tuple(LobbySeatState.from_dict(s) for s in d.get('seats', ())),
               host_id=d.get('host_id'),
               target_score=int(d.get('target_score', TARGET_SCORE_DEFAULT)),
               default_ai_strategy=AIStrategy(d.get('default_ai_strategy') or DEFAULT_LOBBY_STRATEGY.value))


def create_lobby_snapshot(
    seats: tuple[LobbySeatState, ...] | None = None,
    host_id: str | None = None,
    target_score: int = TARGET_SCORE_DEFAULT,
    default_ai_strategy: AIStrategy = DEFAULT_LOBBY_STRATEGY,
    seat_count: int = DEFAULT_SEATS,
) -> LobbySnapshot:
  if seats is None:
    seats = tuple(LobbySeatState(ai_strategy=default_ai_strategy) for _ in range(seat_count))
  return LobbySnapshot(seats=tuple(seats), host_id=host_id, target_score=target_score,
                       default_ai_strategy=default_ai_strategy)


def _without_occupant(seats: tuple[LobbySeatState, ...], occupant_id: str) -> tuple[LobbySeatState, ...]:
  return tuple(
    replace(s, occupant=None) if s.occupant is not None and s.occupant.id == occupant_id else s
    for s in seats
  )


def assign_occupant_to_seat(snapshot: LobbySnapshot, occupant: PlayerConfig,
                            preferred_index: int | None = None) -> tuple[LobbySnapshot, int]:
  """Seat `occupant`, moving them if they already sit elsewhere.

  Takes `preferred_index` when that seat is free, otherwise the first open
  seat. Returns the new snapshot and the seat index, or -1 (with the
  occupant unseated) when there is no room. The first occupant of a lobby
  without a host becomes its host.
  """
  if not occupant.id:
    raise ValueError("occupant must have an id")
  seats = _without_occupant(snapshot.seats, occupant.id)

  if preferred_index is not None:
    seat_index = preferred_index
  else:
    seat_index = next((i for i, s in enumerate(seats) if s.occupant is None), -1)
  if not (0 <= seat_index < len(seats)) or seats[seat_index].occupant is not None:
    return replace(snapshot, seats=seats), -1

  seats = _replace_tuple(seats, seat_index, replace(seats[seat_index], occupant=occupant))
  host_id = snapshot.host_id if snapshot.host_id is not None else occupant.id
  return replace(snapshot, seats=seats, host_id=host_id), seat_index


def remove_occupant_by_id(snapshot: LobbySnapshot, occupant_id: str) -> LobbySnapshot:
  """Free the occupant's seat. A leaving host hands over to the next occupant."""
  seats = _without_occupant(snapshot.seats, occupant_id)
  host_id = snapshot.host_id
  if host_id == occupant_id:
    host_id = next((s.occupant.id for s in seats if s.occupant is not None), None)
  return replace(snapshot, seats=seats, host_id=host_id)


def update_seat_strategy(snapshot: LobbySnapshot, seat_index: int,
                         strategy: AIStrategy | None) -> LobbySnapshot:
  if not (0 <= seat_index < len(snapshot.seats)):
    return snapshot
  seat = snapshot.seats[seat_index]
  seats = _replace_tuple(snapshot.seats, seat_index,
                         replace(seat, ai_strategy=strategy or snapshot.default_ai_strategy))
  return replace(snapshot, seats=seats)


def set_default_ai_strategy(snapshot: LobbySnapshot, strategy: AIStrategy) -> LobbySnapshot:
  """Change the lobby default; only unoccupied seats pick it up."""
  seats = tuple(s if s.occupant is not None else replace(s, ai_strategy=strategy) for s in snapshot.seats)
  return replace(snapshot, seats=seats, default_ai_strategy=strategy)


def set_target_score(snapshot: LobbySnapshot, target_score: int) -> LobbySnapshot:
  return replace(snapshot, target_score=target_score)


def to_player_config_list(seats: tuple[LobbySeatState, ...]) -> list[PlayerConfig]:
  """Resolve every seat to a PlayerConfig; empty seats become AI players."""
  configs: list[PlayerConfig] = []
  for i, seat in enumerate(seats):
    if seat.occupant is not None:
      configs.append(seat.occupant)
      continue
    configs.append(PlayerConfig(
      id=f"ai-{i + 1}",
      name=AVATAR_NAMES[i] if i < len(AVATAR_NAMES) else f"AI {i + 1}",
      is_human=False,
      avatar_id=i + 5,
      ai_strategy=seat.ai_strategy or default_strategy_for_seat(i),
    ))
  return configs

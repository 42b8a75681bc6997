import itertools
import random
from dataclasses import replace

import pytest

from cosmic.actions import TakeGemsAction
from cosmic.room.errors import NotHostError, RoomCodeExhaustedError, RoomError, RoomFullError, RoomNotFoundError
from cosmic.room.service import MAX_CODE_ATTEMPTS, RoomService
from cosmic.room.store import MemoryRoomStore, RoomStatus
from cosmic.typings import AIStrategy, Gem, PlayerConfig


def person(id: str) -> PlayerConfig:
  return PlayerConfig(id=id, name=id.title(), is_human=True)


def make_service(**kwargs) -> RoomService:
  return RoomService(MemoryRoomStore(), rng=random.Random(0), **kwargs)


def test_create_room_with_desired_code():
  service = make_service()
  record = service.create_room(person('host'), 'abcde')
  assert record.room_code == 'ABCDE'
  assert record.revision == 0
  assert record.status == RoomStatus.LOBBY
  assert record.host_id == 'host'
  assert record.lobby_snapshot.seat_of('host') == 0


def test_create_room_retries_taken_codes():
  codes = itertools.chain(['TAKEN'], itertools.repeat('FRESH'))
  service = make_service(code_generator=lambda rng: next(codes))
  service.create_room(person('a'), 'TAKEN')
  record = service.create_room(person('b'))
  assert record.room_code == 'FRESH'

  stuck = make_service(code_generator=lambda rng: 'SAME1')
  stuck.create_room(person('a'))
  with pytest.raises(RoomCodeExhaustedError) as e:
    stuck.create_room(person('b'))
  assert e.value.attempts == MAX_CODE_ATTEMPTS


def test_create_room_options():
  record = make_service().create_room(person('host'), target_score=10, default_strategy=AIStrategy.RANDOM)
  assert record.lobby_snapshot.target_score == 10
  assert record.lobby_snapshot.seats[1].ai_strategy == AIStrategy.RANDOM


def test_join_room():
  service = make_service()
  service.create_room(person('host'), 'ROOM1')
  record, seat = service.join_room('room1', person('guest'))
  assert seat == 1
  assert record.revision == 1
  assert record.host_id == 'host'

  # rejoining changes nothing
  again, seat = service.join_room('ROOM1', person('guest'))
  assert seat == 1
  assert again.revision == 1

  with pytest.raises(RoomNotFoundError):
    service.join_room('NOPE1', person('x'))


def test_join_full_room():
  service = make_service()
  service.create_room(person('host'), 'ROOM1')
  for name in ('b', 'c', 'd'):
    service.join_room('ROOM1', person(name))
  with pytest.raises(RoomFullError):
    service.join_room('ROOM1', person('e'))


def test_host_only_operations():
  service = make_service()
  service.create_room(person('host'), 'ROOM1')
  service.join_room('ROOM1', person('guest'))
  with pytest.raises(NotHostError):
    service.start_game('ROOM1', 'guest')
  with pytest.raises(NotHostError):
    service.set_target_score('ROOM1', 'guest', 5)
  with pytest.raises(NotHostError):
    service.kick('ROOM1', 'guest', 'host')
  with pytest.raises(RoomError):
    service.kick('ROOM1', 'host', 'host')

  record = service.set_seat_strategy('ROOM1', 'host', 3, AIStrategy.GEMINI)
  assert record.lobby_snapshot.seats[3].ai_strategy == AIStrategy.GEMINI
  record = service.kick('ROOM1', 'host', 'guest')
  assert record.lobby_snapshot.seat_of('guest') == -1


def test_leave_room_hands_over_then_deletes():
  service = make_service()
  service.create_room(person('host'), 'ROOM1')
  service.join_room('ROOM1', person('guest'))
  record = service.leave_room('ROOM1', 'host')
  assert record is not None
  assert record.host_id == 'guest'
  assert service.leave_room('ROOM1', 'guest') is None
  assert service.fetch_room('ROOM1') is None


def test_game_lifecycle():
  service = make_service()
  service.create_room(person('host'), 'ROOM1')
  service.join_room('ROOM1', person('guest'))
  service.set_seat_strategy('ROOM1', 'host', 2, AIStrategy.DEFENSIVE)

  record = service.start_game('ROOM1', 'host', seed=5)
  assert record.status == RoomStatus.IN_PROGRESS
  state = record.game_state
  assert state is not None
  assert [p.id for p in state.players] == ['host', 'guest', 'ai-3', 'ai-4']
  assert state.players[2].ai_strategy == AIStrategy.DEFENSIVE
  with pytest.raises(RoomError):
    service.join_room('ROOM1', person('late'))
  with pytest.raises(RoomError):
    service.start_game('ROOM1', 'host')

  moved = TakeGemsAction.create(Gem.RED, Gem.BLUE, Gem.GREEN).apply(state).state
  saved = service.save_game_state('ROOM1', moved)
  assert saved.revision == record.revision + 1
  assert saved.game_state == moved

  aborted = service.abort_game('ROOM1', 'host')
  assert aborted.status == RoomStatus.LOBBY
  assert aborted.game_state is None
  assert aborted.lobby_snapshot.seat_of('guest') == 1


def test_winning_state_completes_room():
  service = make_service()
  service.create_room(person('host'), 'ROOM1')
  record = service.start_game('ROOM1', 'host', seed=1)
  won = replace(record.game_state, winner_id='host')
  assert service.save_game_state('ROOM1', won).status == RoomStatus.COMPLETE
  # a finished room can be dealt again
  assert service.start_game('ROOM1', 'host', seed=2).status == RoomStatus.IN_PROGRESS


def test_close_room():
  service = make_service()
  service.create_room(person('host'), 'ROOM1')
  with pytest.raises(NotHostError):
    service.close_room('ROOM1', 'guest')
  service.close_room('ROOM1', 'host')
  assert service.fetch_room('ROOM1') is None
  with pytest.raises(RoomNotFoundError):
    service.close_room('ROOM1', 'host')

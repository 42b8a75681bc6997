from cosmic.actions import (
  Accepted,
  Action,
  BuyCardAction,
  PassAction,
  Rejected,
  ReserveCardAction,
  TakeGemsAction,
  buy_card,
  reserve_card,
  take_gems,
)
from cosmic.consts import GameConfig
from cosmic.state import GameState, PlayerState
from cosmic.typings import ActionType, AIStrategy, Card, Gem, GemList, LogKind, MoveSource, NON_GOLD_GEMS


def make_card(level: int, id: str, bonus: Gem = Gem.RED, points: int = 0, cost=None) -> Card:
  return Card(id=id, level=level, bonus=bonus, points=points, cost=cost or {})


def make_state(players=None, market=None, decks=None, bank=None, **kwargs) -> GameState:
  if players is None:
    players = (PlayerState(id='p1', name='Ana', is_human=True), PlayerState(id='p2', name='Bo'))
  if market is None:
    market = {1: [make_card(1, 'm1', cost={Gem.WHITE: 1})], 2: [make_card(2, 'm2', points=2)], 3: []}
  if decks is None:
    decks = {1: [make_card(1, 'd1'), make_card(1, 'd2')], 2: [], 3: []}
  if bank is None:
    bank = GameConfig().initial_bank()
  return GameState(players=players, market=market, decks=decks, bank=bank, **kwargs)


def total_of(state: GameState, gem: Gem) -> int:
  return state.total_tokens(gem)


def test_action_constructors_and_serialization():
  a0 = Action.pass_turn(AIStrategy.GEMINI, MoveSource.GEMINI)
  assert isinstance(a0, PassAction)
  assert a0.type == ActionType.PASS

  a1 = Action.take_gems(Gem.WHITE, Gem.BLUE, Gem.GREEN)
  assert isinstance(a1, TakeGemsAction)
  assert a1.gems == (Gem.WHITE, Gem.BLUE, Gem.GREEN)

  a2 = Action.reserve(deck_level=2)
  assert isinstance(a2, ReserveCardAction)
  assert a2.card_id is None and a2.deck_level == 2

  a3 = Action.buy('card-7', from_reserve=True)
  assert isinstance(a3, BuyCardAction)
  assert a3.from_reserve is True

  for a in (a0, a1, a2, a3):
    assert Action.deserialize(a.serialize()) == a


def test_take_three_distinct_gems():
  state = make_state()
  result = TakeGemsAction.create(Gem.WHITE, Gem.BLUE, Gem.GREEN).apply(state, now=1000)
  assert isinstance(result, Accepted)
  new = result.state
  assert new is not state

  p1 = new.get_player('p1')
  assert p1 is not None
  assert p1.gems.get(Gem.WHITE) == 1
  assert p1.last_action == "Took white, blue, green"
  assert new.bank.get(Gem.WHITE) == 6
  assert new.bank.get(Gem.RED) == 7
  # the input state is untouched
  assert state.bank.get(Gem.WHITE) == 7
  assert state.current_player.gems.count() == 0

  entry = new.history[-1]
  assert entry.kind == LogKind.TAKE_GEMS
  assert entry.player_id == 'p1'
  assert entry.summary == "Ana took gems"
  assert entry.timestamp == 1000
  assert entry.payload == {'gems': ['white', 'blue', 'green'],
                           'gemCounts': {'white': 1, 'blue': 1, 'green': 1}}
  assert new.current_player_index == 1
  assert new.turn == 1


def test_take_two_same_needs_four_in_bank():
  bank = GameConfig().initial_bank().subtract(Gem.RED, 4)
  state = make_state(bank=bank)
  result = TakeGemsAction.create(Gem.RED, Gem.RED).apply(state)
  assert isinstance(result, Rejected)
  assert result.state is state

  state = make_state()
  result = TakeGemsAction.create(Gem.RED, Gem.RED).apply(state)
  assert result.accepted
  assert result.state.players[0].gems.get(Gem.RED) == 2
  assert result.state.history[-1].payload['gemCounts'] == {'red': 2}


def test_illegal_gem_takes_return_the_same_state():
  state = make_state()
  for gems in [(), (Gem.GOLD,), (Gem.RED, Gem.BLUE), (Gem.RED, Gem.RED, Gem.BLUE),
               (Gem.WHITE, Gem.BLUE, Gem.GREEN, Gem.RED)]:
    result = TakeGemsAction.create(*gems).apply(state)
    assert not result.accepted, gems
    assert result.state is state
    assert take_gems(state, gems) is state

  empty_bank = GemList({g: 0 for g in NON_GOLD_GEMS})
  state = make_state(bank=empty_bank)
  assert take_gems(state, [Gem.WHITE]) is state


def test_take_gems_respects_token_cap():
  full = PlayerState(id='p1', name='Ana', gems={Gem.RED: 4, Gem.BLUE: 4})
  state = make_state(players=(full, PlayerState(id='p2', name='Bo')))
  assert take_gems(state, [Gem.WHITE, Gem.GREEN, Gem.BLACK]) is state
  after = take_gems(state, [Gem.WHITE, Gem.WHITE])
  assert after is not state
  assert after.players[0].gem_count() == 10


def test_reserve_from_market_grants_gold_and_refills():
  state = make_state()
  result = ReserveCardAction.create(card_id='m1').apply(state)
  assert result.accepted
  new = result.state
  p1 = new.players[0]
  assert [c.id for c in p1.reserved_cards] == ['m1']
  assert p1.gems.get(Gem.GOLD) == 1
  assert new.bank.get(Gem.GOLD) == 4
  # slot refilled from the top of the level-1 deck
  assert [c.id for c in new.market[1]] == ['d1']
  assert [c.id for c in new.decks[1]] == ['d2']
  assert new.history[-1].payload['cardId'] == 'm1'
  assert new.history[-1].payload['fromDeckLevel'] is None


def test_reserve_with_empty_deck_shrinks_row():
  state = make_state()
  new = reserve_card(state, card=state.market[2][0])
  assert new is not state
  assert len(new.market[2]) == 0


def test_blind_reserve_from_deck():
  state = make_state()
  new = reserve_card(state, from_deck_level=1)
  assert [c.id for c in new.players[0].reserved_cards] == ['d1']
  assert [c.id for c in new.decks[1]] == ['d2']
  # market untouched
  assert [c.id for c in new.market[1]] == ['m1']
  assert new.history[-1].payload['fromDeckLevel'] == 1

  # empty deck is rejected
  assert reserve_card(state, from_deck_level=3) is state


def test_reserve_appends_to_held_cards():
  held = PlayerState(id='p1', name='Ana', reserved_cards=[make_card(3, 'r0')])
  state = make_state(players=(held, PlayerState(id='p2', name='Bo')))
  new = reserve_card(state, from_deck_level=1)
  reserved = new.players[0].reserved_cards
  assert [c.id for c in reserved] == ['r0', 'd1']
  assert reserved.find('d1') is not None
  # the previous player state keeps its own reserve
  assert [c.id for c in state.players[0].reserved_cards] == ['r0']


def test_reserve_without_gold_in_bank_or_at_cap():
  bank = GameConfig().initial_bank().subtract(Gem.GOLD, 5)
  state = make_state(bank=bank)
  new = reserve_card(state, from_deck_level=1)
  assert new.players[0].gems.get(Gem.GOLD) == 0
  assert new.bank.get(Gem.GOLD) == 0

  capped = PlayerState(id='p1', name='Ana', gems={Gem.RED: 5, Gem.BLUE: 5})
  state = make_state(players=(capped, PlayerState(id='p2', name='Bo')))
  new = reserve_card(state, from_deck_level=1)
  assert new.players[0].gems.get(Gem.GOLD) == 0
  assert new.bank.get(Gem.GOLD) == 5


def test_reserve_cap_rejects_with_identity():
  held = [make_card(1, f'r{i}') for i in range(3)]
  p1 = PlayerState(id='p1', name='Ana', reserved_cards=held)
  state = make_state(players=(p1, PlayerState(id='p2', name='Bo')))
  result = ReserveCardAction.create(card_id='m1').apply(state)
  assert isinstance(result, Rejected)
  assert result.state is state
  assert "reserved" in result.reason


def test_buy_with_bonus_and_gold():
  card = make_card(1, 'm1', bonus=Gem.BLUE, points=1, cost={Gem.RED: 3, Gem.WHITE: 1})
  p1 = PlayerState(id='p1', name='Ana', gems={Gem.RED: 1, Gem.GOLD: 1}, bonuses={Gem.RED: 1, Gem.WHITE: 1})
  bank = GameConfig().initial_bank().subtract(Gem.RED).subtract(Gem.GOLD)
  state = make_state(players=(p1, PlayerState(id='p2', name='Bo')), market={1: [card]}, bank=bank)

  assert p1.gold_needed(card) == 1
  assert p1.payment_for(card) == {Gem.RED: 1, Gem.GOLD: 1}

  result = BuyCardAction.create('m1').apply(state)
  assert result.accepted
  new = result.state
  buyer = new.players[0]
  assert buyer.points == 1
  assert buyer.bonuses.get(Gem.BLUE) == 1
  assert buyer.gems.get(Gem.RED) == 0
  assert buyer.gems.get(Gem.GOLD) == 0
  assert buyer.last_action == "Built m1 (Blue, 1 pts)"
  assert new.history[-1].summary == "Ana built Blue module (1 pts)"
  assert new.bank.get(Gem.RED) == 7
  assert new.bank.get(Gem.GOLD) == 5
  assert [c.id for c in new.market[1]] == ['d1']
  for g in list(NON_GOLD_GEMS) + [Gem.GOLD]:
    assert total_of(new, g) == total_of(state, g)


def test_buy_unaffordable_or_missing_is_rejected():
  card = make_card(1, 'm1', cost={Gem.RED: 2})
  state = make_state(market={1: [card]})
  assert buy_card(state, card, False) is state
  result = BuyCardAction.create('nope').apply(state)
  assert not result.accepted
  assert "not in the market" in result.reason


def test_buy_from_reserve():
  card = make_card(2, 'r1', bonus=Gem.GREEN, points=2, cost={Gem.BLACK: 2})
  p1 = PlayerState(id='p1', name='Ana', gems={Gem.BLACK: 2}, reserved_cards=[card])
  state = make_state(players=(p1, PlayerState(id='p2', name='Bo')))
  new = buy_card(state, card, True)
  buyer = new.players[0]
  assert len(buyer.reserved_cards) == 0
  assert buyer.points == 2
  assert new.history[-1].payload['isReserved'] is True
  # market untouched
  assert new.market == state.market


def test_pass_logs_and_advances():
  state = make_state()
  result = PassAction.create(AIStrategy.BALANCED, MoveSource.LOCAL).apply(state, now=5)
  assert result.accepted
  assert result.state.current_player_index == 1
  entry = result.state.history[-1]
  assert entry.kind == LogKind.PASS
  assert entry.payload == {'strategy': 'balanced', 'source': 'local'}


def test_actions_rejected_once_game_is_won():
  state = make_state(winner_id='p2')
  result = PassAction.create().apply(state)
  assert isinstance(result, Rejected)
  assert result.state is state

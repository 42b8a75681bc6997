import random
from dataclasses import replace

import pytest

from cosmic.agents import (AggressiveAgent, Agent, BalancedAgent, DEFAULT_HELPERS, DecisionEngine,
                           DefensiveAgent, RandomAgent, RemoteModelClient)
from cosmic.agents.heuristics import (choose_gem_take, find_block_candidate, list_affordable_cards,
                                      prioritize_needed_colors)
from cosmic.consts import GameConfig
from cosmic.state import GameState, PlayerState
from cosmic.typings import ActionType, AIStrategy, Card, Gem, GemList, MoveSource, NON_GOLD_GEMS


class FixedRoll(random.Random):
  """A Random whose `random()` always returns the same value."""

  def __init__(self, value: float) -> None:
    super().__init__(0)
    self.value = value

  def random(self) -> float:
    return self.value


def make_card(level: int, id: str, bonus: Gem = Gem.RED, points: int = 0, cost=None) -> Card:
  return Card(id=id, level=level, bonus=bonus, points=points, cost=cost or {})


def make_state(me: PlayerState | None = None, other: PlayerState | None = None,
               market=None, bank=None) -> GameState:
  me = me or PlayerState(id='me', name='Me', ai_strategy=AIStrategy.BALANCED)
  other = other or PlayerState(id='them', name='Them')
  if market is None:
    market = {
      1: [make_card(1, 'cheap', bonus=Gem.RED, cost={Gem.WHITE: 1})],
      2: [make_card(2, 'mid', bonus=Gem.WHITE, points=2, cost={Gem.WHITE: 1})],
      3: [make_card(3, 'big', bonus=Gem.BLACK, points=4, cost={Gem.RED: 7})],
    }
  return GameState(players=(me, other), market=market, bank=bank or GameConfig().initial_bank())


RICH = PlayerState(id='me', name='Me', gems={Gem.WHITE: 2})
NOTHING_AFFORDABLE = PlayerState(id='me', name='Me')
RESERVE_FULL = PlayerState(id='me', name='Me', reserved_cards=[make_card(1, f'r{i}', cost={Gem.BLUE: 5})
                                                               for i in range(3)])


def test_agent_registry():
  assert Agent.agent_strategy_to_cls[AIStrategy.AGGRESSIVE] is AggressiveAgent
  assert isinstance(Agent.build('defensive', seed=1), DefensiveAgent)
  assert isinstance(Agent.build(AIStrategy.RANDOM, seed=1), RandomAgent)
  with pytest.raises(ValueError):
    Agent.build('nope')
  with pytest.raises(ValueError):
    Agent.build(AIStrategy.GEMINI)

  agent = Agent.build(AIStrategy.BALANCED, seed=3)
  assert agent.metadata() == {'type': 'BalancedAgent', 'strategy': 'balanced', 'seed': 3}


def test_prioritize_needed_colors():
  # 'big' wants 7 red and nothing else
  assert prioritize_needed_colors(make_state(), NOTHING_AFFORDABLE) == [
    Gem.RED, Gem.WHITE, Gem.BLUE, Gem.GREEN, Gem.BLACK]
  covered = PlayerState(id='me', name='Me', gems={Gem.RED: 3}, bonuses={Gem.RED: 4})
  assert prioritize_needed_colors(make_state(), covered) == list(NON_GOLD_GEMS)
  assert prioritize_needed_colors(make_state(market={1: [], 2: [], 3: []}), RICH) == list(NON_GOLD_GEMS)


def test_list_affordable_cards_order():
  reserved = make_card(1, 'res', cost={Gem.WHITE: 1})
  me = PlayerState(id='me', name='Me', gems={Gem.WHITE: 2}, reserved_cards=[reserved])
  found = list_affordable_cards(make_state(me), me, DEFAULT_HELPERS)
  assert [(a.card.id, a.from_reserve) for a in found] == [('res', True), ('mid', False), ('cheap', False)]


def test_aggressive_buys_highest_score():
  d = AggressiveAgent(seed=1).decide(make_state(RICH), RICH)
  assert d.kind == ActionType.BUY
  assert d.card_id == 'mid'
  assert d.strategy_used == AIStrategy.AGGRESSIVE
  assert d.source == MoveSource.LOCAL


def test_aggressive_reserves_then_collects():
  d = AggressiveAgent(seed=1).decide(make_state(NOTHING_AFFORDABLE), NOTHING_AFFORDABLE)
  assert d.kind == ActionType.RESERVE
  # big and mid both score 10; level 3 is scanned first
  assert d.card_id == 'big'

  d = AggressiveAgent(seed=1).decide(make_state(RESERVE_FULL), RESERVE_FULL)
  assert d.kind == ActionType.TAKE_GEMS
  assert d.gems is not None and len(d.gems) == 3


def test_defensive_blocks_the_threatening_card():
  rival = PlayerState(id='them', name='Them', gems={Gem.RED: 6})
  state = make_state(NOTHING_AFFORDABLE, rival)
  assert find_block_candidate(state, NOTHING_AFFORDABLE).id == 'big'

  d = DefensiveAgent(seed=1).decide(state, NOTHING_AFFORDABLE)
  assert d.kind == ActionType.RESERVE
  assert d.card_id == 'big'


def test_defensive_without_pressure_collects_gems():
  market = {1: [], 2: [], 3: [make_card(3, 'far', cost={Gem.RED: 7})]}
  state = make_state(NOTHING_AFFORDABLE, market=market)
  assert find_block_candidate(state, NOTHING_AFFORDABLE) is None
  d = DefensiveAgent(seed=1).decide(state, NOTHING_AFFORDABLE)
  assert d.kind == ActionType.TAKE_GEMS
  # the most missing colour of the best market card goes first
  assert d.gems is not None and d.gems[0] == Gem.RED


def test_defensive_buys_first_affordable():
  d = DefensiveAgent(seed=1).decide(make_state(RICH), RICH)
  assert d.kind == ActionType.BUY
  assert d.card_id == 'mid'


def test_choose_gem_take():
  state = make_state()
  me = state.players[0]
  priority = [Gem.BLACK, Gem.RED, Gem.WHITE, Gem.BLUE, Gem.GREEN]
  assert choose_gem_take(state, me, DEFAULT_HELPERS, priority) == (Gem.BLACK, Gem.RED, Gem.WHITE)

  eight = PlayerState(id='me', name='Me', gems={Gem.GREEN: 8})
  assert choose_gem_take(state, eight, DEFAULT_HELPERS, priority) == (Gem.WHITE, Gem.WHITE)

  nine = PlayerState(id='me', name='Me', gems={Gem.GREEN: 9})
  assert choose_gem_take(state, nine, DEFAULT_HELPERS, priority) == (Gem.BLACK,)

  ten = PlayerState(id='me', name='Me', gems={Gem.GREEN: 10})
  assert choose_gem_take(state, ten, DEFAULT_HELPERS, priority) is None

  thin = make_state(bank=GemList({Gem.RED: 2, Gem.BLUE: 5}))
  assert choose_gem_take(thin, me, DEFAULT_HELPERS, priority) == (Gem.BLUE, Gem.BLUE)

  empty = make_state(bank=GemList.zeros())
  assert choose_gem_take(empty, me, DEFAULT_HELPERS, priority) is None


def test_balanced_branches_by_roll():
  state = make_state(RICH)
  assert BalancedAgent(rng=FixedRoll(0.1)).decide(state, RICH).kind == ActionType.BUY
  assert BalancedAgent(rng=FixedRoll(0.5)).decide(state, RICH).kind == ActionType.RESERVE
  assert BalancedAgent(rng=FixedRoll(0.9)).decide(state, RICH).kind == ActionType.TAKE_GEMS


def test_balanced_falls_through_buy_gems_pass():
  # reserve branch with a full reserve falls back to buying
  rich_full = PlayerState(id='me', name='Me', gems={Gem.WHITE: 2},
                          reserved_cards=RESERVE_FULL.reserved_cards)
  d = BalancedAgent(rng=FixedRoll(0.5)).decide(make_state(rich_full), rich_full)
  assert d.kind == ActionType.BUY
  assert d.reasoning == "Fallback to available purchase"

  # buy branch with nothing affordable falls back to gems
  d = BalancedAgent(rng=FixedRoll(0.1)).decide(make_state(NOTHING_AFFORDABLE), NOTHING_AFFORDABLE)
  assert d.kind == ActionType.TAKE_GEMS

  # nothing at all: pass
  empty = make_state(NOTHING_AFFORDABLE, market={1: [], 2: [], 3: []}, bank=GemList.zeros())
  d = BalancedAgent(rng=FixedRoll(0.1)).decide(empty, NOTHING_AFFORDABLE)
  assert d.kind == ActionType.PASS
  assert d.reasoning == "No valid move found"


def test_balanced_is_deterministic_per_seed():
  state = make_state(RICH)
  a, b = BalancedAgent(seed=5), BalancedAgent(seed=5)
  assert [a.decide(state, RICH) for _ in range(10)] == [b.decide(state, RICH) for _ in range(10)]


def test_random_agent_candidates_and_choice():
  state = make_state(RICH)
  agent = RandomAgent(seed=2)
  options = agent.candidates(state, RICH)
  kinds = [o.kind for o in options]
  assert kinds.count(ActionType.BUY) == 2
  assert kinds.count(ActionType.RESERVE) == 3
  assert kinds.count(ActionType.TAKE_GEMS) == 1
  assert agent.decide(state, RICH) in options

  agent.reset(seed=9)
  first = agent.decide(state, RICH)
  agent.reset(seed=9)
  assert agent.decide(state, RICH) == first


def test_random_agent_offers_blind_reserves():
  state = replace(make_state(RICH), decks={1: [make_card(1, 'd1')], 3: [make_card(3, 'd3')]})
  options = RandomAgent(seed=2).candidates(state, RICH)
  blind = [o.reserve_from_deck_level for o in options
           if o.kind == ActionType.RESERVE and o.reserve_from_deck_level is not None]
  assert blind == [1, 3]
  assert not [o for o in RandomAgent(seed=2).candidates(state, RESERVE_FULL) if o.kind == ActionType.RESERVE]


def test_random_agent_passes_without_options():
  empty = make_state(NOTHING_AFFORDABLE, market={1: [], 2: [], 3: []}, bank=GemList.zeros())
  assert RandomAgent(seed=1).decide(empty, NOTHING_AFFORDABLE).kind == ActionType.PASS


def test_remote_strategy_without_key_plays_like_balanced():
  remote_player = PlayerState(id='me', name='Me', gems={Gem.WHITE: 2}, ai_strategy=AIStrategy.GEMINI)
  local_player = PlayerState(id='me', name='Me', gems={Gem.WHITE: 2}, ai_strategy=AIStrategy.BALANCED)
  remote_engine = DecisionEngine(RemoteModelClient(""), seed=17)
  local_engine = DecisionEngine(seed=17)
  for _ in range(8):
    got = remote_engine.choose_ai_move(make_state(remote_player), remote_player)
    want = local_engine.choose_ai_move(make_state(local_player), local_player)
    assert got == want
    assert got.strategy_used == AIStrategy.BALANCED
    assert got.source == MoveSource.LOCAL


def test_decision_engine_defaults_to_balanced():
  player = PlayerState(id='me', name='Me', gems={Gem.WHITE: 2})
  d = DecisionEngine(seed=1).choose_ai_move(make_state(player), player)
  assert d.strategy_used == AIStrategy.BALANCED
  assert all(g in NON_GOLD_GEMS for g in (d.gems or ()))

from collections import Counter
from dataclasses import dataclass

from tqdm import tqdm

from cosmic.agents import DecisionEngine
from cosmic.consts import GameConfig
from cosmic.engine import Engine, Replay
from cosmic.state import GameState
from cosmic.typings import AIStrategy, PlayerConfig


@dataclass
class SimulationResult:
  states: list[GameState]
  engine: Engine
  replay: Replay
  filename: str | None

  @property
  def action_history(self) -> list:
    return self.replay.action_history

  @property
  def num_rounds(self) -> int:
    return self.engine.get_state().turn - 1

  @property
  def config(self) -> GameConfig:
    return self.engine.config

  @property
  def winner_id(self) -> str | None:
    return self.engine.get_state().winner_id


def seat_players(strategies: list[AIStrategy]) -> list[PlayerConfig]:
  return [PlayerConfig(ai_strategy=s) for s in strategies]


def run_simulations(n: int, strategies: list[AIStrategy], *, config: GameConfig | None = None,
                    target_score: int | None = None, max_turns: int = 200,
                    first_seed: int = 1234, debug: bool = False) -> list[SimulationResult]:
  """Play `n` independent AI-only games, one seat per entry of `strategies`.

  Game `i` is dealt and played with seed `first_seed + i`.
  """
  players = seat_players(strategies)
  result: list[SimulationResult] = []
  for i in tqdm(range(n), desc="Running simulations"):
    seed = first_seed + i
    engine = Engine.new(players, seed=seed, config=config, target_score=target_score,
                        decision_engine=DecisionEngine(seed=seed))
    states = [engine.get_state()]
    while not engine.game_end() and engine.get_state().turn <= max_turns:
      states.append(engine.play_ai_turn())
      if debug:
        engine.print_summary()
    result.append(SimulationResult(
        states=states,
        engine=engine,
        replay=export_to_replay(engine, strategies),
        filename=None,
    ))
  return result


def export_to_replay(engine: Engine, strategies: list[AIStrategy]) -> Replay:
  replay = engine.export()
  replay.metadata["strategies"] = [s.value for s in strategies]
  replay.metadata["stalled"] = engine.stalled()
  return replay


def apply_replays(replays: list[Replay]) -> list[SimulationResult]:
  result = []
  for replay in tqdm(replays, desc="replay game"):
    result.append(apply_replay(replay))
  return result


def apply_replay(replay: Replay, *, filename: str | None = None) -> SimulationResult:
  states, engine = replay.replay()
  return SimulationResult(
      states=states,
      engine=engine,
      replay=replay,
      filename=filename,
  )


def get_win_counts(results: list[SimulationResult]) -> Counter[str]:
  """Wins per strategy name; games nobody won count under `none`."""
  wins: Counter[str] = Counter()
  for r in results:
    state = r.engine.get_state()
    winner = state.get_player(state.winner_id) if state.winner_id else None
    if winner is None or winner.ai_strategy is None:
      wins["none"] += 1
    else:
      wins[winner.ai_strategy.value] += 1
  return wins

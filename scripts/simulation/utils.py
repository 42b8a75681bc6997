import json
import logging
from pathlib import Path
from typing import TypeAlias

from tqdm import tqdm

from cosmic.engine import Replay
from cosmic.typings import AIStrategy
from .core import SimulationResult, apply_replays, run_simulations

PathLike: TypeAlias = str | Path

logger = logging.getLogger(__name__)


def play_and_save(strategies: list[AIStrategy], *, count: int = 100, output_file: PathLike,
                  **kwargs) -> list[SimulationResult]:
  results = run_simulations(count, strategies, **kwargs)
  save_replays([r.replay for r in results], output_file)
  logger.info("saved %d replays to %s", len(results), output_file)
  return results


def load_and_replay(path: PathLike, *, start: int | None = None, end: int | None = None) -> list[SimulationResult]:
  replays = load_replays(path, start=start, end=end)
  return apply_replays(replays)


def save_replays(replays: list[Replay], output_file: PathLike, mode="a"):
  output_file = Path(output_file)
  output_file.parent.mkdir(parents=True, exist_ok=True)
  with open(output_file, mode, encoding="utf-8") as f:
    for r in replays:
      jsonl = r.model_dump_json()
      f.write(f"{jsonl}\n")


def load_replays(input_file: PathLike, start: int | None = None, end: int | None = None) -> list[Replay]:
  with open(input_file, "r", encoding="utf-8") as f:
    lines = [line for line in f if line.strip()]
  if end is not None:
    lines = lines[:end]
  if start is not None:
    lines = lines[start:]
  res = []
  for data in tqdm(lines, desc="Loading replays"):
    r = Replay.model_validate_json(data)
    res.append(r)
  return res


def verify_replays(results: list[SimulationResult], replayed: list[SimulationResult]) -> list[int]:
  """Indices of games whose reloaded replay does not end in the recorded state."""
  mismatched = []
  for i, (played, again) in enumerate(zip(results, replayed)):
    if played.engine.get_state().to_dict() != again.engine.get_state().to_dict():
      mismatched.append(i)
  return mismatched


def summarize(results: list[SimulationResult]) -> dict:
  turns = [r.num_rounds for r in results]
  return {
      'games': len(results),
      'stalled': sum(1 for r in results if r.engine.stalled()),
      'avg_turns': round(sum(turns) / len(turns), 2) if turns else 0,
  }


def dump_summary(summary: dict, wins: dict, output_file: PathLike) -> None:
  output_file = Path(output_file)
  output_file.parent.mkdir(parents=True, exist_ok=True)
  with open(output_file, "w", encoding="utf-8") as f:
    json.dump({**summary, 'wins': dict(wins)}, f, indent=2)

"""Play batches of AI-only games and check that their replays reproduce them.

  python scripts/run_simulations.py -n 20 --seats aggressive defensive balanced random
"""
import argparse
import logging
from pathlib import Path

from cosmic.typings import AIStrategy
from simulation import dump_summary, get_win_counts, load_and_replay, play_and_save, summarize, verify_replays

RES_DIR = Path(__file__).parent.parent / "res"
Simulation_Dir = RES_DIR / "simulations"

logger = logging.getLogger("run_simulations")


def parse_args(argv=None) -> argparse.Namespace:
  parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
  parser.add_argument("-n", "--count", type=int, default=10, help="number of games")
  parser.add_argument("--seats", nargs="+", default=["aggressive", "defensive", "balanced", "random"],
                      choices=[s.value for s in AIStrategy], help="one strategy per seat")
  parser.add_argument("--target", type=int, default=None, help="winning score")
  parser.add_argument("--max-turns", type=int, default=200)
  parser.add_argument("--seed", type=int, default=1234, help="seed of the first game")
  parser.add_argument("-o", "--output-dir", type=Path, default=Simulation_Dir)
  parser.add_argument("--debug", action="store_true")
  return parser.parse_args(argv)


def main(argv=None) -> int:
  args = parse_args(argv)
  logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING,
                      format="%(asctime)s %(levelname)s %(name)s: %(message)s")
  strategies = [AIStrategy(s) for s in args.seats]
  names = "".join(f"[{s.value}]" for s in strategies)
  output_file = args.output_dir / f"run_{names}_seed{args.seed}.jsonl"
  if output_file.exists():
    output_file.unlink()

  results = play_and_save(strategies, count=args.count, output_file=output_file, target_score=args.target,
                          max_turns=args.max_turns, first_seed=args.seed, debug=args.debug)
  replayed = load_and_replay(output_file)
  mismatched = verify_replays(results, replayed)

  summary = summarize(results)
  wins = get_win_counts(results)
  dump_summary(summary, wins, output_file.with_suffix(".summary.json"))
  print(f"{summary['games']} games, {summary['stalled']} stalled, {summary['avg_turns']} turns on average")
  for name, n in wins.most_common():
    print(f"  {name:10s} {n}")
  if mismatched:
    logger.error("replays diverged for games %s", mismatched)
    return 1
  print(f"all replays reproduce their games ({output_file})")
  return 0


if __name__ == "__main__":
  raise SystemExit(main())

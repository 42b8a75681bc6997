"""Small runner that plays one AI-only game of Cosmic Gems.

Remote strategies (`gemini`, `gemma`) use GEMINI_API_KEY when it is set and
fall back to the balanced strategy otherwise.
"""
import argparse
import logging

from cosmic.agents import DecisionEngine, RemoteModelClient
from cosmic.engine import Engine
from cosmic.settings import Settings
from cosmic.typings import AIStrategy, PlayerConfig


def main() -> None:
  parser = argparse.ArgumentParser(description=__doc__)
  parser.add_argument("--seed", type=int, default=0)
  parser.add_argument("--target", type=int, default=None)
  parser.add_argument("--seats", nargs="+", default=["aggressive", "defensive", "balanced", "random"],
                      choices=[s.value for s in AIStrategy])
  parser.add_argument("-v", "--verbose", action="store_true", help="log every AI decision")
  args = parser.parse_args()

  logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                      format="%(asctime)s %(levelname)s %(name)s: %(message)s")
  settings = Settings.from_env()
  players = [PlayerConfig(ai_strategy=AIStrategy(s)) for s in args.seats]
  engine = Engine.new(players, seed=args.seed, target_score=args.target,
                      decision_engine=DecisionEngine(RemoteModelClient.from_settings(settings), seed=args.seed))

  print("Initialized game state:\n")
  engine.print_summary()

  engine.play_until_end()
  engine.print_summary()
  winner = engine.winner()
  if winner is not None:
    print(f"Game finished: {winner.name} ({winner.ai_strategy}) wins with {winner.points} points"
          f" after {engine.get_state().turn - 1} rounds")
  elif engine.stalled():
    print("Every seat passed in a row. Ending game.")
  else:
    print("Turn limit reached without a winner.")


if __name__ == "__main__":
  main()

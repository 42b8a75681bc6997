from .core import SimulationResult, apply_replay, apply_replays, get_win_counts, run_simulations
from .utils import dump_summary, load_and_replay, load_replays, play_and_save, save_replays, summarize, verify_replays

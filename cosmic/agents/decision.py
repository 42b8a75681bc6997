"""The single entry point the engine uses to pick an AI move."""
import logging
import random

from ..state import PlayerState, GameState
from ..typings import AIStrategy
from .core import AIActionDecision, AIHelpers, Agent, DEFAULT_HELPERS
from .remote import RemoteAgent, RemoteModelClient

logger = logging.getLogger(__name__)

DEFAULT_STRATEGY = AIStrategy.BALANCED
REMOTE_FALLBACK_STRATEGY = AIStrategy.BALANCED


class DecisionEngine:
  """Dispatch on a player's strategy and always come back with a decision.

  All local agents share one `random.Random`, so a seed fixes the whole
  sequence of choices. Remote strategies never draw from it; when the
  remote call yields nothing the balanced agent decides with the same RNG,
  which makes a failing `gemini`/`gemma` seat indistinguishable from a
  `balanced` one.
  """

  def __init__(self, remote_client: RemoteModelClient | None = None, seed: int | None = None) -> None:
    self.remote_client = remote_client if remote_client is not None else RemoteModelClient()
    self.rng = random.Random(seed)
    self._agents: dict[AIStrategy, Agent] = {}
    self._remote_agents: dict[AIStrategy, RemoteAgent] = {}

  def agent_for(self, strategy: AIStrategy) -> Agent:
    if strategy not in self._agents:
      self._agents[strategy] = Agent.build(strategy, rng=self.rng)
    return self._agents[strategy]

  def remote_agent_for(self, strategy: AIStrategy) -> RemoteAgent:
    if strategy not in self._remote_agents:
      self._remote_agents[strategy] = RemoteAgent(strategy, self.remote_client)
    return self._remote_agents[strategy]

  def choose_ai_move(self, state: GameState, player: PlayerState,
                     helpers: AIHelpers | None = None) -> AIActionDecision:
    helpers = helpers or DEFAULT_HELPERS
    strategy = player.ai_strategy or DEFAULT_STRATEGY
    if strategy.is_remote:
      decision = self.remote_agent_for(strategy).decide(state, player)
      if decision is not None:
        return decision
      logger.info("[AI] %s: %s unavailable, falling back to %s", player.name, strategy, REMOTE_FALLBACK_STRATEGY)
      strategy = REMOTE_FALLBACK_STRATEGY
    return self.agent_for(strategy).decide(state, player, helpers)

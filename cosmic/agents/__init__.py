from .core import AIActionDecision, AIHelpers, Agent, DEFAULT_HELPERS
from .aggressive import AggressiveAgent
from .defensive import DefensiveAgent
from .balanced import BalancedAgent
from .random import RandomAgent
from .remote import MODEL_BY_STRATEGY, RemoteAgent, RemoteModelClient, build_prompt
from .salvage import ParsedAction, salvage
from .decision import DecisionEngine

__all__ = [
  "AIActionDecision", "AIHelpers", "Agent", "DEFAULT_HELPERS",
  "AggressiveAgent", "DefensiveAgent", "BalancedAgent", "RandomAgent",
  "MODEL_BY_STRATEGY", "RemoteAgent", "RemoteModelClient", "build_prompt",
  "ParsedAction", "salvage", "DecisionEngine",
]

"""Remote text-generation strategies (`gemini`, `gemma`).

The model receives a prompt with a compact JSON snapshot of the board and is
asked to answer with one minified JSON action. Nothing it says is trusted:
the answer goes through `salvage` and any failure along the way yields None
so the caller can fall back to a local strategy.
"""
import json
import logging
from typing import Any

import requests

from ..settings import Settings
from ..state import PlayerState, GameState
from ..typings import AIStrategy, Card, Gem, MoveSource
from .core import AIActionDecision
from .salvage import salvage

logger = logging.getLogger(__name__)

MODEL_BY_STRATEGY: dict[AIStrategy, str] = {
  AIStrategy.GEMINI: "gemini-2.5-flash",
  AIStrategy.GEMMA: "gemma-3-27b-it",
}

GENERATION_CONFIG = {'temperature': 0.35, 'maxOutputTokens': 160}

HISTORY_WINDOW = 6
OTHERS_WINDOW = 2

RULES_TEXT = (
  "Rules: TAKE_GEMS=3 distinct colors OR 2 same (pile>=4), no gold directly, keep total gems<=10. "
  "RESERVE from market by cardId or blind deck via reserveFromDeckLevel (1-3), max 3 reserved. "
  "BUY only if affordable with bonuses+gems+gold. Always return a legal move."
)
SCHEMA_TEXT = (
  'Schema {"kind":"BUY|RESERVE|TAKE_GEMS|PASS","cardId":"string?","fromReserve":boolean,'
  '"reserveFromDeckLevel":1|2|3|null,"gems":["red"...],"reasoning":"short"}.'
)


def _compact_card(card: Card) -> dict[str, Any]:
  return {'id': card.id, 'lvl': card.level, 'pts': card.points, 'b': card.bonus.value, 'c': card.cost.to_json()}


def build_snapshot(state: GameState, player: PlayerState, model: str) -> dict[str, Any]:
  """The compact board description embedded in the prompt."""
  others = [h for h in state.history if h.player_id != player.id][-OTHERS_WINDOW:]
  return {
    'turn': state.turn,
    'target': state.target_score,
    'cp': player.id,
    'stock': state.bank.to_json(),
    'm': {f"l{lvl}": [_compact_card(c) for c in state.market[lvl]] for lvl in sorted(state.market)},
    'nobles': [{'id': n.id, 'pts': n.points, 'req': n.requirements.to_json()} for n in state.nobles],
    'self': {
      'id': player.id,
      'g': player.gems.to_json(),
      'b': player.bonuses.to_json(),
      'r': [_compact_card(c) for c in player.reserved_cards],
    },
    'players': [{'id': p.id, 'pts': p.points, 'g': p.gems.to_json(), 'b': p.bonuses.to_json()}
                for p in state.players],
    'hist': [{'p': h.player_id, 'k': h.kind.value} for h in state.history[-HISTORY_WINDOW:]],
    'othersLast2': [{'p': h.player_name, 'k': h.kind.value, 's': h.summary} for h in others],
    'model': model,
  }


def build_prompt(state: GameState, player: PlayerState, model: str) -> str:
  strategy = player.ai_strategy.value if player.ai_strategy is not None else AIStrategy.GEMINI.value
  snapshot = json.dumps(build_snapshot(state, player, model), separators=(',', ':'))
  return " ".join([
    f"You are the AI ({strategy} | model={model}). Output ONLY one minified JSON object on a single line. "
    "Do NOT use code fences or markdown.",
    SCHEMA_TEXT,
    "If unsure, choose a legal TAKE_GEMS or PASS. Ensure action obeys rules; adjust gems list to available stock.",
    RULES_TEXT,
    f"State:{snapshot}",
  ])


class RemoteModelClient:
  """Thin `requests` wrapper around the generateContent endpoint.

  `generate` returns the first candidate's text, or None on any failure.
  A client without an API key never touches the network.
  """

  def __init__(self, api_key: str = "", *, base_url: str = "https://generativelanguage.googleapis.com/v1beta",
               timeout: float = 20.0, session: requests.Session | None = None) -> None:
    self.api_key = api_key
    self.base_url = base_url.rstrip('/')
    self.timeout = timeout
    self.session = session if session is not None else requests.Session()

  @classmethod
  def from_settings(cls, settings: Settings, session: requests.Session | None = None) -> 'RemoteModelClient':
    return cls(settings.remote_api_key, base_url=settings.remote_base_url,
               timeout=settings.remote_timeout, session=session)

  @property
  def enabled(self) -> bool:
    return bool(self.api_key)

  def generate(self, model: str, prompt: str) -> str | None:
    if not self.enabled:
      logger.debug("remote model %s skipped: no API key", model)
      return None
    url = f"{self.base_url}/models/{model}:generateContent"
    body = {'contents': [{'parts': [{'text': prompt}]}], 'generationConfig': GENERATION_CONFIG}
    try:
      response = self.session.post(url, params={'key': self.api_key}, json=body, timeout=self.timeout)
    except requests.RequestException as e:
      logger.warning("remote model %s call error: %s", model, e)
      return None
    if not response.ok:
      logger.warning("remote model %s request failed: %s %s", model, response.status_code, response.text)
      return None
    try:
      data = response.json()
    except ValueError:
      logger.warning("remote model %s returned non-JSON body: %r", model, response.text)
      return None
    try:
      return data['candidates'][0]['content']['parts'][0]['text'] or None
    except (KeyError, IndexError, TypeError):
      logger.warning("remote model %s returned no candidate text", model)
      return None


class RemoteAgent:
  """Asks a remote model for a move. `decide` returns None on any failure."""

  def __init__(self, strategy: AIStrategy, client: RemoteModelClient) -> None:
    if not strategy.is_remote:
      raise ValueError(f"{strategy} is not a remote strategy")
    self.strategy = strategy
    self.model = MODEL_BY_STRATEGY[strategy]
    self.client = client

  def decide(self, state: GameState, player: PlayerState) -> AIActionDecision | None:
    raw = self.client.generate(self.model, build_prompt(state, player, self.model))
    if raw is None:
      return None
    parsed = salvage(raw)
    if parsed is None:
      return None
    return AIActionDecision(
      kind=parsed.kind,
      strategy_used=self.strategy,
      source=MoveSource(self.strategy.value),
      gems=tuple(Gem(g) for g in parsed.gems) if parsed.gems is not None else None,
      card_id=parsed.card_id,
      from_reserve=parsed.from_reserve,
      reserve_from_deck_level=parsed.reserve_from_deck_level,
      reasoning=parsed.reasoning,
    )


__all__ = ["MODEL_BY_STRATEGY", "RemoteAgent", "RemoteModelClient", "build_prompt", "build_snapshot"]

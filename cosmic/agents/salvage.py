"""Recover a move from untrusted model output.

Remote models are asked for a single-line JSON object but routinely wrap it
in fences, forget quotes, truncate it or answer in prose. `salvage` runs an
ordered chain of stages over the raw text. Every stage is total: it returns
a candidate dict or None and never raises. The first candidate that
validates into a `ParsedAction` wins.
"""
import json
import logging
import re
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..typings import ActionType, Gem

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```json|```", re.IGNORECASE)
_BARE_KEY_RE = re.compile(r"([,{\s])([A-Za-z0-9_]+)\s*:")
_KIND_RE = re.compile(r'"kind"\s*:\s*"([A-Za-z_]+)"', re.IGNORECASE)
_CARD_RE = re.compile(r'"cardId"\s*:\s*"([^"]+)"', re.IGNORECASE)
_FROM_RESERVE_RE = re.compile(r'"fromReserve"\s*:\s*(true|false)', re.IGNORECASE)
_DECK_RE = re.compile(r'"reserveFromDeckLevel"\s*:\s*(1|2|3)', re.IGNORECASE)
_GEMS_RE = re.compile(r'"gems"\s*:\s*\[([^\]]*)\]', re.IGNORECASE)

_PREFIX_KINDS = (
  ('{"kind":"TA', ActionType.TAKE_GEMS),
  ('{"kind":"RE', ActionType.RESERVE),
  ('{"kind":"BU', ActionType.BUY),
  ('{"kind":"PA', ActionType.PASS),
)

_GEM_VALUES = {g.value for g in Gem}


class ParsedAction(BaseModel):
  """The structurally usable part of a model answer.

  Unknown keys are ignored, unknown gem colours are dropped and `kind` is
  upper-cased. A `kind` outside BUY, RESERVE, TAKE_GEMS and PASS fails
  validation.
  """
  model_config = ConfigDict(extra='ignore', populate_by_name=True, frozen=True)

  kind: ActionType
  card_id: str | None = Field(default=None, alias="cardId")
  from_reserve: bool = Field(default=False, alias="fromReserve")
  reserve_from_deck_level: int | None = Field(default=None, alias="reserveFromDeckLevel")
  gems: list[Gem] | None = None
  reasoning: str | None = None

  @field_validator('kind', mode='before')
  @classmethod
  def normalize_kind(cls, v):
    if isinstance(v, str):
      return v.strip().upper()
    return v

  @field_validator('card_id', mode='before')
  @classmethod
  def normalize_card_id(cls, v):
    if v is None or isinstance(v, str):
      return v or None
    if isinstance(v, (int, float)) and not isinstance(v, bool):
      return str(v)
    return None

  @field_validator('from_reserve', mode='before')
  @classmethod
  def normalize_from_reserve(cls, v):
    if isinstance(v, str):
      return v.strip().lower() == 'true'
    return bool(v)

  @field_validator('reserve_from_deck_level', mode='before')
  @classmethod
  def normalize_deck_level(cls, v):
    try:
      level = int(v)
    except (TypeError, ValueError):
      return None
    return level if level in (1, 2, 3) else None

  @field_validator('gems', mode='before')
  @classmethod
  def drop_unknown_gems(cls, v):
    if v is None:
      return None
    if isinstance(v, str):
      v = [v]
    if not isinstance(v, (list, tuple)):
      return None
    gems = [str(g).strip().lower() for g in v]
    return [g for g in gems if g in _GEM_VALUES]

  @field_validator('reasoning', mode='before')
  @classmethod
  def stringify_reasoning(cls, v):
    return None if v is None else str(v)


Stage = Callable[[str], dict | None]


def strip_fences(text: str) -> str:
  return _FENCE_RE.sub('', text).strip()


def loosen(text: str) -> str:
  """Quote bare keys and turn single quotes into double quotes."""
  return _BARE_KEY_RE.sub(r'\1"\2":', text).replace("'", '"')


def _try_parse(text: str | None) -> dict | None:
  if not text:
    return None
  try:
    value = json.loads(text)
  except ValueError:
    return None
  return value if isinstance(value, dict) else None


def _brace_block(text: str) -> str | None:
  first = text.find('{')
  last = text.rfind('}')
  if first == -1 or last == -1 or last <= first:
    return None
  return text[first:last + 1]


def parse_direct(text: str) -> dict | None:
  return _try_parse(text.strip())


def parse_without_fences(text: str) -> dict | None:
  return _try_parse(strip_fences(text))


def parse_brace_block(text: str) -> dict | None:
  return _try_parse(_brace_block(strip_fences(text)))


def parse_loosened_block(text: str) -> dict | None:
  block = _brace_block(strip_fences(text))
  return _try_parse(loosen(block)) if block is not None else None


def parse_loosened_text(text: str) -> dict | None:
  return _try_parse(loosen(strip_fences(text)))


def salvage_by_regex(text: str) -> dict | None:
  """Pull the known fields out one by one; `kind` is mandatory."""
  text = strip_fences(text)
  kind = _KIND_RE.search(text)
  if kind is None:
    return None
  result: dict[str, Any] = {'kind': kind.group(1)}
  if (card := _CARD_RE.search(text)) is not None:
    result['cardId'] = card.group(1)
  if (from_reserve := _FROM_RESERVE_RE.search(text)) is not None:
    result['fromReserve'] = from_reserve.group(1).lower() == 'true'
  if (deck := _DECK_RE.search(text)) is not None:
    result['reserveFromDeckLevel'] = int(deck.group(1))
  if (gems := _GEMS_RE.search(text)) is not None:
    result['gems'] = [s.replace('"', '').strip() for s in gems.group(1).split(',') if s.replace('"', '').strip()]
  return result


def salvage_by_keyword(text: str) -> dict | None:
  upper = strip_fences(text).upper()
  if 'TAKE' in upper:
    return {'kind': ActionType.TAKE_GEMS.value}
  for kind in (ActionType.RESERVE, ActionType.BUY, ActionType.PASS):
    if kind.value in upper:
      return {'kind': kind.value}
  return None


def salvage_by_prefix(text: str) -> dict | None:
  t = strip_fences(text)
  for prefix, kind in _PREFIX_KINDS:
    if t.startswith(prefix):
      return {'kind': kind.value}
  return None


SALVAGE_STAGES: tuple[tuple[str, Stage], ...] = (
  ('direct', parse_direct),
  ('fences', parse_without_fences),
  ('block', parse_brace_block),
  ('loosened_block', parse_loosened_block),
  ('loosened_text', parse_loosened_text),
  ('regex', salvage_by_regex),
  ('keyword', salvage_by_keyword),
  ('prefix', salvage_by_prefix),
)


def validate(candidate: dict | None) -> ParsedAction | None:
  if candidate is None:
    return None
  try:
    return ParsedAction.model_validate(candidate)
  except ValidationError:
    return None


def salvage(raw: str | None, stages: tuple[tuple[str, Stage], ...] = SALVAGE_STAGES) -> ParsedAction | None:
  """Run the stage chain over `raw` and return the first usable action."""
  if not raw:
    return None
  for name, stage in stages:
    parsed = validate(stage(raw))
    if parsed is not None:
      logger.debug("salvaged remote answer at stage %s: %s", name, parsed.kind)
      return parsed
  logger.warning("could not salvage remote answer: %r", raw)
  return None

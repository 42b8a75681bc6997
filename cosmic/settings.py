"""Process-level settings read from the environment.

Built once at start-up and handed to whatever needs them (the room store
factory, the remote model client, the polling loop). Nothing here is cached
at module level.
"""
import os
from collections.abc import Mapping
from dataclasses import asdict
from pydantic.dataclasses import dataclass as pydantic_dataclass

DEFAULT_REMOTE_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


def _float_env(env: Mapping[str, str], key: str, default: float) -> float:
  raw = env.get(key)
  if raw is None or raw.strip() == "":
    return default
  try:
    return float(raw)
  except ValueError:
    raise ValueError(f"{key} must be a number, got {raw!r}")


@pydantic_dataclass(frozen=True)
class Settings:
  database_url: str = ""
  remote_api_key: str = ""
  remote_base_url: str = DEFAULT_REMOTE_BASE_URL
  remote_timeout: float = 20.0
  poll_interval: float = 2.2
  ai_delay: float = 1.5

  def __post_init__(self):
    if self.poll_interval <= 0:
      raise ValueError(f"poll_interval must be positive, got {self.poll_interval}")
    if self.remote_timeout <= 0:
      raise ValueError(f"remote_timeout must be positive, got {self.remote_timeout}")
    if self.ai_delay < 0:
      raise ValueError(f"ai_delay must be non-negative, got {self.ai_delay}")

  @property
  def multiplayer_enabled(self) -> bool:
    return bool(self.database_url)

  @property
  def remote_enabled(self) -> bool:
    return bool(self.remote_api_key)

  @classmethod
  def from_env(cls, env: Mapping[str, str] | None = None) -> 'Settings':
    env = os.environ if env is None else env
    return cls(
      database_url=env.get("COSMIC_DATABASE_URL", "").strip(),
      remote_api_key=env.get("GEMINI_API_KEY", "").strip(),
      remote_base_url=env.get("COSMIC_REMOTE_BASE_URL", DEFAULT_REMOTE_BASE_URL).rstrip("/"),
      remote_timeout=_float_env(env, "COSMIC_REMOTE_TIMEOUT", 20.0),
      poll_interval=_float_env(env, "COSMIC_POLL_INTERVAL", 2.2),
      ai_delay=_float_env(env, "COSMIC_AI_DELAY", 1.5),
    )

  def serialize(self) -> dict:
    d = asdict(self)
    if d["remote_api_key"]:
      d["remote_api_key"] = "***"
    return d

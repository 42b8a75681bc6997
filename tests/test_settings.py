import pytest

from cosmic.settings import DEFAULT_REMOTE_BASE_URL, Settings


def test_defaults():
  s = Settings()
  assert not s.multiplayer_enabled
  assert not s.remote_enabled
  assert s.poll_interval == 2.2
  assert s.remote_base_url == DEFAULT_REMOTE_BASE_URL


def test_from_env():
  s = Settings.from_env({
    'COSMIC_DATABASE_URL': ' sqlite:///rooms.db ',
    'GEMINI_API_KEY': 'secret',
    'COSMIC_REMOTE_BASE_URL': 'https://proxy.test/v1/',
    'COSMIC_POLL_INTERVAL': '0.5',
    'COSMIC_AI_DELAY': '',
  })
  assert s.database_url == 'sqlite:///rooms.db'
  assert s.multiplayer_enabled and s.remote_enabled
  assert s.remote_base_url == 'https://proxy.test/v1'
  assert s.poll_interval == 0.5
  assert s.ai_delay == 1.5
  assert s.serialize()['remote_api_key'] == '***'


def test_invalid_values():
  with pytest.raises(ValueError):
    Settings.from_env({'COSMIC_POLL_INTERVAL': 'fast'})
  with pytest.raises(ValueError):
    Settings(poll_interval=0)
  with pytest.raises(ValueError):
    Settings(ai_delay=-1)

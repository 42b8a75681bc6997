from cosmic.consts import GAME_ASSETS_DEFAULT, GameAssets, GameConfig, default_strategy_for_seat, parse_cards
from cosmic.typings import AIStrategy, Gem


def test_default_catalog_split_by_level():
  decks = GAME_ASSETS_DEFAULT.decks_by_level
  assert len(decks[1]) == 40
  assert len(decks[2]) == 30
  assert len(decks[3]) == 20
  assert len(GAME_ASSETS_DEFAULT.nobles) == 10
  ids = [c.id for lvl in decks for c in decks[lvl]]
  assert len(ids) == len(set(ids)) == 90


def test_parse_cards_skips_header_and_bad_rows():
  text = "\n".join([
    "Color,PV,Black,White,Red,Blue,Green,Tier",
    "Black,0,0,1,1,1,1,1",
    "",
    "Purple,1,0,0,0,0,0,1",
    "Red,2,0,0,0,5,3,9",
    "short,row",
  ])
  cards = parse_cards(text)
  assert [c.bonus for c in cards] == [Gem.BLACK, Gem.RED]
  first = cards[0]
  assert first.id == 'card-0'
  assert first.cost.to_dict() == {Gem.WHITE: 1, Gem.RED: 1, Gem.BLUE: 1, Gem.GREEN: 1}
  # tier is clamped into 1..3
  assert cards[1].level == 3
  assert cards[1].points == 2


def test_shuffle_is_seeded():
  a = GAME_ASSETS_DEFAULT.shuffle(7)
  b = GAME_ASSETS_DEFAULT.shuffle(7)
  c = GAME_ASSETS_DEFAULT.shuffle(8)
  assert a == b
  assert a != c
  assert sorted(x.id for x in a.decks_by_level[1]) == sorted(x.id for x in GAME_ASSETS_DEFAULT.decks_by_level[1])


def test_load_from_directory(tmp_path):
  (tmp_path / "cards.csv").write_text("Blue,1,1,1,1,0,1,2\n", encoding='utf8')
  (tmp_path / "nobles.yaml").write_text("nobles:\n  - {id: x, requirements: {red: 4}}\n", encoding='utf8')
  assets = GameAssets.load_default(tmp_path)
  assert [c.id for c in assets.decks_by_level[2]] == ['card-0']
  assert assets.nobles[0].requirements.to_dict() == {Gem.RED: 4}


def test_config_and_default_strategies():
  config = GameConfig()
  bank = config.initial_bank()
  assert bank.get(Gem.GOLD) == 5
  assert all(bank.get(g) == 7 for g in (Gem.WHITE, Gem.BLUE, Gem.GREEN, Gem.RED, Gem.BLACK))
  assert GameConfig.deserialize(config.serialize()) == config
  assert [default_strategy_for_seat(i) for i in range(5)] == [
    AIStrategy.AGGRESSIVE, AIStrategy.DEFENSIVE, AIStrategy.BALANCED, AIStrategy.RANDOM, AIStrategy.AGGRESSIVE,
  ]

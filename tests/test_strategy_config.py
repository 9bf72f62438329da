"""
Tests for the JSON strategy config loader.

Run with: python -m pytest tests/test_strategy_config.py -v
"""

import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from brain import strategy_config
from brain.strategy_config import DEFAULT_CONFIG_PATH, StrategyConfig


def write_config(tmp_path, data):
    path = tmp_path / "strategy.json"
    path.write_text(json.dumps(data), encoding='utf-8')
    return path


class TestStrategyConfig:

    def test_default_file_has_every_section(self):
        config = StrategyConfig(str(DEFAULT_CONFIG_PATH))
        assert config.is_loaded
        for section in ('state', 'economy', 'decision', 'combat', 'intelligence',
                        'planner', 'adaptive', 'actions'):
            assert config.get_section(section), section

    def test_get_with_default(self, tmp_path):
        config = StrategyConfig(str(write_config(tmp_path, {'combat': {'trials': 9}})))
        assert config.get('combat', 'trials') == 9
        assert config.get('combat', 'max_rounds', default=6) == 6
        assert config.get('nope', 'x', default='d') == 'd'

    def test_section_is_a_copy(self, tmp_path):
        config = StrategyConfig(str(write_config(tmp_path, {'combat': {'trials': 9}})))
        section = config.get_section('combat')
        section['trials'] = 1
        assert config.get('combat', 'trials') == 9

    def test_missing_file_uses_defaults(self, tmp_path):
        config = StrategyConfig(str(tmp_path / "absent.json"))
        assert not config.is_loaded
        assert config.get_section('combat') == {}
        assert config.name == 'default'

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding='utf-8')
        config = StrategyConfig(str(path))
        assert not config.is_loaded
        assert config.as_dict() == {}

    def test_env_var(self, tmp_path, monkeypatch):
        path = write_config(tmp_path, {'name': 'from-env', 'version': '2.0.0'})
        monkeypatch.setenv('STRATEGY_CONFIG', str(path))
        config = StrategyConfig()
        assert config.name == 'from-env'
        assert config.version == '2.0.0'

    def test_set_config_path_replaces_singleton(self, tmp_path, monkeypatch):
        monkeypatch.setattr(strategy_config, '_config', None)
        strategy_config.set_config_path(str(write_config(tmp_path, {'name': 'swapped'})))
        assert strategy_config.get_config().name == 'swapped'

    def test_unknown_and_malformed_sections_dropped(self):
        config = StrategyConfig.from_dict({'combat': {'trials': 2}, 'graphics': {'fps': 60},
                                           'planner': 'fast'})
        assert config.is_loaded
        assert set(config.as_dict()) == {'combat'}
        assert config.get_section('planner') == {}

    def test_with_overrides_leaves_original(self):
        base = StrategyConfig.from_dict({'actions': {'attack_cooldown_minutes': 30, 'top_k': 3}})
        hot = base.with_overrides('actions', attack_cooldown_minutes=10)

        assert hot.get_section('actions') == {'attack_cooldown_minutes': 10, 'top_k': 3}
        assert base.get('actions', 'attack_cooldown_minutes') == 30

    def test_non_object_file(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]", encoding='utf-8')
        assert not StrategyConfig(str(path)).is_loaded

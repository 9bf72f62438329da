"""
Tests for the JSON-lines decision trace.

Run with: python -m pytest tests/test_decision_logger.py -v
"""

import json
import random
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from brain import decision_logger
from brain.models import ActionCategory, ActionOutcome
from brain.strategy_config import DEFAULT_CONFIG_PATH, StrategyConfig
from brain.tick import TickProcessor
from brain.world import InMemoryAgentDirectory
from config import config
from persistence import close_db, init_db

from fakes import NOW, Clock, FakeWorld, make_agent, make_planet

PLAYER = 100


@pytest.fixture
def log_dir(tmp_path, monkeypatch):
    """Trace enabled and pointed at a temp dir; handler reset around the test"""
    decision_logger.close()
    monkeypatch.setattr(config, 'LOG_DIR', str(tmp_path))
    monkeypatch.setattr(config, 'DECISION_LOG_ENABLED', True)
    yield tmp_path
    decision_logger.close()


def read_trace(log_dir):
    decision_logger.flush()
    path = log_dir / "decisions.jsonl"
    return [json.loads(line) for line in path.read_text(encoding='utf-8').splitlines() if line]


class TestLogDecision:

    def test_writes_one_json_line(self, log_dir):
        decision_logger.log_decision(
            agent_id=7, tick_id='t9', objective='economic_growth',
            weights={'build': 66.666, 'fleet': 33.334}, category='build',
            success=True, reason="queued metal_mine", phase='early', blocked=['attack'],
        )

        [entry] = read_trace(log_dir)
        assert entry['agent_id'] == 7
        assert entry['tick_id'] == 't9'
        assert entry['objective'] == 'economic_growth'
        assert entry['weights'] == {'build': 66.67, 'fleet': 33.33}
        assert entry['category'] == 'build'
        assert entry['success'] is True
        assert entry['reason'] == "queued metal_mine"
        assert entry['phase'] == 'early'
        assert entry['blocked'] == ['attack']
        assert 'ts' in entry

    def test_appends(self, log_dir):
        for tick in ('t1', 't2'):
            decision_logger.log_decision(1, tick, 'economic_growth', {'build': 100.0}, 'build')
        assert [e['tick_id'] for e in read_trace(log_dir)] == ['t1', 't2']

    def test_disabled_writes_nothing(self, log_dir, monkeypatch):
        monkeypatch.setattr(config, 'DECISION_LOG_ENABLED', False)

        assert decision_logger.is_enabled() is False
        decision_logger.log_decision(1, 't1', 'economic_growth', {'build': 100.0}, 'build')

        assert not (log_dir / "decisions.jsonl").exists()

    def test_path_follows_log_dir(self, log_dir):
        assert decision_logger._log_path() == str(log_dir / "decisions.jsonl")


class TestTickTrace:
    """A decided tick leaves exactly one trace line"""

    @pytest.fixture
    def processor(self):
        init_db('sqlite://')
        world = FakeWorld()
        world.planets[PLAYER] = [make_planet(1, buildings={'metal_mine': 4, 'solar_plant': 4})]
        agents = InMemoryAgentDirectory([make_agent(agent_id=1, player_id=PLAYER)])
        processor = TickProcessor(world, agents, strategy=StrategyConfig(str(DEFAULT_CONFIG_PATH)),
                                  rng=random.Random(5), clock=Clock(NOW))
        processor.executor = MagicMock()
        processor.executor.execute.return_value = ActionOutcome(ActionCategory.BUILD, True, "queued metal_mine")
        yield processor
        close_db()

    def test_tick_is_traced(self, log_dir, processor):
        outcome = processor.process_tick(1, 't42')

        [entry] = read_trace(log_dir)
        assert entry['agent_id'] == 1
        assert entry['tick_id'] == 't42'
        assert entry['objective'] == outcome.objective
        assert entry['category'] == outcome.category
        assert entry['success'] is True
        assert entry['reason'] == "queued metal_mine"
        assert sum(entry['weights'].values()) == pytest.approx(100.0, abs=0.1)

    def test_tick_not_traced_when_disabled(self, log_dir, processor, monkeypatch):
        monkeypatch.setattr(config, 'DECISION_LOG_ENABLED', False)

        processor.process_tick(1, 't42')

        assert not (log_dir / "decisions.jsonl").exists()

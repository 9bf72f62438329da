"""
Tests for the adaptive tuner's growth/efficiency feedback loop.

Run with: python -m pytest tests/test_adaptive_tuner.py -v
"""

import sys
from datetime import timedelta
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from brain.adaptive_tuner import AdaptiveTuner, nudge
from brain.models import ActionCategory, Personality, Resources
from brain.ttl_store import TTLStore

from fakes import NOW, Clock, make_agent, make_snapshot

# Efficiency falls back to points / hourly production: 5000 / 10000 = 0.5
STAGNANT = dict(total_production=Resources(10_000, 0, 0))


@pytest.fixture
def clock():
    return Clock(NOW)


@pytest.fixture
def tuner(clock):
    return AdaptiveTuner(TTLStore(clock))


@pytest.fixture
def agent():
    return make_agent(personality=Personality.BALANCED)


class TestNudge:

    def test_positive_delta_capped(self):
        assert nudge(30, 5, 60) == 35
        assert nudge(58, 5, 60) == 60

    def test_negative_delta_floored(self):
        assert nudge(20, -5, 5) == 15
        assert nudge(7, -5, 5) == 5


class TestMetrics:

    def test_first_growth_is_zero(self, tuner):
        assert tuner.growth_rate(1, make_snapshot()) == 0.0

    def test_growth_per_hour(self, tuner, clock):
        tuner.growth_rate(1, make_snapshot(total_points=5_000))
        clock.advance(timedelta(minutes=30))
        assert tuner.growth_rate(1, make_snapshot(total_points=5_050)) == pytest.approx(100)

    def test_efficiency_uses_spend(self, tuner):
        tuner.growth_rate(1, make_snapshot(total_points=5_000))
        tuner.record_spend(1, Resources(20_000, 10_000, 0))
        assert tuner.resource_efficiency(1, make_snapshot(total_points=5_300)) == pytest.approx(10)

    def test_efficiency_fallback(self, tuner):
        assert tuner.resource_efficiency(1, make_snapshot(**STAGNANT)) == pytest.approx(0.5)

    def test_attack_success_needs_min_attempts(self, tuner):
        for _ in range(4):
            tuner.record_outcome(1, ActionCategory.ATTACK, False)
        tuner.record_outcome(1, ActionCategory.BUILD, True)
        assert tuner.attack_success_rate(1) is None

        tuner.record_outcome(1, ActionCategory.ATTACK, True)
        assert tuner.attack_success_rate(1) == pytest.approx(0.2)


class TestAdaptation:
    """Nudges start from the baseline and are clamped"""

    def test_stagnation(self, tuner, agent):
        result = tuner.adapt_if_needed(agent, make_snapshot(**STAGNANT))

        assert result['weights']['build'] == 35
        assert result['weights']['fleet'] == 22
        assert result['economy']['save_for_upgrade_percent'] == pytest.approx(0.25)
        assert result['economy']['min_resources_for_actions'] == 450
        assert tuner.weight_overrides(agent.agent_id) == result['weights']
        assert tuner.economy_overrides(agent.agent_id) == result['economy']

    def test_cooldown(self, tuner, agent, clock):
        assert tuner.adapt_if_needed(agent, make_snapshot(**STAGNANT)) is not None
        clock.advance(timedelta(minutes=10))
        assert tuner.adapt_if_needed(agent, make_snapshot(**STAGNANT)) is None

    def test_repeated_adaptation_does_not_drift(self, tuner, agent, clock):
        first = tuner.adapt_if_needed(agent, make_snapshot(**STAGNANT))
        clock.advance(timedelta(minutes=31))
        second = tuner.adapt_if_needed(agent, make_snapshot(**STAGNANT))
        assert second == first

    def test_strong_growth(self, tuner, agent, clock):
        assert tuner.adapt_if_needed(agent, make_snapshot(total_points=5_000)) is None

        clock.advance(timedelta(hours=1))
        tuner.record_spend(agent.agent_id, Resources(50_000, 0, 0))
        result = tuner.adapt_if_needed(agent, make_snapshot(total_points=5_100))

        assert result['weights']['fleet'] == 29
        assert result['weights']['attack'] == 23
        assert result['weights']['build'] == 27

    def test_threat(self, tuner, agent):
        result = tuner.adapt_if_needed(agent, make_snapshot(under_threat=True))
        assert result['weights']['attack'] == 15
        assert result['weights']['build'] == 35

    def test_threat_nudges_clamped(self, tuner):
        agent = make_agent(action_weights={'build': 68, 'attack': 7, 'fleet': 15, 'research': 10})
        result = tuner.adapt_if_needed(agent, make_snapshot(under_threat=True))
        assert result['weights']['attack'] == 5
        assert result['weights']['build'] == 70

    def test_storage_and_imbalance(self, tuner, agent):
        result = tuner.adapt_if_needed(agent, make_snapshot(storage_pressure_high=True,
                                                            resource_imbalance=0.8))
        assert result['weights']['build'] == 34
        assert result['weights']['trade'] == 13

    def test_attack_failures(self, tuner, agent):
        for _ in range(5):
            tuner.record_outcome(agent.agent_id, ActionCategory.ATTACK, False)
        result = tuner.adapt_if_needed(agent, make_snapshot())
        assert result['weights']['attack'] == 15

    def test_quiet_agent_not_adapted(self, tuner, agent):
        assert tuner.adapt_if_needed(agent, make_snapshot()) is None
        assert tuner.weight_overrides(agent.agent_id) == {}

    def test_overrides_expire(self, tuner, agent, clock):
        tuner.adapt_if_needed(agent, make_snapshot(under_threat=True))
        clock.advance(timedelta(minutes=61))
        assert tuner.weight_overrides(agent.agent_id) == {}
        assert tuner.economy_overrides(agent.agent_id) == {}

"""
Tests for the action decision engine.

Run with: python -m pytest tests/test_decision_engine.py -v
"""

import random
import sys
from collections import Counter
from datetime import timedelta
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from brain.decision_engine import ActionDecisionEngine
from brain.models import ActionCategory, GamePhase, Personality
from brain.objectives import Objective
from brain.personality import get_profile
from brain.selection import redistribute_weights

from fakes import NOW, make_agent, make_snapshot


@pytest.fixture
def engine():
    return ActionDecisionEngine()


class TestCooldownRedistribution:
    """Weight of a category on cooldown goes to the others proportionally"""

    def test_aggressive_attack_on_cooldown(self, engine):
        agent = make_agent(personality=Personality.AGGRESSIVE)
        agent.set_cooldown(ActionCategory.ATTACK, NOW + timedelta(minutes=30))
        profile = get_profile(Personality.AGGRESSIVE)
        snapshot = make_snapshot(has_significant_fleet=True, game_phase=GamePhase.MID)

        blocked = engine.blocked_categories(agent, snapshot, NOW)
        assert 'attack' in blocked

        final = redistribute_weights(profile.action_weights, blocked)
        assert final['attack'] == 0
        assert final['build'] + final['fleet'] + final['research'] == pytest.approx(100)
        assert final['build'] == pytest.approx(100 * 20 / 65)
        assert final['fleet'] == pytest.approx(100 * 35 / 65)
        assert final['research'] == pytest.approx(100 * 10 / 65)

    def test_expired_cooldown_not_blocked(self, engine):
        agent = make_agent()
        agent.set_cooldown(ActionCategory.BUILD, NOW - timedelta(seconds=1))
        assert 'build' not in engine.blocked_categories(agent, make_snapshot(), NOW)

    def test_decide_keeps_ratios_of_open_categories(self, engine):
        agent = make_agent(personality=Personality.AGGRESSIVE)
        agent.set_cooldown(ActionCategory.FLEET, NOW + timedelta(minutes=5))
        profile = get_profile(Personality.AGGRESSIVE)
        snapshot = make_snapshot(has_significant_fleet=True, game_phase=GamePhase.MID)

        before = engine.build_weights(profile, Objective.FLEET_ACCUMULATION, snapshot)
        decision = engine.decide(agent, profile, Objective.FLEET_ACCUMULATION, snapshot, NOW,
                                 random.Random(1))

        assert decision.weights['fleet'] == 0
        assert sum(decision.weights.values()) == pytest.approx(100)
        assert decision.weights['attack'] / decision.weights['build'] == \
            pytest.approx(before['attack'] / before['build'])


class TestBlocking:

    def test_availability_rules(self, engine):
        agent = make_agent()
        snapshot = make_snapshot(all_building_queues_full=True, can_afford_research=False,
                                 probe_count=0, fleet_slots_used=2)
        blocked = engine.blocked_categories(agent, snapshot, NOW)
        assert {'build', 'research', 'attack', 'espionage', 'trade', 'diplomacy'} <= blocked
        assert 'fleet' not in blocked

    def test_colony_ship_keeps_fleet_open(self, engine):
        snapshot = make_snapshot(can_afford_fleet=False, can_colonize=True, colony_ship_count=1)
        assert 'fleet' not in engine.blocked_categories(make_agent(), snapshot, NOW)

    def test_everything_blocked_gives_no_category(self, engine):
        agent = make_agent()
        snapshot = make_snapshot(can_afford_build=False, can_afford_research=False,
                                 can_afford_fleet=False)
        decision = engine.decide(agent, get_profile(Personality.BALANCED),
                                 Objective.ECONOMIC_GROWTH, snapshot, NOW, random.Random(1))
        assert decision.category is None
        assert all(w == 0 for w in decision.weights.values())


class TestWeights:

    def test_weights_sum_to_100(self, engine):
        for personality in Personality:
            for objective in Objective:
                weights = engine.build_weights(get_profile(personality), objective, make_snapshot())
                assert sum(weights.values()) == pytest.approx(100)

    def test_early_game_damps_attack(self, engine):
        profile = get_profile(Personality.AGGRESSIVE)
        early = engine.build_weights(profile, Objective.FLEET_ACCUMULATION, make_snapshot())
        late = engine.build_weights(profile, Objective.FLEET_ACCUMULATION,
                                    make_snapshot(game_phase=GamePhase.LATE))
        assert early['attack'] < late['attack']

    def test_storage_pressure_boosts_build(self, engine):
        profile = get_profile(Personality.BALANCED)
        calm = engine.build_weights(profile, Objective.ECONOMIC_GROWTH, make_snapshot())
        full = engine.build_weights(profile, Objective.ECONOMIC_GROWTH,
                                    make_snapshot(storage_pressure_high=True))
        assert full['build'] > calm['build']

    def test_draw_follows_weights(self, engine):
        rng = random.Random(99)
        agent = make_agent(personality=Personality.SCIENTIST)
        profile = get_profile(Personality.SCIENTIST)
        counts = Counter(
            engine.decide(agent, profile, Objective.TECH_RUSH, make_snapshot(), NOW, rng).category
            for _ in range(500)
        )
        assert counts.most_common(1)[0][0] == ActionCategory.RESEARCH
        assert ActionCategory.ATTACK not in counts

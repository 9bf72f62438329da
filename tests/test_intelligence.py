"""
Tests for the IntelligenceStore: target intel, activity patterns and
threat relations, against an in-memory SQLite store.

Run with: python -m pytest tests/test_intelligence.py -v
"""

import sys
from datetime import timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from brain.intelligence import IntelligenceStore, InteractionKind, Relation, profitability
from brain.models import Coordinates, EspionageReport, PlanetTarget, Resources
from persistence import ThreatRelation, close_db, init_db

from fakes import NOW, Clock

AGENT = 1


@pytest.fixture
def db():
    init_db('sqlite://')
    yield
    close_db()


@pytest.fixture
def clock():
    return Clock(NOW)


@pytest.fixture
def store(db, clock):
    return IntelligenceStore(clock=clock)


def make_report(planet_id=500, player_id=50, resources=Resources(100_000, 50_000, 20_000),
                defenses=None, ships=None, observed_at=NOW, report_id=1, online=None):
    return EspionageReport(
        report_id=report_id,
        target_player_id=player_id,
        target_planet_id=planet_id,
        coordinates=Coordinates(1, 120, 7),
        observed_at=observed_at,
        resources=resources,
        ships=ships or {},
        defenses=defenses if defenses is not None else {'rocket_launcher': 100},
        target_online=online,
    )


# =============================================================================
# PROFITABILITY
# =============================================================================

class TestProfitability:
    """Net raid value formula"""

    def test_reference_values(self):
        # lootable 85000, defense cost 10000
        assert profitability(170_000, 200) == 75_000

    @pytest.mark.parametrize("low,high", [(0, 1_000), (10_000, 50_000), (200_000, 1_000_000)])
    def test_non_decreasing_in_resources(self, low, high):
        assert profitability(low, 300) <= profitability(high, 300)

    @pytest.mark.parametrize("low,high", [(0, 10), (100, 500), (1_000, 100_000)])
    def test_non_increasing_in_defense(self, low, high):
        assert profitability(500_000, low) >= profitability(500_000, high)

    @pytest.mark.parametrize("total,defense", [(0, 0), (0, 1_000), (1_000, 1_000_000), (-5, 0)])
    def test_never_negative(self, total, defense):
        assert profitability(total, defense) >= 0

    def test_constants_are_configurable(self, db):
        store = IntelligenceStore(config={'loot_fraction': 1.0, 'defense_cost_factor': 0})
        assert store.profitability(1000, 500) == 1000


# =============================================================================
# TARGET INTEL
# =============================================================================

class TestTargetIntel:
    """Recording and querying espionage intel"""

    def test_record_intel_scores_target(self, store):
        intel = store.record_intel(AGENT, make_report())

        assert intel is not None
        assert intel.defense_power == 200
        assert intel.total_resources == 170_000
        assert intel.profitability == 75_000

    def test_second_report_updates_same_row(self, store):
        store.record_intel(AGENT, make_report(resources=Resources(10_000, 0, 0)))
        store.record_intel(AGENT, make_report(resources=Resources(400_000, 0, 0), report_id=2))

        targets = store.profitable_targets(AGENT)
        assert len(targets) == 1
        assert targets[0].metal == 400_000
        assert targets[0].report_id == 2

    def test_stale_intel_is_unknown(self, store, clock):
        store.record_intel(AGENT, make_report())
        clock.advance(timedelta(hours=25))

        assert store.get_target_intel(AGENT, 500) is None
        assert store.profitable_targets(AGENT) == []
        assert store.best_known_target(AGENT) is None

    def test_profitable_targets_ordered_and_filtered(self, store):
        store.record_intel(AGENT, make_report(planet_id=1, player_id=10, resources=Resources(100_000, 0, 0)))
        store.record_intel(AGENT, make_report(planet_id=2, player_id=20, resources=Resources(900_000, 0, 0)))
        store.record_intel(AGENT, make_report(planet_id=3, player_id=30, resources=Resources(1_000, 0, 0)))

        targets = store.profitable_targets(AGENT)
        assert [t.target_planet_id for t in targets] == [2, 1]

        targets = store.profitable_targets(AGENT, avoid=[20])
        assert [t.target_planet_id for t in targets] == [1]

    def test_intel_is_per_agent(self, store):
        store.record_intel(AGENT, make_report())
        assert store.profitable_targets(AGENT + 1) == []

    def test_targets_needing_espionage(self, store, clock):
        store.record_intel(AGENT, make_report(planet_id=1))
        store.record_intel(AGENT, make_report(planet_id=2, observed_at=NOW - timedelta(hours=13)))

        candidates = [PlanetTarget(planet_id=i, player_id=50, coordinates=Coordinates(1, 120, i))
                      for i in (1, 2, 3)]
        needing = store.targets_needing_espionage(AGENT, candidates)
        assert sorted(c.planet_id for c in needing) == [2, 3]

    def test_failed_write_is_swallowed(self, clock):
        repo = MagicMock()
        repo.upsert_target_intel.side_effect = RuntimeError("disk full")
        store = IntelligenceStore(repository=repo, clock=clock)

        assert store.record_intel(AGENT, make_report()) is None

    def test_report_with_online_flag_feeds_activity(self, store):
        store.record_intel(AGENT, make_report(online=True))
        pattern = store.repo.get_activity(AGENT, 50)
        assert pattern.observation_count == 1
        assert pattern.hourly[NOW.hour] == 1


# =============================================================================
# ACTIVITY PATTERNS
# =============================================================================

class TestActivityPatterns:
    """Online-hour histograms"""

    def _observe(self, store, hour, times, online=True):
        for _ in range(times):
            store.record_activity(AGENT, 50, online, at=NOW.replace(hour=hour))

    def test_insufficient_data_assumes_online(self, store):
        self._observe(store, 3, 2)
        assert store.is_likely_online_now(AGENT, 50, NOW.replace(hour=15)) is True
        assert store.is_good_time_to_attack(AGENT, 50, NOW.replace(hour=15)) is True

    def test_unknown_player(self, store):
        assert store.is_likely_online_now(AGENT, 999) is True
        assert store.is_good_time_to_attack(AGENT, 999) is True
        assert store.best_attack_hours(AGENT, 999) == list(range(24))

    def test_peak_hour_detected(self, store):
        self._observe(store, 20, 8)
        self._observe(store, 9, 1)

        assert store.is_likely_online_now(AGENT, 50, NOW.replace(hour=20)) is True
        assert store.is_likely_online_now(AGENT, 50, NOW.replace(hour=4)) is False
        assert store.is_good_time_to_attack(AGENT, 50, NOW.replace(hour=4)) is True
        assert store.is_good_time_to_attack(AGENT, 50, NOW.replace(hour=20)) is False

    def test_offline_sightings_only_count(self, store):
        self._observe(store, 20, 3, online=False)
        pattern = store.repo.get_activity(AGENT, 50)
        assert pattern.observation_count == 3
        assert pattern.online_count == 0
        assert sum(pattern.hourly) == 0

    def test_weekday_buckets_do_not_shift_verdict(self, store):
        # Every sighting falls on a Saturday
        self._observe(store, 20, 8)
        self._observe(store, 9, 1)
        assert store.repo.get_activity(AGENT, 50).daily[NOW.weekday()] == 9

        wednesday = NOW + timedelta(days=4)
        assert store.is_likely_online_now(AGENT, 50, wednesday.replace(hour=20)) is True
        assert store.is_likely_online_now(AGENT, 50, NOW.replace(hour=4)) is False

    def test_best_attack_hours_avoid_peaks(self, store):
        self._observe(store, 20, 5)
        self._observe(store, 21, 5)
        hours = store.best_attack_hours(AGENT, 50)
        assert len(hours) == 6
        assert 20 not in hours and 21 not in hours


# =============================================================================
# THREAT RELATIONS
# =============================================================================

class TestThreatRelations:
    """Bounded hostility scores"""

    def test_interaction_deltas(self, store):
        store.record_threat_interaction(AGENT, 7, InteractionKind.ATTACKED_US)
        assert store.threat_score(AGENT, 7) == 15

        store.record_threat_interaction(AGENT, 7, InteractionKind.OUR_ATTACK, won=False)
        assert store.threat_score(AGENT, 7) == 25

        relation = store.record_threat_interaction(AGENT, 7, InteractionKind.OUR_ATTACK, won=True)
        assert relation.score == 20
        assert relation.times_attacked_us == 1
        assert relation.times_we_attacked == 2
        assert relation.times_we_won == 1
        assert relation.times_we_lost == 1

    def test_score_stays_in_bounds(self, store):
        for _ in range(20):
            store.record_threat_interaction(AGENT, 7, InteractionKind.ATTACKED_US)
        assert store.threat_score(AGENT, 7) == ThreatRelation.SCORE_MAX

        for _ in range(50):
            store.record_threat_interaction(AGENT, 8, InteractionKind.OUR_ATTACK, won=True)
        assert store.threat_score(AGENT, 8) == ThreatRelation.SCORE_MIN

    def test_decay_converges_to_zero(self, store):
        for _ in range(3):
            store.record_threat_interaction(AGENT, 7, InteractionKind.ATTACKED_US)
        store.record_threat_interaction(AGENT, 8, InteractionKind.OUR_ATTACK, won=True)

        for _ in range(60):
            store.decay_threats(AGENT)

        assert store.threat_score(AGENT, 7) == 0
        assert store.threat_score(AGENT, 8) == 0
        assert store.decay_threats(AGENT) == 0

    def test_decay_stops_at_ally_floor(self, store):
        store.sync_alliance_allies(AGENT, [7, 100], own_player_id=100)
        for _ in range(10):
            store.decay_threats(AGENT)
        assert store.threat_score(AGENT, 7) == -50
        assert store.threat_score(AGENT, 100) == 0

    def test_nap_caps_hostility(self, store):
        store.set_nap(AGENT, 9)
        for _ in range(5):
            store.record_threat_interaction(AGENT, 9, InteractionKind.ATTACKED_US)
        assert store.threat_score(AGENT, 9) == 0
        assert store.has_nap(AGENT, 9)
        assert store.diplomatic_relation(AGENT, 9) == Relation.NAP

    def test_danger_and_safety(self, store):
        for _ in range(4):
            store.record_threat_interaction(AGENT, 7, InteractionKind.ATTACKED_US)

        assert store.is_dangerous(AGENT, 7)
        assert not store.is_safe_target(AGENT, 7)
        assert store.diplomatic_relation(AGENT, 7) == Relation.ENEMY
        assert store.is_safe_target(AGENT, 1234)
        assert store.diplomatic_relation(AGENT, 1234) == Relation.NEUTRAL

    def test_avoid_list(self, store):
        for _ in range(4):
            store.record_threat_interaction(AGENT, 7, InteractionKind.ATTACKED_US)
        store.sync_alliance_allies(AGENT, [8])
        store.set_nap(AGENT, 9)
        store.record_threat_interaction(AGENT, 10, InteractionKind.ATTACKED_US)

        assert store.known_hostiles(AGENT) == [7]
        assert store.avoid_list(AGENT) == [7, 8, 9]

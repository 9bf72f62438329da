"""
Adaptive Tuner - feedback loop over an agent's own progress

Once per cooldown window it measures growth (points/hour since the last
snapshot) and efficiency (points per thousand resources spent), then
nudges the economic settings and action weights. Nudges start from the
agent's configured baseline every time and are clamped, so repeated
adaptation cannot drift. Results are stored as short-lived overrides in
the TTL store and layered on top of the agent's own settings; the agent
record itself is never rewritten.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from .models import ActionCategory, Agent, Resources, StateSnapshot
from .personality import get_profile, parse_personality
from .ttl_store import TTLStore

logger = logging.getLogger(__name__)


# (category, delta, bound): bound is a max for positive deltas, a min for negative ones
STAGNATION_NUDGES = (('build', 5, 60), ('fleet', -3, 10))
STRONG_GROWTH_NUDGES = (('fleet', 4, 45), ('attack', 3, 35), ('build', -3, 20))
THREAT_NUDGES = (('attack', -5, 5), ('build', 5, 70))
STORAGE_NUDGES = (('build', 4, 70), ('trade', 3, 20))
IMBALANCE_NUDGES = (('trade', 5, 25),)
ATTACK_FAILURE_NUDGES = (('attack', -5, 5),)


def nudge(value: float, delta: float, bound: float) -> float:
    """Apply delta, then clamp toward the bound on the side it moves."""
    if delta >= 0:
        return min(bound, value + delta)
    return max(bound, value + delta)


class AdaptiveTuner:
    """
    Growth/efficiency driven adjustments.

    Config keys (section 'adaptive'): cooldown_minutes, override_ttl_minutes,
    snapshot_ttl_hours, stagnation_growth, stagnation_efficiency,
    strong_growth, strong_efficiency, imbalance_threshold,
    attack_success_floor, attack_min_attempts.
    """

    DEFAULT_COOLDOWN_MINUTES = 30
    DEFAULT_OVERRIDE_TTL_MINUTES = 60
    DEFAULT_SNAPSHOT_TTL_HOURS = 24
    DEFAULT_STAGNATION_GROWTH = 5
    DEFAULT_STAGNATION_EFFICIENCY = 0.6
    DEFAULT_STRONG_GROWTH = 25
    DEFAULT_STRONG_EFFICIENCY = 1.0
    DEFAULT_IMBALANCE_THRESHOLD = 0.5
    DEFAULT_ATTACK_SUCCESS_FLOOR = 0.3
    DEFAULT_ATTACK_MIN_ATTEMPTS = 5

    # Baselines for keys the agent does not configure
    BASE_ECONOMY = {'save_for_upgrade_percent': 0.3, 'min_resources_for_actions': 500}
    BASE_WEIGHTS = {'build': 30, 'fleet': 25, 'attack': 20, 'trade': 5}

    KEY_ADAPTED = 'adaptive:adapted_at'
    KEY_SNAPSHOT = 'adaptive:points_snapshot'
    KEY_SPENT = 'adaptive:spent'
    KEY_ATTACKS = 'adaptive:attacks'
    KEY_ECONOMY = 'adaptive:economy'
    KEY_WEIGHTS = 'adaptive:weights'

    def __init__(self, store: TTLStore, config: Optional[Dict] = None):
        self.store = store
        config = config or {}

        self.cooldown = timedelta(minutes=config.get('cooldown_minutes', self.DEFAULT_COOLDOWN_MINUTES))
        self.override_ttl = timedelta(minutes=config.get('override_ttl_minutes',
                                                         self.DEFAULT_OVERRIDE_TTL_MINUTES))
        self.snapshot_ttl = timedelta(hours=config.get('snapshot_ttl_hours', self.DEFAULT_SNAPSHOT_TTL_HOURS))
        self.stagnation_growth = config.get('stagnation_growth', self.DEFAULT_STAGNATION_GROWTH)
        self.stagnation_efficiency = config.get('stagnation_efficiency', self.DEFAULT_STAGNATION_EFFICIENCY)
        self.strong_growth = config.get('strong_growth', self.DEFAULT_STRONG_GROWTH)
        self.strong_efficiency = config.get('strong_efficiency', self.DEFAULT_STRONG_EFFICIENCY)
        self.imbalance_threshold = config.get('imbalance_threshold', self.DEFAULT_IMBALANCE_THRESHOLD)
        self.attack_success_floor = config.get('attack_success_floor', self.DEFAULT_ATTACK_SUCCESS_FLOOR)
        self.attack_min_attempts = config.get('attack_min_attempts', self.DEFAULT_ATTACK_MIN_ATTEMPTS)

    # =========================================================================
    # Metrics
    # =========================================================================

    def growth_rate(self, agent_id: int, snapshot: StateSnapshot) -> float:
        """Points per hour since the stored snapshot (0 on first call)."""
        stored = self.store.get(agent_id, self.KEY_SNAPSHOT)
        now = self.store.now()
        if stored is None:
            self._take_snapshot(agent_id, snapshot, now)
            return 0.0

        elapsed = max(1.0, (now - stored['time']).total_seconds())
        return (snapshot.total_points - stored['points']) / elapsed * 3600

    def resource_efficiency(self, agent_id: int, snapshot: StateSnapshot) -> float:
        """
        Points gained per thousand resources spent since the snapshot.

        Falls back to total points per unit of hourly production when no
        spend was recorded in the window.
        """
        stored = self.store.get(agent_id, self.KEY_SNAPSHOT)
        spent = self.store.get(agent_id, self.KEY_SPENT, 0.0)
        if stored is not None and spent > 0:
            return (snapshot.total_points - stored['points']) / (spent / 1000)
        return snapshot.total_points / max(1.0, snapshot.total_production.total)

    def record_spend(self, agent_id: int, spent: Resources):
        if spent.total <= 0:
            return
        total = self.store.get(agent_id, self.KEY_SPENT, 0.0) + spent.total
        self.store.set(agent_id, self.KEY_SPENT, total, ttl=self.snapshot_ttl)

    def record_outcome(self, agent_id: int, category: ActionCategory, success: bool):
        """Track attack attempts and successes for the success-rate nudge."""
        if category != ActionCategory.ATTACK:
            return
        attempts, successes = self.store.get(agent_id, self.KEY_ATTACKS, (0, 0))
        self.store.set(agent_id, self.KEY_ATTACKS,
                       (attempts + 1, successes + (1 if success else 0)), ttl=self.snapshot_ttl)

    def attack_success_rate(self, agent_id: int) -> Optional[float]:
        """Success rate, or None below the minimum number of attempts"""
        attempts, successes = self.store.get(agent_id, self.KEY_ATTACKS, (0, 0))
        if attempts < self.attack_min_attempts:
            return None
        return successes / attempts

    # =========================================================================
    # Adaptation
    # =========================================================================

    def adapt_if_needed(self, agent: Agent, snapshot: StateSnapshot) -> Optional[Dict[str, Dict[str, float]]]:
        """
        Re-tune at most once per cooldown window.

        Returns:
            {'economy': {...}, 'weights': {...}} when overrides were stored,
            None when on cooldown or nothing warranted a change
        """
        agent_id = agent.agent_id
        now = self.store.now()
        if not self.store.add(agent_id, self.KEY_ADAPTED, now, ttl=self.cooldown):
            return None

        growth = self.growth_rate(agent_id, snapshot)
        efficiency = self.resource_efficiency(agent_id, snapshot)

        economy = dict(self.BASE_ECONOMY)
        economy.update(agent.economy)
        weights = dict(self.BASE_WEIGHTS)
        weights.update(agent.action_weights or
                       get_profile(parse_personality(agent.personality)).action_weights)
        weights = {k: float(v) for k, v in weights.items()}

        reasons = []
        if growth < self.stagnation_growth and efficiency < self.stagnation_efficiency:
            economy['save_for_upgrade_percent'] = max(0.1, economy['save_for_upgrade_percent'] - 0.05)
            economy['min_resources_for_actions'] = max(200, int(economy['min_resources_for_actions'] * 0.9))
            self._apply(weights, STAGNATION_NUDGES)
            reasons.append('stagnation')
        elif growth > self.strong_growth and efficiency > self.strong_efficiency:
            self._apply(weights, STRONG_GROWTH_NUDGES)
            reasons.append('strong_growth')

        if snapshot.under_threat:
            self._apply(weights, THREAT_NUDGES)
            reasons.append('threat')

        if snapshot.storage_pressure_high:
            self._apply(weights, STORAGE_NUDGES)
            reasons.append('storage_pressure')

        if snapshot.resource_imbalance > self.imbalance_threshold:
            self._apply(weights, IMBALANCE_NUDGES)
            reasons.append('imbalance')

        success_rate = self.attack_success_rate(agent_id)
        if success_rate is not None and success_rate < self.attack_success_floor:
            self._apply(weights, ATTACK_FAILURE_NUDGES)
            reasons.append('attack_failures')

        # Next window measures from here
        self._take_snapshot(agent_id, snapshot, now)

        if not reasons:
            logger.debug(f"Agent {agent_id}: no adaptation (growth {growth:.1f}/h, "
                         f"efficiency {efficiency:.2f})")
            return None

        self.store.set(agent_id, self.KEY_ECONOMY, economy, ttl=self.override_ttl)
        self.store.set(agent_id, self.KEY_WEIGHTS, weights, ttl=self.override_ttl)
        logger.info(f"Agent {agent_id}: adaptive strategy updated ({', '.join(reasons)}; "
                    f"growth {growth:.1f}/h, efficiency {efficiency:.2f})")
        return {'economy': economy, 'weights': weights}

    def weight_overrides(self, agent_id: int) -> Dict[str, float]:
        return dict(self.store.get(agent_id, self.KEY_WEIGHTS, {}))

    def economy_overrides(self, agent_id: int) -> Dict[str, float]:
        return dict(self.store.get(agent_id, self.KEY_ECONOMY, {}))

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _apply(weights: Dict[str, float], nudges):
        for category, delta, bound in nudges:
            weights[category] = nudge(weights.get(category, 0.0), delta, bound)

    def _take_snapshot(self, agent_id: int, snapshot: StateSnapshot, now: datetime):
        self.store.set(agent_id, self.KEY_SNAPSHOT,
                       {'points': snapshot.total_points, 'time': now}, ttl=self.snapshot_ttl)
        self.store.delete(agent_id, self.KEY_SPENT)

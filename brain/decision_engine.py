"""
Action Decision Engine

Turns (trait profile, objective, snapshot) into one action category per
tick:

1. Blend the personality weights with the objective's weight table
2. Scale by game-phase and state modifiers, add objective bonuses
3. Normalize to a total of 100
4. Zero categories that are unavailable or on cooldown, handing their
   weight to the rest proportionally (ratios and total preserved)
5. Weighted random draw with an injected RNG

Everything here is pure CPU work on small dicts.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Dict, List, Optional, Set

from .models import ActionCategory, Agent, GamePhase, StateSnapshot
from .objectives import OBJECTIVE_WEIGHTS, Objective
from .personality import TraitProfile
from .selection import normalize_weights, redistribute_weights, weighted_choice

logger = logging.getLogger(__name__)


CATEGORIES = tuple(c.value for c in ActionCategory)

PHASE_MODIFIERS = MappingProxyType({
    GamePhase.EARLY: MappingProxyType({'build': 1.5, 'research': 1.3, 'fleet': 0.5, 'attack': 0.2}),
    GamePhase.MID: MappingProxyType({'fleet': 1.2}),
    GamePhase.LATE: MappingProxyType({'build': 0.7, 'research': 0.8, 'fleet': 1.3, 'attack': 1.4}),
})

# Extra weight for category/objective combinations that advance the objective
STRATEGIC_BONUS = MappingProxyType({
    Objective.ECONOMIC_GROWTH: MappingProxyType({'build': 30, 'research': 15}),
    Objective.FLEET_ACCUMULATION: MappingProxyType({'fleet': 40}),
    Objective.DEFENSIVE_FORTIFICATION: MappingProxyType({'defense': 35, 'research': 20}),
    Objective.TERRITORIAL_EXPANSION: MappingProxyType({'research': 35, 'fleet': 25}),
    Objective.RAIDING_AND_PROFIT: MappingProxyType({'attack': 50, 'fleet': 30}),
    Objective.TECH_RUSH: MappingProxyType({'research': 40}),
    Objective.ALLIANCE_WARFARE: MappingProxyType({'diplomacy': 20, 'fleet': 15}),
    Objective.INTELLIGENCE_GATHERING: MappingProxyType({'espionage': 40}),
})


@dataclass
class Decision:
    """One tick's decision with the weight vector that produced it."""
    category: Optional[ActionCategory]
    objective: Objective
    weights: Dict[str, float] = field(default_factory=dict)
    blocked: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        chosen = self.category.value if self.category else "none"
        top = ", ".join(f"{k}:{v:.1f}" for k, v in sorted(self.weights.items(),
                                                           key=lambda kv: -kv[1]) if v > 0)
        return f"[{self.objective.value}] -> {chosen} ({top})"


class ActionDecisionEngine:
    """
    Weighted-random action selection.

    Config keys (all optional):
        objective_blend: share of the objective table in the blend (0..1)
        large_fleet_points: fleet points above which fleet weight is damped
        low_resources_for_attack: total resources below which attack is damped
        research_lag_ratio: research/building points ratio that boosts research
        trade_imbalance_threshold: imbalance needed before trade is available
    """

    DEFAULT_OBJECTIVE_BLEND = 0.5
    DEFAULT_LARGE_FLEET_POINTS = 200_000
    DEFAULT_LOW_RESOURCES_FOR_ATTACK = 100_000
    DEFAULT_RESEARCH_LAG_RATIO = 0.5
    DEFAULT_TRADE_IMBALANCE_THRESHOLD = 0.35

    def __init__(self, config: Optional[Dict] = None):
        config = config or {}
        self.objective_blend = config.get('objective_blend', self.DEFAULT_OBJECTIVE_BLEND)
        self.large_fleet_points = config.get('large_fleet_points', self.DEFAULT_LARGE_FLEET_POINTS)
        self.low_resources_for_attack = config.get('low_resources_for_attack',
                                                   self.DEFAULT_LOW_RESOURCES_FOR_ATTACK)
        self.research_lag_ratio = config.get('research_lag_ratio', self.DEFAULT_RESEARCH_LAG_RATIO)
        self.trade_imbalance_threshold = config.get('trade_imbalance_threshold',
                                                    self.DEFAULT_TRADE_IMBALANCE_THRESHOLD)

    # =========================================================================
    # Decision
    # =========================================================================

    def decide(self, agent: Agent, profile: TraitProfile, objective: Objective,
               snapshot: StateSnapshot, now: datetime,
               rng: Optional[random.Random] = None) -> Decision:
        """
        Choose this tick's action category.

        Returns a Decision whose category is None when every category is
        blocked (nothing affordable, everything on cooldown).
        """
        weights = self.build_weights(profile, objective, snapshot)
        blocked = self.blocked_categories(agent, snapshot, now)
        final = redistribute_weights(weights, blocked)

        choice = weighted_choice(final, rng)
        category = ActionCategory(choice) if choice else None

        decision = Decision(category=category, objective=objective,
                            weights=final, blocked=sorted(blocked))
        logger.info(f"Agent {agent.agent_id} decision: {decision}")
        return decision

    def build_weights(self, profile: TraitProfile, objective: Objective,
                      snapshot: StateSnapshot) -> Dict[str, float]:
        """Blended, modified and normalized (sum 100) weight vector."""
        objective_table = OBJECTIVE_WEIGHTS[objective]
        bonus = STRATEGIC_BONUS.get(objective, {})
        phase_mods = PHASE_MODIFIERS[snapshot.game_phase]
        blend = self.objective_blend

        scores = {}
        for category in CATEGORIES:
            base = (1 - blend) * profile.weight(category) + blend * objective_table.get(category, 0.0)
            if base <= 0:
                scores[category] = 0.0
                continue
            score = base * phase_mods.get(category, 1.0) * self._state_modifier(category, snapshot)
            scores[category] = score + bonus.get(category, 0.0)

        return normalize_weights(scores, 100.0)

    def blocked_categories(self, agent: Agent, snapshot: StateSnapshot, now: datetime) -> Set[str]:
        """Categories that cannot run this tick (unavailable or on cooldown)."""
        blocked = set()

        if snapshot.all_building_queues_full or not snapshot.can_afford_build:
            blocked.add('build')
        if not snapshot.can_afford_research:
            blocked.add('research')
        if not snapshot.can_afford_fleet and not (snapshot.can_colonize and snapshot.colony_ship_count):
            blocked.add('fleet')
        if not snapshot.has_significant_fleet or not snapshot.has_free_fleet_slot:
            blocked.add('attack')
        if snapshot.planet_count < 2 or snapshot.resource_imbalance < self.trade_imbalance_threshold:
            blocked.add('trade')
        if snapshot.probe_count <= 0 or not snapshot.has_free_fleet_slot:
            blocked.add('espionage')
        if not snapshot.can_afford_fleet:
            blocked.add('defense')
        if agent.alliance_id is None:
            blocked.add('diplomacy')

        for category in ActionCategory:
            if agent.is_on_cooldown(category, now):
                blocked.add(category.value)

        return blocked

    def _state_modifier(self, category: str, snapshot: StateSnapshot) -> float:
        if category == 'build' and snapshot.storage_pressure_high:
            return 1.5
        if category == 'fleet' and snapshot.fleet_points > self.large_fleet_points:
            return 0.7
        if category == 'attack':
            if snapshot.total_resources.total < self.low_resources_for_attack:
                return 0.5
            if snapshot.has_significant_fleet:
                return 1.3
        if category == 'research' and snapshot.research_points < snapshot.building_points * self.research_lag_ratio:
            return 1.4
        return 1.0

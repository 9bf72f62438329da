"""
State Analyzer - per-tick posture assessment

Aggregates everything an agent owns into one StateSnapshot:
- Score estimate (building + research + fleet + defense points)
- Game phase from point thresholds
- Resource totals, estimated production, imbalance and storage pressure
- Threat, colonization, affordability and queue flags

The snapshot is computed at most once per tick and cached by agent id;
a new tick id invalidates the cached entry. Recomputing mid-tick would
mix pre- and post-command state.
"""

import logging
import threading
from typing import Dict, List, Optional

from .catalog import DEFAULT_CATALOG, Catalog, RESOURCE_TYPES, estimate_production
from .models import Agent, GamePhase, PlanetView, QueueStatus, Resources, StateSnapshot
from .world import GameWorld

logger = logging.getLogger(__name__)


# Cheapest things we probe when deciding whether a category is affordable
_AFFORDABILITY_BUILDINGS = ('metal_mine', 'crystal_mine', 'solar_plant')
_AFFORDABILITY_RESEARCH = ('energy_technology', 'espionage_technology', 'computer_technology')
_AFFORDABILITY_UNITS = ('light_fighter', 'small_cargo', 'rocket_launcher')


def classify_phase(total_points: float,
                   early_max: float = 100_000,
                   mid_max: float = 1_000_000) -> GamePhase:
    """early below early_max, mid below mid_max, else late."""
    if total_points < early_max:
        return GamePhase.EARLY
    if total_points < mid_max:
        return GamePhase.MID
    return GamePhase.LATE


def resource_imbalance(resources: Resources) -> float:
    """Max relative deviation of metal/crystal/deuterium from their mean."""
    values = [getattr(resources, r) for r in RESOURCE_TYPES]
    mean = sum(values) / len(values)
    if mean <= 0:
        return 0.0
    return max(abs(v - mean) for v in values) / mean


class StateAnalyzer:
    """
    Builds and caches StateSnapshots.

    Only queue lookups are allowed to fail per planet (logged, planet treated
    as having no free queue). Any other read failure propagates: a tick
    cannot decide on a partial picture.
    """

    DEFAULT_EARLY_PHASE_MAX_POINTS = 100_000
    DEFAULT_MID_PHASE_MAX_POINTS = 1_000_000
    DEFAULT_SIGNIFICANT_FLEET = {
        GamePhase.EARLY: 500,
        GamePhase.MID: 15_000,
        GamePhase.LATE: 50_000,
    }
    DEFAULT_STORAGE_PRESSURE_RATIO = 0.9
    DEFAULT_RESERVE_RATIO = 0.3
    DEFAULT_MIN_RESOURCES = 500

    def __init__(self, world: GameWorld, catalog: Optional[Catalog] = None,
                 config: Optional[Dict] = None):
        self.world = world
        self.catalog = catalog or DEFAULT_CATALOG
        config = config or {}

        self.early_max = config.get('early_phase_max_points', self.DEFAULT_EARLY_PHASE_MAX_POINTS)
        self.mid_max = config.get('mid_phase_max_points', self.DEFAULT_MID_PHASE_MAX_POINTS)
        self.significant_fleet = {
            GamePhase.EARLY: config.get('significant_fleet_early', self.DEFAULT_SIGNIFICANT_FLEET[GamePhase.EARLY]),
            GamePhase.MID: config.get('significant_fleet_mid', self.DEFAULT_SIGNIFICANT_FLEET[GamePhase.MID]),
            GamePhase.LATE: config.get('significant_fleet_late', self.DEFAULT_SIGNIFICANT_FLEET[GamePhase.LATE]),
        }
        self.storage_pressure_ratio = config.get('max_storage_before_spending',
                                                 self.DEFAULT_STORAGE_PRESSURE_RATIO)
        self.reserve_ratio = config.get('save_for_upgrade_percent', self.DEFAULT_RESERVE_RATIO)
        self.min_resources = config.get('min_resources_for_actions', self.DEFAULT_MIN_RESOURCES)

        self._cache: Dict[int, StateSnapshot] = {}
        self._lock = threading.Lock()

    # =========================================================================
    # Public API
    # =========================================================================

    def analyze(self, agent: Agent, tick_id: str,
                economy_overrides: Optional[Dict[str, float]] = None) -> StateSnapshot:
        """
        Snapshot for this agent and tick. Repeated calls within the same tick
        return the cached object.
        """
        with self._lock:
            cached = self._cache.get(agent.agent_id)
        if cached is not None and cached.tick_id == tick_id:
            return cached

        snapshot = self._compute(agent, tick_id, economy_overrides or {})

        with self._lock:
            self._cache[agent.agent_id] = snapshot
        return snapshot

    def invalidate(self, agent_id: int):
        with self._lock:
            self._cache.pop(agent_id, None)

    # =========================================================================
    # Snapshot computation
    # =========================================================================

    def _compute(self, agent: Agent, tick_id: str,
                 economy_overrides: Dict[str, float]) -> StateSnapshot:
        player_id = agent.player_id
        planets = self.world.get_planets(player_id)
        research = self.world.get_research_levels(player_id)
        research_queue = self.world.get_research_queue(player_id)
        slots_used, slots_max = self.world.get_fleet_slots(player_id)
        hostile = self.world.get_hostile_missions(player_id)

        queue_status = {p.planet_id: self._queue_status(p) for p in planets}

        building_points = sum(level ** 2 for p in planets for level in p.buildings.values())
        research_points = sum(level ** 2 for level in research.values())
        fleet_points = sum(self.catalog.unit_points.get(name, 0) * count
                           for p in planets for name, count in p.ships.items())
        defense_points = sum(self.catalog.unit_points.get(name, 0) * count
                             for p in planets for name, count in p.defenses.items())
        total_points = building_points + research_points + fleet_points + defense_points
        phase = classify_phase(total_points, self.early_max, self.mid_max)

        total_resources = Resources()
        for p in planets:
            total_resources = total_resources + p.resources
        total_production = self._estimate_production(planets)

        storage_usage_max = max((p.storage_usage for p in planets), default=0.0)
        pressure_ratio = agent.economy.get('max_storage_before_spending', self.storage_pressure_ratio)
        storage_pressure = storage_usage_max >= pressure_ratio

        max_planets = self.world.get_max_planets(player_id)
        colonize_cap = agent.behavior.get('max_planets_to_colonize')
        if colonize_cap is not None:
            max_planets = min(max_planets, int(colonize_cap))

        reserve = economy_overrides.get('save_for_upgrade_percent',
                                        agent.economy.get('save_for_upgrade_percent', self.reserve_ratio))
        min_resources = economy_overrides.get('min_resources_for_actions',
                                              agent.economy.get('min_resources_for_actions', self.min_resources))
        if storage_pressure:
            reserve = 0.0   # spend before the surplus is wasted
        spendable = total_resources.scale(1.0 - reserve)

        all_building_full = all(s.building_full for s in queue_status.values()) if planets else True
        all_research_full = all(s.research_full for s in queue_status.values()) if planets else True
        if research_queue:   # one research at a time per player
            all_research_full = True

        snapshot = StateSnapshot(
            agent_id=agent.agent_id,
            tick_id=tick_id,
            game_phase=phase,
            total_points=total_points,
            building_points=building_points,
            research_points=research_points,
            fleet_points=fleet_points,
            defense_points=defense_points,
            total_resources=total_resources,
            total_production=total_production,
            planet_count=len(planets),
            max_planets=max_planets,
            under_threat=any(m.mission != 'espionage' for m in hostile),
            can_colonize=len(planets) < max_planets,
            storage_pressure_high=storage_pressure,
            storage_usage_max=storage_usage_max,
            resource_imbalance=resource_imbalance(total_resources),
            has_significant_fleet=fleet_points >= self.significant_fleet[phase],
            can_afford_build=self._any_affordable(planets, queue_status, _AFFORDABILITY_BUILDINGS,
                                                  reserve, min_resources, queue='building'),
            can_afford_research=(not all_research_full and
                                 self._any_affordable(planets, queue_status, _AFFORDABILITY_RESEARCH,
                                                      reserve, min_resources, queue='research')),
            can_afford_fleet=self._any_affordable(planets, queue_status, _AFFORDABILITY_UNITS,
                                                  reserve, min_resources, queue=None),
            all_building_queues_full=all_building_full,
            all_research_queues_full=all_research_full,
            fleet_slots_used=slots_used,
            fleet_slots_max=slots_max,
            probe_count=sum(p.ships.get('espionage_probe', 0) for p in planets),
            colony_ship_count=sum(p.ships.get('colony_ship', 0) for p in planets),
            planets=planets,
            research_levels=dict(research),
            research_queue=dict(research_queue),
            queue_status=queue_status,
            spendable=spendable,
            hostile_missions=list(hostile),
            reserve_ratio=reserve,
            min_resources=min_resources,
        )

        logger.debug(f"Agent {agent.agent_id} snapshot: phase={phase.value}, "
                     f"points={total_points:.0f}, resources={total_resources.total:.0f}, "
                     f"threat={snapshot.under_threat}, colonize={snapshot.can_colonize}")
        return snapshot

    def _queue_status(self, planet: PlanetView) -> QueueStatus:
        try:
            return self.world.get_queue_status(planet.planet_id)
        except Exception as e:
            logger.warning(f"Queue lookup failed for planet {planet.planet_id}: {e}")
            return QueueStatus(building_full=True, research_full=True)

    def _estimate_production(self, planets: List[PlanetView]) -> Resources:
        metal = crystal = deuterium = 0.0
        for p in planets:
            metal += estimate_production('metal_mine', p.level('metal_mine'))
            crystal += estimate_production('crystal_mine', p.level('crystal_mine'))
            deuterium += estimate_production('deuterium_synthesizer', p.level('deuterium_synthesizer'))
        return Resources(metal, crystal, deuterium)

    def _any_affordable(self, planets: List[PlanetView], queue_status: Dict[int, QueueStatus],
                        names, reserve: float, min_resources: float,
                        queue: Optional[str]) -> bool:
        """True if some planet can pay for one of `names` out of its spendable budget."""
        for planet in planets:
            status = queue_status[planet.planet_id]
            if queue == 'building' and status.building_full:
                continue
            if queue == 'research' and status.research_full:
                continue
            if planet.resources.total < min_resources:
                continue
            budget = planet.resources.scale(1.0 - reserve)
            for name in names:
                if budget.covers(self.world.get_price(planet.planet_id, name)):
                    return True
        return False

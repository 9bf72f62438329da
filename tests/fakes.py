"""
In-memory GameWorld double shared by the test modules.

Prices are flat per unit/level so tests can reason about affordability
without the real cost formulas. Every command is recorded for assertions.
"""

import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

sys.path.insert(0, str(Path(__file__).parent.parent))

from brain.models import (
    Agent,
    CombatReport,
    Coordinates,
    EspionageReport,
    FleetMission,
    GamePhase,
    HostileMission,
    Personality,
    PlanetTarget,
    PlanetView,
    QueueStatus,
    Resources,
    StateSnapshot,
)
from brain.world import GameWorld

NOW = datetime(2024, 6, 1, 12, 0, 0)

DEFAULT_PRICE = Resources(100, 50, 0)


class FakeWorld(GameWorld):
    """Dict-backed GameWorld. Mutate the public attributes to set up a scenario."""

    def __init__(self):
        self.planets: Dict[int, List[PlanetView]] = {}
        self.research: Dict[int, Dict[str, int]] = {}
        self.research_queue: Dict[int, Dict[str, int]] = {}
        self.queue_status: Dict[int, QueueStatus] = {}
        self.fleet_slots: Dict[int, Tuple[int, int]] = {}
        self.max_planets: Dict[int, int] = {}
        self.hostile: Dict[int, List[HostileMission]] = {}
        self.espionage_reports: Dict[int, List[EspionageReport]] = {}
        self.combat_reports: Dict[int, List[CombatReport]] = {}
        self.prices: Dict[str, Resources] = {}
        self.unmet_requirements = set()
        self.nearby: Dict[int, List[PlanetTarget]] = {}
        self.colonization_slot: Optional[Coordinates] = None
        self.alliances: Dict[int, List[int]] = {}
        self.fail_planets_for = set()
        self.fail_queue_for = set()
        self.reject_commands = False

        self.buildings_queued: List[Tuple[int, str]] = []
        self.research_queued: List[Tuple[int, str]] = []
        self.units_queued: List[Tuple[int, str, int]] = []
        self.missions: List[FleetMission] = []

    # Reads

    def get_planets(self, player_id: int) -> List[PlanetView]:
        if player_id in self.fail_planets_for:
            raise RuntimeError("planet read failed")
        return list(self.planets.get(player_id, []))

    def get_research_levels(self, player_id: int) -> Dict[str, int]:
        return dict(self.research.get(player_id, {}))

    def get_research_queue(self, player_id: int) -> Dict[str, int]:
        return dict(self.research_queue.get(player_id, {}))

    def get_queue_status(self, planet_id: int) -> QueueStatus:
        if planet_id in self.fail_queue_for:
            raise RuntimeError("queue read failed")
        return self.queue_status.get(planet_id, QueueStatus())

    def get_fleet_slots(self, player_id: int) -> Tuple[int, int]:
        return self.fleet_slots.get(player_id, (0, 2))

    def get_max_planets(self, player_id: int) -> int:
        return self.max_planets.get(player_id, 1)

    def get_hostile_missions(self, player_id: int) -> List[HostileMission]:
        return list(self.hostile.get(player_id, []))

    def get_espionage_reports(self, player_id: int,
                              since: Optional[datetime] = None) -> List[EspionageReport]:
        return [r for r in self.espionage_reports.get(player_id, [])
                if since is None or r.observed_at > since]

    def get_combat_reports(self, player_id: int,
                           since: Optional[datetime] = None) -> List[CombatReport]:
        return [r for r in self.combat_reports.get(player_id, [])
                if since is None or r.occurred_at is None or r.occurred_at > since]

    def get_price(self, planet_id: int, name: str, amount: int = 1) -> Resources:
        return self.prices.get(name, DEFAULT_PRICE).scale(amount)

    def requirements_met(self, planet_id: int, name: str) -> bool:
        return name not in self.unmet_requirements

    def find_nearby_planets(self, player_id: int, origin: Coordinates,
                            system_range: int = 10) -> List[PlanetTarget]:
        return list(self.nearby.get(player_id, []))

    def find_colonization_slot(self, player_id: int,
                               origin: Coordinates) -> Optional[Coordinates]:
        return self.colonization_slot

    def get_alliance_members(self, alliance_id: int) -> List[int]:
        return list(self.alliances.get(alliance_id, []))

    # Commands

    def enqueue_building(self, planet_id: int, name: str) -> bool:
        if self.reject_commands:
            return False
        self.buildings_queued.append((planet_id, name))
        return True

    def enqueue_research(self, planet_id: int, name: str) -> bool:
        if self.reject_commands:
            return False
        self.research_queued.append((planet_id, name))
        return True

    def enqueue_units(self, planet_id: int, name: str, amount: int) -> bool:
        if self.reject_commands:
            return False
        self.units_queued.append((planet_id, name, amount))
        return True

    def dispatch_fleet(self, player_id: int, mission: FleetMission) -> bool:
        if self.reject_commands:
            return False
        self.missions.append(mission)
        return True


def make_planet(planet_id: int = 1, resources: Resources = Resources(50_000, 30_000, 10_000),
                storage: Resources = Resources(100_000, 100_000, 100_000),
                coordinates: Coordinates = Coordinates(1, 100, 5),
                **kwargs) -> PlanetView:
    return PlanetView(
        planet_id=planet_id,
        name=f"Planet {planet_id}",
        coordinates=coordinates,
        resources=resources,
        storage=storage,
        **kwargs,
    )


def make_agent(agent_id: int = 1, player_id: int = 100,
               personality: Personality = Personality.BALANCED, **kwargs) -> Agent:
    return Agent(agent_id=agent_id, player_id=player_id, name=f"bot{agent_id}",
                 personality=personality, **kwargs)


class Clock:
    """Settable clock for components that take a `clock` callable"""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta):
        self.now = self.now + delta


def make_snapshot(**overrides) -> StateSnapshot:
    """A quiet early-game snapshot where every category is available."""
    planets = overrides.pop('planets', [make_planet(1)])
    values = dict(
        agent_id=1,
        tick_id='t1',
        game_phase=GamePhase.EARLY,
        total_points=5_000,
        building_points=4_000,
        research_points=1_000,
        fleet_points=0,
        defense_points=0,
        total_resources=sum((p.resources for p in planets), Resources()),
        total_production=Resources(1_000, 500, 200),
        planet_count=len(planets),
        max_planets=len(planets),
        under_threat=False,
        can_colonize=False,
        storage_pressure_high=False,
        storage_usage_max=0.5,
        resource_imbalance=0.0,
        has_significant_fleet=False,
        can_afford_build=True,
        can_afford_research=True,
        can_afford_fleet=True,
        all_building_queues_full=False,
        all_research_queues_full=False,
        fleet_slots_used=0,
        fleet_slots_max=2,
        probe_count=0,
        colony_ship_count=0,
        planets=planets,
        queue_status={p.planet_id: QueueStatus() for p in planets},
    )
    values.update(overrides)
    return StateSnapshot(**values)

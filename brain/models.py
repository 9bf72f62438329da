"""
Data models shared by the brain components.

These are the value types exchanged with the Game World (planets, reports,
missions), the per-tick StateSnapshot, and the structured outcomes returned
to the scheduler.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Tuple


# =============================================================================
# ENUMS
# =============================================================================

class Personality(Enum):
    """Behavioral archetype of an agent"""
    AGGRESSIVE = "aggressive"
    DEFENSIVE = "defensive"
    ECONOMIC = "economic"
    BALANCED = "balanced"
    RAIDER = "raider"
    TURTLE = "turtle"
    SCIENTIST = "scientist"
    DIPLOMAT = "diplomat"
    EXPLORER = "explorer"


class TargetPreference(Enum):
    """How an agent prefers to pick raid targets"""
    RANDOM = "random"
    WEAK = "weak"
    RICH = "rich"
    SIMILAR = "similar"


class GamePhase(Enum):
    """Coarse progression bucket derived from total points"""
    EARLY = "early"
    MID = "mid"
    LATE = "late"


class ActionCategory(Enum):
    """What an agent does with a tick"""
    BUILD = "build"
    RESEARCH = "research"
    FLEET = "fleet"
    ATTACK = "attack"
    TRADE = "trade"
    ESPIONAGE = "espionage"
    DEFENSE = "defense"
    DIPLOMACY = "diplomacy"


# =============================================================================
# GAME WORLD VALUE TYPES
# =============================================================================

@dataclass(frozen=True)
class Resources:
    """Metal / crystal / deuterium triple"""
    metal: float = 0
    crystal: float = 0
    deuterium: float = 0

    @property
    def total(self) -> float:
        return self.metal + self.crystal + self.deuterium

    def __add__(self, other: 'Resources') -> 'Resources':
        return Resources(self.metal + other.metal,
                         self.crystal + other.crystal,
                         self.deuterium + other.deuterium)

    def __sub__(self, other: 'Resources') -> 'Resources':
        return Resources(self.metal - other.metal,
                         self.crystal - other.crystal,
                         self.deuterium - other.deuterium)

    def scale(self, factor: float) -> 'Resources':
        return Resources(self.metal * factor, self.crystal * factor, self.deuterium * factor)

    def covers(self, cost: 'Resources') -> bool:
        """True if every component is at least the cost component."""
        return (self.metal >= cost.metal and
                self.crystal >= cost.crystal and
                self.deuterium >= cost.deuterium)

    def as_dict(self) -> Dict[str, float]:
        return {'metal': self.metal, 'crystal': self.crystal, 'deuterium': self.deuterium}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, float]]) -> 'Resources':
        data = data or {}
        return cls(data.get('metal', 0), data.get('crystal', 0), data.get('deuterium', 0))


class Coordinates(NamedTuple):
    galaxy: int
    system: int
    position: int

    def __str__(self) -> str:
        return f"{self.galaxy}:{self.system}:{self.position}"


@dataclass
class PlanetView:
    """Read-only view of one owned planet, as reported by the Game World"""
    planet_id: int
    name: str
    coordinates: Coordinates
    resources: Resources = field(default_factory=Resources)
    storage: Resources = field(default_factory=Resources)   # capacity per resource
    buildings: Dict[str, int] = field(default_factory=dict)
    ships: Dict[str, int] = field(default_factory=dict)
    defenses: Dict[str, int] = field(default_factory=dict)
    building_queue: Dict[str, int] = field(default_factory=dict)  # name -> level being built
    unit_queue: Dict[str, int] = field(default_factory=dict)      # name -> amount in production

    def level(self, building: str) -> int:
        return self.buildings.get(building, 0)

    def unit_count(self, name: str) -> int:
        return self.ships.get(name, 0) + self.defenses.get(name, 0)

    @property
    def storage_usage(self) -> float:
        """Highest stored/capacity ratio across the three resources."""
        usage = 0.0
        for res in ('metal', 'crystal', 'deuterium'):
            capacity = getattr(self.storage, res)
            if capacity > 0:
                usage = max(usage, getattr(self.resources, res) / capacity)
        return usage


@dataclass
class QueueStatus:
    """Queue occupancy for one planet"""
    building_full: bool = False
    research_full: bool = False


@dataclass
class EspionageReport:
    """Espionage report about another player's planet"""
    report_id: int
    target_player_id: int
    target_planet_id: int
    coordinates: Coordinates
    observed_at: datetime
    resources: Resources = field(default_factory=Resources)
    ships: Dict[str, int] = field(default_factory=dict)
    defenses: Dict[str, int] = field(default_factory=dict)
    research: Dict[str, int] = field(default_factory=dict)
    target_online: Optional[bool] = None


@dataclass
class HostileMission:
    """Incoming hostile fleet aimed at one of the agent's planets"""
    mission_id: int
    attacker_player_id: int
    target_planet_id: int
    arrival_at: Optional[datetime] = None
    mission: str = 'attack'         # espionage probes are not a threat


@dataclass
class CombatReport:
    """Result of a battle the agent started"""
    report_id: int
    defender_player_id: int
    attacker_won: bool
    occurred_at: Optional[datetime] = None


@dataclass
class FleetMission:
    """Command to dispatch a fleet"""
    source_planet_id: int
    destination: Coordinates
    mission: str                    # 'attack', 'transport', 'espionage', 'colonize'
    units: Dict[str, int]
    cargo: Resources = field(default_factory=Resources)
    speed_percent: int = 100
    target_planet_id: Optional[int] = None


@dataclass
class PlanetTarget:
    """Another player's planet near the agent (espionage / colonization scan)"""
    planet_id: int
    player_id: int
    coordinates: Coordinates
    player_online: Optional[bool] = None


# =============================================================================
# AGENT
# =============================================================================

@dataclass
class Agent:
    """
    An autonomous bot. Created externally; the brain mutates cooldowns and
    the last-action timestamp every tick.
    """
    agent_id: int
    player_id: int
    name: str
    personality: Personality = Personality.BALANCED
    target_preference: TargetPreference = TargetPreference.RANDOM
    economy: Dict[str, float] = field(default_factory=dict)
    action_weights: Dict[str, float] = field(default_factory=dict)  # empty = personality default
    behavior: Dict[str, Any] = field(default_factory=dict)
    active_hours: Optional[Tuple[int, int]] = None   # (start_hour, end_hour), None = always
    alliance_id: Optional[int] = None
    cooldowns: Dict[str, datetime] = field(default_factory=dict)
    last_action_at: Optional[datetime] = None
    is_active: bool = True

    def is_on_cooldown(self, action: ActionCategory, now: datetime) -> bool:
        until = self.cooldowns.get(action.value)
        return until is not None and until > now

    def set_cooldown(self, action: ActionCategory, until: datetime):
        self.cooldowns[action.value] = until

    def has_trait(self, trait: str) -> bool:
        return trait in self.behavior.get('traits', [])

    def is_scheduled_active(self, now: datetime) -> bool:
        """Within the activity schedule (wraps past midnight when start > end)."""
        if not self.is_active:
            return False
        if self.active_hours is None:
            return True
        start, end = self.active_hours
        hour = now.hour
        if start <= end:
            return start <= hour < end
        return hour >= start or hour < end


# =============================================================================
# SNAPSHOT AND OUTCOMES
# =============================================================================

@dataclass
class StateSnapshot:
    """Per-tick assessment of an agent's posture. Never persisted."""
    agent_id: int
    tick_id: str
    game_phase: GamePhase
    total_points: float
    building_points: float
    research_points: float
    fleet_points: float
    defense_points: float
    total_resources: Resources
    total_production: Resources
    planet_count: int
    max_planets: int
    under_threat: bool
    can_colonize: bool
    storage_pressure_high: bool
    storage_usage_max: float
    resource_imbalance: float
    has_significant_fleet: bool
    can_afford_build: bool
    can_afford_research: bool
    can_afford_fleet: bool
    all_building_queues_full: bool
    all_research_queues_full: bool
    fleet_slots_used: int
    fleet_slots_max: int
    probe_count: int
    colony_ship_count: int
    planets: List[PlanetView] = field(default_factory=list)
    research_levels: Dict[str, int] = field(default_factory=dict)
    research_queue: Dict[str, int] = field(default_factory=dict)
    queue_status: Dict[int, QueueStatus] = field(default_factory=dict)
    spendable: Resources = field(default_factory=Resources)
    hostile_missions: List[HostileMission] = field(default_factory=list)
    reserve_ratio: float = 0.0
    min_resources: float = 0.0

    @property
    def has_free_fleet_slot(self) -> bool:
        return self.fleet_slots_used < self.fleet_slots_max

    def budget(self, planet: PlanetView) -> Resources:
        """What the planet may spend after holding back the reserve."""
        return planet.resources.scale(1.0 - self.reserve_ratio)

    def richest_planet(self) -> Optional[PlanetView]:
        if not self.planets:
            return None
        return max(self.planets, key=lambda p: p.resources.total)

    def planet(self, planet_id: int) -> Optional[PlanetView]:
        for p in self.planets:
            if p.planet_id == planet_id:
                return p
        return None


@dataclass
class ActionOutcome:
    """Result of executing one action category"""
    category: ActionCategory
    success: bool
    reason: str = ""
    details: Dict[str, Any] = field(default_factory=dict)
    spent: Resources = field(default_factory=Resources)

    @classmethod
    def failed(cls, category: ActionCategory, reason: str, **details) -> 'ActionOutcome':
        return cls(category=category, success=False, reason=reason, details=details)


@dataclass
class TickOutcome:
    """Structured per-agent result handed back to the scheduler"""
    agent_id: int
    tick_id: str
    status: str                     # 'success', 'failed', 'skipped', 'error'
    category: Optional[str] = None
    objective: Optional[str] = None
    reason: str = ""
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status in ('success', 'skipped')

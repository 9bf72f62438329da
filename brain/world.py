"""
Game World Interface - the contract between the brain and the game server.

The brain only reads state and issues commands through these interfaces;
the authoritative game (production, queues, combat resolution, cost
formulas) lives behind them. Swapping the implementation lets the same
brain drive a live server, a replay, or an in-memory test double.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from .models import (
    Agent,
    CombatReport,
    Coordinates,
    EspionageReport,
    FleetMission,
    HostileMission,
    PlanetTarget,
    PlanetView,
    QueueStatus,
    Resources,
)


class GameWorld(ABC):
    """Read/command surface of the game server for one player at a time"""

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @abstractmethod
    def get_planets(self, player_id: int) -> List[PlanetView]:
        """All planets owned by the player."""

    @abstractmethod
    def get_research_levels(self, player_id: int) -> Dict[str, int]:
        """Current research levels (missing = 0)."""

    @abstractmethod
    def get_research_queue(self, player_id: int) -> Dict[str, int]:
        """Research in progress: name -> level being researched."""

    @abstractmethod
    def get_queue_status(self, planet_id: int) -> QueueStatus:
        """Queue occupancy for one planet. May raise if the planet is gone."""

    @abstractmethod
    def get_fleet_slots(self, player_id: int) -> Tuple[int, int]:
        """(used, max) fleet mission slots."""

    @abstractmethod
    def get_max_planets(self, player_id: int) -> int:
        """How many planets the player may own at current research."""

    @abstractmethod
    def get_hostile_missions(self, player_id: int) -> List[HostileMission]:
        """Hostile fleets currently inbound."""

    @abstractmethod
    def get_espionage_reports(self, player_id: int,
                              since: Optional[datetime] = None) -> List[EspionageReport]:
        """Espionage reports received after `since`."""

    @abstractmethod
    def get_combat_reports(self, player_id: int,
                           since: Optional[datetime] = None) -> List[CombatReport]:
        """Reports of battles the player started, after `since`."""

    @abstractmethod
    def get_price(self, planet_id: int, name: str, amount: int = 1) -> Resources:
        """Cost of the next level (building/research) or of `amount` units."""

    @abstractmethod
    def requirements_met(self, planet_id: int, name: str) -> bool:
        """Whether prerequisites for `name` are met on the planet."""

    @abstractmethod
    def find_nearby_planets(self, player_id: int, origin: Coordinates,
                            system_range: int = 10) -> List[PlanetTarget]:
        """Other players' planets within `system_range` systems of origin."""

    @abstractmethod
    def find_colonization_slot(self, player_id: int,
                               origin: Coordinates) -> Optional[Coordinates]:
        """A free position reachable from origin, or None."""

    @abstractmethod
    def get_alliance_members(self, alliance_id: int) -> List[int]:
        """Player ids in the alliance."""

    # -------------------------------------------------------------------------
    # Commands (return False when the server rejects the order)
    # -------------------------------------------------------------------------

    @abstractmethod
    def enqueue_building(self, planet_id: int, name: str) -> bool:
        """Queue the next level of a building."""

    @abstractmethod
    def enqueue_research(self, planet_id: int, name: str) -> bool:
        """Queue the next level of a research."""

    @abstractmethod
    def enqueue_units(self, planet_id: int, name: str, amount: int) -> bool:
        """Queue ships or defenses."""

    @abstractmethod
    def dispatch_fleet(self, player_id: int, mission: FleetMission) -> bool:
        """Send a fleet mission."""


class AgentDirectory(ABC):
    """Where agents are loaded from and saved back to (owned by admin tooling)"""

    @abstractmethod
    def get(self, agent_id: int) -> Optional[Agent]:
        """Load an agent, or None if it does not exist."""

    @abstractmethod
    def save(self, agent: Agent):
        """Persist cooldowns and last-action time."""


class InMemoryAgentDirectory(AgentDirectory):
    """Agent directory backed by a dict (embedding and tests)"""

    def __init__(self, agents: Optional[List[Agent]] = None):
        self._agents: Dict[int, Agent] = {a.agent_id: a for a in (agents or [])}
        self._lock = threading.Lock()

    def get(self, agent_id: int) -> Optional[Agent]:
        with self._lock:
            return self._agents.get(agent_id)

    def save(self, agent: Agent):
        with self._lock:
            self._agents[agent.agent_id] = agent

    def agent_ids(self) -> List[int]:
        with self._lock:
            return sorted(self._agents)

"""
Objective Selection

An Objective is the agent's strategic focus for a tick. It carries an
action-category weight table that the decision engine blends with the
personality weights.

Selection is a deterministic priority function:
1. Under attack -> defensive fortification
2. Can colonize (outside late game) -> territorial expansion
3. Vengeful and repeatedly spied on -> raid (or arm up first)
4. Raiding personality with a known target and a real fleet -> raid
5. Storage nearly full -> economic growth
6. Otherwise the personality x game phase matrix
"""

import logging
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping

from .models import Agent, GamePhase, Personality, StateSnapshot
from .personality import TraitProfile

logger = logging.getLogger(__name__)


class Objective(Enum):
    """Named strategic focus"""
    ECONOMIC_GROWTH = "economic_growth"
    FLEET_ACCUMULATION = "fleet_accumulation"
    DEFENSIVE_FORTIFICATION = "defensive_fortification"
    TERRITORIAL_EXPANSION = "territorial_expansion"
    RAIDING_AND_PROFIT = "raiding_and_profit"
    TECH_RUSH = "tech_rush"
    ALLIANCE_WARFARE = "alliance_warfare"
    INTELLIGENCE_GATHERING = "intelligence_gathering"


def _w(**kwargs) -> Mapping[str, float]:
    return MappingProxyType({k: float(v) for k, v in kwargs.items()})


# Objective -> action category weights
OBJECTIVE_WEIGHTS: Mapping[Objective, Mapping[str, float]] = MappingProxyType({
    Objective.ECONOMIC_GROWTH: _w(build=55, research=25, fleet=10, attack=0, trade=10),
    Objective.FLEET_ACCUMULATION: _w(build=15, research=15, fleet=50, attack=20),
    Objective.DEFENSIVE_FORTIFICATION: _w(build=35, defense=25, research=20, fleet=10, attack=5, trade=5),
    Objective.TERRITORIAL_EXPANSION: _w(build=35, research=30, fleet=30, attack=0, trade=5),
    Objective.RAIDING_AND_PROFIT: _w(build=10, research=10, fleet=35, attack=35, espionage=10),
    Objective.TECH_RUSH: _w(build=25, research=60, fleet=5, trade=5, espionage=5),
    Objective.ALLIANCE_WARFARE: _w(build=15, research=10, fleet=35, attack=20, diplomacy=15, espionage=5),
    Objective.INTELLIGENCE_GATHERING: _w(build=20, research=15, fleet=20, attack=10, espionage=35),
})

_P = Personality
_O = Objective

# Phase -> personality -> objective (personalities not listed default per phase)
PHASE_MATRIX = MappingProxyType({
    GamePhase.EARLY: MappingProxyType({
        _P.SCIENTIST: _O.TECH_RUSH,
    }),
    GamePhase.MID: MappingProxyType({
        _P.AGGRESSIVE: _O.FLEET_ACCUMULATION,
        _P.DEFENSIVE: _O.DEFENSIVE_FORTIFICATION,
        _P.TURTLE: _O.DEFENSIVE_FORTIFICATION,
        _P.ECONOMIC: _O.ECONOMIC_GROWTH,
        _P.BALANCED: _O.TERRITORIAL_EXPANSION,
        _P.RAIDER: _O.RAIDING_AND_PROFIT,
        _P.SCIENTIST: _O.TECH_RUSH,
        _P.DIPLOMAT: _O.ALLIANCE_WARFARE,
        _P.EXPLORER: _O.TERRITORIAL_EXPANSION,
    }),
    GamePhase.LATE: MappingProxyType({
        _P.AGGRESSIVE: _O.RAIDING_AND_PROFIT,
        _P.RAIDER: _O.RAIDING_AND_PROFIT,
        _P.DEFENSIVE: _O.DEFENSIVE_FORTIFICATION,
        _P.TURTLE: _O.DEFENSIVE_FORTIFICATION,
        _P.ECONOMIC: _O.ECONOMIC_GROWTH,
        _P.BALANCED: _O.FLEET_ACCUMULATION,
        _P.SCIENTIST: _O.TECH_RUSH,
        _P.DIPLOMAT: _O.ALLIANCE_WARFARE,
        _P.EXPLORER: _O.INTELLIGENCE_GATHERING,
    }),
})

PHASE_DEFAULT = MappingProxyType({
    GamePhase.EARLY: Objective.ECONOMIC_GROWTH,
    GamePhase.MID: Objective.ECONOMIC_GROWTH,
    GamePhase.LATE: Objective.FLEET_ACCUMULATION,
})


def objective_weights(objective: Objective) -> Dict[str, float]:
    """Mutable copy of an objective's weight table."""
    return dict(OBJECTIVE_WEIGHTS[objective])


class ObjectiveSelector:
    """Deterministic mapping of (profile, snapshot) to an Objective"""

    DEFAULT_VENGEANCE_THRESHOLD = 3

    def __init__(self, config: Dict = None):
        config = config or {}
        self.vengeance_threshold = config.get('vengeance_threshold', self.DEFAULT_VENGEANCE_THRESHOLD)

    def select(self, agent: Agent, profile: TraitProfile, snapshot: StateSnapshot,
               has_attack_target: bool = False) -> Objective:
        """
        Pick the objective for this tick.

        Args:
            agent: The agent (traits, espionage counter)
            profile: Resolved trait profile for the tick
            snapshot: This tick's StateSnapshot
            has_attack_target: Whether fresh intel names a profitable target

        Returns:
            The selected Objective
        """
        phase = snapshot.game_phase

        if snapshot.under_threat:
            return Objective.DEFENSIVE_FORTIFICATION

        if snapshot.can_colonize and phase != GamePhase.LATE:
            return Objective.TERRITORIAL_EXPANSION

        spied_on = int(agent.behavior.get('espionage_counter', 0))
        if agent.has_trait('vengeful') and spied_on > self.vengeance_threshold:
            if snapshot.has_significant_fleet:
                return Objective.RAIDING_AND_PROFIT
            return Objective.FLEET_ACCUMULATION

        if (profile.raids and has_attack_target and snapshot.has_significant_fleet
                and phase != GamePhase.EARLY):
            return Objective.RAIDING_AND_PROFIT

        if snapshot.storage_pressure_high:
            return Objective.ECONOMIC_GROWTH

        return PHASE_MATRIX[phase].get(profile.personality, PHASE_DEFAULT[phase])

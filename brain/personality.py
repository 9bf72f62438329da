"""
Personality Trait Profiles

Each personality collapses to one TraitProfile: base action-category
weights, risk appetite (minimum predicted win chance), how much of the
fleet goes on a raid, research capstone, fleet-goal template and planet
role pattern. The profile is resolved once per tick (agent configuration
and adaptive overrides merged in) and handed to every component.
"""

import logging
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple, Union

from .models import Agent, Personality

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TraitProfile:
    """
    Numeric knobs for one personality.

    Components read these instead of branching on the personality:
    - action_weights: base weight per action category (build, fleet, ...)
    - min_win_chance: CombatPredictor gate for attacks
    - attack_fleet_fraction: share of combat ships sent on a raid
    - capstone_tech: long-term research target of the tech-chain plan
    - fleet_goal: key into the catalog's fleet goal templates
    - planet_roles: role pattern for colonies after the home planet
    """
    personality: Personality
    action_weights: Mapping[str, float]
    min_win_chance: float = 0.55
    attack_fleet_fraction: float = 0.5
    capstone_tech: str = 'hyperspace_technology'
    fleet_goal: str = 'standard'
    preferred_research: Tuple[str, ...] = ()
    preferred_units: Tuple[str, ...] = ()
    preferred_defenses: Tuple[str, ...] = ('rocket_launcher', 'light_laser', 'heavy_laser')
    planet_roles: Tuple[str, ...] = ('economy', 'fleet', 'research')
    raids: bool = False         # looks for raid opportunities outside of raiding objectives
    reason: str = ""

    def weight(self, category: str) -> float:
        return float(self.action_weights.get(category, 0.0))


def _weights(**kwargs) -> Mapping[str, float]:
    return MappingProxyType({k: float(v) for k, v in kwargs.items()})


PROFILES: Mapping[Personality, TraitProfile] = MappingProxyType({
    Personality.AGGRESSIVE: TraitProfile(
        personality=Personality.AGGRESSIVE,
        action_weights=_weights(build=20, fleet=35, attack=35, research=10),
        min_win_chance=0.40,
        attack_fleet_fraction=0.7,
        capstone_tech='hyperspace_technology',
        fleet_goal='strike',
        preferred_research=('weapon_technology', 'combustion_drive', 'impulse_drive',
                            'armor_technology', 'shielding_technology'),
        preferred_units=('light_fighter', 'cruiser', 'battle_ship', 'bomber'),
        planet_roles=('fleet', 'economy', 'fleet'),
        raids=True,
        reason="AGGRESSIVE: fleet-heavy, takes risky fights",
    ),
    Personality.DEFENSIVE: TraitProfile(
        personality=Personality.DEFENSIVE,
        action_weights=_weights(build=40, fleet=25, attack=10, research=25),
        min_win_chance=0.70,
        attack_fleet_fraction=0.3,
        capstone_tech='plasma_technology',
        fleet_goal='fortress',
        preferred_research=('shielding_technology', 'armor_technology', 'laser_technology',
                            'energy_technology'),
        preferred_units=('heavy_fighter', 'cruiser'),
        preferred_defenses=('rocket_launcher', 'light_laser', 'heavy_laser', 'gauss_cannon'),
        planet_roles=('defense', 'economy', 'defense'),
        reason="DEFENSIVE: fortifies, only takes safe fights",
    ),
    Personality.ECONOMIC: TraitProfile(
        personality=Personality.ECONOMIC,
        action_weights=_weights(build=50, fleet=15, attack=5, research=30),
        min_win_chance=0.65,
        attack_fleet_fraction=0.4,
        capstone_tech='plasma_technology',
        fleet_goal='logistics',
        preferred_research=('energy_technology', 'plasma_technology', 'computer_technology',
                            'astrophysics'),
        preferred_units=('small_cargo', 'large_cargo', 'cruiser'),
        planet_roles=('economy', 'research', 'economy'),
        reason="ECONOMIC: mines first, fights rarely",
    ),
    Personality.BALANCED: TraitProfile(
        personality=Personality.BALANCED,
        action_weights=_weights(build=30, fleet=25, attack=20, research=25),
        min_win_chance=0.55,
        attack_fleet_fraction=0.5,
        capstone_tech='hyperspace_technology',
        fleet_goal='standard',
        preferred_research=('energy_technology', 'computer_technology', 'weapon_technology',
                            'shielding_technology', 'impulse_drive'),
        preferred_units=('light_fighter', 'cruiser', 'large_cargo'),
        reason="BALANCED: even spread",
    ),
    Personality.RAIDER: TraitProfile(
        personality=Personality.RAIDER,
        action_weights=_weights(build=20, fleet=30, attack=35, research=5, espionage=10),
        min_win_chance=0.40,
        attack_fleet_fraction=0.6,
        capstone_tech='hyperspace_drive',
        fleet_goal='strike',
        preferred_research=('espionage_technology', 'combustion_drive', 'impulse_drive',
                            'weapon_technology'),
        preferred_units=('small_cargo', 'light_fighter', 'cruiser', 'espionage_probe'),
        planet_roles=('fleet', 'economy', 'fleet'),
        raids=True,
        reason="RAIDER: scouts and loots inactive targets",
    ),
    Personality.TURTLE: TraitProfile(
        personality=Personality.TURTLE,
        action_weights=_weights(build=45, fleet=5, attack=5, research=20, defense=25),
        min_win_chance=0.70,
        attack_fleet_fraction=0.2,
        capstone_tech='plasma_technology',
        fleet_goal='fortress',
        preferred_research=('shielding_technology', 'armor_technology', 'laser_technology',
                            'ion_technology'),
        preferred_units=('heavy_fighter',),
        preferred_defenses=('rocket_launcher', 'light_laser', 'heavy_laser', 'ion_cannon',
                            'gauss_cannon', 'plasma_turret'),
        planet_roles=('defense', 'economy', 'defense'),
        reason="TURTLE: walls of defenses",
    ),
    Personality.SCIENTIST: TraitProfile(
        personality=Personality.SCIENTIST,
        action_weights=_weights(build=30, fleet=10, attack=5, research=50, espionage=5),
        min_win_chance=0.65,
        attack_fleet_fraction=0.3,
        capstone_tech='intergalactic_research_network',
        fleet_goal='logistics',
        preferred_research=('energy_technology', 'computer_technology', 'laser_technology',
                            'ion_technology', 'plasma_technology', 'astrophysics'),
        preferred_units=('espionage_probe', 'cruiser'),
        planet_roles=('research', 'economy', 'research'),
        reason="SCIENTIST: rushes the tech tree",
    ),
    Personality.DIPLOMAT: TraitProfile(
        personality=Personality.DIPLOMAT,
        action_weights=_weights(build=35, fleet=20, attack=5, research=20, trade=10, diplomacy=10),
        min_win_chance=0.60,
        attack_fleet_fraction=0.4,
        capstone_tech='hyperspace_technology',
        fleet_goal='logistics',
        preferred_research=('computer_technology', 'energy_technology', 'combustion_drive'),
        preferred_units=('large_cargo', 'light_fighter', 'recycler'),
        reason="DIPLOMAT: alliance-first, trades surplus",
    ),
    Personality.EXPLORER: TraitProfile(
        personality=Personality.EXPLORER,
        action_weights=_weights(build=30, fleet=30, attack=10, research=20, espionage=10),
        min_win_chance=0.55,
        attack_fleet_fraction=0.5,
        capstone_tech='astrophysics',
        fleet_goal='standard',
        preferred_research=('astrophysics', 'combustion_drive', 'impulse_drive',
                            'espionage_technology'),
        preferred_units=('large_cargo', 'light_fighter', 'colony_ship', 'espionage_probe'),
        reason="EXPLORER: colonizes and scouts widely",
    ),
})


def parse_personality(value: Union[str, Personality, None]) -> Personality:
    """Coerce a stored personality value, falling back to balanced."""
    if isinstance(value, Personality):
        return value
    try:
        return Personality(value)
    except ValueError:
        logger.warning(f"Unknown personality '{value}', using balanced")
        return Personality.BALANCED


def get_profile(personality: Personality) -> TraitProfile:
    return PROFILES.get(personality, PROFILES[Personality.BALANCED])


def resolve_profile(agent: Agent,
                    weight_overrides: Optional[Dict[str, float]] = None) -> TraitProfile:
    """
    Resolve the effective trait profile for one tick.

    Weight precedence: adaptive overrides > agent-configured weights >
    personality defaults.
    """
    profile = get_profile(parse_personality(agent.personality))

    weights = dict(profile.action_weights)
    if agent.action_weights:
        weights = {k: float(v) for k, v in agent.action_weights.items()}
    if weight_overrides:
        weights.update({k: float(v) for k, v in weight_overrides.items()})

    return replace(profile, action_weights=MappingProxyType(weights))

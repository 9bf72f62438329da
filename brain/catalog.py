"""
Content Catalog - static game tables

Read-only lookup data the brain reasons over:
- Unit combat stats and the rapid-fire matrix (combat prediction)
- Point values (score estimation, intel defense scoring)
- Research prerequisite DAG, build orders and fleet goals (planning)
- Planet role templates (specialization)

Every table is wrapped in MappingProxyType / tuples so nothing can mutate
it at runtime. A custom Catalog can be injected for tests or other rule sets.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, NamedTuple, Tuple


def _freeze(table: Dict) -> Mapping:
    """Recursively wrap nested dicts in MappingProxyType."""
    return MappingProxyType({
        key: _freeze(value) if isinstance(value, dict) else value
        for key, value in table.items()
    })


class UnitStats(NamedTuple):
    """Combat stats for one unit type. value is resource cost / 1000."""
    attack: float
    hull: float
    shield: float
    value: float

    @property
    def hit_points(self) -> float:
        return self.hull + self.shield


class PlanStep(NamedTuple):
    """One step of a strategic plan: reach `target` level/amount of `name`."""
    kind: str       # 'building', 'research' or 'unit'
    name: str
    target: int


# =============================================================================
# OBJECT NAMES
# =============================================================================

RESOURCE_TYPES = ('metal', 'crystal', 'deuterium')

MINES = ('metal_mine', 'crystal_mine', 'deuterium_synthesizer')

BUILDINGS = (
    'metal_mine', 'crystal_mine', 'deuterium_synthesizer', 'solar_plant',
    'fusion_plant', 'metal_store', 'crystal_store', 'deuterium_store',
    'robot_factory', 'nano_factory', 'shipyard', 'research_lab',
    'alliance_depot', 'missile_silo', 'terraformer', 'space_dock',
)

RESEARCH = (
    'energy_technology', 'laser_technology', 'ion_technology',
    'hyperspace_technology', 'plasma_technology', 'combustion_drive',
    'impulse_drive', 'hyperspace_drive', 'espionage_technology',
    'computer_technology', 'astrophysics', 'intergalactic_research_network',
    'graviton_technology', 'weapon_technology', 'shielding_technology',
    'armor_technology',
)

SHIPS = (
    'light_fighter', 'heavy_fighter', 'cruiser', 'battle_ship',
    'battlecruiser', 'bomber', 'destroyer', 'deathstar', 'small_cargo',
    'large_cargo', 'colony_ship', 'recycler', 'espionage_probe',
    'solar_satellite',
)

DEFENSES = (
    'rocket_launcher', 'light_laser', 'heavy_laser', 'gauss_cannon',
    'ion_cannon', 'plasma_turret', 'small_shield_dome', 'large_shield_dome',
)

# Ships that never join an attack fleet
NON_COMBAT_SHIPS = frozenset({
    'espionage_probe', 'solar_satellite', 'colony_ship', 'recycler',
    'small_cargo', 'large_cargo',
})

CARGO_CAPACITY = MappingProxyType({
    'small_cargo': 5000,
    'large_cargo': 25000,
    'recycler': 20000,
    'light_fighter': 50,
    'heavy_fighter': 100,
    'cruiser': 800,
    'battle_ship': 1500,
})


# =============================================================================
# COMBAT TABLES
# =============================================================================

UNIT_STATS = _freeze({
    # Ships
    'light_fighter':     UnitStats(50, 400, 10, 4),
    'heavy_fighter':     UnitStats(150, 1000, 25, 10),
    'cruiser':           UnitStats(400, 2700, 50, 29),
    'battle_ship':       UnitStats(1000, 6000, 200, 60),
    'battlecruiser':     UnitStats(700, 7000, 400, 70),
    'bomber':            UnitStats(1000, 7500, 500, 90),
    'destroyer':         UnitStats(2000, 11000, 500, 125),
    'deathstar':         UnitStats(200000, 900000, 50000, 10000),
    'small_cargo':       UnitStats(5, 400, 10, 4),
    'large_cargo':       UnitStats(5, 1200, 25, 12),
    'colony_ship':       UnitStats(50, 3000, 100, 40),
    'recycler':          UnitStats(1, 1600, 10, 18),
    'espionage_probe':   UnitStats(0, 100, 0, 1),
    'solar_satellite':   UnitStats(1, 200, 1, 1),
    # Defenses
    'rocket_launcher':   UnitStats(80, 200, 20, 2),
    'light_laser':       UnitStats(100, 200, 25, 2),
    'heavy_laser':       UnitStats(250, 800, 100, 8),
    'gauss_cannon':      UnitStats(1100, 3500, 200, 37),
    'ion_cannon':        UnitStats(150, 800, 500, 8),
    'plasma_turret':     UnitStats(3000, 10000, 300, 130),
    'small_shield_dome': UnitStats(1, 2000, 2000, 20),
    'large_shield_dome': UnitStats(1, 10000, 10000, 100),
})

# shooter -> {target: multiplier}
RAPID_FIRE = _freeze({
    'cruiser': {'light_fighter': 6, 'rocket_launcher': 10, 'espionage_probe': 5, 'solar_satellite': 5},
    'battle_ship': {'espionage_probe': 5, 'solar_satellite': 5},
    'battlecruiser': {'small_cargo': 3, 'large_cargo': 3, 'light_fighter': 3, 'heavy_fighter': 4,
                      'cruiser': 4, 'battle_ship': 7},
    'bomber': {'rocket_launcher': 20, 'light_laser': 20, 'heavy_laser': 10, 'gauss_cannon': 5,
               'ion_cannon': 10, 'plasma_turret': 5, 'espionage_probe': 5, 'solar_satellite': 5},
    'destroyer': {'light_laser': 10, 'battlecruiser': 2, 'espionage_probe': 5, 'solar_satellite': 5},
    'deathstar': {'small_cargo': 250, 'large_cargo': 250, 'light_fighter': 200, 'heavy_fighter': 100,
                  'cruiser': 33, 'battle_ship': 30, 'colony_ship': 250, 'recycler': 250,
                  'espionage_probe': 1250, 'solar_satellite': 1250, 'bomber': 25, 'destroyer': 5,
                  'battlecruiser': 15, 'rocket_launcher': 200, 'light_laser': 200, 'heavy_laser': 100,
                  'gauss_cannon': 50, 'ion_cannon': 100, 'plasma_turret': 10},
    'light_fighter': {'espionage_probe': 5, 'solar_satellite': 5},
    'heavy_fighter': {'small_cargo': 3, 'espionage_probe': 5, 'solar_satellite': 5},
})


# =============================================================================
# POINT TABLES
# =============================================================================

# Score points per unit (fleet and defense points)
UNIT_POINTS = _freeze({
    'light_fighter': 4, 'heavy_fighter': 10, 'cruiser': 29, 'battle_ship': 60,
    'battlecruiser': 70, 'bomber': 90, 'destroyer': 125, 'deathstar': 10000,
    'small_cargo': 4, 'large_cargo': 12, 'colony_ship': 40, 'recycler': 18,
    'espionage_probe': 1, 'solar_satellite': 1,
    'rocket_launcher': 2, 'light_laser': 2, 'heavy_laser': 8, 'gauss_cannon': 37,
    'ion_cannon': 8, 'plasma_turret': 130, 'small_shield_dome': 20,
    'large_shield_dome': 100,
})

# Combat power per unit seen in an espionage report (defense score)
INTEL_POWER = _freeze({
    'light_fighter': 3, 'heavy_fighter': 6, 'cruiser': 10, 'battle_ship': 30,
    'battlecruiser': 40, 'bomber': 35, 'destroyer': 60, 'deathstar': 200,
    'small_cargo': 5, 'large_cargo': 10, 'recycler': 8, 'espionage_probe': 1,
    'rocket_launcher': 2, 'light_laser': 2, 'heavy_laser': 4, 'gauss_cannon': 10,
    'ion_cannon': 8, 'plasma_turret': 30, 'small_shield_dome': 5,
    'large_shield_dome': 20,
})


# =============================================================================
# PLANNING TABLES
# =============================================================================

# tech -> ((prerequisite, level), ...)
TECH_DEPENDENCIES = _freeze({
    'espionage_technology': (),
    'computer_technology': (),
    'energy_technology': (),
    'laser_technology': (('energy_technology', 2),),
    'ion_technology': (('laser_technology', 5), ('energy_technology', 4)),
    'plasma_technology': (('laser_technology', 10), ('ion_technology', 5), ('energy_technology', 8)),
    'hyperspace_technology': (('energy_technology', 5), ('shielding_technology', 5)),
    'combustion_drive': (('energy_technology', 1),),
    'impulse_drive': (('energy_technology', 1),),
    'hyperspace_drive': (('hyperspace_technology', 3),),
    'weapon_technology': (),
    'shielding_technology': (('energy_technology', 3),),
    'armor_technology': (),
    'astrophysics': (('espionage_technology', 4), ('impulse_drive', 3)),
    'intergalactic_research_network': (('computer_technology', 8), ('hyperspace_technology', 8)),
    'graviton_technology': (('energy_technology', 12),),
})

# Research needed before colony ships can settle new planets
COLONIZATION_TECH = ('astrophysics', 4)


def _steps(*rows) -> Tuple[PlanStep, ...]:
    return tuple(PlanStep(*row) for row in rows)


BUILD_ORDERS = MappingProxyType({
    'aggressive': _steps(
        ('building', 'metal_mine', 4), ('building', 'solar_plant', 4),
        ('building', 'crystal_mine', 3), ('building', 'metal_mine', 6),
        ('building', 'solar_plant', 6), ('building', 'crystal_mine', 5),
        ('building', 'deuterium_synthesizer', 3), ('building', 'robot_factory', 2),
        ('building', 'shipyard', 2), ('building', 'research_lab', 1),
        ('research', 'energy_technology', 1), ('research', 'combustion_drive', 2),
        ('building', 'shipyard', 4), ('research', 'weapon_technology', 3),
        ('unit', 'light_fighter', 30), ('research', 'impulse_drive', 2),
        ('unit', 'cruiser', 10),
    ),
    'economic': _steps(
        ('building', 'metal_mine', 5), ('building', 'solar_plant', 5),
        ('building', 'crystal_mine', 5), ('building', 'solar_plant', 7),
        ('building', 'metal_mine', 8), ('building', 'crystal_mine', 7),
        ('building', 'deuterium_synthesizer', 5), ('building', 'solar_plant', 10),
        ('building', 'robot_factory', 3), ('building', 'research_lab', 3),
        ('research', 'energy_technology', 3), ('building', 'metal_mine', 12),
        ('building', 'crystal_mine', 10), ('building', 'deuterium_synthesizer', 8),
        ('research', 'plasma_technology', 1),
    ),
    'defensive': _steps(
        ('building', 'metal_mine', 5), ('building', 'solar_plant', 5),
        ('building', 'crystal_mine', 4), ('building', 'metal_mine', 7),
        ('building', 'crystal_mine', 6), ('building', 'deuterium_synthesizer', 4),
        ('building', 'robot_factory', 2), ('building', 'shipyard', 2),
        ('building', 'research_lab', 2), ('research', 'energy_technology', 2),
        ('research', 'laser_technology', 3), ('research', 'shielding_technology', 2),
        ('unit', 'rocket_launcher', 50), ('unit', 'light_laser', 30),
        ('building', 'missile_silo', 2),
    ),
    'balanced': _steps(
        ('building', 'metal_mine', 5), ('building', 'solar_plant', 5),
        ('building', 'crystal_mine', 4), ('building', 'metal_mine', 7),
        ('building', 'solar_plant', 7), ('building', 'crystal_mine', 6),
        ('building', 'deuterium_synthesizer', 4), ('building', 'robot_factory', 2),
        ('building', 'shipyard', 2), ('building', 'research_lab', 2),
        ('research', 'espionage_technology', 2), ('research', 'computer_technology', 2),
        ('research', 'energy_technology', 2), ('unit', 'light_fighter', 15),
        ('unit', 'small_cargo', 10),
    ),
    'raider': _steps(
        ('building', 'metal_mine', 4), ('building', 'solar_plant', 4),
        ('building', 'crystal_mine', 3), ('building', 'metal_mine', 6),
        ('building', 'crystal_mine', 5), ('building', 'deuterium_synthesizer', 3),
        ('building', 'robot_factory', 2), ('building', 'shipyard', 3),
        ('building', 'research_lab', 1), ('research', 'espionage_technology', 4),
        ('research', 'combustion_drive', 3), ('research', 'energy_technology', 1),
        ('unit', 'small_cargo', 30), ('unit', 'light_fighter', 20),
        ('unit', 'espionage_probe', 20), ('research', 'impulse_drive', 2),
        ('unit', 'cruiser', 10),
    ),
    'turtle': _steps(
        ('building', 'metal_mine', 5), ('building', 'solar_plant', 5),
        ('building', 'crystal_mine', 5), ('building', 'metal_mine', 8),
        ('building', 'crystal_mine', 7), ('building', 'deuterium_synthesizer', 5),
        ('building', 'robot_factory', 3), ('building', 'shipyard', 2),
        ('building', 'research_lab', 3), ('research', 'energy_technology', 2),
        ('research', 'laser_technology', 6), ('research', 'shielding_technology', 3),
        ('research', 'armor_technology', 3), ('unit', 'rocket_launcher', 100),
        ('unit', 'light_laser', 50), ('unit', 'heavy_laser', 20),
        ('building', 'missile_silo', 4),
    ),
    'scientist': _steps(
        ('building', 'metal_mine', 5), ('building', 'solar_plant', 5),
        ('building', 'crystal_mine', 5), ('building', 'deuterium_synthesizer', 5),
        ('building', 'robot_factory', 4), ('building', 'research_lab', 6),
        ('research', 'energy_technology', 4), ('research', 'espionage_technology', 4),
        ('research', 'computer_technology', 4), ('research', 'laser_technology', 6),
        ('research', 'ion_technology', 3), ('research', 'plasma_technology', 1),
        ('building', 'shipyard', 3), ('research', 'astrophysics', 3),
        ('unit', 'espionage_probe', 50),
    ),
    'diplomat': _steps(
        ('building', 'metal_mine', 5), ('building', 'solar_plant', 5),
        ('building', 'crystal_mine', 4), ('building', 'metal_mine', 7),
        ('building', 'crystal_mine', 6), ('building', 'deuterium_synthesizer', 4),
        ('building', 'robot_factory', 2), ('building', 'shipyard', 2),
        ('building', 'research_lab', 2), ('building', 'alliance_depot', 2),
        ('research', 'energy_technology', 2), ('research', 'computer_technology', 3),
        ('unit', 'large_cargo', 15), ('unit', 'light_fighter', 10),
        ('unit', 'recycler', 5),
    ),
    'explorer': _steps(
        ('building', 'metal_mine', 5), ('building', 'solar_plant', 5),
        ('building', 'crystal_mine', 4), ('building', 'metal_mine', 7),
        ('building', 'crystal_mine', 6), ('building', 'deuterium_synthesizer', 5),
        ('building', 'robot_factory', 2), ('building', 'shipyard', 3),
        ('building', 'research_lab', 3), ('research', 'energy_technology', 2),
        ('research', 'combustion_drive', 3), ('research', 'astrophysics', 4),
        ('research', 'espionage_technology', 3), ('unit', 'large_cargo', 20),
        ('unit', 'light_fighter', 20), ('unit', 'espionage_probe', 15),
    ),
})

FLEET_GOALS = MappingProxyType({
    'strike': _steps(
        ('unit', 'light_fighter', 100), ('unit', 'cruiser', 30),
        ('unit', 'battle_ship', 20), ('unit', 'bomber', 10),
        ('unit', 'battlecruiser', 15), ('unit', 'destroyer', 5),
    ),
    'fortress': _steps(
        ('unit', 'rocket_launcher', 200), ('unit', 'light_laser', 100),
        ('unit', 'heavy_laser', 50), ('unit', 'gauss_cannon', 20),
        ('unit', 'plasma_turret', 10), ('unit', 'small_shield_dome', 1),
        ('unit', 'large_shield_dome', 1),
    ),
    'logistics': _steps(
        ('unit', 'small_cargo', 50), ('unit', 'large_cargo', 30),
        ('unit', 'recycler', 20), ('unit', 'cruiser', 15),
        ('unit', 'espionage_probe', 20),
    ),
    'standard': _steps(
        ('unit', 'light_fighter', 50), ('unit', 'cruiser', 20),
        ('unit', 'battle_ship', 10), ('unit', 'large_cargo', 20),
        ('unit', 'recycler', 10),
    ),
})

# role -> building target levels
PLANET_ROLE_TEMPLATES = _freeze({
    'economy': {
        'metal_mine': 20, 'crystal_mine': 18, 'deuterium_synthesizer': 15,
        'solar_plant': 20, 'metal_store': 8, 'crystal_store': 8,
        'deuterium_store': 8, 'robot_factory': 8, 'nano_factory': 5,
    },
    'fleet': {
        'shipyard': 12, 'robot_factory': 10, 'nano_factory': 8,
        'metal_mine': 15, 'crystal_mine': 13, 'deuterium_synthesizer': 12,
        'solar_plant': 15,
    },
    'defense': {
        'metal_mine': 15, 'crystal_mine': 13, 'deuterium_synthesizer': 10,
        'solar_plant': 15, 'missile_silo': 6, 'shipyard': 6,
    },
    'research': {
        'research_lab': 12, 'metal_mine': 15, 'crystal_mine': 13,
        'deuterium_synthesizer': 12, 'solar_plant': 15, 'robot_factory': 8,
    },
    'colony': {
        'metal_mine': 8, 'crystal_mine': 6, 'deuterium_synthesizer': 4,
        'solar_plant': 8, 'robot_factory': 2,
    },
})


# =============================================================================
# FORMULAS
# =============================================================================

def estimate_production(mine: str, level: int) -> float:
    """Rough hourly production for a mine level (used for ROI and projections)."""
    if level <= 0:
        return 0.0
    growth = level * (1.1 ** level)
    if mine == 'metal_mine':
        return 30 * growth
    if mine == 'crystal_mine':
        return 20 * growth
    if mine == 'deuterium_synthesizer':
        return 10 * growth * 0.7
    return 0.0


@dataclass(frozen=True)
class Catalog:
    """Bundle of the static tables, injected into components."""
    unit_stats: Mapping[str, UnitStats] = field(default_factory=lambda: UNIT_STATS)
    rapid_fire: Mapping[str, Mapping[str, float]] = field(default_factory=lambda: RAPID_FIRE)
    unit_points: Mapping[str, int] = field(default_factory=lambda: UNIT_POINTS)
    intel_power: Mapping[str, int] = field(default_factory=lambda: INTEL_POWER)
    tech_dependencies: Mapping[str, Tuple[Tuple[str, int], ...]] = field(default_factory=lambda: TECH_DEPENDENCIES)
    build_orders: Mapping[str, Tuple[PlanStep, ...]] = field(default_factory=lambda: BUILD_ORDERS)
    fleet_goals: Mapping[str, Tuple[PlanStep, ...]] = field(default_factory=lambda: FLEET_GOALS)
    role_templates: Mapping[str, Mapping[str, int]] = field(default_factory=lambda: PLANET_ROLE_TEMPLATES)

    def is_defense(self, name: str) -> bool:
        return name in DEFENSES

    def unit_value(self, name: str) -> float:
        stats = self.unit_stats.get(name)
        return stats.value if stats else 0.0


DEFAULT_CATALOG = Catalog()

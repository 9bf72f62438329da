"""
Combat outcome prediction for attack gating.

Runs a handful of cheap randomized battle trials to estimate whether an
attack would win and what it would cost. The authoritative battle engine
lives in the game server; this is only a gate, so it trades accuracy for
speed (well under a millisecond for typical fleets).

Per trial, up to 6 rounds of attacker-fires-then-defender-fires:
- Side damage = sum(attack x count x variance x rapid-fire bonus), variance
  uniform in [0.85, 1.15] drawn per side per round
- Rapid-fire bonus per shooter group = count-weighted average multiplier
  over the current target composition
- Damage is split across target groups by their share of remaining
  hull+shield; a group loses floor(share / (0.7 x unit HP)) units
"""

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from .catalog import DEFAULT_CATALOG, Catalog
from .models import Personality
from .personality import TraitProfile, get_profile, parse_personality

logger = logging.getLogger(__name__)


@dataclass
class UnitGroup:
    """All units of one type on one side, with tech bonuses applied."""
    name: str
    count: int
    attack: float
    hit_points: float
    value: float


@dataclass
class TrialOutcome:
    """Result of a single simulated battle."""
    attacker_won: bool
    rounds: int
    loss_value: float               # resource value of attacker losses
    attacker_survivors: int
    defender_survivors: int


@dataclass
class CombatPrediction:
    """Aggregate over N trials."""
    win_chance: float               # 0.0 - 1.0
    estimated_loss_value: float     # mean attacker loss value
    trials: List[TrialOutcome] = field(default_factory=list)

    def __str__(self) -> str:
        return f"win={self.win_chance:.0%}, loss={self.estimated_loss_value:.0f}"


class CombatPredictor:
    """
    Stochastic battle estimator.

    Config keys (all optional): trials, max_rounds, variance_min,
    variance_max, destruction_threshold, loss_scale, tech_bonus_per_level.
    """

    DEFAULT_TRIALS = 3
    DEFAULT_MAX_ROUNDS = 6
    DEFAULT_VARIANCE_MIN = 0.85
    DEFAULT_VARIANCE_MAX = 1.15
    DEFAULT_DESTRUCTION_THRESHOLD = 0.7   # a unit dies at 70% damage
    DEFAULT_LOSS_SCALE = 1000             # catalog values are resources / 1000
    DEFAULT_TECH_BONUS_PER_LEVEL = 0.1

    def __init__(self, catalog: Optional[Catalog] = None, config: Optional[Dict] = None,
                 rng: Optional[random.Random] = None):
        self.catalog = catalog or DEFAULT_CATALOG
        config = config or {}
        self.rng = rng or random.Random()

        self.trials = config.get('trials', self.DEFAULT_TRIALS)
        self.max_rounds = config.get('max_rounds', self.DEFAULT_MAX_ROUNDS)
        self.variance_min = config.get('variance_min', self.DEFAULT_VARIANCE_MIN)
        self.variance_max = config.get('variance_max', self.DEFAULT_VARIANCE_MAX)
        self.destruction_threshold = config.get('destruction_threshold', self.DEFAULT_DESTRUCTION_THRESHOLD)
        self.loss_scale = config.get('loss_scale', self.DEFAULT_LOSS_SCALE)
        self.tech_bonus = config.get('tech_bonus_per_level', self.DEFAULT_TECH_BONUS_PER_LEVEL)

    # =========================================================================
    # Public API
    # =========================================================================

    def predict(self, attacker_units: Dict[str, int], attacker_tech: Dict[str, int],
                defender_units: Dict[str, int], defender_tech: Dict[str, int],
                defender_defenses: Optional[Dict[str, int]] = None) -> CombatPrediction:
        """
        Estimate the outcome of attacking the defender.

        Args:
            attacker_units: unit name -> count
            attacker_tech: {'weapons', 'shielding', 'armor'} levels
            defender_units: defender ships (name -> count)
            defender_tech: defender tech levels
            defender_defenses: defense structures, merged with the ships

        Returns:
            CombatPrediction with win chance and mean attacker loss value
        """
        merged = dict(defender_units)
        for name, count in (defender_defenses or {}).items():
            merged[name] = merged.get(name, 0) + count

        attackers = self._build_groups(attacker_units, attacker_tech)
        defenders = self._build_groups(merged, defender_tech)
        initial_value = self._side_value(attackers)

        outcomes = [self._run_trial(attackers, defenders, initial_value)
                    for _ in range(self.trials)]

        wins = sum(1 for o in outcomes if o.attacker_won)
        mean_loss = sum(o.loss_value for o in outcomes) / len(outcomes) if outcomes else 0.0
        prediction = CombatPrediction(
            win_chance=wins / len(outcomes) if outcomes else 0.0,
            estimated_loss_value=mean_loss,
            trials=outcomes,
        )
        logger.debug(f"Combat prediction: {prediction}")
        return prediction

    @staticmethod
    def is_acceptable(prediction: CombatPrediction, profile: TraitProfile) -> bool:
        """Does the predicted win chance clear the personality's risk floor?"""
        return prediction.win_chance >= profile.min_win_chance

    # =========================================================================
    # Simulation
    # =========================================================================

    def _run_trial(self, attackers: List[UnitGroup], defenders: List[UnitGroup],
                   initial_value: float) -> TrialOutcome:
        att = [self._copy(g) for g in attackers]
        dfn = [self._copy(g) for g in defenders]

        rounds = 0
        for _ in range(self.max_rounds):
            if not att or not dfn:
                break
            rounds += 1
            dfn = self._fire(att, dfn, self._variance())
            att = self._fire(dfn, att, self._variance())

        remaining_value = self._side_value(att)
        loss = max(0.0, (initial_value - remaining_value) * self.loss_scale)

        return TrialOutcome(
            attacker_won=bool(att) and not dfn,
            rounds=rounds,
            loss_value=loss,
            attacker_survivors=sum(g.count for g in att),
            defender_survivors=sum(g.count for g in dfn),
        )

    def _fire(self, shooters: List[UnitGroup], targets: List[UnitGroup],
              variance: float) -> List[UnitGroup]:
        """One volley. Returns the surviving target groups."""
        if not shooters or not targets:
            return targets

        target_count = sum(t.count for t in targets)
        damage = 0.0
        for shooter in shooters:
            table = self.catalog.rapid_fire.get(shooter.name, {})
            bonus = sum(table.get(t.name, 1) * t.count for t in targets) / target_count
            damage += shooter.attack * shooter.count * variance * bonus

        total_hp = sum(t.hit_points * t.count for t in targets)
        survivors = []
        for target in targets:
            if total_hp <= 0 or target.hit_points <= 0:
                continue
            share = damage * (target.hit_points * target.count) / total_hp
            destroyed = math.floor(share / (self.destruction_threshold * target.hit_points))
            remaining = target.count - destroyed
            if remaining > 0:
                target.count = remaining
                survivors.append(target)
        return survivors

    def _variance(self) -> float:
        return self.rng.uniform(self.variance_min, self.variance_max)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _build_groups(self, units: Dict[str, int], tech: Dict[str, int]) -> List[UnitGroup]:
        weapons = 1 + self.tech_bonus * tech.get('weapons', 0)
        shielding = 1 + self.tech_bonus * tech.get('shielding', 0)
        armor = 1 + self.tech_bonus * tech.get('armor', 0)

        groups = []
        for name, count in units.items():
            if count <= 0:
                continue
            stats = self.catalog.unit_stats.get(name)
            if stats is None:
                logger.debug(f"Unknown unit '{name}' ignored in combat prediction")
                continue
            groups.append(UnitGroup(
                name=name,
                count=int(count),
                attack=stats.attack * weapons,
                hit_points=stats.hull * armor + stats.shield * shielding,
                value=stats.value,
            ))
        return groups

    @staticmethod
    def _copy(group: UnitGroup) -> UnitGroup:
        return UnitGroup(group.name, group.count, group.attack, group.hit_points, group.value)

    @staticmethod
    def _side_value(groups: List[UnitGroup]) -> float:
        return sum(g.value * g.count for g in groups)


def tech_levels(research: Dict[str, int]) -> Dict[str, int]:
    """Pick the combat-relevant levels out of a research map."""
    return {
        'weapons': research.get('weapon_technology', 0),
        'shielding': research.get('shielding_technology', 0),
        'armor': research.get('armor_technology', 0),
    }


def min_win_chance(personality: Union[str, Personality, None]) -> float:
    """Risk floor for a personality (balanced when unknown)."""
    return get_profile(parse_personality(personality)).min_win_chance

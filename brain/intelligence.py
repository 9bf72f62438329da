"""
Intelligence Store - what an agent knows about other players

Three kinds of knowledge, all durable and keyed by (agent, other):
- Target intel: latest espionage picture and a profitability score
- Activity patterns: hour/day histograms of when a player is online
- Threat relations: bounded hostility score with ally/NAP flags

Writes are best-effort. A failed write is logged and swallowed so the
tick's primary decision still goes ahead. Reads propagate; the action
executor turns them into a failed outcome.

Profitability:
    lootable      = loot_fraction x stored resources        (0.5)
    defense_cost  = defense_cost_factor x defense score     (50)
    profitability = max(0, lootable - defense_cost)
"""

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import numpy as np

from persistence import IntelRepository, TargetIntel, ThreatRelation

from .catalog import DEFAULT_CATALOG, Catalog
from .models import EspionageReport, PlanetTarget, Resources
from .ttl_store import utcnow

logger = logging.getLogger(__name__)


class InteractionKind(Enum):
    """Kinds of interaction that move a threat score"""
    ATTACKED_US = "attacked_us"
    OUR_ATTACK = "our_attack"


class Relation(Enum):
    """Diplomatic label derived from a threat relation"""
    ALLY = "ally"
    NAP = "nap"
    ENEMY = "enemy"
    HOSTILE = "hostile"
    NEUTRAL = "neutral"
    FRIENDLY = "friendly"


def profitability(total_resources: float, defense_score: float,
                  loot_fraction: float = 0.5, defense_cost_factor: float = 50) -> float:
    """Net raid value. Never negative."""
    lootable = loot_fraction * max(0.0, total_resources)
    defense_cost = defense_cost_factor * max(0.0, defense_score)
    return max(0.0, lootable - defense_cost)


class IntelligenceStore:
    """
    Per-agent intel, activity and threat knowledge.

    Config keys (section 'intelligence'): loot_fraction, defense_cost_factor,
    freshness_hours, min_observations, online_factor, dangerous_score,
    safe_score, attacked_us_delta, our_win_delta, our_loss_delta,
    rescout_hours, profitable_target_limit.
    """

    DEFAULT_LOOT_FRACTION = 0.5
    DEFAULT_DEFENSE_COST_FACTOR = 50
    DEFAULT_FRESHNESS_HOURS = 24
    DEFAULT_MIN_OBSERVATIONS = 5
    DEFAULT_ONLINE_FACTOR = 1.2
    DEFAULT_DANGEROUS_SCORE = 50
    DEFAULT_SAFE_SCORE = 20
    DEFAULT_ATTACKED_US_DELTA = 15
    DEFAULT_OUR_WIN_DELTA = -5
    DEFAULT_OUR_LOSS_DELTA = 10
    DEFAULT_RESCOUT_HOURS = 12
    DEFAULT_PROFITABLE_TARGET_LIMIT = 10

    ALLY_SCORE = -50
    FRIENDLY_SCORE = -20

    def __init__(self, repository: Optional[IntelRepository] = None,
                 catalog: Optional[Catalog] = None, config: Optional[Dict] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.repo = repository or IntelRepository()
        self.catalog = catalog or DEFAULT_CATALOG
        self.clock = clock or utcnow
        config = config or {}

        self.loot_fraction = config.get('loot_fraction', self.DEFAULT_LOOT_FRACTION)
        self.defense_cost_factor = config.get('defense_cost_factor', self.DEFAULT_DEFENSE_COST_FACTOR)
        self.freshness = timedelta(hours=config.get('freshness_hours', self.DEFAULT_FRESHNESS_HOURS))
        self.min_observations = config.get('min_observations', self.DEFAULT_MIN_OBSERVATIONS)
        self.online_factor = config.get('online_factor', self.DEFAULT_ONLINE_FACTOR)
        self.dangerous_score = config.get('dangerous_score', self.DEFAULT_DANGEROUS_SCORE)
        self.safe_score = config.get('safe_score', self.DEFAULT_SAFE_SCORE)
        self.threat_deltas = {
            'attacked_us': config.get('attacked_us_delta', self.DEFAULT_ATTACKED_US_DELTA),
            'our_win': config.get('our_win_delta', self.DEFAULT_OUR_WIN_DELTA),
            'our_loss': config.get('our_loss_delta', self.DEFAULT_OUR_LOSS_DELTA),
        }
        self.rescout_after = timedelta(hours=config.get('rescout_hours', self.DEFAULT_RESCOUT_HOURS))
        self.profitable_target_limit = config.get('profitable_target_limit',
                                                  self.DEFAULT_PROFITABLE_TARGET_LIMIT)

    # =========================================================================
    # Target intel
    # =========================================================================

    def defense_score(self, report: EspionageReport) -> int:
        """Combined combat power of the ships and defenses seen in a report"""
        return self._power(report.ships) + self._power(report.defenses)

    def profitability(self, total_resources: float, defense_score: float) -> float:
        return profitability(total_resources, defense_score,
                             self.loot_fraction, self.defense_cost_factor)

    def record_intel(self, agent_id: int, report: EspionageReport) -> Optional[TargetIntel]:
        """
        Upsert the target planet's snapshot from an espionage report.

        Returns:
            The stored TargetIntel, or None if the write failed
        """
        fleet_power = self._power(report.ships)
        defense_power = self._power(report.defenses)
        score = self.profitability(report.resources.total, fleet_power + defense_power)

        try:
            intel = self.repo.upsert_target_intel(
                agent_id, report.target_planet_id,
                target_player_id=report.target_player_id,
                galaxy=report.coordinates.galaxy,
                system=report.coordinates.system,
                position=report.coordinates.position,
                metal=report.resources.metal,
                crystal=report.resources.crystal,
                deuterium=report.resources.deuterium,
                ships=dict(report.ships),
                defenses=dict(report.defenses),
                research=dict(report.research),
                fleet_power=fleet_power,
                defense_power=defense_power,
                profitability=score,
                report_id=report.report_id,
                last_espionage_at=report.observed_at,
            )
        except Exception as e:
            logger.error(f"Agent {agent_id}: failed to record intel for planet "
                         f"{report.target_planet_id}: {e}")
            return None

        logger.debug(f"Agent {agent_id}: intel on planet {report.target_planet_id} "
                     f"[{report.coordinates}] profit={score:.0f}")

        if report.target_online is not None:
            self.record_activity(agent_id, report.target_player_id,
                                 report.target_online, at=report.observed_at)
        return intel

    def get_target_intel(self, agent_id: int, target_planet_id: int) -> Optional[TargetIntel]:
        """Fresh intel for a planet. Stale intel counts as unknown (None)."""
        intel = self.repo.get_target_intel(agent_id, target_planet_id)
        if intel is None or not self._is_fresh(intel):
            return None
        return intel

    def profitable_targets(self, agent_id: int, limit: Optional[int] = None,
                           avoid: Iterable[int] = ()) -> List[TargetIntel]:
        """Fresh, positively scored targets, most profitable first"""
        return self.repo.list_target_intel(
            agent_id,
            fresh_since=self.clock() - self.freshness,
            exclude_players=sorted(set(avoid)),
            min_profitability=0,
            limit=limit or self.profitable_target_limit,
        )

    def best_known_target(self, agent_id: int, avoid: Iterable[int] = ()) -> Optional[TargetIntel]:
        targets = self.profitable_targets(agent_id, limit=1, avoid=avoid)
        return targets[0] if targets else None

    def targets_needing_espionage(self, agent_id: int,
                                  candidates: Sequence[PlanetTarget]) -> List[PlanetTarget]:
        """Candidates never scouted, or last scouted before the rescout window"""
        seen = self.repo.last_scouted(agent_id, [c.planet_id for c in candidates])
        cutoff = self.clock() - self.rescout_after
        return [c for c in candidates
                if c.planet_id not in seen or seen[c.planet_id] is None or seen[c.planet_id] < cutoff]

    @staticmethod
    def lootable_resources(intel: TargetIntel) -> Resources:
        return Resources(intel.metal or 0, intel.crystal or 0, intel.deuterium or 0)

    # =========================================================================
    # Activity patterns
    # =========================================================================

    def record_activity(self, agent_id: int, target_player_id: int, observed_online: bool,
                        at: Optional[datetime] = None):
        """Count one observation; only an online sighting fills the hour/day buckets."""
        at = at or self.clock()
        try:
            self.repo.record_activity(agent_id, target_player_id, observed_online,
                                      hour=at.hour, weekday=at.weekday(), at=at)
        except Exception as e:
            logger.error(f"Agent {agent_id}: failed to record activity of player "
                         f"{target_player_id}: {e}")

    def is_likely_online_now(self, agent_id: int, target_player_id: int,
                             now: Optional[datetime] = None) -> bool:
        """
        Current hour bucket above online_factor x the mean bucket.

        Only the hourly histogram decides; the weekday buckets are kept as
        history and do not shift the verdict. Below min_observations there
        is not enough data, and we assume the player is online.
        """
        pattern = self.repo.get_activity(agent_id, target_player_id)
        if pattern is None or (pattern.observation_count or 0) < self.min_observations:
            return True

        now = now or self.clock()
        hourly = np.asarray(pattern.hourly or [0] * 24, dtype=float)
        return bool(hourly[now.hour] > hourly.mean() * self.online_factor)

    def is_good_time_to_attack(self, agent_id: int, target_player_id: int,
                               now: Optional[datetime] = None) -> bool:
        """
        Target probably offline. Missing data does not block an attack;
        the prediction and profit gates still apply.
        """
        pattern = self.repo.get_activity(agent_id, target_player_id)
        if pattern is None or (pattern.observation_count or 0) < self.min_observations:
            return True
        return not self.is_likely_online_now(agent_id, target_player_id, now)

    def best_attack_hours(self, agent_id: int, target_player_id: int, count: int = 6) -> List[int]:
        """The `count` quietest hours of the day (all hours if unknown)."""
        pattern = self.repo.get_activity(agent_id, target_player_id)
        if pattern is None:
            return list(range(24))
        hourly = np.asarray(pattern.hourly or [0] * 24, dtype=float)
        return [int(h) for h in np.argsort(hourly, kind='stable')[:count]]

    # =========================================================================
    # Threat relations
    # =========================================================================

    def record_threat_interaction(self, agent_id: int, other_player_id: int,
                                  kind: InteractionKind, won: bool = False) -> Optional[ThreatRelation]:
        """
        attacked us -> +15, our attack won -> -5, our attack lost -> +10.
        Scores stay within [-100, 100] and under the ally/NAP caps.
        """
        if kind == InteractionKind.ATTACKED_US:
            delta = self.threat_deltas['attacked_us']
            counters = {'times_attacked_us': 1}
        elif won:
            delta = self.threat_deltas['our_win']
            counters = {'times_we_attacked': 1, 'times_we_won': 1}
        else:
            delta = self.threat_deltas['our_loss']
            counters = {'times_we_attacked': 1, 'times_we_lost': 1}

        try:
            relation = self.repo.apply_threat_interaction(agent_id, other_player_id, delta,
                                                          counters, self.clock())
        except Exception as e:
            logger.error(f"Agent {agent_id}: failed to record {kind.value} interaction "
                         f"with player {other_player_id}: {e}")
            return None

        logger.info(f"Agent {agent_id}: threat of player {other_player_id} now {relation.score} "
                     f"({kind.value}{', won' if won else ''})")
        return relation

    def decay_threats(self, agent_id: int, step: int = 1) -> int:
        """Move every score one step toward 0. Returns rows changed."""
        try:
            return self.repo.decay_threats(agent_id, step)
        except Exception as e:
            logger.error(f"Agent {agent_id}: threat decay failed: {e}")
            return 0

    def threat_score(self, agent_id: int, other_player_id: int) -> int:
        relation = self.repo.get_threat(agent_id, other_player_id)
        return relation.score if relation else 0

    def is_dangerous(self, agent_id: int, other_player_id: int) -> bool:
        relation = self.repo.get_threat(agent_id, other_player_id)
        return relation is not None and relation.score >= self.dangerous_score

    def is_safe_target(self, agent_id: int, other_player_id: int) -> bool:
        relation = self.repo.get_threat(agent_id, other_player_id)
        if relation is None:
            return True
        return relation.score <= self.safe_score and not relation.is_ally and not relation.is_nap

    def diplomatic_relation(self, agent_id: int, other_player_id: int) -> Relation:
        relation = self.repo.get_threat(agent_id, other_player_id)
        if relation is None:
            return Relation.NEUTRAL
        if relation.is_ally:
            return Relation.ALLY
        if relation.is_nap:
            return Relation.NAP
        if relation.score >= self.dangerous_score:
            return Relation.ENEMY
        if relation.score >= self.safe_score:
            return Relation.HOSTILE
        if relation.score <= self.FRIENDLY_SCORE:
            return Relation.FRIENDLY
        return Relation.NEUTRAL

    def sync_alliance_allies(self, agent_id: int, member_player_ids: Iterable[int],
                             own_player_id: Optional[int] = None) -> int:
        """Mark alliance members as allies (score -50). Returns members synced."""
        synced = 0
        for player_id in member_player_ids:
            if player_id == own_player_id:
                continue
            try:
                self.repo.set_relation_flags(agent_id, player_id, is_ally=True, score=self.ALLY_SCORE)
                synced += 1
            except Exception as e:
                logger.error(f"Agent {agent_id}: failed to mark player {player_id} as ally: {e}")
        if synced:
            logger.info(f"Agent {agent_id}: synced {synced} alliance allies")
        return synced

    def set_nap(self, agent_id: int, other_player_id: int, active: bool = True):
        try:
            self.repo.set_relation_flags(agent_id, other_player_id, is_nap=active)
        except Exception as e:
            logger.error(f"Agent {agent_id}: failed to set NAP with player {other_player_id}: {e}")

    def has_nap(self, agent_id: int, other_player_id: int) -> bool:
        """NAP or ally"""
        relation = self.repo.get_threat(agent_id, other_player_id)
        return relation is not None and (relation.is_nap or relation.is_ally)

    def known_hostiles(self, agent_id: int) -> List[int]:
        """Player ids at or above the dangerous score, most hostile first"""
        return [r.other_player_id for r in self.repo.list_threats(agent_id, min_score=self.dangerous_score)]

    def avoid_list(self, agent_id: int) -> List[int]:
        """Players we should not raid: dangerous ones, allies and NAP partners"""
        avoid = set(self.known_hostiles(agent_id))
        avoid.update(r.other_player_id for r in self.repo.list_threats(agent_id, allies=True))
        avoid.update(r.other_player_id for r in self.repo.list_threats(agent_id, naps=True))
        return sorted(avoid)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _power(self, units: Dict[str, int]) -> int:
        return int(sum(self.catalog.intel_power.get(name, 0) * count for name, count in units.items()))

    def _is_fresh(self, intel: TargetIntel) -> bool:
        return intel.last_espionage_at is not None and intel.last_espionage_at >= self.clock() - self.freshness

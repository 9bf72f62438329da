"""
Intel Repository - Data Access Layer

Keyed upserts and range queries for the per-agent knowledge tables:
- Target intel (espionage snapshots, profitability)
- Activity patterns (hour/day histograms)
- Threat relations (score, ally/NAP flags, interaction counters)

Every write is a read-modify-write inside one session_scope, keyed by
(agent, target), so a duplicated tick converges on the same row.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import desc

from .models import TargetIntel, ActivityPattern, ThreatRelation
from .database import session_scope

logger = logging.getLogger(__name__)


class IntelRepository:
    """Repository for intel, activity and threat records"""

    # =========================================================================
    # Target Intel
    # =========================================================================

    def upsert_target_intel(self, agent_id: int, target_planet_id: int, **fields) -> TargetIntel:
        """
        Insert or update the intel row for (agent, planet).

        Args:
            agent_id: Observing agent
            target_planet_id: Planet the report is about
            **fields: Column values to set (metal, ships, profitability, ...)

        Returns:
            Detached TargetIntel
        """
        with session_scope() as session:
            intel = session.query(TargetIntel).filter_by(
                agent_id=agent_id, target_planet_id=target_planet_id).first()

            if not intel:
                intel = TargetIntel(agent_id=agent_id, target_planet_id=target_planet_id)
                session.add(intel)

            for key, value in fields.items():
                setattr(intel, key, value)

            session.commit()
            session.refresh(intel)
            session.expunge(intel)
            return intel

    def get_target_intel(self, agent_id: int, target_planet_id: int) -> Optional[TargetIntel]:
        """Intel row for one planet (None if never scouted)"""
        with session_scope() as session:
            intel = session.query(TargetIntel).filter_by(
                agent_id=agent_id, target_planet_id=target_planet_id).first()
            if intel:
                session.expunge(intel)
            return intel

    def list_target_intel(self, agent_id: int, fresh_since: Optional[datetime] = None,
                          exclude_players: Sequence[int] = (), min_profitability: float = 0,
                          limit: Optional[int] = None) -> List[TargetIntel]:
        """
        Intel rows ordered by profitability (best first).

        Args:
            agent_id: Observing agent
            fresh_since: Only rows scouted at or after this time
            exclude_players: Player ids to leave out (avoid-list)
            min_profitability: Only rows scoring strictly above this value
            limit: Max rows
        """
        with session_scope() as session:
            query = session.query(TargetIntel).filter(TargetIntel.agent_id == agent_id)
            if fresh_since is not None:
                query = query.filter(TargetIntel.last_espionage_at >= fresh_since)
            if exclude_players:
                query = query.filter(TargetIntel.target_player_id.notin_(list(exclude_players)))
            if min_profitability is not None:
                query = query.filter(TargetIntel.profitability > min_profitability)
            query = query.order_by(desc(TargetIntel.profitability), TargetIntel.id)
            if limit:
                query = query.limit(limit)

            rows = query.all()
            for row in rows:
                session.expunge(row)
            return rows

    def last_scouted(self, agent_id: int, target_planet_ids: Sequence[int]) -> Dict[int, datetime]:
        """planet id -> last espionage time, for the planets we have intel on"""
        if not target_planet_ids:
            return {}
        with session_scope() as session:
            rows = session.query(TargetIntel.target_planet_id, TargetIntel.last_espionage_at).filter(
                TargetIntel.agent_id == agent_id,
                TargetIntel.target_planet_id.in_(list(target_planet_ids)),
            ).all()
            return {planet_id: seen for planet_id, seen in rows}

    # =========================================================================
    # Activity Patterns
    # =========================================================================

    def record_activity(self, agent_id: int, target_player_id: int, observed_online: bool,
                        hour: int, weekday: int, at: datetime) -> ActivityPattern:
        """
        Count one observation. Only positive observations touch the buckets;
        every observation increments observation_count.
        """
        with session_scope() as session:
            pattern = session.query(ActivityPattern).filter_by(
                agent_id=agent_id, target_player_id=target_player_id).first()

            if not pattern:
                pattern = ActivityPattern(
                    agent_id=agent_id,
                    target_player_id=target_player_id,
                    hourly=[0] * 24,
                    daily=[0] * 7,
                    observation_count=0,
                    online_count=0,
                )
                session.add(pattern)

            pattern.observation_count = (pattern.observation_count or 0) + 1
            if observed_online:
                # JSON columns only persist on reassignment
                hourly = list(pattern.hourly or [0] * 24)
                daily = list(pattern.daily or [0] * 7)
                hourly[hour] += 1
                daily[weekday] += 1
                pattern.hourly = hourly
                pattern.daily = daily
                pattern.online_count = (pattern.online_count or 0) + 1
            pattern.last_observed_at = at

            session.commit()
            session.refresh(pattern)
            session.expunge(pattern)
            return pattern

    def get_activity(self, agent_id: int, target_player_id: int) -> Optional[ActivityPattern]:
        with session_scope() as session:
            pattern = session.query(ActivityPattern).filter_by(
                agent_id=agent_id, target_player_id=target_player_id).first()
            if pattern:
                session.expunge(pattern)
            return pattern

    # =========================================================================
    # Threat Relations
    # =========================================================================

    def apply_threat_interaction(self, agent_id: int, other_player_id: int, delta: int,
                                 counters: Dict[str, int], at: datetime) -> ThreatRelation:
        """
        Shift the score by delta (then clamp) and bump interaction counters.

        Args:
            counters: counter column name -> increment (e.g. {'times_attacked_us': 1})
        """
        with session_scope() as session:
            relation = self._get_or_create_threat(session, agent_id, other_player_id)
            relation.score = (relation.score or 0) + delta
            relation.clamp_score()
            for column, increment in counters.items():
                setattr(relation, column, (getattr(relation, column) or 0) + increment)
            relation.last_interaction_at = at

            session.commit()
            session.refresh(relation)
            session.expunge(relation)
            logger.debug(f"Threat update: {relation}")
            return relation

    def set_relation_flags(self, agent_id: int, other_player_id: int,
                           is_ally: Optional[bool] = None, is_nap: Optional[bool] = None,
                           score: Optional[int] = None) -> ThreatRelation:
        """Set ally/NAP flags (and optionally the score), then clamp."""
        with session_scope() as session:
            relation = self._get_or_create_threat(session, agent_id, other_player_id)
            if is_ally is not None:
                relation.is_ally = is_ally
            if is_nap is not None:
                relation.is_nap = is_nap
            if score is not None:
                relation.score = score
            relation.clamp_score()

            session.commit()
            session.refresh(relation)
            session.expunge(relation)
            return relation

    def decay_threats(self, agent_id: int, step: int = 1) -> int:
        """
        Move every non-zero score `step` points toward 0 (ally/NAP caps still
        apply). Returns the number of rows changed.
        """
        changed = 0
        with session_scope() as session:
            relations = session.query(ThreatRelation).filter(
                ThreatRelation.agent_id == agent_id,
                ThreatRelation.score != 0,
            ).all()
            for relation in relations:
                before = relation.score
                if relation.score > 0:
                    relation.score = max(0, relation.score - step)
                else:
                    relation.score = min(0, relation.score + step)
                relation.clamp_score()
                if relation.score != before:
                    changed += 1
        return changed

    def get_threat(self, agent_id: int, other_player_id: int) -> Optional[ThreatRelation]:
        with session_scope() as session:
            relation = session.query(ThreatRelation).filter_by(
                agent_id=agent_id, other_player_id=other_player_id).first()
            if relation:
                session.expunge(relation)
            return relation

    def list_threats(self, agent_id: int, min_score: Optional[int] = None,
                     allies: Optional[bool] = None, naps: Optional[bool] = None) -> List[ThreatRelation]:
        """Relations filtered by score and flags, most hostile first"""
        with session_scope() as session:
            query = session.query(ThreatRelation).filter(ThreatRelation.agent_id == agent_id)
            if min_score is not None:
                query = query.filter(ThreatRelation.score >= min_score)
            if allies is not None:
                query = query.filter(ThreatRelation.is_ally == allies)
            if naps is not None:
                query = query.filter(ThreatRelation.is_nap == naps)

            rows = query.order_by(desc(ThreatRelation.score), ThreatRelation.id).all()
            for row in rows:
                session.expunge(row)
            return rows

    @staticmethod
    def _get_or_create_threat(session, agent_id: int, other_player_id: int) -> ThreatRelation:
        relation = session.query(ThreatRelation).filter_by(
            agent_id=agent_id, other_player_id=other_player_id).first()
        if not relation:
            relation = ThreatRelation(
                agent_id=agent_id,
                other_player_id=other_player_id,
                score=0,
                is_ally=False,
                is_nap=False,
                times_attacked_us=0,
                times_we_attacked=0,
                times_we_won=0,
                times_we_lost=0,
            )
            session.add(relation)
        return relation

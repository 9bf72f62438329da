"""
Database Models for the bot brain

Durable per-agent knowledge:
- TargetIntel: what an agent knows about another player's planet
- ActivityPattern: when another player tends to be online
- ThreatRelation: hostility/alliance score toward another player
- StrategicPlan: resumable multi-step plans (build orders, tech chains, fleet goals)

Rows are keyed by (agent, target) and updated with upserts; counters are
only ever incremented.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Float, JSON,
    UniqueConstraint, Index,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TargetIntel(Base):
    """
    Latest espionage picture of one target planet, per agent.

    profitability = max(0, lootable - defense cost), recomputed on every
    report. Rows older than the freshness window are treated as unknown.
    """
    __tablename__ = 'target_intel'

    id = Column(Integer, primary_key=True)
    agent_id = Column(Integer, nullable=False)
    target_player_id = Column(Integer, nullable=False)
    target_planet_id = Column(Integer, nullable=False)
    galaxy = Column(Integer, default=0)
    system = Column(Integer, default=0)
    position = Column(Integer, default=0)

    # Resource snapshot
    metal = Column(Float, default=0)
    crystal = Column(Float, default=0)
    deuterium = Column(Float, default=0)

    # Military snapshot
    ships = Column(JSON, default=dict)
    defenses = Column(JSON, default=dict)
    research = Column(JSON, default=dict)
    fleet_power = Column(Integer, default=0)
    defense_power = Column(Integer, default=0)

    profitability = Column(Float, default=0)
    report_id = Column(Integer)
    last_espionage_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('agent_id', 'target_planet_id', name='uix_intel_agent_planet'),
        Index('ix_intel_agent_profit', 'agent_id', 'profitability'),
    )

    @property
    def total_resources(self) -> float:
        return (self.metal or 0) + (self.crystal or 0) + (self.deuterium or 0)

    @property
    def defense_score(self) -> int:
        return (self.fleet_power or 0) + (self.defense_power or 0)

    @property
    def coordinates_key(self) -> str:
        return f"{self.galaxy}:{self.system}:{self.position}"

    def __repr__(self):
        return (f"<TargetIntel(agent={self.agent_id} -> planet {self.target_planet_id} "
                f"[{self.coordinates_key}], profit={self.profitability})>")


class ActivityPattern(Base):
    """
    Online-activity histograms for another player, per agent.

    hourly has 24 buckets (UTC hour), daily has 7 (Monday = 0).
    """
    __tablename__ = 'activity_patterns'

    id = Column(Integer, primary_key=True)
    agent_id = Column(Integer, nullable=False)
    target_player_id = Column(Integer, nullable=False)
    hourly = Column(JSON, default=lambda: [0] * 24)
    daily = Column(JSON, default=lambda: [0] * 7)
    observation_count = Column(Integer, default=0)
    online_count = Column(Integer, default=0)
    last_observed_at = Column(DateTime)

    __table_args__ = (
        UniqueConstraint('agent_id', 'target_player_id', name='uix_activity_agent_player'),
    )

    def __repr__(self):
        return (f"<ActivityPattern(agent={self.agent_id} -> player {self.target_player_id}, "
                f"obs={self.observation_count})>")


class ThreatRelation(Base):
    """
    Hostility score toward another player, per agent.

    score lives in [-100, 100]; allies are capped at -50, NAP partners at 0.
    """
    __tablename__ = 'threat_relations'

    SCORE_MIN = -100
    SCORE_MAX = 100
    ALLY_CAP = -50
    NAP_CAP = 0

    id = Column(Integer, primary_key=True)
    agent_id = Column(Integer, nullable=False)
    other_player_id = Column(Integer, nullable=False)
    score = Column(Integer, default=0)
    is_ally = Column(Boolean, default=False)
    is_nap = Column(Boolean, default=False)

    times_attacked_us = Column(Integer, default=0)
    times_we_attacked = Column(Integer, default=0)
    times_we_won = Column(Integer, default=0)
    times_we_lost = Column(Integer, default=0)

    last_interaction_at = Column(DateTime)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('agent_id', 'other_player_id', name='uix_threat_agent_player'),
        Index('ix_threat_agent_score', 'agent_id', 'score'),
    )

    def clamp_score(self):
        """Apply the [-100, 100] bounds and the ally/NAP caps."""
        score = max(self.SCORE_MIN, min(self.SCORE_MAX, self.score or 0))
        if self.is_ally:
            score = min(score, self.ALLY_CAP)
        if self.is_nap:
            score = min(score, self.NAP_CAP)
        self.score = score

    def __repr__(self):
        flags = "ally" if self.is_ally else "nap" if self.is_nap else ""
        return f"<ThreatRelation(agent={self.agent_id} -> {self.other_player_id}: {self.score} {flags})>"


class StrategicPlan(Base):
    """
    Ordered, resumable plan.

    steps is a list of {'type', 'name', 'target'} dicts; current_step is the
    cursor. Status moves active -> completed or active -> abandoned, and
    both end states are final.
    """
    __tablename__ = 'strategic_plans'

    STATUS_ACTIVE = 'active'
    STATUS_COMPLETED = 'completed'
    STATUS_ABANDONED = 'abandoned'

    id = Column(Integer, primary_key=True)
    agent_id = Column(Integer, nullable=False)
    plan_type = Column(String(30), nullable=False)    # build_order, tech_chain, fleet_goal
    description = Column(String(200))
    steps = Column(JSON, default=list)
    current_step = Column(Integer, default=0)
    status = Column(String(20), default=STATUS_ACTIVE)
    priority = Column(Integer, default=50)

    created_at = Column(DateTime, default=utcnow)
    last_progress_at = Column(DateTime, default=utcnow)
    completed_at = Column(DateTime)

    __table_args__ = (
        Index('ix_plan_agent_status', 'agent_id', 'status'),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in (self.STATUS_COMPLETED, self.STATUS_ABANDONED)

    @property
    def step_count(self) -> int:
        return len(self.steps or [])

    def get_current_step(self) -> Optional[dict]:
        if self.current_step is None or self.current_step >= self.step_count:
            return None
        return self.steps[self.current_step]

    def advance(self, now: datetime) -> bool:
        """
        Move the cursor forward one step. Completes the plan when the last
        step is passed. Returns False if the plan was already final.
        """
        if self.is_terminal:
            return False
        self.current_step = min(self.step_count, (self.current_step or 0) + 1)
        self.last_progress_at = now
        if self.current_step >= self.step_count:
            self.complete(now)
        return True

    def complete(self, now: datetime) -> bool:
        if self.is_terminal:
            return False
        self.status = self.STATUS_COMPLETED
        self.current_step = self.step_count
        self.completed_at = now
        return True

    def abandon(self, now: datetime) -> bool:
        if self.is_terminal:
            return False
        self.status = self.STATUS_ABANDONED
        self.completed_at = now
        return True

    def __repr__(self):
        return (f"<StrategicPlan({self.plan_type} agent={self.agent_id} "
                f"step {self.current_step}/{self.step_count} {self.status})>")

"""
Plan Repository - Data Access Layer

Stores StrategicPlans and applies their status transitions. The transition
rules themselves live on the model (StrategicPlan.advance / complete /
abandon); this layer loads the row, applies the rule and commits.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import desc

from .models import StrategicPlan
from .database import session_scope

logger = logging.getLogger(__name__)


class PlanRepository:
    """Repository for strategic plans"""

    def create_plan(self, agent_id: int, plan_type: str, description: str,
                    steps: List[dict], priority: int, now: datetime) -> StrategicPlan:
        with session_scope() as session:
            plan = StrategicPlan(
                agent_id=agent_id,
                plan_type=plan_type,
                description=description,
                steps=list(steps),
                current_step=0,
                status=StrategicPlan.STATUS_ACTIVE,
                priority=priority,
                created_at=now,
                last_progress_at=now,
            )
            session.add(plan)
            session.commit()
            session.refresh(plan)
            session.expunge(plan)

            logger.info(f"Agent {agent_id}: created {plan_type} plan "
                        f"'{description}' ({len(steps)} steps)")
            return plan

    def get_plan(self, plan_id: int) -> Optional[StrategicPlan]:
        with session_scope() as session:
            plan = session.query(StrategicPlan).filter_by(id=plan_id).first()
            if plan:
                session.expunge(plan)
            return plan

    def active_plans(self, agent_id: int) -> List[StrategicPlan]:
        """Active plans, highest priority first"""
        with session_scope() as session:
            plans = session.query(StrategicPlan).filter_by(
                agent_id=agent_id, status=StrategicPlan.STATUS_ACTIVE,
            ).order_by(desc(StrategicPlan.priority), StrategicPlan.id).all()
            for plan in plans:
                session.expunge(plan)
            return plans

    def plans_by_status(self, agent_id: int, status: str) -> List[StrategicPlan]:
        with session_scope() as session:
            plans = session.query(StrategicPlan).filter_by(
                agent_id=agent_id, status=status).order_by(StrategicPlan.id).all()
            for plan in plans:
                session.expunge(plan)
            return plans

    def has_active_plan(self, agent_id: int, plan_type: str) -> bool:
        with session_scope() as session:
            return session.query(StrategicPlan).filter_by(
                agent_id=agent_id, plan_type=plan_type,
                status=StrategicPlan.STATUS_ACTIVE,
            ).first() is not None

    def advance_plan(self, plan_id: int, now: datetime) -> Optional[StrategicPlan]:
        """
        Move a plan's cursor forward one step (completing it when exhausted).

        Returns:
            The updated plan, or None if it does not exist or is already final
        """
        with session_scope() as session:
            plan = session.query(StrategicPlan).filter_by(id=plan_id).first()
            if not plan or not plan.advance(now):
                return None

            session.commit()
            session.refresh(plan)
            session.expunge(plan)
            if plan.status == StrategicPlan.STATUS_COMPLETED:
                logger.info(f"Agent {plan.agent_id}: plan '{plan.description}' completed")
            return plan

    def complete_plan(self, plan_id: int, now: datetime) -> bool:
        """Mark a plan completed. False if it was already final."""
        with session_scope() as session:
            plan = session.query(StrategicPlan).filter_by(id=plan_id).first()
            if not plan or not plan.complete(now):
                return False
            logger.info(f"Agent {plan.agent_id}: plan '{plan.description}' completed")
            return True

    def abandon_stale(self, agent_id: int, cutoff: datetime, now: datetime) -> int:
        """
        Abandon active plans whose last progress is older than cutoff.

        Returns:
            Number of plans abandoned
        """
        with session_scope() as session:
            stale = session.query(StrategicPlan).filter(
                StrategicPlan.agent_id == agent_id,
                StrategicPlan.status == StrategicPlan.STATUS_ACTIVE,
                StrategicPlan.last_progress_at < cutoff,
            ).all()

            abandoned = 0
            for plan in stale:
                if plan.abandon(now):
                    abandoned += 1
                    logger.info(f"Agent {agent_id}: abandoned stale plan '{plan.description}' "
                                f"at step {plan.current_step}/{plan.step_count}")
            return abandoned

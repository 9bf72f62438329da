"""
Persistence Module

SQL storage for what an agent must remember between ticks:
- Target intel from espionage reports
- Activity patterns of other players
- Threat relations (hostility, allies, NAPs)
- Strategic plans
"""

from .models import (
    TargetIntel,
    ActivityPattern,
    ThreatRelation,
    StrategicPlan,
)
from .database import init_db, get_session, session_scope, close_db
from .intel_repository import IntelRepository
from .plan_repository import PlanRepository

__all__ = [
    # Models
    'TargetIntel',
    'ActivityPattern',
    'ThreatRelation',
    'StrategicPlan',
    # Database
    'init_db',
    'get_session',
    'session_scope',
    'close_db',
    # Repositories
    'IntelRepository',
    'PlanRepository',
]

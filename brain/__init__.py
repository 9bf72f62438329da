"""
Brain Package

Decision-making for autonomous agents, separate from the game itself.
Everything the brain knows about the world goes through the GameWorld
interface, so any server (or a fake, in tests) can be plugged in.
"""

from .models import (
    Personality,
    TargetPreference,
    GamePhase,
    ActionCategory,
    Resources,
    Coordinates,
    PlanetView,
    QueueStatus,
    EspionageReport,
    HostileMission,
    CombatReport,
    FleetMission,
    PlanetTarget,
    Agent,
    StateSnapshot,
    ActionOutcome,
    TickOutcome,
)

from .world import GameWorld, AgentDirectory, InMemoryAgentDirectory
from .personality import TraitProfile, get_profile, resolve_profile
from .state_analyzer import StateAnalyzer
from .objectives import Objective, ObjectiveSelector
from .decision_engine import ActionDecisionEngine, Decision
from .combat_predictor import CombatPredictor, CombatPrediction, min_win_chance
from .intelligence import IntelligenceStore, InteractionKind, Relation
from .planner import StrategicPlanner, PlannedAction
from .adaptive_tuner import AdaptiveTuner
from .actions import ActionExecutor
from .tick import TickProcessor
from .scheduler import run_batch, run_forever, setup_logging
from .strategy_config import StrategyConfig, get_config
from .ttl_store import TTLStore

__all__ = [
    # Models
    'Personality',
    'TargetPreference',
    'GamePhase',
    'ActionCategory',
    'Resources',
    'Coordinates',
    'PlanetView',
    'QueueStatus',
    'EspionageReport',
    'HostileMission',
    'CombatReport',
    'FleetMission',
    'PlanetTarget',
    'Agent',
    'StateSnapshot',
    'ActionOutcome',
    'TickOutcome',
    # World
    'GameWorld',
    'AgentDirectory',
    'InMemoryAgentDirectory',
    # Components
    'TraitProfile',
    'get_profile',
    'resolve_profile',
    'StateAnalyzer',
    'Objective',
    'ObjectiveSelector',
    'ActionDecisionEngine',
    'Decision',
    'CombatPredictor',
    'CombatPrediction',
    'min_win_chance',
    'IntelligenceStore',
    'InteractionKind',
    'Relation',
    'StrategicPlanner',
    'PlannedAction',
    'AdaptiveTuner',
    'ActionExecutor',
    'TickProcessor',
    'TTLStore',
    'StrategyConfig',
    'get_config',
    # Scheduling
    'run_batch',
    'run_forever',
    'setup_logging',
]

"""
Tick Processor - one decision cycle for one agent

Wires the brain components together and runs them in order:

    snapshot -> side effects (intel ingest, threat bookkeeping, adaptation,
    plan maintenance) -> objective -> weighted category choice -> execution

Only the snapshot is fatal. Every side effect is isolated so that a broken
intelligence read or a failed plan write degrades the tick instead of
aborting it, and the chosen action always runs against the snapshot taken
at the start of the tick.
"""

import logging
import random
import time
from datetime import datetime, timedelta
from typing import Callable, Optional

from . import decision_logger
from .actions import ActionExecutor
from .adaptive_tuner import AdaptiveTuner
from .catalog import DEFAULT_CATALOG, Catalog
from .combat_predictor import CombatPredictor
from .decision_engine import ActionDecisionEngine, Decision
from .intelligence import IntelligenceStore, InteractionKind
from .models import ActionCategory, Agent, StateSnapshot, TickOutcome
from .objectives import ObjectiveSelector
from .personality import TraitProfile, resolve_profile
from .planner import StrategicPlanner
from .state_analyzer import StateAnalyzer
from .strategy_config import StrategyConfig, get_config
from .ttl_store import TTLStore, utcnow
from .world import AgentDirectory, GameWorld

logger = logging.getLogger(__name__)


class TickProcessor:
    """
    Runs ticks for any number of agents.

    Components are built from the strategy config sections unless passed
    in. All of them share one TTL store, one clock and one RNG so tests can
    pin time and randomness in a single place.
    """

    DEFAULT_THREAT_DECAY_MINUTES = 60
    HOSTILE_MISSION_TTL = timedelta(hours=24)

    KEY_REPORT_CHECK = 'last_report_check'
    KEY_COMBAT_CHECK = 'last_combat_check'
    KEY_THREAT_DECAY = 'threat_decay'

    def __init__(self, world: GameWorld, agents: AgentDirectory,
                 strategy: Optional[StrategyConfig] = None,
                 store: Optional[TTLStore] = None,
                 catalog: Optional[Catalog] = None,
                 intel: Optional[IntelligenceStore] = None,
                 planner: Optional[StrategicPlanner] = None,
                 rng: Optional[random.Random] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.world = world
        self.agents = agents
        self.clock = clock or utcnow
        self.rng = rng or random.Random()
        self.store = store or TTLStore(self.clock)
        catalog = catalog or DEFAULT_CATALOG
        strategy = strategy or get_config()

        state_config = dict(strategy.get_section('economy'))
        state_config.update(strategy.get_section('state'))
        actions_config = strategy.get_section('actions')
        planner_config = dict(strategy.get_section('planner'))
        planner_config.setdefault('max_unit_batch', actions_config.get('max_unit_batch',
                                                                       ActionExecutor.DEFAULT_MAX_UNIT_BATCH))

        self.analyzer = StateAnalyzer(world, catalog, state_config)
        self.selector = ObjectiveSelector(strategy.get_section('decision'))
        self.engine = ActionDecisionEngine(strategy.get_section('decision'))
        self.predictor = CombatPredictor(catalog, strategy.get_section('combat'), self.rng)
        self.intel = intel or IntelligenceStore(catalog=catalog,
                                                config=strategy.get_section('intelligence'),
                                                clock=self.clock)
        self.planner = planner or StrategicPlanner(world, self.store, catalog=catalog,
                                                   config=planner_config, clock=self.clock)
        self.tuner = AdaptiveTuner(self.store, strategy.get_section('adaptive'))
        self.executor = ActionExecutor(world, self.intel, self.planner, self.predictor,
                                       catalog=catalog, config=actions_config,
                                       rng=self.rng, clock=self.clock)

        self.threat_decay_interval = timedelta(minutes=actions_config.get(
            'threat_decay_minutes', self.DEFAULT_THREAT_DECAY_MINUTES))

    # =========================================================================
    # Tick
    # =========================================================================

    def process_tick(self, agent_id: int, tick_id: Optional[str] = None) -> TickOutcome:
        """
        Run one decision cycle for the agent.

        Returns:
            TickOutcome with status 'success', 'failed' (action did not
            happen), 'skipped' (inactive or outside schedule) or 'error'
            (snapshot or an unexpected failure)
        """
        started = time.perf_counter()
        now = self.clock()
        tick_id = tick_id or now.strftime('%Y%m%d%H%M')

        agent = self.agents.get(agent_id)
        if agent is None:
            return TickOutcome(agent_id, tick_id, 'error', reason='unknown agent')
        if not agent.is_scheduled_active(now):
            return self._finish(TickOutcome(agent_id, tick_id, 'skipped',
                                            reason='outside active hours'), started)

        try:
            snapshot = self.analyzer.analyze(agent, tick_id, self.tuner.economy_overrides(agent_id))
        except Exception as e:
            logger.exception(f"Tick {tick_id}: state analysis failed for agent {agent_id}")
            return self._finish(TickOutcome(agent_id, tick_id, 'error',
                                            reason=f"state analysis failed: {e}"), started)

        try:
            return self._finish(self._decide_and_act(agent, snapshot, now), started)
        except Exception as e:
            logger.exception(f"Tick {tick_id}: unexpected failure for agent {agent_id}")
            return self._finish(TickOutcome(agent_id, tick_id, 'error', reason=str(e)), started)

    def _decide_and_act(self, agent: Agent, snapshot: StateSnapshot, now: datetime) -> TickOutcome:
        agent_id = agent.agent_id
        profile = resolve_profile(agent, self.tuner.weight_overrides(agent_id))

        self.run_side_effects(agent, profile, snapshot, now)

        has_target = self._has_attack_target(agent, profile)
        objective = self.selector.select(agent, profile, snapshot, has_target)
        decision = self.engine.decide(agent, profile, objective, snapshot, now, self.rng)

        if decision.category is None:
            self._trace(agent, snapshot, decision, None, 'all categories blocked')
            self.agents.save(agent)
            return TickOutcome(agent_id, snapshot.tick_id, 'failed',
                               objective=objective.value, reason='all categories blocked')

        action = self.executor.execute(agent, profile, objective, snapshot, decision.category)
        if action.success:
            self.tuner.record_spend(agent_id, action.spent)
            agent.last_action_at = now
        self.agents.save(agent)

        self._trace(agent, snapshot, decision, action.success, action.reason)
        return TickOutcome(agent_id, snapshot.tick_id,
                           'success' if action.success else 'failed',
                           category=decision.category.value,
                           objective=objective.value,
                           reason=action.reason)

    # =========================================================================
    # Side effects
    # =========================================================================

    def run_side_effects(self, agent: Agent, profile: TraitProfile,
                         snapshot: StateSnapshot, now: datetime):
        """Bookkeeping that precedes the decision. Each step fails alone."""
        steps = (
            ('espionage report ingest', lambda: self.ingest_espionage_reports(agent, now)),
            ('combat report ingest', lambda: self.ingest_combat_reports(agent, now)),
            ('hostile mission tracking', lambda: self.track_hostile_missions(agent, snapshot)),
            ('threat decay', lambda: self.decay_threats(agent, now)),
            ('adaptation', lambda: self.tuner.adapt_if_needed(agent, snapshot)),
            ('plan maintenance', lambda: self.planner.ensure_plans(agent, profile, snapshot)),
        )
        for name, step in steps:
            try:
                step()
            except Exception as e:
                logger.error(f"Agent {agent.agent_id}: {name} failed: {e}")

    def ingest_espionage_reports(self, agent: Agent, now: datetime) -> int:
        since = self.store.get(agent.agent_id, self.KEY_REPORT_CHECK)
        reports = self.world.get_espionage_reports(agent.player_id, since)
        for report in reports:
            self.intel.record_intel(agent.agent_id, report)
        self.store.set(agent.agent_id, self.KEY_REPORT_CHECK, now)
        if reports:
            logger.debug(f"Agent {agent.agent_id}: ingested {len(reports)} espionage reports")
        return len(reports)

    def ingest_combat_reports(self, agent: Agent, now: datetime) -> int:
        since = self.store.get(agent.agent_id, self.KEY_COMBAT_CHECK)
        reports = self.world.get_combat_reports(agent.player_id, since)
        for report in reports:
            self.intel.record_threat_interaction(agent.agent_id, report.defender_player_id,
                                                 InteractionKind.OUR_ATTACK, won=report.attacker_won)
            self.tuner.record_outcome(agent.agent_id, ActionCategory.ATTACK, report.attacker_won)
        self.store.set(agent.agent_id, self.KEY_COMBAT_CHECK, now)
        return len(reports)

    def track_hostile_missions(self, agent: Agent, snapshot: StateSnapshot) -> int:
        """Count each incoming mission once: probes feed vengeance, the rest raise threat."""
        seen = 0
        for mission in snapshot.hostile_missions:
            if not self.store.add(agent.agent_id, f'hostile:{mission.mission_id}', True,
                                  ttl=self.HOSTILE_MISSION_TTL):
                continue
            seen += 1
            if mission.mission == 'espionage':
                counter = int(agent.behavior.get('espionage_counter', 0))
                agent.behavior['espionage_counter'] = counter + 1
            else:
                self.intel.record_threat_interaction(agent.agent_id, mission.attacker_player_id,
                                                     InteractionKind.ATTACKED_US)
        return seen

    def decay_threats(self, agent: Agent, now: datetime) -> int:
        if not self.store.add(agent.agent_id, self.KEY_THREAT_DECAY, now,
                              ttl=self.threat_decay_interval):
            return 0
        return self.intel.decay_threats(agent.agent_id)

    def _has_attack_target(self, agent: Agent, profile: TraitProfile) -> bool:
        if not profile.raids:
            return False
        try:
            avoid = self.intel.avoid_list(agent.agent_id)
            return self.intel.best_known_target(agent.agent_id, avoid=avoid) is not None
        except Exception as e:
            logger.warning(f"Agent {agent.agent_id}: target lookup failed: {e}")
            return False

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _trace(agent: Agent, snapshot: StateSnapshot, decision: Decision,
               success: Optional[bool], reason: str):
        decision_logger.log_decision(
            agent_id=agent.agent_id,
            tick_id=snapshot.tick_id,
            objective=decision.objective.value,
            weights=decision.weights,
            category=decision.category.value if decision.category else None,
            success=success,
            reason=reason,
            phase=snapshot.game_phase.value,
            blocked=decision.blocked,
        )

    @staticmethod
    def _finish(outcome: TickOutcome, started: float) -> TickOutcome:
        outcome.duration_ms = (time.perf_counter() - started) * 1000
        return outcome

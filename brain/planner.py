"""
Strategic Planner - long-horizon goals as resumable step lists

Three plan types, each at most once active per agent:
- build_order (early game only, priority 80): the personality's opening
- tech_chain (priority 70): colonization prerequisites plus the
  personality's capstone research, expanded over the tech DAG
- fleet_goal (past early game, priority 60): unit targets from the
  personality's fleet template

A step is satisfied once live state (including queued work) reaches its
target; the cursor only moves forward when that happens. Execution never
moves the cursor, so a rejected order is simply retried on a later tick.
Plans that make no progress for 12 hours are abandoned.

Also here: planet role assignment, mine ROI and resource projection.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Set, Tuple

from persistence import PlanRepository, StrategicPlan

from .catalog import (
    DEFAULT_CATALOG, MINES, COLONIZATION_TECH, RESOURCE_TYPES, Catalog, PlanStep, estimate_production,
)
from .models import Agent, GamePhase, PlanetView, QueueStatus, Resources, StateSnapshot
from .personality import TraitProfile
from .ttl_store import TTLStore, utcnow
from .world import GameWorld

logger = logging.getLogger(__name__)


PLAN_BUILD_ORDER = 'build_order'
PLAN_TECH_CHAIN = 'tech_chain'
PLAN_FLEET_GOAL = 'fleet_goal'


@dataclass
class PlannedAction:
    """The next executable step of an active plan"""
    plan_id: int
    plan_type: str
    step: PlanStep
    planet_id: int
    amount: int = 1     # units to queue (unit steps only)

    def __str__(self) -> str:
        what = f"{self.amount}x {self.step.name}" if self.step.kind == 'unit' else self.step.name
        return f"{self.plan_type}: {self.step.kind} {what} -> {self.step.target} on planet {self.planet_id}"


@dataclass
class MineUpgrade:
    planet_id: int
    mine: str
    level: int          # level after the upgrade
    roi_hours: float


def step_to_dict(step: PlanStep) -> dict:
    return {'type': step.kind, 'name': step.name, 'target': step.target}


def step_from_dict(data: dict) -> PlanStep:
    return PlanStep(data['type'], data['name'], int(data['target']))


class StrategicPlanner:
    """
    Creates, advances and retires strategic plans.

    Config keys (section 'planner'): max_active_plans, stale_hours,
    build_order_priority, tech_chain_priority, fleet_goal_priority,
    capstone_level_early/mid/late, role_cache_hours, colony_building_levels.
    """

    DEFAULT_MAX_ACTIVE_PLANS = 3
    DEFAULT_STALE_HOURS = 12
    DEFAULT_PRIORITIES = {PLAN_BUILD_ORDER: 80, PLAN_TECH_CHAIN: 70, PLAN_FLEET_GOAL: 60}
    DEFAULT_CAPSTONE_LEVELS = {GamePhase.EARLY: 3, GamePhase.MID: 6, GamePhase.LATE: 8}
    DEFAULT_ROLE_CACHE_HOURS = 6
    DEFAULT_COLONY_BUILDING_LEVELS = 15
    DEFAULT_MAX_UNIT_BATCH = 100
    MAX_MINE_LEVEL = 25

    def __init__(self, world: GameWorld, store: TTLStore,
                 repository: Optional[PlanRepository] = None,
                 catalog: Optional[Catalog] = None, config: Optional[Dict] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.world = world
        self.store = store
        self.repo = repository or PlanRepository()
        self.catalog = catalog or DEFAULT_CATALOG
        self.clock = clock or utcnow
        config = config or {}

        self.max_active_plans = config.get('max_active_plans', self.DEFAULT_MAX_ACTIVE_PLANS)
        self.stale_after = timedelta(hours=config.get('stale_hours', self.DEFAULT_STALE_HOURS))
        self.priorities = {
            plan_type: config.get(f'{plan_type}_priority', default)
            for plan_type, default in self.DEFAULT_PRIORITIES.items()
        }
        self.capstone_levels = {
            phase: config.get(f'capstone_level_{phase.value}', default)
            for phase, default in self.DEFAULT_CAPSTONE_LEVELS.items()
        }
        self.role_cache = timedelta(hours=config.get('role_cache_hours', self.DEFAULT_ROLE_CACHE_HOURS))
        self.colony_building_levels = config.get('colony_building_levels',
                                                 self.DEFAULT_COLONY_BUILDING_LEVELS)
        self.max_unit_batch = config.get('max_unit_batch', self.DEFAULT_MAX_UNIT_BATCH)

    # =========================================================================
    # Plan lifecycle
    # =========================================================================

    def ensure_plans(self, agent: Agent, profile: TraitProfile,
                     snapshot: StateSnapshot) -> List[StrategicPlan]:
        """
        Create whichever plans are missing, up to max_active_plans.

        Idempotent per plan type: a type with an active plan is never
        created twice. Returns the plans created.
        """
        self.cleanup_stale_plans(agent.agent_id)

        active = self.repo.active_plans(agent.agent_id)
        active_types = {p.plan_type for p in active}
        slots = self.max_active_plans - len(active)
        created = []

        candidates = []
        if snapshot.game_phase == GamePhase.EARLY:
            candidates.append(PLAN_BUILD_ORDER)
        candidates.append(PLAN_TECH_CHAIN)
        if snapshot.game_phase != GamePhase.EARLY:
            candidates.append(PLAN_FLEET_GOAL)

        for plan_type in candidates:
            if slots <= 0:
                break
            if plan_type in active_types:
                continue

            description, steps = self._plan_steps(plan_type, profile, snapshot)
            steps = [s for s in steps if not self.is_step_satisfied(s, snapshot)]
            if not steps:
                logger.debug(f"Agent {agent.agent_id}: {plan_type} already satisfied, no plan created")
                continue

            plan = self.repo.create_plan(agent.agent_id, plan_type, description,
                                         [step_to_dict(s) for s in steps],
                                         self.priorities[plan_type], self.clock())
            created.append(plan)
            slots -= 1

        self.planet_roles(agent, profile, snapshot)
        return created

    def next_planned_action(self, agent: Agent, snapshot: StateSnapshot) -> Optional[PlannedAction]:
        """
        First executable step across active plans, by descending priority.

        Satisfied steps advance the cursor and the next step is checked.
        A plan with no steps left is completed.
        """
        for plan in self.repo.active_plans(agent.agent_id):
            while plan is not None:
                step_data = plan.get_current_step()
                if step_data is None:
                    self.repo.complete_plan(plan.id, self.clock())
                    break

                step = step_from_dict(step_data)
                if self.is_step_satisfied(step, snapshot):
                    logger.debug(f"Agent {agent.agent_id}: plan {plan.id} step "
                                 f"{plan.current_step} already satisfied ({step.name} {step.target})")
                    plan = self.repo.advance_plan(plan.id, self.clock())
                    if plan is not None and plan.is_terminal:
                        break
                    continue

                action = self._executable(plan, step, snapshot)
                if action is not None:
                    logger.info(f"Agent {agent.agent_id}: next planned action {action}")
                    return action
                break

        return None

    def cleanup_stale_plans(self, agent_id: int) -> int:
        now = self.clock()
        return self.repo.abandon_stale(agent_id, now - self.stale_after, now)

    # =========================================================================
    # Plan construction
    # =========================================================================

    def _plan_steps(self, plan_type: str, profile: TraitProfile,
                    snapshot: StateSnapshot) -> Tuple[str, List[PlanStep]]:
        personality = profile.personality.value

        if plan_type == PLAN_BUILD_ORDER:
            order = self.catalog.build_orders.get(personality) or self.catalog.build_orders['balanced']
            return f"Early game build order for {personality}", list(order)

        if plan_type == PLAN_TECH_CHAIN:
            level = self.capstone_levels[snapshot.game_phase]
            colony_tech, colony_level = COLONIZATION_TECH
            steps = self.tech_chain(colony_tech, colony_level, snapshot.research_levels)
            steps += self.tech_chain(profile.capstone_tech, level, snapshot.research_levels)
            return (f"Research chain: {profile.capstone_tech} {level} + {colony_tech} {colony_level}",
                    self._dedupe(steps))

        goal = self.catalog.fleet_goals.get(profile.fleet_goal) or self.catalog.fleet_goals['standard']
        return f"Fleet buildup ({profile.fleet_goal}) for {personality}", list(goal)

    def tech_chain(self, tech: str, target_level: int,
                   research_levels: Dict[str, int]) -> List[PlanStep]:
        """
        Research steps needed to reach tech at target_level.

        Depth-first over the prerequisite DAG: prerequisites come before the
        techs that need them, levels already reached are skipped, and a
        visited set guards against cycles.
        """
        chain: List[PlanStep] = []
        visited: Set[str] = set()

        def visit(name: str, level: int):
            if name in visited:
                return
            visited.add(name)
            for dep, dep_level in self.catalog.tech_dependencies.get(name, ()):
                if research_levels.get(dep, 0) < dep_level:
                    visit(dep, dep_level)
                    chain.append(PlanStep('research', dep, dep_level))
            for lvl in range(research_levels.get(name, 0) + 1, level + 1):
                chain.append(PlanStep('research', name, lvl))

        visit(tech, target_level)
        return self._dedupe(chain)

    @staticmethod
    def _dedupe(steps: List[PlanStep]) -> List[PlanStep]:
        seen = set()
        unique = []
        for step in steps:
            key = (step.kind, step.name, step.target)
            if key not in seen:
                seen.add(key)
                unique.append(step)
        return unique

    # =========================================================================
    # Step checks
    # =========================================================================

    def is_step_satisfied(self, step: PlanStep, snapshot: StateSnapshot) -> bool:
        """Live state plus queued work reaches the step's target"""
        if step.kind == 'building':
            return any(max(p.level(step.name), p.building_queue.get(step.name, 0)) >= step.target
                       for p in snapshot.planets)
        if step.kind == 'research':
            level = max(snapshot.research_levels.get(step.name, 0),
                        snapshot.research_queue.get(step.name, 0))
            return level >= step.target
        if step.kind == 'unit':
            return self._unit_total(step.name, snapshot) >= step.target
        logger.warning(f"Unknown plan step type '{step.kind}'")
        return False

    def _executable(self, plan: StrategicPlan, step: PlanStep,
                    snapshot: StateSnapshot) -> Optional[PlannedAction]:
        if step.kind == 'building':
            planet = snapshot.richest_planet()
            if planet is None or self._queue(snapshot, planet).building_full:
                return None
            if not self._affordable(planet, step.name, snapshot):
                return None
            return PlannedAction(plan.id, plan.plan_type, step, planet.planet_id)

        if step.kind == 'research':
            if snapshot.all_research_queues_full:
                return None
            free = [p for p in snapshot.planets if not self._queue(snapshot, p).research_full]
            if not free:
                return None
            planet = max(free, key=lambda p: p.resources.total)
            if not self._affordable(planet, step.name, snapshot):
                return None
            return PlannedAction(plan.id, plan.plan_type, step, planet.planet_id)

        if step.kind == 'unit':
            planet = snapshot.richest_planet()
            if planet is None or not self.world.requirements_met(planet.planet_id, step.name):
                return None
            missing = step.target - self._unit_total(step.name, snapshot)
            amount = min(missing, self.max_unit_batch,
                         affordable_amount(snapshot.budget(planet),
                                           self.world.get_price(planet.planet_id, step.name)))
            if amount <= 0:
                return None
            return PlannedAction(plan.id, plan.plan_type, step, planet.planet_id, amount=amount)

        return None

    def _affordable(self, planet: PlanetView, name: str, snapshot: StateSnapshot) -> bool:
        if not self.world.requirements_met(planet.planet_id, name):
            return False
        return snapshot.budget(planet).covers(self.world.get_price(planet.planet_id, name))

    @staticmethod
    def _queue(snapshot: StateSnapshot, planet: PlanetView) -> QueueStatus:
        return snapshot.queue_status.get(planet.planet_id, QueueStatus())

    @staticmethod
    def _unit_total(name: str, snapshot: StateSnapshot) -> int:
        return sum(p.unit_count(name) + p.unit_queue.get(name, 0) for p in snapshot.planets)

    # =========================================================================
    # Planet roles
    # =========================================================================

    def planet_roles(self, agent: Agent, profile: TraitProfile,
                     snapshot: StateSnapshot) -> Dict[int, str]:
        """
        planet id -> role (economy, fleet, defense, research, colony).

        The home planet is economy, under-developed planets are colonies,
        the rest follow the personality's role pattern. Cached per agent.
        """
        cached = self.store.get(agent.agent_id, 'planet_roles')
        if cached is not None and set(cached) == {p.planet_id for p in snapshot.planets}:
            return dict(cached)

        roles = {}
        pattern = profile.planet_roles or ('economy',)
        for index, planet in enumerate(sorted(snapshot.planets, key=lambda p: p.planet_id)):
            if index == 0:
                roles[planet.planet_id] = 'economy'
            elif sum(planet.buildings.values()) < self.colony_building_levels:
                roles[planet.planet_id] = 'colony'
            else:
                roles[planet.planet_id] = pattern[(index - 1) % len(pattern)]

        self.store.set(agent.agent_id, 'planet_roles', roles, ttl=self.role_cache)
        logger.debug(f"Agent {agent.agent_id}: planet roles {roles}")
        return dict(roles)

    def role_targets(self, role: str) -> Dict[str, int]:
        """Building target levels for a planet role"""
        return dict(self.catalog.role_templates.get(role, {}))

    def role_building_gap(self, planet: PlanetView, role: str) -> List[Tuple[str, int]]:
        """(building, missing levels) below the role template, largest gap first"""
        gaps = [(name, target - max(planet.level(name), planet.building_queue.get(name, 0)))
                for name, target in self.role_targets(role).items()]
        return sorted([g for g in gaps if g[1] > 0], key=lambda g: -g[1])

    # =========================================================================
    # Economy projections
    # =========================================================================

    def mine_roi(self, planet: PlanetView, mine: str) -> float:
        """Hours until the next mine level pays for itself (inf if it never does)"""
        cost = self.world.get_price(planet.planet_id, mine).total
        if cost <= 0:
            return 0.0
        level = planet.level(mine)
        gain = estimate_production(mine, level + 1) - estimate_production(mine, level)
        if gain <= 0:
            return math.inf
        return cost / gain

    def best_mine_upgrade(self, snapshot: StateSnapshot) -> Optional[MineUpgrade]:
        """Mine upgrade with the shortest payback across all planets"""
        best = None
        for planet in snapshot.planets:
            for mine in MINES:
                level = planet.level(mine)
                if level >= self.MAX_MINE_LEVEL:
                    continue
                if not self.world.requirements_met(planet.planet_id, mine):
                    continue
                roi = self.mine_roi(planet, mine)
                if best is None or roi < best.roi_hours:
                    best = MineUpgrade(planet.planet_id, mine, level + 1, roi)
        return best

    @staticmethod
    def project_resources(snapshot: StateSnapshot, hours: float) -> Resources:
        """Stored resources after `hours` of estimated production, all planets"""
        total = Resources()
        for planet in snapshot.planets:
            produced = Resources(
                estimate_production('metal_mine', planet.level('metal_mine')),
                estimate_production('crystal_mine', planet.level('crystal_mine')),
                estimate_production('deuterium_synthesizer', planet.level('deuterium_synthesizer')),
            ).scale(hours)
            total = total + planet.resources + produced
        return total


def affordable_amount(budget: Resources, unit_price: Resources) -> int:
    """How many units the budget pays for"""
    limits = [getattr(budget, r) // getattr(unit_price, r)
              for r in RESOURCE_TYPES if getattr(unit_price, r) > 0]
    if not limits:
        return 0
    return max(0, int(min(limits)))

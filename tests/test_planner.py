"""
StrategicPlanner Test Suite

Tests for plan creation, cursor movement, tech chains, planet roles and
economy projections.

Run with: python -m pytest tests/test_planner.py -v
"""

import math
import sys
from datetime import timedelta
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from brain.catalog import Catalog, PlanStep
from brain.models import GamePhase, Personality, Resources
from brain.personality import get_profile
from brain.planner import (
    PLAN_BUILD_ORDER, PLAN_FLEET_GOAL, PLAN_TECH_CHAIN, StrategicPlanner, affordable_amount, step_to_dict,
)
from brain.ttl_store import TTLStore
from persistence import StrategicPlan, close_db, init_db

from fakes import NOW, Clock, FakeWorld, make_agent, make_planet, make_snapshot


@pytest.fixture
def db():
    init_db('sqlite://')
    yield
    close_db()


@pytest.fixture
def clock():
    return Clock(NOW)


@pytest.fixture
def world():
    return FakeWorld()


@pytest.fixture
def planner(db, world, clock):
    return StrategicPlanner(world, TTLStore(clock), clock=clock)


@pytest.fixture
def agent():
    return make_agent()


def create_plan(planner, agent, steps, plan_type=PLAN_BUILD_ORDER, priority=80):
    return planner.repo.create_plan(agent.agent_id, plan_type, "test plan",
                                    [step_to_dict(PlanStep(*s)) for s in steps], priority, NOW)


# =============================================================================
# TECH CHAINS
# =============================================================================

class TestTechChain:
    """Depth-first prerequisite expansion"""

    def test_prerequisites_come_first(self, planner):
        chain = planner.tech_chain('astrophysics', 4, {})
        names = [(s.name, s.target) for s in chain]

        first_astro = names.index(('astrophysics', 1))
        assert names.index(('espionage_technology', 4)) < first_astro
        assert names.index(('impulse_drive', 3)) < first_astro
        assert names.index(('energy_technology', 1)) < names.index(('impulse_drive', 1))
        assert names[-1] == ('astrophysics', 4)
        assert len(names) == len(set(names))

    def test_reached_levels_skipped(self, planner):
        research = {'espionage_technology': 4, 'impulse_drive': 3, 'energy_technology': 1,
                    'astrophysics': 2}
        chain = planner.tech_chain('astrophysics', 4, research)
        assert [(s.name, s.target) for s in chain] == [('astrophysics', 3), ('astrophysics', 4)]

    def test_cycle_terminates(self, db, world, clock):
        catalog = Catalog(tech_dependencies={'a': (('b', 1),), 'b': (('a', 1),)})
        planner = StrategicPlanner(world, TTLStore(clock), catalog=catalog, clock=clock)
        chain = planner.tech_chain('a', 1, {})
        assert {(s.name, s.target) for s in chain} == {('a', 1), ('b', 1)}


# =============================================================================
# PLAN LIFECYCLE
# =============================================================================

class TestEnsurePlans:
    """Plan creation per game phase"""

    def test_early_game_plans(self, planner, agent):
        created = planner.ensure_plans(agent, get_profile(Personality.BALANCED), make_snapshot())
        assert {p.plan_type for p in created} == {PLAN_BUILD_ORDER, PLAN_TECH_CHAIN}

    def test_idempotent(self, planner, agent):
        profile = get_profile(Personality.BALANCED)
        planner.ensure_plans(agent, profile, make_snapshot())
        assert planner.ensure_plans(agent, profile, make_snapshot()) == []
        assert len(planner.repo.active_plans(agent.agent_id)) == 2

    def test_mid_game_adds_fleet_goal(self, planner, agent):
        created = planner.ensure_plans(agent, get_profile(Personality.AGGRESSIVE),
                                       make_snapshot(game_phase=GamePhase.MID))
        assert {p.plan_type for p in created} == {PLAN_TECH_CHAIN, PLAN_FLEET_GOAL}

    def test_respects_plan_cap(self, db, world, clock, agent):
        planner = StrategicPlanner(world, TTLStore(clock), config={'max_active_plans': 1}, clock=clock)
        created = planner.ensure_plans(agent, get_profile(Personality.BALANCED), make_snapshot())
        assert [p.plan_type for p in created] == [PLAN_BUILD_ORDER]

    def test_satisfied_steps_dropped(self, planner, agent):
        planet = make_planet(1, buildings={'metal_mine': 5, 'solar_plant': 5})
        planner.ensure_plans(agent, get_profile(Personality.BALANCED), make_snapshot(planets=[planet]))

        plan = [p for p in planner.repo.active_plans(agent.agent_id) if p.plan_type == PLAN_BUILD_ORDER][0]
        assert plan.steps[0] == {'type': 'building', 'name': 'crystal_mine', 'target': 4}

    def test_stale_plans_abandoned(self, planner, agent, clock):
        create_plan(planner, agent, [('building', 'metal_mine', 5)])
        clock.advance(timedelta(hours=13))

        assert planner.cleanup_stale_plans(agent.agent_id) == 1
        assert planner.repo.active_plans(agent.agent_id) == []
        assert len(planner.repo.plans_by_status(agent.agent_id, StrategicPlan.STATUS_ABANDONED)) == 1


class TestNextPlannedAction:
    """Cursor movement and executable steps"""

    def test_building_step(self, planner, agent):
        plan = create_plan(planner, agent, [('building', 'metal_mine', 5)])
        snapshot = make_snapshot(planets=[make_planet(1, buildings={'metal_mine': 3})])

        action = planner.next_planned_action(agent, snapshot)
        assert action.plan_id == plan.id
        assert action.step.name == 'metal_mine'
        assert action.planet_id == 1

    def test_all_satisfied_completes_exactly_once(self, planner, agent, clock):
        plan = create_plan(planner, agent, [('building', 'metal_mine', 5), ('research', 'energy_technology', 2)])
        snapshot = make_snapshot(planets=[make_planet(1, buildings={'metal_mine': 6})],
                                 research_levels={'energy_technology': 2})

        assert planner.next_planned_action(agent, snapshot) is None
        stored = planner.repo.get_plan(plan.id)
        assert stored.status == StrategicPlan.STATUS_COMPLETED
        assert stored.current_step == stored.step_count == 2
        completed_at = stored.completed_at

        clock.advance(timedelta(minutes=5))
        assert planner.repo.complete_plan(plan.id, clock()) is False
        assert planner.next_planned_action(agent, snapshot) is None
        assert planner.repo.get_plan(plan.id).completed_at == completed_at

    def test_cursor_never_exceeds_step_count(self, planner, agent):
        plan = create_plan(planner, agent, [('building', 'metal_mine', 5), ('building', 'solar_plant', 5)])
        results = [planner.repo.advance_plan(plan.id, NOW) for _ in range(5)]

        assert results[0].current_step == 1
        assert results[1].status == StrategicPlan.STATUS_COMPLETED
        assert results[2:] == [None, None, None]
        assert planner.repo.get_plan(plan.id).current_step == 2

    def test_queued_work_counts(self, planner, agent):
        plan = create_plan(planner, agent, [('building', 'metal_mine', 5), ('building', 'solar_plant', 5)])
        snapshot = make_snapshot(planets=[make_planet(1, building_queue={'metal_mine': 5})])

        action = planner.next_planned_action(agent, snapshot)
        assert action.step.name == 'solar_plant'
        assert planner.repo.get_plan(plan.id).current_step == 1

    def test_unit_step_amount(self, planner, agent):
        create_plan(planner, agent, [('unit', 'light_fighter', 30)], plan_type=PLAN_FLEET_GOAL)
        snapshot = make_snapshot(planets=[make_planet(1, ships={'light_fighter': 10})])

        action = planner.next_planned_action(agent, snapshot)
        assert action.amount == 20

    def test_unaffordable_step_waits(self, planner, agent, world):
        plan = create_plan(planner, agent, [('building', 'metal_mine', 5)])
        world.prices['metal_mine'] = Resources(10_000_000, 0, 0)

        assert planner.next_planned_action(agent, make_snapshot()) is None
        assert planner.repo.get_plan(plan.id).current_step == 0

    def test_higher_priority_plan_first(self, planner, agent):
        create_plan(planner, agent, [('research', 'energy_technology', 1)], PLAN_TECH_CHAIN, priority=70)
        create_plan(planner, agent, [('building', 'metal_mine', 1)], PLAN_BUILD_ORDER, priority=80)

        action = planner.next_planned_action(agent, make_snapshot())
        assert action.plan_type == PLAN_BUILD_ORDER


# =============================================================================
# PLANET ROLES AND ECONOMY
# =============================================================================

class TestPlanetRoles:

    def test_role_assignment(self, planner, agent):
        developed = {'metal_mine': 10, 'crystal_mine': 10}
        planets = [make_planet(1), make_planet(2), make_planet(3, buildings=developed)]
        roles = planner.planet_roles(agent, get_profile(Personality.BALANCED), make_snapshot(planets=planets))
        assert roles == {1: 'economy', 2: 'colony', 3: 'fleet'}

    def test_role_gap(self, planner):
        planet = make_planet(1, buildings={'metal_mine': 7, 'crystal_mine': 6, 'solar_plant': 8,
                                           'deuterium_synthesizer': 4},
                             building_queue={'robot_factory': 1})
        gap = planner.role_building_gap(planet, 'colony')
        assert gap == [('metal_mine', 1), ('robot_factory', 1)]


class TestEconomy:

    def test_best_mine_upgrade_prefers_metal(self, planner):
        upgrade = planner.best_mine_upgrade(make_snapshot())
        assert upgrade.mine == 'metal_mine'
        assert upgrade.level == 1
        assert upgrade.roi_hours == pytest.approx(150 / 33)

    def test_roi_infinite_without_gain(self, planner, world):
        assert planner.mine_roi(make_planet(1), 'solar_plant') == math.inf

    def test_project_resources(self):
        planet = make_planet(1, resources=Resources(100, 100, 100))
        assert StrategicPlanner.project_resources(make_snapshot(planets=[planet]), 10) == Resources(100, 100, 100)

        planet = make_planet(1, resources=Resources(0, 0, 0), buildings={'metal_mine': 1})
        projected = StrategicPlanner.project_resources(make_snapshot(planets=[planet]), 2)
        assert projected.metal == pytest.approx(66)

    def test_affordable_amount(self):
        assert affordable_amount(Resources(1000, 500, 0), Resources(100, 50, 0)) == 10
        assert affordable_amount(Resources(1000, 100, 0), Resources(100, 50, 0)) == 2
        assert affordable_amount(Resources(1000, 100, 0), Resources(0, 0, 0)) == 0

"""
Action Executor - turns a chosen action category into Game World commands

One handler per category. Handlers never raise for infeasible decisions;
they return ActionOutcome.failed(reason) and the agent does nothing that
tick. Wherever there is a choice between several good options the pick goes
through top_k_pick, so agents mostly take the best option and sometimes a
runner-up.

Handlers:
    build      planned building step, else mine ROI / role gaps / storage
    research   planned research step, else preferred research
    fleet      colonize, expedition, planned unit step, else preferred ships
    attack     cooldown, slots, target, timing, prediction and profit gates
    trade      transport surplus from the richest to the poorest planet
    espionage  probe a nearby planet we have no fresh intel on
    defense    planned defense step, else preferred defenses
    diplomacy  sync alliance members into the threat map as allies
"""

import logging
import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from .catalog import CARGO_CAPACITY, DEFAULT_CATALOG, NON_COMBAT_SHIPS, Catalog
from .combat_predictor import CombatPredictor, tech_levels
from .intelligence import IntelligenceStore
from .models import (
    ActionCategory,
    ActionOutcome,
    Agent,
    Coordinates,
    FleetMission,
    GamePhase,
    Personality,
    PlanetView,
    QueueStatus,
    Resources,
    StateSnapshot,
    TargetPreference,
)
from .objectives import Objective
from .personality import TraitProfile
from .planner import PlannedAction, StrategicPlanner, affordable_amount
from .selection import top_k_pick
from .ttl_store import utcnow
from .world import GameWorld

logger = logging.getLogger(__name__)

# Deep-space slot every system has past its last planet
EXPEDITION_POSITION = 16


@dataclass
class BuildCandidate:
    planet_id: int
    name: str
    reason: str


class ActionExecutor:
    """
    Executes one action category for an agent.

    Config keys (section 'actions'): attack_cooldown_minutes, min_profit_ratio,
    transport_fraction, espionage_probes, max_unit_batch,
    expedition_chance, expedition_fleet_fraction, exploration_probability, top_k.
    """

    DEFAULT_ATTACK_COOLDOWN_MINUTES = 30
    DEFAULT_MIN_PROFIT_RATIO = 0.15
    DEFAULT_TRANSPORT_FRACTION = 0.3
    DEFAULT_ESPIONAGE_PROBES = 2
    DEFAULT_MAX_UNIT_BATCH = 100
    DEFAULT_EXPEDITION_CHANCE = 0.2
    DEFAULT_EXPEDITION_FLEET_FRACTION = 0.3
    DEFAULT_EXPLORATION_PROBABILITY = 0.2
    DEFAULT_TOP_K = 3

    STORAGE_BUILDINGS = {'metal': 'metal_store', 'crystal': 'crystal_store', 'deuterium': 'deuterium_store'}

    def __init__(self, world: GameWorld, intel: IntelligenceStore, planner: StrategicPlanner,
                 predictor: CombatPredictor, catalog: Optional[Catalog] = None,
                 config: Optional[Dict] = None, rng: Optional[random.Random] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.world = world
        self.intel = intel
        self.planner = planner
        self.predictor = predictor
        self.catalog = catalog or DEFAULT_CATALOG
        self.rng = rng or random.Random()
        self.clock = clock or utcnow
        config = config or {}

        self.attack_cooldown = timedelta(minutes=config.get('attack_cooldown_minutes',
                                                            self.DEFAULT_ATTACK_COOLDOWN_MINUTES))
        self.min_profit_ratio = config.get('min_profit_ratio', self.DEFAULT_MIN_PROFIT_RATIO)
        self.transport_fraction = config.get('transport_fraction', self.DEFAULT_TRANSPORT_FRACTION)
        self.espionage_probes = config.get('espionage_probes', self.DEFAULT_ESPIONAGE_PROBES)
        self.max_unit_batch = config.get('max_unit_batch', self.DEFAULT_MAX_UNIT_BATCH)
        self.expedition_chance = config.get('expedition_chance', self.DEFAULT_EXPEDITION_CHANCE)
        self.expedition_fleet_fraction = config.get('expedition_fleet_fraction',
                                                    self.DEFAULT_EXPEDITION_FLEET_FRACTION)
        self.exploration = config.get('exploration_probability', self.DEFAULT_EXPLORATION_PROBABILITY)
        self.top_k = config.get('top_k', self.DEFAULT_TOP_K)

        self._handlers = {
            ActionCategory.BUILD: self.build,
            ActionCategory.RESEARCH: self.research,
            ActionCategory.FLEET: self.fleet,
            ActionCategory.ATTACK: self.attack,
            ActionCategory.TRADE: self.trade,
            ActionCategory.ESPIONAGE: self.espionage,
            ActionCategory.DEFENSE: self.defense,
            ActionCategory.DIPLOMACY: self.diplomacy,
        }

    # =========================================================================
    # Dispatch
    # =========================================================================

    def execute(self, agent: Agent, profile: TraitProfile, objective: Objective,
                snapshot: StateSnapshot, category: ActionCategory) -> ActionOutcome:
        """Run the handler for `category`. Never raises."""
        handler = self._handlers.get(category)
        if handler is None:
            return ActionOutcome.failed(category, f"no handler for {category.value}")

        try:
            outcome = handler(agent, profile, objective, snapshot)
        except Exception as e:
            logger.error(f"Agent {agent.agent_id}: {category.value} handler failed: {e}")
            return ActionOutcome.failed(category, f"error: {e}")

        level = logging.INFO if outcome.success else logging.DEBUG
        logger.log(level, f"Agent {agent.agent_id}: {category.value} "
                          f"{'ok' if outcome.success else 'failed'} - {outcome.reason}")
        return outcome

    # =========================================================================
    # Build
    # =========================================================================

    def build(self, agent: Agent, profile: TraitProfile, objective: Objective,
              snapshot: StateSnapshot) -> ActionOutcome:
        category = ActionCategory.BUILD

        planned = self.planner.next_planned_action(agent, snapshot)
        if planned is not None and planned.step.kind == 'building':
            return self._enqueue_building(category, planned.planet_id, planned.step.name,
                                          f"plan {planned.plan_type}", plan_id=planned.plan_id)

        scored = []
        for candidate, score in self._build_candidates(agent, profile, objective, snapshot):
            planet = snapshot.planet(candidate.planet_id)
            if planet is None or self._queue(snapshot, planet).building_full:
                continue
            if self._can_pay(planet, candidate.name, snapshot):
                scored.append((candidate, score))

        choice = top_k_pick(scored, k=self.top_k, exploration=self.exploration, rng=self.rng)
        if choice is None:
            return ActionOutcome.failed(category, "nothing affordable to build")
        return self._enqueue_building(category, choice.planet_id, choice.name, choice.reason)

    def _build_candidates(self, agent: Agent, profile: TraitProfile, objective: Objective,
                          snapshot: StateSnapshot) -> List[Tuple[BuildCandidate, float]]:
        candidates = []
        mine_bonus = 2.0 if objective == Objective.ECONOMIC_GROWTH else 1.0

        best_mine = self.planner.best_mine_upgrade(snapshot)
        if best_mine is not None:
            score = 100.0 / (1.0 + best_mine.roi_hours / 24.0) * mine_bonus
            candidates.append((BuildCandidate(best_mine.planet_id, best_mine.mine,
                                              f"mine ROI {best_mine.roi_hours:.0f}h"), score))

        roles = self.planner.planet_roles(agent, profile, snapshot)
        for planet in snapshot.planets:
            role = roles.get(planet.planet_id, 'economy')
            for name, gap in self.planner.role_building_gap(planet, role)[:3]:
                candidates.append((BuildCandidate(planet.planet_id, name, f"{role} role"), float(gap)))

            for res, store in self.STORAGE_BUILDINGS.items():
                capacity = getattr(planet.storage, res)
                if capacity > 0 and getattr(planet.resources, res) / capacity >= 0.9:
                    candidates.append((BuildCandidate(planet.planet_id, store, f"{res} storage full"), 50.0))

        return candidates

    def _enqueue_building(self, category: ActionCategory, planet_id: int, name: str,
                          reason: str, **details) -> ActionOutcome:
        price = self.world.get_price(planet_id, name)
        if not self.world.enqueue_building(planet_id, name):
            return ActionOutcome.failed(category, f"server rejected {name}", planet_id=planet_id)
        return ActionOutcome(category, True, f"queued {name} ({reason})",
                             details={'planet_id': planet_id, 'name': name, **details}, spent=price)

    # =========================================================================
    # Research
    # =========================================================================

    def research(self, agent: Agent, profile: TraitProfile, objective: Objective,
                 snapshot: StateSnapshot) -> ActionOutcome:
        category = ActionCategory.RESEARCH
        if snapshot.all_research_queues_full:
            return ActionOutcome.failed(category, "research queue busy")

        planned = self.planner.next_planned_action(agent, snapshot)
        if planned is not None and planned.step.kind == 'research':
            return self._enqueue_research(category, planned.planet_id, planned.step.name,
                                          f"plan {planned.plan_type}", plan_id=planned.plan_id)

        free = [p for p in snapshot.planets
                if not self._queue(snapshot, p).research_full]
        if not free:
            return ActionOutcome.failed(category, "no planet with a free research queue")
        planet = max(free, key=lambda p: p.resources.total)

        preferred = profile.preferred_research
        scored = [(name, float(len(preferred) - i)) for i, name in enumerate(preferred)
                  if self._can_pay(planet, name, snapshot)]
        choice = top_k_pick(scored, k=self.top_k, exploration=self.exploration, rng=self.rng)
        if choice is None:
            return ActionOutcome.failed(category, "no affordable research")
        return self._enqueue_research(category, planet.planet_id, choice, "preferred research")

    def _enqueue_research(self, category: ActionCategory, planet_id: int, name: str,
                          reason: str, **details) -> ActionOutcome:
        price = self.world.get_price(planet_id, name)
        if not self.world.enqueue_research(planet_id, name):
            return ActionOutcome.failed(category, f"server rejected {name}", planet_id=planet_id)
        return ActionOutcome(category, True, f"researching {name} ({reason})",
                             details={'planet_id': planet_id, 'name': name, **details}, spent=price)

    # =========================================================================
    # Fleet and defense
    # =========================================================================

    def fleet(self, agent: Agent, profile: TraitProfile, objective: Objective,
              snapshot: StateSnapshot) -> ActionOutcome:
        category = ActionCategory.FLEET

        if snapshot.can_colonize and snapshot.colony_ship_count > 0 and snapshot.has_free_fleet_slot:
            outcome = self._colonize(agent, snapshot)
            if outcome.success:
                return outcome

        if (snapshot.can_colonize and snapshot.colony_ship_count == 0
                and objective == Objective.TERRITORIAL_EXPANSION):
            planet = snapshot.richest_planet()
            if planet is not None and self._can_pay(planet, 'colony_ship', snapshot):
                return self._enqueue_units(category, planet.planet_id, 'colony_ship', 1, "colony ship")

        if snapshot.has_free_fleet_slot:
            outcome = self._expedition(agent, snapshot)
            if outcome is not None and outcome.success:
                return outcome

        planned = self.planner.next_planned_action(agent, snapshot)
        if self._is_planned_unit(planned, defense=False):
            return self._enqueue_units(category, planned.planet_id, planned.step.name, planned.amount,
                                       f"plan {planned.plan_type}", plan_id=planned.plan_id)

        return self._build_preferred_units(category, profile.preferred_units, snapshot.richest_planet(),
                                           snapshot)

    def defense(self, agent: Agent, profile: TraitProfile, objective: Objective,
                snapshot: StateSnapshot) -> ActionOutcome:
        category = ActionCategory.DEFENSE

        planned = self.planner.next_planned_action(agent, snapshot)
        if self._is_planned_unit(planned, defense=True):
            return self._enqueue_units(category, planned.planet_id, planned.step.name, planned.amount,
                                       f"plan {planned.plan_type}", plan_id=planned.plan_id)

        # Fortify the planet being attacked first
        planet = None
        for mission in snapshot.hostile_missions:
            planet = snapshot.planet(mission.target_planet_id)
            if planet is not None:
                break
        planet = planet or snapshot.richest_planet()
        return self._build_preferred_units(category, profile.preferred_defenses, planet, snapshot)

    def _is_planned_unit(self, planned: Optional[PlannedAction], defense: bool) -> bool:
        return (planned is not None and planned.step.kind == 'unit'
                and self.catalog.is_defense(planned.step.name) == defense)

    def _build_preferred_units(self, category: ActionCategory, preferred, planet: Optional[PlanetView],
                               snapshot: StateSnapshot) -> ActionOutcome:
        if planet is None:
            return ActionOutcome.failed(category, "no planets")

        budget = snapshot.budget(planet)
        scored = []
        for i, name in enumerate(preferred):
            if not self.world.requirements_met(planet.planet_id, name):
                continue
            amount = min(self.max_unit_batch, affordable_amount(budget, self.world.get_price(planet.planet_id, name)))
            if amount > 0:
                scored.append(((name, amount), float(len(preferred) - i)))

        choice = top_k_pick(scored, k=self.top_k, exploration=self.exploration, rng=self.rng)
        if choice is None:
            return ActionOutcome.failed(category, "no affordable units")
        name, amount = choice
        return self._enqueue_units(category, planet.planet_id, name, amount, "preferred units")

    def _enqueue_units(self, category: ActionCategory, planet_id: int, name: str, amount: int,
                       reason: str, **details) -> ActionOutcome:
        price = self.world.get_price(planet_id, name, amount)
        if not self.world.enqueue_units(planet_id, name, amount):
            return ActionOutcome.failed(category, f"server rejected {amount}x {name}", planet_id=planet_id)
        return ActionOutcome(category, True, f"queued {amount}x {name} ({reason})",
                             details={'planet_id': planet_id, 'name': name, 'amount': amount, **details},
                             spent=price)

    def _colonize(self, agent: Agent, snapshot: StateSnapshot) -> ActionOutcome:
        category = ActionCategory.FLEET
        source = next((p for p in snapshot.planets if p.ships.get('colony_ship', 0) > 0), None)
        if source is None:
            return ActionOutcome.failed(category, "no colony ship")

        slot = self.world.find_colonization_slot(agent.player_id, source.coordinates)
        if slot is None:
            return ActionOutcome.failed(category, "no free colonization slot")

        mission = FleetMission(source_planet_id=source.planet_id, destination=slot,
                               mission='colonize', units={'colony_ship': 1})
        if not self.world.dispatch_fleet(agent.player_id, mission):
            return ActionOutcome.failed(category, "server rejected colonization")
        return ActionOutcome(category, True, f"colony ship sent to {slot}",
                             details={'planet_id': source.planet_id, 'destination': str(slot)})

    def _expedition(self, agent: Agent, snapshot: StateSnapshot) -> Optional[ActionOutcome]:
        """
        Send part of the fleet planet's ships into deep space (position 16).

        Returns None when the chance roll says not this tick. The roll is only
        made when there is something to send, and is halved in the early game.
        """
        category = ActionCategory.FLEET
        source = max(snapshot.planets, key=lambda p: sum(p.ships.values()), default=None)
        if source is None:
            return None
        units = self._expedition_fleet(source, agent.personality)
        if not units:
            return None

        chance = self.expedition_chance
        if snapshot.game_phase == GamePhase.EARLY:
            chance *= 0.5
        if self.rng.random() >= chance:
            return None

        destination = Coordinates(source.coordinates.galaxy, source.coordinates.system, EXPEDITION_POSITION)
        mission = FleetMission(source_planet_id=source.planet_id, destination=destination,
                               mission='expedition', units=units)
        if not self.world.dispatch_fleet(agent.player_id, mission):
            return ActionOutcome.failed(category, "server rejected expedition", planet_id=source.planet_id)
        return ActionOutcome(category, True, f"expedition sent to {destination}",
                             details={'planet_id': source.planet_id, 'destination': str(destination),
                                      'units': units})

    def _expedition_fleet(self, planet: PlanetView, personality: Personality) -> Dict[str, int]:
        """Share of the combat ships plus cargo for the finds and a few probes"""
        fraction = self.expedition_fleet_fraction
        if personality == Personality.EXPLORER:
            fraction *= 1.5
        fraction = max(0.05, min(0.6, fraction))

        units = {}
        for name, count in planet.ships.items():
            if name in NON_COMBAT_SHIPS or count <= 0:
                continue
            units[name] = max(1, math.ceil(count * fraction))

        for cargo, minimum in (('large_cargo', 3), ('small_cargo', 5)):
            available = planet.ships.get(cargo, 0)
            if available > 0:
                units[cargo] = min(available, max(minimum, int(available * 0.3)))
                break

        probes = planet.ships.get('espionage_probe', 0)
        if units and probes > 0:
            units['espionage_probe'] = min(10, probes)
        return units

    # =========================================================================
    # Attack
    # =========================================================================

    def attack(self, agent: Agent, profile: TraitProfile, objective: Objective,
               snapshot: StateSnapshot) -> ActionOutcome:
        category = ActionCategory.ATTACK
        now = self.clock()

        if agent.is_on_cooldown(category, now):
            return ActionOutcome.failed(category, "attack on cooldown")
        if not snapshot.has_free_fleet_slot:
            return ActionOutcome.failed(category, "no free fleet slot")

        source = max(snapshot.planets, key=self._combat_value, default=None)
        if source is None or self._combat_value(source) <= 0:
            return ActionOutcome.failed(category, "no combat ships")

        avoid = self.intel.avoid_list(agent.agent_id)
        targets = self._order_targets(agent, self.intel.profitable_targets(agent.agent_id, avoid=avoid))
        if not targets:
            return ActionOutcome.failed(category, "no profitable target")

        attack_tech = tech_levels(snapshot.research_levels)
        rejected = []
        for target in targets:
            if not self.intel.is_good_time_to_attack(agent.agent_id, target.target_player_id, now):
                rejected.append(f"{target.coordinates_key}: likely online")
                continue

            units = self._attack_fleet(source, profile, self.intel.lootable_resources(target))
            prediction = self.predictor.predict(units, attack_tech, target.ships or {},
                                                tech_levels(target.research or {}), target.defenses or {})
            if not CombatPredictor.is_acceptable(prediction, profile):
                rejected.append(f"{target.coordinates_key}: {prediction}")
                continue

            loot = min(self.intel.loot_fraction * target.total_resources, self._capacity(units))
            net = loot - prediction.estimated_loss_value
            if loot <= 0 or net < self.min_profit_ratio * loot:
                rejected.append(f"{target.coordinates_key}: loot {loot:.0f} vs loss "
                                f"{prediction.estimated_loss_value:.0f}")
                continue

            mission = FleetMission(
                source_planet_id=source.planet_id,
                destination=self._coordinates(target),
                mission='attack',
                units=units,
                target_planet_id=target.target_planet_id,
            )
            if not self.world.dispatch_fleet(agent.player_id, mission):
                return ActionOutcome.failed(category, "server rejected attack",
                                            target_planet_id=target.target_planet_id)

            agent.set_cooldown(category, now + self.attack_cooldown)
            return ActionOutcome(category, True,
                                 f"attacking {target.coordinates_key} ({prediction}, loot ~{loot:.0f})",
                                 details={'target_planet_id': target.target_planet_id,
                                          'target_player_id': target.target_player_id,
                                          'win_chance': prediction.win_chance,
                                          'units': units})

        logger.debug(f"Agent {agent.agent_id}: attack targets rejected: {rejected}")
        return ActionOutcome.failed(category, "no target passed the gates", rejected=rejected)

    def _order_targets(self, agent: Agent, targets: List) -> List:
        """Order candidate targets by the agent's target preference"""
        if not targets:
            return []
        preference = agent.target_preference
        if preference == TargetPreference.WEAK:
            return sorted(targets, key=lambda t: (t.defense_score, -t.profitability))
        if preference == TargetPreference.RICH:
            return sorted(targets, key=lambda t: -t.total_resources)
        if preference == TargetPreference.RANDOM:
            first = top_k_pick([(t, t.profitability) for t in targets], k=self.top_k,
                               exploration=self.exploration, rng=self.rng)
            return [first] + [t for t in targets if t is not first]
        return list(targets)

    def _attack_fleet(self, planet: PlanetView, profile: TraitProfile, lootable: Resources) -> Dict[str, int]:
        """Share of the planet's combat ships plus enough cargo for the loot"""
        units = {}
        for name, count in planet.ships.items():
            if name in NON_COMBAT_SHIPS or count <= 0:
                continue
            units[name] = max(1, math.ceil(count * profile.attack_fleet_fraction))

        needed = self.intel.loot_fraction * lootable.total - self._capacity(units)
        for cargo in ('large_cargo', 'small_cargo'):
            if needed <= 0:
                break
            available = planet.ships.get(cargo, 0)
            count = min(available, math.ceil(needed / CARGO_CAPACITY[cargo]))
            if count > 0:
                units[cargo] = count
                needed -= count * CARGO_CAPACITY[cargo]
        return units

    def _combat_value(self, planet: PlanetView) -> float:
        return sum(self.catalog.unit_value(name) * count for name, count in planet.ships.items()
                   if name not in NON_COMBAT_SHIPS)

    @staticmethod
    def _capacity(units: Dict[str, int]) -> float:
        return float(sum(CARGO_CAPACITY.get(name, 0) * count for name, count in units.items()))

    @staticmethod
    def _coordinates(target) -> Coordinates:
        return Coordinates(target.galaxy, target.system, target.position)

    # =========================================================================
    # Trade
    # =========================================================================

    def trade(self, agent: Agent, profile: TraitProfile, objective: Objective,
              snapshot: StateSnapshot) -> ActionOutcome:
        """Ship a share of the richest planet's surplus to the poorest planet."""
        category = ActionCategory.TRADE
        if len(snapshot.planets) < 2:
            return ActionOutcome.failed(category, "need two planets to trade")
        if not snapshot.has_free_fleet_slot:
            return ActionOutcome.failed(category, "no free fleet slot")

        source = snapshot.richest_planet()
        destination = min(snapshot.planets, key=lambda p: p.resources.total)
        if source.planet_id == destination.planet_id:
            return ActionOutcome.failed(category, "no imbalance between planets")

        surplus = source.resources - destination.resources
        cargo = Resources(max(0.0, surplus.metal), max(0.0, surplus.crystal),
                          max(0.0, surplus.deuterium)).scale(self.transport_fraction)
        if cargo.total <= 0:
            return ActionOutcome.failed(category, "no surplus to move")

        units = {}
        needed = cargo.total
        for ship in ('large_cargo', 'small_cargo'):
            available = source.ships.get(ship, 0)
            count = min(available, math.ceil(needed / CARGO_CAPACITY[ship])) if needed > 0 else 0
            if count > 0:
                units[ship] = count
                needed -= count * CARGO_CAPACITY[ship]
        if not units:
            return ActionOutcome.failed(category, "no cargo ships")

        capacity = self._capacity(units)
        if cargo.total > capacity:
            cargo = cargo.scale(capacity / cargo.total)

        mission = FleetMission(source_planet_id=source.planet_id, destination=destination.coordinates,
                               mission='transport', units=units, cargo=cargo,
                               target_planet_id=destination.planet_id)
        if not self.world.dispatch_fleet(agent.player_id, mission):
            return ActionOutcome.failed(category, "server rejected transport")
        return ActionOutcome(category, True,
                             f"transport {cargo.total:.0f} from {source.name} to {destination.name}",
                             details={'source_planet_id': source.planet_id,
                                      'destination_planet_id': destination.planet_id,
                                      'cargo': cargo.as_dict()})

    # =========================================================================
    # Espionage
    # =========================================================================

    def espionage(self, agent: Agent, profile: TraitProfile, objective: Objective,
                  snapshot: StateSnapshot) -> ActionOutcome:
        category = ActionCategory.ESPIONAGE
        if not snapshot.has_free_fleet_slot:
            return ActionOutcome.failed(category, "no free fleet slot")

        source = max(snapshot.planets, key=lambda p: p.ships.get('espionage_probe', 0), default=None)
        if source is None or source.ships.get('espionage_probe', 0) <= 0:
            return ActionOutcome.failed(category, "no espionage probes")

        nearby = [t for t in self.world.find_nearby_planets(agent.player_id, source.coordinates)
                  if t.player_id != agent.player_id]
        for target in nearby:
            if target.player_online is not None:
                self.intel.record_activity(agent.agent_id, target.player_id, target.player_online)

        candidates = [t for t in self.intel.targets_needing_espionage(agent.agent_id, nearby)
                      if not self.intel.has_nap(agent.agent_id, t.player_id)]
        if not candidates:
            return ActionOutcome.failed(category, "no planets need scouting")

        target = self.rng.choice(candidates)
        probes = min(self.espionage_probes, source.ships['espionage_probe'])
        mission = FleetMission(source_planet_id=source.planet_id, destination=target.coordinates,
                               mission='espionage', units={'espionage_probe': probes},
                               target_planet_id=target.planet_id)
        if not self.world.dispatch_fleet(agent.player_id, mission):
            return ActionOutcome.failed(category, "server rejected espionage")
        return ActionOutcome(category, True, f"probing {target.coordinates}",
                             details={'target_planet_id': target.planet_id, 'probes': probes})

    # =========================================================================
    # Diplomacy
    # =========================================================================

    def diplomacy(self, agent: Agent, profile: TraitProfile, objective: Objective,
                  snapshot: StateSnapshot) -> ActionOutcome:
        category = ActionCategory.DIPLOMACY
        if agent.alliance_id is None:
            return ActionOutcome.failed(category, "not in an alliance")

        members = self.world.get_alliance_members(agent.alliance_id)
        synced = self.intel.sync_alliance_allies(agent.agent_id, members, own_player_id=agent.player_id)
        if not synced:
            return ActionOutcome.failed(category, "no alliance members to sync")
        return ActionOutcome(category, True, f"synced {synced} alliance members",
                             details={'alliance_id': agent.alliance_id, 'allies': synced})

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _queue(snapshot: StateSnapshot, planet: PlanetView) -> QueueStatus:
        return snapshot.queue_status.get(planet.planet_id, QueueStatus())

    def _can_pay(self, planet: Optional[PlanetView], name: str, snapshot: StateSnapshot) -> bool:
        if planet is None or planet.resources.total < snapshot.min_resources:
            return False
        if not self.world.requirements_met(planet.planet_id, name):
            return False
        return snapshot.budget(planet).covers(self.world.get_price(planet.planet_id, name))

"""Assembly engine: the ordered step state machine for building a character.

Owns one PartialCharacter and drives it through NAME_ENTRY .. FINALIZE.
Each mutation is only allowed at its own step and is checked before it is
applied, so a rejected call never leaves partial state behind. Moving
forward runs the leaving step's local check; moving back clears every step
that depends on the target (see ``graph.step_graph``). ``finalize`` runs
the full character check and, on success, consumes the session.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable

from numenera_chargen.engine.build_config import AssemblyConfig
from numenera_chargen.engine.dice import DiceFormula, RandomSource
from numenera_chargen.engine.ledger import BudgetLedger
from numenera_chargen.engine.validator import (
    STEP_CHECKS,
    Violation,
    ViolationCode,
    check_bonus_allocation,
    errors_of,
    validate_character,
    warnings_of,
)
from numenera_chargen.graph.step_graph import StepGraph
from numenera_chargen.models.catalog import (
    Ability,
    Artifact,
    Catalog,
    CharacterType,
    Cypher,
    Descriptor,
    EquipmentItem,
    Focus,
    Oddity,
    Origin,
    Species,
    catalog_key,
)
from numenera_chargen.models.character import (
    AbilityEntry,
    ArtifactInstance,
    CharacterSheet,
    CypherInstance,
    LineItem,
    PartialCharacter,
    Pools,
    StatPool,
    compute_pools,
)
from numenera_chargen.models.constants import (
    STEP_NAMES,
    EquipmentCategory,
    Gender,
    OriginKind,
    Severity,
    Step,
)
from numenera_chargen.models.errors import (
    InvariantViolation,
    SessionConsumed,
    StepOrderError,
)


logger = logging.getLogger(__name__)


def _reject(code: ViolationCode, message: str, step: Step, location: str = "") -> InvariantViolation:
    return InvariantViolation([Violation(Severity.ERROR, code, message, step, location)])


# Per-step reset of the fields that step owns.
def _clear_name(s: PartialCharacter) -> None:
    s.name = None


def _clear_gender(s: PartialCharacter) -> None:
    s.gender = None


def _clear_type(s: PartialCharacter) -> None:
    s.type_id = None


def _clear_origin(s: PartialCharacter) -> None:
    s.origin_kind = None
    s.origin_id = None


def _clear_focus(s: PartialCharacter) -> None:
    s.focus_id = None
    s.connection = None


def _clear_stats(s: PartialCharacter) -> None:
    s.bonus = None


def _clear_abilities(s: PartialCharacter) -> None:
    s.abilities.clear()


def _clear_cyphers(s: PartialCharacter) -> None:
    s.cyphers.clear()
    s.artifacts.clear()


def _clear_oddity(s: PartialCharacter) -> None:
    s.oddities.clear()


def _clear_equipment(s: PartialCharacter) -> None:
    s.ledger = None


_CLEARERS: dict[Step, Callable[[PartialCharacter], None]] = {
    Step.NAME_ENTRY: _clear_name,
    Step.GENDER_SELECT: _clear_gender,
    Step.TYPE_SELECT: _clear_type,
    Step.ORIGIN_SELECT: _clear_origin,
    Step.FOCUS_SELECT: _clear_focus,
    Step.STAT_ALLOCATION: _clear_stats,
    Step.ABILITY_SELECT: _clear_abilities,
    Step.CYPHER_SELECT: _clear_cyphers,
    Step.ODDITY_SELECT: _clear_oddity,
    Step.EQUIPMENT_SHOP: _clear_equipment,
}


class AssemblyEngine:
    """Interactive character assembly over a read-only Catalog.

    One engine is one session: it is single-owner and not thread-safe.
    Parallel generation uses one engine per thread over a shared Catalog.
    """

    __slots__ = ("_catalog", "_rng", "_config", "_graph", "_state", "_consumed")

    def __init__(
        self,
        catalog: Catalog,
        rng: RandomSource,
        config: AssemblyConfig | None = None,
        graph: StepGraph | None = None,
    ) -> None:
        self._catalog = catalog
        self._rng = rng
        self._config = config or AssemblyConfig()
        self._graph = graph or StepGraph.build()
        self._state = PartialCharacter()
        self._consumed = False

    # --- State -------------------------------------------------------------

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    @property
    def config(self) -> AssemblyConfig:
        return self._config

    @property
    def step(self) -> Step:
        self._require_live()
        return self._state.step

    @property
    def character(self) -> PartialCharacter:
        """Deep copy of the build in progress."""
        self._require_live()
        return copy.deepcopy(self._state)

    @property
    def is_consumed(self) -> bool:
        return self._consumed

    def _require_live(self) -> None:
        if self._consumed:
            raise SessionConsumed()

    def _require_step(self, step: Step) -> None:
        self._require_live()
        if self._state.step != step:
            raise StepOrderError(
                f"{STEP_NAMES[step]} is not allowed during {STEP_NAMES[self._state.step]}",
                current=self._state.step,
            )

    def _type(self) -> CharacterType | None:
        return self._catalog.get_type(self._state.type_id)

    def _origin(self) -> Origin | None:
        return self._catalog.get_origin(self._state.origin_kind, self._state.origin_id)

    def _focus(self) -> Focus | None:
        return self._catalog.get_focus(self._state.focus_id)

    # --- Navigation --------------------------------------------------------

    def advance(self) -> Step:
        """Check the current step and move to the next one."""
        self._require_live()
        current = self._state.step
        if current is Step.FINALIZE:
            raise StepOrderError("Already at Finalize; call finalize()", current=current)
        violations = validate_character(self._state, self._catalog, self._config, steps=[current])
        errors = errors_of(violations)
        if errors:
            logger.debug("cannot leave %s: %s", current.name, errors[0])
            raise InvariantViolation(errors)
        for v in warnings_of(violations):
            logger.warning("%s", v)

        nxt = Step(current + 1)
        if nxt is Step.EQUIPMENT_SHOP and self._state.ledger is None:
            self._state.ledger = BudgetLedger(self.starting_shins() or 0)
        self._state.step = nxt
        logger.debug("advanced %s -> %s", current.name, nxt.name)
        return nxt

    def back(self, step: Step | None = None) -> Step:
        """Return to *step* (default: the previous one) and clear its dependents.

        The target's own choice is kept so it can be revised.
        """
        self._require_live()
        current = self._state.step
        target = Step(current - 1) if step is None and current > Step.NAME_ENTRY else step
        if target is None or target >= current:
            raise StepOrderError(
                f"Cannot go back from {STEP_NAMES[current]} to "
                f"{STEP_NAMES[target] if target is not None else 'nothing'}",
                current=current,
            )
        cleared = self._graph.invalidated_by(target)
        for dependent in cleared:
            _CLEARERS[dependent](self._state)
        self._state.step = target
        logger.debug(
            "back %s -> %s, cleared %s", current.name, target.name, [s.name for s in cleared],
        )
        return target

    # --- NAME_ENTRY / GENDER_SELECT -----------------------------------------

    def set_name(self, name: str) -> None:
        self._require_step(Step.NAME_ENTRY)
        trial = copy.copy(self._state)
        trial.name = name.strip() if isinstance(name, str) else None
        errors = errors_of(STEP_CHECKS[Step.NAME_ENTRY](trial, self._catalog, self._config))
        if errors:
            raise InvariantViolation(errors)
        self._state.name = trial.name

    def set_gender(self, gender: Gender | str) -> None:
        self._require_step(Step.GENDER_SELECT)
        self._state.gender = Gender(gender)

    # --- TYPE_SELECT / ORIGIN_SELECT ----------------------------------------

    def select_type(self, name: str) -> CharacterType:
        self._require_step(Step.TYPE_SELECT)
        char_type = self._catalog.get_type(name)
        if char_type is None:
            raise _reject(
                ViolationCode.UNKNOWN_REFERENCE, f"Unknown type {name!r}", Step.TYPE_SELECT, "character.type",
            )
        self._state.type_id = char_type.name
        return char_type

    def _select_origin(self, origin: Origin | None, kind: OriginKind, name: str) -> Origin:
        self._require_step(Step.ORIGIN_SELECT)
        if origin is None:
            raise _reject(
                ViolationCode.UNKNOWN_REFERENCE, f"Unknown {kind.value} {name!r}",
                Step.ORIGIN_SELECT, "character.origin",
            )
        self._state.origin_kind = kind
        self._state.origin_id = origin.name
        return origin

    def select_descriptor(self, name: str) -> Descriptor:
        return self._select_origin(self._catalog.get_descriptor(name), OriginKind.DESCRIPTOR, name)

    def select_species(self, name: str) -> Species:
        return self._select_origin(self._catalog.get_species(name), OriginKind.SPECIES, name)

    def select_origin(self, origin: Origin) -> Origin:
        """Select either kind of origin record."""
        if isinstance(origin, Species):
            return self.select_species(origin.name)
        return self.select_descriptor(origin.name)

    # --- FOCUS_SELECT -------------------------------------------------------

    def select_focus(self, name: str, connection: str | None = None) -> Focus:
        self._require_step(Step.FOCUS_SELECT)
        focus = self._catalog.get_focus(name)
        if focus is None:
            raise _reject(
                ViolationCode.UNKNOWN_REFERENCE, f"Unknown focus {name!r}", Step.FOCUS_SELECT, "character.focus",
            )
        char_type = self._type()
        if char_type is not None and not focus.suits(char_type.name):
            raise _reject(
                ViolationCode.FOCUS_UNSUITABLE,
                f"Focus {focus.name!r} is not available to {char_type.name}",
                Step.FOCUS_SELECT, "character.focus",
            )
        if connection is not None and connection not in focus.connections:
            raise _reject(
                ViolationCode.CONNECTION_UNKNOWN,
                f"{connection!r} is not a connection of {focus.name!r}",
                Step.FOCUS_SELECT, "character.connection",
            )
        self._state.focus_id = focus.name
        self._state.connection = connection
        return focus

    # --- STAT_ALLOCATION ----------------------------------------------------

    def allocate_bonus(self, might: int = 0, speed: int = 0, intellect: int = 0) -> Pools:
        """Set the whole bonus allocation.

        A total above the allotment is rejected immediately; a total below
        it is accepted here but blocks ``advance``.
        """
        self._require_step(Step.STAT_ALLOCATION)
        bonus = Pools(might, speed, intellect)
        errors = check_bonus_allocation(bonus, self.bonus_allotment() or 0, exact=False)
        if errors:
            raise InvariantViolation(errors)
        self._state.bonus = bonus
        return bonus

    # --- ABILITY_SELECT -----------------------------------------------------

    def _type_ability(self, name: str) -> Ability | None:
        char_type = self._type()
        if char_type is None:
            return None
        key = catalog_key(name)
        for ability in char_type.abilities:
            if catalog_key(ability.name) == key:
                return ability
        return None

    def select_ability(self, name: str) -> Ability:
        self._require_step(Step.ABILITY_SELECT)
        step = Step.ABILITY_SELECT
        ability = self._type_ability(name)
        if ability is None:
            raise _reject(
                ViolationCode.ABILITY_UNKNOWN, f"{name!r} is not a tier-1 option for this type",
                step, "character.abilities",
            )
        if ability.name in self._state.abilities:
            raise _reject(
                ViolationCode.ABILITY_DUPLICATE, f"{ability.name!r} already selected", step, "character.abilities",
            )
        limit = self._type().ability_count
        if len(self._state.abilities) >= limit:
            raise _reject(
                ViolationCode.ABILITY_COUNT_MISMATCH,
                f"Already selected {limit} abilities; deselect one first",
                step, "character.abilities",
            )
        self._state.abilities.append(ability.name)
        return ability

    def deselect_ability(self, name: str) -> None:
        self._require_step(Step.ABILITY_SELECT)
        ability = self._type_ability(name)
        if ability is None or ability.name not in self._state.abilities:
            raise ValueError(f"Ability {name!r} is not selected")
        self._state.abilities.remove(ability.name)

    # --- CYPHER_SELECT ------------------------------------------------------

    def select_cypher(self, name: str) -> CypherInstance:
        """Carry a cypher, rolling its level from the catalog formula."""
        self._require_step(Step.CYPHER_SELECT)
        step = Step.CYPHER_SELECT
        cypher = self._catalog.get_cypher(name)
        if cypher is None:
            raise _reject(ViolationCode.UNKNOWN_REFERENCE, f"Unknown cypher {name!r}", step, "character.cyphers")
        if any(c.cypher_id == cypher.name for c in self._state.cyphers):
            raise _reject(
                ViolationCode.DUPLICATE_CYPHER, f"{cypher.name!r} is already carried", step, "character.cyphers",
            )
        limit = self._type().cypher_limit if self._type() is not None else 0
        if len(self._state.cyphers) >= limit:
            raise _reject(
                ViolationCode.CYPHER_LIMIT_EXCEEDED,
                f"Cypher limit of {limit} reached", step, "character.cyphers",
            )
        level = DiceFormula.parse(cypher.level_formula).roll(self._rng)
        instance = CypherInstance(cypher.name, level, cypher.duration)
        self._state.cyphers.append(instance)
        return instance

    def remove_cypher(self, name: str) -> CypherInstance:
        self._require_step(Step.CYPHER_SELECT)
        key = catalog_key(name)
        for i, inst in enumerate(self._state.cyphers):
            if catalog_key(inst.cypher_id) == key:
                return self._state.cyphers.pop(i)
        raise ValueError(f"Cypher {name!r} is not carried")

    def select_artifact(self, name: str) -> ArtifactInstance:
        self._require_step(Step.CYPHER_SELECT)
        artifact = self._catalog.get_artifact(name)
        if artifact is None:
            raise _reject(
                ViolationCode.UNKNOWN_REFERENCE, f"Unknown artifact {name!r}",
                Step.CYPHER_SELECT, "character.artifacts",
            )
        level = DiceFormula.parse(artifact.level_formula).roll(self._rng)
        instance = ArtifactInstance(artifact.name, level, artifact.depletion)
        self._state.artifacts.append(instance)
        return instance

    def remove_artifact(self, name: str) -> ArtifactInstance:
        self._require_step(Step.CYPHER_SELECT)
        key = catalog_key(name)
        for i, inst in enumerate(self._state.artifacts):
            if catalog_key(inst.artifact_id) == key:
                return self._state.artifacts.pop(i)
        raise ValueError(f"Artifact {name!r} is not carried")

    # --- ODDITY_SELECT ------------------------------------------------------

    def select_oddity(self, name: str) -> Oddity:
        """Choose the character's oddity, replacing any earlier choice."""
        self._require_step(Step.ODDITY_SELECT)
        oddity = self._catalog.get_oddity(name)
        if oddity is None:
            raise _reject(
                ViolationCode.UNKNOWN_REFERENCE, f"Unknown oddity {name!r}",
                Step.ODDITY_SELECT, "character.oddity",
            )
        self._state.oddities[:] = [oddity.name]
        return oddity

    def clear_oddity(self) -> None:
        self._require_step(Step.ODDITY_SELECT)
        self._state.oddities.clear()

    # --- EQUIPMENT_SHOP -----------------------------------------------------

    def purchase(self, item_id: str) -> LineItem:
        """Buy one item; OverBudget leaves the ledger unchanged."""
        self._require_step(Step.EQUIPMENT_SHOP)
        item = self._catalog.get_item(item_id)
        if item is None:
            raise _reject(
                ViolationCode.UNKNOWN_REFERENCE, f"Unknown item {item_id!r}",
                Step.EQUIPMENT_SHOP, "character.equipment",
            )
        line = LineItem(item.name, item.category, item.cost)
        self._state.ledger.add(line)
        return line

    def undo_purchase(self) -> LineItem:
        self._require_step(Step.EQUIPMENT_SHOP)
        return self._state.ledger.remove_last()

    def remaining_shins(self) -> int | None:
        self._require_live()
        if self._state.ledger is not None:
            return self._state.ledger.remaining()
        return self.starting_shins()

    # --- Option queries -----------------------------------------------------

    def available_types(self) -> list[CharacterType]:
        return list(self._catalog.types)

    def available_origins(self) -> list[Origin]:
        return self._catalog.origins()

    def available_foci(self) -> list[Focus]:
        char_type = self._type()
        if char_type is None:
            return []
        return self._catalog.suitable_foci(char_type.name)

    def available_abilities(self) -> list[Ability]:
        """Tier-1 options of the chosen type not yet selected."""
        char_type = self._type()
        if char_type is None:
            return []
        return [a for a in char_type.abilities if a.name not in self._state.abilities]

    def available_cyphers(self) -> list[Cypher]:
        carried = {catalog_key(c.cypher_id) for c in self._state.cyphers}
        return [c for c in self._catalog.cyphers if catalog_key(c.name) not in carried]

    def available_artifacts(self) -> list[Artifact]:
        return list(self._catalog.artifacts)

    def available_oddities(self) -> list[Oddity]:
        return list(self._catalog.oddities)

    def shop_items(
        self,
        category: EquipmentCategory | None = None,
        affordable_only: bool = False,
    ) -> list[EquipmentItem]:
        items = self._catalog.shop_items(category)
        if affordable_only:
            remaining = self.remaining_shins() or 0
            items = [i for i in items if i.cost <= remaining]
        return items

    # --- Derived values -----------------------------------------------------

    def bonus_allotment(self) -> int | None:
        char_type = self._type()
        if char_type is None:
            return None
        return Catalog.bonus_allotment(char_type, self._origin())

    def remaining_bonus(self) -> int | None:
        allotment = self.bonus_allotment()
        if allotment is None:
            return None
        spent = self._state.bonus.total() if self._state.bonus is not None else 0
        return allotment - spent

    def starting_shins(self) -> int | None:
        char_type = self._type()
        if char_type is None:
            return None
        return Catalog.starting_shins(char_type, self._origin())

    def pool_preview(self) -> tuple[StatPool, ...]:
        """Pools implied by the choices made so far."""
        char_type = self._type()
        origin = self._origin()
        return compute_pools(
            char_type.base_pools if char_type is not None else Pools(),
            origin.modifiers if origin is not None else Pools(),
            self._state.bonus or Pools(),
        )

    # --- Validation / finalize ---------------------------------------------

    def validate(self) -> list[Violation]:
        """Full character check without changing anything."""
        self._require_live()
        return validate_character(self._state, self._catalog, self._config)

    def is_complete(self) -> bool:
        return not errors_of(self.validate())

    def finalize(self) -> CharacterSheet:
        """Validate everything and produce the finished sheet.

        Any Error raises InvariantViolation routed to the earliest
        offending step and leaves the session untouched. Success consumes
        the session; every later call raises SessionConsumed.
        """
        self._require_live()
        violations = self.validate()
        errors = errors_of(violations)
        if errors:
            exc = InvariantViolation(errors)
            logger.warning(
                "finalize refused with %d error(s); first at %s", len(errors),
                exc.step.name if exc.step is not None else "?",
            )
            raise exc
        for v in warnings_of(violations):
            logger.warning("%s", v)

        sheet = self._build_sheet()
        self._state.ledger = None
        self._consumed = True
        logger.info("finalized %s: %s", sheet.name, sheet.character_sentence())
        return sheet

    def _build_sheet(self) -> CharacterSheet:
        s = self._state
        char_type = self._type()
        origin = self._origin()
        focus = self._focus()

        abilities = [
            AbilityEntry(a.name, "type", a.resolved_text)
            for a in (self._type_ability(name) for name in s.abilities)
        ]
        abilities.extend(AbilityEntry(name, "special", name) for name in char_type.special_abilities)
        abilities.append(AbilityEntry(focus.ability.name, "focus", focus.ability.resolved_text))
        if isinstance(origin, Species):
            abilities.extend(AbilityEntry(a.name, "species", a.resolved_text) for a in origin.abilities)
        else:
            abilities.extend(
                AbilityEntry(a.name, "descriptor", a.resolved_text) for a in origin.special_abilities
            )

        gear: list[str] = []
        for ref in (*char_type.starting_equipment, *origin.starting_equipment, *focus.starting_equipment):
            item = self._catalog.get_item(ref)
            name = item.name if item is not None else ref
            if name not in gear:
                gear.append(name)

        ledger = s.ledger
        return CharacterSheet(
            name=s.name,
            gender=s.gender,
            type_id=char_type.name,
            descriptor_id=origin.name if isinstance(origin, Descriptor) else None,
            species_id=origin.name if isinstance(origin, Species) else None,
            focus_id=focus.name,
            pools=compute_pools(char_type.base_pools, origin.modifiers, s.bonus),
            bonus=s.bonus,
            edge=char_type.edge,
            effort=char_type.effort,
            cypher_limit=char_type.cypher_limit,
            abilities=tuple(abilities),
            cyphers=tuple(s.cyphers),
            oddity_id=s.oddities[0],
            artifacts=tuple(s.artifacts),
            equipment=ledger.items if ledger is not None else (),
            starting_gear=tuple(gear),
            shins=ledger.remaining() if ledger is not None else Catalog.starting_shins(char_type, origin),
            background=_background(origin, s.connection),
            skills=Catalog.starting_skills(char_type, origin),
            armor=self._catalog.armor_value(char_type, origin),
        )


def _background(origin: Origin, connection: str | None) -> str:
    """Descriptor's first initial link, then the focus connection."""
    parts: list[str] = []
    if isinstance(origin, Descriptor) and origin.initial_links:
        parts.append(origin.initial_links[0])
    if connection:
        parts.append(connection)
    return "\n".join(parts)

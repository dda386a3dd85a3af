"""Catalog and character validation.

Both surfaces accumulate every violation instead of stopping at the
first one; nothing here raises for a broken rule. Character checks are
split per step so the engine can run the local check for the step it is
leaving and the full set before finalize. Each violation names the step
it belongs to, which is how a caller routes the user back to fix it.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from numenera_chargen.engine.build_config import AssemblyConfig
from numenera_chargen.engine.dice import DiceFormula
from numenera_chargen.models.catalog import (
    Catalog,
    CharacterType,
    Origin,
    catalog_key,
)
from numenera_chargen.models.character import (
    CharacterSheet,
    LineItem,
    PartialCharacter,
    Pools,
    compute_pools,
)
from numenera_chargen.models.constants import ATTRIBUTES, OriginKind, Severity, Step
from numenera_chargen.models.errors import (
    CatalogError,
    DuplicateId,
    FormatError,
    ReferenceNotFound,
)


logger = logging.getLogger(__name__)


class ViolationCode(str, Enum):
    """Machine-readable violation codes. Values are part of the report format."""

    # Catalog
    DUPLICATE_ID = "DuplicateId"
    DUPLICATE_ABILITY = "DuplicateAbility"
    REFERENCE_NOT_FOUND = "ReferenceNotFound"
    UNKNOWN_SUITABLE_TYPE = "UnknownSuitableType"
    BAD_LEVEL_FORMULA = "BadLevelFormula"
    FORMULA_BELOW_ONE = "FormulaBelowOne"
    TYPE_WITHOUT_FOCUS = "TypeWithoutFocus"
    ABILITY_SHORTFALL = "AbilityShortfall"
    UNSATISFIABLE_POOLS = "UnsatisfiablePools"
    NEGATIVE_VALUE = "NegativeValue"
    NO_TYPES = "NoTypes"
    NO_ORIGINS = "NoOrigins"
    NO_ODDITIES = "NoOddities"
    NO_CYPHERS_IN_CATALOG = "NoCyphersInCatalog"

    # Character
    NAME_MISSING = "NameMissing"
    NAME_TOO_LONG = "NameTooLong"
    GENDER_MISSING = "GenderMissing"
    TYPE_MISSING = "TypeMissing"
    ORIGIN_MISSING = "OriginMissing"
    FOCUS_MISSING = "FocusMissing"
    FOCUS_UNSUITABLE = "FocusUnsuitable"
    CONNECTION_UNKNOWN = "ConnectionUnknown"
    UNKNOWN_REFERENCE = "UnknownReference"
    BONUS_MISMATCH = "BonusMismatch"
    BONUS_OVERSPENT = "BonusOverspent"
    BONUS_NEGATIVE = "BonusNegative"
    POOL_NOT_POSITIVE = "PoolNotPositive"
    POOL_MISMATCH = "PoolMismatch"
    ABILITY_COUNT_MISMATCH = "AbilityCountMismatch"
    ABILITY_UNKNOWN = "AbilityUnknown"
    ABILITY_DUPLICATE = "AbilityDuplicate"
    CYPHER_LIMIT_EXCEEDED = "CypherLimitExceeded"
    DUPLICATE_CYPHER = "DuplicateCypher"
    NO_CYPHERS = "NoCyphers"
    LEVEL_BELOW_ONE = "LevelBelowOne"
    ODDITY_COUNT_MISMATCH = "OddityCountMismatch"
    OVER_BUDGET = "OverBudget"
    SHINS_MISMATCH = "ShinsMismatch"
    SKILLS_MISMATCH = "SkillsMismatch"
    ARMOR_MISMATCH = "ArmorMismatch"

    def __str__(self) -> str:
        return self.value


# Catalog codes that mean "an id does not resolve".
_REFERENCE_CODES = frozenset({
    ViolationCode.REFERENCE_NOT_FOUND,
    ViolationCode.UNKNOWN_SUITABLE_TYPE,
})


_DUPLICATE_CODES = frozenset({
    ViolationCode.DUPLICATE_ID,
    ViolationCode.DUPLICATE_ABILITY,
})


@dataclass(frozen=True, slots=True)
class Violation:
    """One rule breach: severity, code, owning step (None for catalog), location, message."""

    severity: Severity
    code: ViolationCode
    message: str
    step: Step | None = None
    location: str = ""

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def __str__(self) -> str:
        where = self.step.name if self.step is not None else self.location
        return f"{self.severity.value.upper()} {self.code.value} @ {where}: {self.message}"


def _error(
    code: ViolationCode, message: str, step: Step | None = None, location: str = ""
) -> Violation:
    return Violation(Severity.ERROR, code, message, step, location)


def _warning(
    code: ViolationCode, message: str, step: Step | None = None, location: str = ""
) -> Violation:
    return Violation(Severity.WARNING, code, message, step, location)


def errors_of(violations: Iterable[Violation]) -> list[Violation]:
    return [v for v in violations if v.is_error]


def warnings_of(violations: Iterable[Violation]) -> list[Violation]:
    return [v for v in violations if not v.is_error]


def has_errors(violations: Iterable[Violation]) -> bool:
    return any(v.is_error for v in violations)


# ===========================================================================
# Catalog validation
# ===========================================================================


def _check_duplicates(catalog: Catalog) -> list[Violation]:
    out: list[Violation] = []
    for category, records in catalog.categories().items():
        counts = Counter(catalog_key(r.name) for r in records)
        reported: set[str] = set()
        for rec in records:
            key = catalog_key(rec.name)
            if counts[key] > 1 and key not in reported:
                reported.add(key)
                out.append(_error(
                    ViolationCode.DUPLICATE_ID,
                    f"{counts[key]} {category} share the id {rec.name!r}",
                    location=f"{category}[{rec.name}]",
                ))
    for t in catalog.types:
        counts = Counter(catalog_key(a.name) for a in t.abilities)
        for key, count in counts.items():
            if count > 1:
                out.append(_error(
                    ViolationCode.DUPLICATE_ABILITY,
                    f"Type {t.name!r} offers the tier-1 ability {key!r} {count} times",
                    location=f"types[{t.name}].abilities",
                ))
    return out


def _check_references(catalog: Catalog) -> list[Violation]:
    out: list[Violation] = []
    holders = (
        ("types", catalog.types),
        ("descriptors", catalog.descriptors),
        ("species", catalog.species),
        ("foci", catalog.foci),
    )
    for category, records in holders:
        for rec in records:
            for item_id in rec.starting_equipment:
                if catalog.get_item(item_id) is None:
                    out.append(_error(
                        ViolationCode.REFERENCE_NOT_FOUND,
                        f"Starting equipment {item_id!r} is not in the equipment list",
                        location=f"{category}[{rec.name}].starting_equipment",
                    ))
    for focus in catalog.foci:
        for type_name in focus.suitable_types:
            if catalog.get_type(type_name) is None:
                out.append(_error(
                    ViolationCode.UNKNOWN_SUITABLE_TYPE,
                    f"Focus {focus.name!r} lists unknown type {type_name!r}",
                    location=f"foci[{focus.name}].suitable_types",
                ))
    return out


def _check_formulas(catalog: Catalog) -> list[Violation]:
    out: list[Violation] = []
    for category, records in (("cyphers", catalog.cyphers), ("artifacts", catalog.artifacts)):
        for rec in records:
            location = f"{category}[{rec.name}].level_formula"
            try:
                formula = DiceFormula.parse(rec.level_formula)
            except FormatError as exc:
                out.append(_error(ViolationCode.BAD_LEVEL_FORMULA, str(exc), location=location))
                continue
            if formula.min_value < 1:
                out.append(_warning(
                    ViolationCode.FORMULA_BELOW_ONE,
                    f"{rec.level_formula!r} can roll a level of {formula.min_value}",
                    location=location,
                ))
    return out


def _check_values(catalog: Catalog) -> list[Violation]:
    out: list[Violation] = []
    for item in catalog.equipment:
        if item.cost < 0:
            out.append(_error(
                ViolationCode.NEGATIVE_VALUE,
                f"Item {item.name!r} costs {item.cost} shins",
                location=f"equipment[{item.name}].cost",
            ))
    for t in catalog.types:
        for field_name in ("bonus_points", "effort", "cypher_limit", "shins", "ability_count"):
            value = getattr(t, field_name)
            if value < 0:
                out.append(_error(
                    ViolationCode.NEGATIVE_VALUE,
                    f"Type {t.name!r} has {field_name} = {value}",
                    location=f"types[{t.name}].{field_name}",
                ))
    for origin in catalog.origins():
        category = "species" if origin.kind is OriginKind.SPECIES else "descriptors"
        if origin.shins < 0:
            out.append(_error(
                ViolationCode.NEGATIVE_VALUE,
                f"{origin.name!r} grants {origin.shins} shins",
                location=f"{category}[{origin.name}].shins",
            ))
        bonus = getattr(origin, "initial_bonus_points", None)
        if bonus is not None and bonus < 0:
            out.append(_error(
                ViolationCode.NEGATIVE_VALUE,
                f"{origin.name!r} overrides bonus points to {bonus}",
                location=f"{category}[{origin.name}].initial_bonus_points",
            ))
    return out


def _pool_deficit(char_type: CharacterType, origin: Origin | None) -> int:
    """Bonus points needed just to bring every pool up to 1."""
    base = char_type.base_pools + (origin.modifiers if origin is not None else Pools())
    return sum(max(0, 1 - base.get(attr)) for attr in ATTRIBUTES)


def _check_assembly_feasible(catalog: Catalog) -> list[Violation]:
    out: list[Violation] = []
    if not catalog.types:
        out.append(_error(ViolationCode.NO_TYPES, "Catalog has no character types", location="types"))
    if not catalog.origins():
        out.append(_error(
            ViolationCode.NO_ORIGINS, "Catalog has no descriptors or species", location="descriptors",
        ))
    if not catalog.oddities:
        out.append(_error(ViolationCode.NO_ODDITIES, "Catalog has no oddities", location="oddities"))
    if not catalog.cyphers:
        out.append(_warning(
            ViolationCode.NO_CYPHERS_IN_CATALOG, "Catalog has no cyphers", location="cyphers",
        ))

    for t in catalog.types:
        if not catalog.suitable_foci(t.name):
            out.append(_error(
                ViolationCode.TYPE_WITHOUT_FOCUS,
                f"No focus lists {t.name!r} as a suitable type",
                location=f"types[{t.name}]",
            ))
        offered = len({catalog_key(a.name) for a in t.abilities})
        if t.ability_count > offered:
            out.append(_error(
                ViolationCode.ABILITY_SHORTFALL,
                f"Type {t.name!r} requires {t.ability_count} tier-1 abilities "
                f"but offers {offered}",
                location=f"types[{t.name}].abilities",
            ))
        for origin in catalog.origins():
            allotment = Catalog.bonus_allotment(t, origin)
            deficit = _pool_deficit(t, origin)
            if deficit > allotment:
                out.append(_error(
                    ViolationCode.UNSATISFIABLE_POOLS,
                    f"{origin.name} {t.name} needs {deficit} bonus points to keep every "
                    f"pool positive, allotment is {allotment}",
                    location=f"types[{t.name}]+{origin.name}",
                ))
    return out


def validate_catalog(catalog: Catalog) -> list[Violation]:
    """Check a catalog for self-consistency. Returns every violation found."""
    violations: list[Violation] = []
    violations.extend(_check_duplicates(catalog))
    violations.extend(_check_references(catalog))
    violations.extend(_check_formulas(catalog))
    violations.extend(_check_values(catalog))
    violations.extend(_check_assembly_feasible(catalog))
    return violations


def require_valid_catalog(catalog: Catalog) -> list[Violation]:
    """Raise if *catalog* has any Error; otherwise return (and log) its warnings.

    Duplicate ids and duplicate abilities take precedence over dangling
    references, which take precedence over every other error.
    """
    violations = validate_catalog(catalog)
    errors = errors_of(violations)
    if errors:
        for v in errors:
            logger.error("catalog: %s", v)
        first = errors[0]
        summary = f"Catalog has {len(errors)} error(s); first: {first.message}"
        if any(v.code in _DUPLICATE_CODES for v in errors):
            raise DuplicateId(summary, errors)
        if any(v.code in _REFERENCE_CODES for v in errors):
            raise ReferenceNotFound(summary, errors)
        raise CatalogError(summary, errors)
    warnings = warnings_of(violations)
    for v in warnings:
        logger.warning("catalog: %s", v)
    return warnings


# ===========================================================================
# Character validation
# ===========================================================================


def check_bonus_allocation(bonus: Pools, allotment: int, *, exact: bool) -> list[Violation]:
    """Bonus rules shared by incremental allocation and the step boundary.

    With ``exact=False`` only overspend and negative values are errors.
    """
    out: list[Violation] = []
    step = Step.STAT_ALLOCATION
    for attr in ATTRIBUTES:
        if bonus.get(attr) < 0:
            out.append(_error(
                ViolationCode.BONUS_NEGATIVE,
                f"Bonus for {attr.value} is {bonus.get(attr)}",
                step, f"character.bonus.{attr.value}",
            ))
    total = bonus.total()
    if total > allotment:
        out.append(_error(
            ViolationCode.BONUS_OVERSPENT,
            f"Allocated {total} bonus points, allotment is {allotment}",
            step, "character.bonus",
        ))
    elif exact and total < allotment:
        out.append(_error(
            ViolationCode.BONUS_MISMATCH,
            f"Allocated {total} of {allotment} bonus points; spend them all",
            step, "character.bonus",
        ))
    return out


def _resolve(
    partial: PartialCharacter, catalog: Catalog
) -> tuple[CharacterType | None, Origin | None]:
    return (
        catalog.get_type(partial.type_id),
        catalog.get_origin(partial.origin_kind, partial.origin_id),
    )


def _check_name(
    partial: PartialCharacter, catalog: Catalog, config: AssemblyConfig
) -> list[Violation]:
    step = Step.NAME_ENTRY
    if partial.name is None or not partial.name.strip():
        return [_error(ViolationCode.NAME_MISSING, "Character needs a name", step, "character.name")]
    if len(partial.name) > config.max_name_length:
        return [_error(
            ViolationCode.NAME_TOO_LONG,
            f"Name is {len(partial.name)} characters, limit is {config.max_name_length}",
            step, "character.name",
        )]
    return []


def _check_gender(
    partial: PartialCharacter, catalog: Catalog, config: AssemblyConfig
) -> list[Violation]:
    if partial.gender is None:
        return [_error(
            ViolationCode.GENDER_MISSING, "Gender not selected", Step.GENDER_SELECT, "character.gender",
        )]
    return []


def _check_type(
    partial: PartialCharacter, catalog: Catalog, config: AssemblyConfig
) -> list[Violation]:
    step = Step.TYPE_SELECT
    if partial.type_id is None:
        return [_error(ViolationCode.TYPE_MISSING, "Type not selected", step, "character.type")]
    if catalog.get_type(partial.type_id) is None:
        return [_error(
            ViolationCode.UNKNOWN_REFERENCE, f"Unknown type {partial.type_id!r}", step, "character.type",
        )]
    return []


def _check_origin(
    partial: PartialCharacter, catalog: Catalog, config: AssemblyConfig
) -> list[Violation]:
    step = Step.ORIGIN_SELECT
    if partial.origin_kind is None or partial.origin_id is None:
        return [_error(
            ViolationCode.ORIGIN_MISSING, "Descriptor or species not selected", step, "character.origin",
        )]
    if catalog.get_origin(partial.origin_kind, partial.origin_id) is None:
        return [_error(
            ViolationCode.UNKNOWN_REFERENCE,
            f"Unknown {partial.origin_kind.value} {partial.origin_id!r}",
            step, "character.origin",
        )]
    return []


def _check_focus(
    partial: PartialCharacter, catalog: Catalog, config: AssemblyConfig
) -> list[Violation]:
    step = Step.FOCUS_SELECT
    if partial.focus_id is None:
        return [_error(ViolationCode.FOCUS_MISSING, "Focus not selected", step, "character.focus")]
    focus = catalog.get_focus(partial.focus_id)
    if focus is None:
        return [_error(
            ViolationCode.UNKNOWN_REFERENCE, f"Unknown focus {partial.focus_id!r}", step, "character.focus",
        )]
    out: list[Violation] = []
    char_type = catalog.get_type(partial.type_id)
    if char_type is not None and not focus.suits(char_type.name):
        out.append(_error(
            ViolationCode.FOCUS_UNSUITABLE,
            f"Focus {focus.name!r} is not available to {char_type.name}",
            step, "character.focus",
        ))
    if partial.connection is not None and partial.connection not in focus.connections:
        out.append(_error(
            ViolationCode.CONNECTION_UNKNOWN,
            f"{partial.connection!r} is not a connection of {focus.name!r}",
            step, "character.connection",
        ))
    return out


def _check_stats(
    partial: PartialCharacter, catalog: Catalog, config: AssemblyConfig
) -> list[Violation]:
    step = Step.STAT_ALLOCATION
    char_type, origin = _resolve(partial, catalog)
    if char_type is None:
        return []  # reported by the type step
    allotment = Catalog.bonus_allotment(char_type, origin)
    if partial.bonus is None:
        return [_error(
            ViolationCode.BONUS_MISMATCH,
            f"No bonus points allocated; {allotment} to spend",
            step, "character.bonus",
        )]
    out = check_bonus_allocation(partial.bonus, allotment, exact=True)
    modifiers = origin.modifiers if origin is not None else Pools()
    for pool in compute_pools(char_type.base_pools, modifiers, partial.bonus):
        if pool.maximum <= 0:
            out.append(_error(
                ViolationCode.POOL_NOT_POSITIVE,
                f"{pool.attribute.value.capitalize()} pool would be {pool.maximum}",
                step, f"character.pools.{pool.attribute.value}",
            ))
    return out


def _check_abilities(
    partial: PartialCharacter, catalog: Catalog, config: AssemblyConfig
) -> list[Violation]:
    step = Step.ABILITY_SELECT
    char_type = catalog.get_type(partial.type_id)
    if char_type is None:
        return []
    out: list[Violation] = []
    if len(partial.abilities) != char_type.ability_count:
        out.append(_error(
            ViolationCode.ABILITY_COUNT_MISMATCH,
            f"{char_type.name} picks {char_type.ability_count} tier-1 abilities, "
            f"{len(partial.abilities)} selected",
            step, "character.abilities",
        ))
    offered = {catalog_key(a.name) for a in char_type.abilities}
    seen: set[str] = set()
    for i, name in enumerate(partial.abilities):
        key = catalog_key(name)
        if key not in offered:
            out.append(_error(
                ViolationCode.ABILITY_UNKNOWN,
                f"{name!r} is not a {char_type.name} tier-1 ability",
                step, f"character.abilities[{i}]",
            ))
        elif key in seen:
            out.append(_error(
                ViolationCode.ABILITY_DUPLICATE, f"{name!r} selected twice",
                step, f"character.abilities[{i}]",
            ))
        seen.add(key)
    return out


def _check_cyphers(
    partial: PartialCharacter, catalog: Catalog, config: AssemblyConfig
) -> list[Violation]:
    step = Step.CYPHER_SELECT
    out: list[Violation] = []
    char_type = catalog.get_type(partial.type_id)
    if char_type is not None and len(partial.cyphers) > char_type.cypher_limit:
        out.append(_error(
            ViolationCode.CYPHER_LIMIT_EXCEEDED,
            f"{len(partial.cyphers)} cyphers carried, {char_type.name} limit is "
            f"{char_type.cypher_limit}",
            step, "character.cyphers",
        ))
    if not partial.cyphers:
        out.append(_warning(ViolationCode.NO_CYPHERS, "No cyphers carried", step, "character.cyphers"))
    counts = Counter(catalog_key(c.cypher_id) for c in partial.cyphers)
    for i, inst in enumerate(partial.cyphers):
        location = f"character.cyphers[{i}]"
        if catalog.get_cypher(inst.cypher_id) is None:
            out.append(_error(
                ViolationCode.UNKNOWN_REFERENCE, f"Unknown cypher {inst.cypher_id!r}", step, location,
            ))
        if inst.level < 1:
            out.append(_warning(
                ViolationCode.LEVEL_BELOW_ONE, f"{inst.cypher_id} rolled level {inst.level}", step, location,
            ))
        key = catalog_key(inst.cypher_id)
        if counts[key] > 1:
            counts[key] = 0
            out.append(_warning(
                ViolationCode.DUPLICATE_CYPHER, f"{inst.cypher_id} carried more than once", step, location,
            ))
    for i, inst in enumerate(partial.artifacts):
        location = f"character.artifacts[{i}]"
        if catalog.get_artifact(inst.artifact_id) is None:
            out.append(_error(
                ViolationCode.UNKNOWN_REFERENCE, f"Unknown artifact {inst.artifact_id!r}", step, location,
            ))
        if inst.level < 1:
            out.append(_warning(
                ViolationCode.LEVEL_BELOW_ONE, f"{inst.artifact_id} rolled level {inst.level}", step, location,
            ))
    return out


def _check_oddity(
    partial: PartialCharacter, catalog: Catalog, config: AssemblyConfig
) -> list[Violation]:
    step = Step.ODDITY_SELECT
    out: list[Violation] = []
    if len(partial.oddities) != 1:
        out.append(_error(
            ViolationCode.ODDITY_COUNT_MISMATCH,
            f"Exactly one oddity required, {len(partial.oddities)} selected",
            step, "character.oddity",
        ))
    for name in partial.oddities:
        if catalog.get_oddity(name) is None:
            out.append(_error(
                ViolationCode.UNKNOWN_REFERENCE, f"Unknown oddity {name!r}", step, "character.oddity",
            ))
    return out


def _check_purchases(
    items: Sequence[LineItem], cap: int, catalog: Catalog
) -> list[Violation]:
    step = Step.EQUIPMENT_SHOP
    out: list[Violation] = []
    for i, line in enumerate(items):
        if catalog.get_item(line.item_id) is None:
            out.append(_error(
                ViolationCode.UNKNOWN_REFERENCE, f"Unknown item {line.item_id!r}",
                step, f"character.equipment[{i}]",
            ))
    spent = sum(line.cost for line in items)
    if spent > cap:
        out.append(_error(
            ViolationCode.OVER_BUDGET, f"Spent {spent} shins of {cap}", step, "character.equipment",
        ))
    return out


def _check_equipment(
    partial: PartialCharacter, catalog: Catalog, config: AssemblyConfig
) -> list[Violation]:
    if partial.ledger is None:
        return []
    char_type, origin = _resolve(partial, catalog)
    cap = partial.ledger.cap
    if char_type is not None:
        cap = min(cap, Catalog.starting_shins(char_type, origin))
    return _check_purchases(partial.ledger.items, cap, catalog)


StepCheck = Callable[[PartialCharacter, Catalog, AssemblyConfig], list[Violation]]

STEP_CHECKS: dict[Step, StepCheck] = {
    Step.NAME_ENTRY: _check_name,
    Step.GENDER_SELECT: _check_gender,
    Step.TYPE_SELECT: _check_type,
    Step.ORIGIN_SELECT: _check_origin,
    Step.FOCUS_SELECT: _check_focus,
    Step.STAT_ALLOCATION: _check_stats,
    Step.ABILITY_SELECT: _check_abilities,
    Step.CYPHER_SELECT: _check_cyphers,
    Step.ODDITY_SELECT: _check_oddity,
    Step.EQUIPMENT_SHOP: _check_equipment,
}


def validate_character(
    partial: PartialCharacter,
    catalog: Catalog,
    config: AssemblyConfig | None = None,
    steps: Iterable[Step] | None = None,
) -> list[Violation]:
    """Run the per-step checks for *steps* (default: all), in step order."""
    cfg = config or AssemblyConfig()
    selected = sorted(STEP_CHECKS) if steps is None else sorted(set(steps))
    violations: list[Violation] = []
    for step in selected:
        check = STEP_CHECKS.get(step)
        if check is not None:
            violations.extend(check(partial, catalog, cfg))
    return violations


# ===========================================================================
# Finalized sheet
# ===========================================================================


def _partial_from_sheet(sheet: CharacterSheet) -> PartialCharacter:
    if sheet.species_id is not None:
        kind, origin_id = OriginKind.SPECIES, sheet.species_id
    elif sheet.descriptor_id is not None:
        kind, origin_id = OriginKind.DESCRIPTOR, sheet.descriptor_id
    else:
        kind, origin_id = None, None
    return PartialCharacter(
        step=Step.FINALIZE,
        name=sheet.name,
        gender=sheet.gender,
        type_id=sheet.type_id,
        origin_kind=kind,
        origin_id=origin_id,
        focus_id=sheet.focus_id,
        bonus=sheet.bonus,
        abilities=[a.ability_id for a in sheet.abilities if a.source == "type"],
        cyphers=list(sheet.cyphers),
        artifacts=list(sheet.artifacts),
        oddities=[sheet.oddity_id],
    )


def validate_sheet(
    sheet: CharacterSheet,
    catalog: Catalog,
    config: AssemblyConfig | None = None,
) -> list[Violation]:
    """Re-check a finalized (or freshly loaded) sheet against *catalog*."""
    partial = _partial_from_sheet(sheet)
    violations = validate_character(partial, catalog, config, steps=list(STEP_CHECKS))
    if sheet.descriptor_id is not None and sheet.species_id is not None:
        violations.append(_error(
            ViolationCode.ORIGIN_MISSING,
            "Sheet names both a descriptor and a species",
            Step.ORIGIN_SELECT, "sheet.origin",
        ))

    char_type, origin = _resolve(partial, catalog)
    if char_type is None:
        return violations

    modifiers = origin.modifiers if origin is not None else Pools()
    expected = {p.attribute: p.maximum for p in compute_pools(char_type.base_pools, modifiers, sheet.bonus)}
    for pool in sheet.pools:
        if pool.maximum != expected.get(pool.attribute):
            violations.append(_error(
                ViolationCode.POOL_MISMATCH,
                f"{pool.attribute.value} maximum is {pool.maximum}, expected "
                f"{expected.get(pool.attribute)}",
                Step.STAT_ALLOCATION, f"sheet.pools.{pool.attribute.value}",
            ))
    if sheet.cypher_limit != char_type.cypher_limit:
        violations.append(_error(
            ViolationCode.CYPHER_LIMIT_EXCEEDED,
            f"Sheet cypher limit {sheet.cypher_limit} differs from {char_type.name}'s "
            f"{char_type.cypher_limit}",
            Step.CYPHER_SELECT, "sheet.cypher_limit",
        ))
    skills = Catalog.starting_skills(char_type, origin)
    if sheet.skills != skills:
        violations.append(_error(
            ViolationCode.SKILLS_MISMATCH,
            f"Sheet skills {sheet.skills} differ from {skills}",
            Step.ORIGIN_SELECT, "sheet.skills",
        ))
    armor = catalog.armor_value(char_type, origin)
    if sheet.armor != armor:
        violations.append(_error(
            ViolationCode.ARMOR_MISMATCH,
            f"Sheet armor is {sheet.armor}, expected {armor}",
            Step.ORIGIN_SELECT, "sheet.armor",
        ))

    starting = Catalog.starting_shins(char_type, origin)
    violations.extend(_check_purchases(sheet.equipment, starting, catalog))
    if sheet.shins != starting - sheet.equipment_cost:
        violations.append(_error(
            ViolationCode.SHINS_MISMATCH,
            f"Sheet carries {sheet.shins} shins, expected {starting - sheet.equipment_cost}",
            Step.EQUIPMENT_SHOP, "sheet.shins",
        ))
    return violations

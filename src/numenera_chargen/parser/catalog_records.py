"""Convert pre-parsed catalog records (plain dicts) into a typed Catalog.

Input is whatever a TOML/JSON loader produced: a mapping of category
name -> list of record dicts. Reading files is the caller's job.

Records follow the layout of the published data files, e.g. a type has
``stat_pools`` / ``edge`` / ``starting_tier`` / ``equipment`` tables and a
``tier_abilities`` list. Keys that aren't understood land in the record's
read-only ``extra`` mapping. A missing or mistyped required field raises
CatalogError naming the record.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

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
    Species,
)
from numenera_chargen.models.character import Pools, Skills
from numenera_chargen.models.constants import EquipmentCategory
from numenera_chargen.models.errors import CatalogError


logger = logging.getLogger(__name__)

EXPLORERS_PACK = "Explorer's Pack"

# Equipment table keys the shop sells from; other tables are ignored.
_EQUIPMENT_TABLES: dict[str, EquipmentCategory] = {
    "weapons": EquipmentCategory.WEAPONS,
    "armor": EquipmentCategory.ARMOR,
    "shields": EquipmentCategory.SHIELDS,
    "gear": EquipmentCategory.GEAR,
    "consumables": EquipmentCategory.CONSUMABLES,
    "clothing": EquipmentCategory.CLOTHING,
}


class _Record:
    """Tracks which keys of one raw record were consumed."""

    __slots__ = ("raw", "where", "_used")

    def __init__(self, raw: Any, where: str) -> None:
        if not isinstance(raw, Mapping):
            raise CatalogError(f"{where}: expected a table, got {type(raw).__name__}")
        self.raw = raw
        self.where = where
        self._used: set[str] = set()

    def req(self, key: str, kind: type | tuple[type, ...] = str) -> Any:
        if key not in self.raw:
            raise CatalogError(f"{self.where}: missing required field {key!r}")
        return self.opt(key, None, kind)

    def opt(self, key: str, default: Any, kind: type | tuple[type, ...] = str) -> Any:
        self._used.add(key)
        if key not in self.raw:
            return default
        value = self.raw[key]
        if isinstance(value, bool) and kind is int:
            raise CatalogError(f"{self.where}.{key}: expected int, got bool")
        if not isinstance(value, kind):
            raise CatalogError(
                f"{self.where}.{key}: expected {getattr(kind, '__name__', kind)}, "
                f"got {type(value).__name__}"
            )
        return value

    def table(self, key: str, required: bool = False) -> _Record:
        if required:
            raw = self.req(key, Mapping)
        else:
            raw = self.opt(key, {}, Mapping)
        return _Record(raw, f"{self.where}.{key}")

    def strings(self, key: str) -> tuple[str, ...]:
        values = self.opt(key, [], list)
        if not all(isinstance(v, str) for v in values):
            raise CatalogError(f"{self.where}.{key}: expected a list of strings")
        return tuple(values)

    def extra(self) -> Mapping[str, object]:
        rest = {k: v for k, v in self.raw.items() if k not in self._used}
        return MappingProxyType(rest)


def _pools(rec: _Record) -> Pools:
    return Pools(
        rec.opt("might", 0, int),
        rec.opt("speed", 0, int),
        rec.opt("intellect", 0, int),
    )


def _ability(raw: Any, where: str) -> Ability:
    if isinstance(raw, str):
        return Ability(raw)
    rec = _Record(raw, where)
    return Ability(
        name=rec.req("name"),
        cost=rec.opt("cost", ""),
        kind=rec.opt("type", ""),
        description=rec.opt("description", ""),
    )


def _abilities(rec: _Record, key: str) -> tuple[Ability, ...]:
    return tuple(
        _ability(raw, f"{rec.where}.{key}[{i}]")
        for i, raw in enumerate(rec.opt(key, [], list))
    )


def _names(rec: _Record, key: str) -> tuple[str, ...]:
    """A list of names, or a single name."""
    value = rec.opt(key, [], (list, str))
    if isinstance(value, str):
        return (value,)
    if not all(isinstance(v, str) for v in value):
        raise CatalogError(f"{rec.where}.{key}: expected a list of strings")
    return tuple(value)


def _skills(rec: _Record) -> Skills:
    """``skills`` table; inabilities may be a list or a ``{hindered = [...]}`` table."""
    skills = rec.table("skills")
    inabilities = list(skills.strings("hindered"))
    raw = skills.opt("inabilities", [], (list, Mapping))
    if isinstance(raw, Mapping):
        inabilities.extend(_Record(raw, f"{skills.where}.inabilities").strings("hindered"))
    else:
        inabilities.extend(_names(skills, "inabilities"))
    return Skills(
        trained=skills.strings("trained"),
        specialized=skills.strings("specialized"),
        inabilities=tuple(dict.fromkeys(inabilities)),
    )


def _carried(equipment: _Record) -> tuple[tuple[str, ...], tuple[str, ...]]:
    """(starting gear, worn armor) from a type or descriptor ``equipment`` table."""
    armor = _names(equipment, "armor")
    gear = [*_names(equipment, "weapons"), *armor]
    if equipment.opt("explorer_pack", False, bool):
        gear.append(EXPLORERS_PACK)
    gear.extend(_names(equipment, "other"))
    return tuple(dict.fromkeys(gear)), armor


# ---------------------------------------------------------------------------
# Per-category converters
# ---------------------------------------------------------------------------


def type_from_record(raw: Any, where: str = "types") -> CharacterType:
    rec = _Record(raw, where)
    name = rec.req("name")
    rec.where = f"types[{name}]"
    stats = rec.table("stat_pools", required=True)
    tier = rec.table("starting_tier", required=True)
    equipment = rec.table("equipment")
    gear, armor = _carried(equipment)

    abilities: tuple[Ability, ...] = ()
    ability_count = 0
    for i, entry in enumerate(rec.opt("tier_abilities", [], list)):
        block = _Record(entry, f"{rec.where}.tier_abilities[{i}]")
        if block.req("tier", int) == 1:
            ability_count = block.req("count", int)
            abilities = _abilities(block, "abilities")

    return CharacterType(
        name=name,
        base_pools=_pools(stats),
        bonus_points=stats.req("bonus_points", int),
        edge=_pools(rec.table("edge")),
        effort=tier.req("effort", int),
        cypher_limit=tier.req("cypher_limit", int),
        shins=equipment.opt("shins", 0, int),
        abilities=abilities,
        ability_count=ability_count,
        special_abilities=_names(rec, "special_abilities"),
        skills=_skills(rec),
        armor=armor,
        starting_equipment=gear,
        extra=rec.extra(),
    )


def descriptor_from_record(raw: Any, where: str = "descriptors") -> Descriptor:
    rec = _Record(raw, where)
    name = rec.req("name")
    rec.where = f"descriptors[{name}]"
    links: list[str] = []
    for i, link in enumerate(rec.opt("initial_links", [], list)):
        if not isinstance(link, str):
            link = _Record(link, f"{rec.where}.initial_links[{i}]").req("text")
        links.append(link)
    equipment = rec.table("equipment")
    gear, armor = _carried(equipment)
    return Descriptor(
        name=name,
        modifiers=_pools(rec.table("stat_modifiers")),
        shins=equipment.opt("shins", 0, int),
        special_abilities=_abilities(rec, "special_abilities"),
        initial_links=tuple(links),
        skills=_skills(rec),
        armor=armor,
        starting_equipment=gear,
        extra=rec.extra(),
    )


def species_from_record(raw: Any, where: str = "species") -> Species:
    rec = _Record(raw, where)
    name = rec.req("name")
    rec.where = f"species[{name}]"
    mods = rec.table("stat_modifiers")
    equipment = rec.table("equipment")
    return Species(
        name=name,
        modifiers=_pools(mods),
        initial_bonus_points=mods.opt("initial_bonus_points", None, int),
        shins=equipment.opt("starting_shins", 0, int),
        abilities=_abilities(rec, "abilities"),
        skills=_skills(rec),
        starting_equipment=equipment.strings("items"),
        extra=rec.extra(),
    )


def focus_from_record(raw: Any, where: str = "foci") -> Focus:
    rec = _Record(raw, where)
    name = rec.req("name")
    rec.where = f"foci[{name}]"
    return Focus(
        name=name,
        suitable_types=rec.strings("suitable_types"),
        ability=_ability(rec.req("tier_1_ability", (Mapping, str)), f"{rec.where}.tier_1_ability"),
        connections=rec.strings("connections"),
        starting_equipment=rec.strings("equipment"),
        extra=rec.extra(),
    )


def cypher_from_record(raw: Any, where: str = "cyphers") -> Cypher:
    rec = _Record(raw, where)
    name = rec.req("name")
    rec.where = f"cyphers[{name}]"
    return Cypher(
        name=name,
        level_formula=rec.req("level_formula"),
        kind=rec.opt("type", ""),
        duration=rec.opt("duration", "single use"),
        effect=rec.opt("effect", ""),
        form=rec.opt("form", ""),
        extra=rec.extra(),
    )


def artifact_from_record(raw: Any, where: str = "artifacts") -> Artifact:
    rec = _Record(raw, where)
    name = rec.req("name")
    rec.where = f"artifacts[{name}]"
    return Artifact(
        name=name,
        level_formula=rec.req("level_formula"),
        depletion=rec.opt("depletion", ""),
        effect=rec.opt("effect", ""),
        form=rec.opt("form", ""),
        extra=rec.extra(),
    )


def oddity_from_record(raw: Any, where: str = "oddities") -> Oddity:
    if isinstance(raw, str):
        return Oddity(raw)
    rec = _Record(raw, where)
    name = rec.req("name")
    rec.where = f"oddities[{name}]"
    return Oddity(name=name, description=rec.opt("description", ""), extra=rec.extra())


def item_from_record(
    raw: Any, category: EquipmentCategory | None = None, where: str = "equipment"
) -> EquipmentItem:
    """Shop item; *category* comes from the enclosing table when grouped."""
    rec = _Record(raw, where)
    name = rec.req("name")
    rec.where = f"equipment[{name}]"
    subcategory = ""
    if category is None:
        label = rec.req("category")
        try:
            category = EquipmentCategory(label)
        except ValueError:
            raise CatalogError(f"{rec.where}: unknown shop category {label!r}") from None
    else:
        # Grouped tables use "category" for a sub-kind (e.g. "Light").
        subcategory = rec.opt("category", "")
    cost = rec.req("cost", int)
    notes = rec.opt("notes", "")
    armor_bonus = rec.opt("armor_bonus", 0, int)
    extra = dict(rec.extra())
    if subcategory:
        extra["subcategory"] = subcategory
    return EquipmentItem(
        name=name,
        category=category,
        cost=cost,
        notes=notes,
        armor_bonus=armor_bonus,
        extra=MappingProxyType(extra),
    )


def _equipment(raw: Any) -> list[EquipmentItem]:
    """Accept a flat list (each item names its category) or per-category tables."""
    if isinstance(raw, list):
        return [item_from_record(r, where=f"equipment[{i}]") for i, r in enumerate(raw)]
    if not isinstance(raw, Mapping):
        raise CatalogError("equipment: expected a list or a table of category lists")
    items: list[EquipmentItem] = []
    for key, records in raw.items():
        category = _EQUIPMENT_TABLES.get(key)
        if category is None:
            logger.debug("equipment: skipping table %r (not sold in the shop)", key)
            continue
        if not isinstance(records, list):
            raise CatalogError(f"equipment.{key}: expected a list")
        items.extend(
            item_from_record(r, category, f"equipment.{key}[{i}]") for i, r in enumerate(records)
        )
    return items


def _convert(records: Any, category: str, fn) -> list:
    if records is None:
        return []
    if not isinstance(records, list):
        raise CatalogError(f"{category}: expected a list of records")
    return [fn(raw, f"{category}[{i}]") for i, raw in enumerate(records)]


def catalog_from_records(data: Mapping[str, Any]) -> Catalog:
    """Build a Catalog from a mapping of category -> records.

    Unknown top-level categories are ignored with a debug log line.
    The result is not validated; pass it to ``require_valid_catalog``.
    """
    known = {
        "types", "descriptors", "species", "foci", "cyphers",
        "artifacts", "oddities", "equipment",
    }
    for key in data:
        if key not in known:
            logger.debug("catalog: ignoring unknown category %r", key)
    catalog = Catalog(
        types=_convert(data.get("types"), "types", type_from_record),
        descriptors=_convert(data.get("descriptors"), "descriptors", descriptor_from_record),
        species=_convert(data.get("species"), "species", species_from_record),
        foci=_convert(data.get("foci"), "foci", focus_from_record),
        cyphers=_convert(data.get("cyphers"), "cyphers", cypher_from_record),
        artifacts=_convert(data.get("artifacts"), "artifacts", artifact_from_record),
        oddities=_convert(data.get("oddities"), "oddities", oddity_from_record),
        equipment=_equipment(data.get("equipment", [])),
    )
    logger.info("catalog loaded: %s", catalog.summary())
    return catalog


def merge_records(sources: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    """Concatenate per-category record lists from several sources, in order."""
    merged: dict[str, Any] = {}
    for source in sources:
        for key, records in source.items():
            if key == "equipment" and isinstance(records, Mapping):
                bucket = merged.setdefault(key, {})
                if not isinstance(bucket, dict):
                    raise CatalogError("equipment: cannot mix list and table layouts")
                for table, rows in records.items():
                    bucket.setdefault(table, []).extend(rows)
            else:
                bucket = merged.setdefault(key, [])
                if not isinstance(bucket, list) or not isinstance(records, list):
                    raise CatalogError(f"{key}: cannot mix list and table layouts")
                bucket.extend(records)
    return merged

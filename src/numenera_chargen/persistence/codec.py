"""JSON persistence for finalized character sheets.

The document carries every CharacterSheet field, including rolled cypher
and artifact levels, so loading never re-rolls anything. Decoding checks
shapes strictly and confirms every id still resolves against the catalog
the codec was built with.

Writes are all-or-nothing: the document is staged in a temporary file in
the target directory, flushed to disk, then published with ``os.replace``.
The temporary file is removed on every failure path.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from numenera_chargen.models.catalog import Catalog, catalog_key
from numenera_chargen.models.character import (
    AbilityEntry,
    ArtifactInstance,
    CharacterSheet,
    CypherInstance,
    LineItem,
    Pools,
    Skills,
    StatPool,
)
from numenera_chargen.models.constants import ATTRIBUTES, Attribute, EquipmentCategory, Gender
from numenera_chargen.models.errors import CorruptData, PersistenceError


logger = logging.getLogger(__name__)

FORMAT_NAME = "numenera-character"
FORMAT_VERSION = 1


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def _pools_payload(pools: Pools) -> dict[str, int]:
    return pools.as_dict()


def sheet_to_dict(sheet: CharacterSheet) -> dict[str, Any]:
    """Plain-JSON view of *sheet* including the format header."""
    return {
        "format": FORMAT_NAME,
        "version": FORMAT_VERSION,
        "name": sheet.name,
        "gender": sheet.gender.value,
        "tier": sheet.tier,
        "type": sheet.type_id,
        "descriptor": sheet.descriptor_id,
        "species": sheet.species_id,
        "focus": sheet.focus_id,
        "pools": {
            p.attribute.value: {"current": p.current, "maximum": p.maximum}
            for p in sheet.pools
        },
        "bonus": _pools_payload(sheet.bonus),
        "edge": _pools_payload(sheet.edge),
        "effort": sheet.effort,
        "cypher_limit": sheet.cypher_limit,
        "abilities": [
            {"id": a.ability_id, "source": a.source, "text": a.text}
            for a in sheet.abilities
        ],
        "cyphers": [
            {"id": c.cypher_id, "level": c.level, "duration": c.duration}
            for c in sheet.cyphers
        ],
        "artifacts": [
            {"id": a.artifact_id, "level": a.level, "depletion": a.depletion}
            for a in sheet.artifacts
        ],
        "oddity": sheet.oddity_id,
        "equipment": [
            {"id": e.item_id, "category": e.category.value, "cost": e.cost}
            for e in sheet.equipment
        ],
        "starting_gear": list(sheet.starting_gear),
        "shins": sheet.shins,
        "background": sheet.background,
        "skills": {
            "trained": list(sheet.skills.trained),
            "specialized": list(sheet.skills.specialized),
            "inabilities": list(sheet.skills.inabilities),
        },
        "armor": sheet.armor,
    }


# ---------------------------------------------------------------------------
# Decoding helpers
# ---------------------------------------------------------------------------


def _field(data: dict, key: str, kind: type | tuple[type, ...], where: str = "sheet") -> Any:
    if key not in data:
        raise CorruptData(f"{where}: missing field {key!r}")
    value = data[key]
    # bool is an int subclass; never accept it where a number is expected.
    if isinstance(value, bool) and kind is int:
        raise CorruptData(f"{where}.{key}: expected int, got bool")
    if not isinstance(value, kind):
        raise CorruptData(
            f"{where}.{key}: expected {getattr(kind, '__name__', kind)}, got {type(value).__name__}"
        )
    return value


def _optional_str(data: dict, key: str) -> str | None:
    if key not in data:
        raise CorruptData(f"sheet: missing field {key!r}")
    value = data[key]
    if value is not None and not isinstance(value, str):
        raise CorruptData(f"sheet.{key}: expected string or null")
    return value


def _records(data: dict, key: str) -> list[dict]:
    items = _field(data, key, list)
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise CorruptData(f"sheet.{key}[{i}]: expected object")
    return items


def _strings(data: dict, key: str, where: str = "sheet") -> tuple[str, ...]:
    values = _field(data, key, list, where)
    if not all(isinstance(v, str) for v in values):
        raise CorruptData(f"{where}.{key}: expected a list of strings")
    return tuple(values)


def _pools_from(data: dict, key: str) -> Pools:
    raw = _field(data, key, dict)
    return Pools.from_mapping({
        attr: _field(raw, attr.value, int, f"sheet.{key}") for attr in ATTRIBUTES
    })


def _enum(enum_cls, value: str, where: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise CorruptData(f"{where}: unknown value {value!r}") from None


class CharacterCodec:
    """Encodes sheets to JSON bytes and decodes them against a Catalog."""

    __slots__ = ("_catalog",)

    def __init__(self, catalog: Catalog) -> None:
        self._catalog = catalog

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    def encode(self, sheet: CharacterSheet) -> bytes:
        text = json.dumps(sheet_to_dict(sheet), indent=2, sort_keys=True, ensure_ascii=False)
        return text.encode("utf-8")

    def decode(self, blob: bytes | str) -> CharacterSheet:
        """Rebuild a CharacterSheet; any shape or reference problem raises CorruptData."""
        try:
            text = blob.decode("utf-8") if isinstance(blob, (bytes, bytearray)) else blob
            data = json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise CorruptData(f"Not a JSON document: {exc}") from exc
        if not isinstance(data, dict):
            raise CorruptData("Top level must be an object")
        if data.get("format") != FORMAT_NAME:
            raise CorruptData(f"Unexpected format {data.get('format')!r}")
        version = _field(data, "version", int)
        if version != FORMAT_VERSION:
            raise CorruptData(f"Unsupported version {version}")

        sheet = self._sheet_from(data)
        self._check_references(sheet)
        return sheet

    def _sheet_from(self, data: dict) -> CharacterSheet:
        raw_pools = _field(data, "pools", dict)
        pools = []
        for attr in ATTRIBUTES:
            entry = _field(raw_pools, attr.value, dict, "sheet.pools")
            where = f"sheet.pools.{attr.value}"
            pools.append(StatPool(
                attribute=Attribute(attr.value),
                current=_field(entry, "current", int, where),
                maximum=_field(entry, "maximum", int, where),
            ))

        abilities = tuple(
            AbilityEntry(
                _field(a, "id", str, "sheet.abilities"),
                _field(a, "source", str, "sheet.abilities"),
                _field(a, "text", str, "sheet.abilities"),
            )
            for a in _records(data, "abilities")
        )
        cyphers = tuple(
            CypherInstance(
                _field(c, "id", str, "sheet.cyphers"),
                _field(c, "level", int, "sheet.cyphers"),
                _field(c, "duration", str, "sheet.cyphers"),
            )
            for c in _records(data, "cyphers")
        )
        artifacts = tuple(
            ArtifactInstance(
                _field(a, "id", str, "sheet.artifacts"),
                _field(a, "level", int, "sheet.artifacts"),
                _field(a, "depletion", str, "sheet.artifacts"),
            )
            for a in _records(data, "artifacts")
        )
        equipment = tuple(
            LineItem(
                _field(e, "id", str, "sheet.equipment"),
                _enum(EquipmentCategory, _field(e, "category", str, "sheet.equipment"),
                      "sheet.equipment.category"),
                _field(e, "cost", int, "sheet.equipment"),
            )
            for e in _records(data, "equipment")
        )
        raw_skills = _field(data, "skills", dict)
        skills = Skills(
            trained=_strings(raw_skills, "trained", "sheet.skills"),
            specialized=_strings(raw_skills, "specialized", "sheet.skills"),
            inabilities=_strings(raw_skills, "inabilities", "sheet.skills"),
        )

        descriptor = _optional_str(data, "descriptor")
        species = _optional_str(data, "species")
        if (descriptor is None) == (species is None):
            raise CorruptData("sheet: exactly one of descriptor/species must be set")

        return CharacterSheet(
            name=_field(data, "name", str),
            gender=_enum(Gender, _field(data, "gender", str), "sheet.gender"),
            type_id=_field(data, "type", str),
            descriptor_id=descriptor,
            species_id=species,
            focus_id=_field(data, "focus", str),
            pools=tuple(pools),
            bonus=_pools_from(data, "bonus"),
            edge=_pools_from(data, "edge"),
            effort=_field(data, "effort", int),
            cypher_limit=_field(data, "cypher_limit", int),
            abilities=abilities,
            cyphers=cyphers,
            oddity_id=_field(data, "oddity", str),
            tier=_field(data, "tier", int),
            artifacts=artifacts,
            equipment=equipment,
            starting_gear=_strings(data, "starting_gear"),
            shins=_field(data, "shins", int),
            background=_field(data, "background", str),
            skills=skills,
            armor=_field(data, "armor", int),
        )

    def _check_references(self, sheet: CharacterSheet) -> None:
        cat = self._catalog
        missing: list[str] = []
        if cat.get_type(sheet.type_id) is None:
            missing.append(f"type {sheet.type_id!r}")
        if sheet.descriptor_id is not None and cat.get_descriptor(sheet.descriptor_id) is None:
            missing.append(f"descriptor {sheet.descriptor_id!r}")
        if sheet.species_id is not None and cat.get_species(sheet.species_id) is None:
            missing.append(f"species {sheet.species_id!r}")
        if cat.get_focus(sheet.focus_id) is None:
            missing.append(f"focus {sheet.focus_id!r}")
        if cat.get_oddity(sheet.oddity_id) is None:
            missing.append(f"oddity {sheet.oddity_id!r}")
        missing.extend(f"cypher {c.cypher_id!r}" for c in sheet.cyphers if cat.get_cypher(c.cypher_id) is None)
        missing.extend(
            f"artifact {a.artifact_id!r}" for a in sheet.artifacts if cat.get_artifact(a.artifact_id) is None
        )
        missing.extend(f"item {e.item_id!r}" for e in sheet.equipment if cat.get_item(e.item_id) is None)
        missing.extend(f"starting gear {g!r}" for g in sheet.starting_gear if cat.get_item(g) is None)
        missing.extend(self._unresolved_abilities(sheet))
        if missing:
            raise CorruptData("Unresolved references: " + ", ".join(missing))

    def _unresolved_abilities(self, sheet: CharacterSheet) -> list[str]:
        """Ability entries whose source record doesn't offer them.

        Entries whose owning record is itself missing are skipped; that
        record is already reported.
        """
        cat = self._catalog
        char_type = cat.get_type(sheet.type_id)
        focus = cat.get_focus(sheet.focus_id)
        descriptor = cat.get_descriptor(sheet.descriptor_id)
        species = cat.get_species(sheet.species_id)
        offered: dict[str, set[str] | None] = {
            "type": {catalog_key(a.name) for a in char_type.abilities} if char_type else None,
            "special": {catalog_key(n) for n in char_type.special_abilities} if char_type else None,
            "focus": {catalog_key(focus.ability.name)} if focus else None,
            "descriptor": (
                {catalog_key(a.name) for a in descriptor.special_abilities} if descriptor else None
            ),
            "species": {catalog_key(a.name) for a in species.abilities} if species else None,
        }
        missing: list[str] = []
        for entry in sheet.abilities:
            if entry.source not in offered:
                missing.append(f"ability {entry.ability_id!r} (unknown source {entry.source!r})")
                continue
            names = offered[entry.source]
            if names is not None and catalog_key(entry.ability_id) not in names:
                missing.append(f"{entry.source} ability {entry.ability_id!r}")
        return missing


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


def save_sheet(codec: CharacterCodec, sheet: CharacterSheet, path: str | os.PathLike) -> Path:
    """Atomically write *sheet* to *path*; the sheet itself is never modified."""
    target = Path(path)
    payload = codec.encode(sheet)
    tmp_name: str | None = None
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
        with os.fdopen(fd, "wb") as fh:
            fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, target)
        tmp_name = None
    except OSError as exc:
        raise PersistenceError(f"Could not save {target}: {exc}", path=target) from exc
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
    logger.info("saved %s to %s", sheet.name, target)
    return target


def load_sheet(codec: CharacterCodec, path: str | os.PathLike) -> CharacterSheet:
    target = Path(path)
    try:
        blob = target.read_bytes()
    except OSError as exc:
        raise PersistenceError(f"Could not read {target}: {exc}", path=target) from exc
    return codec.decode(blob)

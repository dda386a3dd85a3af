"""Typed catalog records and the frozen Catalog container.

Each record has a bounded set of known fields plus a read-only ``extra``
mapping for attributes added by later rulebook supplements. Records are
identified by name; lookups ignore case (Unicode case folding) the way
the printed rules refer to entries ("Light Armor" and "light armor" are
the same item).

A Catalog is built once and never mutated, so any number of assembly
sessions may read it concurrently.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from numenera_chargen.models.character import Pools, Skills
from numenera_chargen.models.constants import EquipmentCategory, OriginKind


_EMPTY: Mapping[str, object] = MappingProxyType({})


def catalog_key(name: str) -> str:
    """Normalized lookup key for a record name."""
    return name.strip().casefold()


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Ability:
    """A tier ability, focus ability, or species ability."""

    name: str
    cost: str = ""
    kind: str = ""            # "Action" | "Enabler" | ...
    description: str = ""

    @property
    def resolved_text(self) -> str:
        meta = ", ".join(part for part in (self.cost, self.kind) if part)
        head = f"{self.name} ({meta})" if meta else self.name
        return f"{head}: {self.description}" if self.description else head


@dataclass(frozen=True, slots=True)
class CharacterType:
    """A character type (Glaive, Nano, Jack, ...)."""

    name: str
    base_pools: Pools
    bonus_points: int
    edge: Pools
    effort: int
    cypher_limit: int
    shins: int
    abilities: tuple[Ability, ...] = ()          # tier-1 options
    ability_count: int = 0                       # how many tier-1 picks
    special_abilities: tuple[str, ...] = ()
    skills: Skills = Skills()
    armor: tuple[str, ...] = ()                  # worn armor, first match counts
    starting_equipment: tuple[str, ...] = ()
    extra: Mapping[str, object] = field(default_factory=lambda: _EMPTY, compare=False)


@dataclass(frozen=True, slots=True)
class Descriptor:
    name: str
    modifiers: Pools = Pools()
    shins: int = 0
    special_abilities: tuple[Ability, ...] = ()
    initial_links: tuple[str, ...] = ()
    skills: Skills = Skills()
    armor: tuple[str, ...] = ()
    starting_equipment: tuple[str, ...] = ()
    extra: Mapping[str, object] = field(default_factory=lambda: _EMPTY, compare=False)

    kind = OriginKind.DESCRIPTOR


@dataclass(frozen=True, slots=True)
class Species:
    """A species; replaces the descriptor and may override the bonus allotment."""

    name: str
    modifiers: Pools = Pools()
    initial_bonus_points: int | None = None
    shins: int = 0
    abilities: tuple[Ability, ...] = ()
    skills: Skills = Skills()
    starting_equipment: tuple[str, ...] = ()
    extra: Mapping[str, object] = field(default_factory=lambda: _EMPTY, compare=False)

    kind = OriginKind.SPECIES


Origin = Descriptor | Species


@dataclass(frozen=True, slots=True)
class Focus:
    name: str
    suitable_types: tuple[str, ...]
    ability: Ability
    connections: tuple[str, ...] = ()
    starting_equipment: tuple[str, ...] = ()
    extra: Mapping[str, object] = field(default_factory=lambda: _EMPTY, compare=False)

    def suits(self, type_name: str) -> bool:
        key = catalog_key(type_name)
        return any(catalog_key(t) == key for t in self.suitable_types)


@dataclass(frozen=True, slots=True)
class Cypher:
    """A single-use device; its level is rolled from ``level_formula``."""

    name: str
    level_formula: str
    kind: str = ""            # "anoetic" | "occultic"
    duration: str = "single use"
    effect: str = ""
    form: str = ""
    extra: Mapping[str, object] = field(default_factory=lambda: _EMPTY, compare=False)


@dataclass(frozen=True, slots=True)
class Artifact:
    name: str
    level_formula: str
    depletion: str = ""
    effect: str = ""
    form: str = ""
    extra: Mapping[str, object] = field(default_factory=lambda: _EMPTY, compare=False)


@dataclass(frozen=True, slots=True)
class Oddity:
    name: str
    description: str = ""
    extra: Mapping[str, object] = field(default_factory=lambda: _EMPTY, compare=False)


@dataclass(frozen=True, slots=True)
class EquipmentItem:
    name: str
    category: EquipmentCategory
    cost: int
    notes: str = ""
    armor_bonus: int = 0
    extra: Mapping[str, object] = field(default_factory=lambda: _EMPTY, compare=False)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


def _index(records: Iterable) -> Mapping[str, object]:
    """First-wins name index; duplicates are reported by the validator."""
    index: dict[str, object] = {}
    for rec in records:
        index.setdefault(catalog_key(rec.name), rec)
    return MappingProxyType(index)


class Catalog:
    """Read-only collection of every record an assembly may reference.

    Records keep their source order (option lists are presented in that
    order). Lookups by name return None when the name is unknown.
    """

    __slots__ = (
        "types", "descriptors", "species", "foci", "cyphers",
        "artifacts", "oddities", "equipment", "_indexes", "_frozen",
    )

    def __init__(
        self,
        types: Iterable[CharacterType] = (),
        descriptors: Iterable[Descriptor] = (),
        species: Iterable[Species] = (),
        foci: Iterable[Focus] = (),
        cyphers: Iterable[Cypher] = (),
        artifacts: Iterable[Artifact] = (),
        oddities: Iterable[Oddity] = (),
        equipment: Iterable[EquipmentItem] = (),
    ) -> None:
        self.types: tuple[CharacterType, ...] = tuple(types)
        self.descriptors: tuple[Descriptor, ...] = tuple(descriptors)
        self.species: tuple[Species, ...] = tuple(species)
        self.foci: tuple[Focus, ...] = tuple(foci)
        self.cyphers: tuple[Cypher, ...] = tuple(cyphers)
        self.artifacts: tuple[Artifact, ...] = tuple(artifacts)
        self.oddities: tuple[Oddity, ...] = tuple(oddities)
        self.equipment: tuple[EquipmentItem, ...] = tuple(equipment)
        self._indexes: Mapping[str, Mapping[str, object]] = MappingProxyType({
            "types": _index(self.types),
            "descriptors": _index(self.descriptors),
            "species": _index(self.species),
            "foci": _index(self.foci),
            "cyphers": _index(self.cyphers),
            "artifacts": _index(self.artifacts),
            "oddities": _index(self.oddities),
            "equipment": _index(self.equipment),
        })
        self._frozen = True

    def __setattr__(self, name: str, value: object) -> None:
        if getattr(self, "_frozen", False):
            raise AttributeError("Catalog is read-only after construction")
        object.__setattr__(self, name, value)

    def categories(self) -> dict[str, tuple]:
        """Category name -> records, in a fixed order."""
        return {
            "types": self.types,
            "descriptors": self.descriptors,
            "species": self.species,
            "foci": self.foci,
            "cyphers": self.cyphers,
            "artifacts": self.artifacts,
            "oddities": self.oddities,
            "equipment": self.equipment,
        }

    def _get(self, category: str, name: str | None):
        if name is None:
            return None
        return self._indexes[category].get(catalog_key(name))

    # --- Lookups -----------------------------------------------------------

    def get_type(self, name: str | None) -> CharacterType | None:
        return self._get("types", name)

    def get_descriptor(self, name: str | None) -> Descriptor | None:
        return self._get("descriptors", name)

    def get_species(self, name: str | None) -> Species | None:
        return self._get("species", name)

    def get_focus(self, name: str | None) -> Focus | None:
        return self._get("foci", name)

    def get_cypher(self, name: str | None) -> Cypher | None:
        return self._get("cyphers", name)

    def get_artifact(self, name: str | None) -> Artifact | None:
        return self._get("artifacts", name)

    def get_oddity(self, name: str | None) -> Oddity | None:
        return self._get("oddities", name)

    def get_item(self, name: str | None) -> EquipmentItem | None:
        return self._get("equipment", name)

    def get_origin(self, kind: OriginKind | None, name: str | None) -> Origin | None:
        if kind is OriginKind.DESCRIPTOR:
            return self.get_descriptor(name)
        if kind is OriginKind.SPECIES:
            return self.get_species(name)
        return None

    def find_origin(self, name: str) -> Origin | None:
        """Resolve a name as a species first, then as a descriptor."""
        return self.get_species(name) or self.get_descriptor(name)

    # --- Queries -----------------------------------------------------------

    def origins(self) -> list[Origin]:
        """Every descriptor followed by every species."""
        return [*self.descriptors, *self.species]

    def suitable_foci(self, type_name: str) -> list[Focus]:
        """Foci whose suitable-type list contains *type_name*."""
        return [f for f in self.foci if f.suits(type_name)]

    def shop_items(self, category: EquipmentCategory | None = None) -> list[EquipmentItem]:
        if category is None:
            return list(self.equipment)
        return [item for item in self.equipment if item.category is category]

    @staticmethod
    def bonus_allotment(char_type: CharacterType, origin: Origin | None) -> int:
        """Bonus points to distribute; a species may override the type's pool."""
        if isinstance(origin, Species) and origin.initial_bonus_points is not None:
            return origin.initial_bonus_points
        return char_type.bonus_points

    @staticmethod
    def starting_shins(char_type: CharacterType, origin: Origin | None) -> int:
        """Starting shins = type shins + descriptor/species shins."""
        return char_type.shins + (origin.shins if origin is not None else 0)

    @staticmethod
    def starting_skills(char_type: CharacterType, origin: Origin | None) -> Skills:
        """Type skills, then the descriptor or species skills."""
        if origin is None:
            return char_type.skills
        return char_type.skills.merge(origin.skills)

    def armor_value(self, char_type: CharacterType, origin: Origin | None) -> int:
        """Armor bonus of the first starting armor that resolves to a shop item.

        Type armor wins over descriptor armor; species grant none.
        """
        worn = list(char_type.armor)
        if isinstance(origin, Descriptor):
            worn.extend(origin.armor)
        for name in worn:
            item = self.get_item(name)
            if item is not None:
                return item.armor_bonus
        return 0

    def summary(self) -> dict[str, int]:
        return {name: len(records) for name, records in self.categories().items()}

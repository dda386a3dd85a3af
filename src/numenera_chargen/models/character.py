"""Character data model.

PartialCharacter is the mutable, single-owner build-in-progress value an
AssemblyEngine works on. CharacterSheet is the immutable result of a
successful finalize and the only form that is ever persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from numenera_chargen.models.constants import (
    ATTRIBUTES,
    STARTING_TIER,
    Attribute,
    EquipmentCategory,
    Gender,
    OriginKind,
    Step,
)

if TYPE_CHECKING:
    from numenera_chargen.engine.ledger import BudgetLedger


@dataclass(frozen=True, slots=True)
class Pools:
    """One integer per attribute: base pools, modifiers, bonus points, or Edge."""

    might: int = 0
    speed: int = 0
    intellect: int = 0

    def get(self, attr: Attribute) -> int:
        return getattr(self, attr.value)

    def total(self) -> int:
        return self.might + self.speed + self.intellect

    def __add__(self, other: Pools) -> Pools:
        return Pools(
            self.might + other.might,
            self.speed + other.speed,
            self.intellect + other.intellect,
        )

    def as_dict(self) -> dict[str, int]:
        return {attr.value: self.get(attr) for attr in ATTRIBUTES}

    @classmethod
    def from_mapping(cls, values: dict[Attribute, int]) -> Pools:
        return cls(*(int(values.get(attr, 0)) for attr in ATTRIBUTES))


@dataclass(frozen=True, slots=True)
class Skills:
    """Trained, specialized and inability skill names.

    Merging keeps first-seen order and drops repeats within each list.
    """

    trained: tuple[str, ...] = ()
    specialized: tuple[str, ...] = ()
    inabilities: tuple[str, ...] = ()

    def merge(self, other: Skills) -> Skills:
        return Skills(
            tuple(dict.fromkeys((*self.trained, *other.trained))),
            tuple(dict.fromkeys((*self.specialized, *other.specialized))),
            tuple(dict.fromkeys((*self.inabilities, *other.inabilities))),
        )

    def level(self, skill: str) -> int:
        """2 specialized, 1 trained, -1 inability, 0 untrained."""
        key = skill.casefold()
        if any(s.casefold() == key for s in self.specialized):
            return 2
        if any(s.casefold() == key for s in self.trained):
            return 1
        if any(s.casefold() == key for s in self.inabilities):
            return -1
        return 0


@dataclass(frozen=True, slots=True)
class StatPool:
    """Current/maximum pair for a single attribute."""

    attribute: Attribute
    current: int
    maximum: int


def compute_pools(base: Pools, modifiers: Pools, bonus: Pools) -> tuple[StatPool, ...]:
    """Maximum = type base + origin modifier + bonus allocation; current starts full."""
    maxima = base + modifiers + bonus
    return tuple(
        StatPool(attribute=attr, current=maxima.get(attr), maximum=maxima.get(attr))
        for attr in ATTRIBUTES
    )


@dataclass(frozen=True, slots=True)
class CypherInstance:
    """A cypher with its level already rolled."""

    cypher_id: str
    level: int
    duration: str


@dataclass(frozen=True, slots=True)
class ArtifactInstance:
    artifact_id: str
    level: int
    depletion: str


@dataclass(frozen=True, slots=True)
class AbilityEntry:
    """An ability on the finished sheet with its display text resolved."""

    ability_id: str
    source: str          # "type" | "special" | "focus" | "descriptor" | "species"
    text: str


@dataclass(frozen=True, slots=True)
class LineItem:
    """A single purchase recorded by the budget ledger."""

    item_id: str
    category: EquipmentCategory
    cost: int


# ---------------------------------------------------------------------------
# Build in progress
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class PartialCharacter:
    """Every field filled so far, plus the cursor for the current step."""

    step: Step = Step.NAME_ENTRY
    name: str | None = None
    gender: Gender | None = None
    type_id: str | None = None
    origin_kind: OriginKind | None = None
    origin_id: str | None = None
    focus_id: str | None = None
    connection: str | None = None
    bonus: Pools | None = None
    abilities: list[str] = field(default_factory=list)
    cyphers: list[CypherInstance] = field(default_factory=list)
    artifacts: list[ArtifactInstance] = field(default_factory=list)
    oddities: list[str] = field(default_factory=list)
    ledger: BudgetLedger | None = None


# ---------------------------------------------------------------------------
# Finalized sheet
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CharacterSheet:
    """A finished character. Read-only; compared structurally."""

    name: str
    gender: Gender
    type_id: str
    descriptor_id: str | None
    species_id: str | None
    focus_id: str
    pools: tuple[StatPool, ...]
    bonus: Pools
    edge: Pools
    effort: int
    cypher_limit: int
    abilities: tuple[AbilityEntry, ...]
    cyphers: tuple[CypherInstance, ...]
    oddity_id: str
    tier: int = STARTING_TIER
    artifacts: tuple[ArtifactInstance, ...] = ()
    equipment: tuple[LineItem, ...] = ()
    starting_gear: tuple[str, ...] = ()
    shins: int = 0
    background: str = ""
    skills: Skills = Skills()
    armor: int = 0

    @property
    def origin_id(self) -> str:
        return self.species_id if self.species_id is not None else (self.descriptor_id or "")

    @property
    def uses_species(self) -> bool:
        return self.species_id is not None

    def pool(self, attr: Attribute) -> StatPool:
        for p in self.pools:
            if p.attribute is attr:
                return p
        raise KeyError(attr)

    @property
    def maximum_pools(self) -> Pools:
        return Pools.from_mapping({p.attribute: p.maximum for p in self.pools})

    @property
    def equipment_cost(self) -> int:
        return sum(line.cost for line in self.equipment)

    def character_sentence(self) -> str:
        """'I am a <descriptor|species> <type> who <focus>'."""
        return f"I am a {self.origin_id or 'Unknown'} {self.type_id} who {self.focus_id}"

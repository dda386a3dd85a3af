"""Fixed enumerations shared by the catalog, the engine, and the codec.

Enum values are the strings written to persisted sheets and validator
reports, so they must stay stable across releases.
"""

from enum import Enum, IntEnum


class Attribute(str, Enum):
    """The three stat pools every character has."""
    MIGHT = "might"
    SPEED = "speed"
    INTELLECT = "intellect"


ATTRIBUTES: tuple[Attribute, ...] = (
    Attribute.MIGHT,
    Attribute.SPEED,
    Attribute.INTELLECT,
)


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class OriginKind(str, Enum):
    """Descriptor and Species are mutually exclusive origin choices."""
    DESCRIPTOR = "descriptor"
    SPECIES = "species"


class EquipmentCategory(str, Enum):
    """Shop categories the budget ledger partitions spend by."""
    WEAPONS = "Weapons"
    ARMOR = "Armor"
    SHIELDS = "Shields"
    GEAR = "Gear"
    CONSUMABLES = "Consumables"
    CLOTHING = "Clothing"


class Step(IntEnum):
    """Assembly steps in build order.

    Integer values give the total order; the dependency graph between
    steps lives in ``graph.step_graph``.
    """
    NAME_ENTRY = 1
    GENDER_SELECT = 2
    TYPE_SELECT = 3
    ORIGIN_SELECT = 4      # descriptor or species
    FOCUS_SELECT = 5
    STAT_ALLOCATION = 6
    ABILITY_SELECT = 7
    CYPHER_SELECT = 8
    ODDITY_SELECT = 9
    EQUIPMENT_SHOP = 10
    FINALIZE = 11


STEP_NAMES: dict[int, str] = {
    1: "Name Entry",
    2: "Gender Select",
    3: "Type Select",
    4: "Descriptor or Species Select",
    5: "Focus Select",
    6: "Stat Allocation",
    7: "Ability Select",
    8: "Cypher Select",
    9: "Oddity Select",
    10: "Equipment Shop",
    11: "Finalize",
}


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


# Starting power level; advancement is out of scope.
STARTING_TIER = 1

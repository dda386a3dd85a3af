"""Shared synthetic catalog for the test suite (no data files needed).

Starting shins: Glaive+Strong = 10, Glaive+Clever = 15, Nano+Varjellen = 12.
Bonus allotment is 6 except for Varjellen, which overrides it to 4.
Glaives start in Light Armor (armor 1); Nanos wear none.
"""

import pytest

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
from numenera_chargen.models.constants import EquipmentCategory as EC


GLAIVE = CharacterType(
    name="Glaive",
    base_pools=Pools(11, 10, 7),
    bonus_points=6,
    edge=Pools(1, 1, 0),
    effort=1,
    cypher_limit=2,
    shins=5,
    abilities=(
        Ability("Bash", "1 Might", "Action", "Pummel a foe."),
        Ability("Fleet of Foot", "1 Speed", "Enabler", "Move farther."),
        Ability("Pierce", "1 Speed", "Action", "Precise ranged attack."),
        Ability("Trained in Armor", kind="Enabler", description="Wear armor for long periods."),
    ),
    ability_count=2,
    special_abilities=("Fighting Moves",),
    skills=Skills(trained=("Intimidation",)),
    armor=("Light Armor",),
    starting_equipment=("Medium Weapon", "Light Armor"),
)

NANO = CharacterType(
    name="Nano",
    base_pools=Pools(7, 9, 12),
    bonus_points=6,
    edge=Pools(0, 0, 1),
    effort=1,
    cypher_limit=3,
    shins=2,
    abilities=(
        Ability("Onslaught", "1 Intellect", "Action", "Mental attack."),
        Ability("Push", "2 Intellect", "Action", "Shove a creature."),
        Ability("Scan", "2 Intellect", "Action", "Learn about an area."),
        Ability("Ward", kind="Enabler", description="+1 Armor."),
    ),
    ability_count=2,
    special_abilities=("Esotery",),
)

STRONG = Descriptor(
    name="Strong",
    modifiers=Pools(4, 0, 0),
    shins=5,
    special_abilities=(Ability("Very Powerful", description="+4 to your Might Pool."),),
    initial_links=("You were a laborer in the city.", "You won a wrestling match."),
    skills=Skills(trained=("Intimidation", "Carrying"), inabilities=("Stealth",)),
)

CLEVER = Descriptor(
    name="Clever",
    modifiers=Pools(0, 0, 2),
    shins=10,
    initial_links=("A friend owes you a favor.",),
)

VARJELLEN = Species(
    name="Varjellen",
    modifiers=Pools(0, 2, 2),
    initial_bonus_points=4,
    shins=10,
    abilities=(Ability("Mind Spike", "2 Intellect", "Action", "Pierce a mind."),),
    skills=Skills(inabilities=("Persuasion",)),
)

HALO = Focus(
    name="Bears a Halo of Fire",
    suitable_types=("Nano", "glaive"),
    ability=Ability("Shroud of Flame", "1 Intellect", "Enabler", "Wreathe yourself in fire."),
    connections=("Pick one PC who fears fire.", "Pick one PC you knew long ago."),
)

WEAPONRY = Focus(
    name="Masters Weaponry",
    suitable_types=("Glaive",),
    ability=Ability("Weapon Master", kind="Enabler", description="Reduce weapon difficulty."),
    connections=("Pick one PC who trained with you.",),
    starting_equipment=("Light Weapon",),
)

MACHINES = Focus(
    name="Talks to Machines",
    suitable_types=("Nano",),
    ability=Ability("Machine Affinity", kind="Enabler", description="Trained with machines."),
)

CYPHERS = (
    Cypher("Detonation", "1d6+2", effect="Explodes in a burst."),
    Cypher("Stim", "1d6", effect="Eases a task."),
    Cypher("Rejuvenator", "1d6+2", effect="Restores points."),
    Cypher("Shock Armor", "1d6+4", duration="one hour", effect="Electrifies attackers."),
)

ARTIFACTS = (Artifact("Lightning Blade", "1d6+3", depletion="1 in 1d10"),)

ODDITIES = (Oddity("Glowing cube"), Oddity("Musical pebble"))

EQUIPMENT = (
    EquipmentItem("Light Weapon", EC.WEAPONS, 5),
    EquipmentItem("Medium Weapon", EC.WEAPONS, 8),
    EquipmentItem("Light Armor", EC.ARMOR, 10, armor_bonus=1),
    EquipmentItem("Buckler", EC.SHIELDS, 4),
    EquipmentItem("Explorer's Pack", EC.GEAR, 3),
    EquipmentItem("Rations", EC.CONSUMABLES, 1),
    EquipmentItem("Cloak", EC.CLOTHING, 2),
)


def build_catalog(**overrides) -> Catalog:
    """The sample catalog, with any category replaced via keyword."""
    parts = {
        "types": (GLAIVE, NANO),
        "descriptors": (STRONG, CLEVER),
        "species": (VARJELLEN,),
        "foci": (HALO, WEAPONRY, MACHINES),
        "cyphers": CYPHERS,
        "artifacts": ARTIFACTS,
        "oddities": ODDITIES,
        "equipment": EQUIPMENT,
    }
    parts.update(overrides)
    return Catalog(**parts)


@pytest.fixture
def catalog() -> Catalog:
    return build_catalog()

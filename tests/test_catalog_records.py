"""Tests for turning raw catalog records into typed records."""

import pytest

from numenera_chargen.engine.validator import require_valid_catalog
from numenera_chargen.models.catalog import Catalog, EquipmentItem, Oddity
from numenera_chargen.models.character import Pools, Skills
from numenera_chargen.models.constants import EquipmentCategory as EC
from numenera_chargen.models.errors import CatalogError
from numenera_chargen.parser.catalog_records import (
    catalog_from_records,
    descriptor_from_record,
    focus_from_record,
    item_from_record,
    merge_records,
    species_from_record,
    type_from_record,
)


def _type_record(**overrides) -> dict:
    record = {
        "name": "Jack",
        "stat_pools": {"might": 10, "speed": 10, "intellect": 10, "bonus_points": 6},
        "edge": {"might": 0, "speed": 1, "intellect": 0},
        "starting_tier": {"effort": 1, "cypher_limit": 2},
        "equipment": {"shins": 8, "weapons": ["Light Weapon"]},
        "tier_abilities": [
            {"tier": 2, "count": 1, "abilities": [{"name": "Later Trick"}]},
            {
                "tier": 1,
                "count": 2,
                "abilities": [
                    {"name": "Bash", "cost": "1 Might", "type": "Action", "description": "Hit."},
                    "Flex",
                    {"name": "Trained Infiltrator"},
                ],
            },
        ],
        "special_abilities": ["Jack of all trades"],
        "flavor": "Rogue",
    }
    record.update(overrides)
    return record


def _records() -> dict:
    return {
        "types": [_type_record()],
        "descriptors": [{
            "name": "Tough",
            "stat_modifiers": {"might": 2},
            "equipment": {"shins": 3},
            "initial_links": ["You were raised by soldiers.", {"text": "You owe a debt."}],
        }],
        "species": [{
            "name": "Lattimor",
            "stat_modifiers": {"might": 2, "initial_bonus_points": 5},
            "equipment": {"starting_shins": 4},
            "abilities": ["Bursk"],
        }],
        "foci": [{
            "name": "Bears a Halo of Fire",
            "suitable_types": ["Jack"],
            "connections": ["Pick one PC who is afraid of fire."],
            "tier_1_ability": {"name": "Shroud of Flame", "cost": "1 Intellect"},
        }],
        "cyphers": [{"name": "Stim", "level_formula": "1d6", "type": "anoetic"}],
        "artifacts": [{"name": "Hover Belt", "level_formula": "1d6+2", "depletion": "1 in 1d20"}],
        "oddities": ["Glowing cube", {"name": "Musical pebble", "description": "Hums."}],
        "equipment": {
            "weapons": [{"name": "Light Weapon", "cost": 5, "category": "Light"}],
            "gear": [{"name": "Rope", "cost": 1, "notes": "50 feet"}],
            "ammunition": [{"name": "Arrows", "cost": 1}],
        },
        "campaigns": [],
    }


class TestTypeRecord:
    def test_nested_tables(self):
        jack = type_from_record(_type_record())
        assert jack.base_pools == Pools(10, 10, 10)
        assert jack.bonus_points == 6
        assert jack.edge == Pools(0, 1, 0)
        assert (jack.effort, jack.cypher_limit, jack.shins) == (1, 2, 8)
        assert jack.special_abilities == ("Jack of all trades",)

    def test_only_tier_one_abilities(self):
        jack = type_from_record(_type_record())
        assert jack.ability_count == 2
        assert [a.name for a in jack.abilities] == ["Bash", "Flex", "Trained Infiltrator"]
        bash = jack.abilities[0]
        assert (bash.cost, bash.kind, bash.description) == ("1 Might", "Action", "Hit.")

    def test_unknown_keys_kept_in_extra(self):
        jack = type_from_record(_type_record())
        assert jack.extra["flavor"] == "Rogue"
        assert "stat_pools" not in jack.extra

    def test_missing_required_field_names_record(self):
        record = _type_record()
        del record["starting_tier"]
        with pytest.raises(CatalogError, match=r"types\[Jack\].*starting_tier"):
            type_from_record(record)

    def test_wrong_type_rejected(self):
        record = _type_record(stat_pools={"might": "ten", "bonus_points": 6})
        with pytest.raises(CatalogError, match="might"):
            type_from_record(record)

    def test_bool_is_not_a_count(self):
        record = _type_record(starting_tier={"effort": True, "cypher_limit": 2})
        with pytest.raises(CatalogError, match="bool"):
            type_from_record(record)

    def test_not_a_table(self):
        with pytest.raises(CatalogError, match="expected a table"):
            type_from_record(["Jack"])

    def test_equipment_table_becomes_starting_gear(self):
        glaive = type_from_record(_type_record(
            name="Glaive",
            equipment={
                "shins": 5,
                "weapons": ["Medium Weapon", "Light Weapon"],
                "armor": "Light Armor",
                "explorer_pack": True,
                "other": ["Book of Knowledge"],
            },
        ))
        assert glaive.shins == 5
        assert glaive.starting_equipment == (
            "Medium Weapon", "Light Weapon", "Light Armor", "Explorer's Pack", "Book of Knowledge",
        )
        assert glaive.armor == ("Light Armor",)
        assert "equipment" not in glaive.extra

    def test_no_armor_no_pack(self):
        jack = type_from_record(_type_record())
        assert jack.starting_equipment == ("Light Weapon",)
        assert jack.armor == ()

    def test_skills_table(self):
        jack = type_from_record(_type_record(skills={
            "trained": ["Stealth"], "specialized": ["Lockpicking"], "inabilities": ["Lore"],
        }))
        assert jack.skills == Skills(("Stealth",), ("Lockpicking",), ("Lore",))
        assert type_from_record(_type_record()).skills == Skills()

    def test_skill_names_must_be_strings(self):
        with pytest.raises(CatalogError, match="trained"):
            type_from_record(_type_record(skills={"trained": [1]}))


class TestOtherRecords:
    def test_descriptor_links_accept_text_tables(self):
        tough = descriptor_from_record(_records()["descriptors"][0])
        assert tough.modifiers == Pools(2, 0, 0)
        assert tough.shins == 3
        assert tough.initial_links == ("You were raised by soldiers.", "You owe a debt.")

    def test_species_bonus_override(self):
        lattimor = species_from_record(_records()["species"][0])
        assert lattimor.initial_bonus_points == 5
        assert lattimor.shins == 4
        assert [a.name for a in lattimor.abilities] == ["Bursk"]

    def test_focus_ability(self):
        halo = focus_from_record(_records()["foci"][0])
        assert halo.ability.name == "Shroud of Flame"
        assert halo.suitable_types == ("Jack",)

    def test_descriptor_equipment_and_hindered_skills(self):
        tough = descriptor_from_record({
            "name": "Tough",
            "equipment": {
                "shins": 3,
                "weapons": ["Light Weapon"],
                "armor": ["Light Armor", "Medium Armor"],
                "other": ["Rope"],
            },
            "skills": {"trained": ["Might defense"], "inabilities": {"hindered": ["Stealth"]}},
        })
        assert tough.shins == 3
        assert tough.starting_equipment == ("Light Weapon", "Light Armor", "Medium Armor", "Rope")
        assert tough.armor == ("Light Armor", "Medium Armor")
        assert tough.skills == Skills(trained=("Might defense",), inabilities=("Stealth",))

    def test_species_items_and_hindered_skills(self):
        lattimor = species_from_record({
            "name": "Lattimor",
            "equipment": {"starting_shins": 4, "items": ["Rope"]},
            "skills": {"trained": ["Climbing"], "hindered": ["Swimming"]},
        })
        assert lattimor.starting_equipment == ("Rope",)
        assert lattimor.skills == Skills(trained=("Climbing",), inabilities=("Swimming",))

    def test_focus_equipment_list(self):
        halo = focus_from_record(dict(_records()["foci"][0], equipment=["Light Weapon"]))
        assert halo.starting_equipment == ("Light Weapon",)

    def test_item_armor_bonus(self):
        item = item_from_record({"name": "Light Armor", "cost": 10, "armor_bonus": 1}, EC.ARMOR)
        assert item.armor_bonus == 1
        assert "armor_bonus" not in item.extra
        assert item_from_record({"name": "Rope", "category": "Gear", "cost": 1}).armor_bonus == 0

    def test_flat_item_needs_known_category(self):
        item = item_from_record({"name": "Rope", "category": "Gear", "cost": 1})
        assert item.category is EC.GEAR
        with pytest.raises(CatalogError, match="shop category"):
            item_from_record({"name": "Orb", "category": "Relics", "cost": 1})

    def test_grouped_item_keeps_subcategory(self):
        item = item_from_record({"name": "Light Weapon", "cost": 5, "category": "Light"}, EC.WEAPONS)
        assert item.category is EC.WEAPONS
        assert item.extra["subcategory"] == "Light"
        assert "category" not in item.extra


class TestCatalogFromRecords:
    def test_full_catalog(self):
        cat = catalog_from_records(_records())
        assert cat.get_type("jack") is not None
        assert cat.get_species("Lattimor").initial_bonus_points == 5
        assert cat.get_cypher("Stim").kind == "anoetic"
        assert cat.get_artifact("Hover Belt").depletion == "1 in 1d20"
        assert cat.get_oddity("Musical pebble").description == "Hums."
        assert [i.name for i in cat.equipment] == ["Light Weapon", "Rope"]
        assert cat.get_item("Rope").notes == "50 feet"

    def test_loaded_catalog_is_valid(self):
        require_valid_catalog(catalog_from_records(_records()))

    def test_missing_categories_are_empty(self):
        cat = catalog_from_records({"types": [_type_record()]})
        assert cat.cyphers == ()
        assert cat.equipment == ()

    def test_category_must_be_list(self):
        with pytest.raises(CatalogError, match="cyphers"):
            catalog_from_records({"cyphers": {"name": "Stim"}})

    def test_flat_equipment_list(self):
        cat = catalog_from_records({
            "equipment": [{"name": "Cloak", "category": "Clothing", "cost": 2}],
        })
        assert cat.get_item("cloak").category is EC.CLOTHING


class TestSkillsAndArmor:
    def _catalog(self, type_armor="Heavy Armor"):
        records = _records()
        records["types"] = [_type_record(
            equipment={"shins": 8, "armor": type_armor},
            skills={"trained": ["Stealth", "Climbing"], "inabilities": ["Lore"]},
        )]
        records["descriptors"][0]["equipment"] = {"shins": 3, "armor": ["Light Armor"]}
        records["descriptors"][0]["skills"] = {
            "trained": ["Climbing", "Running"], "inabilities": {"hindered": ["Lore"]},
        }
        records["equipment"]["armor"] = [
            {"name": "Light Armor", "cost": 10, "armor_bonus": 1},
            {"name": "Medium Armor", "cost": 15, "armor_bonus": 2},
        ]
        return catalog_from_records(records)

    def test_type_armor_wins(self):
        cat = self._catalog(type_armor="Medium Armor")
        assert cat.armor_value(cat.get_type("Jack"), cat.get_descriptor("Tough")) == 2

    def test_unresolved_type_armor_falls_back_to_descriptor(self):
        cat = self._catalog()
        assert cat.armor_value(cat.get_type("Jack"), cat.get_descriptor("Tough")) == 1

    def test_species_wear_nothing_extra(self):
        cat = self._catalog()
        assert cat.armor_value(cat.get_type("Jack"), cat.get_species("Lattimor")) == 0

    def test_skills_merge_without_repeats(self):
        cat = self._catalog()
        skills = cat.starting_skills(cat.get_type("Jack"), cat.get_descriptor("Tough"))
        assert skills.trained == ("Stealth", "Climbing", "Running")
        assert skills.inabilities == ("Lore",)

    def test_skill_levels(self):
        skills = Skills(trained=("Climbing",), specialized=("Stealth",), inabilities=("Lore",))
        assert skills.level("stealth") == 2
        assert skills.level("Climbing") == 1
        assert skills.level("LORE") == -1
        assert skills.level("Swimming") == 0


class TestMergeRecords:
    def test_lists_concatenate_in_order(self):
        merged = merge_records([
            {"oddities": ["A"], "equipment": {"gear": [{"name": "Rope", "cost": 1}]}},
            {"oddities": ["B"], "equipment": {"gear": [{"name": "Torch", "cost": 1}]}},
        ])
        assert merged["oddities"] == ["A", "B"]
        assert [r["name"] for r in merged["equipment"]["gear"]] == ["Rope", "Torch"]

    def test_mixed_layouts_rejected(self):
        with pytest.raises(CatalogError, match="mix"):
            merge_records([
                {"equipment": [{"name": "Rope", "category": "Gear", "cost": 1}]},
                {"equipment": {"gear": []}},
            ])


class TestRecordDefaults:
    def test_extra_defaults_to_empty_read_only_mapping(self):
        cube = Oddity("Glowing cube")
        assert dict(cube.extra) == {}
        with pytest.raises(TypeError):
            cube.extra["color"] = "green"
        assert cube == Oddity("Glowing cube", extra={"color": "green"})

    def test_lookup_uses_unicode_case_folding(self):
        cat = Catalog(equipment=(EquipmentItem("Straße Map", EC.GEAR, 2),))
        assert cat.get_item("STRASSE MAP").name == "Straße Map"
        assert cat.get_item("  straße map ").name == "Straße Map"

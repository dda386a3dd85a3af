"""Tests for JSON persistence of character sheets."""

import json
import os

import pytest

from conftest import build_catalog
from numenera_chargen.engine.assembly import AssemblyEngine
from numenera_chargen.engine.dice import SequenceRandom
from numenera_chargen.models.catalog import Oddity
from numenera_chargen.models.errors import CorruptData, PersistenceError
from numenera_chargen.persistence.codec import (
    FORMAT_NAME,
    FORMAT_VERSION,
    CharacterCodec,
    load_sheet,
    save_sheet,
    sheet_to_dict,
)


def _sheet(catalog):
    """Glaive/Strong with two rolled cyphers, an artifact and one purchase."""
    # Detonation 4+2, Shock Armor 3+4, Lightning Blade 2+3
    engine = AssemblyEngine(catalog, SequenceRandom([4, 3, 2]))
    engine.set_name("Ysolde")
    engine.advance()
    engine.set_gender("Female")
    engine.advance()
    engine.select_type("Glaive")
    engine.advance()
    engine.select_descriptor("Strong")
    engine.advance()
    engine.select_focus("Masters Weaponry")
    engine.advance()
    engine.allocate_bonus(3, 3, 0)
    engine.advance()
    engine.select_ability("Bash")
    engine.select_ability("Fleet of Foot")
    engine.advance()
    engine.select_cypher("Detonation")
    engine.select_cypher("Shock Armor")
    engine.select_artifact("Lightning Blade")
    engine.advance()
    engine.select_oddity("Musical pebble")
    engine.advance()
    engine.purchase("Buckler")
    return engine.finalize()


def _doc(catalog) -> dict:
    return sheet_to_dict(_sheet(catalog))


def _decode(codec, doc):
    return codec.decode(json.dumps(doc))


class TestRoundTrip:
    def test_decode_encode_is_identity(self, catalog):
        codec = CharacterCodec(catalog)
        sheet = _sheet(catalog)
        assert codec.decode(codec.encode(sheet)) == sheet

    def test_levels_are_stored_not_rerolled(self, catalog):
        codec = CharacterCodec(catalog)
        loaded = codec.decode(codec.encode(_sheet(catalog)))
        assert [(c.cypher_id, c.level) for c in loaded.cyphers] == [
            ("Detonation", 6), ("Shock Armor", 7),
        ]
        assert loaded.cyphers[1].duration == "one hour"
        assert loaded.artifacts[0].level == 5
        assert loaded.artifacts[0].depletion == "1 in 1d10"

    def test_document_header(self, catalog):
        doc = json.loads(CharacterCodec(catalog).encode(_sheet(catalog)))
        assert doc["format"] == FORMAT_NAME
        assert doc["version"] == FORMAT_VERSION
        assert doc["descriptor"] == "Strong"
        assert doc["species"] is None
        assert doc["pools"]["might"] == {"current": 18, "maximum": 18}
        assert doc["shins"] == 6
        assert doc["armor"] == 1
        assert doc["skills"] == {
            "trained": ["Intimidation", "Carrying"], "specialized": [], "inabilities": ["Stealth"],
        }

    def test_str_input_accepted(self, catalog):
        codec = CharacterCodec(catalog)
        sheet = _sheet(catalog)
        assert codec.decode(codec.encode(sheet).decode("utf-8")) == sheet


class TestCorruptData:
    def test_not_json(self, catalog):
        with pytest.raises(CorruptData, match="JSON"):
            CharacterCodec(catalog).decode(b"{not json")

    def test_top_level_not_object(self, catalog):
        with pytest.raises(CorruptData, match="object"):
            CharacterCodec(catalog).decode(b"[1, 2]")

    def test_wrong_format(self, catalog):
        doc = _doc(catalog)
        doc["format"] = "something-else"
        with pytest.raises(CorruptData, match="format"):
            _decode(CharacterCodec(catalog), doc)

    def test_future_version(self, catalog):
        doc = _doc(catalog)
        doc["version"] = FORMAT_VERSION + 1
        with pytest.raises(CorruptData, match="version"):
            _decode(CharacterCodec(catalog), doc)

    @pytest.mark.parametrize(
        "key", ["name", "pools", "cyphers", "oddity", "shins", "background", "skills", "armor"],
    )
    def test_missing_field(self, catalog, key):
        doc = _doc(catalog)
        del doc[key]
        with pytest.raises(CorruptData, match=key):
            _decode(CharacterCodec(catalog), doc)

    def test_wrong_type(self, catalog):
        doc = _doc(catalog)
        doc["effort"] = "1"
        with pytest.raises(CorruptData, match="effort"):
            _decode(CharacterCodec(catalog), doc)

    def test_bool_is_not_an_int(self, catalog):
        doc = _doc(catalog)
        doc["cyphers"][0]["level"] = True
        with pytest.raises(CorruptData, match="bool"):
            _decode(CharacterCodec(catalog), doc)

    def test_bad_pool_entry(self, catalog):
        doc = _doc(catalog)
        doc["pools"]["speed"] = 12
        with pytest.raises(CorruptData, match="speed"):
            _decode(CharacterCodec(catalog), doc)

    def test_unknown_gender(self, catalog):
        doc = _doc(catalog)
        doc["gender"] = "Robot"
        with pytest.raises(CorruptData, match="gender"):
            _decode(CharacterCodec(catalog), doc)

    def test_both_origins(self, catalog):
        doc = _doc(catalog)
        doc["species"] = "Varjellen"
        with pytest.raises(CorruptData, match="exactly one"):
            _decode(CharacterCodec(catalog), doc)

    def test_no_origin(self, catalog):
        doc = _doc(catalog)
        doc["descriptor"] = None
        with pytest.raises(CorruptData, match="exactly one"):
            _decode(CharacterCodec(catalog), doc)

    def test_unresolved_references_listed(self, catalog):
        doc = _doc(catalog)
        doc["focus"] = "Rides the Lightning"
        doc["cyphers"][0]["id"] = "Gravity Nullifier"
        with pytest.raises(CorruptData, match="Unresolved") as excinfo:
            _decode(CharacterCodec(catalog), doc)
        assert "Rides the Lightning" in str(excinfo.value)
        assert "Gravity Nullifier" in str(excinfo.value)

    def test_skill_names_must_be_strings(self, catalog):
        doc = _doc(catalog)
        doc["skills"]["trained"] = [7]
        with pytest.raises(CorruptData, match="sheet.skills.trained"):
            _decode(CharacterCodec(catalog), doc)

    @pytest.mark.parametrize("index, ability", [
        (0, "Cleave"),
        (2, "Esotery"),
        (3, "Shroud of Flame"),
        (4, "Mind Spike"),
    ])
    def test_ability_resolved_against_its_source(self, catalog, index, ability):
        doc = _doc(catalog)
        doc["abilities"][index]["id"] = ability
        with pytest.raises(CorruptData, match="Unresolved") as excinfo:
            _decode(CharacterCodec(catalog), doc)
        assert ability in str(excinfo.value)

    def test_ability_with_unknown_source(self, catalog):
        doc = _doc(catalog)
        doc["abilities"][0]["source"] = "artifact"
        with pytest.raises(CorruptData, match="unknown source"):
            _decode(CharacterCodec(catalog), doc)

    def test_ability_ids_ignore_case(self, catalog):
        doc = _doc(catalog)
        doc["abilities"][0]["id"] = "BASH"
        assert _decode(CharacterCodec(catalog), doc).abilities[0].ability_id == "BASH"

    def test_starting_gear_resolved(self, catalog):
        doc = _doc(catalog)
        doc["starting_gear"].append("Laser Sword")
        with pytest.raises(CorruptData, match="starting gear 'Laser Sword'"):
            _decode(CharacterCodec(catalog), doc)

    def test_reference_checked_against_codec_catalog(self, catalog):
        blob = CharacterCodec(catalog).encode(_sheet(catalog))
        other = build_catalog(oddities=(Oddity("Glowing cube"),))
        with pytest.raises(CorruptData, match="Musical pebble"):
            CharacterCodec(other).decode(blob)


class TestFiles:
    def test_save_then_load(self, catalog, tmp_path):
        codec = CharacterCodec(catalog)
        sheet = _sheet(catalog)
        path = save_sheet(codec, sheet, tmp_path / "chars" / "ysolde.json")
        assert path.exists()
        assert load_sheet(codec, path) == sheet
        assert [p.name for p in path.parent.iterdir()] == ["ysolde.json"]

    def test_overwrite_replaces_whole_file(self, catalog, tmp_path):
        codec = CharacterCodec(catalog)
        target = tmp_path / "sheet.json"
        target.write_text("x" * 100_000)
        save_sheet(codec, _sheet(catalog), target)
        assert load_sheet(codec, target) == _sheet(catalog)

    def test_failed_replace_leaves_target_and_no_temp(self, catalog, tmp_path, monkeypatch):
        codec = CharacterCodec(catalog)
        target = tmp_path / "sheet.json"
        target.write_bytes(b"previous contents")

        def boom(src, dst):
            raise OSError("disk on fire")

        monkeypatch.setattr(os, "replace", boom)
        with pytest.raises(PersistenceError, match="disk on fire") as excinfo:
            save_sheet(codec, _sheet(catalog), target)
        assert excinfo.value.path == target
        assert target.read_bytes() == b"previous contents"
        assert [p.name for p in tmp_path.iterdir()] == ["sheet.json"]

    def test_load_missing_file(self, catalog, tmp_path):
        with pytest.raises(PersistenceError):
            load_sheet(CharacterCodec(catalog), tmp_path / "nope.json")

    def test_load_corrupt_file(self, catalog, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text('{"format": "numenera-character", "version": 1}')
        with pytest.raises(CorruptData):
            load_sheet(CharacterCodec(catalog), path)

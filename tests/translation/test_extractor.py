"""Tests for string extraction."""

import pytest

from espstrings.core.constants import RecordFlag, StringTableKind
from espstrings.translation.extractor import (
    ExtractedString,
    extract_strings,
    is_valid_string,
    translation_key,
    walk_translatable,
)
from tests.conftest import (
    make_plugin,
    make_string_id_subrecord,
    make_string_tables,
    make_subrecord,
)


class TestExtractor:
    def test_extract_full_subrecord(self, simple_plugin, router):
        strings = extract_strings(simple_plugin, router)
        assert strings == [
            ExtractedString(
                editor_id=None,
                form_id="00012BB7|Test.esp",
                text="Iron Sword",
                record_type="WEAP",
                subrecord_type="FULL",
                index=0,
            )
        ]

    def test_extract_multiple_records(self, multi_record_plugin, router):
        strings = extract_strings(multi_record_plugin, router)
        texts = [s.text for s in strings]
        assert texts == [
            "Iron Sword",
            "Leather Armor",
            "A sturdy set of leather armor.",
            "Wasteland Survival Guide",
            "A guide to surviving the wasteland.",
        ]
        assert strings[0].editor_id == "TestWeapon"

    def test_skips_edid(self, simple_plugin, router):
        strings = extract_strings(simple_plugin, router)
        assert "EDID" not in {s.subrecord_type for s in strings}

    def test_untranslatable_record_type(self, router):
        plugin = make_plugin([
            ("STAT", 0x100, [
                make_subrecord("EDID", "MyStatic"),
                make_subrecord("FULL", "Rock"),
                make_subrecord("DESC", "A static rock."),
            ]),
        ])
        assert extract_strings(plugin, router) == []

    def test_repeated_subrecords_are_indexed(self, router):
        plugin = make_plugin([
            ("MESG", 0x200, [
                make_subrecord("FULL", "Choose"),
                make_subrecord("ITXT", "Yes"),
                make_subrecord("ITXT", "No"),
                make_subrecord("ITXT", "Maybe later"),
            ]),
        ])
        strings = extract_strings(plugin, router)
        assert [(s.subrecord_type, s.index, s.text) for s in strings] == [
            ("FULL", 0, "Choose"),
            ("ITXT", 0, "Yes"),
            ("ITXT", 1, "No"),
            ("ITXT", 2, "Maybe later"),
        ]

    def test_header_is_walked_first(self):
        from espstrings.translation.routing import StringRouter

        plugin = make_plugin([("WEAP", 1, [make_subrecord("FULL", "Sword name")])])
        plugin.header.subrecords.append(make_subrecord("CNAM", "Modder Person"))
        router = StringRouter({"TES4": ["CNAM"], "WEAP": ["FULL"]})
        strings = extract_strings(plugin, router)
        assert [s.record_type for s in strings] == ["TES4", "WEAP"]

    def test_stops_at_nul_and_decodes_legacy(self, router):
        plugin = make_plugin([("WEAP", 1, [make_subrecord("FULL", b"\xc9p\xe9e\x00garbage")])])
        assert extract_strings(plugin, router)[0].text == "Épée"

    def test_form_id_origin_uses_masters(self, router):
        plugin = make_plugin(
            [
                ("WEAP", 0x00012BB7, [make_subrecord("FULL", "Override Name")]),
                ("WEAP", 0x01000800, [make_subrecord("FULL", "New Sword")]),
            ],
            masters=["Skyrim.esm"],
            name="MyMod.esp",
        )
        assert [s.form_id for s in extract_strings(plugin, router)] == [
            "00012BB7|Skyrim.esm",
            "01000800|MyMod.esp",
        ]

    def test_idempotent(self, multi_record_plugin, router):
        assert extract_strings(multi_record_plugin, router) == extract_strings(multi_record_plugin, router)

    def test_does_not_mutate(self, multi_record_plugin, router):
        extract_strings(multi_record_plugin, router)
        assert not any(r.modified for r in multi_record_plugin.iter_records())


class TestFiltering:
    def test_identifier_shaped_text_skipped(self, router):
        plugin = make_plugin([
            ("WEAP", 1, [make_subrecord("FULL", "DLC1IronSwordScript")]),
            ("ARMO", 2, [make_subrecord("FULL", "armor_script_var")]),
            ("BOOK", 3, [make_subrecord("FULL", "   ")]),
        ])
        assert extract_strings(plugin, router) == []

    def test_unfiltered_keeps_everything(self, router):
        plugin = make_plugin([
            ("WEAP", 1, [make_subrecord("FULL", "DLC1IronSwordScript")]),
            ("ARMO", 2, [make_subrecord("FULL", "")]),
        ])
        strings = extract_strings(plugin, router, unfiltered=True)
        assert [s.text for s in strings] == ["DLC1IronSwordScript", ""]

    @pytest.mark.parametrize(
        "text",
        ["Iron Sword", "Nuka-Cola", "RadAway is here", "Hello <Alias=Player>", "Line one\nLine two", "铁剑", "OK"],
    )
    def test_valid(self, text):
        assert is_valid_string(text)

    @pytest.mark.parametrize(
        "text",
        ["", "   ", "<p>", "MyQuestScript", "some_var_name", "bad\x01char"],
    )
    def test_invalid(self, text):
        assert not is_valid_string(text)

    def test_alias_marker_overrides_identifier_check(self):
        assert is_valid_string("<Alias=Player>")


class TestLocalizedExtraction:
    def test_resolves_each_kind(self, localized_plugin, router):
        strings = extract_strings(localized_plugin, router)
        assert [(s.record_type, s.subrecord_type, s.text) for s in strings] == [
            ("WEAP", "FULL", "Steel Sword"),
            ("WEAP", "DESC", "A blade of tempered steel."),
            ("INFO", "NAM1", "Watch the skies, traveler."),
        ]
        assert strings[0].form_id == "01000800|Test.esp"
        assert strings[0].editor_id == "LocSword"

    def test_zero_string_id_is_skipped(self, router):
        plugin = make_plugin(
            [("WEAP", 0x800, [make_string_id_subrecord("FULL", 0), make_string_id_subrecord("DESC", 2)])],
            flags=RecordFlag.LOCALIZED,
        )
        plugin.string_tables = make_string_tables({StringTableKind.DLSTRINGS: {2: "Described."}})
        strings = extract_strings(plugin, router)
        assert [s.subrecord_type for s in strings] == ["DESC"]

    def test_missing_id_yields_placeholder(self, router):
        plugin = make_plugin(
            [("WEAP", 0x800, [make_string_id_subrecord("FULL", 99)])],
            flags=RecordFlag.LOCALIZED,
        )
        plugin.string_tables = make_string_tables({StringTableKind.STRINGS: {}})
        strings = extract_strings(plugin, router)
        # Placeholders look like identifiers but are never filtered
        assert [s.text for s in strings] == ["StringID_99_STRINGS"]

    def test_without_tables_everything_is_placeholder(self, localized_plugin, router):
        localized_plugin.string_tables = None
        texts = [s.text for s in extract_strings(localized_plugin, router)]
        assert texts == ["StringID_1_STRINGS", "StringID_2_DLSTRINGS", "StringID_3_ILSTRINGS"]


class TestWalkAndKeys:
    def test_walk_yields_indices(self, router):
        plugin = make_plugin([
            ("QUST", 1, [
                make_subrecord("FULL", "Quest"),
                make_subrecord("CNAM", "Log one"),
                make_subrecord("NNAM", "Objective"),
                make_subrecord("CNAM", "Log two"),
            ]),
        ])
        walked = [(sub.type, idx) for _, sub, idx in walk_translatable(plugin, router)]
        assert walked == [(b"FULL", 0), (b"CNAM", 0), (b"NNAM", 0), (b"CNAM", 1)]

    def test_key_normalizes_absent_fields(self):
        entry = ExtractedString(None, "00000800|Test.esp", "x", "WEAP", "FULL")
        assert entry.key == ("", "00000800|Test.esp", "WEAP", "FULL", 0)
        assert entry.key == translation_key("", "00000800|Test.esp", "WEAP", "FULL", 0)

    def test_to_dict_omits_absent(self):
        entry = ExtractedString(None, "00000800|Test.esp", "x", "WEAP", "FULL")
        assert entry.to_dict() == {
            "form_id": "00000800|Test.esp",
            "text": "x",
            "record_type": "WEAP",
            "subrecord_type": "FULL",
        }

    def test_from_dict_requires_keys(self):
        with pytest.raises(ValueError, match="text"):
            ExtractedString.from_dict({"form_id": "1", "record_type": "WEAP", "subrecord_type": "FULL"})

    def test_dict_round_trip(self):
        entry = ExtractedString("IronSword", "00012BB7|Skyrim.esm", "Iron Sword", "WEAP", "FULL", 0)
        assert ExtractedString.from_dict(entry.to_dict()) == entry

"""Tests for the record tree data classes."""

from espstrings.core.constants import GroupType, RecordFlag
from espstrings.core.records import Subrecord
from tests.conftest import make_group, make_plugin, make_record, make_subrecord


class TestSubrecordText:
    def test_utf8_preferred(self):
        sub = Subrecord(type=b"FULL", data=bytearray(b"Hello\x00"))
        assert sub.decode_string().content == "Hello"
        assert sub.encoding == "utf-8"

    def test_cp1252_fallback(self):
        # 0xE9 = é in cp1252
        sub = Subrecord(type=b"FULL", data=bytearray(b"caf\xe9\x00"))
        assert sub.decode_string().content == "café"
        assert sub.encoding == "cp1252"

    def test_all_bytes_decode_without_error(self):
        for byte_val in range(256):
            Subrecord(type=b"FULL", data=bytearray([byte_val, 0x00])).decode_string()

    def test_empty_data(self):
        sub = Subrecord(type=b"FULL", data=bytearray(b"\x00"))
        assert sub.decode_string().content == ""

    def test_encode_keeps_code_page(self):
        sub = Subrecord(type=b"FULL", data=bytearray(b"caf\xe9\x00"))
        sub.encode_string("thé")
        assert bytes(sub.data) == b"th\xe9\x00"

    def test_encode_switches_to_utf8_when_needed(self):
        sub = Subrecord(type=b"FULL", data=bytearray(b"caf\xe9\x00"))
        sub.encode_string("铁剑")
        assert bytes(sub.data) == "铁剑".encode("utf-8") + b"\x00"
        assert sub.encoding == "utf-8"
        assert sub.size == len("铁剑".encode("utf-8")) + 1

    def test_encoding_not_part_of_equality(self):
        a = Subrecord(type=b"FULL", data=bytearray(b"x\x00"))
        b = Subrecord(type=b"FULL", data=bytearray(b"x\x00"), encoding="cp1252")
        assert a == b


class TestRecord:
    def test_editor_id_first_edid(self):
        rec = make_record("WEAP", 1, [
            make_subrecord("FULL", "Iron Sword"),
            make_subrecord("EDID", "IronSword"),
            make_subrecord("EDID", "Second"),
        ])
        assert rec.editor_id == "IronSword"

    def test_find_and_find_all(self):
        rec = make_record("MESG", 1, [
            make_subrecord("ITXT", "Yes"),
            make_subrecord("FULL", "Title"),
            make_subrecord("ITXT", "No"),
        ])
        assert rec.find(b"FULL").decode_string().content == "Title"
        assert rec.find(b"DESC") is None
        assert [s.decode_string().content for s in rec.find_all(b"ITXT")] == ["Yes", "No"]

    def test_flags(self):
        rec = make_record("WEAP", 1, flags=RecordFlag.COMPRESSED | RecordFlag.DELETED)
        assert rec.is_compressed
        assert rec.is_deleted
        assert not make_record("WEAP", 1).is_compressed

    def test_mark_modified(self):
        rec = make_record("WEAP", 1)
        assert not rec.modified
        rec.mark_modified()
        assert rec.modified


class TestGroupRecord:
    def test_iteration_order(self):
        inner = make_group(b"\x01\x00\x00\x00", [make_record("REFR", 3)], group_type=9)
        outer = make_group("CELL", [make_record("CELL", 1), inner, make_record("CELL", 2)])
        assert [r.form_id for r in outer.iter_records()] == [1, 3, 2]
        assert [g.group_type for g in outer.iter_groups()] == [0, 9]

    def test_known_type(self):
        assert make_group("WEAP").known_type is GroupType.TOP
        assert make_group("WEAP", group_type=6).known_type is GroupType.CELL_CHILDREN
        assert make_group("WEAP", group_type=77).known_type is None


class TestPluginFile:
    def test_flags(self):
        plugin = make_plugin(flags=RecordFlag.MASTER | RecordFlag.LOCALIZED)
        assert plugin.is_master
        assert plugin.is_localized
        assert not plugin.is_light_master

    def test_masters_follow_header(self):
        plugin = make_plugin(masters=["Skyrim.esm"])
        plugin.header.subrecords.append(make_subrecord("MAST", "Update.esm"))
        assert plugin.masters == ["Skyrim.esm", "Update.esm"]

    def test_format_form_id_origin(self):
        plugin = make_plugin(masters=["Skyrim.esm", "Update.esm"], name="MyMod.esp")
        assert plugin.format_form_id(0x00012BB7) == "00012BB7|Skyrim.esm"
        assert plugin.format_form_id(0x01000800) == "01000800|Update.esm"
        assert plugin.format_form_id(0x02000800) == "02000800|MyMod.esp"
        assert plugin.format_form_id(0xFE000800) == "FE000800|MyMod.esp"

    def test_format_form_id_without_masters(self):
        plugin = make_plugin(name="Standalone.esm")
        assert plugin.format_form_id(0x00000D62) == "00000D62|Standalone.esm"

    def test_counts(self, multi_record_plugin):
        assert multi_record_plugin.count_records() == 4
        assert multi_record_plugin.count_groups() == 3

    def test_stem(self):
        assert make_plugin(name="My Mod.esp").stem == "My Mod"
        assert make_plugin(name="").stem == ""

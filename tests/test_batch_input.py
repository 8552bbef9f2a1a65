"""
Tests for batch input parsing — action batches and desired-state snapshots.
"""

import pytest

from smplugin.core.errors import MalformedInput
from smplugin.core.models.action import ActionKind
from smplugin.core.protocol.batch_input import (
    parse_action_lines,
    parse_desired_lines,
    strip_type_suffix,
)


class TestStripTypeSuffix:
    def test_strips_matching_backend(self):
        assert strip_type_suffix("1.2-3::apt", "apt") == "1.2-3"

    def test_keeps_other_backend_suffix(self):
        assert strip_type_suffix("1.2-3::pip", "apt") == "1.2-3::pip"

    def test_no_backend(self):
        assert strip_type_suffix("1.2-3::apt", None) == "1.2-3::apt"

    def test_empty(self):
        assert strip_type_suffix("", "apt") is None
        assert strip_type_suffix(None, "apt") is None

    def test_suffix_only(self):
        assert strip_type_suffix("::apt", "apt") is None


class TestParseActionLines:
    def test_basic_batch(self):
        actions = parse_action_lines(
            [
                "install\tcurl\t7.88.1\n",
                "remove\tvim\n",
                "install\tfoo\t\t/tmp/foo_1.0_all.deb\n",
            ]
        )
        assert [a.kind for a in actions] == [
            ActionKind.INSTALL,
            ActionKind.REMOVE,
            ActionKind.INSTALL,
        ]
        assert actions[0].module.version == "7.88.1"
        assert actions[1].module.version is None
        assert actions[2].module.version is None
        assert actions[2].module.file == "/tmp/foo_1.0_all.deb"

    def test_preserves_order_and_duplicates(self):
        actions = parse_action_lines(["remove\tfoo\t1\n", "install\tfoo\t2\n", "remove\tfoo\t1\n"])
        assert [str(a) for a in actions] == ["remove foo=1", "install foo=2", "remove foo=1"]

    def test_blank_lines_skipped(self):
        actions = parse_action_lines(["\n", "install\tcurl\n", "   \n", "remove\tvim\n", ""])
        assert len(actions) == 2

    def test_crlf(self):
        actions = parse_action_lines(["install\tcurl\t1.0\r\n"])
        assert actions[0].module.version == "1.0"

    def test_empty_input(self):
        assert parse_action_lines([]) == []

    def test_version_suffix_stripped(self):
        actions = parse_action_lines(["install\tcurl\t7.88::apt\n"], backend="apt")
        assert actions[0].module.version == "7.88"

    def test_raw_bytes(self):
        actions = parse_action_lines([b"install\tcurl\t7.88\n", "remove\tvim\n".encode()])
        assert [str(a) for a in actions] == ["install curl=7.88", "remove vim"]

    def test_undecodable_bytes(self):
        lines = [b"install\tcurl\n", b"\n", b"install\tfoo\xff\t1.0\n"]
        with pytest.raises(MalformedInput, match="line 3: not valid UTF-8 \\(byte 0xff"):
            parse_action_lines(lines)

    def test_unknown_action(self):
        with pytest.raises(MalformedInput, match="line 2: unknown action 'upgrade'"):
            parse_action_lines(["install\tcurl\n", "upgrade\tvim\n"])

    def test_missing_name(self):
        with pytest.raises(MalformedInput, match="line 1"):
            parse_action_lines(["install\n"])

    def test_empty_name(self):
        with pytest.raises(MalformedInput) as exc:
            parse_action_lines(["install\t\t1.0\n"])
        assert exc.value.line_no == 1

    def test_too_many_fields(self):
        with pytest.raises(MalformedInput, match="too many fields"):
            parse_action_lines(["install\tcurl\t1\t/tmp/x.deb\textra\n"])

    def test_remove_with_file(self):
        with pytest.raises(MalformedInput, match="cannot name a file"):
            parse_action_lines(["remove\tfoo\t1\t/tmp/foo.deb\n"])

    def test_space_separated_is_malformed(self):
        with pytest.raises(MalformedInput):
            parse_action_lines(["install curl 7.88\n"])


class TestParseDesiredLines:
    def test_basic_snapshot(self):
        modules = parse_desired_lines(["curl\t7.88\n", "vim\n", "foo\t\t/tmp/foo.deb\n"])
        assert [m.name for m in modules] == ["curl", "vim", "foo"]
        assert modules[0].version == "7.88"
        assert modules[1].version is None
        assert modules[2].file == "/tmp/foo.deb"

    def test_duplicate_name(self):
        with pytest.raises(MalformedInput, match="line 3: module 'curl' listed twice"):
            parse_desired_lines(["curl\t1\n", "vim\n", "curl\t2\n"])

    def test_too_many_fields(self):
        with pytest.raises(MalformedInput, match="too many fields"):
            parse_desired_lines(["curl\t1\t/tmp/x\tmore\n"])

    def test_empty_snapshot(self):
        assert parse_desired_lines(["\n", ""]) == []

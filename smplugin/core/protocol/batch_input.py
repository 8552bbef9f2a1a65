"""
Batch input — parse the line-oriented formats read from stdin.

Action batch (``update-list``), one action per line, tab-separated::

    install<TAB>name[<TAB>version[<TAB>path]]
    remove<TAB>name[<TAB>version]

Desired-state snapshot (``reconcile``)::

    name[<TAB>version[<TAB>path]]

Lines are UTF-8; raw bytes are decoded one line at a time. Empty
fields mean "absent". Blank lines are skipped wherever they occur;
order is otherwise preserved. Any other deviation raises
``MalformedInput`` for the offending line, and nothing is executed.
"""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import ValidationError

from smplugin.core.errors import MalformedInput
from smplugin.core.models.action import ActionKind, ModuleAction
from smplugin.core.models.module import SoftwareModule

FIELD_SEP = "\t"
TYPE_SEP = "::"

_MAX_ACTION_FIELDS = 4
_MAX_DESIRED_FIELDS = 3


def strip_type_suffix(version: str | None, backend: str | None) -> str | None:
    """Drop a ``::<backend>`` module-type suffix from a version.

    The orchestrating agent may qualify versions with the plugin type
    (``1.2-3::apt``). The suffix is only removed when it names the
    active backend.
    """
    if not version or not backend:
        return version or None
    suffix = f"{TYPE_SEP}{backend}"
    if version.endswith(suffix):
        return version[: -len(suffix)] or None
    return version


def _decode(raw: str | bytes, line_no: int) -> str:
    if isinstance(raw, str):
        return raw
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedInput(
            f"not valid UTF-8 (byte 0x{raw[e.start]:02x} at offset {e.start})",
            line_no=line_no,
        ) from e


def _split(lines: Iterable[str | bytes]) -> Iterable[tuple[int, list[str]]]:
    for line_no, raw in enumerate(lines, start=1):
        line = _decode(raw, line_no).rstrip("\r\n")
        if not line.strip():
            continue
        yield line_no, line.split(FIELD_SEP)


def _module(line_no: int, name: str, version: str, file: str, backend: str | None) -> SoftwareModule:
    try:
        return SoftwareModule(
            name=name,
            version=strip_type_suffix(version, backend),
            file=file or None,
        )
    except ValidationError as e:
        message = "; ".join(err["msg"] for err in e.errors())
        raise MalformedInput(message, line_no=line_no) from e


def parse_action_lines(lines: Iterable[str | bytes], *, backend: str | None = None) -> list[ModuleAction]:
    """Parse an action batch.

    Args:
        lines: Input lines, text or raw bytes (e.g. ``sys.stdin.buffer``).
        backend: Active backend name, for version suffix stripping.

    Returns:
        Actions in input order.

    Raises:
        MalformedInput: On the first line that does not parse.
    """
    actions: list[ModuleAction] = []
    for line_no, fields in _split(lines):
        if len(fields) < 2:
            raise MalformedInput("expected at least <action><TAB><name>", line_no=line_no)
        if len(fields) > _MAX_ACTION_FIELDS:
            raise MalformedInput(
                f"too many fields ({len(fields)}, at most {_MAX_ACTION_FIELDS})",
                line_no=line_no,
            )

        kind_field, name, version, file = (fields + ["", ""])[:_MAX_ACTION_FIELDS]
        try:
            kind = ActionKind(kind_field)
        except ValueError:
            raise MalformedInput(
                f"unknown action {kind_field!r} (expected 'install' or 'remove')",
                line_no=line_no,
            ) from None

        if kind == ActionKind.REMOVE and file:
            raise MalformedInput("a remove action cannot name a file", line_no=line_no)

        actions.append(
            ModuleAction(kind=kind, module=_module(line_no, name, version, file, backend))
        )
    return actions


def parse_desired_lines(lines: Iterable[str | bytes], *, backend: str | None = None) -> list[SoftwareModule]:
    """Parse a desired-state snapshot.

    Raises:
        MalformedInput: On a bad line or a module named twice.
    """
    modules: list[SoftwareModule] = []
    seen: set[str] = set()
    for line_no, fields in _split(lines):
        if len(fields) > _MAX_DESIRED_FIELDS:
            raise MalformedInput(
                f"too many fields ({len(fields)}, at most {_MAX_DESIRED_FIELDS})",
                line_no=line_no,
            )
        name, version, file = (fields + ["", ""])[:_MAX_DESIRED_FIELDS]
        module = _module(line_no, name, version, file, backend)
        if module.name in seen:
            raise MalformedInput(f"module {module.name!r} listed twice", line_no=line_no)
        seen.add(module.name)
        modules.append(module)
    return modules

from __future__ import annotations

import copy
import re
from collections.abc import Iterable, Mapping, MutableMapping, Sequence
from typing import Any

from ..errors import FieldMappingError
from ..models.config_models import FieldMapping
from ..models.sheet_data import SheetEntry, is_metadata_entry

"""Field mapper: declarative path-to-path projections.

Path syntax
-----------
``name.child[0]["key with spaces"]``. The first segment may be a root
marker: ``$context`` addresses the shared context, ``$row`` (or no marker)
addresses the row being mapped. Indices are non-negative integers.

Mappings run sequentially in declared order. Each mapping writes into the
output row, which starts empty; unmapped input columns are carried over only
when the sheet opts in with ``keep_unmapped``. A ``$row`` source is read from
the input row first and then from the output written so far, so a later
mapping sees what an earlier one wrote. A source path that resolves to
nothing makes the mapping a no-op and leaves its target unset.
"""

__all__ = [
    "ROOT_ROW",
    "ROOT_CONTEXT",
    "ParsedPath",
    "parse_path",
    "get_path",
    "set_path",
    "deep_merge",
    "apply",
    "apply_to_rows",
]

ROOT_ROW = "$row"
ROOT_CONTEXT = "$context"

# name | [123] | ["quoted"] | ['quoted']
_TOKEN_RE = re.compile(
    r"""
    (?P<name>[^.\[\]]+)
    | \[(?P<index>\d+)\]
    | \["(?P<dq>(?:[^"\\]|\\.)*)"\]
    | \['(?P<sq>(?:[^'\\]|\\.)*)'\]
    """,
    re.VERBOSE,
)

_MISSING = object()

ParsedPath = tuple[str, tuple[str | int, ...]]


def parse_path(path: str) -> ParsedPath:
    """Split ``path`` into (root, segments).

    Raises:
        FieldMappingError: On empty or malformed paths
    """
    if not isinstance(path, str) or not path.strip():
        raise FieldMappingError("empty field mapping path", path=path)
    segments: list[str | int] = []
    pos = 0
    expect_name = True  # a bare name is only valid at the start or right after '.'
    while pos < len(path):
        if path[pos] == ".":
            if expect_name:
                raise FieldMappingError(f"malformed path {path!r}: unexpected '.' at {pos}", path=path)
            pos += 1
            expect_name = True
            if pos == len(path):
                raise FieldMappingError(f"malformed path {path!r}: trailing '.'", path=path)
            continue
        match = _TOKEN_RE.match(path, pos)
        if match is None or (match.group("name") is not None and not expect_name):
            raise FieldMappingError(f"malformed path {path!r} at position {pos}", path=path)
        if match.group("name") is not None:
            segments.append(match.group("name").strip())
        elif match.group("index") is not None:
            segments.append(int(match.group("index")))
        else:
            quoted = match.group("dq") if match.group("dq") is not None else match.group("sq")
            segments.append(re.sub(r"\\(.)", r"\1", quoted))
        pos = match.end()
        expect_name = False

    root = ROOT_ROW
    if segments and segments[0] in (ROOT_ROW, ROOT_CONTEXT):
        root = str(segments.pop(0))
    if not segments:
        raise FieldMappingError(f"path {path!r} addresses no field", path=path)
    return root, tuple(segments)


def get_path(data: Any, segments: Sequence[str | int]) -> Any:
    """Return the value at ``segments`` or the module-level missing sentinel."""
    current = data
    for segment in segments:
        if isinstance(segment, int):
            if isinstance(current, (list, tuple)) and segment < len(current):
                current = current[segment]
                continue
            return _MISSING
        if isinstance(current, Mapping) and segment in current:
            current = current[segment]
            continue
        return _MISSING
    return current


def _new_container(next_segment: str | int) -> Any:
    return [] if isinstance(next_segment, int) else {}


def set_path(data: MutableMapping[str, Any], segments: Sequence[str | int], value: Any, path: str = "") -> None:
    """Write ``value`` at ``segments`` creating intermediate containers.

    ``None`` placeholders are replaced by containers; any other scalar in the
    way is a structural conflict.

    Raises:
        FieldMappingError: On structural conflicts
    """
    current: Any = data
    for i, segment in enumerate(segments):
        last = i == len(segments) - 1
        if isinstance(segment, int):
            if not isinstance(current, list):
                raise FieldMappingError(
                    f"cannot index {type(current).__name__} with [{segment}] while writing {path!r}",
                    path=path,
                )
            while len(current) <= segment:
                current.append(None)
            if last:
                current[segment] = value
                return
            if current[segment] is None:
                current[segment] = _new_container(segments[i + 1])
            current = current[segment]
        else:
            if not isinstance(current, MutableMapping):
                raise FieldMappingError(
                    f"cannot set key {segment!r} on {type(current).__name__} while writing {path!r}",
                    path=path,
                )
            if last:
                current[segment] = value
                return
            if current.get(segment) is None:
                current[segment] = _new_container(segments[i + 1])
            current = current[segment]
        if not isinstance(current, (list, MutableMapping)):
            raise FieldMappingError(
                f"structural conflict at {segment!r}: {type(current).__name__} is not a container while writing {path!r}",
                path=path,
            )


def deep_merge(base: Mapping[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
    """Return a new dict with ``patch`` merged recursively over ``base``."""
    merged = dict(base)
    for key, value in patch.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _read(
    root: str,
    segments: tuple[str | int, ...],
    row: Any,
    projected: Any,
    context: Mapping[str, Any],
    patch: Mapping[str, Any],
) -> Any:
    # row reads prefer the input row and fall back to what earlier mappings wrote;
    # context reads prefer earlier context writes
    if root == ROOT_ROW:
        first, second = row, projected
    else:
        first, second = patch, context
    value = get_path(first, segments)
    if value is _MISSING:
        value = get_path(second, segments)
    return value


def _mapped_columns(mappings: Sequence[FieldMapping]) -> set[str]:
    """Top-level row columns read or written by ``mappings``."""
    columns: set[str] = set()
    for mapping in mappings:
        for path in (mapping.in_path, mapping.out_path):
            root, segments = parse_path(path)
            if root == ROOT_ROW and isinstance(segments[0], str):
                columns.add(segments[0])
    return columns


def apply(
    row: Mapping[str, Any],
    mappings: Iterable[FieldMapping],
    context: Mapping[str, Any] | None = None,
    keep_unmapped: bool = False,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Project one row through ``mappings``.

    The projected row starts empty. With ``keep_unmapped`` it starts with a
    copy of every input column that no mapping reads or writes.

    Returns:
        (projected_row, context_patch). Neither ``row`` nor ``context`` is mutated.

    Raises:
        FieldMappingError: On malformed paths or structural write conflicts
    """
    context = context or {}
    mappings = list(mappings)
    projected: dict[str, Any] = {}
    if keep_unmapped:
        mapped = _mapped_columns(mappings)
        projected = {k: copy.deepcopy(v) for k, v in row.items() if k not in mapped}
    patch: dict[str, Any] = {}
    for mapping in mappings:
        in_root, in_segments = parse_path(mapping.in_path)
        value = _read(in_root, in_segments, row, projected, context, patch)
        if value is _MISSING:
            continue
        out_root, out_segments = parse_path(mapping.out_path)
        target = projected if out_root == ROOT_ROW else patch
        set_path(target, out_segments, copy.deepcopy(value), path=mapping.out_path)
    return projected, patch


def apply_to_rows(
    entries: Sequence[SheetEntry],
    mappings: Sequence[FieldMapping],
    context: Mapping[str, Any] | None = None,
    keep_unmapped: bool = False,
) -> tuple[list[SheetEntry], dict[str, Any]]:
    """Apply ``mappings`` to every data row of one sheet.

    A leading metadata entry passes through untouched. Context patches of all
    rows are merged in row order (later rows win).
    """
    out: list[SheetEntry] = []
    sheet_patch: dict[str, Any] = {}
    for entry in entries:
        if is_metadata_entry(entry):
            out.append(entry)
            continue
        projected, patch = apply(entry, mappings, context, keep_unmapped=keep_unmapped)
        out.append(projected)
        if patch:
            sheet_patch = deep_merge(sheet_patch, patch)
    return out, sheet_patch

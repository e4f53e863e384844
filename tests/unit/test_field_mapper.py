from __future__ import annotations

import pytest

from sheetflow.errors import FieldMappingError
from sheetflow.models.config_models import FieldMapping
from sheetflow.models.sheet_data import MetadataEntry
from sheetflow.services.field_mapper import (
    ROOT_CONTEXT,
    ROOT_ROW,
    apply,
    apply_to_rows,
    deep_merge,
    get_path,
    parse_path,
    set_path,
)


@pytest.mark.parametrize(
    "path, expected",
    [
        ("name", (ROOT_ROW, ("name",))),
        ("a.b.c", (ROOT_ROW, ("a", "b", "c"))),
        ("items[0].sku", (ROOT_ROW, ("items", 0, "sku"))),
        ('["Full Name"]', (ROOT_ROW, ("Full Name",))),
        ("address['zip code']", (ROOT_ROW, ("address", "zip code"))),
        ("$context.user.id", (ROOT_CONTEXT, ("user", "id"))),
        ("$row.name", (ROOT_ROW, ("name",))),
        ("Full Name", (ROOT_ROW, ("Full Name",))),
    ],
)
def test_parse_path(path, expected):
    assert parse_path(path) == expected


@pytest.mark.parametrize("path", ["", "   ", "a..b", ".a", "a.", "a[x]", "a[0]b", "$context", "a[-1]"])
def test_parse_path_rejects_malformed(path):
    with pytest.raises(FieldMappingError):
        parse_path(path)


def test_get_path_missing_segments():
    data = {"a": {"b": [1, 2]}, "s": "text"}
    assert get_path(data, ("a", "b", 1)) == 2
    missing = get_path(data, ("a", "c"))
    assert get_path(data, ("a", "b", 5)) is missing
    assert get_path(data, ("s", "x")) is missing


def test_set_path_creates_intermediate_containers():
    target: dict = {}
    set_path(target, ("a", "items", 1, "sku"), "X1")
    assert target == {"a": {"items": [None, {"sku": "X1"}]}}


def test_set_path_replaces_none_placeholder():
    target = {"a": None}
    set_path(target, ("a", "b"), 1)
    assert target == {"a": {"b": 1}}


def test_set_path_conflict_through_scalar():
    with pytest.raises(FieldMappingError, match="structural conflict"):
        set_path({"a": "text"}, ("a", "b"), 1, path="a.b")


def test_set_path_conflict_key_on_list_and_index_on_dict():
    with pytest.raises(FieldMappingError):
        set_path({"a": [1]}, ("a", "b"), 1)
    with pytest.raises(FieldMappingError):
        set_path({"a": {}}, ("a", 0), 1)


def test_apply_renames_into_output_namespace():
    row = {"Full Name": "Alice", "dept": "HR"}
    projected, patch = apply(
        row,
        [FieldMapping('["Full Name"]', "name"), FieldMapping("dept", "org.department")],
        {},
    )
    assert projected == {"name": "Alice", "org": {"department": "HR"}}
    assert patch == {}
    # input row untouched
    assert row == {"Full Name": "Alice", "dept": "HR"}


def test_apply_missing_source_leaves_stale_target_unset():
    mappings = [FieldMapping('["Full Name"]', "name")]
    projected, _ = apply({"name": "stale"}, mappings, {})
    assert projected == {}
    # a column some mapping writes is never carried over
    projected, _ = apply({"name": "stale", "dept": "HR"}, mappings, {}, keep_unmapped=True)
    assert projected == {"dept": "HR"}


def test_apply_missing_in_path_is_noop():
    projected, patch = apply({"name": "Alice"}, [FieldMapping("email", "contact.email")], {})
    assert projected == {}
    assert patch == {}


def test_apply_keep_unmapped_carries_other_columns():
    row = {"Full Name": "Alice", "email": "a@example.com", "tags": ["x"]}
    projected, _ = apply(row, [FieldMapping('["Full Name"]', "name")], {}, keep_unmapped=True)
    assert projected == {"name": "Alice", "email": "a@example.com", "tags": ["x"]}
    projected["tags"].append("y")
    assert row["tags"] == ["x"]


def test_apply_none_value_is_still_written():
    projected, _ = apply({"email": None}, [FieldMapping("email", "contact")], {})
    assert projected["contact"] is None


def test_apply_reads_and_writes_context():
    context = {"batch": {"id": 7}}
    projected, patch = apply(
        {"department": "HR"},
        [
            FieldMapping("$context.batch.id", "batchId"),
            FieldMapping("department", "$context.lastDepartment"),
        ],
        context,
    )
    assert projected == {"batchId": 7}
    assert patch == {"lastDepartment": "HR"}
    assert context == {"batch": {"id": 7}}


def test_apply_later_mappings_see_earlier_writes():
    projected, patch = apply(
        {"a": 1},
        [
            FieldMapping("a", "b"),
            FieldMapping("b", "c.d"),
            FieldMapping("c.d", "$context.copied"),
            FieldMapping("$context.copied", "e"),
        ],
        {},
    )
    assert projected == {"b": 1, "c": {"d": 1}, "e": 1}
    assert patch == {"copied": 1}


def test_apply_input_row_is_read_before_earlier_writes():
    projected, _ = apply({"a": 1, "b": 2}, [FieldMapping("a", "b"), FieldMapping("b", "c")], {})
    assert projected == {"b": 1, "c": 2}


def test_apply_structural_conflict_raises():
    with pytest.raises(FieldMappingError):
        apply({"a": 1, "b": "scalar"}, [FieldMapping("b", "x"), FieldMapping("a", "x.c")], {})


def test_apply_copies_values_not_references():
    row = {"tags": ["x"]}
    projected, _ = apply(row, [FieldMapping("tags", "labels")], {})
    projected["labels"].append("y")
    assert row["tags"] == ["x"]


def test_apply_to_rows_skips_metadata_and_merges_patches():
    meta = MetadataEntry()
    entries = [meta, {"d": "HR", "n": 1, "x": True}, {"d": "IT"}]
    mappings = [FieldMapping("d", "$context.dept"), FieldMapping("n", "num")]
    out, patch = apply_to_rows(entries, mappings, {})
    assert out[0] is meta
    assert out[1] == {"num": 1}
    assert out[2] == {}
    assert patch == {"dept": "IT"}

    out, _ = apply_to_rows(entries, mappings, {}, keep_unmapped=True)
    assert out[1] == {"num": 1, "x": True}


def test_deep_merge_is_recursive_and_pure():
    base = {"a": {"x": 1, "y": 2}, "b": 1}
    merged = deep_merge(base, {"a": {"y": 3}, "c": 4})
    assert merged == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}
    assert base == {"a": {"x": 1, "y": 2}, "b": 1}

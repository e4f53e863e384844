from __future__ import annotations

import pytest

from sheetflow.config.source import StaticConfigSource
from sheetflow.errors import TemplateNotFoundError
from sheetflow.services.template_resolver import TemplateResolver


def test_find_returns_descriptor(hr_config):
    resolver = TemplateResolver(StaticConfigSource(hr_config))
    template = resolver.find("HRBulkUpload")
    assert template.template_id == "HRBulkUpload"
    assert [s.sheet_name for s in template.sheets] == ["Employees"]
    assert template.sheet("Employees").processing_unit_name == "EmployeeSheetProcessor"
    assert template.sheet("Nope") is None


def test_find_unknown_template_raises(hr_config):
    resolver = TemplateResolver(StaticConfigSource(hr_config))
    with pytest.raises(TemplateNotFoundError) as e:
        resolver.find("Unknown")
    assert e.value.template_id == "Unknown"


def test_static_source_returns_copies_of_base_directives(hr_config):
    source = StaticConfigSource(hr_config)
    base = source.get_base_column_directives("employee")
    base.pop("name")
    assert "name" in source.get_base_column_directives("employee")
    assert source.get_base_column_directives("unknown_schema") == {}
    assert source.template_ids() == ["HRBulkUpload"]

# Shared pytest fixtures
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest

from sheetflow.config.loader import parse_config
from sheetflow.config.source import StaticConfigSource
from sheetflow.logging.error_log import ErrorLogBuffer
from sheetflow.models.config_models import EngineConfig
from sheetflow.services.orchestrator import TemplateManager
from sheetflow.services.registry import UnitRegistry
from sheetflow.units import register_builtin_units


@pytest.fixture()
def temp_workdir(monkeypatch, tmp_path: Path) -> Path:
    (tmp_path / "config").mkdir()
    (tmp_path / "logs").mkdir()
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture()
def sample_config_yaml() -> str:
    return """templates:
  - template_id: HRBulkUpload
    parsing_identifier: hr_bulk_upload
    sheets:
      - sheet_name: Employees
        schema_name: employee
        processing_unit: EmployeeSheetProcessor
        generation_unit: EmployeeSheetGenerator
      - sheet_name: Instructions
        schema_name: instructions
column_directives:
  employee:
    name:
      color: "#FFF2CC"
      isLocked: true
      width: 28
      orderNumber: 1
    department:
      width: 18
      orderNumber: 2
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "templates.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def hr_config() -> EngineConfig:
    return parse_config(
        {
            "templates": [
                {
                    "template_id": "HRBulkUpload",
                    "sheets": [
                        {
                            "sheet_name": "Employees",
                            "schema_name": "employee",
                            "processing_unit": "EmployeeSheetProcessor",
                            "generation_unit": "EmployeeSheetGenerator",
                        },
                    ],
                }
            ],
            "column_directives": {
                "employee": {
                    "name": {"width": 28, "orderNumber": 1},
                    "department": {"width": 18, "orderNumber": 2},
                }
            },
        }
    )


@pytest.fixture()
def builtin_registry() -> UnitRegistry:
    return register_builtin_units(UnitRegistry())


@pytest.fixture()
def error_log(tmp_path: Path) -> ErrorLogBuffer:
    return ErrorLogBuffer(tmp_path / "logs")


@pytest.fixture()
def hr_manager(hr_config: EngineConfig, builtin_registry: UnitRegistry, error_log: ErrorLogBuffer) -> TemplateManager:
    return TemplateManager(
        StaticConfigSource(hr_config),
        builtin_registry,
        show_progress=False,
        error_log=error_log,
    )


class RecordingProcessor:
    """Processing unit double: optional delay/failure, records what it saw."""

    def __init__(self, delay: float = 0.0, fail_with: Exception | None = None, tag: str = "") -> None:
        self.delay = delay
        self.fail_with = fail_with
        self.tag = tag
        self.calls: list[tuple[dict[str, Any], dict[str, Any]]] = []
        self.cancelled = False

    async def process(self, sheet_slice, context):
        self.calls.append((sheet_slice, context))
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.fail_with is not None:
            raise self.fail_with
        (name, entries), = sheet_slice.items()
        rows = [dict(e, processedBy=self.tag) if isinstance(e, dict) and not e.get("isMetadata") else e for e in entries]
        return {name: rows}


class RecordingGenerator:
    def __init__(self, sheet_name: str, delay: float = 0.0) -> None:
        self.sheet_name = sheet_name
        self.delay = delay
        self.contexts: list[dict[str, Any]] = []

    async def generate(self, context):
        self.contexts.append(context)
        await asyncio.sleep(self.delay)
        return {
            self.sheet_name: [
                {"isMetadata": True, "code": {"orderNumber": 1, "width": 10}},
                {"code": f"{self.sheet_name}-1"},
            ]
        }


@pytest.fixture()
def recording_processor_cls() -> type[RecordingProcessor]:
    return RecordingProcessor


@pytest.fixture()
def recording_generator_cls() -> type[RecordingGenerator]:
    return RecordingGenerator

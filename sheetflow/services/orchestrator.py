from __future__ import annotations

import asyncio
import copy
import inspect
import logging
import re
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from ..config.source import ConfigSource
from ..errors import (
    FieldMappingError,
    SheetDataError,
    SheetflowError,
    UnitContractError,
    UnitFailureError,
)
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary
from ..models.config_models import MappingPhase, SheetDescriptor, TemplateDescriptor
from ..models.error_record import TEMPLATE_LEVEL, ErrorRecord
from ..models.processing_result import (
    FLOW_GENERATION,
    FLOW_PROCESSING,
    RunOutcome,
    RunSummary,
    SheetStat,
)
from ..models.sheet_data import (
    SheetDataMap,
    SheetEntry,
    count_data_rows,
    ensure_value,
    is_metadata_entry,
    merge_sheet_maps,
    validate_sheet_entries,
    validate_sheet_map,
)
from .field_mapper import apply_to_rows, deep_merge
from .overlay import ResolvedSheet, resolve_layouts
from .progress import SheetProgressTracker
from .registry import UnitRegistry
from .summary import render_summary_body
from .template_resolver import TemplateResolver

"""Template manager: the coordinator of the engine.

Inbound (run_processing): template -> per-sheet processing units -> merged map.
Outbound (run_generation): template -> per-sheet generation units -> merged map.

Both flows:
1. Resolve the template (TemplateNotFoundError is fatal)
2. Resolve every needed unit up front (UnitNotFoundError is fatal, before any
   unit runs); descriptors without a unit for the flow are skipped
3. Dispatch sheets, concurrently unless disabled; each unit works on its own
   copy of its slice and of the context
4. Merge results in config-declared order, whatever the completion order

Any failure aborts the whole request: other in-flight sheets are cancelled
and one error naming template/sheet/unit reaches the caller. Partial maps are
never returned.
"""

__all__ = [
    "TemplateManager",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _SheetJob:
    descriptor: SheetDescriptor
    unit_name: str
    run: Callable[[], Awaitable[SheetDataMap]]


@dataclass(frozen=True)
class _SheetResult:
    job: _SheetJob
    sheets: SheetDataMap
    elapsed_seconds: float


def _error_type(exc: BaseException) -> str:
    """UnitNotFoundError -> UNIT_NOT_FOUND."""
    name = type(exc).__name__
    if name.endswith("Error") and name != "Error":
        name = name[: -len("Error")]
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).upper()


class TemplateManager:
    """Coordinates template resolution, unit dispatch and result merging."""

    def __init__(
        self,
        config_source: ConfigSource,
        registry: UnitRegistry,
        *,
        concurrent: bool = True,
        show_progress: bool = True,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self._source = config_source
        self._resolver = TemplateResolver(config_source)
        self._registry = registry
        self._concurrent = concurrent
        self._show_progress = show_progress
        self._error_log = error_log

    @property
    def registry(self) -> UnitRegistry:
        return self._registry

    @property
    def error_log(self) -> ErrorLogBuffer | None:
        return self._error_log

    # ------------------------------------------------------------------
    # public entry points
    # ------------------------------------------------------------------
    async def run_processing(
        self,
        template_id: str,
        input_map: Mapping[str, Sequence[SheetEntry]] | None,
        context: Mapping[str, Any] | None = None,
    ) -> SheetDataMap:
        """Run every processing unit of ``template_id`` and return the merged map."""
        outcome = await self.process_with_summary(template_id, input_map, context)
        return outcome.sheets

    async def run_generation(
        self,
        template_id: str,
        context: Mapping[str, Any] | None = None,
    ) -> SheetDataMap:
        """Run every generation unit of ``template_id`` and return the merged map.

        Field mappings are never applied in this flow.
        """
        outcome = await self.generate_with_summary(template_id, context)
        return outcome.sheets

    async def process_with_summary(
        self,
        template_id: str,
        input_map: Mapping[str, Sequence[SheetEntry]] | None,
        context: Mapping[str, Any] | None = None,
    ) -> RunOutcome:
        ctx = self._checked_context(context)
        if input_map is None:
            input_map = {}
        if not isinstance(input_map, Mapping):
            raise SheetDataError(f"input map must be a mapping, got {type(input_map).__name__}")

        def build_jobs(template: TemplateDescriptor) -> tuple[list[_SheetJob], list[str]]:
            jobs: list[_SheetJob] = []
            skipped: list[str] = []
            for descriptor in template.sheets:
                unit_name = descriptor.processing_unit_name
                if not unit_name:
                    skipped.append(descriptor.sheet_name)
                    continue
                unit = self._resolve_unit(
                    template.template_id, descriptor, unit_name, self._registry.resolve_processor
                )
                # a sheet absent from the input is processed as an empty sheet
                raw = input_map.get(descriptor.sheet_name)
                entries = validate_sheet_entries(descriptor.sheet_name, copy.deepcopy(raw))
                jobs.append(
                    _SheetJob(
                        descriptor=descriptor,
                        unit_name=unit_name,
                        run=self._bind_process(template.template_id, descriptor, unit_name, unit, entries, ctx),
                    )
                )
            return jobs, skipped

        return await self._execute(template_id, FLOW_PROCESSING, build_jobs)

    async def generate_with_summary(
        self,
        template_id: str,
        context: Mapping[str, Any] | None = None,
    ) -> RunOutcome:
        ctx = self._checked_context(context)

        def build_jobs(template: TemplateDescriptor) -> tuple[list[_SheetJob], list[str]]:
            jobs: list[_SheetJob] = []
            skipped: list[str] = []
            for descriptor in template.sheets:
                unit_name = descriptor.generation_unit_name
                if not unit_name:
                    skipped.append(descriptor.sheet_name)
                    continue
                unit = self._resolve_unit(
                    template.template_id, descriptor, unit_name, self._registry.resolve_generator
                )
                jobs.append(
                    _SheetJob(
                        descriptor=descriptor,
                        unit_name=unit_name,
                        run=self._bind_generate(template.template_id, descriptor, unit_name, unit, ctx),
                    )
                )
            return jobs, skipped

        return await self._execute(template_id, FLOW_GENERATION, build_jobs)

    def resolve_layouts(self, template_id: str, sheet_map: Mapping[str, Sequence[SheetEntry]]) -> dict[str, ResolvedSheet]:
        """Reconcile each sheet's metadata entry with its schema's base column directives."""
        template = self._resolver.find(template_id)
        return resolve_layouts(template, sheet_map, self._source)

    # ------------------------------------------------------------------
    # per-sheet work
    # ------------------------------------------------------------------
    def _bind_process(
        self,
        template_id: str,
        descriptor: SheetDescriptor,
        unit_name: str,
        unit: Any,
        entries: list[SheetEntry],
        context: dict[str, Any],
    ) -> Callable[[], Awaitable[SheetDataMap]]:
        async def run() -> SheetDataMap:
            sheet_name = descriptor.sheet_name
            sheet_context = copy.deepcopy(context)
            sheet_entries = entries
            mappings = descriptor.field_mappings

            if mappings and descriptor.mapping_phase is MappingPhase.BEFORE:
                sheet_entries, patch = self._map_entries(template_id, descriptor, sheet_entries, sheet_context)
                if patch:
                    sheet_context = deep_merge(sheet_context, patch)

            result = await self._invoke(
                template_id,
                descriptor,
                unit_name,
                lambda: unit.process({sheet_name: sheet_entries}, sheet_context),
            )

            if mappings and descriptor.mapping_phase is MappingPhase.AFTER:
                mapped, patch = self._map_entries(template_id, descriptor, result[sheet_name], sheet_context)
                if patch:
                    logger.debug(f"sheet {sheet_name}: context writes of after-phase mappings are not propagated")
                result = {**result, sheet_name: mapped}
            return result

        return run

    def _bind_generate(
        self,
        template_id: str,
        descriptor: SheetDescriptor,
        unit_name: str,
        unit: Any,
        context: dict[str, Any],
    ) -> Callable[[], Awaitable[SheetDataMap]]:
        async def run() -> SheetDataMap:
            sheet_context = copy.deepcopy(context)
            return await self._invoke(template_id, descriptor, unit_name, lambda: unit.generate(sheet_context))

        return run

    def _map_entries(
        self,
        template_id: str,
        descriptor: SheetDescriptor,
        entries: Sequence[SheetEntry],
        context: Mapping[str, Any],
    ) -> tuple[list[SheetEntry], dict[str, Any]]:
        """Apply the sheet's mappings; mapped entries must still form a valid sheet."""
        try:
            mapped, patch = apply_to_rows(
                entries, descriptor.field_mappings, context, keep_unmapped=descriptor.keep_unmapped
            )
        except FieldMappingError as e:
            raise FieldMappingError(
                str(e), path=e.path, template_id=template_id, sheet_name=descriptor.sheet_name
            ) from e
        try:
            # a mapping may write the metadata marker into a data row
            mapped = validate_sheet_entries(descriptor.sheet_name, mapped)
        except SheetDataError as e:
            raise FieldMappingError(
                f"mapped rows are not a valid sheet: {e}",
                template_id=template_id,
                sheet_name=descriptor.sheet_name,
            ) from e
        return mapped, patch

    def _resolve_unit(
        self,
        template_id: str,
        descriptor: SheetDescriptor,
        unit_name: str,
        resolve: Callable[[str], Any],
    ) -> Any:
        """Resolve one unit; a failing factory is reported against its sheet."""
        try:
            return resolve(unit_name)
        except SheetflowError:
            raise
        except Exception as e:
            raise UnitFailureError(template_id, descriptor.sheet_name, unit_name, e) from e

    async def _invoke(
        self,
        template_id: str,
        descriptor: SheetDescriptor,
        unit_name: str,
        call: Callable[[], Any],
    ) -> SheetDataMap:
        """Call one unit and validate what it returned.

        Unit exceptions are wrapped in UnitFailureError with the original kept
        as ``__cause__``; cancellation passes through untouched.
        """
        sheet_name = descriptor.sheet_name
        logger.debug(f"template={template_id} sheet={sheet_name} unit={unit_name} start")
        try:
            result = call()
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise UnitFailureError(template_id, sheet_name, unit_name, e) from e

        if not isinstance(result, Mapping):
            raise UnitContractError(
                template_id, sheet_name, unit_name,
                detail=f"expected a sheet data map, got {type(result).__name__}",
            )
        if sheet_name not in result:
            raise UnitContractError(
                template_id, sheet_name, unit_name,
                detail=f"result does not contain sheet {sheet_name!r} (got {list(result)})",
            )
        try:
            return validate_sheet_map(result)
        except SheetDataError as e:
            raise UnitContractError(template_id, sheet_name, unit_name, original=e, detail=str(e)) from e

    # ------------------------------------------------------------------
    # run skeleton shared by both flows
    # ------------------------------------------------------------------
    async def _execute(
        self,
        template_id: str,
        flow: str,
        build_jobs: Callable[[TemplateDescriptor], tuple[list[_SheetJob], list[str]]],
    ) -> RunOutcome:
        start_time = datetime.now(UTC)
        started = time.perf_counter()
        try:
            template = self._resolver.find(template_id)
            jobs, skipped = build_jobs(template)
            for sheet_name in skipped:
                logger.debug(f"template={template_id} sheet={sheet_name}: no {flow} unit, skipped")
            logger.info(f"{flow} template={template_id} sheets={len(jobs)} skipped={len(skipped)}")
            with SheetProgressTracker(
                len(jobs), description=f"{flow} {template_id}", enabled=self._show_progress
            ) as progress:
                results = await self._dispatch(jobs, progress)
        except asyncio.CancelledError:
            logger.warning(f"{flow} template={template_id} cancelled")
            raise
        except SheetflowError as e:
            logger.error(f"{flow} template={template_id} failed: {e}")
            self._record_failure(template_id, flow, e)
            raise

        sheets = self._merge(template, results)
        end_time = datetime.now(UTC)
        summary = RunSummary(
            template_id=template_id,
            flow=flow,
            start_time=start_time,
            end_time=end_time,
            elapsed_seconds=time.perf_counter() - started,
            sheet_stats=[
                SheetStat(
                    sheet_name=r.job.descriptor.sheet_name,
                    unit_name=r.job.unit_name,
                    data_rows=count_data_rows(r.sheets[r.job.descriptor.sheet_name]),
                    has_metadata=bool(r.sheets[r.job.descriptor.sheet_name])
                    and is_metadata_entry(r.sheets[r.job.descriptor.sheet_name][0]),
                    elapsed_seconds=r.elapsed_seconds,
                )
                for r in results
            ],
            skipped_sheets=skipped,
        )
        log_summary(render_summary_body(summary))
        return RunOutcome(sheets=sheets, summary=summary)

    async def _dispatch(self, jobs: list[_SheetJob], progress: SheetProgressTracker) -> list[_SheetResult]:
        """Run all jobs; results come back in job (config) order."""

        async def timed(job: _SheetJob) -> _SheetResult:
            t0 = time.perf_counter()
            sheets = await job.run()
            elapsed = time.perf_counter() - t0
            progress.finish_sheet(job.descriptor.sheet_name, count_data_rows(sheets[job.descriptor.sheet_name]))
            return _SheetResult(job=job, sheets=sheets, elapsed_seconds=elapsed)

        if not self._concurrent:
            return [await timed(job) for job in jobs]

        tasks = [
            asyncio.create_task(timed(job), name=f"sheetflow:{job.descriptor.sheet_name}")
            for job in jobs
        ]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            # strict: first failure (or caller cancellation) stops every sibling
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    def _merge(self, template: TemplateDescriptor, results: list[_SheetResult]) -> SheetDataMap:
        """Merge unit results in config order.

        A sheet declared by the template belongs to its own descriptor: extra
        copies returned by other units are dropped. Undeclared extra sheets
        go to the later unit when two units return the same name.
        """
        template_id = template.template_id
        declared = {d.sheet_name for d in template.sheets}
        parts: list[SheetDataMap] = []
        seen: dict[str, str] = {}
        for r in results:
            own = r.job.descriptor.sheet_name
            # the unit's own sheet first, then any extra sheets in the unit's order
            ordered = {own: r.sheets[own]}
            for sheet_name, entries in r.sheets.items():
                if sheet_name == own:
                    continue
                if sheet_name in declared:
                    logger.warning(
                        f"template={template_id} unit {r.job.unit_name} returned declared sheet "
                        f"{sheet_name}; dropped"
                    )
                    continue
                if sheet_name in seen:
                    logger.warning(
                        f"template={template_id} sheet {sheet_name} returned by both "
                        f"{seen[sheet_name]} and {r.job.unit_name}; keeping the latter"
                    )
                ordered[sheet_name] = entries
                seen[sheet_name] = r.job.unit_name
            parts.append(ordered)
        return merge_sheet_maps(*parts)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _checked_context(context: Mapping[str, Any] | None) -> dict[str, Any]:
        if context is None:
            return {}
        if not isinstance(context, Mapping):
            raise SheetDataError(f"context must be a mapping, got {type(context).__name__}")
        ensure_value(context, "context")
        return dict(context)

    def _record_failure(self, template_id: str, flow: str, exc: SheetflowError) -> None:
        if self._error_log is None:
            return
        sheet = getattr(exc, "sheet_name", None) or TEMPLATE_LEVEL
        unit = getattr(exc, "unit_name", None) or TEMPLATE_LEVEL
        self._error_log.append(
            ErrorRecord.create(
                template=template_id,
                flow=flow,
                error_type=_error_type(exc),
                message=str(exc),
                sheet=sheet,
                unit=unit,
            )
        )

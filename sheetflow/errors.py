from __future__ import annotations

"""Exception taxonomy for the sheetflow engine.

Every error raised by the engine derives from SheetflowError so callers can
catch the whole family at once. The orchestrator never retries: each of
these is fatal for the request that raised it.
"""

__all__ = [
    "SheetflowError",
    "ConfigError",
    "SheetDataError",
    "TemplateNotFoundError",
    "UnitNotFoundError",
    "UnitCapabilityError",
    "DuplicateUnitError",
    "RegistryFrozenError",
    "UnitFailureError",
    "UnitContractError",
    "FieldMappingError",
]


class SheetflowError(Exception):
    """Base error for the engine."""


class ConfigError(SheetflowError):
    """Configuration file missing, unreadable or invalid."""


class SheetDataError(SheetflowError):
    """A sheet data map violates the document model invariants."""


class TemplateNotFoundError(SheetflowError):
    """No template descriptor matches the requested identifier (client input error)."""

    def __init__(self, template_id: str) -> None:
        super().__init__(f"template not found: {template_id!r}")
        self.template_id = template_id


class UnitNotFoundError(SheetflowError):
    """A sheet descriptor names a unit that was never registered.

    Indicates a configuration/deployment mismatch, never a transient fault.
    """

    def __init__(self, unit_name: str) -> None:
        super().__init__(f"unit not registered: {unit_name!r}")
        self.unit_name = unit_name


class UnitCapabilityError(SheetflowError):
    """A registered unit cannot serve the requested role (process/generate)."""

    def __init__(self, unit_name: str, capability: str) -> None:
        super().__init__(f"unit {unit_name!r} does not implement {capability}()")
        self.unit_name = unit_name
        self.capability = capability


class DuplicateUnitError(SheetflowError):
    """A unit name was registered twice without explicit replace intent."""


class RegistryFrozenError(SheetflowError):
    """Registration attempted after the registry was frozen."""


class UnitFailureError(SheetflowError):
    """A processing/generation unit raised while handling one sheet.

    The unit's own exception is kept as ``original`` (and ``__cause__``)
    so callers can still reach the domain detail.
    """

    def __init__(
        self,
        template_id: str,
        sheet_name: str,
        unit_name: str,
        original: BaseException | None = None,
        detail: str | None = None,
    ) -> None:
        reason = detail if detail is not None else f"{type(original).__name__}: {original}"
        super().__init__(
            f"template={template_id} sheet={sheet_name} unit={unit_name} failed: {reason}"
        )
        self.template_id = template_id
        self.sheet_name = sheet_name
        self.unit_name = unit_name
        self.original = original


class UnitContractError(UnitFailureError):
    """A unit returned data that breaks the unit contract or the document model."""


class FieldMappingError(SheetflowError):
    """A field mapping path is malformed or could not be written."""

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        template_id: str | None = None,
        sheet_name: str | None = None,
    ) -> None:
        prefix = ""
        if template_id is not None:
            prefix += f"template={template_id} "
        if sheet_name is not None:
            prefix += f"sheet={sheet_name} "
        super().__init__(f"{prefix}{message}")
        self.path = path
        self.template_id = template_id
        self.sheet_name = sheet_name

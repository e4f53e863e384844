"""Domain models for the sheetflow engine.

This package contains the document model (sheet data maps), the template
configuration models and the run result models.
"""

from .config_models import EngineConfig, FieldMapping, MappingPhase, SheetDescriptor, TemplateDescriptor
from .error_record import ErrorRecord
from .processing_result import RunOutcome, RunSummary, SheetStat
from .sheet_data import ColumnDirective, MetadataEntry, SheetDataMap, SheetEntry

__all__ = [
    # Document model
    "ColumnDirective",
    "MetadataEntry",
    "SheetDataMap",
    "SheetEntry",
    # Configuration models
    "EngineConfig",
    "FieldMapping",
    "MappingPhase",
    "SheetDescriptor",
    "TemplateDescriptor",
    # Run results
    "ErrorRecord",
    "RunOutcome",
    "RunSummary",
    "SheetStat",
]

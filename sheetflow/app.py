from __future__ import annotations

import logging

from .config.loader import load_config
from .config.settings import EngineSettings, load_settings
from .config.source import StaticConfigSource
from .logging.error_log import ErrorLogBuffer
from .logging.init import setup_logging
from .services.orchestrator import TemplateManager
from .services.registry import UnitRegistry
from .units import register_builtin_units

"""Startup wiring: settings -> logging -> config -> registry -> TemplateManager."""

__all__ = [
    "create_template_manager",
]


def create_template_manager(
    settings: EngineSettings | None = None,
    registry: UnitRegistry | None = None,
) -> TemplateManager:
    """Build a ready-to-serve TemplateManager.

    When ``registry`` is None a registry holding the built-in units is created.
    The registry is frozen before it is handed to the manager.

    Raises:
        ConfigError: If the template configuration cannot be loaded
    """
    if settings is None:
        settings = load_settings()
    logger = setup_logging(settings.log_level)

    config = load_config(settings.config_path)
    logger.info(f"loaded {len(config.templates)} template(s) from {settings.config_path}")
    logger.debug(f"templates: {list(config.templates)}")

    if registry is None:
        registry = register_builtin_units(UnitRegistry())
    registry.freeze()
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"units: {registry.names()}")

    error_log = ErrorLogBuffer(settings.error_log_dir) if settings.error_log_dir is not None else None
    return TemplateManager(
        StaticConfigSource(config),
        registry,
        concurrent=settings.concurrent,
        show_progress=settings.show_progress,
        error_log=error_log,
    )

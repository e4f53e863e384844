from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from ..errors import DuplicateUnitError, RegistryFrozenError, UnitCapabilityError, UnitNotFoundError
from ..units.base import GenerationUnit, ProcessingUnit

"""Unit registry: symbolic unit name -> factory.

Populated at startup (see sheetflow.units.register_builtin_units) and frozen
before requests are served, so concurrent requests only ever read it.
"""

__all__ = [
    "UnitFactory",
    "UnitRegistry",
]

logger = logging.getLogger(__name__)

UnitFactory = Callable[[], Any]


class UnitRegistry:
    """Registry of processing/generation unit factories."""

    def __init__(self) -> None:
        self._factories: dict[str, UnitFactory] = {}
        self._frozen = False

    def register(self, name: str, factory: UnitFactory, *, replace: bool = False) -> None:
        """Register ``factory`` under ``name``.

        Args:
            name: Symbolic unit name referenced by sheet descriptors
            factory: Zero-argument callable (usually the unit class) building a unit
            replace: Explicitly allow shadowing an existing registration

        Raises:
            RegistryFrozenError: If the registry was frozen
            DuplicateUnitError: If ``name`` is taken and ``replace`` is False
        """
        if self._frozen:
            raise RegistryFrozenError(f"registry is frozen; cannot register {name!r}")
        if not name:
            raise ValueError("unit name must be a non-empty string")
        if not callable(factory):
            raise TypeError(f"factory for {name!r} is not callable")
        if name in self._factories:
            if not replace:
                raise DuplicateUnitError(f"unit already registered: {name!r}")
            logger.warning(f"replacing registered unit: {name}")
        self._factories[name] = factory
        logger.debug(f"registered unit: {name}")

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def names(self) -> list[str]:
        return list(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def __len__(self) -> int:
        return len(self._factories)

    def resolve(self, name: str) -> Any:
        """Build a fresh unit instance for ``name``.

        Raises:
            UnitNotFoundError: If nothing is registered under ``name``
        """
        try:
            factory = self._factories[name]
        except KeyError:
            raise UnitNotFoundError(name) from None
        return factory()

    def resolve_processor(self, name: str) -> ProcessingUnit:
        unit = self.resolve(name)
        if not isinstance(unit, ProcessingUnit):
            raise UnitCapabilityError(name, "process")
        return unit

    def resolve_generator(self, name: str) -> GenerationUnit:
        unit = self.resolve(name)
        if not isinstance(unit, GenerationUnit):
            raise UnitCapabilityError(name, "generate")
        return unit

from __future__ import annotations

import logging

from ..config.source import ConfigSource
from ..errors import TemplateNotFoundError
from ..models.config_models import TemplateDescriptor

__all__ = [
    "TemplateResolver",
]

logger = logging.getLogger(__name__)


class TemplateResolver:
    """Looks up template descriptors by id through a ConfigSource."""

    def __init__(self, source: ConfigSource) -> None:
        self._source = source

    def find(self, template_id: str) -> TemplateDescriptor:
        """Return the descriptor for ``template_id``.

        Raises:
            TemplateNotFoundError: If the source has no such template (fatal, not retried)
        """
        descriptor = self._source.get_template_descriptor(template_id)
        if descriptor is None:
            logger.debug(f"template lookup miss: {template_id}")
            raise TemplateNotFoundError(template_id)
        return descriptor

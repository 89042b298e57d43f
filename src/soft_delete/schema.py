"""
Schema Contract

Every entity the middleware rewrites must carry the tombstone flag, the
tombstone timestamp and the modification timestamp columns. Checked once at
startup so a missing column fails fast instead of surfacing as an executor
error on the first delete.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import inspect

from .config import SoftDeleteSettings

logger = logging.getLogger(__name__)


class SchemaContractError(Exception):
    def __init__(self, violations: Dict[str, List[str]]):
        self.violations = violations
        details = "; ".join(f"{entity}: missing {', '.join(columns)}" for entity, columns in sorted(violations.items()))
        super().__init__(f"Soft delete columns missing ({details})")


def find_contract_violations(base: Any, settings: SoftDeleteSettings) -> Dict[str, List[str]]:
    """Map of entity name to the soft delete columns it lacks"""
    required = [settings.flag_field, settings.deleted_at_field, settings.updated_at_field]
    violations: Dict[str, List[str]] = {}

    for mapper in base.registry.mappers:
        entity = mapper.class_.__name__
        if entity in settings.skip_registry:
            continue
        columns = inspect(mapper.class_).column_attrs
        missing = [name for name in required if name not in columns]
        if missing:
            violations[entity] = missing

    return violations


def verify_schema_contract(base: Any, settings: Optional[SoftDeleteSettings] = None) -> None:
    settings = settings or SoftDeleteSettings.from_env()
    violations = find_contract_violations(base, settings)
    if violations:
        logger.error("Soft delete schema contract violated | violations=%s", violations)
        raise SchemaContractError(violations)
    logger.info("Soft delete schema contract satisfied | entities=%s", len(base.registry.mappers))

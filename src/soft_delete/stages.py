"""
Soft Delete Rewrite Stages

Three synchronous rewrites applied to every operation descriptor, in order:

1. LookupRewriteStage - unique lookups become filtered first-match lookups,
   and every find_many gets the not-deleted predicate.
2. TombstoneRewriteStage - deletes become updates that set the tombstone.
3. RelationInclusionStage - every eagerly included relation gets the
   not-deleted predicate.

Each stage mutates the descriptor in place and returns it. Known gap: the
relation stage only filters relations listed directly in ``include``. Nested
includes and back-references loaded any other way are not filtered.
"""

import logging
from typing import Any, Dict, Mapping

from .config import SoftDeleteSettings
from .descriptor import (
    Action,
    OperationDescriptor,
    ensure_arguments,
    ensure_mapping,
    flatten_unique_where,
)

logger = logging.getLogger(__name__)


class _Stage:
    def __init__(self, settings: SoftDeleteSettings):
        self.settings = settings

    def skips(self, entity: str) -> bool:
        return entity in self.settings.skip_registry

    def __call__(self, descriptor: OperationDescriptor) -> OperationDescriptor:
        if self.skips(descriptor.entity):
            return descriptor
        return self.rewrite(descriptor)

    def rewrite(self, descriptor: OperationDescriptor) -> OperationDescriptor:
        raise NotImplementedError


class LookupRewriteStage(_Stage):
    """Coerce find_unique into find_first and filter reads to live rows"""

    def rewrite(self, descriptor: OperationDescriptor) -> OperationDescriptor:
        flag = self.settings.flag_field

        if descriptor.action == Action.FIND_UNIQUE:
            arguments = ensure_arguments(descriptor)
            descriptor.action = Action.FIND_FIRST
            where = flatten_unique_where(arguments.get("where"))
            where.setdefault(flag, False)
            arguments["where"] = where
            logger.debug("Rewrote find_unique to find_first | entity=%s where=%s", descriptor.entity, where)

        elif descriptor.action == Action.FIND_MANY:
            where = ensure_mapping(ensure_arguments(descriptor), "where")
            if flag not in where:
                where[flag] = False
                logger.debug("Filtered find_many to live rows | entity=%s", descriptor.entity)

        return descriptor


class TombstoneRewriteStage(_Stage):
    """Turn deletes into tombstone updates, optionally stamping updates"""

    def rewrite(self, descriptor: OperationDescriptor) -> OperationDescriptor:
        settings = self.settings

        if descriptor.action == Action.DELETE:
            arguments = ensure_arguments(descriptor)
            descriptor.action = Action.UPDATE
            arguments["data"] = settings.tombstone()
            logger.debug("Rewrote delete to tombstone update | entity=%s", descriptor.entity)

        elif descriptor.action == Action.DELETE_MANY:
            arguments = ensure_arguments(descriptor)
            descriptor.action = Action.UPDATE_MANY
            ensure_mapping(arguments, "data").update(settings.tombstone())
            logger.debug("Rewrote delete_many to tombstone update_many | entity=%s", descriptor.entity)

        elif descriptor.action in (Action.UPDATE, Action.UPDATE_MANY) and settings.stamp_updates:
            data = ensure_mapping(ensure_arguments(descriptor), "data")
            # An explicit caller value is kept
            data.setdefault(settings.updated_at_field, settings.clock())

        return descriptor


class RelationInclusionStage(_Stage):
    """Add the not-deleted predicate to each directly included relation"""

    def rewrite(self, descriptor: OperationDescriptor) -> OperationDescriptor:
        include = (descriptor.arguments or {}).get("include")
        if not isinstance(include, dict):
            return descriptor

        for relation, element in list(include.items()):
            if relation in self.settings.skip_registry or not element:
                continue
            include[relation] = self._filtered(element)

        return descriptor

    def _filtered(self, element: Any) -> Any:
        flag = self.settings.flag_field

        if isinstance(element, bool):
            return {"where": dict(self.settings.not_deleted)}

        if not isinstance(element, Mapping):
            return element

        where = element.get("where")
        if where is None:
            return {**element, "where": dict(self.settings.not_deleted)}
        if flag in where:
            return element
        merged: Dict[str, Any] = {**where, flag: False}
        return {**element, "where": merged}

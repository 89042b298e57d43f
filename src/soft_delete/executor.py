"""
SQLAlchemy Executor

Executes operation descriptors against a SQLAlchemy session. This is the
storage side of the chain: it applies whatever predicate it is given and
knows nothing about soft delete.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import inspect
from sqlalchemy.orm import Query, Session, with_parent

from .descriptor import OperationDescriptor, flatten_unique_where

logger = logging.getLogger(__name__)


class ExecutorError(Exception):
    """Base class for storage-side failures"""


class UnknownEntityError(ExecutorError):
    pass


class UnknownFieldError(ExecutorError):
    """A descriptor referenced a column or relation the entity does not have"""


class RecordNotFoundError(ExecutorError):
    pass


def row_to_dict(row: Any) -> Dict[str, Any]:
    """Column values of a mapped instance"""
    return {attr.key: getattr(row, attr.key) for attr in inspect(row).mapper.column_attrs}


class SqlAlchemyExecutor:
    """
    Runs descriptors with a Session over the models of a declarative Base.

    Args:
        session: Database session
        base: Declarative base whose mapped classes are the entities
        autocommit: Commit after every write
    """

    def __init__(self, session: Session, base: Any, autocommit: bool = True):
        self.session = session
        self.autocommit = autocommit
        self.models = {mapper.class_.__name__: mapper.class_ for mapper in base.registry.mappers}

    def __call__(self, descriptor: OperationDescriptor) -> Any:
        model = self.models.get(descriptor.entity)
        if model is None:
            raise UnknownEntityError(f"Unknown entity '{descriptor.entity}'")

        arguments = descriptor.arguments or {}
        handler = getattr(self, f"_{descriptor.action.value}")
        return handler(model, arguments)

    # ------------------------------------------------------------------
    # Query building
    # ------------------------------------------------------------------

    def _column(self, model: Any, name: str) -> Any:
        if name not in inspect(model).column_attrs:
            raise UnknownFieldError(f"{model.__name__} has no column '{name}'")
        return getattr(model, name)

    def _filtered(self, model: Any, where: Optional[Mapping[str, Any]]) -> Query:
        query = self.session.query(model)
        for name, value in (where or {}).items():
            column = self._column(model, name)
            if isinstance(value, (list, tuple, set)):
                query = query.filter(column.in_(list(value)))
            else:
                query = query.filter(column == value)
        return query

    def _ordered(self, model: Any, query: Query, arguments: Mapping[str, Any]) -> Query:
        order_by = arguments.get("order_by")
        if order_by:
            if isinstance(order_by, str):
                order_by = {order_by: "asc"}
            for name, direction in order_by.items():
                column = self._column(model, name)
                query = query.order_by(column.desc() if direction == "desc" else column.asc())
        else:
            query = query.order_by(*inspect(model).primary_key)

        if arguments.get("skip"):
            query = query.offset(arguments["skip"])
        if arguments.get("take") is not None:
            query = query.limit(arguments["take"])
        return query

    def _check_data(self, model: Any, data: Mapping[str, Any]) -> None:
        for name in data:
            self._column(model, name)

    def _commit(self) -> None:
        if self.autocommit:
            self.session.commit()
        else:
            self.session.flush()

    # ------------------------------------------------------------------
    # Result shaping
    # ------------------------------------------------------------------

    def _serialize(self, row: Any, include: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        result = row_to_dict(row)
        if not include:
            return result

        mapper = inspect(row).mapper
        for name, element in include.items():
            if not element:
                continue
            relationship = mapper.relationships.get(name)
            if relationship is None:
                raise UnknownFieldError(f"{mapper.class_.__name__} has no relation '{name}'")

            options = element if isinstance(element, Mapping) else {}
            target = relationship.mapper.class_
            query = self._filtered(target, options.get("where")).filter(
                with_parent(row, getattr(mapper.class_, name))
            )
            if relationship.uselist:
                related = self._ordered(target, query, options).all()
                result[name] = [self._serialize(item, options.get("include")) for item in related]
            else:
                related = query.first()
                result[name] = self._serialize(related, options.get("include")) if related else None
        return result

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _find_unique(self, model: Any, arguments: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        row = self._filtered(model, flatten_unique_where(arguments.get("where"))).first()
        return self._serialize(row, arguments.get("include")) if row else None

    def _find_first(self, model: Any, arguments: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        query = self._ordered(model, self._filtered(model, arguments.get("where")), arguments)
        row = query.first()
        return self._serialize(row, arguments.get("include")) if row else None

    def _find_many(self, model: Any, arguments: Mapping[str, Any]) -> List[Dict[str, Any]]:
        query = self._ordered(model, self._filtered(model, arguments.get("where")), arguments)
        return [self._serialize(row, arguments.get("include")) for row in query.all()]

    def _count(self, model: Any, arguments: Mapping[str, Any]) -> int:
        return self._filtered(model, arguments.get("where")).count()

    def _create(self, model: Any, arguments: Mapping[str, Any]) -> Dict[str, Any]:
        data = dict(arguments.get("data") or {})
        self._check_data(model, data)
        row = model(**data)
        self.session.add(row)
        self._commit()
        self.session.refresh(row)
        logger.info("Created record | entity=%s", model.__name__)
        return row_to_dict(row)

    def _unique_row(self, model: Any, arguments: Mapping[str, Any]) -> Any:
        where = flatten_unique_where(arguments.get("where"))
        row = self._filtered(model, where).first()
        if row is None:
            raise RecordNotFoundError(f"No {model.__name__} record matches {where}")
        return row

    def _update(self, model: Any, arguments: Mapping[str, Any]) -> Dict[str, Any]:
        data = dict(arguments.get("data") or {})
        self._check_data(model, data)
        row = self._unique_row(model, arguments)
        for name, value in data.items():
            setattr(row, name, value)
        self._commit()
        self.session.refresh(row)
        logger.info("Updated record | entity=%s fields=%s", model.__name__, sorted(data))
        return row_to_dict(row)

    def _update_many(self, model: Any, arguments: Mapping[str, Any]) -> Dict[str, int]:
        data = dict(arguments.get("data") or {})
        self._check_data(model, data)
        count = self._filtered(model, arguments.get("where")).update(data, synchronize_session="fetch")
        self._commit()
        logger.info("Updated records | entity=%s count=%s fields=%s", model.__name__, count, sorted(data))
        return {"count": count}

    def _upsert(self, model: Any, arguments: Mapping[str, Any]) -> Dict[str, Any]:
        row = self._filtered(model, flatten_unique_where(arguments.get("where"))).first()
        if row is None:
            return self._create(model, {"data": arguments.get("create")})
        return self._update(model, {"where": arguments.get("where"), "data": arguments.get("update")})

    def _delete(self, model: Any, arguments: Mapping[str, Any]) -> Dict[str, Any]:
        row = self._unique_row(model, arguments)
        result = row_to_dict(row)
        self.session.delete(row)
        self._commit()
        logger.info("Deleted record | entity=%s", model.__name__)
        return result

    def _delete_many(self, model: Any, arguments: Mapping[str, Any]) -> Dict[str, int]:
        count = self._filtered(model, arguments.get("where")).delete(synchronize_session="fetch")
        self._commit()
        logger.info("Deleted records | entity=%s count=%s", model.__name__, count)
        return {"count": count}


"""
Middleware Chain

Every data-access request crosses into the executor here. Interceptors
registered with ``use`` run in registration order and may rewrite the
descriptor before calling ``next``. The soft delete middleware is the three
rewrite stages composed in their fixed order.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional, Union

from .config import SoftDeleteSettings
from .descriptor import Action, OperationDescriptor
from .stages import LookupRewriteStage, RelationInclusionStage, TombstoneRewriteStage

logger = logging.getLogger(__name__)

Executor = Callable[[OperationDescriptor], Union[Any, Awaitable[Any]]]
Next = Callable[[OperationDescriptor], Any]
Middleware = Callable[[OperationDescriptor, Next], Any]


class SoftDeleteMiddleware:
    """Lookup rewrite, then tombstone rewrite, then relation inclusion"""

    def __init__(self, settings: Optional[SoftDeleteSettings] = None):
        self.settings = settings or SoftDeleteSettings.from_env()
        self.stages = [
            LookupRewriteStage(self.settings),
            TombstoneRewriteStage(self.settings),
            RelationInclusionStage(self.settings),
        ]

    def rewrite(self, descriptor: OperationDescriptor) -> OperationDescriptor:
        for stage in self.stages:
            descriptor = stage(descriptor)
        return descriptor

    def __call__(self, descriptor: OperationDescriptor, next_: Next) -> Any:
        return next_(self.rewrite(descriptor))


class MiddlewareChain:
    """Ordered interceptors in front of a single executor"""

    def __init__(self, executor: Executor):
        self.executor = executor
        self._middlewares: List[Middleware] = []

    def use(self, middleware: Middleware) -> "MiddlewareChain":
        self._middlewares.append(middleware)
        return self

    def _dispatch(self, descriptor: OperationDescriptor) -> Any:
        def call(index: int, current: OperationDescriptor) -> Any:
            if index == len(self._middlewares):
                return self.executor(current)
            return self._middlewares[index](current, lambda d: call(index + 1, d))

        return call(0, descriptor)

    def execute(self, descriptor: OperationDescriptor) -> Any:
        """Run the chain and the executor synchronously"""
        result = self._dispatch(descriptor)
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            raise TypeError("Executor returned an awaitable; use aexecute()")
        return result

    async def aexecute(self, descriptor: OperationDescriptor) -> Any:
        """Run the chain, awaiting the executor when it is asynchronous"""
        result = self._dispatch(descriptor)
        if inspect.isawaitable(result):
            result = await result
        return result


class DataClient(MiddlewareChain):
    """
    Call-site facing client.

    Call sites name the entity and pass Prisma-style arguments; they never
    build descriptors. Deletes, find_unique, find_many and includes are soft
    delete aware. find_first and count are passed through unfiltered.
    """

    def _run(self, entity: str, action: Action, **arguments: Any) -> Any:
        args = {key: value for key, value in arguments.items() if value is not None}
        return self.execute(OperationDescriptor(entity=entity, action=action, arguments=args))

    def find_unique(self, entity: str, where: dict, include: Optional[dict] = None) -> Any:
        return self._run(entity, Action.FIND_UNIQUE, where=where, include=include)

    def find_first(self, entity: str, where: Optional[dict] = None, include: Optional[dict] = None, **options) -> Any:
        """First match of where as given; tombstoned rows are not filtered out"""
        return self._run(entity, Action.FIND_FIRST, where=where, include=include, **options)

    def find_many(self, entity: str, where: Optional[dict] = None, include: Optional[dict] = None, **options) -> Any:
        return self._run(entity, Action.FIND_MANY, where=where, include=include, **options)

    def count(self, entity: str, where: Optional[dict] = None) -> Any:
        """Rows matching where as given, tombstoned rows included"""
        return self._run(entity, Action.COUNT, where=where)

    def create(self, entity: str, data: dict) -> Any:
        return self._run(entity, Action.CREATE, data=data)

    def update(self, entity: str, where: dict, data: dict) -> Any:
        return self._run(entity, Action.UPDATE, where=where, data=data)

    def update_many(self, entity: str, where: Optional[dict] = None, data: Optional[dict] = None) -> Any:
        return self._run(entity, Action.UPDATE_MANY, where=where, data=data)

    def delete(self, entity: str, where: dict) -> Any:
        return self._run(entity, Action.DELETE, where=where)

    def delete_many(self, entity: str, where: Optional[dict] = None) -> Any:
        return self._run(entity, Action.DELETE_MANY, where=where)


def soft_delete_client(executor: Executor, settings: Optional[SoftDeleteSettings] = None) -> DataClient:
    """DataClient with the soft delete middleware installed"""
    middleware = SoftDeleteMiddleware(settings)
    client = DataClient(executor)
    client.use(middleware)
    logger.info("Soft delete middleware installed | skip=%s", list(middleware.settings.skip_registry))
    return client

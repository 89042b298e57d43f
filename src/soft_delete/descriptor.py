"""
Operation Descriptor

One request to the storage layer: target entity, action kind and a mutable
arguments bag holding ``where``, ``data`` and ``include`` sub-mappings.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, MutableMapping, Optional

Arguments = Dict[str, Any]


class Action(str, Enum):
    CREATE = "create"
    FIND_UNIQUE = "find_unique"
    FIND_FIRST = "find_first"
    FIND_MANY = "find_many"
    COUNT = "count"
    UPDATE = "update"
    UPDATE_MANY = "update_many"
    UPSERT = "upsert"
    DELETE = "delete"
    DELETE_MANY = "delete_many"


@dataclass
class OperationDescriptor:
    """
    A single data-access request.

    Owned by the calling request. Middleware mutates it in place and hands it
    onward; nothing keeps a reference once the executor has consumed it.
    """

    entity: str
    action: Action
    arguments: Optional[Arguments] = field(default_factory=dict)

    def __post_init__(self):
        self.action = Action(self.action)


def is_nested(value: Any) -> bool:
    """True for values that are themselves predicate mappings (None is scalar)"""
    return isinstance(value, Mapping)


def ensure_arguments(descriptor: OperationDescriptor) -> Arguments:
    if descriptor.arguments is None:
        descriptor.arguments = {}
    return descriptor.arguments


def ensure_mapping(bag: MutableMapping[str, Any], key: str) -> Dict[str, Any]:
    """Return bag[key], creating an empty mapping when absent or None"""
    if bag.get(key) is None:
        bag[key] = {}
    return bag[key]


def flatten_unique_where(where: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Flatten a unique-key predicate into a plain filter.

    Scalar entries are copied. A mapping value is a composite key such as
    ``{"order_id_tag": {"order_id": 1, "tag": "gift"}}``: its inner entries are
    hoisted one level and the synthetic outer key is dropped. Inner values are
    not inspected further.
    """
    flat: Dict[str, Any] = {}
    for key, value in (where or {}).items():
        if is_nested(value):
            for inner_key, inner_value in value.items():
                flat[inner_key] = inner_value
        else:
            flat[key] = value
    return flat

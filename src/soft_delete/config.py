"""
Soft Delete Configuration

Settings are read from the environment once at startup and frozen. The skip
registry and field names are threaded into the middleware explicitly.
"""

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from .registry import SkipRegistry

DEFAULT_SKIP_ENTITIES = ("Expand", "Organization", "ParentOrganization")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how the DateTime columns are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: Iterable[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class SoftDeleteSettings:
    """
    Soft delete policy

    Attributes:
        skip_registry: Entities passed through untouched
        flag_field: Boolean tombstone column
        deleted_at_field: Tombstone timestamp column
        updated_at_field: Modification timestamp column
        stamp_updates: Stamp updated_at on update/update_many. Off by default
            because the models stamp it through SQLAlchemy onupdate.
        clock: Source of "now" for tombstone and modification timestamps
    """

    skip_registry: SkipRegistry = field(default_factory=lambda: SkipRegistry(DEFAULT_SKIP_ENTITIES))
    flag_field: str = "is_deleted"
    deleted_at_field: str = "deleted_at"
    updated_at_field: str = "updated_at"
    stamp_updates: bool = False
    clock: Callable[[], datetime] = utcnow

    @property
    def not_deleted(self) -> dict:
        """Predicate clause selecting live rows"""
        return {self.flag_field: False}

    def tombstone(self) -> dict:
        """Fresh tombstone data for a delete"""
        return {self.flag_field: True, self.deleted_at_field: self.clock()}

    @classmethod
    def from_env(cls, skip_entities: Optional[Iterable[str]] = None) -> "SoftDeleteSettings":
        """Build settings from SOFT_DELETE_* environment variables"""
        names = skip_entities if skip_entities is not None else _env_list(
            "SOFT_DELETE_SKIP_ENTITIES", DEFAULT_SKIP_ENTITIES
        )
        return cls(
            skip_registry=SkipRegistry(names),
            flag_field=os.getenv("SOFT_DELETE_FLAG_FIELD", "is_deleted"),
            deleted_at_field=os.getenv("SOFT_DELETE_DELETED_AT_FIELD", "deleted_at"),
            updated_at_field=os.getenv("SOFT_DELETE_UPDATED_AT_FIELD", "updated_at"),
            stamp_updates=_env_flag("SOFT_DELETE_STAMP_UPDATES", False),
        )

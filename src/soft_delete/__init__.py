"""
Soft delete middleware for a descriptor-based data-access layer.

Deletes become tombstone updates and reads are filtered to live rows at a
single chokepoint, so call sites never handle soft delete themselves.
"""

from .config import SoftDeleteSettings
from .descriptor import Action, OperationDescriptor
from .middleware import DataClient, MiddlewareChain, SoftDeleteMiddleware, soft_delete_client
from .registry import SkipRegistry
from .stages import LookupRewriteStage, RelationInclusionStage, TombstoneRewriteStage

__all__ = [
    "Action",
    "DataClient",
    "LookupRewriteStage",
    "MiddlewareChain",
    "OperationDescriptor",
    "RelationInclusionStage",
    "SkipRegistry",
    "SoftDeleteMiddleware",
    "SoftDeleteSettings",
    "TombstoneRewriteStage",
    "soft_delete_client",
]

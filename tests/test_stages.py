"""
Rewrite Stage Tests

Covers lookup rewriting, tombstone rewriting and relation inclusion on plain
descriptors, without a database.
"""

import copy

import pytest

from soft_delete.config import SoftDeleteSettings
from soft_delete.descriptor import Action, OperationDescriptor, flatten_unique_where
from soft_delete.middleware import SoftDeleteMiddleware
from soft_delete.registry import SkipRegistry
from soft_delete.stages import LookupRewriteStage, RelationInclusionStage, TombstoneRewriteStage

from conftest import FIXED_NOW


def descriptor(action, entity="Order", **arguments):
    return OperationDescriptor(entity=entity, action=action, arguments=arguments)


# ============================================================================
# Lookup Rewrite Tests
# ============================================================================


class TestLookupRewrite:
    """find_unique coercion and find_many filtering"""

    def test_find_unique_becomes_filtered_find_first(self, settings):
        op = LookupRewriteStage(settings)(descriptor(Action.FIND_UNIQUE, where={"id": "A"}))

        assert op.action == Action.FIND_FIRST
        assert op.arguments["where"] == {"id": "A", "is_deleted": False}

    def test_scalar_entries_are_preserved(self, settings):
        where = {"id": 7, "reference": "ORD-7", "status": "paid"}
        op = LookupRewriteStage(settings)(descriptor(Action.FIND_UNIQUE, where=dict(where)))

        assert op.arguments["where"] == {**where, "is_deleted": False}

    def test_composite_key_is_flattened(self, settings):
        op = LookupRewriteStage(settings)(
            descriptor(Action.FIND_UNIQUE, entity="OrderTag", where={"order_id_tag": {"order_id": 1, "tag": "gift"}})
        )

        assert op.arguments["where"] == {"order_id": 1, "tag": "gift", "is_deleted": False}
        assert "order_id_tag" not in op.arguments["where"]

    def test_none_value_is_treated_as_scalar(self, settings):
        op = LookupRewriteStage(settings)(descriptor(Action.FIND_UNIQUE, where={"id": 1, "notes": None}))

        assert op.arguments["where"] == {"id": 1, "notes": None, "is_deleted": False}

    def test_composite_inner_values_are_hoisted_as_is(self, settings):
        nested = {"pair": {"a": {"deep": 1}, "b": 2}}
        op = LookupRewriteStage(settings)(descriptor(Action.FIND_UNIQUE, where=nested))

        assert op.arguments["where"] == {"a": {"deep": 1}, "b": 2, "is_deleted": False}

    def test_find_unique_without_arguments_is_initialized(self, settings):
        op = OperationDescriptor(entity="Order", action=Action.FIND_UNIQUE, arguments=None)
        LookupRewriteStage(settings)(op)

        assert op.action == Action.FIND_FIRST
        assert op.arguments == {"where": {"is_deleted": False}}

    def test_find_many_without_arguments(self, settings):
        op = OperationDescriptor(entity="Order", action=Action.FIND_MANY, arguments=None)
        LookupRewriteStage(settings)(op)

        assert op.arguments == {"where": {"is_deleted": False}}

    def test_find_many_adds_filter_to_existing_where(self, settings):
        op = LookupRewriteStage(settings)(descriptor(Action.FIND_MANY, where={"status": "paid"}, take=5))

        assert op.action == Action.FIND_MANY
        assert op.arguments == {"where": {"status": "paid", "is_deleted": False}, "take": 5}

    @pytest.mark.parametrize("explicit", [True, None])
    def test_find_many_keeps_explicit_caller_filter(self, settings, explicit):
        op = LookupRewriteStage(settings)(descriptor(Action.FIND_MANY, where={"is_deleted": explicit}))

        assert op.arguments["where"] == {"is_deleted": explicit}

    @pytest.mark.parametrize("action", [Action.CREATE, Action.FIND_FIRST, Action.COUNT, Action.UPDATE])
    def test_other_actions_untouched(self, settings, action):
        op = descriptor(action, where={"id": 1})
        LookupRewriteStage(settings)(op)

        assert op.action == action
        assert op.arguments == {"where": {"id": 1}}

    def test_flatten_unique_where_handles_missing_predicate(self):
        assert flatten_unique_where(None) == {}


# ============================================================================
# Tombstone Rewrite Tests
# ============================================================================


class TestTombstoneRewrite:
    """delete to update conversion and update stamping"""

    def test_delete_becomes_tombstone_update(self, settings):
        op = TombstoneRewriteStage(settings)(descriptor(Action.DELETE, where={"id": 1}))

        assert op.action == Action.UPDATE
        assert op.arguments == {"where": {"id": 1}, "data": {"is_deleted": True, "deleted_at": FIXED_NOW}}

    def test_delete_discards_caller_data(self, settings):
        op = TombstoneRewriteStage(settings)(descriptor(Action.DELETE, where={"id": 1}, data={"status": "x"}))

        assert op.arguments["data"] == {"is_deleted": True, "deleted_at": FIXED_NOW}

    def test_delete_many_scenario(self, settings):
        op = TombstoneRewriteStage(settings)(descriptor(Action.DELETE_MANY, where={"status": "X"}))

        assert op.action == Action.UPDATE_MANY
        assert op.arguments["data"] == {"is_deleted": True, "deleted_at": FIXED_NOW}
        assert op.arguments["where"] == {"status": "X"}

    def test_delete_many_merges_existing_data(self, settings):
        op = TombstoneRewriteStage(settings)(
            descriptor(Action.DELETE_MANY, where={"status": "X"}, data={"notes": "bulk cleanup"})
        )

        assert op.arguments["data"] == {"notes": "bulk cleanup", "is_deleted": True, "deleted_at": FIXED_NOW}

    def test_delete_many_without_arguments(self, settings):
        op = OperationDescriptor(entity="Order", action=Action.DELETE_MANY, arguments=None)
        TombstoneRewriteStage(settings)(op)

        assert op.action == Action.UPDATE_MANY
        assert op.arguments == {"data": {"is_deleted": True, "deleted_at": FIXED_NOW}}

    def test_create_is_never_touched(self, settings):
        op = descriptor(Action.CREATE, data={"reference": "A"})
        TombstoneRewriteStage(settings)(op)

        assert op.action == Action.CREATE
        assert op.arguments == {"data": {"reference": "A"}}

    def test_updates_not_stamped_by_default(self, settings):
        op = TombstoneRewriteStage(settings)(descriptor(Action.UPDATE, where={"id": 1}, data={"status": "paid"}))

        assert op.arguments["data"] == {"status": "paid"}

    @pytest.mark.parametrize("action", [Action.UPDATE, Action.UPDATE_MANY])
    def test_updates_stamped_when_enabled(self, action):
        settings = SoftDeleteSettings(stamp_updates=True, clock=lambda: FIXED_NOW)
        op = TombstoneRewriteStage(settings)(descriptor(action, where={"id": 1}, data={"status": "paid"}))

        assert op.action == action
        assert op.arguments["data"] == {"status": "paid", "updated_at": FIXED_NOW}

    def test_update_stamp_creates_data(self):
        settings = SoftDeleteSettings(stamp_updates=True, clock=lambda: FIXED_NOW)
        op = TombstoneRewriteStage(settings)(OperationDescriptor("Order", Action.UPDATE_MANY, None))

        assert op.arguments == {"data": {"updated_at": FIXED_NOW}}

    def test_update_stamp_keeps_caller_value(self):
        settings = SoftDeleteSettings(stamp_updates=True, clock=lambda: FIXED_NOW)
        explicit = FIXED_NOW.replace(year=2020)
        op = TombstoneRewriteStage(settings)(descriptor(Action.UPDATE, data={"updated_at": explicit}))

        assert op.arguments["data"]["updated_at"] == explicit

    def test_delete_stamped_with_tombstone_only_when_stamping(self):
        settings = SoftDeleteSettings(stamp_updates=True, clock=lambda: FIXED_NOW)
        op = TombstoneRewriteStage(settings)(descriptor(Action.DELETE, where={"id": 1}))

        assert op.arguments["data"] == {"is_deleted": True, "deleted_at": FIXED_NOW}


# ============================================================================
# Relation Inclusion Tests
# ============================================================================


class TestRelationInclusion:
    """not-deleted predicate on included relations"""

    def test_boolean_include_becomes_filtered(self, settings):
        op = RelationInclusionStage(settings)(descriptor(Action.FIND_MANY, include={"items": True}))

        assert op.arguments["include"] == {"items": {"where": {"is_deleted": False}}}

    def test_false_include_untouched(self, settings):
        op = RelationInclusionStage(settings)(descriptor(Action.FIND_MANY, include={"items": False}))

        assert op.arguments["include"] == {"items": False}

    def test_descriptor_without_where_gets_one(self, settings):
        op = RelationInclusionStage(settings)(
            descriptor(Action.FIND_MANY, include={"items": {"order_by": {"sku": "asc"}, "take": 3}})
        )

        assert op.arguments["include"]["items"] == {
            "order_by": {"sku": "asc"},
            "take": 3,
            "where": {"is_deleted": False},
        }

    def test_existing_where_is_merged(self, settings):
        op = RelationInclusionStage(settings)(
            descriptor(Action.FIND_MANY, include={"items": {"where": {"sku": "ABC"}}})
        )

        assert op.arguments["include"]["items"] == {"where": {"sku": "ABC", "is_deleted": False}}

    def test_explicit_caller_filter_wins(self, settings):
        include = {"items": {"where": {"is_deleted": True}}}
        op = RelationInclusionStage(settings)(descriptor(Action.FIND_MANY, include=copy.deepcopy(include)))

        assert op.arguments["include"] == include

    def test_skip_listed_relation_untouched(self, settings):
        op = RelationInclusionStage(settings)(
            descriptor(Action.FIND_FIRST, include={"organization": True, "items": True})
        )

        assert op.arguments["include"]["organization"] is True
        assert op.arguments["include"]["items"] == {"where": {"is_deleted": False}}

    def test_nested_includes_are_not_filtered(self, settings):
        op = RelationInclusionStage(settings)(
            descriptor(Action.FIND_MANY, include={"customer": {"include": {"orders": True}}})
        )

        assert op.arguments["include"]["customer"] == {
            "include": {"orders": True},
            "where": {"is_deleted": False},
        }

    def test_no_include_is_a_noop(self, settings):
        op = OperationDescriptor(entity="Order", action=Action.CREATE, arguments=None)
        RelationInclusionStage(settings)(op)

        assert op.arguments is None


# ============================================================================
# Full Middleware Tests
# ============================================================================


class TestSoftDeleteMiddleware:
    """Stage ordering, skip list and idempotence"""

    def test_find_many_with_include_scenario(self, settings):
        op = SoftDeleteMiddleware(settings).rewrite(descriptor(Action.FIND_MANY, include={"items": True}))

        assert op.arguments == {
            "include": {"items": {"where": {"is_deleted": False}}},
            "where": {"is_deleted": False},
        }

    def test_find_unique_with_include(self, settings):
        op = SoftDeleteMiddleware(settings).rewrite(
            descriptor(Action.FIND_UNIQUE, where={"id": 3}, include={"tags": {"where": {"tag": "gift"}}})
        )

        assert op.action == Action.FIND_FIRST
        assert op.arguments["where"] == {"id": 3, "is_deleted": False}
        assert op.arguments["include"] == {"tags": {"where": {"tag": "gift", "is_deleted": False}}}

    def test_rewrite_is_idempotent(self, settings):
        middleware = SoftDeleteMiddleware(settings)
        once = middleware.rewrite(descriptor(Action.FIND_MANY, where={"status": "paid"}, include={"items": True}))
        snapshot = copy.deepcopy(once.arguments)

        twice = middleware.rewrite(once)

        assert twice.action == Action.FIND_MANY
        assert twice.arguments == snapshot

    @pytest.mark.parametrize(
        "action,arguments",
        [
            (Action.FIND_UNIQUE, {"where": {"id": 1}, "include": {"orders": True}}),
            (Action.FIND_MANY, {"where": {"name": "Acme"}}),
            (Action.DELETE, {"where": {"id": 1}}),
            (Action.DELETE_MANY, {"where": {"name": "Acme"}, "data": {"name": "x"}}),
            (Action.UPDATE, {"where": {"id": 1}, "data": {"name": "y"}}),
        ],
    )
    def test_skip_listed_entity_passes_through_unchanged(self, action, arguments):
        settings = SoftDeleteSettings(
            skip_registry=SkipRegistry(["Organization"]), stamp_updates=True, clock=lambda: FIXED_NOW
        )
        op = descriptor(action, entity="Organization", **copy.deepcopy(arguments))

        SoftDeleteMiddleware(settings).rewrite(op)

        assert op.action == action
        assert op.arguments == arguments

    def test_skip_registry_is_case_insensitive(self):
        registry = SkipRegistry(["Organization", " ParentOrganization ", ""])

        assert "organization" in registry
        assert "PARENTORGANIZATION" in registry
        assert "Order" not in registry
        assert None not in registry
        assert len(registry) == 2

"""
Order Service - Business Logic Layer

Order, item, tag and organization management. Every call goes through the
DataClient, so deletes here are soft deletes and reads only see live rows
without any of these methods filtering on is_deleted themselves.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from .middleware import DataClient

logger = logging.getLogger(__name__)


class OrganizationService:
    """Tenant organizations (exempt from soft delete)"""

    @staticmethod
    def create_organization(client: DataClient, name: str) -> Dict[str, Any]:
        return client.create("Organization", data={"name": name})

    @staticmethod
    def get_organization(client: DataClient, organization_id: int) -> Optional[Dict[str, Any]]:
        return client.find_unique("Organization", where={"id": organization_id})

    @staticmethod
    def delete_organization(client: DataClient, organization_id: int) -> Dict[str, Any]:
        """Hard delete; organizations are not tombstoned"""
        return client.delete("Organization", where={"id": organization_id})


class OrderService:
    """Core order management"""

    @staticmethod
    def create_order(
        client: DataClient,
        reference: str,
        organization_id: Optional[int] = None,
        customer_id: Optional[int] = None,
        total: Decimal = Decimal("0"),
        notes: Optional[str] = None,
        items: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """
        Create an order with optional line items

        Args:
            client: Data client
            reference: Unique order reference
            organization_id: Owning organization
            customer_id: Ordering customer
            total: Order total
            notes: Free-form notes
            items: Line items as {"sku": ..., "quantity": ...}

        Returns:
            Created order record
        """
        order = client.create(
            "Order",
            data={
                "reference": reference,
                "organization_id": organization_id,
                "customer_id": customer_id,
                "status": "pending",
                "total": total,
                "notes": notes,
            },
        )
        for item in items or []:
            OrderItemService.add_item(client, order["id"], item["sku"], item.get("quantity", 1))
        logger.info("Order created | order=%s reference=%s", order["id"], reference)
        return order

    @staticmethod
    def get_order(client: DataClient, order_id: int, with_items: bool = False) -> Optional[Dict[str, Any]]:
        include = {"items": True, "tags": True, "organization": True} if with_items else None
        return client.find_unique("Order", where={"id": order_id}, include=include)

    @staticmethod
    def get_order_by_reference(client: DataClient, reference: str) -> Optional[Dict[str, Any]]:
        return client.find_unique("Order", where={"reference": reference})

    @staticmethod
    def list_orders(
        client: DataClient,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[List[Dict[str, Any]], int]:
        """
        List orders with optional status filter

        Returns:
            Tuple of (orders list, total count)
        """
        where: Dict[str, Any] = {}
        if status:
            where["status"] = status

        # count is not rewritten, so it names the live-row filter itself
        total = client.count("Order", where={**where, "is_deleted": False})
        orders = client.find_many(
            "Order", where=dict(where), order_by={"created_at": "desc"}, take=limit, skip=offset
        )
        return orders, total

    @staticmethod
    def list_deleted_orders(client: DataClient) -> List[Dict[str, Any]]:
        """Trash view: an explicit is_deleted filter is never overridden"""
        return client.find_many("Order", where={"is_deleted": True}, order_by={"deleted_at": "desc"})

    @staticmethod
    def update_status(client: DataClient, order_id: int, status: str) -> Optional[Dict[str, Any]]:
        """Change the status of a live order; None when it does not exist"""
        if OrderService.get_order(client, order_id) is None:
            return None
        return client.update("Order", where={"id": order_id}, data={"status": status})

    @staticmethod
    def delete_order(client: DataClient, order_id: int) -> bool:
        """Delete an order (tombstoned by the middleware)"""
        if OrderService.get_order(client, order_id) is None:
            return False
        client.delete("Order", where={"id": order_id})
        logger.info("Order deleted | order=%s", order_id)
        return True

    @staticmethod
    def delete_orders_by_status(client: DataClient, status: str) -> int:
        result = client.delete_many("Order", where={"status": status})
        logger.info("Orders deleted | status=%s count=%s", status, result["count"])
        return result["count"]

    @staticmethod
    def restore_order(client: DataClient, order_id: int) -> Optional[Dict[str, Any]]:
        deleted = client.find_first("Order", where={"id": order_id, "is_deleted": True})
        if deleted is None:
            return None
        return client.update("Order", where={"id": order_id}, data={"is_deleted": False, "deleted_at": None})


class OrderItemService:
    """Order line items"""

    @staticmethod
    def add_item(client: DataClient, order_id: int, sku: str, quantity: int = 1) -> Dict[str, Any]:
        if quantity < 1:
            raise ValueError("quantity must be >= 1")
        return client.create("OrderItem", data={"order_id": order_id, "sku": sku, "quantity": quantity})

    @staticmethod
    def list_items(client: DataClient, order_id: int) -> List[Dict[str, Any]]:
        return client.find_many("OrderItem", where={"order_id": order_id})

    @staticmethod
    def remove_item(client: DataClient, item_id: int) -> bool:
        """Delete a live item; a removed item keeps its first deleted_at"""
        if client.find_unique("OrderItem", where={"id": item_id}) is None:
            return False
        client.delete("OrderItem", where={"id": item_id})
        return True


class OrderTagService:
    """Order tags, unique per (order_id, tag)"""

    @staticmethod
    def tag_order(client: DataClient, order_id: int, tag: str) -> Dict[str, Any]:
        return client.create("OrderTag", data={"order_id": order_id, "tag": tag})

    @staticmethod
    def get_tag(client: DataClient, order_id: int, tag: str) -> Optional[Dict[str, Any]]:
        return client.find_unique("OrderTag", where={"order_id_tag": {"order_id": order_id, "tag": tag}})

    @staticmethod
    def untag_order(client: DataClient, order_id: int, tag: str) -> bool:
        if OrderTagService.get_tag(client, order_id, tag) is None:
            return False
        client.delete("OrderTag", where={"order_id_tag": {"order_id": order_id, "tag": tag}})
        return True

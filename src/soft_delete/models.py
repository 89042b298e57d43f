"""
Order Service Models

Order management schema used by the demo service and the test-suite. Every
table except the skip-listed organizations carries the soft delete columns
(is_deleted, deleted_at, updated_at).
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

from .config import utcnow

Base = declarative_base()


class Organization(Base):
    """
    Organizations
    Tenant records. Exempt from soft delete, so no tombstone columns.
    """

    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    orders = relationship("Order", back_populates="organization")


class Customer(Base):
    """
    Customers
    People placing orders within an organization
    """

    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(255))
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    orders = relationship("Order", back_populates="customer")


class Order(Base):
    """
    Orders
    Customer orders with line items and free-form tags
    """

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reference = Column(String(64), nullable=False, unique=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    status = Column(String(50), nullable=False, default="pending")  # pending, paid, shipped, cancelled
    total = Column(Numeric(12, 2), default=0)
    notes = Column(Text)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    organization = relationship("Organization", back_populates="orders")
    customer = relationship("Customer", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", order_by="OrderItem.id")
    tags = relationship("OrderTag", back_populates="order", order_by="OrderTag.tag")

    __table_args__ = (
        Index("idx_orders_status_deleted", "status", "is_deleted"),
        Index("idx_orders_customer_created", "customer_id", "created_at"),
    )


class OrderItem(Base):
    """
    Order Items
    Line items belonging to an order
    """

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    sku = Column(String(64), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    order = relationship("Order", back_populates="items")


class OrderTag(Base):
    """
    Order Tags
    Labels on an order, unique per (order_id, tag)
    """

    __tablename__ = "order_tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    tag = Column(String(50), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    order = relationship("Order", back_populates="tags")

    __table_args__ = (UniqueConstraint("order_id", "tag", name="uq_order_tags_order_id_tag"),)

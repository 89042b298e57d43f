"""
Order Service API Endpoints

Order management over the soft delete data client. Deleting an order
tombstones it; list and get endpoints never see tombstoned rows unless they
ask for them explicitly (trash).
"""

from fastapi import FastAPI, HTTPException, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker
from sqlalchemy import create_engine
import logging
from typing import Optional, List, Dict, Any
import os

from .config import SoftDeleteSettings
from .executor import ExecutorError, RecordNotFoundError, SqlAlchemyExecutor
from .middleware import DataClient, soft_delete_client
from .models import Base
from .schema import verify_schema_contract
from .service import OrderItemService, OrderService, OrderTagService, OrganizationService

# ============================================================================
# Setup
# ============================================================================

app = FastAPI(
    title="Order Service API",
    description="Order management with transparent soft delete",
    version="1.0.0",
)

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./orders.db")

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if "sqlite" in DATABASE_URL else {},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

settings = SoftDeleteSettings.from_env()

# Refuse to start on tables without soft delete columns
verify_schema_contract(Base, settings)

try:
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")
except Exception as e:
    logger.error(f"Failed to create database tables: {e}")
    raise


# ============================================================================
# Dependency Injection
# ============================================================================


def get_client():
    """Get a soft delete data client bound to a request-scoped session"""
    db = SessionLocal()
    try:
        yield soft_delete_client(SqlAlchemyExecutor(db, Base), settings)
    finally:
        db.close()


# ============================================================================
# Health Check
# ============================================================================


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "order-service"}


# ============================================================================
# Organization Endpoints
# ============================================================================


@app.post("/organizations", tags=["Organizations"], status_code=201)
async def create_organization(name: str, client: DataClient = Depends(get_client)):
    """Create an organization"""
    try:
        return OrganizationService.create_organization(client, name)
    except Exception as e:
        logger.error(f"Error creating organization: {str(e)}")
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/organizations/{organization_id}", tags=["Organizations"])
async def get_organization(organization_id: int, client: DataClient = Depends(get_client)):
    organization = OrganizationService.get_organization(client, organization_id)
    if not organization:
        raise HTTPException(status_code=404, detail="Organization not found")
    return organization


# ============================================================================
# Order Endpoints
# ============================================================================


@app.post("/orders", tags=["Orders"], status_code=201)
async def create_order(
    reference: str,
    organization_id: Optional[int] = None,
    customer_id: Optional[int] = None,
    notes: Optional[str] = None,
    items: Optional[List[Dict[str, Any]]] = None,
    client: DataClient = Depends(get_client),
):
    """
    Create an order

    - **reference**: Unique order reference
    - **organization_id**: Owning organization (optional)
    - **customer_id**: Ordering customer (optional)
    - **items**: Line items as {"sku": ..., "quantity": ...}
    """
    try:
        return OrderService.create_order(
            client,
            reference=reference,
            organization_id=organization_id,
            customer_id=customer_id,
            notes=notes,
            items=items,
        )
    except Exception as e:
        logger.error(f"Error creating order: {str(e)}")
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/orders", tags=["Orders"])
async def list_orders(
    status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    client: DataClient = Depends(get_client),
):
    """List live orders"""
    orders, total = OrderService.list_orders(client, status=status, limit=limit, offset=offset)
    return {"orders": orders, "total": total, "limit": limit, "offset": offset}


@app.get("/orders/trash", tags=["Orders"])
async def list_deleted_orders(client: DataClient = Depends(get_client)):
    """List soft-deleted orders"""
    orders = OrderService.list_deleted_orders(client)
    return {"orders": orders, "total": len(orders)}


@app.delete("/orders", tags=["Orders"])
async def delete_orders_by_status(status: str, client: DataClient = Depends(get_client)):
    """Soft delete every order with the given status"""
    count = OrderService.delete_orders_by_status(client, status)
    return {"message": "Orders deleted", "count": count}


@app.get("/orders/{order_id}", tags=["Orders"])
async def get_order(order_id: int, with_items: bool = False, client: DataClient = Depends(get_client)):
    """Get an order, optionally with its live items, tags and organization"""
    order = OrderService.get_order(client, order_id, with_items=with_items)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@app.put("/orders/{order_id}/status", tags=["Orders"])
async def update_order_status(order_id: int, status: str, client: DataClient = Depends(get_client)):
    order = OrderService.update_status(client, order_id, status)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@app.delete("/orders/{order_id}", tags=["Orders"])
async def delete_order(order_id: int, client: DataClient = Depends(get_client)):
    """Soft delete an order"""
    success = OrderService.delete_order(client, order_id)
    if not success:
        raise HTTPException(status_code=404, detail="Order not found")
    return {"message": "Order deleted"}


@app.post("/orders/{order_id}/restore", tags=["Orders"])
async def restore_order(order_id: int, client: DataClient = Depends(get_client)):
    """Restore a soft-deleted order"""
    order = OrderService.restore_order(client, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Deleted order not found")
    return order


# ============================================================================
# Item Endpoints
# ============================================================================


@app.post("/orders/{order_id}/items", tags=["Items"], status_code=201)
async def add_item(order_id: int, sku: str, quantity: int = 1, client: DataClient = Depends(get_client)):
    try:
        return OrderItemService.add_item(client, order_id, sku, quantity)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/orders/{order_id}/items", tags=["Items"])
async def list_items(order_id: int, client: DataClient = Depends(get_client)):
    items = OrderItemService.list_items(client, order_id)
    return {"items": items, "total": len(items)}


@app.delete("/items/{item_id}", tags=["Items"])
async def remove_item(item_id: int, client: DataClient = Depends(get_client)):
    if not OrderItemService.remove_item(client, item_id):
        raise HTTPException(status_code=404, detail="Item not found")
    return {"message": "Item removed"}


# ============================================================================
# Tag Endpoints
# ============================================================================


@app.post("/orders/{order_id}/tags/{tag}", tags=["Tags"], status_code=201)
async def tag_order(order_id: int, tag: str, client: DataClient = Depends(get_client)):
    try:
        return OrderTagService.tag_order(client, order_id, tag)
    except Exception as e:
        logger.error(f"Error tagging order: {str(e)}")
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/orders/{order_id}/tags/{tag}", tags=["Tags"])
async def get_tag(order_id: int, tag: str, client: DataClient = Depends(get_client)):
    found = OrderTagService.get_tag(client, order_id, tag)
    if not found:
        raise HTTPException(status_code=404, detail="Tag not found")
    return found


@app.delete("/orders/{order_id}/tags/{tag}", tags=["Tags"])
async def untag_order(order_id: int, tag: str, client: DataClient = Depends(get_client)):
    if not OrderTagService.untag_order(client, order_id, tag):
        raise HTTPException(status_code=404, detail="Tag not found")
    return {"message": "Tag removed"}


# ============================================================================
# Error Handlers
# ============================================================================


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    """Custom HTTP exception handler"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


@app.exception_handler(RecordNotFoundError)
async def record_not_found_handler(request, exc):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ExecutorError)
async def executor_error_handler(request, exc):
    logger.error(f"Storage error: {exc}")
    return JSONResponse(status_code=400, content={"detail": str(exc)})


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8013)

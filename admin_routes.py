from fastapi import APIRouter, Depends, Query

import mock_data
from security import require_admin

router = APIRouter(prefix="/api/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


@router.get("")
def admin_index():
    return {
        "success": True,
        "message": "Administration API",
        "availableEndpoints": {
            "dashboard": "/api/admin/dashboard",
            "orders": "/api/admin/orders",
            "products": "/api/admin/products",
            "users": "/api/admin/users",
        },
    }


@router.get("/dashboard")
def admin_dashboard():
    # order data is not persisted yet, so these figures are sample values
    return {"success": True, "source": "fixture", "data": mock_data.ADMIN_DASHBOARD}


@router.get("/orders")
def list_orders(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100)):
    start = (page - 1) * limit
    orders = mock_data.ORDERS[start:start + limit]
    return {
        "success": True,
        "source": "fixture",
        "data": orders,
        "pagination": {
            "total": mock_data.ORDERS_TOTAL,
            "page": page,
            "limit": limit,
            "pages": -(-mock_data.ORDERS_TOTAL // limit),
        },
    }

from fastapi import APIRouter

from pos_backend.app.api.v1.endpoints.health import router as health_router
from pos_backend.app.api.v1.endpoints.orders import router as orders_router
from pos_backend.app.api.v1.endpoints.stock_requisitions import router as stock_requisitions_router
from pos_backend.app.api.v1.endpoints.customers import router as customers_router
from pos_backend.app.api.v1.endpoints.inventory import router as inventory_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(orders_router, tags=["orders"])
router.include_router(stock_requisitions_router, tags=["stock_requisitions"])
router.include_router(customers_router, tags=["customers"])
router.include_router(inventory_router, tags=["inventory"])

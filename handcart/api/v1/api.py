from fastapi import APIRouter
from handcart.api.v1.routes.payments import router as payments_router
from handcart.api.v1.routes.handcart import router as handcart_router
from handcart.api.v1.routes.orders import router as orders_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(payments_router)
api_router.include_router(handcart_router)
api_router.include_router(orders_router)

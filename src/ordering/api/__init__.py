from ordering.api.errors import install_exception_handlers
from ordering.api.routes import (
    maintenance_router,
    order_router,
    payment_router,
    shipping_router,
    webhook_router,
)

__all__ = [
    "install_exception_handlers",
    "maintenance_router",
    "order_router",
    "payment_router",
    "shipping_router",
    "webhook_router",
]

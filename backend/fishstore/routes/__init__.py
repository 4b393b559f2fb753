from fishstore.routes.admin import router as admin_router
from fishstore.routes.auth import router as auth_router
from fishstore.routes.categories import router as categories_router
from fishstore.routes.contact import router as contact_router
from fishstore.routes.orders import router as orders_router
from fishstore.routes.products import router as products_router
from fishstore.routes.upload import router as upload_router

ALL_ROUTERS = [
    auth_router,
    products_router,
    categories_router,
    orders_router,
    admin_router,
    upload_router,
    contact_router,
]

__all__ = ["ALL_ROUTERS"]

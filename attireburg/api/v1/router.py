from fastapi import APIRouter

from attireburg.api.v1.endpoints import (
    # Backorders
    backorders,
    # Waitlist & Notifications
    waitlist,
    notifications,
    # Inventory & Restock
    inventory,
    restock_dates,
    products,
    # Orders
    orders,
    # Admin
    admin,
)


# Create main API router
api_router = APIRouter(prefix="/api")

# ==================== Backorders (Public) ====================
api_router.include_router(
    backorders.router,
    prefix="/backorders",
    tags=["Backorders"]
)

# ==================== Waitlist (Public) ====================
api_router.include_router(
    waitlist.router,
    prefix="/waitlist",
    tags=["Waitlist"]
)

# ==================== Notifications ====================
api_router.include_router(
    notifications.router,
    prefix="/notifications",
    tags=["Notifications"]
)

# ==================== Inventory ====================
api_router.include_router(
    inventory.router,
    prefix="/inventory",
    tags=["Inventory"]
)

# ==================== Products (Storefront) ====================
api_router.include_router(
    products.router,
    prefix="/products",
    tags=["Products"]
)

# ==================== Orders ====================
api_router.include_router(
    orders.router,
    prefix="/orders",
    tags=["Orders"]
)

# ==================== Restock Dates (Admin) ====================
api_router.include_router(
    restock_dates.router,
    prefix="/admin/restock-dates",
    tags=["Restock Dates"]
)

# ==================== Admin ====================
api_router.include_router(
    admin.router,
    prefix="/admin",
    tags=["Admin"]
)

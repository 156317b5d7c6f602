from attireburg.models.user import User
from attireburg.models.product import Product, ProductVariant
from attireburg.models.order import (
    Order,
    OrderItem,
    OrderStatusHistory,
    OrderStatus,
    OrderType,
    format_order_number,
)
from attireburg.models.restock import RestockSchedule, RestockHistory, RestockAction
from attireburg.models.waitlist import WaitlistSubscription
from attireburg.models.notifications import NotificationLog, NotificationKind
from attireburg.models.sequence import NumberSequence, BACKORDER_PRIORITY_SEQUENCE

__all__ = [
    "User",
    "Product",
    "ProductVariant",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "OrderStatus",
    "OrderType",
    "format_order_number",
    "RestockSchedule",
    "RestockHistory",
    "RestockAction",
    "WaitlistSubscription",
    "NotificationLog",
    "NotificationKind",
    "NumberSequence",
    "BACKORDER_PRIORITY_SEQUENCE",
]

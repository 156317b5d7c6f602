# Services module
from attireburg.services.inventory_service import InventoryService
from attireburg.services.restock_service import RestockService
from attireburg.services.waitlist_service import WaitlistService
from attireburg.services.backorder_service import BackorderService
from attireburg.services.notification_service import NotificationService
from attireburg.services.order_status_service import OrderStatusService
from attireburg.services.inventory_monitor import InventoryMonitor
from attireburg.services.production_check import ProductionCheckService
from attireburg.services.email_service import EmailService, get_email_service

__all__ = [
    "InventoryService",
    "RestockService",
    "WaitlistService",
    "BackorderService",
    "NotificationService",
    "OrderStatusService",
    "InventoryMonitor",
    "ProductionCheckService",
    "EmailService",
    "get_email_service",
]

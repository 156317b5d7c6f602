"""
Notification Service: restock, delay and fulfillment emails.

Every successful dispatch appends one NotificationLog row. The engagement
flags on that row are only ever changed by the tracking methods.
"""
from typing import Optional, List, Dict
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from html import escape
from urllib.parse import urlencode
import logging
import uuid

from sqlalchemy import select, func, case
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from attireburg.config import settings
from attireburg.core.security import create_unsubscribe_token
from attireburg.models.notifications import NotificationLog, NotificationKind
from attireburg.models.product import Product, ProductVariant
from attireburg.services.email_service import EmailService, get_email_service, wrap_html, button
from attireburg.services.restock_display import format_german_date, format_date_string
from attireburg.services.waitlist_service import WaitlistService


logger = logging.getLogger(__name__)


@dataclass
class EmailTemplate:
    subject: str
    html_content: str
    text_content: str
    type: str


@dataclass
class RestockNotificationData:
    email: str
    product_name: str
    product_id: uuid.UUID
    purchase_url: str
    unsubscribe_url: Optional[str] = None
    variant_id: Optional[uuid.UUID] = None
    variant_sku: Optional[str] = None
    current_price: Optional[Decimal] = None
    currency: str = "EUR"
    product_name_en: Optional[str] = None


@dataclass
class DelayNotificationData:
    email: str
    product_name: str
    order_number: str
    original_date: datetime
    cancellation_url: str
    new_date: Optional[datetime] = None
    order_id: Optional[uuid.UUID] = None


@dataclass
class FulfillmentNotificationData:
    email: str
    product_name: str
    order_number: str
    order_url: str
    variant_sku: Optional[str] = None
    order_id: Optional[uuid.UUID] = None


def format_price(amount: Optional[Decimal], currency: str = "EUR") -> str:
    """German price format, e.g. ``49,99 €``."""
    if amount is None:
        return ""
    symbol = "€" if currency == "EUR" else currency
    formatted = f"{Decimal(amount):,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"{formatted} {symbol}"


def format_long_date(value: datetime) -> str:
    """``15. März 2026 (Sun Mar 15 2026)``"""
    return f"{format_german_date(value)} ({format_date_string(value)})"


def build_unsubscribe_url(email: str, product_id: uuid.UUID, variant_id: Optional[uuid.UUID] = None) -> str:
    """Signed one-click unsubscribe link for restock emails."""
    params = {"email": email, "productId": str(product_id)}
    if variant_id:
        params["variantId"] = str(variant_id)
    params["token"] = create_unsubscribe_token(email, product_id, variant_id)
    return f"{settings.api_base_url}/api/waitlist/unsubscribe?{urlencode(params)}"


def build_product_url(product_id: uuid.UUID, variant_id: Optional[uuid.UUID] = None) -> str:
    url = f"{settings.BASE_URL.rstrip('/')}/products/{product_id}"
    if variant_id:
        url += f"?variant={variant_id}"
    return url


def build_cancellation_url(order_id: uuid.UUID) -> str:
    return f"{settings.BASE_URL.rstrip('/')}/account/backorders?cancel={order_id}"


def tracking_pixel(notification_id: uuid.UUID) -> str:
    url = f"{settings.api_base_url}/api/notifications/status?notificationId={notification_id}&action=open"
    return f'<img src="{url}" width="1" height="1" alt="" style="display: none;">'


def _count_true(column):
    return func.coalesce(func.sum(case((column == True, 1), else_=0)), 0)


def _percentage(part: int, total: int) -> float:
    if not total:
        return 0
    return round(part / total * 100, 2)


class NotificationService:
    """Service for customer notification emails and their analytics."""

    def __init__(self, db: AsyncSession, email_service: Optional[EmailService] = None):
        self.db = db
        self.email_service = email_service or get_email_service()

    # ==================== TEMPLATES ====================

    def generate_restock_template(
        self,
        data: RestockNotificationData,
        unsubscribe_url: Optional[str] = None,
    ) -> EmailTemplate:
        unsubscribe_url = unsubscribe_url or data.unsubscribe_url or ""
        name = escape(data.product_name)
        price = format_price(data.current_price, data.currency)
        sku_html = f'<p style="margin: 5px 0 0 0; color: #666;">Artikel: {escape(data.variant_sku)}</p>' if data.variant_sku else ""
        price_html = f'<p style="margin: 10px 0 0 0; font-size: 18px;"><strong>{price}</strong></p>' if price else ""

        subject = f"{data.product_name} ist wieder verfügbar! | Attireburg"
        body = f"""
                <p>Gute Nachrichten!</p>
                <p>Der Artikel, für den Sie sich interessiert haben, ist wieder auf Lager:</p>
                <div style="background: #f8f9fa; padding: 20px; border-radius: 8px; margin: 20px 0;">
                    <p style="margin: 0; font-size: 18px;"><strong>{name}</strong></p>
                    {sku_html}
                    {price_html}
                </div>
                <p>Die Nachfrage ist groß. Sichern Sie sich Ihr Exemplar, solange der Vorrat reicht.</p>
                {button(data.purchase_url, "Jetzt kaufen")}
        """
        footer = (
            f'Sie erhalten diese E-Mail, weil Sie sich auf die Warteliste eingetragen haben. '
            f'<a href="{unsubscribe_url}" style="color: #999;">Abmelden</a>'
        )
        html_content = wrap_html("Wieder verfügbar!", body, footer)

        text_content = f"""
{data.product_name} ist wieder verfügbar!

Der Artikel, für den Sie sich interessiert haben, ist wieder auf Lager.
{f'Artikel: {data.variant_sku}' if data.variant_sku else ''}
{f'Preis: {price}' if price else ''}

Jetzt kaufen: {data.purchase_url}

Von der Warteliste abmelden: {unsubscribe_url}
        """
        return EmailTemplate(subject, html_content, text_content, NotificationKind.RESTOCK.value)

    def generate_delay_template(self, data: DelayNotificationData) -> EmailTemplate:
        """
        Delay notice for a backorder whose expected date has passed.

        Contains the order number, product name, original date, the new
        date when known, and the cancellation link both as anchor and as
        plain URL.
        """
        original = format_long_date(data.original_date)
        new_date = format_long_date(data.new_date) if data.new_date else None

        new_date_html = (
            f'<p style="margin: 10px 0 0 0;"><strong>Neues voraussichtliches Datum:</strong> {new_date}</p>'
            if new_date else
            '<p style="margin: 10px 0 0 0;"><strong>Neues voraussichtliches Datum:</strong> wird noch bekanntgegeben</p>'
        )

        subject = f"Verzögerung Ihrer Bestellung {data.order_number} | Attireburg"
        body = f"""
                <p>Leider verzögert sich die Lieferung eines Artikels aus Ihrer Vorbestellung.</p>
                <div style="background: #fff3cd; padding: 20px; border-radius: 8px; margin: 20px 0;">
                    <p style="margin: 0;"><strong>Bestellnummer:</strong> {escape(data.order_number)}</p>
                    <p style="margin: 10px 0 0 0;"><strong>Artikel:</strong> {escape(data.product_name)}</p>
                    <p style="margin: 10px 0 0 0;"><strong>Ursprünglich erwartet:</strong> {original}</p>
                    {new_date_html}
                </div>
                <p>Wir entschuldigen uns für die Unannehmlichkeiten. Wenn Sie nicht länger warten möchten,
                können Sie Ihre Vorbestellung jederzeit kostenlos stornieren:</p>
                <p style="text-align: center;"><a href="{data.cancellation_url}" style="color: #8B4513; font-weight: bold;">Vorbestellung stornieren</a></p>
        """
        html_content = wrap_html("Lieferverzögerung", body)

        text_content = f"""
Verzögerung Ihrer Bestellung {data.order_number}

Leider verzögert sich die Lieferung eines Artikels aus Ihrer Vorbestellung.

Bestellnummer: {data.order_number}
Artikel: {data.product_name}
Ursprünglich erwartet: {original}
Neues voraussichtliches Datum: {new_date or 'wird noch bekanntgegeben'}

Vorbestellung stornieren: {data.cancellation_url}
        """
        return EmailTemplate(subject, html_content, text_content, NotificationKind.DELAY.value)

    def generate_fulfillment_template(self, data: FulfillmentNotificationData) -> EmailTemplate:
        subject = f"Ihre Vorbestellung {data.order_number} wird bearbeitet | Attireburg"
        sku_html = f'<p style="margin: 10px 0 0 0;"><strong>Artikel-Nr.:</strong> {escape(data.variant_sku)}</p>' if data.variant_sku else ""
        body = f"""
                <p>Ihr vorbestellter Artikel ist eingetroffen und Ihre Bestellung wird jetzt bearbeitet.</p>
                <div style="background: #d4edda; padding: 20px; border-radius: 8px; margin: 20px 0;">
                    <p style="margin: 0;"><strong>Bestellnummer:</strong> {escape(data.order_number)}</p>
                    <p style="margin: 10px 0 0 0;"><strong>Artikel:</strong> {escape(data.product_name)}</p>
                    {sku_html}
                </div>
                <p>Sobald Ihr Paket versandt wurde, erhalten Sie eine weitere E-Mail mit der Sendungsnummer.</p>
                {button(data.order_url, "Bestellung ansehen")}
        """
        html_content = wrap_html("Ihre Vorbestellung ist da!", body)

        text_content = f"""
Ihre Vorbestellung {data.order_number} wird bearbeitet

Artikel: {data.product_name}
{f'Artikel-Nr.: {data.variant_sku}' if data.variant_sku else ''}

Bestellung ansehen: {data.order_url}
        """
        return EmailTemplate(subject, html_content, text_content, NotificationKind.FULFILLMENT.value)

    def generate_consolidated_template(
        self,
        email: str,
        notifications: List[RestockNotificationData],
    ) -> EmailTemplate:
        """One restock email listing several products for the same address."""
        rows_html = "".join(
            f"""
                    <tr>
                        <td style="padding: 10px; border-bottom: 1px solid #eee;">
                            <strong>{escape(n.product_name)}</strong>
                            {f'<br><span style="color: #666;">{escape(n.variant_sku)}</span>' if n.variant_sku else ''}
                        </td>
                        <td style="padding: 10px; border-bottom: 1px solid #eee; text-align: right;">{format_price(n.current_price, n.currency)}</td>
                        <td style="padding: 10px; border-bottom: 1px solid #eee; text-align: right;">
                            <a href="{n.purchase_url}" style="color: #8B4513;">Jetzt kaufen</a>
                        </td>
                    </tr>"""
            for n in notifications
        )
        unsubscribe_links = " | ".join(
            f'<a href="{n.unsubscribe_url}" style="color: #999;">{escape(n.product_name)}</a>'
            for n in notifications if n.unsubscribe_url
        )

        subject = f"{len(notifications)} Artikel auf Ihrer Warteliste sind wieder verfügbar | Attireburg"
        body = f"""
                <p>Gute Nachrichten! Mehrere Artikel von Ihrer Warteliste sind wieder auf Lager:</p>
                <table style="width: 100%; border-collapse: collapse; margin: 20px 0;">{rows_html}
                </table>
        """
        footer = f"Abmelden: {unsubscribe_links}" if unsubscribe_links else None
        html_content = wrap_html("Wieder verfügbar!", body, footer)

        lines = "\n".join(
            f"- {n.product_name}{f' ({n.variant_sku})' if n.variant_sku else ''}: {n.purchase_url}"
            for n in notifications
        )
        text_content = f"""
Mehrere Artikel von Ihrer Warteliste sind wieder verfügbar:

{lines}
        """
        return EmailTemplate(subject, html_content, text_content, NotificationKind.RESTOCK.value)

    # ==================== DISPATCH ====================

    async def _dispatch(
        self,
        email: str,
        template: EmailTemplate,
        product_name: Optional[str] = None,
        variant_sku: Optional[str] = None,
        order_id: Optional[uuid.UUID] = None,
        subscription_id: Optional[uuid.UUID] = None,
    ) -> Optional[uuid.UUID]:
        """Send the email and log it. Returns the log id, or None when sending failed."""
        notification_id = uuid.uuid4()
        html_content = template.html_content.replace("</body>", f"{tracking_pixel(notification_id)}</body>", 1)

        if not self.email_service.send_email(email, template.subject, html_content, template.text_content):
            logger.warning(f"{template.type} notification to {email} was not sent")
            return None

        self.db.add(NotificationLog(
            id=notification_id,
            notification_type=template.type,
            email=email,
            subject=template.subject[:300],
            product_name=product_name,
            variant_sku=variant_sku,
            order_id=order_id,
            subscription_id=subscription_id,
        ))
        await self.db.flush()
        return notification_id

    async def send_restock_notification(
        self,
        data: RestockNotificationData,
        subscription_id: Optional[uuid.UUID] = None,
    ) -> dict:
        unsubscribe_url = data.unsubscribe_url or build_unsubscribe_url(data.email, data.product_id, data.variant_id)
        template = self.generate_restock_template(data, unsubscribe_url)

        notification_id = await self._dispatch(
            data.email,
            template,
            product_name=data.product_name,
            variant_sku=data.variant_sku,
            subscription_id=subscription_id,
        )
        if not notification_id:
            return {"success": False, "message": "Failed to send restock notification"}

        logger.info(f"Restock notification sent to {data.email} for {data.product_name}")
        return {
            "success": True,
            "message": "Restock notification sent successfully",
            "notification_id": notification_id,
        }

    async def send_delay_notification(self, data: DelayNotificationData) -> dict:
        template = self.generate_delay_template(data)

        notification_id = await self._dispatch(
            data.email,
            template,
            product_name=data.product_name,
            order_id=data.order_id,
        )
        if not notification_id:
            return {"success": False, "message": "Failed to send delay notification"}

        logger.info(f"Delay notification sent to {data.email} for order {data.order_number}")
        return {
            "success": True,
            "message": "Delay notification sent successfully",
            "notification_id": notification_id,
        }

    async def send_fulfillment_notification(self, data: FulfillmentNotificationData) -> dict:
        template = self.generate_fulfillment_template(data)

        notification_id = await self._dispatch(
            data.email,
            template,
            product_name=data.product_name,
            variant_sku=data.variant_sku,
            order_id=data.order_id,
        )
        if not notification_id:
            return {"success": False, "message": "Failed to send fulfillment notification"}

        return {
            "success": True,
            "message": "Fulfillment notification sent successfully",
            "notification_id": notification_id,
        }

    async def send_consolidated_notifications(
        self,
        email: str,
        notifications: List[RestockNotificationData],
        subscription_id: Optional[uuid.UUID] = None,
    ) -> dict:
        if not notifications:
            return {"success": True, "message": "No notifications to send"}

        if len(notifications) == 1:
            return await self.send_restock_notification(notifications[0], subscription_id)

        for n in notifications:
            if not n.unsubscribe_url:
                n.unsubscribe_url = build_unsubscribe_url(email, n.product_id, n.variant_id)

        template = self.generate_consolidated_template(email, notifications)
        notification_id = await self._dispatch(
            email,
            template,
            product_name=", ".join(n.product_name for n in notifications)[:255],
            subscription_id=subscription_id,
        )
        if not notification_id:
            return {"success": False, "message": "Failed to send consolidated notification"}

        logger.info(f"Consolidated restock notification sent to {email} ({len(notifications)} items)")
        return {
            "success": True,
            "message": "Consolidated notification sent successfully",
            "notification_id": notification_id,
        }

    async def send_test_notification(self, email: str) -> dict:
        """Send a synthetic restock email for operational verification."""
        data = RestockNotificationData(
            email=email,
            product_name="Test-Produkt",
            product_id=uuid.UUID(int=0),
            purchase_url=f"{settings.BASE_URL.rstrip('/')}/products",
            unsubscribe_url=f"{settings.BASE_URL.rstrip('/')}/account",
            current_price=Decimal("49.99"),
        )
        template = self.generate_restock_template(data)
        template.type = NotificationKind.TEST.value
        template.subject = f"[Test] {template.subject}"

        notification_id = await self._dispatch(email, template, product_name=data.product_name)
        if not notification_id:
            return {"success": False, "message": "Failed to send test notification"}

        return {
            "success": True,
            "message": "Test notification sent successfully",
            "notification_id": notification_id,
        }

    async def send_restock_notifications_for_product(
        self,
        product_id: uuid.UUID,
        variant_id: Optional[uuid.UUID] = None,
    ) -> dict:
        """
        Notify every active waitlist subscriber of a product (or variant).

        Subscribers with several matching subscriptions get one consolidated
        email. Subscriptions of successfully mailed addresses are marked
        notified.
        """
        waitlist = WaitlistService(self.db)
        subscriptions = await waitlist.get_product_subscriptions(product_id, variant_id)
        if not subscriptions:
            return {
                "success": True,
                "message": "Sent 0 of 0 notifications",
                "notifications_sent": 0,
                "subscriptions_notified": 0,
                "total_subscriptions": 0,
            }

        product = await self.db.get(Product, product_id)
        variants: Dict[uuid.UUID, ProductVariant] = {}
        for sub in subscriptions:
            vid = sub["variant_id"]
            if vid and vid not in variants:
                variants[vid] = await self.db.get(ProductVariant, vid)

        by_email: Dict[str, List[dict]] = {}
        for sub in subscriptions:
            by_email.setdefault(sub["email"], []).append(sub)

        sent = 0
        notified_ids: List[uuid.UUID] = []
        for email, subs in by_email.items():
            notifications = []
            for sub in subs:
                variant = variants.get(sub["variant_id"]) if sub["variant_id"] else None
                price = variant.price if variant and variant.price is not None else (product.price if product else None)
                notifications.append(RestockNotificationData(
                    email=email,
                    product_name=sub["product_name"] or (product.name if product else ""),
                    product_id=sub["product_id"],
                    purchase_url=build_product_url(sub["product_id"], sub["variant_id"]),
                    variant_id=sub["variant_id"],
                    variant_sku=sub["variant_sku"],
                    current_price=price,
                    currency=product.currency if product else settings.DEFAULT_CURRENCY,
                    product_name_en=product.name_en if product else None,
                ))

            result = await self.send_consolidated_notifications(
                email,
                notifications,
                subscription_id=subs[0]["id"],
            )
            if result["success"]:
                sent += 1
                notified_ids.extend(sub["id"] for sub in subs)

        await waitlist.mark_notified(notified_ids)

        logger.info(f"Restock fan-out for product {product_id}/{variant_id}: {sent} of {len(by_email)} sent")
        return {
            "success": True,
            "message": f"Sent {sent} of {len(by_email)} notifications",
            "notifications_sent": sent,
            "subscriptions_notified": len(notified_ids),
            "total_subscriptions": len(subscriptions),
        }

    # ==================== TRACKING ====================

    async def _track(self, notification_id, flag: str, timestamp: str) -> bool:
        try:
            notification_id = uuid.UUID(str(notification_id))
        except ValueError:
            return False

        log = await self.db.get(NotificationLog, notification_id)
        if not log:
            return False

        if not getattr(log, flag):
            setattr(log, flag, True)
            setattr(log, timestamp, datetime.now(timezone.utc))
            await self.db.flush()
        return True

    async def track_email_open(self, notification_id) -> bool:
        return await self._track(notification_id, "email_opened", "opened_at")

    async def track_link_click(self, notification_id) -> bool:
        return await self._track(notification_id, "link_clicked", "clicked_at")

    async def track_purchase_complete(self, notification_id) -> bool:
        return await self._track(notification_id, "purchase_completed", "purchased_at")

    # ==================== ANALYTICS ====================

    async def get_analytics(self) -> dict:
        """Send counts and engagement rates (percent, two decimals)."""
        empty = {"total_sent": 0, "open_rate": 0, "click_rate": 0, "conversion_rate": 0, "by_type": {}}
        try:
            result = await self.db.execute(
                select(
                    func.count(NotificationLog.id),
                    _count_true(NotificationLog.email_opened),
                    _count_true(NotificationLog.link_clicked),
                    _count_true(NotificationLog.purchase_completed),
                )
            )
            total, opened, clicked, purchased = result.one()

            type_result = await self.db.execute(
                select(NotificationLog.notification_type, func.count(NotificationLog.id))
                .group_by(NotificationLog.notification_type)
            )
            by_type = {kind: count for kind, count in type_result.all()}
        except SQLAlchemyError as e:
            logger.error(f"Failed to load notification analytics: {e}")
            return empty

        if not total:
            return empty

        return {
            "total_sent": total,
            "open_rate": _percentage(opened, total),
            "click_rate": _percentage(clicked, total),
            "conversion_rate": _percentage(purchased, total),
            "by_type": by_type,
        }

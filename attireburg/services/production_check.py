"""Production readiness report for the admin dashboard."""
from typing import List, Optional
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
import logging

from sqlalchemy import select, func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from attireburg.config import Settings, settings as default_settings
from attireburg.models.product import Product
from attireburg.models.user import User


logger = logging.getLogger(__name__)

PASS = "pass"
FAIL = "fail"
WARNING = "warning"

DEFAULT_SECRET_KEY = "dev-secret-key"
MIN_SECRET_LENGTH = 32


@dataclass
class ProductionCheck:
    name: str
    status: str
    message: str
    required: bool


def overall_status(checks: List[ProductionCheck]) -> str:
    if any(c.required and c.status == FAIL for c in checks):
        return "not-ready"
    if any(c.status == WARNING for c in checks):
        return "ready-with-warnings"
    return "ready"


def generate_recommendations(checks: List[ProductionCheck]) -> List[str]:
    failed = [c for c in checks if c.status == FAIL]
    warnings = [c for c in checks if c.status == WARNING]
    recommendations = []

    if failed:
        recommendations.append("Fix all failed checks before deploying to production")
        recommendations.extend(f"  - {c.name}: {c.message}" for c in failed)

    if warnings:
        recommendations.append("Consider addressing these warnings:")
        recommendations.extend(f"  - {c.name}: {c.message}" for c in warnings)

    if not failed and not warnings:
        recommendations.extend([
            "All checks passed. The application is ready for production.",
            "Final steps:",
            "  - Test payment flows with real transactions",
            "  - Verify email delivery",
            "  - Set up monitoring and alerts",
            "  - Configure backup procedures",
        ])

    return recommendations


class ProductionCheckService:
    """Runs the readiness checks against configuration and database."""

    def __init__(self, db: AsyncSession, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or default_settings

    def _configuration_checks(self) -> List[ProductionCheck]:
        s = self.settings
        https = s.BASE_URL.startswith("https://")

        if s.SECRET_KEY == DEFAULT_SECRET_KEY:
            secret_message = "Using default JWT secret"
        else:
            secret_message = f"JWT secret length: {len(s.SECRET_KEY)}"

        return [
            ProductionCheck(
                name="Environment Configuration",
                status=PASS if s.is_production else WARNING,
                message=f"Environment: {s.ENVIRONMENT}",
                required=False,
            ),
            ProductionCheck(
                name="JWT Secret Security",
                status=PASS if s.SECRET_KEY != DEFAULT_SECRET_KEY and len(s.SECRET_KEY) >= MIN_SECRET_LENGTH else FAIL,
                message=secret_message,
                required=True,
            ),
            ProductionCheck(
                name="Base URL Configuration",
                status=PASS if https else WARNING,
                message=f"Base URL: {s.BASE_URL}",
                required=False,
            ),
        ]

    async def _database_checks(self) -> List[ProductionCheck]:
        try:
            await self.db.execute(text("SELECT 1"))
            product_count = await self.db.scalar(select(func.count(Product.id))) or 0
            admin_count = await self.db.scalar(
                select(func.count(User.id)).where(User.is_admin == True)
            ) or 0
        except SQLAlchemyError as e:
            logger.error(f"Production check database connection failed: {e}")
            return [ProductionCheck(
                name="Database Connection",
                status=FAIL,
                message="Database connection failed",
                required=True,
            )]

        return [
            ProductionCheck(
                name="Database Connection",
                status=PASS,
                message="Database connection successful",
                required=True,
            ),
            ProductionCheck(
                name="Product Catalog",
                status=PASS if product_count > 0 else WARNING,
                message=f"{product_count} products in catalog",
                required=False,
            ),
            ProductionCheck(
                name="Admin Users",
                status=PASS if admin_count > 0 else FAIL,
                message=f"{admin_count} admin users configured",
                required=True,
            ),
        ]

    def _integration_checks(self) -> List[ProductionCheck]:
        s = self.settings
        https = s.BASE_URL.startswith("https://")
        sender = s.SMTP_FROM_EMAIL or s.SMTP_USER

        return [
            ProductionCheck(
                name="PayPal Configuration",
                status=PASS if s.PAYPAL_CLIENT_ID and s.PAYPAL_CLIENT_SECRET else FAIL,
                message=f"Environment: {s.PAYPAL_ENVIRONMENT}" if s.PAYPAL_CLIENT_ID else "PayPal credentials missing",
                required=True,
            ),
            ProductionCheck(
                name="Google Pay Configuration",
                status=PASS if s.GOOGLE_PAY_MERCHANT_ID else WARNING,
                message=(
                    f"Environment: {s.GOOGLE_PAY_ENVIRONMENT}"
                    if s.GOOGLE_PAY_MERCHANT_ID else "Google Pay not configured"
                ),
                required=False,
            ),
            ProductionCheck(
                name="Email Configuration",
                status=PASS if sender and s.email_configured and s.SMTP_HOST else WARNING,
                message=f"SMTP host: {s.SMTP_HOST}, From: {sender or 'not set'}",
                required=False,
            ),
            ProductionCheck(
                name="Core Features",
                status=PASS,
                message=(
                    f"Variants: {s.ENABLE_VARIANTS}, Backorders: {s.ENABLE_BACKORDERS}, "
                    f"Waitlist: {s.ENABLE_WAITLIST}"
                ),
                required=False,
            ),
            ProductionCheck(
                name="HTTPS Configuration",
                status=PASS if https else FAIL,
                message="HTTPS enabled" if https else "HTTPS not configured",
                required=True,
            ),
        ]

    async def run_checks(self) -> dict:
        checks = (
            self._configuration_checks()
            + await self._database_checks()
            + self._integration_checks()
        )

        return {
            "status": overall_status(checks),
            "summary": {
                "total": len(checks),
                "passed": sum(1 for c in checks if c.status == PASS),
                "warnings": sum(1 for c in checks if c.status == WARNING),
                "failed": sum(1 for c in checks if c.status == FAIL),
                "required_failed": sum(1 for c in checks if c.required and c.status == FAIL),
            },
            "checks": [asdict(c) for c in checks],
            "recommendations": generate_recommendations(checks),
            "timestamp": datetime.now(timezone.utc),
        }

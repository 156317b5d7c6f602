import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
import logging

logger = logging.getLogger(__name__)


BRAND_COLOR = "#8B4513"


def wrap_html(title: str, body: str, footer: Optional[str] = None) -> str:
    """Attireburg email chrome around a body fragment."""
    footer = footer or "Attireburg - Premium Kleidung aus Deutschland"
    return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="utf-8">
        </head>
        <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px; background: #f5f5f5; color: #333;">
            <div style="background: {BRAND_COLOR}; padding: 30px; text-align: center; border-radius: 10px 10px 0 0;">
                <h1 style="color: white; margin: 0;">{title}</h1>
            </div>

            <div style="background: white; padding: 30px; border: 1px solid #e9ecef;">
                {body}
            </div>

            <div style="background: #333; color: #fff; padding: 20px; text-align: center; border-radius: 0 0 10px 10px;">
                <p style="margin: 0;"><strong>Attireburg</strong></p>
                <p style="margin: 10px 0 0 0; font-size: 12px; color: #999;">{footer}</p>
            </div>
        </body>
        </html>
        """


def button(url: str, label: str) -> str:
    return (
        f'<div style="text-align: center; margin: 20px 0;">'
        f'<a href="{url}" style="display: inline-block; background: {BRAND_COLOR}; color: white; '
        f'padding: 15px 30px; text-decoration: none; border-radius: 5px; font-weight: bold;">{label}</a>'
        f'</div>'
    )


class EmailService:
    """Email service for sending transactional emails via SMTP."""

    def __init__(
        self,
        smtp_host: str = "smtp.gmail.com",
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        from_email: str = "",
        from_name: str = "Attireburg"
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_email = from_email or smtp_user
        self.from_name = from_name

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_password)

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email over SMTP with STARTTLS.

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML body of the email
            text_content: Plain text body (optional fallback)

        Returns:
            True if email sent successfully, False otherwise
        """
        if not self.is_configured:
            logger.warning("Email not configured. SMTP credentials missing.")
            return False

        try:
            msg = MIMEMultipart('alternative')
            msg['Subject'] = subject
            msg['From'] = f"{self.from_name} <{self.from_email}>"
            msg['To'] = to_email

            if text_content:
                msg.attach(MIMEText(text_content, 'plain', 'utf-8'))

            msg.attach(MIMEText(html_content, 'html', 'utf-8'))

            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.from_email, to_email, msg.as_string())

            logger.info(f"Email sent successfully to {to_email}")
            return True

        except smtplib.SMTPAuthenticationError:
            logger.error("SMTP Authentication failed. Check email credentials.")
            return False
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error: {e}")
            return False
        except TimeoutError:
            logger.error("SMTP connection timed out")
            return False
        except OSError as e:
            logger.error(f"Network error sending email: {e}")
            return False

    def send_order_shipped_email(
        self,
        to_email: str,
        order_number: str,
        customer_name: str,
        tracking_number: Optional[str] = None,
        tracking_url: Optional[str] = None,
        base_url: str = "http://localhost:3000"
    ) -> bool:
        """Send order shipped notification email."""
        subject = f"Ihre Bestellung wurde versandt - {order_number} | Attireburg"
        order_url = tracking_url or f"{base_url}/account/orders"

        tracking_html = (
            f'<p style="margin: 10px 0 0 0;"><strong>Sendungsnummer:</strong> {tracking_number}</p>'
            if tracking_number else ''
        )
        body = f"""
                <p>Hallo <strong>{customer_name}</strong>,</p>
                <p>Ihre Bestellung <strong>#{order_number}</strong> ist auf dem Weg zu Ihnen.</p>
                <div style="background: #f8f9fa; padding: 20px; border-radius: 8px; margin: 20px 0;">
                    <p style="margin: 0;"><strong>Bestellnummer:</strong> {order_number}</p>
                    {tracking_html}
                </div>
                {button(order_url, "Bestellung verfolgen")}
        """
        html_content = wrap_html("Ihre Bestellung ist unterwegs!", body)

        text_content = f"""
Ihre Bestellung wurde versandt - {order_number}

Hallo {customer_name},

Ihre Bestellung #{order_number} ist auf dem Weg zu Ihnen.
{f'Sendungsnummer: {tracking_number}' if tracking_number else ''}

Bestellung verfolgen: {order_url}

Vielen Dank für Ihren Einkauf bei Attireburg!
        """

        return self.send_email(to_email, subject, html_content, text_content)


def get_email_service() -> EmailService:
    """Get configured email service instance."""
    from attireburg.config import settings

    return EmailService(
        smtp_host=settings.SMTP_HOST,
        smtp_port=settings.SMTP_PORT,
        smtp_user=settings.SMTP_USER,
        smtp_password=settings.SMTP_PASSWORD,
        from_email=settings.SMTP_FROM_EMAIL,
        from_name=settings.SMTP_FROM_NAME,
    )

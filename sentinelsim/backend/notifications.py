"""SMTP delivery of simulated phishing lures and security alerts."""

from __future__ import annotations

import logging
from email.message import EmailMessage
from email.utils import make_msgid
from html import escape

import aiosmtplib

from sentinelsim.backend.config import SmtpSettings
from sentinelsim.backend.models import DeliveryResult, EmailTemplate

logger = logging.getLogger(__name__)

DEFAULT_LURE = "urgent-security"
LANDING_PATH = "/phishing-caught"

TRAINING_DISCLAIMER_TEXT = (
    "\n\n---\nThis is a phishing simulation for security training purposes.\n"
    "Generated by SentinelSim - Cybersecurity Training Platform"
)
TRAINING_DISCLAIMER_HTML = (
    '<div style="margin-top: 30px; padding: 15px; border: 1px solid #0ea5e9; font-size: 12px;">'
    "<strong>TRAINING SIMULATION</strong><br>"
    "This is a phishing simulation for security training purposes.<br>"
    "<em>Generated by SentinelSim - Cybersecurity Training Platform</em></div>"
)


def build_lure(lure_type: str, landing_url: str) -> EmailTemplate:
    """Return the lure template for ``lure_type``, defaulting to the urgent security notice."""
    link = escape(landing_url, quote=True)
    templates = {
        "urgent-security": EmailTemplate(
            subject="Urgent: Security Alert - Immediate Action Required",
            text=(
                "Dear Employee,\n\n"
                "We've detected suspicious activity on your account. Please verify your credentials "
                "immediately to prevent unauthorized access.\n\n"
                f"Click here to secure your account: {landing_url}\n\n"
                "This is time-sensitive - please act within the next 2 hours.\n\n"
                "Best regards,\nIT Security Team"
            ),
            html=(
                "<p>Dear Employee,</p>"
                "<p>We've detected <strong>suspicious activity</strong> on your account. Please verify "
                "your credentials immediately to prevent unauthorized access.</p>"
                f'<p><a href="{link}">Secure Your Account Now</a></p>'
                "<p>This is time-sensitive - please act within the next 2 hours.</p>"
                "<p>Best regards,<br>IT Security Team</p>"
            ),
        ),
        "software-update": EmailTemplate(
            subject="Required: Critical Software Update Available",
            text=(
                "Hello,\n\n"
                "A critical security update is available for your work applications. Please install it "
                "immediately to maintain system security.\n\n"
                f"Download the update: {landing_url}\n\n"
                "Installation must be completed by end of business today.\n\nIT Department"
            ),
            html=(
                "<p>Hello,</p>"
                "<p>A <strong>critical security update</strong> is available for your work applications. "
                "Please install it immediately to maintain system security.</p>"
                f'<p><a href="{link}">Download Update</a></p>'
                "<p><strong>Installation must be completed by end of business today.</strong></p>"
                "<p>IT Department</p>"
            ),
        ),
        "invoice-scam": EmailTemplate(
            subject="Invoice #INV-2024-0892 - Payment Required",
            text=(
                "Dear Customer,\n\n"
                "Your invoice #INV-2024-0892 for $1,247.99 is now overdue. Please review and make payment "
                "immediately to avoid service interruption.\n\n"
                f"View Invoice: {landing_url}\n\n"
                "Payment due: 3 days overdue\nAmount: $1,247.99\n\nAccounts Receivable"
            ),
            html=(
                "<p>Dear Customer,</p>"
                "<p>Your invoice <strong>#INV-2024-0892</strong> for <strong>$1,247.99</strong> is now overdue.</p>"
                f'<p><a href="{link}">View Invoice</a></p>'
                "<p>Please make payment immediately to avoid service interruption.</p>"
                "<p>Accounts Receivable</p>"
            ),
        ),
    }
    return templates.get(lure_type, templates[DEFAULT_LURE])


class NotificationService:
    def __init__(self, smtp: SmtpSettings, public_url: str = "https://example.com") -> None:
        self.smtp = smtp
        self.public_url = public_url.rstrip("/")

    @property
    def sender(self) -> str:
        return self.smtp.user or "no-reply@sentinelsim.local"

    @property
    def landing_url(self) -> str:
        return f"{self.public_url}{LANDING_PATH}"

    def _build_message(
        self,
        to: str | list[str],
        subject: str,
        text: str,
        html: str | None,
        display_name: str,
        headers: dict[str, str] | None = None,
    ) -> EmailMessage:
        message = EmailMessage()
        message["From"] = f'"{display_name}" <{self.sender}>'
        message["To"] = ", ".join(to) if isinstance(to, list) else to
        message["Subject"] = subject
        message["Message-ID"] = make_msgid(domain=self.sender.rpartition("@")[2] or None)
        for name, value in (headers or {}).items():
            message[name] = value
        message.set_content(text)
        message.add_alternative(html or text, subtype="html")
        return message

    async def _deliver(self, message: EmailMessage) -> DeliveryResult:
        try:
            await aiosmtplib.send(
                message,
                hostname=self.smtp.host,
                port=self.smtp.port,
                username=self.smtp.user,
                password=self.smtp.password,
                use_tls=self.smtp.secure,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.error("email to %s failed: %s", message["To"], exc)
            return DeliveryResult(success=False, error=str(exc) or exc.__class__.__name__)

        message_id = message["Message-ID"]
        logger.info("email sent to %s: %s", message["To"], message_id)
        return DeliveryResult(success=True, message_id=message_id)

    async def send_email(self, to: str | list[str], subject: str, text: str, html: str | None = None) -> DeliveryResult:
        message = self._build_message(to, subject, text, html, display_name="SentinelSim Security")
        return await self._deliver(message)

    async def send_phishing_simulation(self, to: str | list[str], lure_type: str) -> DeliveryResult:
        template = build_lure(lure_type, self.landing_url)
        message = self._build_message(
            to,
            subject=f"[TRAINING] {template.subject}",
            text=template.text + TRAINING_DISCLAIMER_TEXT,
            html=template.html + TRAINING_DISCLAIMER_HTML,
            display_name="SentinelSim Training",
            headers={
                "X-Priority": "3",
                "X-SentinelSim-Type": "phishing-simulation",
                "X-Training-Exercise": "true",
            },
        )
        return await self._deliver(message)

    async def send_security_alert(
        self,
        to: str | list[str],
        title: str,
        severity: str,
        description: str,
        recommendations: list[str] | None = None,
    ) -> DeliveryResult:
        lines = [f"Security Alert: {title}", "", f"Severity: {severity}", "", f"Description: {description}"]
        html_parts = [
            f"<h2>{escape(title)}</h2>",
            f"<p><strong>Severity:</strong> {escape(severity)}</p>",
            f"<p><strong>Description:</strong></p><p>{escape(description)}</p>",
        ]
        if recommendations:
            lines += ["", "Recommended Actions:"] + [f"- {item}" for item in recommendations]
            items = "".join(f"<li>{escape(item)}</li>" for item in recommendations)
            html_parts.append(f"<h3>Recommended Actions:</h3><ul>{items}</ul>")
        lines += ["", "Please review and take appropriate action immediately.", "", "SentinelSim Security Team"]
        html_parts.append("<p>Please review and take appropriate action immediately.</p>")
        html_parts.append("<p><strong>SentinelSim Security Team</strong></p>")

        return await self.send_email(to, f"Security Alert: {title}", "\n".join(lines), "".join(html_parts))

    async def test_connection(self) -> DeliveryResult:
        client = aiosmtplib.SMTP(
            hostname=self.smtp.host,
            port=self.smtp.port,
            use_tls=self.smtp.secure,
        )
        try:
            await client.connect()
            if self.smtp.user and self.smtp.password:
                await client.login(self.smtp.user, self.smtp.password)
            await client.quit()
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.warning("SMTP connection test failed: %s", exc)
            return DeliveryResult(success=False, error=str(exc) or "Connection failed")
        return DeliveryResult(success=True, message="Email service is ready")

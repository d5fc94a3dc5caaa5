import smtplib
import uuid
from datetime import datetime, timezone
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.config import (
    SMTP_HOST,
    SMTP_PORT,
    SMTP_USER,
    SMTP_PASS,
    SMTP_TIMEOUT_SEC,
    MAIL_FROM,
    SMTP_FROM_NAME,
    TEMPLATES_DIR,
    logger,
)

# Jinja env
_jinja_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html", "xml"]),
)

EMAIL_BRAND_COLOR = "#748a53"


def render_email(template_name: str, **context) -> str:
    base = {
        "app_name": SMTP_FROM_NAME,
        "brand_color": EMAIL_BRAND_COLOR,
    }
    base.update(context or {})
    return _jinja_env.get_template(template_name).render(**base)


class SmtpMailer:
    """SMTP transport. send() reports failure by returning False, never by raising."""

    def __init__(
        self,
        host: str = SMTP_HOST,
        port: int = SMTP_PORT,
        user: str = SMTP_USER,
        password: str = SMTP_PASS,
        mail_from: str = MAIL_FROM,
        from_name: str = SMTP_FROM_NAME,
        timeout: float = SMTP_TIMEOUT_SEC,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.mail_from = mail_from or user
        self.from_name = from_name
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.host and self.user and self.password and "yourprovider" not in self.host)

    def build_message(self, to_addr: str, subject: str, html: str, text: Optional[str] = None) -> MIMEMultipart:
        sender = self.mail_from.strip()
        display_from = f"{self.from_name} <{sender}>" if self.from_name and "<" not in sender else sender
        domain = sender.split("@")[-1] if "@" in sender else "localhost"

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = display_from
        msg["To"] = to_addr
        msg["Message-ID"] = f"<{uuid.uuid4()}@{domain}>"
        msg["Date"] = datetime.now(timezone.utc).strftime("%a, %d %b %Y %H:%M:%S +0000")
        if not text:
            text = "Open this email in an HTML-capable email client."
        msg.attach(MIMEText(text, "plain", _charset="utf-8"))
        msg.attach(MIMEText(html or "", "html", _charset="utf-8"))
        return msg

    def send(self, to_addr: str, subject: str, html: str, text: Optional[str] = None) -> bool:
        if not self.is_configured():
            logger.error("SMTP not configured; cannot send email")
            return False
        try:
            msg = self.build_message(to_addr, subject, html, text)
            # Port 465 is implicit TLS; anything else upgrades with STARTTLS
            if self.port == 465:
                server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
            else:
                server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            with server:
                if self.port != 465:
                    server.starttls()
                server.login(self.user, self.password)
                server.sendmail(self.mail_from.strip(), [to_addr], msg.as_string())
            return True
        except Exception as ex:
            logger.exception(f"SMTP send failed: {ex}")
            return False


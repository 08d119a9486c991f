"""ABOUTME: Email adapter implementations for sending emails via various backends
ABOUTME: Supports SMTP and console logging, chosen from EmailCfg"""

import logging
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage
from email.utils import formataddr

from v2backoffice.config import EmailCfg

logger = logging.getLogger(__name__)

Address = str | tuple[str, str]


class EmailAdapter(ABC):
    """Abstract base class for email sending adapters."""

    def __init__(self, default_from_email: str = "", default_from_name: str = "") -> None:
        self.default_from_email = default_from_email
        self.default_from_name = default_from_name

    @abstractmethod
    def send_email(
        self,
        to: list[Address],
        subject: str,
        text_body: str,
        html_body: str | None = None,
        from_email: Address | None = None,
    ) -> bool:
        """Send an email to one or more recipients.

        Addresses can be plain strings or (display name, address) tuples.
        Returns True if the email was handed over, False otherwise. Adapters
        never raise for delivery problems.
        """
        raise NotImplementedError

    @staticmethod
    def _parse_address(addr: Address) -> tuple[str, str]:
        if isinstance(addr, tuple):
            return addr
        return ("", addr)

    @staticmethod
    def _format_address(addr: Address) -> str:
        name, email = EmailAdapter._parse_address(addr)
        if name:
            return formataddr((name, email))
        return email

    def _sender(self, from_email: Address | None) -> tuple[str, str]:
        if from_email:
            return self._parse_address(from_email)
        return self.default_from_name, self.default_from_email


class ConsoleEmailAdapter(EmailAdapter):
    """Logs emails instead of sending them. Used in development and tests."""

    def send_email(
        self,
        to: list[Address],
        subject: str,
        text_body: str,
        html_body: str | None = None,
        from_email: Address | None = None,
    ) -> bool:
        from_addr = self._format_address(self._sender(from_email)) or "noreply@v2backoffice.local"
        to_addrs = [self._format_address(addr) for addr in to]

        # Truncate text body for logging
        text_preview = text_body[:400] + ("..." if len(text_body) > 400 else "")

        logger.info(
            "EMAIL (Console):\n"
            f"  From: {from_addr}\n"
            f"  To: {', '.join(to_addrs)}\n"
            f"  Subject: {subject}\n"
            f"  Has HTML: {'Yes' if html_body else 'No'}\n"
            f"  Text Body Preview: {text_preview}"
        )
        return True


class SMTPEmailAdapter(EmailAdapter):
    """Email adapter that sends emails via SMTP."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        use_tls: bool = True,
        default_from_email: str = "",
        default_from_name: str = "",
    ):
        super().__init__(default_from_email=default_from_email, default_from_name=default_from_name)
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls

    def _build_message(
        self, to: list[Address], subject: str, text_body: str, html_body: str | None, sender: tuple[str, str]
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self._format_address(sender)
        msg["To"] = ", ".join(self._format_address(addr) for addr in to)
        msg.set_content(text_body)
        if html_body:
            msg.add_alternative(html_body, subtype="html")
        return msg

    def send_email(
        self,
        to: list[Address],
        subject: str,
        text_body: str,
        html_body: str | None = None,
        from_email: Address | None = None,
    ) -> bool:
        sender = self._sender(from_email)
        msg = self._build_message(to, subject, text_body, html_body, sender)
        to_addresses = [self._parse_address(addr)[1] for addr in to]
        try:
            with smtplib.SMTP(self.host, self.port) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(msg, from_addr=sender[1], to_addrs=to_addresses)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP error sending email '{subject}': {e}")
            return False

        logger.info(f"Email sent successfully to {len(to_addresses)} recipient(s)")
        return True


def get_email_adapter(email_cfg: EmailCfg) -> EmailAdapter:
    """Build the adapter named by EMAIL_BACKEND."""
    if email_cfg.backend == "smtp":
        return SMTPEmailAdapter(
            host=email_cfg.host,
            port=email_cfg.port,
            username=email_cfg.username,
            password=email_cfg.password,
            use_tls=email_cfg.use_tls,
            default_from_email=email_cfg.from_email,
            default_from_name=email_cfg.from_name,
        )
    return ConsoleEmailAdapter(default_from_email=email_cfg.from_email, default_from_name=email_cfg.from_name)

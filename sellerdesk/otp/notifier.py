import asyncio
import smtplib
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional, Protocol, Set
from sellerdesk.config.admin_config import admin_config
from sellerdesk.config.settings import config_settings
from sellerdesk.otp.constants import logger
from sellerdesk.otp.models import DeliveryReceipt
from sellerdesk.schema.otp_session import OtpPurpose


class Notifier(Protocol):
    async def send(self, destination: str, code: str, purpose: str) -> DeliveryReceipt: ...


SUBJECTS = {
    OtpPurpose.EMAIL_VERIFICATION: "Your email verification code",
    OtpPurpose.PASSWORD_RESET: "Your password reset code",
}


def render_message(code: str, purpose: str, ttl_minutes: int) -> tuple[str, str]:
    if purpose == OtpPurpose.PASSWORD_RESET:
        intro = "Use this code to reset your password:"
        outro = "If you did not ask for a password reset, you can ignore this email."
    else:
        intro = "Use this code to verify your email address:"
        outro = "If you did not request this, you can ignore this email."

    text = f"{intro} {code}\nIt expires in {ttl_minutes} minutes. Do not share it with anyone.\n{outro}"
    html = f"""
      <p>{intro}</p>
      <p style="font-size:22px;font-weight:700;letter-spacing:4px">{code}</p>
      <p>It expires in {ttl_minutes} minutes. Do not share it with anyone.</p>
      <p>{outro}</p>
    """
    return text, html


class SmtpNotifier:
    channel = "smtp"

    def __init__(self, *, host: str, port: int, username: Optional[str], password: Optional[str],
                 from_email: str, ttl_seconds: int, timeout: float = 10.0) -> None:
        self._host = host
        self._port = int(port)
        self._username = username
        self._password = password
        self._from_email = from_email
        self._ttl_minutes = max(1, int(ttl_seconds) // 60)
        self._timeout = timeout

    async def send(self, destination: str, code: str, purpose: str) -> DeliveryReceipt:
        # smtplib blocks , keep it off the event loop
        return await asyncio.to_thread(self._send_sync, destination, code, purpose)

    def _send_sync(self, destination: str, code: str, purpose: str) -> DeliveryReceipt:
        text, html = render_message(code, purpose, self._ttl_minutes)

        msg = EmailMessage()
        msg["From"] = self._from_email
        msg["To"] = destination
        msg["Subject"] = SUBJECTS.get(purpose, "Your verification code")
        msg["Message-ID"] = make_msgid()
        msg.set_content(text)
        msg.add_alternative(html, subtype="html")

        if self._port == 465:
            server = smtplib.SMTP_SSL(self._host, self._port, timeout=self._timeout)
        else:
            server = smtplib.SMTP(self._host, self._port, timeout=self._timeout)
        with server:
            if self._port != 465:
                server.starttls()
            if self._username and self._password:
                server.login(self._username, self._password)
            server.send_message(msg)

        return DeliveryReceipt(destination=destination, channel=self.channel, message_id=msg["Message-ID"])


class ConsoleNotifier:
    """Dev delivery , writes the code to the log instead of sending it."""
    channel = "console"

    async def send(self, destination: str, code: str, purpose: str) -> DeliveryReceipt:
        if admin_config.ENV == "dev":
            logger.info("otp.console.delivery", extra={"destination": destination, "purpose": purpose, "code": code})
        else:
            logger.info("otp.console.delivery", extra={"destination": destination, "purpose": purpose})
        return DeliveryReceipt(destination=destination, channel=self.channel)


class DeliveryDispatcher:
    """Fire-and-forget delivery. A failed send is logged and never touches the session."""

    def __init__(self, notifier: Notifier):
        self.notifier = notifier
        self._pending: Set[asyncio.Task] = set()

    def dispatch(self, destination: Optional[str], code: str, purpose: str, notify: bool = True) -> asyncio.Task:
        task = asyncio.create_task(self._deliver(destination, code, purpose, notify))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, destination: Optional[str], code: str, purpose: str,
                       notify: bool = True) -> Optional[DeliveryReceipt]:
        if not notify:
            # decoy issuance , scheduled like a real delivery but nothing leaves the process
            return None
        try:
            receipt = await self.notifier.send(destination, code, purpose)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("otp.delivery.failed", extra={"purpose": purpose, "error": type(exc).__name__}, exc_info=exc)
            return None

        logger.info("otp.delivery.sent", extra={"purpose": purpose, "channel": receipt.channel,
                                                 "message_id": receipt.message_id})
        return receipt

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self, timeout: float = 10.0) -> None:
        """Wait for in-flight deliveries ; used on shutdown and by tests."""
        if not self._pending:
            return
        done, not_done = await asyncio.wait(set(self._pending), timeout=timeout)
        for task in not_done:
            task.cancel()
        if not_done:
            logger.warning("otp.delivery.drain_timeout", extra={"cancelled": len(not_done)})


def build_notifier() -> Notifier:
    if config_settings.NOTIFIER_BACKEND == "smtp":
        if not config_settings.SMTP_HOST or not config_settings.SMTP_FROM:
            raise RuntimeError("NOTIFIER_BACKEND=smtp requires SMTP_HOST and SMTP_FROM")
        return SmtpNotifier(
            host=config_settings.SMTP_HOST,
            port=config_settings.SMTP_PORT,
            username=config_settings.SMTP_USER,
            password=config_settings.SMTP_PASSWORD,
            from_email=config_settings.SMTP_FROM,
            ttl_seconds=config_settings.OTP_TTL_SECONDS,
            timeout=config_settings.SMTP_TIMEOUT_SECONDS,
        )
    return ConsoleNotifier()

import logging
import smtplib
import socket
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import make_msgid
from typing import List, Optional

from config import Settings
from errors import MailError

logger = logging.getLogger(__name__)


@dataclass
class Attachment:
    filename: str
    content: bytes
    mime_type: str = "application/octet-stream"


@dataclass
class MailMessage:
    to: List[str]
    subject: str
    html: str
    cc: List[str] = field(default_factory=list)
    attachments: List[Attachment] = field(default_factory=list)


class Mailer:
    """
    SMTP sender for site notifications.
    Opens one connection per message; nothing is kept between sends.
    """
    def __init__(self, host: Optional[str], port: int, sender: str, user: Optional[str] = None,
                 password: Optional[str] = None, starttls: bool = True, timeout: int = 30):
        self.host = host
        self.port = port
        self.sender = sender
        self.user = user
        self.password = password
        self.starttls = starttls
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "Mailer":
        return cls(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            sender=settings.MAIL_FROM,
            user=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            starttls=settings.SMTP_STARTTLS,
        )

    def _connect(self) -> smtplib.SMTP:
        if not self.host:
            raise MailError(detail="SMTP_HOST no configurado")
        smtp = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        try:
            if self.starttls:
                smtp.starttls()
            if self.user:
                smtp.login(self.user, self.password or "")
        except BaseException:
            smtp.close()
            raise
        return smtp

    def build(self, message: MailMessage) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = ", ".join(message.to)
        if message.cc:
            msg["Cc"] = ", ".join(message.cc)
        msg["Subject"] = message.subject
        msg["Message-ID"] = make_msgid(domain=self.sender.split("@")[-1])
        msg.set_content("Este mensaje requiere un cliente de correo compatible con HTML.")
        msg.add_alternative(message.html, subtype="html")
        for att in message.attachments:
            maintype, _, subtype = att.mime_type.partition("/")
            msg.add_attachment(att.content, maintype=maintype, subtype=subtype or "octet-stream",
                               filename=att.filename)
        return msg

    def send(self, message: MailMessage) -> str:
        msg = self.build(message)
        logger.info("Sending mail %r to %s (cc %s, %d attachment(s))",
                    message.subject, message.to, message.cc, len(message.attachments))
        try:
            with self._connect() as smtp:
                smtp.send_message(msg, to_addrs=[*message.to, *message.cc])
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Mail %r failed: %s", message.subject, e)
            raise MailError(detail=str(e)) from e
        logger.info("Mail sent, id %s", msg["Message-ID"])
        return msg["Message-ID"]

    def verify(self) -> bool:
        try:
            with self._connect() as smtp:
                smtp.noop()
        except (MailError, smtplib.SMTPException, socket.error) as e:
            logger.warning("Mail server check failed: %s", getattr(e, "detail", None) or e)
            return False
        logger.info("Mail server %s:%s reachable", self.host, self.port)
        return True


def send_for_record(mailer: Mailer, message: MailMessage, record_id: int) -> str:
    """Send a notification about a row that is already committed."""
    try:
        return mailer.send(message)
    except MailError as e:
        raise MailError(
            "La solicitud fue registrada, pero no se pudo enviar la notificación por correo",
            data={"id": record_id},
            detail=e.detail,
        ) from e

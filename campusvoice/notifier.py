# Status-change notifications to students (SMTP email, or a log line when SMTP is not configured)

import logging
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional, Protocol

import aiosmtplib
from jinja2 import Environment, FileSystemLoader, select_autoescape

from .config import BASE_DIR
from .models import GrievanceStatus

logger = logging.getLogger(__name__)

_jinja_env = Environment(
    loader=FileSystemLoader(str(BASE_DIR / "templates")),
    autoescape=select_autoescape(["html", "htm", "xml"]),
)

SUBJECTS = {
    GrievanceStatus.VIEWED: "Your Grievance Has Been Reviewed",
    GrievanceStatus.CLEARED: "Your Grievance Has Been Resolved",
}
STATUS_MESSAGES = {
    GrievanceStatus.VIEWED: "Your grievance has been reviewed by our administration team.",
    GrievanceStatus.CLEARED: "Your grievance has been resolved and cleared from our system.",
}


@dataclass(frozen=True)
class StatusNotification:
    to: str
    student_name: str
    grievance_id: str
    status: GrievanceStatus
    category: str
    urgency: str
    message: Optional[str] = None


class Notifier(Protocol):
    async def notify(self, notification: StatusNotification) -> bool: ...


def render_subject(n: StatusNotification) -> str:
    return SUBJECTS.get(n.status, "Update on Your Grievance")


def render_text(n: StatusNotification) -> str:
    lines = [
        f"Hi {n.student_name},",
        "",
        STATUS_MESSAGES.get(n.status, f"Your grievance is now {n.status.value}."),
    ]
    if n.message:
        lines += ["", n.message]
    lines += [
        "",
        f"Grievance ID: {n.grievance_id}",
        f"Category: {n.category}",
        f"Urgency: {n.urgency}",
        "",
        "If you have any questions or concerns, please contact the grievance redressal team.",
    ]
    return "\n".join(lines)


def render_html(n: StatusNotification) -> str:
    return _jinja_env.get_template("status_email.html").render(
        n=n, status_message=STATUS_MESSAGES.get(n.status, ""),
        heading=SUBJECTS.get(n.status, "Grievance Update"))


class LogNotifier:
    """Stand-in used when no SMTP server is configured."""

    async def notify(self, notification: StatusNotification) -> bool:
        logger.info("Email notification (not sent, SMTP unconfigured) to=%s subject=%r\n%s",
                    notification.to, render_subject(notification), render_text(notification))
        return True


class EmailNotifier:
    def __init__(self, host: str, port: int, username: Optional[str], password: Optional[str],
                 from_email: str, from_name: str, use_tls: bool = True, timeout: float = 10.0):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.from_name = from_name
        self.use_tls = use_tls
        self.timeout = timeout

    def build_message(self, n: StatusNotification) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = render_subject(n)
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = n.to
        msg.set_content(render_text(n))
        msg.add_alternative(render_html(n), subtype="html")
        return msg

    async def notify(self, notification: StatusNotification) -> bool:
        try:
            await aiosmtplib.send(
                self.build_message(notification),
                hostname=self.host, port=self.port,
                username=self.username, password=self.password,
                start_tls=self.use_tls, timeout=self.timeout)
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email to %s for grievance %s: %s",
                         notification.to, notification.grievance_id, e)
            return False
        logger.info("Sent %s notification to %s for grievance %s",
                    notification.status.value, notification.to, notification.grievance_id)
        return True


def build_notifier(host: Optional[str], port: int, username: Optional[str],
                   password: Optional[str], from_email: str, from_name: str,
                   use_tls: bool, timeout: float) -> Notifier:
    if not host:
        logger.info("SMTP_HOST not set, notifications will be logged only")
        return LogNotifier()
    return EmailNotifier(host, port, username, password, from_email, from_name,
                         use_tls=use_tls, timeout=timeout)

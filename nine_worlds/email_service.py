import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Any, Dict

from nine_worlds.config import SMTP_HOST, SMTP_PORT, SMTP_USERNAME, SMTP_PASSWORD, FROM_EMAIL

logger = logging.getLogger(__name__)

TEMPLATES = {
    "welcome": """
    Hi {display_name},

    Welcome to Nine Worlds. Your account is ready.
    """,
    "account_approved": """
    Hi {display_name},

    Your account has been approved. You can log in here:

    {login_url}
    """,
    "role_changed": """
    Hi {display_name},

    Your role on Nine Worlds is now: {new_role}.

    {notes}
    """,
    "account_banned": """
    Hi {display_name},

    Your account has been suspended.

    Reason: {ban_reason}
    Duration: {ban_duration}

    If you think this is a mistake, contact {contact_email}.
    """,
    "account_unbanned": """
    Hi {display_name},

    Your account has been reinstated. You can log in again here:

    {login_url}
    """,
}


class _Defaults(dict):
    def __missing__(self, key):
        return ""


def render_template(template: str, data: Dict[str, Any]) -> str:
    body = TEMPLATES.get(template)
    if body is None:
        raise KeyError(f"Unknown email template: {template}")
    return body.format_map(_Defaults(data))


def send_email_notification(to: str, subject: str, template: str, data: Dict[str, Any]) -> bool:
    """
    Fire-and-forget. Failures are logged and reported as False, never raised,
    so a mail outage cannot undo the change being announced.
    """
    if not to:
        logger.warning("Notification %r skipped: no recipient", template)
        return False

    try:
        text = render_template(template, data)
    except KeyError:
        logger.exception("Notification %r to %s not rendered", template, to)
        return False

    if not SMTP_HOST:
        logger.info("SMTP not configured; notification %r to %s not sent", template, to)
        return False

    msg = MIMEMultipart()
    msg["From"] = FROM_EMAIL
    msg["To"] = to
    msg["Subject"] = subject
    msg.attach(MIMEText(text, "plain"))

    try:
        with smtplib.SMTP(SMTP_HOST, SMTP_PORT) as server:
            server.starttls()
            if SMTP_USERNAME:
                server.login(SMTP_USERNAME, SMTP_PASSWORD)
            server.sendmail(FROM_EMAIL, to, msg.as_string())
    except Exception:
        logger.exception("SMTP send of %r to %s failed", template, to)
        return False

    return True

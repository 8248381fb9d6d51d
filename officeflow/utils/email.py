import os
import smtplib
import ssl
import logging
import socket
from dataclasses import dataclass
from email.message import EmailMessage
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

import certifi
from jinja2 import Environment, FileSystemLoader, select_autoescape

TEMPLATES_DIR = Path(__file__).resolve().parent.parent.parent / "templates" / "email"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class SmtpConfig:
    host: str
    port: int
    user: str
    password: str
    timeout: float
    use_ssl: bool
    use_starttls: bool

    @classmethod
    def from_env(cls) -> "SmtpConfig":
        port = int(os.getenv("SMTP_PORT", "587"))
        use_ssl = _env_flag("SMTP_USE_SSL", "false")
        use_starttls = _env_flag("SMTP_USE_TLS", "true")
        log = logging.getLogger("uvicorn.error")
        # 465 is implicit TLS and 587 is STARTTLS whatever the flags say
        if port == 465 and not use_ssl:
            log.warning("SMTP port 465 needs SSL; switching from STARTTLS")
            use_ssl, use_starttls = True, False
        elif port == 587 and use_ssl:
            log.warning("SMTP port 587 needs STARTTLS; switching from SSL")
            use_ssl, use_starttls = False, True
        return cls(
            host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
            port=port,
            user=os.getenv("SMTP_USER", ""),
            # App passwords are often pasted with spaces
            password=os.getenv("SMTP_PASSWORD", "").replace(" ", ""),
            timeout=float(os.getenv("SMTP_TIMEOUT", "10")),
            use_ssl=use_ssl,
            use_starttls=use_starttls,
        )


@lru_cache(maxsize=1)
def _templates() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html", "xml"]),
    )


def render_template(template_name: str, context: Dict[str, Any]) -> str:
    return _templates().get_template(template_name).render(**context)


def build_notification_email(*, to: str, title: str, body: str) -> EmailMessage:
    msg = EmailMessage()
    sender = os.getenv("FROM_EMAIL", os.getenv("SMTP_USER", "no-reply@example.com"))
    msg["Subject"] = title
    msg["From"] = f"{os.getenv('FROM_NAME', 'Officeflow')} <{sender}>"
    msg["To"] = to
    msg.set_content(body)
    msg.add_alternative(render_template("notification.html", {"title": title, "body": body}), subtype="html")
    return msg


def send_email_smtp(message: EmailMessage, config: SmtpConfig | None = None) -> None:
    config = config or SmtpConfig.from_env()
    if not config.user or not config.password:
        raise RuntimeError("SMTP credentials missing: set SMTP_USER and SMTP_PASSWORD env vars")

    context = ssl.create_default_context(cafile=certifi.where())
    try:
        if config.use_ssl:
            server = smtplib.SMTP_SSL(config.host, config.port, timeout=config.timeout, context=context)
        else:
            server = smtplib.SMTP(config.host, config.port, timeout=config.timeout)
        with server:
            if config.use_starttls:
                server.ehlo()
                server.starttls(context=context)
                server.ehlo()
            server.login(config.user, config.password)
            server.send_message(message)
    except smtplib.SMTPAuthenticationError as exc:
        reason = exc.smtp_error.decode() if isinstance(exc.smtp_error, bytes) else exc.smtp_error
        raise RuntimeError(f"SMTP auth failed ({exc.smtp_code}): {reason}") from exc
    except (smtplib.SMTPServerDisconnected, ssl.SSLError, socket.timeout) as exc:
        raise RuntimeError(f"SMTP connection failed: {type(exc).__name__}: {exc}") from exc


def send_notification_email(*, to: str, title: str, body: str) -> None:
    send_email_smtp(build_notification_email(to=to, title=title, body=body))

from __future__ import annotations

import logging
import smtplib
import ssl
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Sequence

from .config import EmailConfig, SmtpConfig
from .models import Document


logger = logging.getLogger(__name__)

SMTP_SSL_PORT = 465


def _smtp_port(smtp_cfg: SmtpConfig) -> int:
    raw = (smtp_cfg.port or "").strip()
    try:
        port = int(raw)
    except ValueError:
        raise ValueError(f"invalid SMTP port: {smtp_cfg.port!r}") from None
    if not 0 < port < 65536:
        raise ValueError(f"invalid SMTP port: {smtp_cfg.port!r}")
    return port


def build_body(documents: Sequence[Document]) -> str:
    lines = ["Anbei Deine Vodafone Rechnungen:", ""]
    for doc in documents:
        lines.append(f"- {doc.category.display_name}: {doc.period.label}")
    return "\n".join(lines)


def build_message(documents: Sequence[Document], email_cfg: EmailConfig) -> MIMEMultipart:
    """
    One message listing every invoice in the body, with each PDF attached under its filename.
    """
    msg = MIMEMultipart("mixed")
    msg["From"] = email_cfg.sender
    msg["To"] = ", ".join(email_cfg.recipients)
    msg["Subject"] = email_cfg.effective_subject

    msg.attach(MIMEText(build_body(documents), "plain", "utf-8"))

    for doc in documents:
        part = MIMEApplication(doc.payload, _subtype="pdf")
        part.add_header("Content-Disposition", "attachment", filename=doc.filename)
        msg.attach(part)

    return msg


def _open_smtp(smtp_cfg: SmtpConfig, *, timeout: float) -> smtplib.SMTP:
    port = _smtp_port(smtp_cfg)
    context = ssl.create_default_context()
    if port == SMTP_SSL_PORT:
        return smtplib.SMTP_SSL(smtp_cfg.host, port, timeout=timeout, context=context)
    server = smtplib.SMTP(smtp_cfg.host, port, timeout=timeout)
    try:
        server.starttls(context=context)
    except Exception:
        server.close()
        raise
    return server


def send_documents(
    documents: Sequence[Document],
    email_cfg: EmailConfig,
    smtp_cfg: SmtpConfig,
    *,
    timeout: float = 30.0,
) -> None:
    """
    Send all captured invoices in one e-mail. Port 465 uses implicit TLS, anything else STARTTLS.
    """
    if not documents:
        raise ValueError("send_documents requires at least one document")
    # Validate before building/connecting so config mistakes surface clearly.
    _smtp_port(smtp_cfg)
    if not smtp_cfg.host:
        raise ValueError("smtp.host is required")
    recipients = email_cfg.recipients
    if not email_cfg.sender or not recipients:
        raise ValueError("email.from and email.to are required")

    msg = build_message(documents, email_cfg)
    with _open_smtp(smtp_cfg, timeout=timeout) as server:
        server.login(smtp_cfg.user or email_cfg.sender, smtp_cfg.password)
        server.send_message(msg, from_addr=email_cfg.sender, to_addrs=recipients)
    logger.info("Sent %d invoice(s) to %s", len(documents), ", ".join(recipients))


def check_smtp_login(smtp_cfg: SmtpConfig, *, login_user: str = "", timeout: float = 30.0) -> None:
    """
    Connect and authenticate without sending anything (used by `preflight`).
    """
    if not smtp_cfg.host:
        raise ValueError("smtp.host is required")
    with _open_smtp(smtp_cfg, timeout=timeout) as server:
        server.login(smtp_cfg.user or login_user, smtp_cfg.password)

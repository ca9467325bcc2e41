from __future__ import annotations

import argparse
import logging
import os
import time
from datetime import date
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from dotenv import load_dotenv

from . import __version__
from .categories import KNOWN_CATEGORIES, DocumentCategory, resolve_categories
from .config import AppConfig, load_config
from .logging_config import configure_logging
from .mailer import check_smtp_login, send_documents
from .models import AcquisitionOutcome, Captured, Document
from .portal.client import PortalCredentials, PortalTiming, VodafonePortalClient
from .portal.errors import AuthenticationError, OverallTimeoutError
from .portal.session import Deadline, SessionOptions, open_session


logger = logging.getLogger("vodafone_invoice_mailer")

EXIT_MAIL_FAILED = 1
EXIT_AUTH_FAILED = 2
EXIT_TIMEOUT = 3


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="vodafone_invoice_mailer")
    p.add_argument(
        "--env-file",
        default=".env",
        help="Path to a dotenv file (default: .env). If missing, env vars must already be set.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    run = sub.add_parser("run", help="Download this month's Vodafone invoices and e-mail them")
    run.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")
    run.add_argument("--dry-run", action="store_true", help="Download invoices but do not send the e-mail")
    run.add_argument("--headful", action="store_true", help="Run browser headful (debug)")
    run.add_argument(
        "--category",
        action="append",
        default=[],
        choices=sorted(KNOWN_CATEGORIES.keys()),
        help="Only process this category (repeatable). Default: categories from config.",
    )
    run.add_argument(
        "--debug-dir",
        default="",
        help="Save screenshots/HTML/text of failing pages to this directory (default: off).",
    )
    run.add_argument(
        "--save-dir",
        default="",
        help="Also write captured PDFs to this directory (default: keep everything in memory).",
    )

    preflight = sub.add_parser(
        "preflight",
        help="Validate configuration and the SMTP login. Does not start a browser.",
    )
    preflight.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")
    preflight.add_argument("--skip-smtp", action="store_true", help="Skip the SMTP login check")

    sub.add_parser("list-categories", help="List the document categories this tool knows about")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)

    # Default logging: can be overridden once config is loaded.
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))

    if args.cmd == "list-categories":
        # Print only; no config/env required.
        for key, info in KNOWN_CATEGORIES.items():
            print(f"{key}\t{info.display_name}\t{info.nav_label}")
        return 0

    if args.cmd == "preflight":
        cfg = load_config(args.config)
        configure_logging(level=cfg.logging.level, file_path=cfg.logging.file_path, secrets=_secrets(cfg))
        logger.info("Starting preflight checks")
        _require_portal_credentials(cfg)
        _require_email_settings(cfg)
        if not args.skip_smtp:
            check_smtp_login(cfg.smtp, login_user=cfg.email.sender)
            logger.info("SMTP login OK (%s:%s)", cfg.smtp.host, cfg.smtp.port)
        logger.info("Preflight OK")
        return 0

    if args.cmd == "run":
        cfg = load_config(args.config)
        configure_logging(level=cfg.logging.level, file_path=cfg.logging.file_path, secrets=_secrets(cfg))
        _require_portal_credentials(cfg)
        if not args.dry_run:
            _require_email_settings(cfg)

        categories = resolve_categories(args.category or cfg.categories)
        if not categories:
            raise SystemExit("No document categories configured.")

        if args.headful:
            cfg = cfg.model_copy(update={"browser": cfg.browser.model_copy(update={"headless": False})})

        t0 = time.time()
        try:
            outcomes = acquire_documents(cfg, categories=categories, debug_dir=args.debug_dir)
        except AuthenticationError as e:
            logger.error("Login failed: %s", e)
            return EXIT_AUTH_FAILED
        except OverallTimeoutError as e:
            logger.error("Timed out: %s", e)
            return EXIT_TIMEOUT
        logger.info("Portal run complete (seconds=%.2f)", time.time() - t0)

        documents = [o.document for o in outcomes if isinstance(o, Captured)]
        if args.save_dir:
            _save_documents(documents, Path(args.save_dir))

        if not documents:
            logger.info("No invoices downloaded")
            return 0

        if args.dry_run:
            for doc in documents:
                logger.info("Dry run: would send %s (%d bytes)", doc.filename, len(doc.payload))
            logger.info("Dry run: %d invoice(s) not sent", len(documents))
            return 0

        logger.info("Sending email...")
        try:
            send_documents(documents, cfg.email, cfg.smtp)
        except Exception as e:
            logger.error("Email failed: %s", e)
            return EXIT_MAIL_FAILED
        logger.info("Done: %d invoice(s) sent", len(documents))
        return 0

    raise AssertionError("Unhandled command")


def acquire_documents(
    cfg: AppConfig,
    *,
    categories: Iterable[DocumentCategory],
    debug_dir: str = "",
    today: Optional[Callable[[], date]] = None,
) -> list[AcquisitionOutcome]:
    """
    Open one browser session, log in, and run every category against it sequentially.
    """
    b = cfg.browser
    options = SessionOptions(
        headless=b.headless,
        disable_gpu=b.disable_gpu,
        no_sandbox=b.no_sandbox,
        user_agent=b.user_agent,
        suppress_automation=b.suppress_automation,
        debug_dir=debug_dir,
    )
    timing = PortalTiming(
        settle_seconds=b.settle_seconds,
        login_settle_seconds=b.login_settle_seconds,
        poll_cycles=b.poll_cycles,
        poll_interval_seconds=b.poll_interval_seconds,
        capture_wait_seconds=b.capture_wait_seconds,
    )
    deadline = Deadline(b.overall_timeout_seconds)

    logger.info("Logging in...")
    with open_session(options, deadline=deadline) as session:
        client = VodafonePortalClient(
            session,
            creds=PortalCredentials(username=cfg.vodafone.user, password=cfg.vodafone.password),
            timing=timing,
            today=today,
        )
        return client.run(categories)


def _save_documents(documents: list[Document], out_dir: Path) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    for doc in documents:
        path = out_dir / doc.filename
        path.write_bytes(doc.payload)
        logger.info("Saved %s", path)


def _secrets(cfg: AppConfig) -> tuple[str, ...]:
    return (cfg.vodafone.password, cfg.smtp.password)


def _require_portal_credentials(cfg: AppConfig) -> None:
    if cfg.vodafone.user and cfg.vodafone.password:
        return
    raise SystemExit("Missing Vodafone login. Set VODAFONE_USER + VODAFONE_PASS in your .env (or vodafone.user/pass).")


def _require_email_settings(cfg: AppConfig) -> None:
    missing = []
    if not cfg.email.sender:
        missing.append("email.from (EMAIL_FROM)")
    if not cfg.email.recipients:
        missing.append("email.to (EMAIL_TO)")
    if not cfg.smtp.host:
        missing.append("smtp.host (SMTP_HOST)")
    if missing:
        raise SystemExit(f"Missing e-mail settings: {', '.join(missing)}")

from __future__ import annotations

from dataclasses import dataclass

from .periods import ARCHIVE_MARKER


@dataclass(frozen=True)
class PortalSelectors:
    """
    MeinVodafone is a web portal; selectors and button texts change over time.
    Keep all UI selectors/text hooks here for easy maintenance.
    """

    # Entry points
    login_url: str = "https://www.vodafone.de/meinvodafone/account/login"
    services_url: str = "https://www.vodafone.de/meinvodafone/services/"

    # Login
    username_input: str = "#username-text"
    password_input: str = "#passwordField-input"
    submit_button: str = "#submit"
    cookie_reject_button: str = "#dip-consent-summary-reject-all"

    # Contract card on the services page (an <h2> containing the category nav label).
    contract_heading_selector: str = "h2"

    # Invoice page navigation
    invoices_link_texts: tuple[str, ...] = ("Meine Rechnungen",)
    invoices_link_exact_texts: tuple[str, ...] = ("Rechnungen",)
    invoices_button_texts: tuple[str, ...] = ("Rechnungen",)
    invoice_page_ready_texts: tuple[str, ...] = ("Aktuelle Rechnung", "Rechnungsarchiv", "Rechnungsdatum", "Rechnung vom")

    # Downloads
    download_current_texts: tuple[str, ...] = (
        "Rechnung herunterladen",
        "Rechnung (PDF)",
        "PDF herunterladen",
    )
    archive_marker: str = ARCHIVE_MARKER
    archive_download_texts: tuple[str, ...] = ("Rechnung (PDF)", "PDF")

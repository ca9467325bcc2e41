from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping


@dataclass(frozen=True)
class DocumentCategory:
    key: str
    display_name: str
    # Text shown on the contract card of the services page.
    nav_label: str
    # Used in attachment filenames; must stay filename-safe.
    file_tag: str


# Fixed registry of contract types. Dict order is processing order.
KNOWN_CATEGORIES: Mapping[str, DocumentCategory] = {
    "mobilfunk": DocumentCategory(
        key="mobilfunk",
        display_name="Mobilfunk",
        nav_label="Mobilfunk-Vertrag",
        file_tag="Mobilfunk",
    ),
    "kabel": DocumentCategory(
        key="kabel",
        display_name="Kabel",
        nav_label="Kabel-Vertrag",
        file_tag="Kabel",
    ),
}


def is_known_category(key: str) -> bool:
    return key.strip().lower() in KNOWN_CATEGORIES


def resolve_categories(keys: Iterable[str]) -> list[DocumentCategory]:
    """
    Map category keys to registry entries, preserving registry order and dropping duplicates.
    """
    wanted = {k.strip().lower() for k in keys if (k or "").strip()}
    unknown = sorted(k for k in wanted if k not in KNOWN_CATEGORIES)
    if unknown:
        raise ValueError(f"Unknown document categories: {', '.join(unknown)}")
    return [c for k, c in KNOWN_CATEGORIES.items() if k in wanted]

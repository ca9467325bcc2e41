from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .categories import DocumentCategory
from .util.months import MONTH_NAMES, german_month


@dataclass(frozen=True)
class Period:
    """
    A billing period. Equality and hashing only consider month + year;
    `month_name` is presentation-only and always taken from the month table.
    """

    month: int
    year: int
    month_name: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month out of range: {self.month}")
        if not 1000 <= self.year <= 9999:
            raise ValueError(f"year must have four digits: {self.year}")
        expected = MONTH_NAMES[self.month]
        if not self.month_name:
            object.__setattr__(self, "month_name", expected)
        elif self.month_name != expected:
            raise ValueError(f"month_name {self.month_name!r} does not match month {self.month}")

    @classmethod
    def of(cls, month: int, year: int) -> "Period":
        return cls(month=month, year=year, month_name=german_month(month))

    @classmethod
    def current(cls, today: Optional[date] = None) -> "Period":
        d = today or date.today()
        return cls.of(d.month, d.year)

    @property
    def month_str(self) -> str:
        return f"{self.month:02d}"

    @property
    def label(self) -> str:
        return f"{self.month_name} {self.year}"


def build_filename(category: DocumentCategory, period: Period) -> str:
    # Deterministic; never derived from page text.
    return f"{period.month_str}_{period.year}_Rechnung_Vodafone_{category.file_tag}.pdf"


class Document(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: DocumentCategory
    period: Period
    filename: str
    payload: bytes = Field(repr=False)

    @field_validator("payload")
    @classmethod
    def _payload_not_empty(cls, v: bytes) -> bytes:
        if not v:
            raise ValueError("document payload must not be empty")
        return v

    @classmethod
    def create(cls, *, category: DocumentCategory, period: Period, payload: bytes) -> "Document":
        return cls(
            category=category,
            period=period,
            filename=build_filename(category, period),
            payload=payload,
        )


@dataclass(frozen=True)
class Captured:
    document: Document
    via_archive: bool = False

    @property
    def category(self) -> DocumentCategory:
        return self.document.category


@dataclass(frozen=True)
class NotReady:
    """
    The page shows a period, but not the current one, and no archive entry was usable.
    """

    category: DocumentCategory
    period: Optional[Period] = None


@dataclass(frozen=True)
class NotFound:
    category: DocumentCategory
    reason: str = ""


@dataclass(frozen=True)
class CaptureFailed:
    category: DocumentCategory
    reason: str = ""


AcquisitionOutcome = Union[Captured, NotReady, NotFound, CaptureFailed]

from .months import GERMAN_MONTHS, MONTH_NAMES, german_month, month_number

__all__ = ["GERMAN_MONTHS", "MONTH_NAMES", "german_month", "month_number"]

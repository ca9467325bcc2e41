"""
Download monthly Vodafone invoices (Mobilfunk, Kabel) from MeinVodafone and e-mail them.
"""

__version__ = "1.0.0"

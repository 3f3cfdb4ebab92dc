"""Competitive intelligence reports for a company website."""

__version__ = "0.1.0"

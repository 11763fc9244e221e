"""AI generation pipeline for promptext-notes release notes."""

__version__ = "0.1.0"

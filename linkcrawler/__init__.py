"""Broken-link crawler: walks a site and reports every URL answering 404."""

__version__ = "0.1.0"

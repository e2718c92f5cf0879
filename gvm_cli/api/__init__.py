"""
Release Catalog Layer.

This package handles all communication with the remote download site.
"""

from .catalog import CatalogClient

__all__ = ["CatalogClient"]

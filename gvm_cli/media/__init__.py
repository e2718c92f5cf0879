"""
Artifact Handling Layer.

This package is responsible for all operations on downloaded packages:
streaming them to disk, checking their SHA-256 digest, and unpacking them.
"""

from .downloader import Downloader
from .extractor import ArchiveExtractor
from .integrity import IntegrityVerifier

__all__ = ["ArchiveExtractor", "Downloader", "IntegrityVerifier"]

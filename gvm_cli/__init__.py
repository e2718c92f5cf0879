"""
gvm-cli: install, switch, and remove Go toolchain versions.
"""

__version__ = "0.4.0"

"""Credentials toolbox: credential type registry and usage statistics."""

__version__ = "0.1.0"

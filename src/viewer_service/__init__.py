"""
Model Viewer Service package.

This module provides a FastAPI application that issues viewer tokens, uploads
design files to cloud storage and tracks their translation for viewing.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"

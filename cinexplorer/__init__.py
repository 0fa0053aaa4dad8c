"""Cine Explorer distribution entry points.

``python -m cinexplorer`` serves the API; ``python -m cinexplorer
hash-password`` prints a value for ``ADMIN_PASSWORD_HASH``.
"""

from __future__ import annotations

from app.main import app, create_app

__version__ = "1.0.0"

__all__ = ["app", "create_app", "__version__"]

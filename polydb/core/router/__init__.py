"""
Connection routing: driver connect, session setup, role selection and health check.
"""

from .connect import connect, setup_session
from .health import health_check
from .router import ConnectionRouter, classify

__all__ = [
    "connect",
    "setup_session",
    "health_check",
    "ConnectionRouter",
    "classify",
]

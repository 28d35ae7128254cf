"""
Liveness check for an open driver connection.
"""

import logging
from typing import Any

_log = logging.getLogger(__name__)


def health_check(conn: Any) -> bool:
    """True when ``SELECT 1`` round-trips on *conn*; any error means dead."""
    cur = None
    try:
        cur = conn.cursor()
        cur.execute("SELECT 1")
        cur.fetchone()
        return True
    except Exception:
        _log.debug("Health check failed", exc_info=True)
        return False
    finally:
        if cur is not None:
            cur.close()

"""
Background worker that purges expired refresh and verification tokens.

Runs one sweep at startup and then every TOKEN_CLEANUP_INTERVAL_SECONDS.
The sweep is a delete-by-predicate, so running it next to the API (which
sweeps once on its own startup) or in several replicas is harmless.

Usage:
    python worker.py
"""

import logging
import time
from typing import Optional, Tuple

from omnivault.core.config import settings
from omnivault.core.logging_config import setup_logging
from omnivault.database import Base, SessionLocal, engine
from omnivault import models  # noqa: F401  registers every table on Base.metadata
from omnivault.services.session_store import SessionStore

logger = logging.getLogger("worker")


def sweep_expired_tokens(session_factory=SessionLocal) -> Tuple[int, int]:
    """
    Delete every expired refresh token and verification token.

    Returns ``(refresh_deleted, verification_deleted)``. Errors are logged
    and reported as ``(0, 0)`` so one failed sweep does not stop the worker.
    """
    db = session_factory()
    try:
        refresh_deleted, verification_deleted = SessionStore(db).delete_expired()
        db.commit()
        if refresh_deleted or verification_deleted:
            logger.info(
                f"Token sweep: removed {refresh_deleted} refresh and "
                f"{verification_deleted} verification token(s)"
            )
        return refresh_deleted, verification_deleted
    except Exception as e:
        db.rollback()
        logger.error(f"Token sweep failed: {e}")
        return 0, 0
    finally:
        db.close()


def main(interval: Optional[int] = None) -> None:
    """Sweep on startup, then on a fixed cadence until interrupted."""
    setup_logging(log_level=settings.log_level, log_format=settings.log_format)
    Base.metadata.create_all(bind=engine)

    interval = interval or settings.token_cleanup_interval_seconds
    logger.info(f"Worker started, sweeping expired tokens every {interval}s")

    while True:
        try:
            sweep_expired_tokens()
            time.sleep(interval)
        except KeyboardInterrupt:
            logger.info("Worker shutting down")
            break


if __name__ == "__main__":
    main()

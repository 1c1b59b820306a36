"""Celery tasks for opname session bookkeeping."""

import logging

from opname.celery_app import app as celery_app
from opname.database import SessionLocal
from opname.services.exceptions import NotFoundError
from opname.services.session_registry import SessionRegistry
from opname.services.session_store import load_session, refresh_counters

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3)
def audit_session_counters(self, session_id: int) -> dict:
    """Recount a session's counters from its rows and repair drift.

    Locked sessions are immutable, so drift there is only reported.

    Args:
        session_id: ID of the OpnameSession to audit

    Returns:
        dict with the audit result
    """
    db = SessionLocal()
    try:
        registry = SessionRegistry(db)
        try:
            check = registry.verify_counters(session_id)
        except NotFoundError:
            return {"error": "Session not found"}

        if not check.drifted:
            return {"session_id": session_id, "drifted": False}

        logger.warning(
            f"Counter drift in session {session_id}: stored {check.stored}, "
            f"derived {check.derived.as_dict()}"
        )
        opname_session = load_session(db, session_id, for_update=True)
        if opname_session.is_locked:
            db.rollback()
            return {"session_id": session_id, "drifted": True, "repaired": False}

        refresh_counters(db, opname_session)
        db.commit()
        logger.info(f"Repaired counters for session {session_id}")
        return {"session_id": session_id, "drifted": True, "repaired": True}

    except Exception as e:
        logger.error(f"Error auditing counters for session {session_id}: {e}", exc_info=True)
        db.rollback()

        if self.request.retries < self.max_retries:
            raise self.retry(exc=e, countdown=30) from e

        return {"error": str(e)}
    finally:
        db.close()

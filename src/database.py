"""
Database operations for ExamDesk.
Handles Supabase CRUD for exams, registrations and attempts, plus admin auth.
"""
import logging
from typing import Callable, Dict, List, Optional

from supabase import Client

from src.realtime import subscribe

logger = logging.getLogger(__name__)

EXAMS = "exams"
REGISTRATIONS = "registrations"
ATTEMPTS = "attempts"


class DatabaseClient:
    """Wrapper around Supabase client with ExamDesk-specific operations.

    Errors from the backend are logged and re-raised; callers decide what the
    user sees.
    """

    def __init__(self, client: Client):
        self.client = client

    # ============= Exams =============

    def list_exams(self) -> List[Dict]:
        """All exam records, newest date first."""
        try:
            response = self.client.table(EXAMS).select("*").order("date", desc=True).execute()
            return response.data or []
        except Exception as e:
            logger.error(f"Error listing exams: {e}")
            raise

    def get_exam(self, exam_id: str) -> Optional[Dict]:
        """Single exam record, or None if the id is unknown."""
        try:
            response = self.client.table(EXAMS).select("*").eq("id", exam_id).limit(1).execute()
        except Exception as e:
            logger.error(f"Error fetching exam {exam_id}: {e}")
            raise
        rows = response.data or []
        return rows[0] if rows else None

    def subscribe_exams(
        self,
        on_change: Callable[[List[Dict]], None],
        on_error: Callable[[Exception], None],
        interval: float = 5.0,
    ) -> Callable[[], None]:
        """Full-snapshot change feed of the exam list. Returns unsubscribe()."""
        return subscribe(self.list_exams, on_change, on_error, interval)

    def create_exam(self, payload: Dict) -> Optional[str]:
        """Insert an exam; id and created_at are assigned by the database."""
        try:
            response = self.client.table(EXAMS).insert(payload).execute()
        except Exception as e:
            logger.error(f"Error creating exam: {e}")
            raise
        rows = response.data or []
        exam_id = rows[0].get("id") if rows else None
        logger.info("Created exam %s (%d questions)", exam_id, len(payload.get("questions") or []))
        return exam_id

    def update_exam(self, exam_id: str, payload: Dict) -> None:
        try:
            self.client.table(EXAMS).update(payload).eq("id", exam_id).execute()
            logger.info("Updated exam %s", exam_id)
        except Exception as e:
            logger.error(f"Error updating exam {exam_id}: {e}")
            raise

    def delete_exam(self, exam_id: str) -> None:
        try:
            self.client.table(EXAMS).delete().eq("id", exam_id).execute()
            logger.info("Deleted exam %s", exam_id)
        except Exception as e:
            logger.error(f"Error deleting exam {exam_id}: {e}")
            raise

    # ============= Registrations & attempts =============

    def create_registration(self, row: Dict) -> Optional[str]:
        """Insert-only. registered_at is stamped by the database."""
        return self._insert(REGISTRATIONS, row)

    def create_attempt(self, row: Dict) -> Optional[str]:
        """Insert-only. submitted_at is stamped by the database."""
        return self._insert(ATTEMPTS, row)

    def _insert(self, table: str, row: Dict) -> Optional[str]:
        try:
            response = self.client.table(table).insert(row).execute()
        except Exception as e:
            logger.error(f"Error inserting into {table}: {e}")
            raise
        rows = response.data or []
        return rows[0].get("id") if rows else None

    # ============= Auth =============

    def sign_in(self, email: str, password: str):
        """Email/password sign in. Returns the signed-in user."""
        response = self.client.auth.sign_in_with_password({"email": email, "password": password})
        logger.info("Admin signed in: %s", email)
        return response.user

    def sign_out(self) -> None:
        self.client.auth.sign_out()

    def current_user(self):
        """Signed-in user, or None."""
        try:
            response = self.client.auth.get_user()
        except Exception as e:
            logger.debug(f"No auth session: {e}")
            return None
        return getattr(response, "user", None) if response else None

    def on_auth_change(self, callback: Callable[[Optional[object]], None]) -> Callable[[], None]:
        """Call `callback(user_or_None)` on every auth state change. Returns unsubscribe()."""

        def _listener(event, session):
            callback(getattr(session, "user", None) if session else None)

        subscription = self.client.auth.on_auth_state_change(_listener)
        return subscription.unsubscribe

from __future__ import annotations
import logging
import threading
from typing import Iterable
from client import RemoteClient, SyncError
from db import HistoryRepository, SettingsRepository, SyncOutboxRepository
from gamification_service import MissionService
from models import OutboxEntry, PersonalRecord, WorkoutSession

logger = logging.getLogger(__name__)


class SyncService:
    """Mirror local completions to the hosted database through an outbox.

    Each pending operation is keyed by ``(kind, key)`` and replayed with
    upsert semantics, so a failed or interrupted flush can simply run again.
    """

    REMOTE_KINDS = {"session", "personal_records", "notify"}

    def __init__(
        self,
        outbox_repo: SyncOutboxRepository,
        history_repo: HistoryRepository,
        missions: MissionService | None = None,
        client: RemoteClient | None = None,
        *,
        limit: int = 500,
        background: bool = True,
    ) -> None:
        self.outbox = outbox_repo
        self.history = history_repo
        self.missions = missions
        self.client = client
        self.limit = limit
        self.background = background
        self._lock = threading.Lock()
        self._rerun = False

    def enqueue(self, kind: str, key: str, payload: dict) -> int:
        entry_id = self.outbox.enqueue(kind, key, payload)
        self._enforce_limit()
        return entry_id

    def _enforce_limit(self) -> None:
        overflow = self.outbox.count() - self.limit
        for entry in self.outbox.evict_oldest(overflow):
            logger.warning(
                "Outbox full, dropped %s operation %s", entry.kind, entry.key
            )

    def enqueue_completion(
        self, user_id: str, session: WorkoutSession, prs: Iterable[PersonalRecord]
    ) -> None:
        """Queue the independent follow-up operations of a completed session."""
        records = [pr.model_dump() for pr in prs]
        self.enqueue("session", session.id, {"user_id": user_id, "session_id": session.id})
        if records:
            self.enqueue(
                "personal_records",
                session.id,
                {"user_id": user_id, "records": records},
            )
        if self.missions is not None:
            self.enqueue(
                "missions",
                session.id,
                {"user_id": user_id, "session_id": session.id, "records": records},
            )
        self.enqueue("notify", session.id, {"user_id": user_id, "session_id": session.id})

    def dispatch(self) -> threading.Thread | None:
        """Flush the outbox without blocking the caller."""
        if not self.background:
            self.flush()
            return None
        thread = threading.Thread(target=self.flush, daemon=True)
        thread.start()
        return thread

    def pending(self) -> list[OutboxEntry]:
        return self.outbox.fetch_pending()

    def flush(self) -> dict[str, int]:
        """Run every pending operation once; failures stay queued.

        A flush requested while another is running marks the running one to
        go around again, so operations queued meanwhile are not left behind.
        """
        result = {"done": 0, "failed": 0, "skipped": 0, "busy": 0}
        attempted: set[int] = set()
        while True:
            if not self._lock.acquire(blocking=False):
                self._rerun = True
                result["busy"] = 1
                return result
            try:
                self._rerun = False
                self._drain(result, attempted)
            finally:
                self._lock.release()
            if not self._rerun:
                return result

    def _drain(self, result: dict[str, int], attempted: set[int]) -> None:
        while True:
            batch = [e for e in self.outbox.fetch_pending() if e.id not in attempted]
            if not batch:
                return
            for entry in batch:
                attempted.add(entry.id)
                if self.client is None and entry.kind in self.REMOTE_KINDS:
                    result["skipped"] += 1
                    continue
                try:
                    self._handle(entry)
                except Exception as e:
                    logger.warning(
                        "Sync of %s %s failed (attempt %d): %s",
                        entry.kind,
                        entry.key,
                        entry.attempts + 1,
                        e,
                    )
                    self.outbox.record_failure(entry.id, str(e))
                    result["failed"] += 1
                    continue
                self.outbox.delete(entry.id)
                result["done"] += 1

    def _handle(self, entry: OutboxEntry) -> None:
        payload = entry.payload
        user_id = payload["user_id"]
        if entry.kind == "session":
            session = self.history.fetch_session(payload["session_id"])
            if session is None:
                logger.info("Session %s no longer stored, nothing to sync", entry.key)
                return
            self.client.upsert_session(session, user_id)
        elif entry.kind == "personal_records":
            records = [PersonalRecord.model_validate(r) for r in payload["records"]]
            self.client.upsert_personal_records(records, user_id)
        elif entry.kind == "missions":
            self._sync_missions(user_id, payload)
        elif entry.kind == "notify":
            self.client.notify_friends(payload["session_id"])
        else:
            raise SyncError(f"unknown operation {entry.kind}")

    def _sync_missions(self, user_id: str, payload: dict) -> None:
        if self.missions is None:
            return
        session = self.history.fetch_session(payload["session_id"])
        if session is None:
            return
        records = [PersonalRecord.model_validate(r) for r in payload["records"]]
        day = session.completed_at[:10] if session.completed_at else None
        self.missions.apply_session(user_id, session, records, today=day)
        if self.client is None:
            return
        repo = self.missions.repo
        for mission in repo.fetch_for_user(user_id):
            if repo.was_applied(mission.id, session.id):
                self.client.update_mission_progress(
                    mission.id, mission.progress, mission.status
                )

    def reconcile(self, user_id: str, settings: SettingsRepository) -> dict[str, int]:
        """Re-queue local history for upload once, then retry everything pending."""
        migrating = not settings.get_bool("migrated_v1", False)
        if migrating:
            history = self.history.read_user(user_id)
            for session in history.sessions:
                self.enqueue("session", session.id, {"user_id": user_id, "session_id": session.id})
            if history.personal_records:
                self.enqueue(
                    "personal_records",
                    f"all:{user_id}",
                    {
                        "user_id": user_id,
                        "records": [pr.model_dump() for pr in history.personal_records],
                    },
                )
        result = self.flush()
        if (
            migrating
            and self.client is not None
            and result["busy"] == 0
            and result["failed"] == 0
            and result["skipped"] == 0
        ):
            settings.set_bool("migrated_v1", True)
        logger.info(
            "Reconciliation finished: %d synced, %d failed, %d waiting for remote",
            result["done"],
            result["failed"],
            result["skipped"],
        )
        return result

"""Mirror sync-pending participant rows to the backup sheet.

Runs on a fixed interval, one run at a time. Flags are cleared only after the
sheet acknowledged the writes, and only for the exact row revisions that were
written, so a guess changed mid-run stays pending for the next run.
"""
import threading
import time
from dataclasses import dataclass
from typing import Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from boxgame import db, socketio
from boxgame.errors import SinkError, StoreUnavailable
from boxgame.models import Participant
from boxgame.services.sheets import HEADER, IDENTITY_COLUMN, row_number


@dataclass
class SyncReport:
    skipped: bool = False
    fetched: int = 0
    appended: int = 0
    updated: int = 0
    cleared: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'skipped': self.skipped,
            'fetched': self.fetched,
            'appended': self.appended,
            'updated': self.updated,
            'cleared': self.cleared,
            'error': self.error,
        }


class BackupReplicator:
    def __init__(self, sink=None, batch_size: int = 50, interval: int = 10):
        self.sink = sink
        self.batch_size = batch_size
        self.interval = interval
        self._run_lock = threading.Lock()
        self._stopped = threading.Event()
        self._started = False
        self.last_report: Optional[SyncReport] = None
        self.last_run_at: Optional[float] = None
        self.sync_requested_at: Optional[float] = None

    @property
    def enabled(self) -> bool:
        return self.sink is not None

    @property
    def in_flight(self) -> bool:
        return self._run_lock.locked()

    def run_once(self) -> SyncReport:
        """Run one sync cycle. Must be called inside an app context; never raises."""
        if not self.enabled:
            return SyncReport(skipped=True)
        if not self._run_lock.acquire(blocking=False):
            current_app.logger.info("[sync-skip] previous run still in flight")
            return SyncReport(skipped=True)
        try:
            report = self._sync_batch()
        finally:
            self._run_lock.release()
        self.last_report = report
        self.last_run_at = time.time()
        return report

    def _sync_batch(self) -> SyncReport:
        log = current_app.logger
        try:
            batch = (
                Participant.query.filter_by(sync_pending=True)
                .order_by(Participant.created_at, Participant.identity)
                .limit(self.batch_size)
                .all()
            )
            snapshot = [(p.identity, p.revision, p.to_sheet_row()) for p in batch]
            # End the read transaction before talking to the sheet
            db.session.rollback()
        except SQLAlchemyError as exc:
            db.session.rollback()
            log.error(f"[sync-fail] could not read pending rows: {exc}")
            return SyncReport(error=StoreUnavailable.code)

        if not snapshot:
            return SyncReport()

        report = SyncReport(fetched=len(snapshot))
        try:
            rows = self.sink.fetch_rows()
            existing = {}
            # Row 1 is the header
            for index, row in enumerate(rows[1:], start=1):
                if len(row) > IDENTITY_COLUMN and row[IDENTITY_COLUMN]:
                    existing.setdefault(str(row[IDENTITY_COLUMN]), row_number(index))

            appends, updates = [], []
            for identity, _, values in snapshot:
                if identity in existing:
                    updates.append((existing[identity], values))
                else:
                    appends.append(values)
            report.appended = len(appends)
            report.updated = len(updates)
            if not rows:
                appends.insert(0, list(HEADER))

            self.sink.append_rows(appends)
            self.sink.update_rows(updates)
        except SinkError as exc:
            log.warning(f"[sync-fail] backup sheet error, will retry: {exc.message}")
            report.error = exc.code
            return report

        try:
            cleared = 0
            for identity, revision, _ in snapshot:
                cleared += (
                    Participant.query.filter_by(identity=identity, revision=revision, sync_pending=True)
                    .update({Participant.sync_pending: False}, synchronize_session=False)
                )
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            log.error(f"[sync-fail] sheet written but flags not cleared, will re-patch: {exc}")
            report.error = StoreUnavailable.code
            return report

        report.cleared = cleared
        log.info(
            f"[sync-run] fetched={report.fetched} appended={report.appended} "
            f"updated={report.updated} cleared={cleared}"
        )
        return report

    def request_sync(self, full: bool = False) -> int:
        """Flag a sync cycle for the timer. Returns the resulting backlog size.

        With ``full`` every row is re-flagged so the whole table is mirrored
        again. The sync itself still only runs on the timer.
        """
        self.sync_requested_at = time.time()
        if full:
            try:
                Participant.query.update(
                    {
                        Participant.sync_pending: True,
                        Participant.revision: Participant.revision + 1,
                    },
                    synchronize_session=False,
                )
                db.session.commit()
            except SQLAlchemyError as exc:
                db.session.rollback()
                current_app.logger.error(f"[sync-request] could not flag rows: {exc}")
                raise StoreUnavailable()
        current_app.logger.info(f"[sync-request] full={full}")
        return Participant.query.filter_by(sync_pending=True).count()

    def start(self, app) -> None:
        if not self.enabled:
            app.logger.info("[sync-disabled] no SPREADSHEET_ID configured")
            return
        if self._started:
            return
        self._started = True
        self._stopped.clear()
        app.logger.info(f"[sync-start] interval={self.interval}s batch={self.batch_size}")
        socketio.start_background_task(self._loop, app)

    def stop(self) -> None:
        self._stopped.set()
        self._started = False

    def _loop(self, app):
        while not self._stopped.is_set():
            socketio.sleep(self.interval)
            if self._stopped.is_set():
                return
            with app.app_context():
                try:
                    self.run_once()
                except Exception:
                    app.logger.exception("[sync-loop] unexpected error")
                finally:
                    db.session.remove()

    def status(self) -> dict:
        return {
            'enabled': self.enabled,
            'in_flight': self.in_flight,
            'last_run_at': self.last_run_at,
            'last_report': self.last_report.to_dict() if self.last_report else None,
            'sync_requested_at': self.sync_requested_at,
        }

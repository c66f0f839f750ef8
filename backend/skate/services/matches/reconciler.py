import time
from typing import Dict

from flask import current_app

from skate import socketio
from skate.errors import ConcurrencyConflict, ValidationError, NotFoundError, StorageUnavailableError
from skate.models import Match, ACTIVE
from .mutator import storage_errors
from .notifications import deliver
from .rules import Event, SYSTEM_ACTOR, TIMEOUT, HARD_CAP
from .service import MatchService


class DeadlineReconciler:
    """Background scans that enforce turn deadlines and the match hard cap.

    - Every scan is idempotent and safe to re-run
    - Forfeits go through ``MatchService.submit_action`` with the system actor
    - A conflict or rejection on one match is logged at debug and skipped
    - A storage outage aborts the scan; the next interval retries
    """

    def __init__(self, service: MatchService):
        self.service = service

    def run_once(self) -> Dict[str, int]:
        return {
            'forfeited_expired': self.forfeit_expired_turns(),
            'warned': self.send_deadline_warnings(),
            'forfeited_stalled': self.forfeit_stalled_matches(),
        }

    def _candidates(self, *criteria):
        with storage_errors('reconcile-scan'):
            return [
                (m.id, m.version)
                for m in Match.query.filter(Match.status == ACTIVE, *criteria).order_by(Match.id).all()
            ]

    def _force(self, match_id, version, action_type, tag) -> bool:
        try:
            self.service.submit_action(match_id, SYSTEM_ACTOR, action_type, expected_version=version)
        except ConcurrencyConflict:
            current_app.logger.debug(f"[{tag}-skip] match={match_id} conflict; already resolved elsewhere")
            return False
        except (ValidationError, NotFoundError) as exc:
            current_app.logger.debug(f"[{tag}-skip] match={match_id} reason={exc.reason}")
            return False
        current_app.logger.info(f"[{tag}] match={match_id} forfeited")
        return True

    def forfeit_expired_turns(self) -> int:
        now = self.service.now()
        forfeited = 0
        for match_id, version in self._candidates(Match.deadline_at.isnot(None), Match.deadline_at <= now):
            if self._force(match_id, version, TIMEOUT, 'reconcile-timeout'):
                forfeited += 1
        return forfeited

    def forfeit_stalled_matches(self) -> int:
        now = self.service.now()
        cutoff = now - self.service.settings.hard_cap_sec
        forfeited = 0
        for match_id, version in self._candidates(Match.created_at <= cutoff):
            if self._force(match_id, version, HARD_CAP, 'reconcile-hard-cap'):
                forfeited += 1
        return forfeited

    def send_deadline_warnings(self) -> int:
        """Warn the expected actor once per cooldown when their deadline is near. Read-only on matches."""
        now = self.service.now()
        lead = self.service.warning_lead_sec
        cooldown = self.service.warning_cooldown_sec
        store = self.service.cooldowns
        notified = 0
        with storage_errors('reconcile-warnings'):
            store.purge(now, cooldown)
            urgent = (
                Match.query
                .filter(Match.status == ACTIVE, Match.deadline_at > now, Match.deadline_at <= now + lead)
                .order_by(Match.deadline_at)
                .all()
            )
            for match in urgent:
                if not match.current_actor_id or store.recently_warned(match.id, now, cooldown):
                    continue
                minutes = int(round((match.deadline_at - now) / 60.0))
                event = Event(match.current_actor_id, 'deadline_warning', {'match_id': match.id, 'minutes_remaining': minutes})
                deliver(self.service.notifier, [event])
                store.mark(match.id, now)
                notified += 1
                current_app.logger.info(
                    f"[reconcile-warning] match={match.id} player={match.current_actor_id} minutes={minutes}"
                )
        return notified


def start_reconciler(app) -> None:
    """Run the reconciler every RECONCILE_INTERVAL_SEC as a Socket.IO background task.

    - No-ops in TESTING mode unless ENABLE_RECONCILER_IN_TESTS is set
    - No-ops when the interval is 0
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_RECONCILER_IN_TESTS'):
        return
    interval = int(app.config.get('RECONCILE_INTERVAL_SEC', 60))
    if interval <= 0:
        return

    def _worker():
        app.logger.info(f"[reconcile-start] interval={interval}s")
        while True:
            socketio.sleep(interval)
            started = time.time()
            with app.app_context():
                try:
                    counts = DeadlineReconciler(app.extensions['skate']).run_once()
                except StorageUnavailableError:
                    app.logger.warning("[reconcile-abort] storage unavailable; retrying next interval")
                    continue
                except Exception:
                    app.logger.exception("[reconcile-error] unexpected failure; retrying next interval")
                    continue
            app.logger.info(
                f"[reconcile-pass] expired={counts['forfeited_expired']} warned={counts['warned']} "
                f"stalled={counts['forfeited_stalled']} took={time.time() - started:.2f}s"
            )

    socketio.start_background_task(_worker)

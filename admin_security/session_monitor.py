"""
Session Activity Monitor
Tracks user activity, warns before an idle session times out and invalidates expired sessions
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional, Tuple, Any

from .config_manager import SecuritySettings
from .error_logger import SecurityEvent


logger = logging.getLogger(__name__)

LAST_ACTIVITY_KEY = 'admin_console.last_activity'
LOGIN_PATH = '/login'
MINUTE_MS = 60 * 1000
# Activity closer than this to the stored value is not rewritten
WRITE_INTERVAL_MS = 1000

EXPIRED_MESSAGE = "Your session has expired. Please log in again."


def now_ms() -> int:
    return int(time.time() * 1000)


class SessionStatus(Enum):
    """Outcome of one timeout evaluation"""
    FRESH = "fresh"
    WARNING = "warning"
    EXPIRED = "expired"


class InvalidationReason(Enum):
    MANUAL_LOGOUT = "manual_logout"
    TIMEOUT_EXPIRED = "timeout_expired"


@dataclass
class TimeoutDecision:
    status: SessionStatus
    last_activity: int
    elapsed_ms: int
    remaining_minutes: int


def evaluate_elapsed(elapsed_ms: int, timeout_ms: int, warning_ms: int) -> SessionStatus:
    """
    Classify idle time against the timeout thresholds

    Expired wins over warning; warning covers the half-open interval
    (timeout - warning, timeout].
    """
    if elapsed_ms > timeout_ms:
        return SessionStatus.EXPIRED
    if elapsed_ms > timeout_ms - warning_ms:
        return SessionStatus.WARNING
    return SessionStatus.FRESH


def remaining_minutes(elapsed_ms: int, timeout_ms: int) -> int:
    """Whole minutes left before expiry, rounded up"""
    return max(0, math.ceil((timeout_ms - elapsed_ms) / MINUTE_MS))


def _log_security_event(error_logger, event: SecurityEvent, details, success: bool = True):
    if error_logger is None:
        return
    try:
        error_logger.log_security_event(event, details, success=success)
    except Exception as e:
        logger.warning("Failed to log %s: %s", event.value, e)


class ActivityRecorder:
    """Persists the timestamp of the most recent qualifying user interaction"""

    def __init__(self, storage, audit_sink=None, clock: Callable[[], int] = now_ms,
                 audit_interval_ms: int = MINUTE_MS, write_interval_ms: int = WRITE_INTERVAL_MS,
                 error_logger=None):
        self.storage = storage
        self.audit_sink = audit_sink
        self.clock = clock
        self.audit_interval_ms = audit_interval_ms
        self.write_interval_ms = write_interval_ms
        self.error_logger = error_logger
        self._last_audit_at: Optional[int] = None
        self._storage_failing = False

    def last_activity(self) -> Optional[int]:
        """Read the stored timestamp; missing or unreadable records read as None"""
        try:
            raw = self.storage.get(LAST_ACTIVITY_KEY)
        except Exception as e:
            logger.warning("Could not read last activity: %s", e)
            return None

        if raw is None:
            return None

        try:
            return int(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed last activity record: %r", raw)
            return None

    def record_activity(self, source: str = "interaction") -> Optional[int]:
        """
        Write the current time as the last activity

        Never raises. The stored value never moves backwards, even if the
        wall clock does. A stored value less than write_interval_ms old is
        kept as is, so bursts of pointer motion do not rewrite the store.

        Args:
            source: What triggered the recording, included in the audit entry

        Returns:
            The stored timestamp in ms, or None if storage rejected the write
        """
        timestamp = self.clock()
        previous = self.last_activity()
        if previous is not None and previous > timestamp:
            timestamp = previous

        if previous is not None and timestamp - previous < self.write_interval_ms:
            recorded: Optional[int] = previous
        else:
            recorded = self._write(timestamp)

        self._audit(timestamp, source)
        return recorded

    def _write(self, timestamp: int) -> Optional[int]:
        error = None
        try:
            if self.storage.set(LAST_ACTIVITY_KEY, str(timestamp)) is False:
                error = "local storage rejected the write"
        except Exception as e:
            error = str(e)

        if error is None:
            self._storage_failing = False
            return timestamp

        logger.warning("Failed to record session activity: %s", error)
        # One security event per run of failures
        if not self._storage_failing:
            self._storage_failing = True
            _log_security_event(
                self.error_logger, SecurityEvent.STORAGE_FAILURE,
                {'key': LAST_ACTIVITY_KEY, 'error': error}, success=False
            )
        return None

    def clear(self) -> bool:
        try:
            return self.storage.remove(LAST_ACTIVITY_KEY) is not False
        except Exception as e:
            logger.warning("Failed to clear last activity: %s", e)
            return False

    def _audit(self, timestamp: int, source: str):
        if self.audit_sink is None:
            return
        if (self.audit_interval_ms and self._last_audit_at is not None
                and timestamp - self._last_audit_at < self.audit_interval_ms):
            return

        self._last_audit_at = timestamp
        try:
            self.audit_sink.log_event(
                'session_activity', 'auth', {'timestamp': timestamp, 'source': source}, True
            )
        except Exception as e:
            logger.warning("Failed to audit session activity: %s", e)


class TimeoutEvaluator:
    """Compares the last recorded activity against the warning and timeout thresholds"""

    def __init__(self, recorder: ActivityRecorder, timeout_ms: int, warning_ms: int,
                 clock: Callable[[], int] = now_ms):
        if warning_ms >= timeout_ms:
            raise ValueError("warning window must be shorter than the timeout")
        self.recorder = recorder
        self.timeout_ms = timeout_ms
        self.warning_ms = warning_ms
        self.clock = clock

    def check(self) -> Optional[TimeoutDecision]:
        """Evaluate the session; None when no activity has been recorded yet"""
        last_activity = self.recorder.last_activity()
        if last_activity is None:
            return None

        elapsed = self.clock() - last_activity
        return TimeoutDecision(
            status=evaluate_elapsed(elapsed, self.timeout_ms, self.warning_ms),
            last_activity=last_activity,
            elapsed_ms=elapsed,
            remaining_minutes=remaining_minutes(elapsed, self.timeout_ms),
        )


class SessionInvalidator:
    """Ends the session locally and with the identity provider"""

    def __init__(self, storage, identity_provider, audit_sink=None):
        self.storage = storage
        self.identity_provider = identity_provider
        self.audit_sink = audit_sink

    def invalidate(self, reason) -> Tuple[bool, str]:
        """
        Clear local session state and sign out globally

        Local state is cleared before the sign-out request so a failed
        request never leaves stale markers behind. Safe to call without an
        active session.

        Args:
            reason: InvalidationReason or its string value

        Returns:
            Tuple of (success, message)
        """
        reason = InvalidationReason(reason)
        self._clear_local_state()

        try:
            session = self.identity_provider.get_session()
        except Exception as e:
            # Unknown state; attempt the sign-out anyway
            logger.warning("Could not query session before sign-out: %s", e)
            session = True

        if session is None:
            return True, "No active session"

        try:
            self.identity_provider.sign_out(scope='global')
            success, message = True, "Signed out from all sessions"
        except Exception as e:
            logger.error("Global sign-out failed (%s): %s", reason.value, e)
            success, message = False, f"Sign-out failed: {e}"

        self._audit(reason, success, message)
        return success, message

    def _clear_local_state(self):
        try:
            self.storage.remove(LAST_ACTIVITY_KEY)
            clear_auth_state = getattr(self.storage, 'clear_auth_state', None)
            if clear_auth_state is not None:
                clear_auth_state()
        except Exception as e:
            logger.warning("Failed to clear local session state: %s", e)

    def _audit(self, reason: InvalidationReason, success: bool, message: str):
        if self.audit_sink is None:
            return
        try:
            self.audit_sink.log_event('logout', 'auth', {'reason': reason.value, 'message': message}, success)
        except Exception as e:
            logger.warning("Failed to audit logout: %s", e)


class IntervalTimer:
    """Calls a function repeatedly from a daemon thread until stopped"""

    def __init__(self):
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def start(self, interval_seconds: float, callback: Callable[[], Any]):
        if self.is_running:
            return
        self._stop_event = threading.Event()
        stop_event = self._stop_event

        def run():
            while not stop_event.wait(interval_seconds):
                try:
                    callback()
                except Exception as e:
                    logger.error("Error in session timer callback: %s", e)

        self._thread = threading.Thread(target=run, name="session-timeout-timer", daemon=True)
        self._thread.start()

    def stop(self):
        self._stop_event.set()
        thread, self._thread = self._thread, None
        # The callback itself may stop the timer; never join the current thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5.0)


class SessionActivityMonitor:
    """
    Owns activity tracking and the idle-timeout timer for one signed-in session

    Use start()/stop() or a with block; stop() releases every listener and the
    timer on all exit paths.

    Collaborators:
        storage: get/set/remove key-value store (LocalStorageManager)
        identity_provider: get_session()/sign_out(scope)
        audit_sink: log_event(action, resource, details, success), optional
        notifier: show(kind, message, duration_ms=None, action=None), optional
        redirect_to: callable taking a path, optional
        activity_sources: objects with attach(callback)/detach()
        scheduler: object with start(interval_seconds, callback)/stop()
        error_logger: ErrorLogger receiving warning, expiry and storage failure events, optional
    """

    def __init__(self, storage, identity_provider, audit_sink=None, notifier=None,
                 redirect_to: Optional[Callable[[str], Any]] = None,
                 settings: Optional[SecuritySettings] = None,
                 activity_sources: Iterable = (), scheduler=None,
                 clock: Callable[[], int] = now_ms,
                 on_decision: Optional[Callable[[TimeoutDecision], Any]] = None,
                 error_logger=None):
        self.settings = settings or SecuritySettings()
        self.notifier = notifier
        self.redirect_to = redirect_to
        self.activity_sources: List = list(activity_sources)
        self.scheduler = scheduler or IntervalTimer()
        self.on_decision = on_decision
        self.error_logger = error_logger

        self.recorder = ActivityRecorder(
            storage, audit_sink, clock=clock,
            audit_interval_ms=int(self.settings.activity_audit_interval_seconds * 1000),
            error_logger=error_logger
        )
        self.evaluator = TimeoutEvaluator(
            self.recorder, self.settings.timeout_ms, self.settings.warning_ms, clock=clock
        )
        self.invalidator = SessionInvalidator(storage, identity_provider, audit_sink)

        self._lock = threading.RLock()
        self._running = False
        # Last-activity timestamp the current warning was shown for
        self._warned_for: Optional[int] = None

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self):
        """Attach activity listeners, record initial activity and start polling"""
        with self._lock:
            if self._running:
                return
            self._running = True
            self._warned_for = None

        try:
            for source in self.activity_sources:
                source.attach(self.handle_activity)
            self.recorder.record_activity(source="session_start")
            self.scheduler.start(self.settings.poll_interval_seconds, self.check_now)
        except Exception:
            self.stop()
            raise

    def stop(self):
        """Detach all listeners and cancel the timer; safe to call repeatedly"""
        with self._lock:
            if not self._running:
                return
            self._running = False

        try:
            for source in self.activity_sources:
                try:
                    source.detach()
                except Exception as e:
                    logger.warning("Failed to detach activity source %r: %s", source, e)
        finally:
            self.scheduler.stop()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False

    def handle_activity(self, event=None):
        """Listener for interaction events"""
        with self._lock:
            if not self._running:
                return
            self.recorder.record_activity()

    def extend_session(self):
        """Explicit 'extend session' action from the warning notice"""
        with self._lock:
            if not self._running:
                return
            self.recorder.record_activity(source="extend_session")
            self._warned_for = None
        self._notify('success', "Session extended.", duration_ms=3000)

    def check_now(self) -> Optional[TimeoutDecision]:
        """Run one timeout evaluation and act on it"""
        with self._lock:
            if not self._running:
                return None

            decision = self.evaluator.check()
            if decision is None:
                return None

            if decision.status is SessionStatus.EXPIRED:
                self._expire(decision)
            elif decision.status is SessionStatus.WARNING:
                self._warn(decision)
            else:
                self._warned_for = None

        if self.on_decision is not None:
            self.on_decision(decision)
        return decision

    def logout(self) -> Tuple[bool, str]:
        """Manual logout: invalidate, stop tracking and return to the login screen"""
        result = self.invalidator.invalidate(InvalidationReason.MANUAL_LOGOUT)
        self.stop()
        self._redirect(LOGIN_PATH)
        return result

    def _warn(self, decision: TimeoutDecision):
        if self._warned_for == decision.last_activity:
            return
        self._warned_for = decision.last_activity
        _log_security_event(
            self.error_logger, SecurityEvent.SESSION_WARNING,
            {'last_activity': decision.last_activity, 'remaining_minutes': decision.remaining_minutes}
        )

        minutes = decision.remaining_minutes
        self._notify(
            'warning',
            f"Your session will expire in {minutes} minute{'s' if minutes != 1 else ''} due to inactivity.",
            duration_ms=int(self.settings.warning_display_seconds * 1000),
            action=("Extend Session", self.extend_session),
        )

    def _expire(self, decision: TimeoutDecision):
        _log_security_event(
            self.error_logger, SecurityEvent.SESSION_EXPIRED,
            {'last_activity': decision.last_activity, 'elapsed_ms': decision.elapsed_ms},
            success=False
        )
        success, message = self.invalidator.invalidate(InvalidationReason.TIMEOUT_EXPIRED)
        if not success:
            logger.error("Session expired but sign-out failed: %s", message)
        self.stop()
        self._notify('error', EXPIRED_MESSAGE, duration_ms=None)
        self._redirect(LOGIN_PATH)

    def _notify(self, kind: str, message: str, duration_ms: Optional[int] = None, action=None):
        if self.notifier is None:
            return
        try:
            self.notifier.show(kind, message, duration_ms=duration_ms, action=action)
        except Exception as e:
            logger.warning("Failed to show %s notice: %s", kind, e)

    def _redirect(self, path: str):
        if self.redirect_to is None:
            return
        try:
            self.redirect_to(path)
        except Exception as e:
            logger.error("Failed to redirect to %s: %s", path, e)

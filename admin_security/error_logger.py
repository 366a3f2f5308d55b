"""
Error Logging and Monitoring System
Local rotating log files for security events, authentication events and application errors
"""

import json
import logging
import traceback
from datetime import datetime, timedelta
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Any, Optional, List

from app_paths import get_log_path


logger = logging.getLogger(__name__)


class SecurityEvent(Enum):
    """Types of security events to track"""
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILURE = "login_failed"
    LOGOUT = "logout"
    SESSION_WARNING = "session_warning"
    SESSION_EXPIRED = "session_expired"
    SIGN_OUT_FAILURE = "sign_out_failed"
    INVALID_INPUT = "invalid_input"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    STORAGE_FAILURE = "storage_failure"
    SESSION_CHECK = "session_check"
    PROFILE_FETCH_FAILED = "profile_fetch_failed"
    INACTIVE_USER_ACCESS = "inactive_user_access"
    UNAUTHORIZED_ACCESS = "unauthorized_access"


class ErrorLogger:
    """Writes security, auth and error logs with rotation and forwards events and errors remotely"""

    def __init__(self, log_dir: Optional[str] = None, max_log_size: int = 10 * 1024 * 1024,
                 audit_sink=None):
        self.log_dir = Path(log_dir) if log_dir else get_log_path()
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.max_log_size = max_log_size
        self.audit_sink = audit_sink

        self.security_log_file = self.log_dir / "security.log"
        self.error_log_file = self.log_dir / "errors.log"
        self.auth_log_file = self.log_dir / "auth.log"

        self.security_logger = self._make_logger('security', self.security_log_file, logging.INFO)
        self.error_logger = self._make_logger('errors', self.error_log_file, logging.ERROR)
        self.auth_logger = self._make_logger('auth', self.auth_log_file, logging.INFO)

        # Recent security events kept in memory for summaries
        self.security_events: List[Dict[str, Any]] = []

    def _make_logger(self, name: str, log_file: Path, level: int) -> logging.Logger:
        """Get a logger bound to log_file, attaching the rotating handler only once"""
        channel = logging.getLogger(f"admin_security.{name}.{log_file.parent}")
        channel.setLevel(level)
        channel.propagate = False
        if not channel.handlers:
            handler = RotatingFileHandler(log_file, maxBytes=self.max_log_size, backupCount=5)
            handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
            channel.addHandler(handler)
        return channel

    def log_security_event(self, event_type: SecurityEvent, details: Dict[str, Any],
                           user_id: Optional[str] = None, success: bool = True):
        """
        Log a security event locally and forward it to the audit sink

        Args:
            event_type: Type of security event
            details: Additional details about the event
            user_id: User ID if available
            success: Whether the audited action succeeded
        """
        event_data = {
            'timestamp': datetime.now().isoformat(),
            'event_type': event_type.value,
            'user_id': user_id,
            'success': success,
            'details': details
        }

        self.security_events.append(event_data)
        if len(self.security_events) > 1000:
            self.security_events = self.security_events[-1000:]

        self.security_logger.info(json.dumps(event_data, default=str))

        if self.audit_sink is not None:
            try:
                self.audit_sink.log_event(event_type.value, 'auth', {'user_id': user_id, **details}, success)
            except Exception as e:
                # Remote logging must never break local logging
                logger.warning("Failed to forward security event %s: %s", event_type.value, e)

    def log_error(self, error: Exception, context: str = "", user_id: Optional[str] = None):
        """Log an application error with its traceback"""
        error_data = {
            'timestamp': datetime.now().isoformat(),
            'error_type': type(error).__name__,
            'error_message': str(error),
            'context': context,
            'user_id': user_id,
            'traceback': traceback.format_exc()
        }

        self.error_logger.error(json.dumps(error_data))

        # Also forward to the remote error table for centralized monitoring
        forward = getattr(self.audit_sink, 'log_error', None)
        if forward is not None:
            try:
                forward(error, context, user_id, "ERROR")
            except Exception as e:
                logger.warning("Failed to forward error remotely: %s", e)

    def log_auth_event(self, event: str, details: Dict[str, Any], user_id: Optional[str] = None):
        """Log an authentication event"""
        auth_data = {
            'timestamp': datetime.now().isoformat(),
            'event': event,
            'user_id': user_id,
            'details': details
        }

        self.auth_logger.info(json.dumps(auth_data, default=str))

    def log_login_attempt(self, email: str, success: bool, error_message: str = "",
                          user_id: Optional[str] = None):
        """Log a login attempt"""
        event_type = SecurityEvent.LOGIN_SUCCESS if success else SecurityEvent.LOGIN_FAILURE
        details = {
            'email': email,
            'error_message': error_message
        }

        self.log_security_event(event_type, details, user_id, success)
        self.log_auth_event(f"Login {'success' if success else 'failure'}", details, user_id)

    def log_invalid_input(self, input_type: str, value: str, reason: str):
        """Log invalid input attempts"""
        details = {
            'input_type': input_type,
            'value': value[:100],  # Truncate for security
            'reason': reason
        }

        self.log_security_event(SecurityEvent.INVALID_INPUT, details, success=False)

    def get_security_summary(self, hours: int = 24) -> Dict[str, Any]:
        """Get security event counts for the last N hours"""
        cutoff_time = datetime.now() - timedelta(hours=hours)

        recent_events = [
            event for event in self.security_events
            if datetime.fromisoformat(event['timestamp']) > cutoff_time
        ]

        summary = {'total_events': len(recent_events)}
        for event_type in SecurityEvent:
            summary[event_type.value] = len(
                [e for e in recent_events if e['event_type'] == event_type.value]
            )
        return summary

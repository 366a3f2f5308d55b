"""
Session security module for the Healthcare Admin Console
Handles admin login, idle-session timeout, session invalidation and rate limiting
"""

__version__ = "1.0.0"
__author__ = "Healthcare Admin Console"

# Tk bindings live in admin_security.tk_integration and are imported by the shell

from .config_manager import ConfigManager, SecuritySettings
from .local_storage import LocalStorageManager
from .error_logger import ErrorLogger, SecurityEvent
from .input_validator import InputValidator
from .rate_limiter import RateLimiter, RateLimitRule, RateLimitRecord, RATE_LIMIT_CONFIGS
from .session_monitor import (
    ActivityRecorder,
    IntervalTimer,
    InvalidationReason,
    SessionActivityMonitor,
    SessionInvalidator,
    SessionStatus,
    TimeoutDecision,
    TimeoutEvaluator,
    evaluate_elapsed,
    LAST_ACTIVITY_KEY,
    LOGIN_PATH,
)
from .auth_manager import AuthManager, SupabaseIdentityProvider

__all__ = [
    # Configuration and storage
    'ConfigManager',
    'SecuritySettings',
    'LocalStorageManager',

    # Logging
    'ErrorLogger',
    'SecurityEvent',

    # Security components
    'InputValidator',
    'RateLimiter',
    'RateLimitRule',
    'RateLimitRecord',
    'RATE_LIMIT_CONFIGS',

    # Session monitoring
    'ActivityRecorder',
    'IntervalTimer',
    'InvalidationReason',
    'SessionActivityMonitor',
    'SessionInvalidator',
    'SessionStatus',
    'TimeoutDecision',
    'TimeoutEvaluator',
    'evaluate_elapsed',
    'LAST_ACTIVITY_KEY',
    'LOGIN_PATH',

    # Authentication
    'AuthManager',
    'SupabaseIdentityProvider',
]

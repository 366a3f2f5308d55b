"""
Authentication Manager for Supabase integration
Handles admin login and logout and wires the session activity monitor to the identity provider
"""

import logging
from typing import Any, Dict, Optional, Tuple

from supabase import create_client, Client

from .config_manager import ConfigManager, SecuritySettings
from .error_logger import ErrorLogger, SecurityEvent
from .input_validator import InputValidator
from .local_storage import LocalStorageManager
from .rate_limiter import RateLimiter
from .session_monitor import (
    ActivityRecorder,
    InvalidationReason,
    SessionActivityMonitor,
    SessionInvalidator,
    now_ms,
)


logger = logging.getLogger(__name__)

RATE_LIMITED_MESSAGE = "Too many login attempts. Please try again later."

PROFILE_TABLE = 'user_profiles'
ADMIN_ROLES = ('admin', 'super_admin')
SUPER_ADMIN_ROLE = 'super_admin'


class SupabaseIdentityProvider:
    """Identity provider backed by a Supabase client's auth API"""

    def __init__(self, client: Client):
        self.client = client

    def get_session(self) -> Optional[Any]:
        return self.client.auth.get_session()

    def sign_out(self, scope: str = 'local'):
        """
        Revoke the current session for scope, then drop the client-side session

        client.auth.sign_out() suppresses API errors, so the revoke goes
        through the admin endpoint, which raises AuthApiError when rejected.
        The client-side session is dropped either way.
        """
        session = self.client.auth.get_session()
        try:
            if session is not None:
                self.client.auth.admin.sign_out(session.access_token, scope)
        finally:
            try:
                self.client.auth.sign_out({'scope': 'local'})
            except Exception as e:
                logger.warning("Failed to clear client-side session: %s", e)

    def sign_in_with_password(self, email: str, password: str):
        return self.client.auth.sign_in_with_password({
            'email': email,
            'password': password
        })

    def get_user_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        response = self.client.table(PROFILE_TABLE).select('*').eq('id', user_id).single().execute()
        return response.data


class AuthManager:
    """Manages admin authentication with Supabase and local session state"""

    def __init__(self, identity_provider=None, storage=None, audit_sink=None,
                 settings: Optional[SecuritySettings] = None,
                 config_manager: Optional[ConfigManager] = None,
                 error_logger: Optional[ErrorLogger] = None,
                 clock=now_ms):
        self.config_manager = config_manager or ConfigManager()
        self.identity_provider = identity_provider or self._initialize_supabase()
        self.settings = settings or self.config_manager.get_security_settings()
        self.storage = storage if storage is not None else LocalStorageManager()
        self.audit_sink = audit_sink
        self.error_logger = error_logger or ErrorLogger(audit_sink=audit_sink)
        self.input_validator = InputValidator()
        self.clock = clock
        self.rate_limiter = RateLimiter(
            self.settings.login_max_attempts,
            self.settings.login_window_minutes * 60,
            clock=clock
        )
        self.invalidator = SessionInvalidator(self.storage, self.identity_provider, audit_sink)
        self.current_user: Optional[Any] = None
        self.current_profile: Optional[Dict[str, Any]] = None

    def _initialize_supabase(self) -> SupabaseIdentityProvider:
        """Initialize Supabase client"""
        try:
            url = self.config_manager.get_supabase_url()
            key = self.config_manager.get_supabase_anon_key()
            return SupabaseIdentityProvider(create_client(url, key))
        except Exception as e:
            raise Exception(f"Failed to initialize Supabase client: {e}")

    def login_user(self, email: str, password: str) -> Tuple[bool, str]:
        """
        Login user with email and password

        Args:
            email: User email address
            password: User password

        Returns:
            Tuple of (success, message)
        """
        sanitized_data = self.input_validator.sanitize_login_data({
            'email': email,
            'password': password
        })
        email = sanitized_data['email']
        password = sanitized_data['password']

        if not self.rate_limiter.consume(f"login_{email}"):
            self.error_logger.log_security_event(
                SecurityEvent.RATE_LIMIT_EXCEEDED,
                {'email': email, 'limit': self.rate_limiter.limit},
                success=False
            )
            return False, RATE_LIMITED_MESSAGE

        is_valid, errors = self.input_validator.validate_login_data(sanitized_data)
        if not is_valid:
            error_msg = "; ".join(errors)
            self.error_logger.log_invalid_input("login", email, error_msg)
            return False, error_msg

        # Drop stale auth state and any session left on other devices
        self.storage.clear_auth_state()
        try:
            self.identity_provider.sign_out(scope='global')
        except Exception as e:
            logger.debug("Pre-login global sign-out failed: %s", e)

        try:
            response = self.identity_provider.sign_in_with_password(email, password)
        except Exception as e:
            error_msg = str(e)
            self.error_logger.log_login_attempt(email, False, error_msg)
            self.error_logger.log_error(e, "Login attempt failed")

            if "invalid" in error_msg.lower():
                return False, "Invalid email or password."
            elif "email not confirmed" in error_msg.lower():
                return False, "Please verify your email address before logging in."
            return False, f"Login failed: {error_msg}"

        user = getattr(response, 'user', None)
        if user is None or getattr(response, 'session', None) is None:
            self.error_logger.log_login_attempt(email, False, "Invalid credentials")
            return False, "Login failed. Please check your credentials."

        user_id = getattr(user, 'id', None)
        authorized, message = self._authorize(user_id)
        if not authorized:
            self.error_logger.log_login_attempt(email, False, message, user_id)
            return False, message

        self.current_user = user
        self.rate_limiter.reset(f"login_{email}")
        self.error_logger.log_login_attempt(email, True, "", user_id)

        ActivityRecorder(self.storage, clock=self.clock).record_activity(source="login")
        return True, "Login successful!"

    def restore_session(self) -> bool:
        """
        Re-check a session left by an earlier run

        The session is only kept if its profile still passes the admin
        checks; otherwise it is signed out.

        Returns:
            bool: True if an authorized session is active
        """
        session = self._current_session()
        if session is None:
            return False

        user = getattr(session, 'user', None)
        authorized, _ = self._authorize(getattr(user, 'id', None))
        if authorized:
            self.current_user = user
        return authorized

    def _authorize(self, user_id: Optional[str]) -> Tuple[bool, str]:
        """Load the user's profile and require an active admin account"""
        self.current_profile = None
        try:
            profile = self.identity_provider.get_user_profile(user_id)
        except Exception as e:
            self.error_logger.log_security_event(
                SecurityEvent.PROFILE_FETCH_FAILED, {'error': str(e)}, user_id, success=False
            )
            self.error_logger.log_error(e, "Profile fetch failed", user_id)
            self._end_rejected_session()
            return False, "Could not load your admin profile. Please try again."

        if not profile:
            self.error_logger.log_security_event(
                SecurityEvent.PROFILE_FETCH_FAILED, {'error': "no profile"}, user_id, success=False
            )
            self._end_rejected_session()
            return False, "Could not load your admin profile. Please try again."

        if profile.get('is_active') is False:
            self.error_logger.log_security_event(
                SecurityEvent.INACTIVE_USER_ACCESS, {}, user_id, success=False
            )
            self._end_rejected_session()
            return False, "Account has been deactivated."

        if profile.get('role') not in ADMIN_ROLES:
            self.error_logger.log_security_event(
                SecurityEvent.UNAUTHORIZED_ACCESS, {'role': profile.get('role')}, user_id, success=False
            )
            self._end_rejected_session()
            return False, "This account does not have admin access."

        self.current_profile = profile
        return True, ""

    def _end_rejected_session(self):
        self.current_user = None
        self.storage.clear_auth_state()
        try:
            self.identity_provider.sign_out(scope='global')
        except Exception as e:
            logger.warning("Failed to sign out rejected session: %s", e)

    def is_admin(self) -> bool:
        return bool(self.current_profile) and self.current_profile.get('role') in ADMIN_ROLES

    def is_super_admin(self) -> bool:
        return bool(self.current_profile) and self.current_profile.get('role') == SUPER_ADMIN_ROLE

    def has_permission(self, permission: str) -> bool:
        """Super admins hold every permission; others need it set to true on their profile"""
        if not self.current_profile:
            return False
        if self.is_super_admin():
            return True
        permissions = self.current_profile.get('permissions') or {}
        return permissions.get(permission) is True

    def logout_user(self) -> Tuple[bool, str]:
        """
        Logout current user from every device

        Returns:
            Tuple of (success, message)
        """
        user_id = getattr(self.current_user, 'id', None)
        success, message = self.invalidator.invalidate(InvalidationReason.MANUAL_LOGOUT)
        self.current_user = None
        self.current_profile = None

        event = SecurityEvent.LOGOUT if success else SecurityEvent.SIGN_OUT_FAILURE
        self.error_logger.log_auth_event(event.value, {'message': message}, user_id)
        return success, message

    def is_authenticated(self) -> bool:
        """Check if the identity provider reports an active session"""
        return self._current_session() is not None

    def _current_session(self) -> Optional[Any]:
        try:
            session = self.identity_provider.get_session()
        except Exception as e:
            logger.warning("Could not query session: %s", e)
            return None

        if session is not None:
            user_id = getattr(getattr(session, 'user', None), 'id', None)
            self.error_logger.log_security_event(SecurityEvent.SESSION_CHECK, {}, user_id)
        return session

    def create_session_monitor(self, notifier=None, redirect_to=None, activity_sources=(),
                               scheduler=None, on_decision=None) -> SessionActivityMonitor:
        """Build a monitor sharing this manager's storage, provider, audit sink and error logger"""
        return SessionActivityMonitor(
            storage=self.storage,
            identity_provider=self.identity_provider,
            audit_sink=self.audit_sink,
            notifier=notifier,
            redirect_to=redirect_to,
            settings=self.settings,
            activity_sources=activity_sources,
            scheduler=scheduler,
            clock=self.clock,
            on_decision=on_decision,
            error_logger=self.error_logger,
        )

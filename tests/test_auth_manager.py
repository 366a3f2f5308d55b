import pytest

from admin_security import AuthManager, ErrorLogger, SecuritySettings
from admin_security.auth_manager import RATE_LIMITED_MESSAGE
from admin_security.session_monitor import LAST_ACTIVITY_KEY


PASSWORD = "Correct-Horse-1"
MINUTE = 60 * 1000


class UnconfirmedProvider:
    def get_session(self):
        return None

    def sign_out(self, scope='local'):
        pass

    def sign_in_with_password(self, email, password):
        raise Exception("Email not confirmed")


@pytest.fixture
def auth(tmp_path, provider, storage, audit_sink, clock):
    return AuthManager(
        identity_provider=provider,
        storage=storage,
        audit_sink=audit_sink,
        settings=SecuritySettings(),
        error_logger=ErrorLogger(log_dir=str(tmp_path), audit_sink=audit_sink),
        clock=clock,
    )


def test_successful_login_records_activity(auth, provider, storage, audit_sink, clock):
    storage.set('supabase.auth.token', 'stale')

    success, message = auth.login_user(' Admin@Example.com ', PASSWORD)

    assert (success, message) == (True, "Login successful!")
    assert provider.sign_in_calls == ['admin@example.com']
    assert provider.sign_out_calls == ['global']
    assert 'supabase.auth.token' not in storage.data
    assert storage.get(LAST_ACTIVITY_KEY) == str(clock())
    assert auth.current_user.id == "user-1"
    assert 'login_success' in audit_sink.actions()


def test_wrong_password_message(auth, audit_sink):
    success, message = auth.login_user('admin@example.com', 'wrong')

    assert success is False
    assert message == "Invalid email or password."
    assert 'login_failed' in audit_sink.actions()


def test_unconfirmed_email_message(tmp_path, storage, clock):
    auth = AuthManager(
        identity_provider=UnconfirmedProvider(),
        storage=storage,
        settings=SecuritySettings(),
        error_logger=ErrorLogger(log_dir=str(tmp_path)),
        clock=clock,
    )

    assert auth.login_user('admin@example.com', PASSWORD) == (
        False, "Please verify your email address before logging in.")


def test_invalid_email_never_reaches_provider(auth, provider, audit_sink):
    success, message = auth.login_user('not-an-email', PASSWORD)

    assert success is False
    assert "Invalid email format" in message
    assert provider.sign_in_calls == []
    assert 'invalid_input' in audit_sink.actions()


def test_login_rate_limited_after_max_attempts(auth, provider, audit_sink, clock):
    for _ in range(5):
        assert auth.login_user('admin@example.com', 'wrong')[0] is False

    assert auth.login_user('admin@example.com', PASSWORD) == (False, RATE_LIMITED_MESSAGE)
    assert len(provider.sign_in_calls) == 5
    assert 'rate_limit_exceeded' in audit_sink.actions()

    clock.advance(15 * MINUTE)
    assert auth.login_user('admin@example.com', PASSWORD)[0] is True


def test_rate_limit_is_per_email(auth):
    for _ in range(5):
        auth.login_user('admin@example.com', 'wrong')

    assert auth.login_user('other@example.com', PASSWORD)[0] is True


def test_successful_login_resets_attempts(auth, provider):
    for _ in range(4):
        auth.login_user('admin@example.com', 'wrong')
    assert auth.login_user('admin@example.com', PASSWORD)[0] is True

    for _ in range(5):
        auth.login_user('admin@example.com', 'wrong')

    assert len(provider.sign_in_calls) == 10


def test_logout_signs_out_globally(auth, provider, storage, audit_sink):
    auth.login_user('admin@example.com', PASSWORD)

    assert auth.logout_user() == (True, "Signed out from all sessions")
    assert provider.sign_out_calls[-1] == 'global'
    assert storage.get(LAST_ACTIVITY_KEY) is None
    assert auth.current_user is None
    assert audit_sink.events[-1][0] == 'logout'
    assert auth.is_authenticated() is False


def test_logout_reports_provider_failure(auth, provider):
    auth.login_user('admin@example.com', PASSWORD)
    provider.fail_sign_out = True

    success, message = auth.logout_user()

    assert success is False
    assert message.startswith("Sign-out failed")


def test_created_monitor_shares_state(auth, storage, scheduler, notifier, redirects, clock):
    monitor = auth.create_session_monitor(
        notifier=notifier, redirect_to=redirects.append, scheduler=scheduler)

    monitor.start()
    clock.advance(31 * MINUTE)
    scheduler.fire()

    assert redirects == ['/login']
    assert storage.get(LAST_ACTIVITY_KEY) is None
    assert not scheduler.is_running


def test_email_reaches_provider_unescaped(auth, provider):
    assert auth.login_user("O'Brien@Example.com", PASSWORD)[0] is True
    assert provider.sign_in_calls == ["o'brien@example.com"]


# Admin profile checks

def test_deactivated_account_is_signed_out(auth, provider, storage, audit_sink):
    provider.profile['is_active'] = False

    assert auth.login_user('admin@example.com', PASSWORD) == (False, "Account has been deactivated.")
    assert provider.sign_out_calls == ['global', 'global']
    assert provider.session is None
    assert auth.current_user is None
    assert storage.get(LAST_ACTIVITY_KEY) is None
    assert 'inactive_user_access' in audit_sink.actions()


def test_non_admin_role_is_rejected(auth, provider, audit_sink):
    provider.profile['role'] = 'customer'

    assert auth.login_user('admin@example.com', PASSWORD) == (
        False, "This account does not have admin access.")
    assert provider.session is None
    assert 'unauthorized_access' in audit_sink.actions()
    assert not auth.is_admin()


def test_profile_fetch_failure_rejects_login(auth, provider, audit_sink):
    provider.fail_profile = True

    success, message = auth.login_user('admin@example.com', PASSWORD)

    assert success is False
    assert "admin profile" in message
    assert provider.session is None
    assert 'profile_fetch_failed' in audit_sink.actions()


def test_rejected_profile_counts_against_rate_limit(auth, provider):
    provider.profile['is_active'] = False
    for _ in range(5):
        auth.login_user('admin@example.com', PASSWORD)

    provider.profile['is_active'] = True

    assert auth.login_user('admin@example.com', PASSWORD) == (False, RATE_LIMITED_MESSAGE)


def test_permissions_follow_profile(auth, provider):
    assert auth.has_permission('manage_inventory') is False

    provider.profile['permissions'] = {'manage_inventory': True, 'export_reports': False}
    auth.login_user('admin@example.com', PASSWORD)

    assert auth.is_admin()
    assert not auth.is_super_admin()
    assert auth.has_permission('manage_inventory') is True
    assert auth.has_permission('export_reports') is False
    assert auth.has_permission('manage_users') is False

    auth.logout_user()
    assert auth.has_permission('manage_inventory') is False


def test_super_admin_holds_every_permission(auth, provider):
    provider.profile['role'] = 'super_admin'
    auth.login_user('admin@example.com', PASSWORD)

    assert auth.is_super_admin()
    assert auth.has_permission('anything') is True


# Restoring a session left by an earlier run

def test_restore_session_checks_profile(auth, provider, audit_sink):
    assert auth.restore_session() is True
    assert auth.current_user.id == "user-1"
    assert auth.is_admin()
    assert 'session_check' in audit_sink.actions()


def test_restore_session_ends_deactivated_session(auth, provider):
    provider.profile['is_active'] = False

    assert auth.restore_session() is False
    assert provider.sign_out_calls == ['global']
    assert auth.current_user is None


def test_restore_without_session(tmp_path, storage, clock):
    auth = AuthManager(
        identity_provider=UnconfirmedProvider(),
        storage=storage,
        settings=SecuritySettings(),
        error_logger=ErrorLogger(log_dir=str(tmp_path)),
        clock=clock,
    )

    assert auth.restore_session() is False


def test_monitor_events_reach_security_log(auth, scheduler, notifier, redirects, clock):
    monitor = auth.create_session_monitor(
        notifier=notifier, redirect_to=redirects.append, scheduler=scheduler)

    monitor.start()
    clock.advance(26 * MINUTE)
    scheduler.fire()
    clock.advance(5 * MINUTE)
    scheduler.fire()

    logged = [event['event_type'] for event in auth.error_logger.security_events]
    assert 'session_warning' in logged
    assert logged[-1] == 'session_expired'

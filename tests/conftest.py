from types import SimpleNamespace

import pytest

from admin_security import SecuritySettings, SessionActivityMonitor


T0 = 1_700_000_000_000
MINUTE = 60 * 1000


class ManualClock:
    def __init__(self, start=T0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class ManualScheduler:
    def __init__(self):
        self.callback = None
        self.interval = None
        self.start_calls = 0

    @property
    def is_running(self):
        return self.callback is not None

    def start(self, interval_seconds, callback):
        self.start_calls += 1
        self.interval = interval_seconds
        self.callback = callback

    def stop(self):
        self.callback = None

    def fire(self):
        if self.callback is not None:
            return self.callback()
        return None


class MemoryStorage:
    def __init__(self):
        self.data = {}
        self.fail_writes = False
        self.writes = 0

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        if self.fail_writes:
            raise OSError("disk full")
        self.writes += 1
        self.data[key] = value
        return True

    def remove(self, key):
        self.data.pop(key, None)
        return True

    def keys(self):
        return list(self.data)

    def clear_auth_state(self):
        stale = [k for k in self.data if k.startswith('supabase.auth.') or 'sb-' in k]
        for key in stale:
            del self.data[key]
        return len(stale)


class RecordingAuditSink:
    def __init__(self):
        self.events = []

    def log_event(self, action, resource, details=None, success=True):
        self.events.append((action, resource, details, success))
        return True

    def actions(self):
        return [event[0] for event in self.events]


class RecordingNotifier:
    def __init__(self):
        self.notices = []

    def show(self, kind, message, duration_ms=None, action=None):
        self.notices.append(SimpleNamespace(kind=kind, message=message, duration_ms=duration_ms, action=action))

    def kinds(self):
        return [notice.kind for notice in self.notices]


class FakeIdentityProvider:
    def __init__(self, session=True, password="Correct-Horse-1"):
        self.session = SimpleNamespace(access_token="token-1", user=SimpleNamespace(id="user-1")) if session else None
        self.profile = {'id': "user-1", 'role': 'admin', 'is_active': True, 'permissions': {}}
        self.fail_profile = False
        self.password = password
        self.sign_out_calls = []
        self.sign_in_calls = []
        self.fail_sign_out = False

    def get_session(self):
        return self.session

    def sign_out(self, scope='local'):
        self.sign_out_calls.append(scope)
        if self.fail_sign_out:
            raise RuntimeError("network unreachable")
        self.session = None

    def sign_in_with_password(self, email, password):
        self.sign_in_calls.append(email)
        if password != self.password:
            raise Exception("Invalid login credentials")
        self.session = SimpleNamespace(access_token="token-2", user=SimpleNamespace(id="user-1"))
        return SimpleNamespace(user=SimpleNamespace(id="user-1", email=email), session=self.session)

    def get_user_profile(self, user_id):
        if self.fail_profile:
            raise RuntimeError("relation user_profiles unavailable")
        return self.profile


class FakeActivitySource:
    def __init__(self):
        self.callback = None
        self.detach_calls = 0

    def attach(self, callback):
        self.callback = callback

    def detach(self):
        self.detach_calls += 1
        self.callback = None

    def emit(self, event=None):
        if self.callback is not None:
            self.callback(event)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def audit_sink():
    return RecordingAuditSink()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def provider():
    return FakeIdentityProvider()


@pytest.fixture
def activity_source():
    return FakeActivitySource()


@pytest.fixture
def redirects():
    return []


@pytest.fixture
def monitor(storage, provider, audit_sink, notifier, redirects, activity_source, scheduler, clock):
    return SessionActivityMonitor(
        storage=storage,
        identity_provider=provider,
        audit_sink=audit_sink,
        notifier=notifier,
        redirect_to=redirects.append,
        settings=SecuritySettings(),
        activity_sources=[activity_source],
        scheduler=scheduler,
        clock=clock,
    )

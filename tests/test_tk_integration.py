import pytest

pytest.importorskip("tkinter")

from admin_security.tk_integration import ACTIVITY_SEQUENCES, ACTIVITY_TAG, TkActivitySource, TkScheduler


class FakeWidget:
    def __init__(self, name, children=()):
        self._tags = (name, 'Frame', '.', 'all')
        self.children = list(children)

    def bindtags(self, tags=None):
        if tags is None:
            return self._tags
        self._tags = tuple(tags)

    def winfo_children(self):
        return list(self.children)


class FakeRoot(FakeWidget):
    def __init__(self, children=()):
        super().__init__('.', children)
        self.pending = {}
        self.class_bindings = {}
        self._next_id = 0

    def after(self, ms, func):
        self._next_id += 1
        after_id = f"after#{self._next_id}"
        self.pending[after_id] = (ms, func)
        return after_id

    def after_cancel(self, after_id):
        self.pending.pop(after_id, None)

    def run_pending(self):
        for after_id, (_, func) in list(self.pending.items()):
            del self.pending[after_id]
            func()

    def bind_class(self, tag, sequence, func, add=None):
        self.class_bindings.setdefault((tag, sequence), []).append(func)

    def unbind_class(self, tag, sequence):
        self.class_bindings.pop((tag, sequence), None)


def test_activity_tag_goes_first_on_every_widget():
    button = FakeWidget('.frame.button')
    root = FakeRoot([FakeWidget('.frame', [button])])
    source = TkActivitySource(root)

    source.attach(lambda event: None)

    assert button.bindtags()[0] == ACTIVITY_TAG
    assert root.bindtags()[0] == ACTIVITY_TAG
    assert {seq for _, seq in root.class_bindings} == set(ACTIVITY_SEQUENCES)


def test_widgets_created_later_are_tagged_on_rescan():
    root = FakeRoot()
    source = TkActivitySource(root)
    source.attach(lambda event: None)

    late = FakeWidget('.late')
    root.children.append(late)
    root.run_pending()

    assert late.bindtags()[0] == ACTIVITY_TAG


def test_detach_untags_and_cancels_rescan():
    child = FakeWidget('.child')
    root = FakeRoot([child])
    source = TkActivitySource(root)
    source.attach(lambda event: None)

    source.detach()
    source.detach()

    assert ACTIVITY_TAG not in child.bindtags()
    assert root.pending == {}
    assert root.class_bindings == {}


def test_scheduler_repeats_until_stopped():
    root = FakeRoot()
    scheduler = TkScheduler(root)
    calls = []

    scheduler.start(60, lambda: calls.append(1))
    assert [ms for ms, _ in root.pending.values()] == [60000]

    root.run_pending()
    root.run_pending()
    assert calls == [1, 1]
    assert scheduler.is_running

    scheduler.stop()
    assert root.pending == {}
    assert not scheduler.is_running


def test_scheduler_survives_callback_error():
    root = FakeRoot()
    scheduler = TkScheduler(root)

    def boom():
        raise RuntimeError("boom")

    scheduler.start(1, boom)
    root.run_pending()

    assert scheduler.is_running

"""
tkinter bindings for the session activity monitor
Activity capture, UI-thread scheduling and toast notices for the desktop shell
"""

import logging
import tkinter as tk
from typing import Callable, Optional, Tuple, Any


logger = logging.getLogger(__name__)

ACTIVITY_TAG = "SessionActivity"

# pointer-down, pointer-move, key-press, scroll, click
ACTIVITY_SEQUENCES = (
    '<ButtonPress>',
    '<Motion>',
    '<KeyPress>',
    '<MouseWheel>',
    '<Button-4>',
    '<Button-5>',
    '<ButtonRelease>',
)


class TkScheduler:
    """Repeating timer driven by the Tk event loop"""

    def __init__(self, root: tk.Misc):
        self.root = root
        self._after_id: Optional[str] = None
        self._callback: Optional[Callable[[], Any]] = None
        self._interval_ms = 0

    @property
    def is_running(self) -> bool:
        return self._after_id is not None

    def start(self, interval_seconds: float, callback: Callable[[], Any]):
        if self.is_running:
            return
        self._callback = callback
        self._interval_ms = max(1, int(interval_seconds * 1000))
        self._after_id = self.root.after(self._interval_ms, self._fire)

    def _fire(self):
        self._after_id = self.root.after(self._interval_ms, self._fire)
        try:
            self._callback()
        except Exception as e:
            logger.error("Error in session timer callback: %s", e)

    def stop(self):
        if self._after_id is not None:
            try:
                self.root.after_cancel(self._after_id)
            except tk.TclError:
                pass  # Root already destroyed
        self._after_id = None
        self._callback = None


class TkActivitySource:
    """
    Records interaction events before any widget handler sees them

    Tk has no capture phase, so a dedicated bind tag is put at the front of
    every widget's bindtags. A handler returning "break" further down the
    chain cannot suppress it. Widgets created after attach() are tagged by a
    periodic re-scan.
    """

    def __init__(self, root: tk.Misc, sequences=ACTIVITY_SEQUENCES, rescan_ms: int = 2000):
        self.root = root
        self.sequences = tuple(sequences)
        self.rescan_ms = rescan_ms
        self._rescan_id: Optional[str] = None
        self._attached = False

    def attach(self, callback: Callable[[Any], Any]):
        if self._attached:
            return
        for sequence in self.sequences:
            try:
                self.root.bind_class(ACTIVITY_TAG, sequence, callback, add='+')
            except tk.TclError:
                logger.debug("Event %s not supported on this platform", sequence)
        self._attached = True
        self._tag_tree()

    def detach(self):
        if not self._attached:
            return
        self._attached = False
        if self._rescan_id is not None:
            try:
                self.root.after_cancel(self._rescan_id)
            except tk.TclError:
                pass
            self._rescan_id = None

        for sequence in self.sequences:
            try:
                self.root.unbind_class(ACTIVITY_TAG, sequence)
            except tk.TclError:
                pass
        self._untag(self.root)

    def _tag_tree(self):
        if not self._attached:
            return
        self._tag(self.root)
        self._rescan_id = self.root.after(self.rescan_ms, self._tag_tree)

    def _tag(self, widget: tk.Misc):
        try:
            tags = widget.bindtags()
            if ACTIVITY_TAG not in tags:
                widget.bindtags((ACTIVITY_TAG,) + tags)
            children = widget.winfo_children()
        except tk.TclError:
            return  # Widget destroyed mid-scan
        for child in children:
            self._tag(child)

    def _untag(self, widget: tk.Misc):
        try:
            tags = widget.bindtags()
            if ACTIVITY_TAG in tags:
                widget.bindtags(tuple(tag for tag in tags if tag != ACTIVITY_TAG))
            children = widget.winfo_children()
        except tk.TclError:
            return
        for child in children:
            self._untag(child)


class TkToastNotifier:
    """Toast notices placed over the main window"""

    BG_COLORS = {
        "info": "#E3F2FD",
        "success": "#E8F5E8",
        "warning": "#FFF3E0",
        "error": "#FFEBEE"
    }
    FG_COLORS = {
        "info": "#1976D2",
        "success": "#388E3C",
        "warning": "#F57C00",
        "error": "#D32F2F"
    }

    def __init__(self, parent_widget: tk.Misc):
        self.parent = parent_widget
        self.overlay: Optional[tk.Frame] = None
        self._hide_id: Optional[str] = None

    def show(self, kind: str, message: str, duration_ms: Optional[int] = None,
             action: Optional[Tuple[str, Callable[[], Any]]] = None):
        """
        Show a toast

        Args:
            kind: info, success, warning or error
            message: Message to display
            duration_ms: Auto-hide delay; None keeps the toast until replaced
            action: Optional (label, callback) rendered as a button
        """
        self.hide()

        bg = self.BG_COLORS.get(kind, self.BG_COLORS["info"])
        fg = self.FG_COLORS.get(kind, self.FG_COLORS["info"])

        self.overlay = tk.Frame(self.parent, bg=bg, relief="solid", borderwidth=1)
        self.overlay.place(relx=0.5, rely=0.1, anchor="center")

        tk.Label(
            self.overlay,
            text=message,
            font=("Arial", 10, "bold"),
            fg=fg,
            bg=bg,
            wraplength=320
        ).pack(padx=20, pady=(10, 4 if action else 10))

        if action is not None:
            label, callback = action

            def run_action():
                self.hide()
                callback()

            tk.Button(self.overlay, text=label, command=run_action).pack(pady=(0, 10))

        if duration_ms:
            self._hide_id = self.parent.after(duration_ms, self.hide)

    def hide(self):
        if self._hide_id is not None:
            try:
                self.parent.after_cancel(self._hide_id)
            except tk.TclError:
                pass
            self._hide_id = None
        if self.overlay is not None:
            try:
                self.overlay.destroy()
            except tk.TclError:
                pass
            self.overlay = None

#!/usr/bin/env python3
"""
Healthcare Admin Console
Desktop shell: login screen, dashboard placeholder and idle-session enforcement
"""

import logging
import sys
import tkinter as tk
from tkinter import ttk, messagebox
from typing import Optional

from admin_security import AuthManager, SessionActivityMonitor, LOGIN_PATH
from admin_security.tk_integration import TkActivitySource, TkScheduler, TkToastNotifier
from app_paths import get_log_path
from remote_logger import get_remote_logger


DASHBOARD_PATH = '/dashboard'


class AdminConsoleApp:
    """Main application window; owns one session monitor per signed-in session"""

    def __init__(self, root: tk.Tk, auth_manager: AuthManager):
        self.root = root
        self.auth_manager = auth_manager
        self.notifier = TkToastNotifier(root)
        self.monitor: Optional[SessionActivityMonitor] = None

        self.root.title("Healthcare Admin Console")
        self.root.geometry("900x600")
        self.root.protocol("WM_DELETE_WINDOW", self.on_close)

        self.container = ttk.Frame(self.root, padding="20")
        self.container.pack(fill="both", expand=True)

        self.email_var = tk.StringVar()
        self.password_var = tk.StringVar()
        self.error_var = tk.StringVar()

        self.navigate(DASHBOARD_PATH if auth_manager.restore_session() else LOGIN_PATH)

    def navigate(self, path: str):
        """Switch screens; also the redirect target for the session monitor"""
        for child in self.container.winfo_children():
            child.destroy()

        if path == DASHBOARD_PATH:
            self._build_dashboard()
            self._start_monitor()
        else:
            self._stop_monitor()
            self._build_login()

    def _build_login(self):
        frame = ttk.Frame(self.container)
        frame.place(relx=0.5, rely=0.4, anchor="center")

        ttk.Label(frame, text="Admin Sign In", font=("Arial", 16, "bold")).grid(row=0, column=0, columnspan=2, pady=(0, 15))
        ttk.Label(frame, text="Email").grid(row=1, column=0, sticky="w")
        email_entry = ttk.Entry(frame, textvariable=self.email_var, width=32)
        email_entry.grid(row=1, column=1, pady=4)
        ttk.Label(frame, text="Password").grid(row=2, column=0, sticky="w")
        ttk.Entry(frame, textvariable=self.password_var, show="*", width=32).grid(row=2, column=1, pady=4)
        ttk.Label(frame, textvariable=self.error_var, foreground="#D32F2F", wraplength=300).grid(row=3, column=0, columnspan=2)
        ttk.Button(frame, text="Sign In", command=self.login).grid(row=4, column=0, columnspan=2, pady=(10, 0))

        self.root.bind('<Return>', lambda e: self.login())
        email_entry.focus_set()

    def _build_dashboard(self):
        self.root.unbind('<Return>')
        header = ttk.Frame(self.container)
        header.pack(fill="x")
        ttk.Label(header, text="Dashboard", font=("Arial", 16, "bold")).pack(side="left")
        ttk.Button(header, text="Log Out", command=self.logout).pack(side="right")

        ttk.Label(
            self.container,
            text="Medicines, orders, patients, doctors and inventory modules load here.",
        ).pack(pady=40)

    def login(self):
        # Inline message at the point of the denied action
        success, message = self.auth_manager.login_user(self.email_var.get(), self.password_var.get())
        self.password_var.set("")
        if success:
            self.error_var.set("")
            self.navigate(DASHBOARD_PATH)
            self.notifier.show('success', message, duration_ms=2000)
        else:
            self.error_var.set(message)

    def logout(self):
        if self.monitor is not None:
            success, message = self.monitor.logout()
            self.monitor = None
        else:
            success, message = self.auth_manager.logout_user()
            self.navigate(LOGIN_PATH)

        if not success:
            messagebox.showwarning("Logout", f"You were signed out locally, but: {message}")

    def _start_monitor(self):
        if self.monitor is not None:
            return
        self.monitor = self.auth_manager.create_session_monitor(
            notifier=self.notifier,
            redirect_to=self.navigate,
            activity_sources=[TkActivitySource(self.root)],
            scheduler=TkScheduler(self.root),
        )
        self.monitor.start()

    def _stop_monitor(self):
        if self.monitor is not None:
            self.monitor.stop()
            self.monitor = None

    def on_close(self):
        self._stop_monitor()
        self.root.destroy()


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(get_log_path("console.log")),
        ]
    )

    try:
        auth_manager = AuthManager(audit_sink=get_remote_logger())
    except Exception as e:
        logging.getLogger(__name__).error("Startup failed: %s", e)
        print(f"Could not start the admin console: {e}")
        return 1

    root = tk.Tk()
    AdminConsoleApp(root, auth_manager)
    root.mainloop()
    return 0


if __name__ == "__main__":
    sys.exit(main())

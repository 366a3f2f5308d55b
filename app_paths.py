"""
Application Path Manager
Provides per-user writable locations for the admin console's cache, logs and config
"""

import os
import sys
from pathlib import Path


APP_NAME = "HealthcareAdminConsole"


def _ensure(base_path: Path, relative_path: str) -> Path:
    base_path.mkdir(parents=True, exist_ok=True)

    if relative_path:
        full_path = base_path / relative_path
        # Create parent directories if needed
        full_path.parent.mkdir(parents=True, exist_ok=True)
        return full_path
    return base_path


def get_resource_path(relative_path: str = "") -> Path:
    """
    Get the absolute path to a bundled resource file (read-only).

    Args:
        relative_path: Path relative to the resource directory

    Returns:
        Absolute path to the resource
    """
    if getattr(sys, '_MEIPASS', None):
        # Running in PyInstaller bundle
        base_path = Path(sys._MEIPASS)
    else:
        # Running in development
        base_path = Path(__file__).parent

    if relative_path:
        return base_path / relative_path
    return base_path


def get_cache_path(relative_path: str = "") -> Path:
    """
    Get a writable path in the user's Cache directory.
    Use this for local session state, cached tokens, etc.

    Args:
        relative_path: Path relative to the cache directory

    Returns:
        Absolute path in Caches
    """
    if sys.platform == 'darwin':
        # macOS: ~/Library/Caches/HealthcareAdminConsole/
        base_path = Path.home() / "Library" / "Caches" / APP_NAME
    elif sys.platform == 'win32':
        # Windows: %LOCALAPPDATA%\HealthcareAdminConsole\Cache\
        base_path = Path(os.getenv('LOCALAPPDATA', Path.home())) / APP_NAME / "Cache"
    else:
        # Linux: ~/.cache/HealthcareAdminConsole/
        base_path = Path.home() / ".cache" / APP_NAME

    return _ensure(base_path, relative_path)


def get_log_path(relative_path: str = "") -> Path:
    """
    Get a writable path in the user's Logs directory.

    Args:
        relative_path: Path relative to the logs directory

    Returns:
        Absolute path in Logs
    """
    if sys.platform == 'darwin':
        base_path = Path.home() / "Library" / "Logs" / APP_NAME
    elif sys.platform == 'win32':
        base_path = Path(os.getenv('LOCALAPPDATA', Path.home())) / APP_NAME / "Logs"
    else:
        base_path = Path.home() / ".local" / "share" / APP_NAME / "logs"

    return _ensure(base_path, relative_path)


def get_config_dir() -> Path:
    """Get the directory for config files (read-only from bundle)"""
    return get_resource_path("config")


# Print diagnostic information if run directly
if __name__ == "__main__":
    print("Application Path Configuration")
    print("=" * 60)
    print(f"Resource Path (read-only): {get_resource_path()}")
    print(f"Cache Path: {get_cache_path()}")
    print(f"Log Path: {get_log_path()}")
    print(f"Config Directory: {get_config_dir()}")

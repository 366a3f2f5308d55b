"""
Configuration manager for the admin console security core
Handles loading Supabase configuration and session security settings
"""

import json
from dataclasses import dataclass, asdict, fields
from typing import Dict, Any, Optional
from pathlib import Path

from app_paths import get_config_dir


@dataclass
class SecuritySettings:
    """Session timeout, polling and login throttling settings"""
    session_timeout_minutes: float = 30
    session_warning_minutes: float = 5
    poll_interval_seconds: float = 60
    warning_display_seconds: float = 10
    activity_audit_interval_seconds: float = 60
    login_max_attempts: int = 5
    login_window_minutes: float = 15

    def __post_init__(self):
        positive = [
            'session_timeout_minutes',
            'session_warning_minutes',
            'poll_interval_seconds',
            'warning_display_seconds',
            'login_max_attempts',
            'login_window_minutes',
        ]
        for name in positive:
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be greater than zero")

        if self.activity_audit_interval_seconds < 0:
            raise ValueError("activity_audit_interval_seconds must not be negative")

        if self.session_warning_minutes >= self.session_timeout_minutes:
            raise ValueError("session_warning_minutes must be shorter than session_timeout_minutes")

    @property
    def timeout_ms(self) -> int:
        return int(self.session_timeout_minutes * 60 * 1000)

    @property
    def warning_ms(self) -> int:
        return int(self.session_warning_minutes * 60 * 1000)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SecuritySettings":
        """Build settings from a config section, ignoring unknown keys"""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in (data or {}).items() if key in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ConfigManager:
    """Manages security configuration from the JSON config file"""

    def __init__(self, config_dir: Optional[str] = None):
        self.config_dir = Path(config_dir) if config_dir else get_config_dir()
        self.supabase_config_file = self.config_dir / "supabase_config.json"
        self._config_cache: Optional[Dict[str, Any]] = None

    def load_supabase_config(self) -> Dict[str, Any]:
        """Load Supabase configuration from JSON file"""
        if self._config_cache is not None:
            return self._config_cache

        try:
            if not self.supabase_config_file.exists():
                raise FileNotFoundError(f"Supabase config file not found: {self.supabase_config_file}")

            with open(self.supabase_config_file, 'r') as f:
                config = json.load(f)

            # Validate required fields
            required_fields = ['supabase_url', 'supabase_anon_key']
            for field in required_fields:
                if field not in config or not config[field]:
                    raise ValueError(f"Missing or empty required field: {field}")

            # Check for placeholder values
            if "YOUR_SUPABASE_URL_HERE" in config['supabase_url']:
                raise ValueError("Please update supabase_url in config file with your actual Supabase URL")
            if "YOUR_SUPABASE_ANON_KEY_HERE" in config['supabase_anon_key']:
                raise ValueError("Please update supabase_anon_key in config file with your actual Supabase anon key")

            self._config_cache = config
            return config

        except (FileNotFoundError, json.JSONDecodeError, ValueError) as e:
            raise Exception(f"Failed to load Supabase configuration: {e}")

    def get_supabase_url(self) -> str:
        """Get Supabase URL from configuration"""
        config = self.load_supabase_config()
        return config['supabase_url']

    def get_supabase_anon_key(self) -> str:
        """Get Supabase anon key from configuration"""
        config = self.load_supabase_config()
        return config['supabase_anon_key']

    def get_security_settings(self) -> SecuritySettings:
        """Get session security settings, falling back to defaults"""
        config = self.load_supabase_config()
        return SecuritySettings.from_dict(config.get('security_settings'))

    def create_example_config(self) -> None:
        """Create an example configuration file"""
        example_config = {
            "supabase_url": "YOUR_SUPABASE_URL_HERE",
            "supabase_anon_key": "YOUR_SUPABASE_ANON_KEY_HERE",
            "security_settings": SecuritySettings().to_dict()
        }

        self.config_dir.mkdir(parents=True, exist_ok=True)

        with open(self.supabase_config_file, 'w') as f:
            json.dump(example_config, f, indent=2)

        print(f"Created example configuration file: {self.supabase_config_file}")
        print("Please edit this file with your actual Supabase credentials.")

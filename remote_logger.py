#!/usr/bin/env python3
"""
Remote Logging System
Sends security audit events and critical errors to the Supabase project for centralized monitoring
"""

import json
import logging
import platform
import socket
import traceback
from datetime import datetime
from typing import Dict, Any, Optional

from supabase import create_client, Client


logger = logging.getLogger(__name__)

AUDIT_RPC = 'log_security_event'
ERROR_TABLE = 'error_logs'


class RemoteLogger:
    """Remote audit sink; every write is best-effort and reports success as a bool"""

    def __init__(self, client: Optional[Client] = None, enabled: bool = True,
                 config_manager=None):
        self.enabled = enabled
        self.supabase: Optional[Client] = client

        if self.enabled and self.supabase is None:
            try:
                if config_manager is None:
                    from admin_security.config_manager import ConfigManager
                    config_manager = ConfigManager()
                self.supabase = create_client(
                    config_manager.get_supabase_url(),
                    config_manager.get_supabase_anon_key()
                )
            except Exception as e:
                logger.warning("Remote logging disabled, could not create Supabase client: %s", e)
                self.enabled = False

        self.system_info = self._get_system_info()

    def _get_system_info(self) -> Dict[str, Any]:
        """Get system information for logging context"""
        try:
            return {
                'hostname': socket.gethostname(),
                'platform': platform.platform(),
                'python_version': platform.python_version(),
            }
        except Exception:
            return {'error': 'Could not get system info'}

    def log_event(self, action: str, resource: str, details: Optional[Dict[str, Any]] = None,
                  success: bool = True) -> bool:
        """
        Record a security audit event through the log_security_event RPC

        Args:
            action: What happened (e.g. 'logout', 'session_activity')
            resource: Area the action applies to (e.g. 'auth')
            details: JSON-serialisable context
            success: Whether the action succeeded

        Returns:
            bool: True if logged successfully, False otherwise
        """
        if not self.enabled or not self.supabase:
            return False

        try:
            self.supabase.rpc(AUDIT_RPC, {
                'p_action': action,
                'p_resource': resource,
                'p_details': details or {},
                'p_success': success,
            }).execute()
            return True

        except Exception as e:
            logger.warning("Failed to log security event %s remotely: %s", action, e)
            return False

    def log_error(self, error: Exception, context: str = "",
                  user_id: Optional[str] = None, severity: str = "ERROR") -> bool:
        """
        Log an error to the remote error table

        Args:
            error: The exception that occurred
            context: Additional context about where the error occurred
            user_id: User ID if available, None for pre-login errors
            severity: Error severity level

        Returns:
            bool: True if logged successfully, False otherwise
        """
        if not self.enabled or not self.supabase:
            return False

        try:
            error_data = {
                'timestamp': datetime.now().isoformat(),
                'error_type': type(error).__name__,
                'error_message': str(error),
                'traceback': traceback.format_exc(),
                'context': context,
                'user_id': user_id,
                'severity': severity,
                'system_info': json.dumps(self.system_info),
            }

            response = self.supabase.table(ERROR_TABLE).insert(error_data).execute()
            return bool(response.data)

        except Exception as e:
            logger.warning("Failed to log error remotely: %s", e)
            return False


# Global instance
_remote_logger = None

def get_remote_logger() -> RemoteLogger:
    """Get the global remote logger instance"""
    global _remote_logger
    if _remote_logger is None:
        _remote_logger = RemoteLogger()
    return _remote_logger

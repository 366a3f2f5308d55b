"""
Input Validation and Sanitization Module
Validates login form input before it reaches the identity provider
"""

import re
import html
import unicodedata
from typing import Tuple, List, Dict, Any


class InputValidator:
    """Login input validation and sanitization"""

    EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
    MAX_EMAIL_LENGTH = 254
    MAX_PASSWORD_LENGTH = 128

    # Markup and script injection attempts
    DANGEROUS_PATTERNS = [
        r'<script.*?>.*?</script>',
        r'javascript:',
        r'vbscript:',
        r'on\w+\s*=',
        r'<iframe.*?>',
        r'<object.*?>',
        r'<embed.*?>',
        r'data:text/html',
        r'<.*?>',
    ]

    def __init__(self):
        self.compiled_dangerous_patterns = [re.compile(pattern, re.IGNORECASE) for pattern in self.DANGEROUS_PATTERNS]

    def sanitize_string(self, input_string: str, max_length: int = 1000, html_escape: bool = True) -> str:
        """
        Sanitize a string input by removing dangerous content and normalizing

        Args:
            input_string: The string to sanitize
            max_length: Maximum allowed length
            html_escape: Whether to HTML escape the string

        Returns:
            Sanitized string
        """
        if not isinstance(input_string, str):
            return ""

        input_string = input_string[:max_length]

        # Remove null bytes and control characters
        input_string = ''.join(char for char in input_string if ord(char) >= 32 or char in '\t\n\r')

        input_string = unicodedata.normalize('NFKC', input_string)

        if html_escape:
            input_string = html.escape(input_string, quote=True)

        for pattern in self.compiled_dangerous_patterns:
            input_string = pattern.sub('', input_string)

        return input_string.strip()

    def validate_email(self, email: str) -> Tuple[bool, str]:
        """
        Validate email address format

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not email:
            return False, "Email address is required"

        if len(email) > self.MAX_EMAIL_LENGTH:
            return False, "Email address is too long"

        if self._contains_dangerous_patterns(email):
            return False, "Email address contains invalid characters"

        if not self.EMAIL_PATTERN.match(email):
            return False, "Invalid email format"

        return True, ""

    def validate_login_data(self, data: Dict[str, Any]) -> Tuple[bool, List[str]]:
        """
        Validate login form data

        Returns:
            Tuple of (is_valid, list_of_errors)
        """
        errors = []

        email_valid, email_error = self.validate_email(data.get('email', ''))
        if not email_valid:
            errors.append(email_error)

        password = data.get('password', '')
        if not password:
            errors.append("Password is required")
        elif len(password) > self.MAX_PASSWORD_LENGTH:
            errors.append("Password is too long")

        return len(errors) == 0, errors

    def sanitize_login_data(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Sanitize login data; the email is not HTML-escaped and the password is passed through untouched"""
        return {
            'email': self.sanitize_string(data.get('email', ''), self.MAX_EMAIL_LENGTH, html_escape=False).lower(),
            'password': data.get('password', '')
        }

    def _contains_dangerous_patterns(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self.compiled_dangerous_patterns)

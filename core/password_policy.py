"""
Password Policy Validation

Requirements:
- Minimum 8 characters
- Maximum 72 characters (bcrypt limit)
- Not in common password blocklist
"""
from typing import Tuple, List

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 72

# Common weak passwords to block (subset - add more as needed)
COMMON_PASSWORDS = {
    "password", "password1", "password123", "12345678", "123456789", "1234567890",
    "qwerty123", "qwertyuiop", "iloveyou", "princess", "sunshine", "football",
    "baseball", "passw0rd", "p@ssw0rd", "p@ssword", "trustno1", "starwars",
    "whatever", "superman", "letmein1", "welcome1", "admin123", "abcd1234",
    "treadmill", "lactate1", "vo2max123", "athlete1", "coach123",
}


def validate_password(password: str) -> Tuple[bool, List[str]]:
    """
    Validate password against security policy.

    Args:
        password: The password to validate

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    errors = []

    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    if len(password.encode("utf-8")) > MAX_PASSWORD_LENGTH:
        errors.append(f"Password must not exceed {MAX_PASSWORD_LENGTH} bytes (bcrypt limit)")

    # Common password check (case-insensitive)
    if password.lower() in COMMON_PASSWORDS:
        errors.append("Password is too common, please choose a stronger password")

    return len(errors) == 0, errors

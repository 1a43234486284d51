from typing import List, Optional

from email_validator import EmailNotValidError, validate_email

from schemas import UserCreate


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def is_valid_email(address: str) -> bool:
    """Syntax-only address check, no DNS lookup."""
    try:
        validate_email(address, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def validate_user(user: UserCreate) -> List[str]:
    """Return the violations for a creation request, in field order.

    An empty list means the request is valid. Each field contributes at most
    one message: a missing value suppresses the format check.
    """
    errors = []
    if _is_blank(user.first_name):
        errors.append("First name is required.")
    if _is_blank(user.last_name):
        errors.append("Last name is required.")
    if _is_blank(user.email):
        errors.append("Email is required.")
    elif not is_valid_email(user.email):
        errors.append("Invalid email address.")
    return errors

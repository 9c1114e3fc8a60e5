"""
Attendee address validation.
"""

import re

# Something@something.something with no whitespace and a single "@".
# Deliverability and domain validity are not checked.
_EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")


def is_valid_email(address: str) -> bool:
    """Return True if ``address`` has the shape of an email address."""
    return _EMAIL_RE.fullmatch(address) is not None

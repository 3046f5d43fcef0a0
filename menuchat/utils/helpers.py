"""
Utility helpers for the menu chat client

Simple utility functions for ID generation, timestamps and input
normalization.
"""

import re
import uuid
from datetime import datetime, timezone

# "job-" prefix followed by alphanumerics and hyphens, case-insensitive.
# Matches as soon as the prefix is typed ("job-" alone is a match).
JOB_NUMBER_PATTERN = re.compile(r'^job-[a-z0-9-]*$', re.IGNORECASE)


def generate_session_id(short=True):
    """
    Generate unique session identifier

    Args:
        short (bool): If True, return 8-char hex. If False, return full UUID.

    Returns:
        str: Session ID

    Examples:
        >>> generate_session_id()
        'a3f7e2b9'

        >>> generate_session_id(short=False)
        'a3f7e2b9c1d2e3f4a5b6c7d8e9f0a1b2'
    """
    full_id = uuid.uuid4().hex
    return full_id[:8] if short else full_id


def generate_turn_id():
    """Unique transcript turn identifier (full UUID hex)"""
    return uuid.uuid4().hex


def utc_now():
    """Timezone-aware current time"""
    return datetime.now(timezone.utc)


def utc_now_iso():
    """Current time as ISO-8601 string"""
    return utc_now().isoformat()


def is_job_number_pattern(text):
    """
    Check if text looks like a job number

    Examples: "JOB-20251204-A5E92", "job-2025-123", "job-"

    Args:
        text (str): Raw user input

    Returns:
        bool: True if the trimmed text matches the job number pattern
    """
    if not text or not text.strip():
        return False
    return JOB_NUMBER_PATTERN.match(text.strip()) is not None


def convert_job_number_to_uppercase(text):
    """
    Upper-case text that matches the job number pattern

    Args:
        text (str): User input

    Returns:
        str: Upper-cased text for job numbers, unchanged text otherwise

    Examples:
        >>> convert_job_number_to_uppercase("job-2025-a1")
        'JOB-2025-A1'

        >>> convert_job_number_to_uppercase("hello")
        'hello'
    """
    if not is_job_number_pattern(text):
        return text
    return text.upper()

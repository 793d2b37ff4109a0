"""
Normalization service for sale submissions.
"""
import logging
from typing import Any

logger = logging.getLogger(__name__)


def normalize_value(value: Any) -> Any:
    """
    Normalize a single value.

    - Strings: trim whitespace
    """
    if isinstance(value, str):
        return value.strip()
    return value


def normalize_dict(data: dict) -> dict:
    """
    Recursively normalize all values in a dictionary.
    """
    result = {}
    for key, value in data.items():
        if isinstance(value, dict):
            result[key] = normalize_dict(value)
        elif isinstance(value, list):
            result[key] = [normalize_value(item) if not isinstance(item, dict)
                          else normalize_dict(item) for item in value]
        else:
            result[key] = normalize_value(value)
    return result


def normalize_submission(payload: dict) -> dict:
    """
    Normalizes a sale submission.

    Operations:
    - Trim whitespace from all string fields, including line items
    - Uppercase the partner code (referral links are case-insensitive)
    - Blank screenshot paths become None

    Args:
        payload: Raw submission data

    Returns:
        Normalized payload
    """
    if not payload:
        return {}

    normalized = normalize_dict(payload)

    if isinstance(normalized.get('partner_code'), str):
        normalized['partner_code'] = normalized['partner_code'].upper()

    if normalized.get('screenshot_path') == '':
        normalized['screenshot_path'] = None

    logger.debug(f"Normalized submission: {normalized}")
    return normalized

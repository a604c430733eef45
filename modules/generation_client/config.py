"""
Generation provider configuration.

Orientation to model mapping and the status codes worth retrying.
"""

from typing import Dict

from shared.config import settings
from shared.errors import ValidationError

# HTTP statuses that are retried with a fixed delay; everything else is final
RETRYABLE_STATUS_CODES = frozenset({500, 503})


def get_model_map() -> Dict[str, str]:
    """Model identifier per orientation, read from settings."""
    return {
        "portrait": settings.portrait_model,
        "landscape": settings.landscape_model,
    }


def get_model_for_orientation(orientation: str) -> str:
    """
    Resolve the provider model for an orientation.

    Raises:
        ValidationError: If orientation is unknown
    """
    models = get_model_map()
    if orientation not in models:
        raise ValidationError(f"Unknown orientation: {orientation}")
    return models[orientation]

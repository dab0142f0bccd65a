"""
Utility modules for the Consent Service.
"""

from consent_service.utils.datetime_utils import ensure_utc, utcnow
from consent_service.utils.id_utils import generate_prefixed_id

__all__ = [
    "ensure_utc",
    "utcnow",
    "generate_prefixed_id",
]

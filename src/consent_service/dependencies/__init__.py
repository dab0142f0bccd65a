from .app_deps import get_token_issuer
from .user_deps import (
    bearer_scheme,
    get_current_principal,
    get_current_user,
    get_optional_principal,
    require_dashboard_principal,
)

__all__ = [
    "get_token_issuer",
    "bearer_scheme",
    "get_current_principal",
    "get_current_user",
    "get_optional_principal",
    "require_dashboard_principal",
]

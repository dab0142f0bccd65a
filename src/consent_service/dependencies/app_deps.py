from fastapi import Request

from consent_service.security import TokenIssuer


def get_token_issuer(request: Request) -> TokenIssuer:
    """The issuer built by the application factory with the signing key."""
    return request.app.state.token_issuer

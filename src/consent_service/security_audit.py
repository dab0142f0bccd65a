import logging
from typing import Any, Dict, Optional

from fastapi import Request

from consent_service.logging_config import RequestContext
from consent_service.utils import utcnow

# Get dedicated security audit logger
logger = logging.getLogger("consent_service.security")

SENSITIVE_KEYS = [
    "password",
    "new_password",
    "token",
    "access_token",
    "api_key",
    "key",
    "secret",
    "authorization",
    "cookie",
]


def _sanitize_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Remove sensitive information from data before logging.
    """
    sanitized = data.copy()

    for key, value in list(sanitized.items()):
        if any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, dict):
            sanitized[key] = _sanitize_data(value)

    return sanitized


def log_security_event(
    event_type: str,
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None,
    additional_data: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
    status: str = "success",
    detail: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Log a security-related event with structured data.

    Args:
        event_type: Type of security event (e.g., "login", "consent_revoked")
        user_id: ID of the user associated with the event
        ip_address: IP address of the caller
        additional_data: Any additional relevant data
        request: Request object, if the event happened inside one
        status: Outcome status ("success", "failure", "attempt")
        detail: Optional detailed message

    Returns:
        The structured event that was logged.
    """
    security_event: Dict[str, Any] = {
        "timestamp": utcnow().isoformat(),
        "event_type": event_type,
        "status": status,
    }

    if user_id:
        security_event["user_id"] = str(user_id)

    request_id = RequestContext.get_request_id()
    if request_id:
        security_event["request_id"] = request_id

    if ip_address:
        security_event["ip_address"] = ip_address
    elif request is not None and request.client:
        security_event["ip_address"] = request.client.host

    if request is not None:
        security_event["request"] = {
            "method": request.method,
            "path": request.url.path,
            "user_agent": request.headers.get("user-agent", "unknown"),
        }

    if additional_data:
        security_event["data"] = _sanitize_data(additional_data)

    if detail:
        security_event["detail"] = detail

    log_message = f"Security event: {event_type} - {status}"
    if status == "failure":
        logger.warning(log_message, extra={"security_event": security_event})
    else:
        logger.info(log_message, extra={"security_event": security_event})
    return security_event


# Convenience functions for common security events
def log_login_success(
    request: Request, user_id: str, username: str, client_id: Optional[str] = None
):
    """
    Log a successful login, noting the client when a consent token was issued.
    """
    data: Dict[str, Any] = {"username": username}
    if client_id:
        data["client_id"] = client_id
    log_security_event(
        event_type="login_success",
        user_id=user_id,
        additional_data=data,
        request=request,
        status="success",
    )


def log_login_failure(request: Request, username: str, reason: str):
    """
    Log a failed login attempt.
    """
    log_security_event(
        event_type="login_failure",
        additional_data={"username": username},
        request=request,
        status="failure",
        detail=reason,
    )


def log_registration(request: Request, user_id: str, username: str):
    log_security_event(
        event_type="user_registered",
        user_id=user_id,
        additional_data={"username": username},
        request=request,
    )


def log_consent_recorded(
    request: Request, user_id: str, consent_id: str, client_id: str, validity_policy: str
):
    log_security_event(
        event_type="consent_recorded",
        user_id=user_id,
        additional_data={
            "consent_id": consent_id,
            "client_id": client_id,
            "validity_policy": validity_policy,
        },
        request=request,
    )


def log_consent_revoked(
    request: Request,
    user_id: str,
    consent_id: str,
    attribute_id: Optional[str] = None,
    status: str = "success",
):
    """
    Log a full revocation, or a partial one when attribute_id is given.
    """
    data: Dict[str, Any] = {"consent_id": consent_id}
    if attribute_id:
        data["attribute_id"] = attribute_id
    log_security_event(
        event_type="consent_attribute_revoked" if attribute_id else "consent_revoked",
        user_id=user_id,
        additional_data=data,
        request=request,
        status=status,
    )


def log_connection_changed(
    request: Request, user_id: str, provider_id: str, action: str, status: str = "success"
):
    log_security_event(
        event_type=f"connection_{action}",
        user_id=user_id,
        additional_data={"provider_id": provider_id},
        request=request,
        status=status,
    )


def log_token_rejected(
    reason: str,
    user_id: Optional[str] = None,
    client_id: Optional[str] = None,
    detail: Optional[str] = None,
):
    """
    Log a token the authentication gate refused. Never reaches the caller.
    """
    data: Dict[str, Any] = {"reason": reason}
    if client_id:
        data["client_id"] = client_id
    log_security_event(
        event_type="token_rejected",
        user_id=user_id,
        additional_data=data,
        status="failure",
        detail=detail,
    )

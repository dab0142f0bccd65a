import uuid


def generate_prefixed_id(prefix: str) -> str:
    """Short, human-readable identifiers such as ``cons-1a2b3c4d``."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"

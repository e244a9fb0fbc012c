import uuid

from fastapi import Header, HTTPException

from .config import ADMIN_TOKEN


def validate_admin_token(token: str | None, admin_token: str | None) -> None:
    if not admin_token or not token or token != admin_token:
        raise HTTPException(status_code=401, detail="Invalid admin token")


def require_admin_token(x_admin_token: str | None = Header(default=None)) -> None:
    validate_admin_token(x_admin_token, ADMIN_TOKEN)


def parse_uuid(raw: str | None, field: str) -> str:
    value = (raw or "").strip()
    if not value:
        raise HTTPException(status_code=400, detail=f"{field} is required")
    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{field} must be a valid UUID")

from typing import Any, Dict, Optional

from .base import BaseSchema


class AccessCheckResponse(BaseSchema):
    """Outcome of an authorization check for the caller."""
    allowed: bool
    permission: Optional[str] = None
    branch_id: Optional[int] = None
    code: Optional[str] = None
    message: str = ""
    context: Dict[str, Any] = {}

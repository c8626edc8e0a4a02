"""Access gate schemas."""

from typing import List, Optional

from pydantic import BaseModel


class AccessNotice(BaseModel):
    title: str
    message: str


class AccessCheckResponse(BaseModel):
    screen: str
    decision: str
    reason: Optional[str] = None
    redirect_to: Optional[str] = None
    allowed_roles: List[str] = []
    notice: Optional[AccessNotice] = None

"""Notification inbox and push schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class NotificationResponse(BaseModel):
    id: int
    title: str
    body: str
    tag: str
    data: Optional[Dict[str, Any]] = None
    require_interaction: bool
    read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class PushSubscriptionKeys(BaseModel):
    p256dh: Optional[str] = None
    auth: Optional[str] = None


class PushSubscriptionCreate(BaseModel):
    """Browser PushSubscription as serialized by ``subscription.toJSON()``."""

    endpoint: str = Field(..., min_length=1, max_length=1000)
    keys: PushSubscriptionKeys = PushSubscriptionKeys()


class ClickRequest(BaseModel):
    action: Optional[str] = None
    data: Dict[str, Any] = {}


class ClickResponse(BaseModel):
    url: Optional[str] = None
    close: bool = True


class OfflineManifest(BaseModel):
    cache_name: str
    routes: List[str]
    strategy: str
    same_origin_only: bool

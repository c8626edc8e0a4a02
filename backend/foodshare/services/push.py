"""Browser push payloads and the service-worker contract.

The front-end service worker shows ``PushPayload`` as a system notification,
asks ``resolve_click_target`` where a click should go, and pre-caches the
routes from ``offline_manifest``.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field

from foodshare.core.config import settings

ACCEPT = "accept"
VIEW = "view"
UPDATE_STATUS = "update_status"
CALL_CONTACT = "call_contact"
NAVIGATE = "navigate"
DISMISS = "dismiss"
DEFAULT = "default"

CLICK_ACTIONS = frozenset({ACCEPT, VIEW, UPDATE_STATUS, CALL_CONTACT, NAVIGATE, DISMISS, DEFAULT})

ACTION_TITLES = {
    ACCEPT: "Accept Task",
    VIEW: "View Details",
    UPDATE_STATUS: "Update Status",
    CALL_CONTACT: "Call",
    NAVIGATE: "Navigate",
    DISMISS: "Dismiss",
}


class NotificationAction(BaseModel):
    action: str
    title: str


class Coordinates(BaseModel):
    lat: float
    lng: float


class PushData(BaseModel):
    task_id: Optional[int] = None
    url: Optional[str] = None
    phone: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    type: Optional[str] = None
    quantity_saved: Optional[int] = None


class PushPayload(BaseModel):
    title: str
    body: str
    icon: Optional[str] = None
    badge: Optional[str] = None
    tag: str
    data: PushData = Field(default_factory=PushData)
    require_interaction: bool = False
    actions: List[NotificationAction] = Field(default_factory=list)

    def with_defaults(self) -> "PushPayload":
        """Fill in the default icon and badge."""
        return self.model_copy(
            update={
                "icon": self.icon or settings.notification_icon,
                "badge": self.badge or settings.notification_badge,
            }
        )

    @property
    def auto_close_seconds(self) -> Optional[int]:
        """Seconds after which a foreground notification closes itself."""
        if self.require_interaction:
            return None
        return settings.notification_auto_close_seconds


def actions(*names: str) -> List[NotificationAction]:
    return [NotificationAction(action=name, title=ACTION_TITLES[name]) for name in names]


def task_url(task_id: Any) -> str:
    return f"/agent/tasks/{task_id}"


def resolve_click_target(action: Optional[str], data: Optional[Dict[str, Any]]) -> Optional[str]:
    """URL the service worker opens for a notification click, or None to just close it.

    Unknown actions, and actions missing the data they need, fall back to the
    default behaviour: ``data.url`` or the app root.
    """
    data = data or {}
    task_id = data.get("task_id")
    action = action or DEFAULT

    if action == DISMISS:
        return None
    if action == ACCEPT and task_id is not None:
        return f"{task_url(task_id)}?action=accept"
    if action == VIEW and task_id is not None:
        return task_url(task_id)
    if action == UPDATE_STATUS and task_id is not None:
        return f"{task_url(task_id)}?action=update"
    if action == CALL_CONTACT and data.get("phone"):
        return f"tel:{data['phone']}"
    if action == NAVIGATE and data.get("coordinates"):
        coords = data["coordinates"]
        return (
            "https://www.google.com/maps/dir/?api=1"
            f"&destination={coords['lat']},{coords['lng']}"
        )
    return data.get("url") or "/"


def offline_manifest() -> Dict[str, Any]:
    return {
        "cache_name": settings.offline_cache_name,
        "routes": settings.offline_shell_routes_list,
        "strategy": "cache-first",
        "same_origin_only": True,
    }


def should_serve_from_cache(url: str, origin: str) -> bool:
    """Cache-first applies only to same-origin requests."""
    target = urlparse(url)
    if not target.scheme and not target.netloc:
        return True
    own = urlparse(origin)
    return (target.scheme, target.netloc) == (own.scheme, own.netloc)

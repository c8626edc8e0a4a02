"""Screen access check used by the front end's route guard."""

from typing import Optional

from fastapi import APIRouter, Query

from foodshare.core.access import SCREEN_ROLES, Allow, DenialNotifier, Pending, authorize
from foodshare.core.exceptions import ResourceNotFound
from foodshare.core.rbac import OptionalCurrentUser
from foodshare.schemas.access import AccessCheckResponse, AccessNotice

router = APIRouter()

denial_notifier = DenialNotifier()


@router.get("/check", response_model=AccessCheckResponse)
def check_access(
    current_user: OptionalCurrentUser,
    screen: str = Query(..., min_length=1),
    redirect_to: Optional[str] = None,
    session: Optional[str] = Query(None, description="Client view id used to de-duplicate notices"),
):
    allowed = SCREEN_ROLES.get(screen)
    if allowed is None:
        raise ResourceNotFound("Screen", screen)

    decision = authorize(current_user, allowed, redirect_to=redirect_to)
    subject = (session or (current_user.user_id if current_user else "anonymous"), screen)
    notice = denial_notifier.notice_for(subject, decision)

    response = AccessCheckResponse(
        screen=screen,
        decision="allow" if isinstance(decision, Allow) else "pending" if isinstance(decision, Pending) else "redirect",
        allowed_roles=sorted(r.value for r in allowed),
    )
    if not isinstance(decision, (Allow, Pending)):
        response.reason = decision.reason
        response.redirect_to = decision.target
    if notice is not None:
        response.notice = AccessNotice(title=notice.title, message=notice.message)
    return response

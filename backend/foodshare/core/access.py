"""Access control gate for role-protected screens.

``authorize`` is the single decision point used both by the API role
dependencies and by the screen check endpoint the front end calls before
rendering a guarded page.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Hashable, Iterable, Optional, Tuple, Union

from foodshare.core.config import settings
from foodshare.core.exceptions import AuthenticationRequired, FoodShareError, RoleMismatch
from foodshare.core.rbac import ALL_ROLES, TokenData, UserRole

REASON_AUTHENTICATION_REQUIRED = "authentication required"
REASON_ROLE_MISMATCH = "role mismatch"


@dataclass(frozen=True)
class Allow:
    """Render the guarded content."""


@dataclass(frozen=True)
class Pending:
    """Identity known, role still loading: render a waiting state."""


@dataclass(frozen=True)
class Redirect:
    reason: str
    target: str
    actual_role: Optional[UserRole] = None
    allowed_roles: FrozenSet[UserRole] = field(default_factory=frozenset)

    @property
    def title(self) -> str:
        if self.reason == REASON_AUTHENTICATION_REQUIRED:
            return "Authentication Required"
        return "Access Denied"

    @property
    def message(self) -> str:
        if self.reason == REASON_AUTHENTICATION_REQUIRED:
            return "Please log in to access this page."
        roles = ", ".join(sorted(r.value for r in self.allowed_roles))
        return (
            f"This page is only available to {roles} accounts. "
            f"You are registered as {self.actual_role.value}."
        )

    def to_exception(self) -> FoodShareError:
        if self.reason == REASON_AUTHENTICATION_REQUIRED:
            return AuthenticationRequired(self.message)
        return RoleMismatch(self.actual_role.value, [r.value for r in self.allowed_roles])


AccessDecision = Union[Allow, Pending, Redirect]


def authorize(
    identity: Optional[TokenData],
    allowed_roles: Iterable[UserRole],
    redirect_to: Optional[str] = None,
) -> AccessDecision:
    """Decide whether ``identity`` may see a screen guarded by ``allowed_roles``."""
    allowed = frozenset(UserRole(r) for r in allowed_roles)
    if not allowed:
        raise ValueError("allowed_roles must not be empty")

    if identity is None:
        return Redirect(reason=REASON_AUTHENTICATION_REQUIRED, target=settings.sign_in_path)

    if identity.role is None:
        return Pending()

    if identity.role not in allowed:
        return Redirect(
            reason=REASON_ROLE_MISMATCH,
            target=redirect_to or settings.default_redirect_path,
            actual_role=identity.role,
            allowed_roles=allowed,
        )

    return Allow()


@dataclass(frozen=True)
class Notice:
    title: str
    message: str


class DenialNotifier:
    """Emit at most one notice per denial state and subject.

    Re-evaluating the same denial (for example on a re-render) yields no new
    notice. An Allow, a Pending or a different denial resets the subject.
    """

    def __init__(self):
        self._last: Dict[Hashable, Tuple] = {}

    def notice_for(self, subject: Hashable, decision: AccessDecision) -> Optional[Notice]:
        if not isinstance(decision, Redirect):
            self._last.pop(subject, None)
            return None

        signature = (decision.reason, decision.target, decision.actual_role, decision.allowed_roles)
        if self._last.get(subject) == signature:
            return None
        self._last[subject] = signature
        return Notice(title=decision.title, message=decision.message)

    def forget(self, subject: Hashable) -> None:
        self._last.pop(subject, None)


# Front-end screens and the roles allowed to open them.
SCREEN_ROLES: Dict[str, FrozenSet[UserRole]] = {
    "/hotel-dashboard": frozenset({UserRole.HOTEL}),
    "/hotel-food-reporting": frozenset({UserRole.HOTEL}),
    "/agent-dashboard": frozenset({UserRole.AGENT}),
    "/agent-tasks": frozenset({UserRole.AGENT}),
    "/agent-task-board": frozenset({UserRole.AGENT}),
    "/admin-dashboard": frozenset({UserRole.ADMIN}),
    "/dashboard": ALL_ROLES,
    "/profile": ALL_ROLES,
    "/profile-setup": ALL_ROLES,
    "/settings": ALL_ROLES,
}

"""Role-based TLP rules: what a role may see, and whom a vulnerability may be assigned to.

Visibility and assignability use the same role->clearance mapping but are separate rules.
"""

from vulnradar.schemas.task import TaskPriority
from vulnradar.schemas.vulnerability import TLP_VALUES, TlpRating, normalize_tlp_filter

ADMIN_ROLE = "admin"
MANAGER_ROLE = "manager"

# Role -> TLP clearance. Unknown roles get the lowest clearance.
ROLE_CLEARANCE: dict[str, TlpRating] = {
    "employee": "GREEN",
    "manager": "AMBER",
    "admin": "RED",
}

TLP_ORDER: dict[str, int] = {"GREEN": 0, "AMBER": 1, "RED": 2}

MANAGER_VISIBLE: frozenset[str] = frozenset({"GREEN", "AMBER"})
EMPLOYEE_VISIBLE: frozenset[str] = frozenset({"GREEN"})

SEVERITY_TO_PRIORITY: dict[str, TaskPriority] = {
    "Critical": "Critical",
    "High": "High",
    "Low": "Low",
}
DEFAULT_PRIORITY: TaskPriority = "Medium"


def _normalize_role(role: str | None) -> str:
    return (role or "").strip().lower()


def is_admin(role: str | None) -> bool:
    return _normalize_role(role) == ADMIN_ROLE


def role_clearance(role: str | None) -> TlpRating:
    """TLP clearance for a role: employee GREEN, manager AMBER, admin RED."""
    return ROLE_CLEARANCE.get(_normalize_role(role), "GREEN")


def visible_tlp_ratings(role: str | None, explicit_filter: str | None = None) -> frozenset[str]:
    """
    Ratings a role may see. Admins see everything, narrowed to one rating when a valid filter
    is given; the filter is ignored for every other role.
    """
    normalized = _normalize_role(role)
    if normalized == ADMIN_ROLE:
        tlp_filter = normalize_tlp_filter(explicit_filter)
        if tlp_filter is not None:
            return frozenset({tlp_filter})
        return TLP_VALUES
    if normalized == MANAGER_ROLE:
        return MANAGER_VISIBLE
    return EMPLOYEE_VISIBLE


def is_visible(role: str | None, tlp_rating: str | None, explicit_filter: str | None = None) -> bool:
    if not tlp_rating:
        return False
    return tlp_rating.strip().upper() in visible_tlp_ratings(role, explicit_filter)


def can_assign(tlp_rating: str | None, candidate_role: str | None) -> bool:
    """
    Whether a vulnerability with this rating may be assigned to a user with this role.
    Admins are never assignees, so a RED vulnerability has no eligible assignee.
    """
    if is_admin(candidate_role):
        return False
    rating = (tlp_rating or "").strip().upper()
    if rating not in TLP_ORDER:
        return False
    return TLP_ORDER[role_clearance(candidate_role)] >= TLP_ORDER[rating]


def derive_priority(severity_level: str | None) -> TaskPriority:
    """Critical->Critical, High->High, Low->Low, anything else Medium."""
    if not severity_level:
        return DEFAULT_PRIORITY
    return SEVERITY_TO_PRIORITY.get(severity_level.strip().capitalize(), DEFAULT_PRIORITY)

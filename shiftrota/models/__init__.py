from shiftrota.models.tenant import Tenant
from shiftrota.models.user import User
from shiftrota.models.team import Team, TeamMember
from shiftrota.models.shift import Shift
from shiftrota.models.rotation import RotationPattern, RotationAssignment, RotationHistory

__all__ = [
    "Tenant",
    "User",
    "Team",
    "TeamMember",
    "Shift",
    "RotationPattern",
    "RotationAssignment",
    "RotationHistory",
]

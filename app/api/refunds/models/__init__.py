from app.api.refunds.models.profile import Profile
from app.api.refunds.models.refund_request import RefundRequest, RefundStatus
from app.api.refunds.models.subscription import Subscription
from app.api.refunds.models.user_role import UserRole


__all__ = [
    "Profile",
    "RefundRequest",
    "RefundStatus",
    "Subscription",
    "UserRole",
]

"""
Authorization policy.

Every shop, review and appointment operation asks ``authorize`` whether the
caller may perform an action on a resource, instead of repeating role and
ownership checks inline.
"""

import enum
import logging

from .exceptions import AuthorizationError
from .models import Appointment, Shop

logger = logging.getLogger(__name__)


class Action(str, enum.Enum):
    SHOP_CREATE = "shop:create"
    SHOP_UPDATE = "shop:update"
    SHOP_DELETE = "shop:delete"
    SHOP_AVAILABILITY = "shop:availability"
    REVIEW_SUBMIT = "review:submit"
    APPOINTMENT_CREATE = "appointment:create"
    APPOINTMENT_VIEW = "appointment:view"
    APPOINTMENT_UPDATE_STATUS = "appointment:update_status"
    APPOINTMENT_DELETE = "appointment:delete"


DENIAL_MESSAGES = {
    Action.SHOP_CREATE: "Only mechanics can create shops",
    Action.SHOP_UPDATE: "You can only update your own shop",
    Action.SHOP_DELETE: "You can only delete your own shop",
    Action.SHOP_AVAILABILITY: "You can only update your own shop",
    Action.REVIEW_SUBMIT: "Only customers can leave reviews",
    Action.APPOINTMENT_CREATE: "Only customers can create appointments",
    Action.APPOINTMENT_VIEW: "Access denied",
    Action.APPOINTMENT_UPDATE_STATUS: "You do not have permission to update this appointment",
    Action.APPOINTMENT_DELETE: "You can only delete your own appointments",
}


def _owns_shop(identity, shop: Shop) -> bool:
    return shop is not None and shop.owner_id == identity.id


def _appointment_shop_owner(appointment: Appointment):
    return appointment.shop.owner_id if appointment.shop is not None else None


def is_allowed(identity, action: Action, resource=None) -> bool:
    if action is Action.SHOP_CREATE:
        return identity.is_mechanic
    if action in (Action.SHOP_UPDATE, Action.SHOP_DELETE, Action.SHOP_AVAILABILITY):
        return identity.is_mechanic and _owns_shop(identity, resource)
    if action in (Action.REVIEW_SUBMIT, Action.APPOINTMENT_CREATE):
        return identity.is_customer
    if action in (Action.APPOINTMENT_VIEW, Action.APPOINTMENT_UPDATE_STATUS):
        return resource.user_id == identity.id or _appointment_shop_owner(resource) == identity.id
    if action is Action.APPOINTMENT_DELETE:
        return resource.user_id == identity.id
    return False


def authorize(identity, action: Action, resource=None) -> None:
    """Raise ``AuthorizationError`` unless ``identity`` may perform ``action``."""
    if not is_allowed(identity, action, resource):
        logger.warning("Denied %s for user %s (role=%s)", action.value, identity.id, identity.role)
        raise AuthorizationError(DENIAL_MESSAGES.get(action))

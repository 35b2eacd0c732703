"""
Event-type taxonomy.

An event type is a dotted string such as ``document.viewed``. Its namespace
(the part before the first dot, or the whole string when there is no dot)
determines the one category the event may be recorded under.
"""

from typing import Union

from custody.exceptions import ValidationError
from custody.models import EventCategory

NAMESPACE_CATEGORIES: dict[str, EventCategory] = {
    # Authentication
    "login": EventCategory.AUTHENTICATION,
    "logout": EventCategory.AUTHENTICATION,
    "token": EventCategory.AUTHENTICATION,
    "session": EventCategory.AUTHENTICATION,
    # Authorization
    "matter": EventCategory.AUTHORIZATION,
    # Data access
    "document": EventCategory.DATA_ACCESS,
    "extraction": EventCategory.DATA_ACCESS,
    "review": EventCategory.DATA_ACCESS,
    "audit_log": EventCategory.DATA_ACCESS,
    "custody": EventCategory.DATA_ACCESS,
    "privilege_log": EventCategory.DATA_ACCESS,
    # Administration
    "user": EventCategory.ADMIN,
    # Platform
    "system": EventCategory.SYSTEM,
    # Evidence package lifecycle
    "evidence_package": EventCategory.EVIDENCE_PACKAGE,
}


def namespace_of(event_type: str) -> str:
    """Return the namespace prefix of an event type."""
    return event_type.split(".", 1)[0]


def category_for(event_type: str) -> EventCategory:
    """
    Derive the category of an event type.

    Raises:
        ValidationError: empty event type or unknown namespace
    """
    if not event_type or event_type != event_type.strip():
        raise ValidationError(f"Malformed event type: {event_type!r}")
    namespace = namespace_of(event_type)
    try:
        return NAMESPACE_CATEGORIES[namespace]
    except KeyError:
        raise ValidationError(f"Unknown event namespace: {namespace!r}") from None


def validate_category(event_type: str, category: Union[EventCategory, str]) -> EventCategory:
    """
    Check that a category is the one the event type's namespace maps to.

    Returns the category as an EventCategory.
    """
    try:
        category = EventCategory(category)
    except ValueError:
        raise ValidationError(f"Unknown event category: {category!r}") from None

    expected = category_for(event_type)
    if category != expected:
        raise ValidationError(
            f"Event type {event_type} belongs to category {expected.value}, "
            f"not {category.value}"
        )
    return category

"""
Versioned payload envelopes for audit events.

Each event namespace has one pydantic model. Unknown keys are rejected so
a typo never lands silently in the permanent record; free-form context
goes under ``details``. Bump SCHEMA_VERSION when a model changes shape.
"""

from typing import Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from custody.audit.taxonomy import namespace_of
from custody.exceptions import ValidationError

SCHEMA_VERSION = 1


class EventPayload(BaseModel):
    """Fields common to every audit payload."""

    model_config = ConfigDict(extra="forbid")

    schema_version: Literal[1] = SCHEMA_VERSION
    details: dict[str, Any] = Field(default_factory=dict, description="Free-form context")


class AuthenticationPayload(EventPayload):
    """login.*, logout, token.*, session.*"""

    email: Optional[str] = None
    reason: Optional[str] = None
    session_id: Optional[str] = None


class MatterPayload(EventPayload):
    """matter.*"""

    matter_name: Optional[str] = None
    target_user_id: Optional[str] = None
    changes: Optional[dict[str, Any]] = None


class DocumentPayload(EventPayload):
    """document.*"""

    file_name: Optional[str] = None
    privilege_type: Optional[str] = None
    reason: Optional[str] = None
    valid: Optional[bool] = None
    current_hash: Optional[str] = None
    original_hash: Optional[str] = None


class ExtractionPayload(EventPayload):
    """extraction.* and review.*"""

    extraction_id: Optional[str] = None
    review_id: Optional[str] = None
    model_name: Optional[str] = None
    decision: Optional[str] = None


class UserManagementPayload(EventPayload):
    """user.*"""

    target_user_id: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    changes: Optional[dict[str, Any]] = None


class SystemPayload(EventPayload):
    """system.*"""

    component: Optional[str] = None
    action: Optional[str] = None
    result: Optional[str] = None
    error: Optional[str] = None


class AccessReportPayload(EventPayload):
    """audit_log.*, custody.*, privilege_log.*"""

    filters: dict[str, str] = Field(default_factory=dict)
    result_count: Optional[int] = Field(default=None, ge=0)
    export_format: Optional[str] = None


class EvidencePackagePayload(EventPayload):
    """evidence_package.*"""

    package_id: Optional[str] = None
    package_type: Optional[str] = None
    export_format: Optional[str] = None
    content_hash: Optional[str] = None
    certificate_number: Optional[str] = None
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    valid: Optional[bool] = None


PAYLOAD_MODELS: dict[str, type[EventPayload]] = {
    "login": AuthenticationPayload,
    "logout": AuthenticationPayload,
    "token": AuthenticationPayload,
    "session": AuthenticationPayload,
    "matter": MatterPayload,
    "document": DocumentPayload,
    "extraction": ExtractionPayload,
    "review": ExtractionPayload,
    "user": UserManagementPayload,
    "system": SystemPayload,
    "audit_log": AccessReportPayload,
    "custody": AccessReportPayload,
    "privilege_log": AccessReportPayload,
    "evidence_package": EvidencePackagePayload,
}


def payload_model_for(event_type: str) -> type[EventPayload]:
    """Return the envelope model for an event type's namespace."""
    try:
        return PAYLOAD_MODELS[namespace_of(event_type)]
    except KeyError:
        raise ValidationError(f"No payload schema for event type {event_type!r}") from None


def build_payload(
    event_type: str,
    payload: Union[EventPayload, Mapping[str, Any], None],
) -> dict[str, Any]:
    """
    Validate a payload against its event type's envelope.

    Accepts a model instance or a plain mapping and returns the JSON-ready
    dict that is stored on the audit entry. Unset optional fields are left
    out.

    Raises:
        ValidationError: payload does not fit the envelope
    """
    model_cls = payload_model_for(event_type)

    if isinstance(payload, EventPayload):
        if not isinstance(payload, model_cls):
            raise ValidationError(
                f"{type(payload).__name__} is not a valid payload for {event_type}; "
                f"expected {model_cls.__name__}"
            )
        model = payload
    else:
        try:
            model = model_cls.model_validate(dict(payload or {}))
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid payload for {event_type}: {e}") from e

    return model.model_dump(mode="json", exclude_none=True)

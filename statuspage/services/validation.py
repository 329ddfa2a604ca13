"""
Input checks shared by the mutation services.

HTTP requests are already validated by pydantic; these checks guard the
service layer for callers that bypass the HTTP schemas.
"""

from enum import Enum
from typing import Any, Iterable, List, Optional, Type, TypeVar
from uuid import UUID

from statuspage.core.exceptions import MissingFieldError, ValidationError

E = TypeVar("E", bound=Enum)


def require_text(field: str, value: Any) -> str:
    if value is None or not isinstance(value, str) or not value.strip():
        raise MissingFieldError(field)
    return value


def coerce_enum(enum_cls: Type[E], field: str, value: Any) -> E:
    if value is None or value == "":
        raise MissingFieldError(field)
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(
            f"Invalid {field}: {value!r}",
            details={
                "field": field,
                "allowed": [member.value for member in enum_cls],
            },
        )


def coerce_uuid_list(field: str, values: Optional[Iterable[Any]]) -> List[UUID]:
    """Parse ids, dropping duplicates while keeping first-seen order."""
    if values is None:
        return []
    result: List[UUID] = []
    for raw in values:
        try:
            value = raw if isinstance(raw, UUID) else UUID(str(raw))
        except ValueError:
            raise ValidationError(
                f"Invalid id in {field}: {raw!r}",
                details={"field": field},
            )
        if value not in result:
            result.append(value)
    return result


def clean_labels(field: str, values: Optional[Iterable[Any]]) -> List[str]:
    if values is None:
        return []
    labels = []
    for value in values:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(
                f"{field} entries must be non-empty strings",
                details={"field": field},
            )
        labels.append(value.strip())
    return labels

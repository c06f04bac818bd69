# app/domain/validation.py
"""Turn untyped input into schema instances, or into one ValidationError.

Both the explicit ``validate`` calls (query strings) and FastAPI's own body /
path validation end up in ``to_validation_error`` so clients always get the
same field-level breakdown.
"""

from typing import Any, Dict, Iterable, List, Mapping

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from app.domain.exceptions import ValidationError

# FastAPI prefixes locations with where the value came from
_SOURCES = ("body", "query", "path", "header")


def _field_name(loc: Iterable[Any]) -> str:
    parts = [str(p) for p in loc]
    if parts and parts[0] in _SOURCES:
        parts = parts[1:]
    return ".".join(parts) or "_schema"


def _message(error: Mapping[str, Any]) -> str:
    # model validators raise ValueError, pydantic prefixes it with "Value error, "
    if error.get("type") == "value_error" and "error" in error.get("ctx", {}):
        return str(error["ctx"]["error"])
    return error.get("msg", "Invalid value")


def _plain(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    return str(value)


def to_validation_error(
    errors: Iterable[Mapping[str, Any]],
    correlation_id: str | None = None,
) -> ValidationError:
    field_errors: List[Dict[str, Any]] = [
        {
            "field": _field_name(err.get("loc", ())),
            "message": _message(err),
            "value": _plain(err.get("input")),
        }
        for err in errors
    ]
    joined = "; ".join(f"{e['field']}: {e['message']}" for e in field_errors)
    return ValidationError(
        f"Validation failed: {joined}",
        correlation_id,
        {"validationErrors": field_errors},
    )


def validate(schema: Any, data: Any, correlation_id: str | None = None) -> Any:
    """Validate ``data`` against a pydantic model or an annotated type.

    Returns the coerced value; raises ValidationError listing every failure.
    """
    try:
        if isinstance(schema, type) and issubclass(schema, BaseModel):
            return schema.model_validate(data)
        return TypeAdapter(schema).validate_python(data)
    except PydanticValidationError as e:
        raise to_validation_error(e.errors(), correlation_id) from e

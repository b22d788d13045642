"""
Request body validation.

`validated_body(Schema)` is declared on a route after its authorization
dependency, so 401/403 are decided before the body is looked at. The body is
sanitized (strings trimmed and HTML-escaped) and then validated; failures
become a 400 with one entry per offending field.
"""

import html
import json
from typing import Any, Dict, List, Type, TypeVar

from fastapi import Depends, Request
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from app.core.audit import SecurityEventLogger, get_audit_logger
from app.core.dependencies import get_request_meta
from app.core.exceptions import ValidationError

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def sanitize_input(value: str) -> str:
    return html.escape(value, quote=True).strip()


def sanitize_payload(value: Any) -> Any:
    if isinstance(value, str):
        return sanitize_input(value)
    if isinstance(value, dict):
        return {key: sanitize_payload(item) for key, item in value.items()}
    if isinstance(value, list):
        return [sanitize_payload(item) for item in value]
    return value


def format_errors(errors) -> List[Dict[str, str]]:
    """Pydantic/FastAPI error dicts to [{"field": "a.b", "message": ...}]."""
    items = []
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        items.append({"field": ".".join(location), "message": error.get("msg", "Invalid value")})
    return items


def validated_body(schema: Type[SchemaT]):
    """Dependency factory: parse, sanitize and validate the JSON body against `schema`."""
    async def parse_body(
        request: Request,
        audit: SecurityEventLogger = Depends(get_audit_logger),
    ) -> SchemaT:
        meta = get_request_meta(request)
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            payload = None
        if not isinstance(payload, dict):
            errors = [{"field": "", "message": "Request body must be a JSON object"}]
            audit.log(meta.event("VALIDATION_FAILED", metadata={"errors": errors}), "warn")
            raise ValidationError("Invalid input data", errors=errors)
        try:
            return schema.model_validate(sanitize_payload(payload))
        except PydanticValidationError as e:
            errors = format_errors(e.errors())
            audit.log(meta.event("VALIDATION_FAILED", metadata={"errors": errors}), "warn")
            raise ValidationError("Invalid input data", errors=errors)
    return parse_body

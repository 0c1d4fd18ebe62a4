"""Input validation: turn untrusted JSON payloads into domain records.

Every violated field is reported at once so the caller can fix the whole
payload in a single round trip.
"""

import logging
from typing import Any, Dict, Iterable, List, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError

from shared.errors import ServiceError
from shared.models import OptimizeRequest, RebalanceRequest, StressRequest

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

INVALID_REQUEST = "Invalid request"


def describe_location(loc: Sequence[Any]) -> str:
    """Dotted field path, without FastAPI's leading `body` segment."""
    parts = [str(part) for part in loc]
    if len(parts) > 1 and parts[0] == "body":
        parts = parts[1:]
    return ".".join(parts)


def format_errors(errors: Iterable[Dict[str, Any]]) -> List[str]:
    messages: List[str] = []
    for error in errors:
        field = describe_location(error.get("loc", ()))
        message = error.get("msg", "Invalid value")
        messages.append(f"{field}: {message}" if field else message)
    return messages


def validate_payload(model: Type[ModelT], payload: Any) -> ModelT:
    """Validate `payload` against `model` or raise one aggregated validation error."""
    if not isinstance(payload, dict):
        raise ServiceError(
            "validation",
            INVALID_REQUEST,
            details=["body: Request body must be a JSON object"],
        )
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        details = format_errors(exc.errors())
        logger.warning(f"Rejected {model.__name__} payload: {'; '.join(details)}")
        raise ServiceError("validation", INVALID_REQUEST, details=details) from exc


def check_optimize_semantics(request: OptimizeRequest) -> None:
    """Reject well-typed optimize requests that contradict themselves."""
    problems: List[str] = []
    constraints = request.constraints
    if (
        constraints is not None
        and constraints.minWeight is not None
        and constraints.maxWeight is not None
        and constraints.minWeight > constraints.maxWeight
    ):
        problems.append("constraints: minWeight must not exceed maxWeight")
    overlap = sorted(set(request.include or []) & set(request.exclude or []))
    if overlap:
        problems.append(f"include/exclude: assets both included and excluded: {', '.join(overlap)}")
    if problems:
        raise ServiceError("bad_request", "Inconsistent request", details=problems)


def validate_optimize_request(payload: Any) -> OptimizeRequest:
    request = validate_payload(OptimizeRequest, payload)
    check_optimize_semantics(request)
    return request


def validate_rebalance_request(payload: Any) -> RebalanceRequest:
    return validate_payload(RebalanceRequest, payload)


def validate_stress_request(payload: Any) -> StressRequest:
    return validate_payload(StressRequest, payload)

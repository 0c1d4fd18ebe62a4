"""Error taxonomy shared by the validator, the upstream gateway and the API layer."""

from dataclasses import dataclass
from typing import Dict, List, Literal, Optional, Union

from shared.models import ErrorEnvelope

ErrorKind = Literal[
    "validation",
    "bad_request",
    "upstream_timeout",
    "upstream_unavailable",
    "internal",
]

STATUS_BY_KIND: Dict[str, int] = {
    "validation": 400,
    "bad_request": 400,
    "upstream_timeout": 504,
    "upstream_unavailable": 502,
    "internal": 500,
}


@dataclass(eq=False)
class ServiceError(Exception):
    kind: ErrorKind
    message: str
    details: Optional[Union[str, List[str]]] = None
    upstream_status: Optional[int] = None

    def __str__(self) -> str:
        return self.message

    @property
    def http_status(self) -> int:
        return STATUS_BY_KIND.get(self.kind, 500)

    def to_envelope(self) -> ErrorEnvelope:
        return ErrorEnvelope(error=self.message, details=self.details)

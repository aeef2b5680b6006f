from __future__ import annotations

import logging
import os
from typing import Any, Protocol

import jsonschema
import requests
from jsonschema.exceptions import ValidationError

from ..config.loader import InferenceConfig

"""Client for the remote column-mapping inference function.

Request:  {"sheets": [{"name", "headers", "sampleRows", "rowCount"}, ...]}
Response: {"sheet", "date_column", "mapping", "skip_columns", "date_format",
           "start_row", "confidence"}

The function itself (prompting, model choice) is opaque; this module only
ships the sheets out and checks the shape of what comes back.
"""

__all__ = [
    "InferenceUnavailableError",
    "MappingInference",
    "HttpMappingInference",
    "RESPONSE_SCHEMA",
]

logger = logging.getLogger(__name__)


class InferenceUnavailableError(Exception):
    """The inference call failed or returned malformed data."""


RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["sheet", "date_column", "mapping", "confidence"],
    "properties": {
        "sheet": {"type": "string"},
        "date_column": {"type": "integer", "minimum": 0},
        "mapping": {
            "type": "object",
            "additionalProperties": {"type": ["integer", "null"], "minimum": 0},
        },
        "skip_columns": {"type": "array", "items": {"type": "integer", "minimum": 0}},
        "date_format": {"type": ["string", "null"]},
        "start_row": {"type": ["integer", "null"], "minimum": 1},
        "confidence": {"enum": ["high", "medium", "low"]},
    },
}


class MappingInference(Protocol):
    def infer(self, sheets: list[dict[str, Any]]) -> dict[str, Any]:
        """Return the validated raw response payload."""
        ...


def validate_response(payload: Any) -> dict[str, Any]:
    if isinstance(payload, dict) and "error" in payload and "mapping" not in payload:
        raise InferenceUnavailableError(f"inference error: {payload['error']}")
    try:
        jsonschema.validate(payload, RESPONSE_SCHEMA)
    except ValidationError as e:
        raise InferenceUnavailableError(f"malformed inference response: {e.message}") from e
    return payload


class HttpMappingInference:
    """POSTs the sheets to the configured URL with requests."""

    def __init__(self, cfg: InferenceConfig, session: requests.Session | None = None) -> None:
        self.cfg = cfg
        self.session = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = os.getenv(self.cfg.api_key_env)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def infer(self, sheets: list[dict[str, Any]]) -> dict[str, Any]:
        logger.debug("inference request url=%s sheets=%d", self.cfg.url, len(sheets))
        try:
            resp = self.session.post(
                self.cfg.url,
                json={"sheets": sheets},
                headers=self._headers(),
                timeout=self.cfg.timeout_seconds,
            )
        except requests.RequestException as e:
            raise InferenceUnavailableError(f"inference request failed: {e}") from e

        if not resp.ok:
            raise InferenceUnavailableError(
                f"inference returned HTTP {resp.status_code}: {resp.text[:200]}"
            )
        try:
            payload = resp.json()
        except ValueError as e:
            raise InferenceUnavailableError(f"inference returned non-JSON body: {e}") from e
        return validate_response(payload)

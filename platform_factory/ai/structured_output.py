"""
Structured LLM output decoding and result provenance.

Model answers are free text that should contain one JSON object. Decoding
has three explicit outcomes:

    VALID           parsed and accepted by the pydantic schema
    INVALID_SCHEMA  well-formed JSON the schema rejects
    UNPARSEABLE     no JSON object, or malformed JSON

Callers never branch on these by hand: ``attempt_generative`` runs the
generative step, turns any failure into the deterministic step, and tags
the result with its provenance so tests and API payloads can tell which
path produced it.

Usage:
    result = decode_structured(response["content"], AnalysisPayload)
    payload = result.unwrap()          # raises UpstreamModelError unless VALID

    sourced = attempt_generative(
        lambda: _from_model(text),
        lambda: _heuristic(text),
        label="requirement_analysis",
    )
    sourced.provenance                 # Provenance.GENERATED / HEURISTIC
"""

import enum
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Optional, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from platform_factory.core.exceptions import UpstreamModelError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)
T = TypeVar("T")

_FENCE_RE = re.compile(r"```[a-zA-Z0-9_-]*\s*\n?(.*?)```", re.DOTALL)


class DecodeOutcome(str, enum.Enum):
    VALID = "valid"
    INVALID_SCHEMA = "invalid_schema"
    UNPARSEABLE = "unparseable"


@dataclass(frozen=True)
class DecodeResult(Generic[M]):
    outcome: DecodeOutcome
    value: Optional[M] = None
    errors: list[dict[str, Any]] = field(default_factory=list)
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is DecodeOutcome.VALID

    def unwrap(self) -> M:
        """Return the validated model or raise ``UpstreamModelError``."""
        if self.ok:
            return self.value
        raise UpstreamModelError(
            f"Structured output {self.outcome.value}: {self.detail}",
            kind=self.outcome.value,
        )


def strip_code_fences(content: str) -> str:
    """Return the body of the first fenced block, or the text unchanged."""
    match = _FENCE_RE.search(content)
    return match.group(1) if match else content


def iter_json_objects(text: str):
    """
    Yield every balanced top-level ``{...}`` substring in order.

    Braces inside string literals (including escaped quotes) are ignored.
    """
    depth = 0
    start = -1
    in_string = False
    escaped = False

    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"' and depth > 0:
            in_string = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield text[start:i + 1]


def decode_structured(content: Optional[str], schema: type[M]) -> DecodeResult[M]:
    """Extract the first JSON object from ``content`` and validate it against ``schema``."""
    if not content or not content.strip():
        return DecodeResult(DecodeOutcome.UNPARSEABLE, detail="empty response")

    body = strip_code_fences(content)
    data = None
    for candidate in iter_json_objects(body):
        try:
            data = json.loads(candidate)
            break
        except json.JSONDecodeError:
            continue

    if not isinstance(data, dict):
        return DecodeResult(DecodeOutcome.UNPARSEABLE, detail="no JSON object found")

    try:
        value = schema.model_validate(data)
    except PydanticValidationError as exc:
        errors = exc.errors(include_url=False, include_input=False)
        return DecodeResult(
            DecodeOutcome.INVALID_SCHEMA,
            errors=errors,
            detail=f"{len(errors)} validation error(s) for {schema.__name__}",
        )
    return DecodeResult(DecodeOutcome.VALID, value=value)


# ══════════════════════════════════════════════════════════════════════════════
# Provenance
# ══════════════════════════════════════════════════════════════════════════════


class Provenance(str, enum.Enum):
    GENERATED = "generated"
    HEURISTIC = "heuristic"


@dataclass(frozen=True)
class Sourced(Generic[T]):
    """A value tagged with the path that produced it."""

    value: T
    provenance: Provenance
    reason: Optional[str] = None

    @property
    def is_generated(self) -> bool:
        return self.provenance is Provenance.GENERATED


def attempt_generative(
    generate: Callable[[], T],
    heuristic: Callable[[], T],
    *,
    label: str,
) -> Sourced[T]:
    """
    Run ``generate``; on any model failure run ``heuristic`` instead.

    Model failures never propagate. The heuristic step itself must be total.
    """
    try:
        return Sourced(generate(), Provenance.GENERATED)
    except UpstreamModelError as exc:
        reason = exc.kind
        logger.warning("%s: generative step failed (%s): %s — using heuristic", label, reason, exc)
    except Exception as exc:  # provider SDKs raise their own hierarchies
        reason = "upstream_error"
        logger.warning("%s: generative step raised %s — using heuristic", label, type(exc).__name__, exc_info=True)

    return Sourced(heuristic(), Provenance.HEURISTIC, reason)

from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

log = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2048


@dataclass(frozen=True)
class SamplingParams:
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS


def _lenient(params: Mapping[str, Any], key: str, cast: Callable[[Any], Any], default: Any) -> Any:
    # Malformed values fall back to the default; the call goes ahead.
    if key not in params or params[key] is None:
        return default
    raw = params[key]
    try:
        value = cast(str(raw).strip())
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError(f"non-finite {key}")
        return value
    except (TypeError, ValueError):
        log.warning("Invalid %s param %r, using default %s", key, raw, default)
        return default


def resolve_sampling(
    params: Optional[Mapping[str, Any]],
    defaults: Optional[SamplingParams] = None,
) -> SamplingParams:
    """
    Turn an open name -> string mapping into typed sampling params.
    Unknown keys are ignored.
    """
    base = defaults or SamplingParams()
    p = params or {}
    return SamplingParams(
        temperature=_lenient(p, "temperature", float, base.temperature),
        max_tokens=_lenient(p, "max_tokens", int, base.max_tokens),
    )

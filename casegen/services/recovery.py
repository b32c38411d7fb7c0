# Copyright 2025 John Brosnihan
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Recovery of test-case summaries from a raw model completion.

Control flow:
    raw text -> sanitize -> parse
             -> on failure: recover_array -> parse
             -> on failure of a truncated array: drop_incomplete_tail -> parse
             -> normalize -> RecoverySuccess

Every terminal failure is returned as a RecoveryFailure carrying a bounded
preview of the raw text; nothing is retried here.
"""

import json
import logging
from typing import Any, Optional

from casegen.models.test_cases import (
    FailureKind,
    RecoveryFailure,
    RecoveryResult,
    RecoverySuccess,
)
from casegen.services.normalizer import SummaryIdGenerator, normalize
from casegen.services.recoverer import drop_incomplete_tail, recover_array
from casegen.services.recovery_errors import (
    DEFAULT_PREVIEW_CHARS,
    EmptyResponseError,
    ParseFailureError,
    RecoveryError,
    ShapeError,
    make_preview,
)
from casegen.services.sanitizer import sanitize
from casegen.utils.logging_helper import get_correlation_id, log_info, log_warning

logger = logging.getLogger(__name__)

_FAILURE_EVENTS = {
    FailureKind.EMPTY_RESPONSE: "recovery_empty_response",
    FailureKind.PARSE_FAILURE: "recovery_parse_failed",
    FailureKind.SHAPE_ERROR: "recovery_shape_error",
}


# json.loads raises RecursionError on deeply nested text
_DECODE_ERRORS = (json.JSONDecodeError, RecursionError)


def _describe(error: Exception) -> str:
    if isinstance(error, json.JSONDecodeError):
        return f"{error.msg} (line {error.lineno}, column {error.colno})"
    return "nesting too deep to decode"


def parse_completion(
    raw: Optional[str],
    preview_chars: int = DEFAULT_PREVIEW_CHARS,
    correlation_id: Optional[str] = None,
) -> tuple[Any, bool, int]:
    """Parse a raw completion into a JSON value, repairing it if needed.

    Args:
        raw: Raw completion text from the provider
        preview_chars: Bound on diagnostic previews
        correlation_id: Optional correlation ID for log tracing

    Returns:
        Tuple of (parsed value, whether repair was needed, number of array
        elements dropped from a truncated tail)

    Raises:
        EmptyResponseError: If the completion is empty or only a code fence
        ParseFailureError: If no candidate parses as JSON
    """
    correlation_id = get_correlation_id(correlation_id)
    if raw is None or not raw.strip():
        raise EmptyResponseError("The model returned an empty response")

    text = sanitize(raw)
    if not text:
        raise EmptyResponseError(
            "The model response contained no content inside its code fence",
            preview=make_preview(raw, preview_chars),
        )

    try:
        return json.loads(text), False, 0
    except _DECODE_ERRORS as e:
        direct_error = _describe(e)

    log_info(
        logger,
        "recovery_direct_parse_failed",
        correlation_id=correlation_id,
        raw_length=len(raw),
        decode_error=direct_error,
    )

    repaired = recover_array(text)
    try:
        parsed = json.loads(repaired)
    except _DECODE_ERRORS as e:
        last_error = _describe(e)
    else:
        log_info(
            logger,
            "recovery_repair_succeeded",
            correlation_id=correlation_id,
            raw_length=len(raw),
            repaired_length=len(repaired),
        )
        return parsed, True, 0

    trimmed = drop_incomplete_tail(text)
    if trimmed is not None:
        candidate, dropped = trimmed
        try:
            parsed = json.loads(candidate)
        except _DECODE_ERRORS as e:
            last_error = _describe(e)
        else:
            log_warning(
                logger,
                "recovery_truncated_tail_dropped",
                correlation_id=correlation_id,
                raw_length=len(raw),
                dropped_elements=dropped,
            )
            return parsed, True, dropped

    raise ParseFailureError(
        f"Invalid JSON response from model: {direct_error}. "
        f"Repair attempt also failed: {last_error}",
        preview=make_preview(raw, preview_chars),
        repair_preview=make_preview(repaired, preview_chars),
    )


def recover_test_cases(
    raw: Optional[str],
    requested_framework: str,
    *,
    preview_chars: int = DEFAULT_PREVIEW_CHARS,
    id_generator: Optional[SummaryIdGenerator] = None,
    correlation_id: Optional[str] = None,
) -> RecoveryResult:
    """Recover typed test-case summaries from a raw model completion.

    This function never raises for malformed model output; failures are
    returned as a RecoveryFailure tagged EmptyResponse, ParseFailure or
    ShapeError. A valid but empty array is a success with no summaries.

    Args:
        raw: Raw completion text from the provider
        requested_framework: Framework used for records that do not name one
        preview_chars: Bound on diagnostic previews in failures
        id_generator: Generator for missing ids, scoped to this call
        correlation_id: Optional correlation ID for log tracing

    Returns:
        RecoverySuccess with the summaries, or RecoveryFailure

    Example:
        >>> result = recover_test_cases('```json\\n[{"description": "adds"}]\\n```', "jest")
        >>> result.summaries[0].framework
        'jest'
    """
    correlation_id = get_correlation_id(correlation_id)
    try:
        parsed, repaired, dropped_tail = parse_completion(raw, preview_chars, correlation_id)
        batch = normalize(
            parsed,
            requested_framework,
            id_generator=id_generator,
            preview_chars=preview_chars,
            correlation_id=correlation_id,
        )
    except RecoveryError as e:
        if isinstance(e, ShapeError):
            e.preview = make_preview(raw, preview_chars)
        log_warning(
            logger,
            _FAILURE_EVENTS[e.kind],
            correlation_id=correlation_id,
            error_message=e.message,
            raw_length=len(raw) if raw else 0,
        )
        return RecoveryFailure.from_error(e)

    log_info(
        logger,
        "recovery_succeeded",
        correlation_id=correlation_id,
        summary_count=len(batch.summaries),
        strategy=batch.strategy,
        repaired=repaired,
        dropped_elements=batch.dropped_elements + dropped_tail,
    )
    return RecoverySuccess(
        summaries=batch.summaries,
        strategy=batch.strategy,
        repaired=repaired,
        dropped_elements=batch.dropped_elements + dropped_tail,
    )

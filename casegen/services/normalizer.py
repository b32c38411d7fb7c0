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
"""Shape normalization of parsed model output into test-case summaries.

The model is asked for a JSON array of records, but the array arrives in
several shapes. The array is located with a fixed search order:

1. The value is already an array.
2. The value is an object holding an array under one of ``WRAPPER_KEYS``,
   checked in that order.
3. The value is an object that itself looks like one record (it has a
   ``description`` or ``id`` key); it is wrapped in a one-element array.
4. The first array found by a depth-first walk over nested object values.

Anything else is a ``ShapeError``.
"""

import itertools
import json
import logging
import uuid
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field

from casegen.models.test_cases import TestCaseSummary
from casegen.services.recovery_errors import DEFAULT_PREVIEW_CHARS, ShapeError, make_preview
from casegen.utils.logging_helper import log_warning

logger = logging.getLogger(__name__)

WRAPPER_KEYS = ("testCases", "tests", "cases", "items", "results", "data", "array")
RECORD_KEYS = ("description", "id")

STRATEGY_ARRAY = "array"
STRATEGY_SINGLE_RECORD = "single_record"
STRATEGY_NESTED = "nested"

_EXHAUSTED = object()


def wrapper_strategy(key: str) -> str:
    """Return the strategy label for an array found under a wrapper key."""
    return f"wrapper:{key}"


class SummaryIdGenerator:
    """Batch-scoped generator of unique summary ids.

    Each instance combines a random batch token with a monotonic counter, so
    ids are unique within the batch. Ids already taken by upstream records are
    skipped. Create one instance per normalization call.

    Example:
        >>> generator = SummaryIdGenerator(token="b1")
        >>> generator.next_id()
        'tc-b1-1'
    """

    def __init__(self, token: Optional[str] = None, taken: Iterable[str] = ()):
        self._token = token or uuid.uuid4().hex[:8]
        self._counter = itertools.count(1)
        self._taken = set(taken)

    def reserve(self, ids: Iterable[str]) -> None:
        """Mark ids as used so they are never generated."""
        self._taken.update(ids)

    def next_id(self) -> str:
        while True:
            candidate = f"tc-{self._token}-{next(self._counter)}"
            if candidate not in self._taken:
                self._taken.add(candidate)
                return candidate


class NormalizedBatch(BaseModel):
    """Summaries located in a parsed value.

    Attributes:
        summaries: Ordered summaries, each with an id
        strategy: Search strategy that located the array
        dropped_elements: Elements that were neither objects nor strings
    """

    summaries: list[TestCaseSummary] = Field(default_factory=list)
    strategy: str = STRATEGY_ARRAY
    dropped_elements: int = Field(0, ge=0)


def locate_array(parsed: Any, preview_chars: int = DEFAULT_PREVIEW_CHARS) -> tuple[list, str]:
    """Find the intended array of records in a parsed JSON value.

    Args:
        parsed: Any value produced by ``json.loads``
        preview_chars: Bound on the diagnostic preview in a ShapeError

    Returns:
        Tuple of (the array, strategy label)

    Raises:
        ShapeError: If no array can be located
    """
    if isinstance(parsed, list):
        return parsed, STRATEGY_ARRAY

    if isinstance(parsed, dict):
        for key in WRAPPER_KEYS:
            if isinstance(parsed.get(key), list):
                return parsed[key], wrapper_strategy(key)

        if any(key in parsed for key in RECORD_KEYS):
            return [parsed], STRATEGY_SINGLE_RECORD

        nested = _first_nested_array(parsed)
        if nested is not None:
            return nested, STRATEGY_NESTED

    dumped = make_preview(_dump(parsed), preview_chars)
    raise ShapeError(
        f"Expected an array of test cases, got {type(parsed).__name__}: {dumped}",
        preview=dumped,
    )


def _first_nested_array(value: dict) -> Optional[list]:
    # Iterative depth-first walk, children visited in insertion order
    pending = [iter(value.values())]
    while pending:
        child = next(pending[-1], _EXHAUSTED)
        if child is _EXHAUSTED:
            pending.pop()
        elif isinstance(child, list):
            return child
        elif isinstance(child, dict):
            pending.append(iter(child.values()))
    return None


def _dump(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError, RecursionError):
        return type(value).__name__


def normalize(
    parsed: Any,
    requested_framework: str,
    *,
    id_generator: Optional[SummaryIdGenerator] = None,
    preview_chars: int = DEFAULT_PREVIEW_CHARS,
    correlation_id: Optional[str] = None,
) -> NormalizedBatch:
    """Turn a parsed JSON value of unknown shape into test-case summaries.

    Records keep every field they carry. Only ``id`` and ``framework`` are
    filled in when missing: ids come from ``id_generator`` and the framework
    defaults to ``requested_framework``. Plain strings become records with
    only a description. Other element types (numbers, booleans, null, nested
    arrays) are dropped and counted.

    Args:
        parsed: Value produced by ``json.loads``
        requested_framework: Framework requested for the batch
        id_generator: Generator for missing ids; a fresh one is used if omitted
        preview_chars: Bound on the diagnostic preview in a ShapeError
        correlation_id: Optional correlation ID for log tracing

    Returns:
        NormalizedBatch with the summaries, the strategy and the drop count

    Raises:
        ShapeError: If no array can be located
    """
    elements, strategy = locate_array(parsed, preview_chars)

    generator = id_generator or SummaryIdGenerator()
    generator.reserve(
        str(element["id"]) for element in elements if isinstance(element, dict) and _has_id(element)
    )

    summaries: list[TestCaseSummary] = []
    dropped = 0
    for element in elements:
        if isinstance(element, str):
            record: dict[str, Any] = {"description": element}
        elif isinstance(element, dict):
            record = dict(element)
        else:
            dropped += 1
            continue

        if not _has_id(record):
            record["id"] = generator.next_id()
        elif not isinstance(record["id"], str):
            record["id"] = str(record["id"])

        if record.get("framework") is None:
            record["framework"] = requested_framework

        summaries.append(TestCaseSummary.model_validate(record))

    if dropped:
        log_warning(
            logger,
            "normalizer_dropped_elements",
            correlation_id=correlation_id,
            dropped_elements=dropped,
            total_elements=len(elements),
            strategy=strategy,
        )

    return NormalizedBatch(summaries=summaries, strategy=strategy, dropped_elements=dropped)


def _has_id(record: dict) -> bool:
    return record.get("id") not in (None, "")

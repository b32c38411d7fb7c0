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
"""Thread-safe in-memory metrics collector."""

import logging
import threading

from casegen.utils.logging_helper import log_info

logger = logging.getLogger(__name__)

COUNTERS = (
    "summaries_requested",
    "summaries_succeeded",
    "recovery_repairs",
    "dropped_elements",
    "empty_responses",
    "parse_failures",
    "shape_errors",
    "code_requests",
    "completion_requests",
    "llm_errors",
)


class MetricsCollector:
    """Thread-safe in-memory counters for generation and recovery outcomes.

    Only the names in ``COUNTERS`` are accepted, so a typo at a call site
    fails loudly instead of creating a new counter.

    Attributes:
        _lock: Lock protecting counter updates
        _counters: Counter names mapped to current values
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, int] = dict.fromkeys(COUNTERS, 0)

    def increment(self, counter_name: str, delta: int = 1) -> None:
        """Increment a counter by the specified amount.

        Args:
            counter_name: Name of counter to increment
            delta: Amount to increment by (default: 1)

        Raises:
            ValueError: If counter_name is unknown
        """
        with self._lock:
            if counter_name not in self._counters:
                raise ValueError(f"Unknown counter: {counter_name}")

            self._counters[counter_name] += delta
            new_value = self._counters[counter_name]

        # Log outside lock to avoid holding it during I/O
        log_info(logger, "metric_updated", counter=counter_name, value=new_value, delta=delta)

    def get_all(self) -> dict[str, int]:
        """Return a snapshot copy of all counter values."""
        with self._lock:
            return self._counters.copy()

    def reset(self) -> None:
        """Reset all counters to zero. Primarily useful for testing."""
        with self._lock:
            for key in self._counters:
                self._counters[key] = 0

        log_info(logger, "metrics_reset")


_metrics = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    """Return the process-wide MetricsCollector."""
    return _metrics

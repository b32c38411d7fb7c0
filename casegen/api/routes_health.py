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
"""Health check and metrics endpoints."""

from fastapi import APIRouter

from casegen.utils.metrics import get_metrics_collector

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.get(
    "/v1/metrics/basic",
    summary="Get basic operational metrics",
    description=(
        "Returns in-memory counters for test generation and completion recovery. "
        "Read-only, no authentication.\n\n"
        "**Metrics Tracked:**\n"
        "- summaries_requested / summaries_succeeded: test-case suggestion calls\n"
        "- recovery_repairs: completions that only parsed after JSON repair\n"
        "- dropped_elements: array elements discarded during recovery\n"
        "- empty_responses, parse_failures, shape_errors: unrecoverable completions\n"
        "- code_requests, completion_requests: test-code and relay calls\n"
        "- llm_errors: LLM provider API errors\n\n"
        "Counters reset on service restart."
    ),
    response_model=dict,
)
def get_basic_metrics() -> dict:
    """Return a snapshot of the operational counters."""
    return get_metrics_collector().get_all()

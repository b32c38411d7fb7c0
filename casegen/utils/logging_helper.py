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
"""Structured logging helpers.

Every event is emitted as one JSON object with an ``event`` name and a
``correlation_id``. String values are redacted before they are written, so API
keys, bearer tokens and labeled prompts never reach the log stream. Raw model
completions are never passed to these helpers; callers log lengths instead.
"""

import json
import logging
import re
import uuid
from typing import Any

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_REDACTIONS = [
    (r'(api[_-]?key["\s:=]+)\S+', r"\1[REDACTED]"),
    (r'(["\']api[_-]?key["\']\s*:\s*["\'])[^"\'\n\r]+?(["\'])', r"\1[REDACTED]\2"),
    (r"(bearer\s+)[a-zA-Z0-9_.-]+", r"\1[REDACTED]"),
    (r'(token["\s:=]+)\S+', r"\1[REDACTED]"),
    (r'(["\']token["\']\s*:\s*["\'])[^"\'\n\r]+?(["\'])', r"\1[REDACTED]\2"),
    (r'(authorization["\s:]+)[^\r\n]+', r"\1[REDACTED]"),
    (r'(x-api-key["\s:]+)[^\r\n]+', r"\1[REDACTED]"),
    (r'(["\'](?:secret|key|password|apikey)["\']\s*:\s*["\'])[^"\'\n\r]+?(["\'])', r"\1[REDACTED]\2"),
    (r"sk-(?:ant-)?[A-Za-z0-9_-]{8,}", "[REDACTED]"),
    (r"AIza[0-9A-Za-z_-]{20,}", "[REDACTED]"),
    # Labeled prompts
    (r'(prompt["\s:=]+)[^\n]+', r"\1[REDACTED]"),
]


def configure_logging(debug: bool = False) -> None:
    """Configure root logging for the service.

    Args:
        debug: Log at DEBUG level when True, INFO otherwise
    """
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO, format=LOG_FORMAT)


def get_correlation_id(correlation_id: str | None = None) -> str:
    """Return the given correlation ID, or a new one when it is missing.

    Args:
        correlation_id: Correlation ID supplied by the caller, if any

    Returns:
        Correlation ID as a string
    """
    if correlation_id:
        return correlation_id
    return str(uuid.uuid4())


def redact_sensitive_data(message: str) -> str:
    """Replace API keys, tokens, auth headers and labeled prompts with [REDACTED].

    Args:
        message: Log message that may contain sensitive data

    Returns:
        Sanitized message
    """
    for pattern, replacement in _REDACTIONS:
        message = re.sub(pattern, replacement, message, flags=re.IGNORECASE)
    return message


def log_structured(
    logger: logging.Logger,
    level: int,
    event: str,
    correlation_id: str | None = None,
    **context: Any,
) -> None:
    """Log a structured message with consistent format.

    Args:
        logger: Logger instance to use
        level: Log level (logging.INFO, logging.ERROR, etc.)
        event: Event name describing what happened
        correlation_id: Correlation ID for tracing; generated when missing
        **context: Additional context fields to include
    """
    log_data: dict[str, Any] = {
        "event": event,
        "correlation_id": get_correlation_id(correlation_id),
    }

    for key, value in context.items():
        if isinstance(value, str):
            log_data[key] = redact_sensitive_data(value)
        else:
            log_data[key] = value

    try:
        # Redact again to catch values stringified during serialization
        log_message = redact_sensitive_data(json.dumps(log_data, default=str))
    except (TypeError, ValueError):
        fallback_message = " ".join(f"{k}={v}" for k, v in log_data.items())
        log_message = redact_sensitive_data(fallback_message)

    logger.log(level, log_message)


def log_info(
    logger: logging.Logger, event: str, correlation_id: str | None = None, **context: Any
) -> None:
    """Log an informational structured message."""
    log_structured(logger, logging.INFO, event, correlation_id=correlation_id, **context)


def log_warning(
    logger: logging.Logger, event: str, correlation_id: str | None = None, **context: Any
) -> None:
    """Log a warning structured message."""
    log_structured(logger, logging.WARNING, event, correlation_id=correlation_id, **context)


def log_error(
    logger: logging.Logger,
    event: str,
    correlation_id: str | None = None,
    error: Exception | None = None,
    **context: Any,
) -> None:
    """Log an error structured message.

    Args:
        logger: Logger instance to use
        event: Event name describing what happened
        correlation_id: Correlation ID for tracing
        error: Optional exception that occurred; its type and redacted
            message are added to the context
        **context: Additional context fields
    """
    if error is not None:
        context["error_type"] = type(error).__name__
        context["error_message"] = redact_sensitive_data(str(error))

    log_structured(logger, logging.ERROR, event, correlation_id=correlation_id, **context)

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
"""Exceptions raised while recovering test cases from a model completion."""

from casegen.models.test_cases import FailureKind

# Default bound on diagnostic previews of raw model output
DEFAULT_PREVIEW_CHARS = 200

_ELLIPSIS = "..."


def make_preview(text: str | None, limit: int = DEFAULT_PREVIEW_CHARS) -> str:
    """Return at most ``limit`` characters of ``text`` for diagnostics.

    Args:
        text: Text to preview, may be None
        limit: Maximum number of characters kept from ``text``

    Returns:
        The leading part of the text, suffixed with "..." when it was cut
    """
    if not text:
        return ""
    if limit < 1:
        return _ELLIPSIS
    if len(text) <= limit:
        return text
    return text[:limit] + _ELLIPSIS


class RecoveryError(Exception):
    """Base exception for terminal recovery failures.

    Attributes:
        kind: Failure classification
        message: Human-readable cause
        preview: Bounded preview of the original text
    """

    kind: FailureKind

    def __init__(self, message: str, preview: str = ""):
        super().__init__(message)
        self.message = message
        self.preview = preview


class EmptyResponseError(RecoveryError):
    """Raised when the provider returned no text at all."""

    kind = FailureKind.EMPTY_RESPONSE


class ParseFailureError(RecoveryError):
    """Raised when the text is not valid JSON even after repair.

    Attributes:
        repair_preview: Bounded preview of the repaired candidate
    """

    kind = FailureKind.PARSE_FAILURE

    def __init__(self, message: str, preview: str = "", repair_preview: str = ""):
        super().__init__(message, preview)
        self.repair_preview = repair_preview


class ShapeError(RecoveryError):
    """Raised when parsed JSON contains no locatable array of records."""

    kind = FailureKind.SHAPE_ERROR

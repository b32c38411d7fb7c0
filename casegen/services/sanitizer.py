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
"""Markdown fence removal for raw model completions."""

import re

FENCE = "```"

# Opening fence with an optional language tag on the same line (```json, ```ts, ...)
_OPENING_FENCE = re.compile(r"```[A-Za-z0-9_+.-]*[ \t]*(?:\r?\n)?")

_STRUCTURE_OPENERS = frozenset('[{"')
_STRUCTURE_CLOSERS = frozenset(']}"')


def sanitize(raw: str) -> str:
    """Strip the outer markdown code fence and surrounding whitespace.

    At most one opening fence and one closing fence are removed, and only at
    the outer boundary of the payload: the opening fence is removed (with any
    prose before it) when nothing structural precedes it, and the closing
    fence is removed (with any prose after it) when nothing structural follows
    it. Backticks inside string values are left alone.

    Args:
        raw: Raw completion text

    Returns:
        The text with the outer fence removed and whitespace trimmed. Text
        without fences is only trimmed.

    Example:
        >>> sanitize('```json\\n[{"id": "a"}]\\n```')
        '[{"id": "a"}]'
    """
    text = raw

    opening = _OPENING_FENCE.search(text)
    if opening is not None and not _has_any(text[: opening.start()], _STRUCTURE_OPENERS):
        text = text[opening.end():]

    closing = text.rfind(FENCE)
    if closing != -1 and not _has_any(text[closing + len(FENCE):], _STRUCTURE_CLOSERS):
        text = text[:closing]

    return text.strip()


def _has_any(text: str, chars: frozenset) -> bool:
    return any(ch in chars for ch in text)

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
"""Heuristic repair of truncated or malformed JSON arrays.

Model completions are supposed to be a JSON array, but in practice they are
cut off at the token limit, surrounded by prose, or carry trailing commas.
The functions here turn such text into a best-effort candidate that a JSON
parser can accept. They never raise: the caller parses the candidate and
decides whether the failure is terminal.

All scans share one lexical model: a double quote toggles string state, a
backslash inside a string literal escapes the next character, and structural
characters are only counted outside string literals. A backslash outside a
string is an ordinary character.
"""

import re
from typing import Optional

_OPENERS = frozenset("[{")
_CLOSERS = frozenset("]}")
_CLOSER_FOR = {"[": "]", "{": "}"}
_OPENER_FOR = {"]": "[", "}": "{"}
_STRING_TERMINATORS = frozenset(",}]")
_WHITESPACE = " \t\r\n"

# Fallback used when no array opens outside a string literal
_GREEDY_ARRAY = re.compile(r"\[[\s\S]*\]")


def _scan(text: str) -> tuple[list[tuple[int, str]], Optional[int]]:
    """Lex ``text`` into the characters that matter outside string literals.

    String contents are skipped; each unescaped quote delimiting a string is
    kept as a ``"`` entry so callers can tell that a value sits between two
    structural characters.

    Returns:
        Tuple of (positions and characters outside string literals, index of
        the opening quote of an unterminated string or None)
    """
    structural: list[tuple[int, str]] = []
    string_start: Optional[int] = None
    escaped = False

    for index, char in enumerate(text):
        if string_start is None:
            if char == '"':
                string_start = index
            structural.append((index, char))
            continue
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == '"':
            string_start = None
            structural.append((index, char))

    return structural, string_start


def _is_escaped(text: str, index: int) -> bool:
    """Return True if the character at ``index`` follows an odd backslash run."""
    backslashes = 0
    position = index - 1
    while position >= 0 and text[position] == "\\":
        backslashes += 1
        position -= 1
    return backslashes % 2 == 1


def _array_span(text: str) -> tuple[Optional[int], Optional[int]]:
    """Locate the first array literal that opens outside a string.

    Returns:
        Tuple of (start index, end index). Start is None when no array opens
        outside a string; end is None when the array never closes.
    """
    structural, _ = _scan(text)
    start: Optional[int] = None
    depth = 0

    for index, char in structural:
        if char == "[":
            if start is None:
                start = index
            depth += 1
        elif char == "]" and start is not None:
            depth -= 1
            if depth == 0:
                return start, index

    return start, None


def extract_balanced_array(text: str) -> Optional[str]:
    """Return the first complete, balanced array literal in ``text``.

    Brackets, commas and quotes inside string literals are inert, so nested
    arrays and values such as ``"see [docs]"`` do not mis-pair.

    Args:
        text: Text that may contain a JSON array among other content

    Returns:
        The array literal including both brackets, or None when no array
        closes before the end of the text
    """
    start, end = _array_span(text)
    if start is None or end is None:
        return None
    return text[start:end + 1]


def _candidate(text: str) -> str:
    """Pick the span of ``text`` that most likely holds the intended array."""
    start, end = _array_span(text)
    if start is not None and end is not None:
        return text[start:end + 1]
    if start is not None:
        # Truncated mid-array: keep everything after the opening bracket
        return text[start:]

    match = _GREEDY_ARRAY.search(text)
    if match is not None:
        return match.group(0)

    open_index = text.find("[")
    if open_index != -1:
        return text[open_index:]
    return text


def close_unterminated_string(text: str) -> str:
    """Close a string literal left open at the end of ``text``.

    The closing quote goes immediately before the first unescaped ``,``,
    ``}`` or ``]`` after the opening quote, or at the end of the text when
    there is none. A dangling escape at the end of the text is dropped so the
    inserted quote is not itself escaped.

    Args:
        text: Candidate JSON text

    Returns:
        The text with at most one quote inserted; unchanged when every string
        is terminated
    """
    _, string_start = _scan(text)
    if string_start is None:
        return text

    insert_at = len(text)
    for index in range(string_start + 1, len(text)):
        if text[index] in _STRING_TERMINATORS and not _is_escaped(text, index):
            insert_at = index
            break

    if insert_at == len(text) and _is_escaped(text, insert_at):
        text = text[:-1]
        insert_at -= 1

    previous = insert_at - 1
    if previous > string_start and text[previous] == '"' and not _is_escaped(text, previous):
        return text

    return text[:insert_at] + '"' + text[insert_at:]


def close_open_delimiters(text: str) -> str:
    """Append closers for every ``{`` and ``[`` left open outside strings.

    Closers are appended innermost first, after trimming trailing whitespace.
    Text that still ends inside a string literal is returned unchanged.

    Args:
        text: Candidate JSON text

    Returns:
        The text with missing closers appended
    """
    structural, string_start = _scan(text)
    if string_start is not None:
        return text

    stack: list[str] = []
    for _, char in structural:
        if char in _OPENERS:
            stack.append(char)
        elif char in _CLOSERS and stack and stack[-1] == _OPENER_FOR[char]:
            stack.pop()

    if not stack:
        return text
    return text.rstrip(_WHITESPACE) + "".join(_CLOSER_FOR[char] for char in reversed(stack))


def remove_trailing_commas(text: str) -> str:
    """Remove commas that precede ``}`` or ``]`` outside strings.

    Every comma in a run of commas and whitespace that ends at a closer is
    removed, so ``[1,,]`` becomes ``[1]`` in one pass. Whitespace between the
    commas and the closer is preserved.

    Args:
        text: Candidate JSON text

    Returns:
        The text without trailing commas
    """
    structural, _ = _scan(text)
    drop: set[int] = set()
    pending_commas: list[int] = []

    for index, char in structural:
        if char in _WHITESPACE:
            continue
        if char == ",":
            pending_commas.append(index)
            continue
        if char in _CLOSERS:
            drop.update(pending_commas)
        pending_commas = []

    if not drop:
        return text
    return "".join(char for index, char in enumerate(text) if index not in drop)


def recover_array(text: str) -> str:
    """Produce a best-effort JSON array candidate from malformed text.

    Steps, in order:
        1. Extract the first balanced array literal outside strings
        2. Otherwise fall back to the tail of a truncated array, or a greedy
           ``[`` ... ``]`` match, or the whole text
        3. Close an unterminated string literal
        4. Append closers for delimiters still open
        5. Remove trailing commas
        6. Re-extract the balanced array so the result is stable

    Running the function on its own output returns the same text.

    Args:
        text: Sanitized model output that failed to parse

    Returns:
        Candidate JSON text; it may still fail to parse
    """
    candidate = _candidate(text)
    candidate = close_unterminated_string(candidate)
    candidate = close_open_delimiters(candidate)
    candidate = remove_trailing_commas(candidate)
    return extract_balanced_array(candidate) or candidate


def drop_incomplete_tail(text: str) -> Optional[tuple[str, int]]:
    """Cut a truncated top-level array back to its last complete element.

    Used when repairing the dangling element in place did not produce valid
    JSON, for example when the cut fell between a key and its value.

    Args:
        text: Text containing a truncated JSON array

    Returns:
        Tuple of (closed array text, number of dropped elements), or None when
        the text holds no truncated top-level array
    """
    start, end = _array_span(text)
    if start is None or end is not None:
        return None

    structural, _ = _scan(text)
    stack: list[str] = []
    last_complete = start
    for index, char in structural:
        if index < start:
            continue
        if char in _OPENERS:
            stack.append(char)
        elif char in _CLOSERS and stack and stack[-1] == _OPENER_FOR[char]:
            stack.pop()
            if len(stack) == 1:
                last_complete = index
        elif char == "," and len(stack) == 1:
            # A scalar element ends at the top-level comma that follows it
            last_complete = max(last_complete, _last_non_space(text, start, index))

    kept = remove_trailing_commas(text[start:last_complete + 1].rstrip(_WHITESPACE + ",") + "]")
    tail = text[last_complete + 1:].strip(_WHITESPACE + ",")
    return kept, 1 if tail else 0


def _last_non_space(text: str, lower: int, index: int) -> int:
    position = index - 1
    while position > lower and text[position] in _WHITESPACE:
        position -= 1
    return position

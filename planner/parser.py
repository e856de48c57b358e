"""
Markdown response parser.

Turns a planning reply of the form

    # Header
    body text...
    **Which approach should we take?**
    1. **Option title** ⭐ RECOMMENDED
       explanation
    2. **Other option**
       explanation

into a PlanningQuestion. Pure and deterministic; anything it cannot recognise
ends up in the body rather than raising.
"""

import re
from typing import List, Optional, Tuple

from .models import Option, PlanningQuestion

DEFAULT_HEADER = "Planning Question"

_HEADER_RE = re.compile(r"^#\s+(.+)$")
_OPTION_RE = re.compile(r"^\s*(\d+)\s*[.)]\s*\*\*(.+?)\*\*(.*)$")
_PROMPT_RE = re.compile(r"\*\*([^*]+)\*\*\s*:?\s*$")
_MARKER_RE = re.compile(r"\s*(?:⭐\s*(?:\(?\s*(?i:recommended)\s*\)?)?|\(\s*(?i:recommended)\s*\)|\bRECOMMENDED\b)\s*")
_LEADING_SEP_RE = re.compile(r"^\s*(?:[-:–—]\s*)+")
_BULLET_RE = re.compile(r"^\s*[-*+]\s+")
_ANY_HEADER_RE = re.compile(r"^#{1,6}\s")
_STANDALONE_BOLD_RE = re.compile(r"^\s*\*\*[^*]+\*\*\s*:?\s*$")


def _split_marker(text: str) -> Tuple[str, bool]:
    """Remove a recommendation marker from text; report whether one was present."""
    cleaned, count = _MARKER_RE.subn(" ", text)
    return cleaned.strip(), count > 0


def _find_header(lines: List[str]) -> Tuple[Optional[str], int]:
    for i, line in enumerate(lines):
        m = _HEADER_RE.match(line)
        if m:
            return m.group(1).strip(), i
    return None, -1


def _collect_options(lines: List[str], start: int) -> Tuple[List[Option], int]:
    """Parse the option list beginning at `start`. Returns options and the first unused line."""
    options: List[Option] = []
    explicit: List[int] = []
    detached = False
    i = start
    while i < len(lines):
        m = _OPTION_RE.match(lines[i])
        if not m:
            break
        number, raw_title, rest = m.groups()
        title, title_marked = _split_marker(raw_title)
        rest, rest_marked = _split_marker(rest)
        if title_marked or rest_marked:
            explicit.append(len(options))

        desc_lines = []
        rest = _LEADING_SEP_RE.sub("", rest)
        if rest:
            desc_lines.append(rest)

        i += 1
        while i < len(lines) and not _OPTION_RE.match(lines[i]):
            line = lines[i]
            if not line.strip():
                j = i + 1
                while j < len(lines) and not lines[j].strip():
                    j += 1
                if j >= len(lines):
                    i = j
                    break
                nxt = lines[j]
                if not _OPTION_RE.match(nxt) and not nxt[:1].isspace() and not _BULLET_RE.match(nxt):
                    # Unindented prose after a blank line belongs to this option when
                    # another option follows it. After the last option it is only taken
                    # (one paragraph) if earlier options were written the same way.
                    k = _next_option(lines, j)
                    if k < 0:
                        if detached:
                            end = _paragraph_end(lines, j)
                            desc_lines.extend(_BULLET_RE.sub("", l).strip() for l in lines[j:end])
                            j = end
                        options.append(_make_option(number, title, desc_lines))
                        return _finish(options, explicit), j
                    desc_lines.extend(_BULLET_RE.sub("", l).strip() for l in lines[j:k])
                    detached = True
                    i = k
                    break
                i = j
                continue
            desc_lines.append(_BULLET_RE.sub("", line).strip())
            i += 1

        options.append(_make_option(number, title, desc_lines))

    return _finish(options, explicit), i


def _next_option(lines: List[str], start: int) -> int:
    """Index of the next option line before any header or standalone bold prompt, or -1."""
    for k in range(start, len(lines)):
        line = lines[k]
        if _OPTION_RE.match(line):
            return k
        if _ANY_HEADER_RE.match(line) or _STANDALONE_BOLD_RE.match(line):
            return -1
    return -1


def _paragraph_end(lines: List[str], start: int) -> int:
    k = start
    while k < len(lines) and lines[k].strip() and not _ANY_HEADER_RE.match(lines[k]):
        k += 1
    return k


def _make_option(number: str, title: str, desc_lines: List[str]) -> Option:
    return Option(id=number, title=title, description="\n".join(l for l in desc_lines if l).strip())


def _finish(options: List[Option], explicit: List[int]) -> List[Option]:
    if options:
        options[explicit[0] if explicit else 0].recommended = True
    return options


def parse_response(text: str) -> PlanningQuestion:
    """Split a markdown planning reply into header, body, option prompt and options."""
    text = (text or "").replace("\r\n", "\n").strip()
    lines = text.split("\n")

    header, header_idx = _find_header(lines)

    first_option = -1
    for i in range(header_idx + 1, len(lines)):
        if _OPTION_RE.match(lines[i]):
            first_option = i
            break

    if first_option < 0:
        body_lines = lines[header_idx + 1:]
        return PlanningQuestion(header=header or DEFAULT_HEADER, body_text="\n".join(body_lines).strip())

    options, _ = _collect_options(lines, first_option)

    # The bold sentence right before the list is the option prompt.
    option_prompt = ""
    body_end_line = first_option
    body_tail = ""
    j = first_option - 1
    while j > header_idx and not lines[j].strip():
        j -= 1
    if j > header_idx:
        m = _PROMPT_RE.search(lines[j])
        if m:
            option_prompt = m.group(1).strip()
            body_end_line = j
            body_tail = lines[j][:m.start()]

    body_lines = lines[header_idx + 1:body_end_line]
    if body_tail.strip():
        body_lines.append(body_tail)
    return PlanningQuestion(
        header=header or DEFAULT_HEADER,
        body_text="\n".join(body_lines).strip(),
        option_prompt=option_prompt,
        options=options,
    )

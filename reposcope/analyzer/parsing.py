from __future__ import annotations

import json
import re

_FENCE = re.compile(r"```[A-Za-z0-9_-]*[ \t]*\n?(.*?)(?:```|$)", re.S)
_TRAILING_COMMA = re.compile(r",\s*([}\]])")

_CLOSERS = {"{": "}", "[": "]"}

# Bound the number of re-parses on badly broken output.
MAX_REPAIR_CUTS = 200


class AnalysisParseError(ValueError):
    pass


def strip_code_fences(text: str) -> str:
    text = (text or "").strip()
    if "```" not in text:
        return text
    m = _FENCE.search(text)
    return m.group(1).strip() if m else text


def _scan(s: str):
    """
    Walks the text once, outside of strings only.
    Returns (open_stack, in_string, cuts) where each cut is (index, stack)
    and s[:index] + closers(stack) is a structurally complete prefix.
    """
    stack: list[str] = []
    cuts: list[tuple[int, list[str]]] = []
    in_string = False
    escape = False

    for i, ch in enumerate(s):
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append(ch)
            cuts.append((i + 1, list(stack)))
        elif ch in "}]":
            if stack:
                stack.pop()
            cuts.append((i + 1, list(stack)))
        elif ch == ",":
            cuts.append((i, list(stack)))

    return stack, in_string, cuts


def _close(prefix: str, stack: list[str], in_string: bool = False) -> str:
    out = prefix
    if in_string:
        out += '"'
    out = out.rstrip()
    if out.endswith(","):
        out = out[:-1]
    elif out.endswith(":"):
        out += " null"
    return out + "".join(_CLOSERS[c] for c in reversed(stack))


def _loads(text: str):
    try:
        return json.loads(text)
    except ValueError:
        return None


def repair_json(text: str) -> str:
    """
    Best-effort repair of model output that was cut off mid-object.
    Closes an open string, drops trailing commas and dangling keys, then
    appends the closing brackets in order. If the naive close still does
    not parse, backs off to the last complete element and closes there.
    """
    start = text.find("{")
    s = text[start:] if start != -1 else text
    s = _TRAILING_COMMA.sub(r"\1", s.strip())

    stack, in_string, cuts = _scan(s)
    candidate = _close(s, stack, in_string)
    if _loads(candidate) is not None:
        return candidate

    for idx, cut_stack in reversed(cuts[-MAX_REPAIR_CUTS:]):
        attempt = _TRAILING_COMMA.sub(r"\1", _close(s[:idx], cut_stack))
        if _loads(attempt) is not None:
            return attempt

    return candidate


def extract_json(text: str) -> dict:
    """
    Parses a JSON object out of a model reply: code fences, chatter around
    the object and truncated tails are all tolerated.
    """
    text = strip_code_fences(text)

    data = _loads(text)
    if isinstance(data, dict):
        return data

    start = text.find("{")
    end = text.rfind("}")
    if start == -1:
        raise AnalysisParseError("Model did not return JSON.")

    if end > start:
        data = _loads(text[start : end + 1])
        if isinstance(data, dict):
            return data

    data = _loads(repair_json(text[start:]))
    if isinstance(data, dict):
        return data
    raise AnalysisParseError("Failed to parse model response as JSON.")

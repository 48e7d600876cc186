"""
Helpers to pull a JSON object out of an LLM reply.

Models are asked to answer with "ONLY the JSON object" but regularly wrap it in
markdown fences, add a sentence before it, use smart quotes or leave trailing
commas. Everything here is best effort; callers decide what to do when
`AIResponseFormatError` is raised.
"""
import re
import json
import logging

logger = logging.getLogger(__name__)

FENCE_RE = re.compile(r"```(?:json|JSON)?\s*([\s\S]*?)\s*```")
TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")

THINKING_PATTERNS = [
    re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE),
    re.compile(r"\[THINKING\].*?\[/THINKING\]", re.DOTALL | re.IGNORECASE),
]

SMART_DOUBLE_QUOTES = "“”„«»"
SMART_SINGLE_QUOTES = "‘’‚"


class AIResponseFormatError(ValueError):
    """The AI reply could not be turned into the expected JSON object."""


def strip_thinking(text):
    """Remove reasoning blocks (<think>...</think>) some models prepend to their answer."""
    for pattern in THINKING_PATTERNS:
        text = pattern.sub("", text)
    text = re.sub(r"</?think>", "", text, flags=re.IGNORECASE)
    return text.strip()


def find_balanced_object(text):
    """Return the first balanced {...} block in `text`, ignoring braces inside strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            ch = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:index + 1]
        start = text.find("{", start + 1)
    return None


def extract_json_text(reply):
    text = strip_thinking(reply or "")

    fence = FENCE_RE.search(text)
    if fence and fence.group(1):
        text = fence.group(1).strip()

    if not text.startswith("{"):
        candidate = find_balanced_object(text)
        if candidate is None:
            first, last = text.find("{"), text.rfind("}")
            if first != -1 and last > first:
                candidate = text[first:last + 1]
        if candidate is not None:
            text = candidate
    return text


def sanitize_json_text(text):
    for quote in SMART_DOUBLE_QUOTES:
        text = text.replace(quote, '"')
    for quote in SMART_SINGLE_QUOTES:
        text = text.replace(quote, "'")
    return TRAILING_COMMA_RE.sub(r"\1", text)


def parse_ai_json(reply):
    """Parse the JSON object contained in an AI reply.

    Tries the extracted text as-is, then a sanitised copy (smart quotes,
    trailing commas). Raises AIResponseFormatError if neither parses to a dict.
    """
    text = extract_json_text(reply)
    candidates = [text]
    sanitized = sanitize_json_text(text)
    if sanitized != text:
        candidates.append(sanitized)

    last_error = None
    for candidate in candidates:
        try:
            parsed = json.loads(candidate, strict=False)
        except json.JSONDecodeError as e:
            last_error = e
            continue
        if isinstance(parsed, dict):
            return parsed
        last_error = TypeError(f"expected a JSON object, got {type(parsed).__name__}")

    logger.debug("Could not parse AI reply as JSON: %s", (reply or "")[:200])
    raise AIResponseFormatError(f"AI reply is not a valid JSON object: {last_error}")


def extract_string_field(reply, key):
    """Pull `"key": "..."` out of a reply that json.loads rejects.

    Returns the unescaped string value, or None when the key is absent.
    """
    text = sanitize_json_text(extract_json_text(reply))
    key_re = r'"%s"\s*:\s*"' % re.escape(key)
    patterns = [
        key_re + r'((?:[^"\\]|\\.)*)"\s*(?=[,}]|$)',
        # last field with unescaped quotes inside the value
        key_re + r'([\s\S]*)"\s*\}?\s*$',
        # unterminated value
        key_re + r'([\s\S]*)$',
    ]
    for pattern in patterns:
        match = re.search(pattern, text)
        if match:
            break
    else:
        return None
    raw = match.group(1)
    try:
        return json.loads(f'"{raw}"', strict=False)
    except json.JSONDecodeError:
        return raw.replace('\\n', '\n').replace('\\"', '"').replace('\\\\', '\\')

"""Parsing of the JSON ``content`` blob carried by Lark message events."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List

MENTION_PATTERN = re.compile(r"@_user_\d+")


def _load(content: str) -> Dict[str, Any]:
    try:
        parsed = json.loads(content or "{}")
    except (json.JSONDecodeError, TypeError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def strip_mentions(text: str) -> str:
    """Remove ``@_user_N`` placeholders and surrounding whitespace."""
    return MENTION_PATTERN.sub("", text).strip()


def _post_block(parsed: Dict[str, Any]) -> Dict[str, Any]:
    """Return the post body, unwrapping a locale block when present."""
    if "content" in parsed:
        return parsed
    for value in parsed.values():
        if isinstance(value, dict) and "content" in value:
            return value
    return {}


def _post_elements(parsed: Dict[str, Any]) -> List[Dict[str, Any]]:
    elements: List[Dict[str, Any]] = []
    for paragraph in _post_block(parsed).get("content") or []:
        if not isinstance(paragraph, list):
            continue
        elements.extend(elem for elem in paragraph if isinstance(elem, dict))
    return elements


def parse_text(content: str, message_type: str) -> str:
    """Return the user text of a message, mentions stripped.

    Posts concatenate their title and the text of their ``text`` and ``a``
    elements. Non-text messages yield an empty string.
    """
    parsed = _load(content)
    if message_type == "text":
        return strip_mentions(str(parsed.get("text", "")))
    if message_type == "post":
        block = _post_block(parsed)
        parts: List[str] = []
        title = block.get("title")
        if title:
            parts.append(str(title))
        for elem in _post_elements(parsed):
            if elem.get("tag") in ("text", "a") and elem.get("text"):
                parts.append(str(elem["text"]))
        return strip_mentions(" ".join(parts))
    return ""


def parse_file_key(content: str) -> str:
    return str(_load(content).get("file_key", "") or "")


def parse_image_key(content: str) -> str:
    return str(_load(content).get("image_key", "") or "")


def parse_post_image_keys(content: str) -> List[str]:
    """Return the ``image_key`` of every ``img`` element of a post, in order."""
    return [
        str(elem["image_key"])
        for elem in _post_elements(_load(content))
        if elem.get("tag") == "img" and elem.get("image_key")
    ]

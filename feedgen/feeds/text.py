"""
Text cleanup for feed fields.

Ad platforms reject markup, links and most emoji inside titles and
descriptions, and cap descriptions at 5000 characters.
"""

import re
from typing import Optional

MAX_TEXT_LENGTH = 5000
ELLIPSIS = "..."

TAG_PATTERN = re.compile(r"<[^>]*>")
URL_PATTERN = re.compile(r"(?:https?|ftp)://\S+", re.IGNORECASE)
EMOJI_PATTERN = re.compile(
    "["
    "\U0001F600-\U0001F64F"  # emoticons
    "\U0001F300-\U0001F5FF"  # symbols & pictographs
    "\U0001F680-\U0001F6FF"  # transport & map
    "\u2600-\u26FF"  # misc symbols
    "\u2700-\u27BF"  # dingbats
    "\uFE00-\uFE0F"  # variation selectors
    "\U0001F900-\U0001F9FF"  # supplemental symbols
    "\U0001FA70-\U0001FAFF"  # symbols & pictographs extended-A
    "\u200D"  # zero-width joiner
    "\u2388"
    "]"
)
# Characters XML 1.0 forbids even when escaped
XML_INVALID_PATTERN = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\uD800-\uDFFF\uFFFE\uFFFF]")
WHITESPACE_PATTERN = re.compile(r"\s+")
WORD_START_PATTERN = re.compile(r"(^|\s)(\S)")


def sanitize_text(text: Optional[str]) -> str:
    """
    Clean free text for inclusion in a feed field.

    Tags become spaces, URLs and emoji are dropped, characters XML cannot
    carry are removed, whitespace runs collapse to one space, and anything
    past 5000 characters is cut to 4997 plus "...".

    Example:
        >>> sanitize_text("<p>Soft   tee</p> 😀 https://x.io/a")
        'Soft tee'
    """
    if not text:
        return ""

    cleaned = TAG_PATTERN.sub(" ", text)
    cleaned = URL_PATTERN.sub("", cleaned)
    cleaned = EMOJI_PATTERN.sub("", cleaned)
    cleaned = strip_invalid_xml(cleaned)
    cleaned = WHITESPACE_PATTERN.sub(" ", cleaned).strip()

    if len(cleaned) > MAX_TEXT_LENGTH:
        cleaned = cleaned[:MAX_TEXT_LENGTH - len(ELLIPSIS)] + ELLIPSIS
    return cleaned


def to_proper_case(text: Optional[str]) -> str:
    """Lower-case the text, then upper-case the first character of every word."""
    if not text:
        return ""
    return WORD_START_PATTERN.sub(
        lambda m: m.group(1) + m.group(2).upper(),
        text.lower(),
    )


def strip_invalid_xml(text: str) -> str:
    """Remove control characters and code points not allowed in XML 1.0."""
    return XML_INVALID_PATTERN.sub("", text)

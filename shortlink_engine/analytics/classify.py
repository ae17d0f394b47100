"""
User-agent classification for click events.

Plain case-insensitive substring matching. Absent user agents classify as
"Unknown"; nothing here raises on odd input.
"""

from typing import Optional, Sequence, Tuple

from ..models import UNKNOWN

MOBILE = "Mobile"
TABLET = "Tablet"
DESKTOP = "Desktop"

# Order matters: many user agents carry several engine tokens.
BROWSER_TOKENS: Sequence[Tuple[str, str]] = (
    ("chrome", "Chrome"),
    ("firefox", "Firefox"),
    ("safari", "Safari"),
    ("edge", "Edge"),
    ("opera", "Opera"),
)
OTHER_BROWSER = "Other"


def device_class(user_agent: Optional[str]) -> str:
    if not user_agent:
        return UNKNOWN
    ua = user_agent.lower()
    if "mobile" in ua or "android" in ua or "iphone" in ua:
        return MOBILE
    if "tablet" in ua or "ipad" in ua:
        return TABLET
    return DESKTOP


def browser_class(user_agent: Optional[str]) -> str:
    if not user_agent:
        return UNKNOWN
    ua = user_agent.lower()
    for token, label in BROWSER_TOKENS:
        if token in ua:
            return label
    return OTHER_BROWSER

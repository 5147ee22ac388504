import re
from typing import Dict, Optional

from audiorelay.errors import InvalidInput


# Matches watch?v=<id>, /embed/<id>, /shorts/<id> and youtu.be/<id>.
VIDEO_ID_PATTERN = re.compile(r"(?:v=|/|youtu\.be/)([0-9A-Za-z_-]{11})")

DEFAULT_TITLE = "audio"


def extract_video_id(url: Optional[str]) -> str:
    """Return the 11-character video id embedded in ``url``.

    Raises InvalidInput when the url is missing or carries no id.
    """
    if not url or not url.strip():
        raise InvalidInput("URL required")
    match = VIDEO_ID_PATTERN.search(url.strip())
    if not match:
        raise InvalidInput("Invalid YouTube URL")
    return match.group(1)


def sanitize_title(title: Optional[str]) -> str:
    """Reduce a display title to a filename token: word characters joined by underscores."""
    cleaned = re.sub(r"[^\w\s]", "", title or DEFAULT_TITLE, flags=re.ASCII)
    cleaned = re.sub(r"\s+", "_", cleaned)
    return cleaned or DEFAULT_TITLE


def attachment_headers(title: Optional[str]) -> Dict[str, str]:
    return {
        "Content-Disposition": f'attachment; filename="{sanitize_title(title)}.mp3"',
        "Content-Type": "audio/mpeg",
    }

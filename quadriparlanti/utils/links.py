"""External link classification and embed URL helpers."""

import re
from typing import Optional
from urllib.parse import urlparse

from quadriparlanti.db.models import LinkType

YOUTUBE_PATTERNS = [
    re.compile(r"(?:youtube\.com/watch\?(?:.*&)?v=)([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtu\.be/([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtube\.com/embed/([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtube\.com/v/([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtube\.com/shorts/([a-zA-Z0-9_-]{11})"),
]
VIMEO_PATTERN = re.compile(r"vimeo\.com/(?:video/)?(\d+)")
DRIVE_PATTERNS = [
    re.compile(r"drive\.google\.com/file/d/([^/?#]+)"),
    re.compile(r"drive\.google\.com/open\?id=([^&#]+)"),
    re.compile(r"docs\.google\.com/\w+/d/([^/?#]+)"),
]


def is_valid_url(url: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def detect_link_type(url: str) -> LinkType:
    """Classify a URL by its host."""
    lower = url.lower()
    if "youtube.com" in lower or "youtu.be" in lower:
        return LinkType.YOUTUBE
    if "vimeo.com" in lower:
        return LinkType.VIMEO
    if "drive.google.com" in lower or "docs.google.com" in lower:
        return LinkType.DRIVE
    return LinkType.OTHER


def extract_youtube_id(url: str) -> Optional[str]:
    for pattern in YOUTUBE_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def extract_vimeo_id(url: str) -> Optional[str]:
    match = VIMEO_PATTERN.search(url)
    return match.group(1) if match else None


def extract_drive_id(url: str) -> Optional[str]:
    for pattern in DRIVE_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def get_embed_url(url: str, link_type: Optional[LinkType] = None) -> Optional[str]:
    """
    Player URL for embeddable links.

    Returns None for ``other`` links and for URLs whose id cannot be extracted.
    """
    link_type = link_type or detect_link_type(url)

    if link_type == LinkType.YOUTUBE:
        video_id = extract_youtube_id(url)
        return f"https://www.youtube.com/embed/{video_id}" if video_id else None
    if link_type == LinkType.VIMEO:
        video_id = extract_vimeo_id(url)
        return f"https://player.vimeo.com/video/{video_id}" if video_id else None
    if link_type == LinkType.DRIVE:
        file_id = extract_drive_id(url)
        return f"https://drive.google.com/file/d/{file_id}/preview" if file_id else None
    return None

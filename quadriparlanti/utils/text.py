"""Text helpers: slugs, school years and file names."""

import re
import unicodedata
from datetime import date
from typing import Optional

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"
SCHOOL_YEAR_PATTERN = r"^\d{4}-\d{2}$"


def slugify(text: str) -> str:
    """Kebab-case slug with accents removed ("Città d'arte" -> "citta-d-arte")."""
    if not text:
        return ""
    text = unicodedata.normalize("NFD", text.lower())
    text = "".join(c for c in text if unicodedata.category(c) != "Mn")
    text = re.sub(r"[^a-z0-9]+", "-", text)
    return text.strip("-")


def is_valid_slug(slug: str) -> bool:
    return bool(re.match(SLUG_PATTERN, slug or ""))


def is_valid_school_year(school_year: str) -> bool:
    """
    Validate a ``YYYY-YY`` school year.

    The start year must be within 2000-2099 and the second part must be the
    two-digit year following it ("2024-25", "2099-00").
    """
    if not school_year or not re.match(SCHOOL_YEAR_PATTERN, school_year):
        return False
    start, end = (int(part) for part in school_year.split("-"))
    return 2000 <= start <= 2099 and end == (start + 1) % 100


def current_school_year(today: Optional[date] = None) -> str:
    """School year containing ``today``; a school year starts in September."""
    today = today or date.today()
    start = today.year if today.month >= 9 else today.year - 1
    return f"{start}-{(start + 1) % 100:02d}"


def sanitize_file_name(file_name: str) -> str:
    """Replace every character outside ``[a-zA-Z0-9._-]`` with an underscore."""
    return re.sub(r"[^a-zA-Z0-9._-]", "_", file_name)


def is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()

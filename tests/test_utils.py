"""Tests for text, link and hashing helpers."""

from datetime import date, datetime, timezone

import pytest

from quadriparlanti.db.models import LinkType
from quadriparlanti.services.storage import StorageValidationError, storage_service
from quadriparlanti.utils.hashing import (
    SHORT_CODE_ALPHABET,
    generate_short_code,
    hash_ip,
    is_valid_short_code,
)
from quadriparlanti.utils.links import detect_link_type, get_embed_url
from quadriparlanti.utils.text import (
    current_school_year,
    is_valid_school_year,
    sanitize_file_name,
    slugify,
)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2024-25", True),
        ("2099-00", True),
        ("2024-26", False),
        ("1999-00", False),
        ("2024/25", False),
        ("24-25", False),
    ],
)
def test_school_year(value, expected):
    assert is_valid_school_year(value) is expected


def test_current_school_year_starts_in_september():
    assert current_school_year(date(2025, 9, 1)) == "2025-26"
    assert current_school_year(date(2026, 6, 30)) == "2025-26"


def test_slugify_strips_accents():
    assert slugify("Città d'arte e Natura") == "citta-d-arte-e-natura"
    assert slugify("  --  ") == ""


def test_sanitize_file_name():
    assert sanitize_file_name("relazione finale (v2).pdf") == "relazione_finale__v2_.pdf"


def test_short_code_shape():
    code = generate_short_code()
    assert len(code) == 6
    assert all(c in SHORT_CODE_ALPHABET for c in code)
    assert is_valid_short_code(code)
    assert not is_valid_short_code("abc")
    assert not is_valid_short_code("abc-12")


def test_hash_ip_is_salted_sha256():
    first = hash_ip("203.0.113.7", "salt-a")
    assert len(first) == 64
    assert first == hash_ip("203.0.113.7", "salt-a")
    assert first != hash_ip("203.0.113.7", "salt-b")


@pytest.mark.parametrize(
    "url,link_type,embed",
    [
        (
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            LinkType.YOUTUBE,
            "https://www.youtube.com/embed/dQw4w9WgXcQ",
        ),
        ("https://youtu.be/dQw4w9WgXcQ", LinkType.YOUTUBE, "https://www.youtube.com/embed/dQw4w9WgXcQ"),
        ("https://vimeo.com/76979871", LinkType.VIMEO, "https://player.vimeo.com/video/76979871"),
        (
            "https://drive.google.com/file/d/1AbC/view",
            LinkType.DRIVE,
            "https://drive.google.com/file/d/1AbC/preview",
        ),
        ("https://example.org/page", LinkType.OTHER, None),
    ],
)
def test_link_detection(url, link_type, embed):
    assert detect_link_type(url) == link_type
    assert get_embed_url(url) == embed


def test_storage_path_layout():
    now = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    path = storage_service.generate_storage_path("user-1", "mio file.pdf", None, now=now)
    assert path == f"user-1/draft/{int(now.timestamp() * 1000)}_mio_file.pdf"


def test_attachment_validation():
    assert storage_service.validate_attachment("image/png", 1024).value == "image"
    assert storage_service.validate_attachment("application/pdf", 1024).value == "pdf"
    with pytest.raises(StorageValidationError):
        storage_service.validate_attachment("application/zip", 1024)
    with pytest.raises(StorageValidationError):
        storage_service.validate_attachment("application/pdf", 10 * 1024 * 1024 + 1)

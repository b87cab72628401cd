"""Tests for the submission wizard steps."""

import pytest
from httpx import AsyncClient

from quadriparlanti.domain.submission_wizard import (
    WizardStep,
    next_step,
    previous_step,
    validate_step,
)
from quadriparlanti.domain.work_lifecycle import check_submission_ready

BASIC_INFO = {
    "title_it": "Le stagioni",
    "description_it": "Poesie e disegni della classe sulle quattro stagioni.",
    "class_name": "2B",
    "teacher_name": "Prof. Verdi",
    "school_year": "2024-25",
    "tags": ["poesia", "arte"],
}


def test_basic_info_valid():
    assert validate_step(WizardStep.BASIC_INFO, BASIC_INFO) == {}
    assert next_step(WizardStep.BASIC_INFO, BASIC_INFO) == WizardStep.CONTENT


def test_basic_info_errors_are_keyed_by_field():
    data = {**BASIC_INFO, "title_it": "ab", "school_year": "2024-26"}
    data.pop("class_name")
    errors = validate_step(WizardStep.BASIC_INFO, data)
    assert set(errors) == {"title_it", "school_year", "class_name"}
    assert errors["school_year"] == "School year must look like 2024-25"
    assert next_step(WizardStep.BASIC_INFO, data) is None


def test_basic_info_rejects_too_many_tags():
    data = {**BASIC_INFO, "tags": [f"tag{i}" for i in range(11)]}
    errors = validate_step(WizardStep.BASIC_INFO, data)
    assert errors == {"tags": "At most 10 tags are allowed"}


def test_content_step_is_optional_but_validates_items():
    assert validate_step(WizardStep.CONTENT, {}) == {}

    data = {
        "attachments": [
            {
                "file_name": "note.txt",
                "file_size_bytes": 100,
                "mime_type": "text/plain",
                "storage_path": "u/draft/1_note.txt",
            }
        ],
        "links": [{"url": "not a url"}],
    }
    errors = validate_step(WizardStep.CONTENT, data)
    assert "attachments.0" in errors
    assert errors["links.0.url"] == "Invalid URL"


def test_content_rejects_oversized_attachment():
    data = {
        "attachments": [
            {
                "file_name": "big.pdf",
                "file_size_bytes": 10 * 1024 * 1024 + 1,
                "mime_type": "application/pdf",
                "storage_path": "u/draft/1_big.pdf",
            }
        ]
    }
    errors = validate_step(WizardStep.CONTENT, data)
    assert "attachments.0.file_size_bytes" in errors


def test_themes_step_requires_one_theme():
    assert "theme_ids" in validate_step(WizardStep.THEMES, {"theme_ids": []})
    assert validate_step(WizardStep.THEMES, {"theme_ids": ["t1"]}) == {}


def test_review_step_revalidates_everything():
    errors = validate_step(WizardStep.REVIEW, {**BASIC_INFO, "theme_ids": []})
    assert list(errors) == ["theme_ids"]

    complete = {**BASIC_INFO, "theme_ids": ["t1"]}
    assert validate_step(WizardStep.REVIEW, complete) == {}
    assert next_step(WizardStep.REVIEW, complete) is None


def test_review_agrees_with_submission_check():
    data = {**BASIC_INFO, "title_it": "   ", "description_it": " " * 10, "theme_ids": ["x"]}
    errors = validate_step(WizardStep.REVIEW, data)
    report = check_submission_ready(data["title_it"], data["description_it"], 1)

    assert not report.ready
    assert set(errors) == {"title_it", "description_it"}
    assert sorted(errors.values()) == sorted(report.errors)

    padded = {**BASIC_INFO, "title_it": "  ab  ", "theme_ids": ["x"]}
    assert validate_step(WizardStep.REVIEW, padded) == {
        "title_it": "title_it must be at least 3 characters"
    }


def test_previous_step_always_allowed():
    assert previous_step(WizardStep.BASIC_INFO) is None
    assert previous_step(WizardStep.CONTENT) == WizardStep.BASIC_INFO
    assert previous_step(WizardStep.REVIEW) == WizardStep.THEMES


@pytest.mark.asyncio
async def test_validate_endpoint(client: AsyncClient, teacher_headers: dict):
    response = await client.post(
        "/v1/works/wizard/validate",
        headers=teacher_headers,
        json={"step": "basic_info", "data": BASIC_INFO},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["valid"] is True
    assert data["next_step"] == "content"
    assert data["previous_step"] is None

    response = await client.post(
        "/v1/works/wizard/validate",
        headers=teacher_headers,
        json={"step": "themes", "data": {}},
    )
    data = response.json()
    assert data["valid"] is False
    assert "theme_ids" in data["errors"]
    assert data["next_step"] is None
    assert data["previous_step"] == "content"

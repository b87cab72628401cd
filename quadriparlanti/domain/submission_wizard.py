"""
Four-step submission wizard.

The wizard only validates; the collected aggregate is persisted in a single
call by ``WorkService.create_work``.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ValidationError

from quadriparlanti.schemas.schemas import WizardBasicInfo, WizardContent, WizardThemes


class WizardStep(str, enum.Enum):
    BASIC_INFO = "basic_info"
    CONTENT = "content"
    THEMES = "themes"
    REVIEW = "review"


STEP_ORDER: list[WizardStep] = [
    WizardStep.BASIC_INFO,
    WizardStep.CONTENT,
    WizardStep.THEMES,
    WizardStep.REVIEW,
]

STEP_MODELS: dict[WizardStep, type[BaseModel]] = {
    WizardStep.BASIC_INFO: WizardBasicInfo,
    WizardStep.CONTENT: WizardContent,
    WizardStep.THEMES: WizardThemes,
}


def _field_errors(exc: ValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for error in exc.errors():
        loc = ".".join(str(part) for part in error["loc"]) or "__root__"
        message = error["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.setdefault(loc, message)
    return errors


def validate_step(step: WizardStep, data: dict) -> dict[str, str]:
    """
    Field-level errors for ``step``; an empty dict means the step is valid.

    The review step re-validates every earlier step.
    """
    if step == WizardStep.REVIEW:
        errors: dict[str, str] = {}
        for previous in STEP_ORDER[:-1]:
            errors.update(validate_step(previous, data))
        return errors

    model = STEP_MODELS[step]
    fields = {name: data[name] for name in model.model_fields if name in data}
    try:
        model.model_validate(fields)
    except ValidationError as exc:
        return _field_errors(exc)
    return {}


def next_step(step: WizardStep, data: dict) -> Optional[WizardStep]:
    """
    The step after ``step``, or None when the current step has errors or is last.
    """
    if validate_step(step, data):
        return None
    index = STEP_ORDER.index(step)
    if index + 1 >= len(STEP_ORDER):
        return None
    return STEP_ORDER[index + 1]


def previous_step(step: WizardStep) -> Optional[WizardStep]:
    """Going back is always allowed."""
    index = STEP_ORDER.index(step)
    return STEP_ORDER[index - 1] if index > 0 else None

"""Specialist definitions: the sub-agents the dispatcher can delegate to."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from config.prompts.specialists import build_executor_prompt, build_reasoner_prompt
from config.settings import Settings, get_settings


@dataclass(frozen=True)
class SpecialistSpec:
    """How to call one specialist and how to shape its result."""

    name: str
    display_name: str
    model_name: str
    build_prompt: Callable[[], str]
    result_key: str  # "analysis" | "result"
    input_label: str  # heading for the optional second argument
    completion_message: str
    temperature: float | None = None


def reasoner_spec(settings: Settings | None = None) -> SpecialistSpec:
    settings = settings or get_settings()
    return SpecialistSpec(
        name="reasoner",
        display_name="Reasoning specialist",
        model_name=settings.reasoner_model,
        build_prompt=build_reasoner_prompt,
        result_key="analysis",
        input_label="Context",
        completion_message="Deep analysis complete.",
        # Reasoning models ignore sampling parameters.
        temperature=None,
    )


def executor_spec(settings: Settings | None = None) -> SpecialistSpec:
    settings = settings or get_settings()
    return SpecialistSpec(
        name="executor",
        display_name="Execution specialist",
        model_name=settings.executor_model,
        build_prompt=build_executor_prompt,
        result_key="result",
        input_label="Requirements",
        completion_message="Task complete.",
        temperature=settings.temperature,
    )


def build_messages(spec: SpecialistSpec, task: str, extra: str | None = None) -> list[dict[str, str]]:
    """``[system persona, user task]`` with the optional section appended."""
    user = task.strip()
    if extra and extra.strip():
        user = f"{user}\n\n{spec.input_label}:\n{extra.strip()}"
    return [
        {"role": "system", "content": spec.build_prompt()},
        {"role": "user", "content": user},
    ]

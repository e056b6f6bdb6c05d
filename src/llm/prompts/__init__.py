# noqa
from src.llm.prompts.interview import (
    build_interview_system_prompt,
    build_closing_system_prompt,
)

__all__ = [
    "build_interview_system_prompt",
    "build_closing_system_prompt",
]

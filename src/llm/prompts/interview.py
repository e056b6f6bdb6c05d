"""
Prompts for the legacy interview.

The system prompt anchors the model to the current category and tells it how
far the interview has come:
- Category name and description (what to ask about)
- Questions asked so far against the category target
- Overall completion percentage

When every category is complete, a closing prompt is used instead so the
model keeps the conversation going without steering to a new topic.
"""

from typing import Optional

from src.domain.models.category import Category
from src.domain.models.progression import ProgressSnapshot
from src.domain.models.session import CategoryProgress

INTERVIEWER_PERSONA = """You are a warm, patient interviewer helping someone record their life story so that it can be preserved as a digital legacy for the people they love.

Guidelines:
- Ask exactly one question per reply
- Acknowledge what the person just shared in a sentence before asking
- Prefer concrete memories, names, places and feelings over abstractions
- Never repeat a question already asked in this conversation
- Keep replies under 80 words"""


def build_interview_system_prompt(
    category: Optional[Category],
    progress: Optional[CategoryProgress],
    snapshot: ProgressSnapshot,
    category_target: int = 15,
) -> str:
    """
    Build the system prompt for the next interviewer reply.

    Args:
        category: Current category, None in the terminal state
        progress: Progress row for the current category
        snapshot: Session progress before this turn is counted
        category_target: Resolved target for the current category

    Returns:
        System prompt string
    """
    if category is None:
        return build_closing_system_prompt(snapshot)

    asked = progress.questions_asked if progress else 0
    description = f"\n{category.description}" if category.description else ""

    return f"""{INTERVIEWER_PERSONA}

## Current Topic: {category.name}{description}

Questions answered in this topic: {asked} of {category_target}
Overall interview completion: {snapshot.progress_percentage}%

Stay within this topic. When the person drifts, gently bring them back to {category.name}."""


def build_closing_system_prompt(snapshot: ProgressSnapshot) -> str:
    """System prompt once every category has reached its target."""
    return f"""{INTERVIEWER_PERSONA}

## All Topics Covered

Every topic in the interview has been covered ({snapshot.progress_percentage}% complete).
Invite the person to add anything they feel is missing, or to go deeper on a memory they have already shared."""

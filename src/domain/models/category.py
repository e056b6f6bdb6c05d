"""Category domain model.

Categories are ordered topic buckets the interview walks through. They are
reference data: seeded from config/categories.yaml and never mutated by the
progression controller.
"""

from typing import Optional

from pydantic import BaseModel, Field


class Category(BaseModel):
    """An ordered topic bucket with a target number of questions.

    Attributes:
        - order_index: Total ordering; the only valid advancement order
        - target_questions: None means the configured default applies
    """

    id: str
    name: str
    description: str = ""
    target_questions: Optional[int] = Field(default=None, ge=1)
    order_index: int

    model_config = {"from_attributes": True}

from pydantic import BaseModel, Field
from typing import Optional


class RequiredSection(BaseModel):
    """One entry of a job's section configuration."""
    section_type: str = Field(..., min_length=1)
    is_mandatory: bool = True
    requires_pdf: bool = False
    min_items: Optional[int] = Field(default=None, ge=0)

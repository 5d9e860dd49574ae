from pydantic import BaseModel, Field
from typing import List, Optional, Union


class SponsoredProjectCredits(BaseModel):
    """Activity 1: externally sponsored R&D projects"""
    only_pi: int = 0
    as_pi: int = 0
    as_co_pi: int = 0
    total: int = 0


class PatentCredits(BaseModel):
    """Activity 1b: granted patents"""
    only_inventor: int = 0
    as_inventor: int = 0
    as_co_inventor: int = 0
    total: int = 0


class ConsultancyCredits(BaseModel):
    """Activity 2: consultancy projects at or above the amount threshold"""
    count: int = 0
    total: int = 0


class PhdCredits(BaseModel):
    """Activity 3: awarded PhD supervisions"""
    sole_supervisor: int = 0
    first_supervisor: int = 0
    co_supervisor: int = 0
    total: int = 0


class JournalCredits(BaseModel):
    """Activity 4: unpaid SCI/Scopus journal papers"""
    first_author: int = 0
    co_author: int = 0
    total: int = 0


class ManualActivity(BaseModel):
    """Self-claimed activity for categories without an automatic rule"""
    id: Optional[Union[int, str]] = None
    description: str = ""
    claimed_points: float = 0


class CreditPointsBreakdown(BaseModel):
    """
    Derived credit points for one application.

    ``auto_total`` is computed from structured sections and is never taken from
    applicant input; ``manual_total`` sums the self-claimed activities.
    """
    sponsored_projects: SponsoredProjectCredits = Field(default_factory=SponsoredProjectCredits)
    patents: PatentCredits = Field(default_factory=PatentCredits)
    consultancy: ConsultancyCredits = Field(default_factory=ConsultancyCredits)
    phd_completed: PhdCredits = Field(default_factory=PhdCredits)
    journal_papers: JournalCredits = Field(default_factory=JournalCredits)
    auto_total: int = 0
    manual_activities: List[ManualActivity] = Field(default_factory=list)
    manual_total: float = 0
    grand_total: float = 0

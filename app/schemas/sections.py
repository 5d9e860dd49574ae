"""
Payload models for the section types the core understands.

Only the sections that feed scoring or submission checks have a model; every
other section type is stored as a free-form JSON object. Models allow extra
keys because the wizard sends display fields the core never reads.
"""

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationInfo,
    field_validator,
)
from typing import Annotated, List, Optional, Type, Union


# Section type names shared with job configuration
PERSONAL = "personal"
EDUCATION = "education"
EXPERIENCE = "experience"
SPONSORED_PROJECTS = "sponsored_projects"
CONSULTANCY_PROJECTS = "consultancy_projects"
PHD_SUPERVISION = "phd_supervision"
PUBLICATIONS_JOURNAL = "publications_journal"
PATENTS = "patents"
CREDIT_POINTS = "credit_points"
REFEREES = "referees"
DECLARATION = "declaration"
PHOTO = "photo"
SIGNATURE = "signature"
FINAL_DOCUMENTS = "final_documents"

IMAGE_ONLY_SECTIONS = frozenset({PHOTO, SIGNATURE})
PDF_ONLY_SECTIONS = frozenset({FINAL_DOCUMENTS})
DOCUMENT_SECTIONS = IMAGE_ONLY_SECTIONS | PDF_ONLY_SECTIONS

# Sections whose data is {"items": [...]}
LIST_SECTIONS = frozenset({
    EDUCATION,
    EXPERIENCE,
    SPONSORED_PROJECTS,
    CONSULTANCY_PROJECTS,
    PHD_SUPERVISION,
    PUBLICATIONS_JOURNAL,
    PATENTS,
    REFEREES,
})

REQUIRED_REFEREES = 2

# Keys of the credit_points payload that are always recomputed server-side
DERIVED_CREDIT_KEYS = frozenset({
    "autoCredits",
    "autoTotal",
    "manualTotal",
    "grandTotal",
    "totalCreditsClaimed",
})

DECLARATION_FLAGS = ("declareInfoTrue", "agreeToTerms", "detailsVerified")

NonNegativeInt = Annotated[StrictInt, Field(ge=0)]
# StrictFloat still accepts ints, but not bools or numeric strings
NonNegativeNumber = Annotated[StrictFloat, Field(ge=0)]


class _Entry(BaseModel):
    model_config = ConfigDict(extra="allow")


def _count_required(value: Optional[int], info: ValidationInfo, flag: str) -> Optional[int]:
    # Scoring reads the co-count only for this role
    if value is None and info.data.get(flag) is True:
        raise ValueError(f"{info.field_name} is required when {flag} is true")
    return value


class SponsoredProjectEntry(_Entry):
    isPrincipalInvestigator: StrictBool
    coInvestigatorCount: Optional[NonNegativeInt] = Field(default=None, validate_default=True)
    amount: Optional[NonNegativeNumber] = None

    @field_validator("coInvestigatorCount")
    @classmethod
    def require_count_for_pi(cls, value, info: ValidationInfo):
        return _count_required(value, info, "isPrincipalInvestigator")


class ConsultancyProjectEntry(_Entry):
    amount: NonNegativeNumber


class PhdSupervisionEntry(_Entry):
    status: StrictStr
    isFirstSupervisor: StrictBool
    coSupervisorCount: Optional[NonNegativeInt] = Field(default=None, validate_default=True)

    @field_validator("coSupervisorCount")
    @classmethod
    def require_count_for_first_supervisor(cls, value, info: ValidationInfo):
        return _count_required(value, info, "isFirstSupervisor")


class JournalPublicationEntry(_Entry):
    journalType: StrictStr
    isPaidJournal: StrictBool
    isFirstAuthor: StrictBool
    coAuthorCount: NonNegativeInt


class PatentEntry(_Entry):
    status: StrictStr
    isPrincipalInventor: StrictBool
    coInventorCount: Optional[NonNegativeInt] = Field(default=None, validate_default=True)

    @field_validator("coInventorCount")
    @classmethod
    def require_count_for_principal_inventor(cls, value, info: ValidationInfo):
        return _count_required(value, info, "isPrincipalInventor")


class RefereeEntry(_Entry):
    name: StrictStr = Field(..., min_length=1)
    email: Optional[StrictStr] = None


class SponsoredProjectsSection(_Entry):
    items: List[SponsoredProjectEntry] = []


class ConsultancyProjectsSection(_Entry):
    items: List[ConsultancyProjectEntry] = []


class PhdSupervisionSection(_Entry):
    items: List[PhdSupervisionEntry] = []


class JournalPublicationsSection(_Entry):
    items: List[JournalPublicationEntry] = []


class PatentsSection(_Entry):
    items: List[PatentEntry] = []


class RefereesSection(_Entry):
    items: List[RefereeEntry] = Field(default=[], max_length=REQUIRED_REFEREES)


class ManualActivityEntry(_Entry):
    id: Optional[Union[StrictInt, StrictStr]] = None
    activityId: Optional[Union[StrictInt, StrictStr]] = None
    description: StrictStr = Field(..., min_length=1)
    claimedPoints: NonNegativeNumber


class CreditPointsSection(_Entry):
    manualActivities: List[ManualActivityEntry] = []


class DeclarationSection(_Entry):
    """Flags may be saved unticked while drafting; submission requires all three."""
    declareInfoTrue: StrictBool = False
    agreeToTerms: StrictBool = False
    detailsVerified: StrictBool = False
    place: Optional[StrictStr] = None


SECTION_MODELS: dict[str, Type[BaseModel]] = {
    SPONSORED_PROJECTS: SponsoredProjectsSection,
    CONSULTANCY_PROJECTS: ConsultancyProjectsSection,
    PHD_SUPERVISION: PhdSupervisionSection,
    PUBLICATIONS_JOURNAL: JournalPublicationsSection,
    PATENTS: PatentsSection,
    REFEREES: RefereesSection,
    CREDIT_POINTS: CreditPointsSection,
    DECLARATION: DeclarationSection,
}

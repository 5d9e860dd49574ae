"""
Credit points scoring engine.

Converts structured application sections into a deterministic point
breakdown. Everything here is pure: no database, no clock, no randomness.
Items with a shape the rubric cannot read are skipped (0 points) instead of
raising, so a breakdown can always be derived from whatever is stored.

Rubric:
    Sponsored projects      only PI 5, PI with co-investigators 4, co-PI 2
    Patents (Granted)       only inventor 10, principal inventor 7, co-inventor 3
    Consultancy             3 per project with amount >= 500,000
    PhD (Awarded)           sole supervisor 10, first supervisor 7, co-supervisor 3
    Journals (SCI/Scopus,   first author: 1 author 7, 2 authors 6, 3+ authors 5
              unpaid)       co-author: 2 authors 3, otherwise 2
"""

from __future__ import annotations
from typing import Any, Iterable, Mapping, Optional

from app.schemas.credit_points import (
    ConsultancyCredits,
    CreditPointsBreakdown,
    JournalCredits,
    ManualActivity,
    PatentCredits,
    PhdCredits,
    SponsoredProjectCredits,
)
from app.schemas.sections import (
    CONSULTANCY_PROJECTS,
    CREDIT_POINTS,
    PATENTS,
    PHD_SUPERVISION,
    PUBLICATIONS_JOURNAL,
    SPONSORED_PROJECTS,
)

# Sections whose contents feed the automatic categories
SCORED_SECTIONS = frozenset({
    SPONSORED_PROJECTS,
    CONSULTANCY_PROJECTS,
    PHD_SUPERVISION,
    PUBLICATIONS_JOURNAL,
    PATENTS,
})

CONSULTANCY_AMOUNT_THRESHOLD = 500_000
SCI_SCOPUS_JOURNAL = "SCI / Scopus Journals"
PHD_AWARDED = "Awarded"
PATENT_GRANTED = "Granted"


def _iter_items(items: Any) -> Iterable[Mapping[str, Any]]:
    """Yield only the dict-shaped entries of a section item list."""
    if not isinstance(items, (list, tuple)):
        return
    for item in items:
        if isinstance(item, Mapping):
            yield item


def _flag(item: Mapping[str, Any], key: str) -> Optional[bool]:
    value = item.get(key)
    return value if isinstance(value, bool) else None


def _count(item: Mapping[str, Any], key: str) -> Optional[int]:
    """Non-negative whole number, or None when missing/malformed."""
    value = item.get(key)
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float) and value.is_integer() and value >= 0:
        return int(value)
    return None


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


class CreditPointsService:
    """Rubric implementation, one static method per category."""

    @staticmethod
    def calculate_sponsored_project_credits(items: Any) -> SponsoredProjectCredits:
        only_pi = as_pi = as_co_pi = 0
        for item in _iter_items(items):
            is_pi = _flag(item, "isPrincipalInvestigator")
            if is_pi is None:
                continue
            if not is_pi:
                as_co_pi += 2
                continue
            co_investigators = _count(item, "coInvestigatorCount")
            if co_investigators is None:
                continue
            if co_investigators == 0:
                only_pi += 5
            else:
                as_pi += 4
        return SponsoredProjectCredits(
            only_pi=only_pi, as_pi=as_pi, as_co_pi=as_co_pi,
            total=only_pi + as_pi + as_co_pi,
        )

    @staticmethod
    def calculate_consultancy_credits(items: Any) -> ConsultancyCredits:
        count = 0
        for item in _iter_items(items):
            amount = _number(item.get("amount"))
            if amount is not None and amount >= CONSULTANCY_AMOUNT_THRESHOLD:
                count += 1
        return ConsultancyCredits(count=count, total=count * 3)

    @staticmethod
    def calculate_phd_credits(items: Any) -> PhdCredits:
        sole = first = co = 0
        for item in _iter_items(items):
            if item.get("status") != PHD_AWARDED:
                continue
            is_first = _flag(item, "isFirstSupervisor")
            if is_first is None:
                continue
            if not is_first:
                co += 3
                continue
            co_supervisors = _count(item, "coSupervisorCount")
            if co_supervisors is None:
                continue
            if co_supervisors == 0:
                sole += 10
            else:
                first += 7
        return PhdCredits(
            sole_supervisor=sole, first_supervisor=first, co_supervisor=co,
            total=sole + first + co,
        )

    @staticmethod
    def calculate_journal_credits(items: Any) -> JournalCredits:
        first_author = co_author = 0
        for item in _iter_items(items):
            if item.get("journalType") != SCI_SCOPUS_JOURNAL:
                continue
            # Paid journals earn nothing; an unknown payment flag is not "unpaid"
            if _flag(item, "isPaidJournal") is not False:
                continue
            is_first = _flag(item, "isFirstAuthor")
            co_authors = _count(item, "coAuthorCount")
            if is_first is None or co_authors is None:
                continue

            total_authors = co_authors + 1
            if is_first:
                if total_authors == 1:
                    first_author += 7
                elif total_authors == 2:
                    first_author += 6
                else:
                    first_author += 5
            elif total_authors == 2:
                co_author += 3
            else:
                # Includes the impossible "co-author of a single-author paper"
                co_author += 2
        return JournalCredits(
            first_author=first_author, co_author=co_author,
            total=first_author + co_author,
        )

    @staticmethod
    def calculate_patent_credits(items: Any) -> PatentCredits:
        only = principal = co = 0
        for item in _iter_items(items):
            if item.get("status") != PATENT_GRANTED:
                continue
            is_principal = _flag(item, "isPrincipalInventor")
            if is_principal is None:
                continue
            if not is_principal:
                co += 3
                continue
            co_inventors = _count(item, "coInventorCount")
            if co_inventors is None:
                continue
            if co_inventors == 0:
                only += 10
            else:
                principal += 7
        return PatentCredits(
            only_inventor=only, as_inventor=principal, as_co_inventor=co,
            total=only + principal + co,
        )

    @staticmethod
    def normalize_manual_activities(raw: Any) -> list[ManualActivity]:
        """
        Coerce applicant-entered activities into ``ManualActivity`` records.

        ``activityId`` is accepted as an alias for ``id``; a non-numeric
        ``claimedPoints`` counts as 0.
        """
        activities = []
        for item in _iter_items(raw):
            activity_id = item.get("id", item.get("activityId"))
            if not isinstance(activity_id, (int, str)) or isinstance(activity_id, bool):
                activity_id = None
            description = item.get("description")
            points = _number(item.get("claimedPoints"))
            activities.append(ManualActivity(
                id=activity_id,
                description=description if isinstance(description, str) else "",
                claimed_points=points if points is not None else 0,
            ))
        return activities

    @staticmethod
    def score(
        sponsored_projects: Any = None,
        consultancy_projects: Any = None,
        phd_supervision: Any = None,
        publications_journal: Any = None,
        patents: Any = None,
        manual_activities: Any = None,
    ) -> CreditPointsBreakdown:
        """Compute the full breakdown from the five item lists and manual entries."""
        sponsored = CreditPointsService.calculate_sponsored_project_credits(sponsored_projects)
        consultancy = CreditPointsService.calculate_consultancy_credits(consultancy_projects)
        phd = CreditPointsService.calculate_phd_credits(phd_supervision)
        journals = CreditPointsService.calculate_journal_credits(publications_journal)
        patent = CreditPointsService.calculate_patent_credits(patents)

        auto_total = (
            sponsored.total + patent.total + consultancy.total + phd.total + journals.total
        )

        manual = CreditPointsService.normalize_manual_activities(manual_activities)
        manual_total = sum(activity.claimed_points for activity in manual)

        return CreditPointsBreakdown(
            sponsored_projects=sponsored,
            patents=patent,
            consultancy=consultancy,
            phd_completed=phd,
            journal_papers=journals,
            auto_total=auto_total,
            manual_activities=manual,
            manual_total=manual_total,
            grand_total=auto_total + manual_total,
        )

    @staticmethod
    def calculate_for_sections(sections: Optional[Mapping[str, Any]]) -> CreditPointsBreakdown:
        """
        Compute the breakdown from an application's stored ``sections`` map.

        List sections keep their entries under ``data.items``; manual activities
        live under ``credit_points.data.manualActivities``.
        """
        sections = sections or {}

        def section_data(section_type: str) -> Mapping[str, Any]:
            record = sections.get(section_type)
            if not isinstance(record, Mapping):
                return {}
            data = record.get("data")
            return data if isinstance(data, Mapping) else {}

        return CreditPointsService.score(
            sponsored_projects=section_data(SPONSORED_PROJECTS).get("items"),
            consultancy_projects=section_data(CONSULTANCY_PROJECTS).get("items"),
            phd_supervision=section_data(PHD_SUPERVISION).get("items"),
            publications_journal=section_data(PUBLICATIONS_JOURNAL).get("items"),
            patents=section_data(PATENTS).get("items"),
            manual_activities=section_data(CREDIT_POINTS).get("manualActivities"),
        )


# Global instance
credit_points_service = CreditPointsService()

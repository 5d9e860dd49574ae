"""
Integration tests for the applicant side of the application lifecycle.

Covers:
  POST   /api/v1/applications/
  GET    /api/v1/applications/
  GET    /api/v1/applications/{id}
  PUT    /api/v1/applications/{id}/sections/{section_type}
  POST   /api/v1/applications/{id}/sections/{section_type}/document
  DELETE /api/v1/applications/{id}/sections/{section_type}/document
  GET    /api/v1/applications/{id}/credit-points
  GET    /api/v1/applications/{id}/readiness
  POST   /api/v1/applications/{id}/submit
  POST   /api/v1/applications/{id}/withdraw
  GET    /api/v1/applications/{id}/receipt
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import AuditAction, AuditLog
from app.models.job import Job
from app.services.application_service import SUBMISSION_TASKS
from tests.factories import JobFactory

BASE = "/api/v1/applications"

PDF_BYTES = b"%PDF-1.7\n1 0 obj\n<<>>\nendobj\n%%EOF"

REQUIRED_PAYLOADS = {
    "personal": {"fullName": "Asha Candidate", "dateOfBirth": "1988-04-12"},
    "education": {"items": [{"degree": "PhD", "institute": "IISc", "year": 2016}]},
    "referees": {"items": [
        {"name": "Prof. A. Rao", "email": "rao@example.edu"},
        {"name": "Dr. B. Sen", "email": "sen@example.edu"},
    ]},
    "declaration": {"declareInfoTrue": True, "agreeToTerms": True, "detailsVerified": True},
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
async def _create_draft(client: AsyncClient, headers: dict, job: Job) -> dict:
    response = await client.post(f"{BASE}/", json={"job_id": str(job.id)}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


async def _put_section(client: AsyncClient, headers: dict, application_id: str, section: str, data: dict):
    return await client.put(
        f"{BASE}/{application_id}/sections/{section}",
        json={"data": data},
        headers=headers,
    )


async def _fill_required(client: AsyncClient, headers: dict, application_id: str) -> None:
    for section, data in REQUIRED_PAYLOADS.items():
        response = await _put_section(client, headers, application_id, section, data)
        assert response.status_code == 200, response.text


async def _submitted(client: AsyncClient, headers: dict, job: Job) -> dict:
    draft = await _create_draft(client, headers, job)
    await _fill_required(client, headers, draft["id"])
    response = await client.post(f"{BASE}/{draft['id']}/submit", headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------
class TestDrafts:
    async def test_create_draft(self, async_client, applicant_headers, test_applicant, test_job):
        draft = await _create_draft(async_client, applicant_headers, test_job)

        assert draft["status"] == "draft"
        assert draft["application_number"] is None
        assert draft["user_id"] == str(test_applicant.id)
        assert draft["job_snapshot"]["title"] == test_job.title
        assert len(draft["job_snapshot"]["required_sections"]) == len(test_job.required_sections)
        assert [h["status"] for h in draft["status_history"]] == ["draft"]

    async def test_second_call_returns_same_draft(self, async_client, applicant_headers, test_job):
        first = await _create_draft(async_client, applicant_headers, test_job)
        second = await _create_draft(async_client, applicant_headers, test_job)
        assert first["id"] == second["id"]

    async def test_creation_is_audited_once(
        self, async_client, applicant_headers, test_job, db_session: AsyncSession
    ):
        draft = await _create_draft(async_client, applicant_headers, test_job)
        await _create_draft(async_client, applicant_headers, test_job)

        result = await db_session.execute(
            select(AuditLog).where(AuditLog.action == AuditAction.APPLICATION_CREATED)
        )
        logs = result.scalars().all()
        assert [str(log.resource_id) for log in logs] == [draft["id"]]

    async def test_unknown_job(self, async_client, applicant_headers):
        response = await async_client.post(
            f"{BASE}/", json={"job_id": "00000000-0000-0000-0000-000000000000"}, headers=applicant_headers
        )
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    async def test_closed_job(self, async_client, applicant_headers, test_job, db_session):
        test_job.application_end_date = datetime.now(timezone.utc) - timedelta(days=1)
        await db_session.flush()

        response = await async_client.post(
            f"{BASE}/", json={"job_id": str(test_job.id)}, headers=applicant_headers
        )
        assert response.status_code == 422
        assert response.json()["errors"][0]["field"] == "job"

    async def test_unpublished_job(self, async_client, applicant_headers, db_session):
        job = await JobFactory.create_async(db_session, status="closed")

        response = await async_client.post(f"{BASE}/", json={"job_id": str(job.id)}, headers=applicant_headers)
        assert response.status_code == 422
        assert response.json()["detail"] == "Applications for this position are closed"

    async def test_list_my_applications(self, async_client, applicant_headers, test_job):
        draft = await _create_draft(async_client, applicant_headers, test_job)

        response = await async_client.get(f"{BASE}/", headers=applicant_headers)
        assert response.status_code == 200
        rows = response.json()
        assert [row["id"] for row in rows] == [draft["id"]]
        assert rows[0]["job_title"] == test_job.title

    async def test_other_applicant_cannot_read(
        self, async_client, applicant_headers, other_applicant_headers, test_job
    ):
        draft = await _create_draft(async_client, applicant_headers, test_job)

        response = await async_client.get(f"{BASE}/{draft['id']}", headers=other_applicant_headers)
        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"

    async def test_reviewer_cannot_use_applicant_endpoints(self, async_client, reviewer_headers, test_job):
        response = await async_client.post(
            f"{BASE}/", json={"job_id": str(test_job.id)}, headers=reviewer_headers
        )
        assert response.status_code == 403


# ---------------------------------------------------------------------------
# Sections and scoring
# ---------------------------------------------------------------------------
class TestSections:
    async def test_put_replaces_data(self, async_client, applicant_headers, test_job):
        draft = await _create_draft(async_client, applicant_headers, test_job)
        await _put_section(async_client, applicant_headers, draft["id"], "personal",
                           {"fullName": "Asha", "phone": "123"})

        response = await _put_section(async_client, applicant_headers, draft["id"], "personal",
                                      {"fullName": "Asha C"})
        assert response.status_code == 200
        assert response.json()["data"] == {"fullName": "Asha C"}
        assert response.json()["saved_at"] is not None

    async def test_scored_section_triggers_rescore(self, async_client, applicant_headers, test_job):
        draft = await _create_draft(async_client, applicant_headers, test_job)

        await _put_section(async_client, applicant_headers, draft["id"], "sponsored_projects", {"items": [
            {"isPrincipalInvestigator": True, "coInvestigatorCount": 0},
            {"isPrincipalInvestigator": False},
        ]})
        await _put_section(async_client, applicant_headers, draft["id"], "publications_journal", {"items": [
            {"journalType": "SCI / Scopus Journals", "isPaidJournal": False,
             "isFirstAuthor": True, "coAuthorCount": 0},
        ]})

        response = await async_client.get(f"{BASE}/{draft['id']}/credit-points", headers=applicant_headers)
        assert response.status_code == 200
        breakdown = response.json()
        assert breakdown["sponsored_projects"]["total"] == 7
        assert breakdown["journal_papers"]["first_author"] == 7
        assert breakdown["auto_total"] == 14
        assert breakdown["grand_total"] == 14

    async def test_client_totals_are_ignored(self, async_client, applicant_headers, test_job):
        draft = await _create_draft(async_client, applicant_headers, test_job)

        response = await _put_section(async_client, applicant_headers, draft["id"], "credit_points", {
            "grandTotal": 1000,
            "autoTotal": 1000,
            "manualActivities": [{"id": 1, "description": "Conference organised", "claimedPoints": 2}],
        })
        assert response.status_code == 200
        assert "grandTotal" not in response.json()["data"]

        detail = (await async_client.get(f"{BASE}/{draft['id']}", headers=applicant_headers)).json()
        assert detail["credit_breakdown"]["auto_total"] == 0
        assert detail["credit_breakdown"]["manual_total"] == 2
        assert detail["credit_breakdown"]["grand_total"] == 2

    async def test_invalid_payload_is_rejected(self, async_client, applicant_headers, test_job):
        draft = await _create_draft(async_client, applicant_headers, test_job)

        response = await _put_section(async_client, applicant_headers, draft["id"], "patents", {"items": [
            {"status": "Granted", "isPrincipalInventor": True, "coInventorCount": -3},
        ]})
        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["sections"] == ["patents"]

    async def test_principal_investigator_needs_co_investigator_count(
        self, async_client, applicant_headers, test_job
    ):
        draft = await _create_draft(async_client, applicant_headers, test_job)

        response = await _put_section(async_client, applicant_headers, draft["id"], "sponsored_projects", {
            "items": [{"isPrincipalInvestigator": True}],
        })
        assert response.status_code == 422
        assert [e["field"] for e in response.json()["errors"]] == ["items.0.coInvestigatorCount"]

        detail = (await async_client.get(f"{BASE}/{draft['id']}", headers=applicant_headers)).json()
        assert "sponsored_projects" not in detail["sections"]

        response = await _put_section(async_client, applicant_headers, draft["id"], "sponsored_projects", {
            "items": [{"isPrincipalInvestigator": True, "coInvestigatorCount": 0}],
        })
        assert response.status_code == 200
        detail = (await async_client.get(f"{BASE}/{draft['id']}", headers=applicant_headers)).json()
        assert detail["credit_breakdown"]["sponsored_projects"]["only_pi"] == 5
        assert detail["credit_breakdown"]["auto_total"] == 5

    async def test_unconfigured_section(self, async_client, applicant_headers, test_job):
        draft = await _create_draft(async_client, applicant_headers, test_job)

        response = await _put_section(async_client, applicant_headers, draft["id"], "hobbies", {"x": 1})
        assert response.status_code == 422

    async def test_document_upload_and_replace(self, async_client, applicant_headers, test_job, local_storage):
        draft = await _create_draft(async_client, applicant_headers, test_job)
        url = f"{BASE}/{draft['id']}/sections/final_documents/document"

        first = await async_client.post(
            url, files={"file": ("cv.pdf", PDF_BYTES, "application/pdf")}, headers=applicant_headers
        )
        assert first.status_code == 200, first.text
        first_ref = first.json()["document_ref"]
        assert first_ref["filename"] == "cv.pdf"
        assert first_ref["size"] == len(PDF_BYTES)
        assert (local_storage.base_dir / first_ref["storage_key"]).exists()

        second = await async_client.post(
            url, files={"file": ("cv-v2.pdf", PDF_BYTES, "application/pdf")}, headers=applicant_headers
        )
        second_ref = second.json()["document_ref"]
        assert second_ref["storage_key"] != first_ref["storage_key"]
        assert not (local_storage.base_dir / first_ref["storage_key"]).exists()

        removed = await async_client.delete(url, headers=applicant_headers)
        assert removed.status_code == 200
        assert removed.json()["document_ref"] is None
        assert not (local_storage.base_dir / second_ref["storage_key"]).exists()

    async def test_upload_keeps_section_data(self, async_client, applicant_headers, test_job):
        draft = await _create_draft(async_client, applicant_headers, test_job)
        await _put_section(async_client, applicant_headers, draft["id"], "education", REQUIRED_PAYLOADS["education"])

        response = await async_client.post(
            f"{BASE}/{draft['id']}/sections/education/document",
            files={"file": ("degree.pdf", PDF_BYTES, "application/pdf")},
            headers=applicant_headers,
        )
        assert response.status_code == 200
        assert response.json()["data"] == REQUIRED_PAYLOADS["education"]

    async def test_photo_must_be_an_image(self, async_client, applicant_headers, test_job):
        draft = await _create_draft(async_client, applicant_headers, test_job)

        response = await async_client.post(
            f"{BASE}/{draft['id']}/sections/photo/document",
            files={"file": ("me.pdf", PDF_BYTES, "application/pdf")},
            headers=applicant_headers,
        )
        assert response.status_code == 422

    async def test_delete_without_document(self, async_client, applicant_headers, test_job):
        draft = await _create_draft(async_client, applicant_headers, test_job)

        response = await async_client.delete(
            f"{BASE}/{draft['id']}/sections/final_documents/document", headers=applicant_headers
        )
        assert response.status_code == 404


# ---------------------------------------------------------------------------
# Readiness and submit
# ---------------------------------------------------------------------------
class TestSubmit:
    async def test_readiness_lists_missing_sections(self, async_client, applicant_headers, test_job):
        draft = await _create_draft(async_client, applicant_headers, test_job)
        await _put_section(async_client, applicant_headers, draft["id"], "personal", REQUIRED_PAYLOADS["personal"])

        response = await async_client.get(f"{BASE}/{draft['id']}/readiness", headers=applicant_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["can_submit"] is False
        assert {e["section"] for e in body["errors"]} == {"education", "referees", "declaration"}

    async def test_incomplete_submit_reports_every_section(self, async_client, applicant_headers, test_job):
        draft = await _create_draft(async_client, applicant_headers, test_job)

        response = await async_client.post(f"{BASE}/{draft['id']}/submit", headers=applicant_headers)
        assert response.status_code == 422
        assert set(response.json()["sections"]) == {"personal", "education", "referees", "declaration"}

    async def test_unticked_declaration_blocks_submit(self, async_client, applicant_headers, test_job):
        draft = await _create_draft(async_client, applicant_headers, test_job)
        await _fill_required(async_client, applicant_headers, draft["id"])
        await _put_section(async_client, applicant_headers, draft["id"], "declaration",
                           {"declareInfoTrue": True, "agreeToTerms": True, "detailsVerified": False})

        response = await async_client.post(f"{BASE}/{draft['id']}/submit", headers=applicant_headers)
        assert response.status_code == 422
        assert response.json()["sections"] == ["declaration"]

    async def test_submit(self, async_client, applicant_headers, test_job, mock_arq):
        submitted = await _submitted(async_client, applicant_headers, test_job)

        year = datetime.now(timezone.utc).year
        assert submitted["status"] == "submitted"
        assert submitted["application_number"] == f"APP-{year}-000001"
        assert submitted["submitted_at"] is not None
        assert [h["status"] for h in submitted["status_history"]] == ["draft", "submitted"]
        assert submitted["credit_breakdown"]["grand_total"] == 0

        enqueued = [call.args for call in mock_arq.enqueue_job.await_args_list]
        assert enqueued == [(task, submitted["id"]) for task in SUBMISSION_TASKS]

    async def test_numbers_increase(
        self, async_client, applicant_headers, other_applicant_headers, test_job
    ):
        first = await _submitted(async_client, applicant_headers, test_job)
        second = await _submitted(async_client, other_applicant_headers, test_job)

        assert first["application_number"].endswith("-000001")
        assert second["application_number"].endswith("-000002")

    async def test_double_submit(self, async_client, applicant_headers, test_job, mock_arq):
        submitted = await _submitted(async_client, applicant_headers, test_job)

        response = await async_client.post(f"{BASE}/{submitted['id']}/submit", headers=applicant_headers)
        assert response.status_code == 409
        assert response.json()["error"] == "invalid_state"
        assert mock_arq.enqueue_job.await_count == len(SUBMISSION_TASKS)

    async def test_no_edits_after_submit(self, async_client, applicant_headers, test_job):
        submitted = await _submitted(async_client, applicant_headers, test_job)

        response = await _put_section(async_client, applicant_headers, submitted["id"], "personal",
                                      {"fullName": "Changed"})
        assert response.status_code == 409

        detail = (await async_client.get(f"{BASE}/{submitted['id']}", headers=applicant_headers)).json()
        assert detail["sections"]["personal"]["data"] == REQUIRED_PAYLOADS["personal"]

    async def test_new_draft_allowed_after_submit(self, async_client, applicant_headers, test_job):
        submitted = await _submitted(async_client, applicant_headers, test_job)

        draft = await _create_draft(async_client, applicant_headers, test_job)
        assert draft["id"] != submitted["id"]
        assert draft["status"] == "draft"

    async def test_submit_is_audited(self, async_client, applicant_headers, test_job, db_session):
        submitted = await _submitted(async_client, applicant_headers, test_job)

        result = await db_session.execute(
            select(AuditLog).where(AuditLog.action == AuditAction.APPLICATION_SUBMITTED)
        )
        log = result.scalar_one()
        assert str(log.resource_id) == submitted["id"]
        assert log.changes["after"]["application_number"] == submitted["application_number"]

    async def test_receipt_download(self, async_client, applicant_headers, test_job):
        submitted = await _submitted(async_client, applicant_headers, test_job)

        response = await async_client.get(f"{BASE}/{submitted['id']}/receipt", headers=applicant_headers)
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

    async def test_no_receipt_for_draft(self, async_client, applicant_headers, test_job):
        draft = await _create_draft(async_client, applicant_headers, test_job)

        response = await async_client.get(f"{BASE}/{draft['id']}/receipt", headers=applicant_headers)
        assert response.status_code == 409


# ---------------------------------------------------------------------------
# Withdraw
# ---------------------------------------------------------------------------
class TestWithdraw:
    async def test_withdraw_draft(self, async_client, applicant_headers, test_job):
        draft = await _create_draft(async_client, applicant_headers, test_job)

        response = await async_client.post(
            f"{BASE}/{draft['id']}/withdraw", json={"reason": "Accepted another offer"}, headers=applicant_headers
        )
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "withdrawn"
        assert body["application_number"] is not None
        assert body["status_history"][-1]["remarks"] == "Accepted another offer"

    async def test_withdraw_without_reason(self, async_client, applicant_headers, test_job):
        draft = await _create_draft(async_client, applicant_headers, test_job)

        response = await async_client.post(f"{BASE}/{draft['id']}/withdraw", headers=applicant_headers)
        assert response.status_code == 200
        assert response.json()["status_history"][-1]["remarks"] == "Application withdrawn by applicant"

    async def test_submitted_application_cannot_be_withdrawn(self, async_client, applicant_headers, test_job):
        submitted = await _submitted(async_client, applicant_headers, test_job)

        response = await async_client.post(f"{BASE}/{submitted['id']}/withdraw", headers=applicant_headers)
        assert response.status_code == 409

    async def test_withdrawn_is_terminal(self, async_client, applicant_headers, test_job):
        draft = await _create_draft(async_client, applicant_headers, test_job)
        await _fill_required(async_client, applicant_headers, draft["id"])
        await async_client.post(f"{BASE}/{draft['id']}/withdraw", headers=applicant_headers)

        response = await async_client.post(f"{BASE}/{draft['id']}/submit", headers=applicant_headers)
        assert response.status_code == 409

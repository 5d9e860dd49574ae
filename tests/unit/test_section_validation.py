"""
Unit tests for per-section payload and upload checks.
"""

from __future__ import annotations

import pytest

from app.services.section_validation import (
    PDF_MAGIC,
    PNG_MAGIC,
    prepare_section_data,
    sanitize_credit_points,
    validate_document_upload,
    validate_section_payload,
)


PDF_BYTES = PDF_MAGIC + b"1.7\n%fake body\n%%EOF"
PNG_BYTES = PNG_MAGIC + b"\x00" * 32


# ---------------------------------------------------------------------------
# validate_section_payload
# ---------------------------------------------------------------------------
class TestValidateSectionPayload:
    def test_non_object_is_rejected(self):
        errors = validate_section_payload("personal", ["not", "an", "object"])
        assert errors == [{"section": "personal", "field": "data", "message": "Section data must be an object"}]

    def test_free_form_section_accepts_any_object(self):
        assert validate_section_payload("personal", {"fullName": "Asha", "anything": 1}) == []

    def test_bad_item_reports_field_path(self):
        errors = validate_section_payload("patents", {"items": [
            {"status": "Granted", "isPrincipalInventor": "yes"},
        ]})
        assert len(errors) == 1
        assert errors[0]["section"] == "patents"
        assert errors[0]["field"] == "items.0.isPrincipalInventor"

    def test_negative_count_is_rejected(self):
        errors = validate_section_payload("publications_journal", {"items": [{
            "journalType": "SCI / Scopus Journals",
            "isPaidJournal": False,
            "isFirstAuthor": True,
            "coAuthorCount": -2,
        }]})
        assert [e["field"] for e in errors] == ["items.0.coAuthorCount"]

    @pytest.mark.parametrize("section_type,item,field", [
        ("sponsored_projects", {"isPrincipalInvestigator": True}, "coInvestigatorCount"),
        ("phd_supervision", {"status": "Awarded", "isFirstSupervisor": True}, "coSupervisorCount"),
        ("patents", {"status": "Granted", "isPrincipalInventor": True}, "coInventorCount"),
        ("publications_journal",
         {"journalType": "SCI / Scopus Journals", "isPaidJournal": False, "isFirstAuthor": False},
         "coAuthorCount"),
    ])
    def test_missing_count_for_scored_role_is_rejected(self, section_type, item, field):
        payload, errors = prepare_section_data(section_type, {"items": [item]})
        assert [e["field"] for e in errors] == [f"items.0.{field}"]

    @pytest.mark.parametrize("section_type,item", [
        ("sponsored_projects", {"isPrincipalInvestigator": False}),
        ("phd_supervision", {"status": "Awarded", "isFirstSupervisor": False}),
        ("patents", {"status": "Granted", "isPrincipalInventor": False}),
    ])
    def test_count_is_optional_for_co_roles(self, section_type, item):
        assert validate_section_payload(section_type, {"items": [item]}) == []

    def test_extra_display_fields_are_allowed(self):
        errors = validate_section_payload("consultancy_projects", {"items": [
            {"amount": 750000, "client": "State Grid", "year": 2023},
        ]})
        assert errors == []

    def test_more_than_two_referees_rejected(self):
        referees = [{"name": f"Ref {i}"} for i in range(3)]
        errors = validate_section_payload("referees", {"items": referees})
        assert errors and errors[0]["field"] == "items"

    def test_declaration_may_be_saved_unticked(self):
        assert validate_section_payload("declaration", {"declareInfoTrue": False}) == []

    def test_declaration_rejects_string_flags(self):
        errors = validate_section_payload("declaration", {"agreeToTerms": "true"})
        assert [e["field"] for e in errors] == ["agreeToTerms"]


# ---------------------------------------------------------------------------
# Credit points payload
# ---------------------------------------------------------------------------
class TestCreditPointsPayload:
    def test_derived_totals_are_stripped(self):
        cleaned = sanitize_credit_points({
            "grandTotal": 500,
            "autoTotal": 400,
            "autoCredits": {"patents": 99},
            "manualActivities": [],
            "remarks": "kept",
        })
        assert cleaned == {"manualActivities": [], "remarks": "kept"}

    def test_activity_id_alias_and_unknown_keys(self):
        cleaned = sanitize_credit_points({"manualActivities": [
            {"activityId": "x1", "description": "Seminar", "claimedPoints": 2, "points": 50},
        ]})
        assert cleaned["manualActivities"] == [
            {"id": "x1", "description": "Seminar", "claimedPoints": 2},
        ]

    def test_negative_claim_is_a_validation_error(self):
        payload, errors = prepare_section_data("credit_points", {"manualActivities": [
            {"id": 1, "description": "Seminar", "claimedPoints": -1},
        ]})
        assert [e["field"] for e in errors] == ["manualActivities.0.claimedPoints"]

    def test_empty_description_is_a_validation_error(self):
        _, errors = prepare_section_data("credit_points", {"manualActivities": [
            {"id": 1, "description": "", "claimedPoints": 1},
        ]})
        assert errors

    def test_valid_payload_is_sanitised(self):
        payload, errors = prepare_section_data("credit_points", {
            "totalCreditsClaimed": 77,
            "manualActivities": [{"id": 3, "description": "Workshop", "claimedPoints": 1.5}],
        })
        assert errors == []
        assert "totalCreditsClaimed" not in payload
        assert payload["manualActivities"][0]["claimedPoints"] == 1.5

    def test_other_sections_are_copied(self):
        data = {"fullName": "Asha"}
        payload, errors = prepare_section_data("personal", data)
        assert errors == []
        assert payload == data
        assert payload is not data


# ---------------------------------------------------------------------------
# Document uploads
# ---------------------------------------------------------------------------
class TestValidateDocumentUpload:
    def test_pdf_accepted(self):
        assert validate_document_upload("final_documents", "cv.pdf", "application/pdf", PDF_BYTES) == []

    def test_empty_file_rejected(self):
        errors = validate_document_upload("final_documents", "cv.pdf", "application/pdf", b"")
        assert errors[0]["message"] == "Uploaded file is empty"

    def test_wrong_content_type_for_pdf_section(self):
        errors = validate_document_upload("final_documents", "cv.png", "image/png", PNG_BYTES)
        assert errors[0]["message"] == "Only PDF documents are accepted"

    def test_pdf_type_with_wrong_bytes(self):
        errors = validate_document_upload("final_documents", "cv.pdf", "application/pdf", b"GIF89a....")
        assert errors[0]["message"] == "File is not a valid PDF document"

    def test_photo_accepts_png(self):
        assert validate_document_upload("photo", "me.png", "image/png", PNG_BYTES) == []

    def test_photo_rejects_pdf(self):
        errors = validate_document_upload("photo", "me.pdf", "application/pdf", PDF_BYTES)
        assert errors[0]["message"] == "Only JPEG or PNG images are accepted"

    def test_photo_with_mismatched_magic(self):
        errors = validate_document_upload("signature", "sig.jpg", "image/jpeg", PNG_BYTES)
        assert errors[0]["message"] == "File content does not match its image type"

    def test_oversized_file(self, monkeypatch):
        from app.core.config import settings

        monkeypatch.setattr(settings, "max_document_size_mb", 1)
        content = PDF_MAGIC + b"0" * (1024 * 1024)
        errors = validate_document_upload("final_documents", "big.pdf", "application/pdf", content)
        assert [e["message"] for e in errors] == ["File exceeds the 1 MB limit"]

    @pytest.mark.parametrize("section", ["education", "patents"])
    def test_supporting_documents_for_data_sections_are_pdf(self, section):
        errors = validate_document_upload(section, "proof.jpg", "image/jpeg", b"\xff\xd8\xff\xe0")
        assert errors[0]["message"] == "Only PDF documents are accepted"

"""API tests for claim submission endpoints."""
import uuid

import pytest

from tests.conftest import non_retryable, retryable
from tests.test_api_claims import CLAIM_DATA


async def create_submittable_claim(client, **overrides) -> dict:
    claim = (await client.post("/api/v1/claims/", json={**CLAIM_DATA, **overrides})).json()
    await client.post(
        f"/api/v1/claims/{claim['id']}/documents",
        json={"document_type": "receipt", "file_name": "receipt.jpg", "storage_key": "claims/receipt.jpg"},
    )
    return claim


@pytest.mark.integration
@pytest.mark.asyncio
async def test_submit_electronically(async_client):
    claim = await create_submittable_claim(async_client)

    response = await async_client.post(f"/api/v1/claims/{claim['id']}/submit", json={"method": "electronic"})

    assert response.status_code == 200
    data = response.json()
    assert data["claimId"] == claim["id"]
    assert data["status"] == "submitted"
    assert data["method"] == "electronic"
    assert data["providerName"] == "Primary Health Exchange"
    assert data["confirmationNumber"] == "PHX-1001"
    assert data["trackingNumber"] == "TRK-1001"
    assert data["fallbackUsed"] is False
    assert data["fallbackDocument"] is None
    assert data["estimatedProcessingTime"] == "3-5 business days"
    assert data["message"] == "Claim submitted electronically to Primary Health Exchange"

    stored = (await async_client.get(f"/api/v1/claims/{claim['id']}")).json()
    assert stored["status"] == "submitted"
    assert stored["external_claim_number"] == "PHX-1001"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_submit_without_body_defaults_to_electronic(async_client):
    claim = await create_submittable_claim(async_client)

    response = await async_client.post(f"/api/v1/claims/{claim['id']}/submit")

    assert response.status_code == 200
    assert response.json()["method"] == "electronic"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_fallback_claim_form_can_be_downloaded(async_client, api_gateways):
    api_gateways[0].result = non_retryable("INVALID_PROVIDER_NPI")
    claim = await create_submittable_claim(async_client)

    response = await async_client.post(
        f"/api/v1/claims/{claim['id']}/submit",
        json={"insurerInfo": {"name": "Blue Shield", "memberId": "M-42"}, "notes": "Urgent"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["method"] == "document"
    assert data["fallbackUsed"] is True
    assert data["providerName"] is None
    assert data["estimatedProcessingTime"] == "7-14 business days"
    assert data["message"].startswith("Electronic submission failed")
    assert api_gateways[1].calls == []

    download = await async_client.get(data["fallbackDocument"]["locator"])
    assert download.status_code == 200
    assert download.headers["content-type"] == "application/pdf"
    assert download.content.startswith(b"%PDF")

    stored = (await async_client.get(f"/api/v1/claims/{claim['id']}")).json()
    assert stored["insurer_name"] == "Blue Shield"
    assert stored["notes"].endswith("Submission Notes: Urgent")


@pytest.mark.integration
@pytest.mark.asyncio
async def test_pdf_method_alias(async_client, api_gateways):
    claim = await create_submittable_claim(async_client)

    response = await async_client.post(f"/api/v1/claims/{claim['id']}/submit", json={"method": "pdf"})

    assert response.status_code == 200
    assert response.json()["method"] == "document"
    assert response.json()["fallbackUsed"] is False
    assert response.json()["message"] == "Claim form generated successfully"
    assert all(gateway.calls == [] for gateway in api_gateways)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_incomplete_claim_lists_every_problem(async_client):
    claim = (await async_client.post("/api/v1/claims/", json={**CLAIM_DATA, "cpt_codes": []})).json()

    response = await async_client.post(f"/api/v1/claims/{claim['id']}/submit")

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"]["errors"] == [
        "At least one CPT code is required",
        "At least one supporting document (receipt, medical record, or insurance card) is required",
    ]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_submit_twice_is_refused(async_client):
    claim = await create_submittable_claim(async_client)
    await async_client.post(f"/api/v1/claims/{claim['id']}/submit")

    response = await async_client.post(f"/api/v1/claims/{claim['id']}/submit")

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "ILLEGAL_TRANSITION"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_submit_missing_claim(async_client):
    response = await async_client.post(f"/api/v1/claims/{uuid.uuid4()}/submit")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "CLAIM_NOT_FOUND"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_total_failure_returns_attempt_summaries(async_client, api_gateways, api_storage_dir):
    for gateway in api_gateways:
        gateway.result = retryable("SERVICE_UNAVAILABLE")
    # A file where the storage directory should be makes PDF generation fail
    api_storage_dir.write_text("not a directory")
    claim = await create_submittable_claim(async_client)

    response = await async_client.post(f"/api/v1/claims/{claim['id']}/submit")

    assert response.status_code == 502
    error = response.json()["error"]
    assert error["code"] == "SUBMISSION_FAILED"
    assert [a["provider"] for a in error["details"]["attempts"]] == [
        "Primary Health Exchange",
        "Backup Claims Network",
    ]
    assert error["details"]["fallback_error"]

    stored = (await async_client.get(f"/api/v1/claims/{claim['id']}")).json()
    assert stored["status"] == "draft"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_submission_status_and_resubmission_lineage(async_client, api_gateways):
    claim = await create_submittable_claim(async_client)

    before = (await async_client.get(f"/api/v1/claims/{claim['id']}/submission-status")).json()
    assert before["status"] == "draft"
    assert before["canResubmit"] is True
    assert before["activeSubmission"] is None

    first = (await async_client.post(f"/api/v1/claims/{claim['id']}/submit")).json()
    after = (await async_client.get(f"/api/v1/claims/{claim['id']}/submission-status")).json()
    assert after["canResubmit"] is False
    assert after["activeSubmission"]["submissionId"] == first["submissionId"]

    for status in ("processing", "rejected"):
        response = await async_client.post(f"/api/v1/claims/{claim['id']}/status", json={"status": status})
        assert response.status_code == 200

    api_gateways[0].result = retryable("NETWORK_TIMEOUT")
    second = await async_client.post(f"/api/v1/claims/{claim['id']}/submit")
    assert second.status_code == 200
    assert second.json()["providerName"] == "Backup Claims Network"

    submissions = (await async_client.get(f"/api/v1/claims/{claim['id']}/submissions")).json()["submissions"]
    assert [s["submissionId"] for s in submissions] == [second.json()["submissionId"], first["submissionId"]]
    assert submissions[0]["supersedesId"] == submissions[1]["id"]

    timeline = (await async_client.get(f"/api/v1/claims/{claim['id']}/timeline")).json()
    assert [event["event_type"] for event in timeline] == [
        "created",
        "document_added",
        "submitted",
        "processing",
        "status_changed",
        "submitted",
    ]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_download_for_electronic_submission_is_not_found(async_client):
    claim = await create_submittable_claim(async_client)
    submitted = (await async_client.post(f"/api/v1/claims/{claim['id']}/submit")).json()

    response = await async_client.get(
        f"/api/v1/claims/{claim['id']}/submissions/{submitted['submissionId']}/document"
    )

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "DOCUMENT_NOT_FOUND"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_unknown_submission(async_client):
    claim = await create_submittable_claim(async_client)

    response = await async_client.get(f"/api/v1/claims/{claim['id']}/submissions/SUB-NOPE/document")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "SUBMISSION_NOT_FOUND"


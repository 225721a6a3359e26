"""
API contract tests over the real application: camelCase boundary, wizard
gate, error rendering, and the end-to-end draft → review → status flow.
"""
from unittest.mock import MagicMock, patch

import pytest

from conftest import WIZARD_HEADERS

BRIEF = {
    "brandName": "Old River",
    "productName": "Single Barrel",
    "category": "Bourbon",
    "abv": 45,
    "volumeMl": 750,
}


SAVE_BODY = {
    **BRIEF,
    "frontCopy": "F0",
    "backCopy": "B0",
    "complianceStatement": "GOVERNMENT WARNING: ...",
}


async def _create_label(client, **content):
    body = {**SAVE_BODY, **content}
    resp = await client.post("/api/labels", json=body, headers=WIZARD_HEADERS)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _seed_rules(app, codes=("R1", "R2")):
    reviews = app.state.services.reviews
    async with app.state.database.transaction() as db:
        for code in codes:
            await reviews.add_rule(db, "Bourbon", code, "1", f"Rule {code}")


class TestLiveness:

    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_root(self, client):
        body = (await client.get("/")).json()
        assert body["status"] == "running"
        assert body["ai_provider"] == "none"


# ═══════════════════════════════════════════════════════════════════
#  Labels
# ═══════════════════════════════════════════════════════════════════

class TestLabels:

    @pytest.mark.asyncio
    async def test_generate_uses_fallback_and_persists(self, client):
        resp = await client.post("/api/labels/generate", json=BRIEF)
        assert resp.status_code == 201, resp.text
        body = resp.json()
        assert body["action"] == "CREATE"
        assert body["copySource"] == "fallback"
        assert body["complianceStatement"].startswith("GOVERNMENT WARNING")

        snap = (await client.get(f"/api/labels/{body['labelId']}")).json()
        assert snap["label"]["currentVersionId"] == body["versionId"]
        assert snap["currentVersion"]["frontCopy"] == body["frontCopy"]
        assert snap["currentVersion"]["tone"] == "heritage"

    @pytest.mark.asyncio
    async def test_generate_requires_brief_fields(self, client):
        resp = await client.post("/api/labels/generate", json={"brandName": "Only"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert "productName" in body["missing"]

    @pytest.mark.asyncio
    async def test_generate_with_existing_id_is_update(self, client):
        created = await _create_label(client)
        resp = await client.post("/api/labels/generate", json={**BRIEF, "id": created["labelId"]})
        assert resp.json()["action"] == "UPDATE"

    @pytest.mark.asyncio
    async def test_snapshot_not_found(self, client):
        resp = await client.get("/api/labels/9999")
        assert resp.status_code == 404
        assert resp.json()["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_wizard_save_with_explicit_id(self, client):
        resp = await client.post("/api/labels/42/wizard/save", json=SAVE_BODY, headers=WIZARD_HEADERS)
        assert resp.status_code == 201
        assert resp.json()["labelId"] == 42
        assert resp.json()["action"] == "CREATE"

        again = await client.post("/api/labels/42/wizard/save", json=SAVE_BODY, headers=WIZARD_HEADERS)
        assert again.json()["action"] == "UPDATE"

    @pytest.mark.asyncio
    async def test_create_rejects_empty_body(self, client):
        resp = await client.post("/api/labels", json={}, headers=WIZARD_HEADERS)
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["missing"] == [
            "brandName", "category", "productName", "abv", "volumeMl",
            "frontCopy", "backCopy", "complianceStatement",
        ]
        assert (await client.get("/api/labels/history")).json()["total"] == 0

    @pytest.mark.asyncio
    async def test_wizard_save_rejects_blank_copy(self, client):
        body = {**SAVE_BODY, "backCopy": "   "}
        del body["complianceStatement"]
        resp = await client.post("/api/labels/7/wizard/save", json=body, headers=WIZARD_HEADERS)
        assert resp.status_code == 400
        assert resp.json()["missing"] == ["backCopy", "complianceStatement"]
        assert (await client.get("/api/labels/7")).status_code == 404

    @pytest.mark.asyncio
    async def test_generate_composes_before_opening_transaction(self, app, client):
        database = app.state.database
        real_compose = app.state.services.copywriter.compose
        transaction = MagicMock(wraps=database.transaction)
        seen = []

        async def compose(brief):
            seen.append(transaction.call_count)
            return await real_compose(brief)

        with patch.object(database, "transaction", transaction), \
                patch.object(app.state.services.copywriter, "compose", side_effect=compose):
            resp = await client.post("/api/labels/generate", json=BRIEF)

        assert resp.status_code == 201, resp.text
        assert seen == [0]
        assert transaction.call_count == 1

    @pytest.mark.asyncio
    async def test_logical_delete(self, client):
        created = await _create_label(client)
        resp = await client.delete(f"/api/labels/{created['labelId']}", headers=WIZARD_HEADERS)
        assert resp.status_code == 200
        assert resp.json()["action"] == "DELETE"

        versions = (await client.get(f"/api/labels/{created['labelId']}/versions")).json()
        assert [v["action"] for v in versions["versions"]] == ["DELETE", "CREATE"]


class TestMetadataPatch:

    @pytest.mark.asyncio
    async def test_allowed_fields_update(self, client):
        created = await _create_label(client)
        resp = await client.patch(
            f"/api/labels/{created['labelId']}",
            json={"tags": ["gift"], "tracking_number": "TRK-9", "unrelated": 1},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["updated"] is True
        assert body["label"]["tags"] == ["gift"]
        assert body["label"]["trackingNumber"] == "TRK-9"

        versions = (await client.get(f"/api/labels/{created['labelId']}/versions")).json()
        assert versions["total"] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["frontCopy", "back_copy", "complianceStatement", "brief", "abv"])
    async def test_content_fields_rejected(self, client, key):
        created = await _create_label(client)
        resp = await client.patch(f"/api/labels/{created['labelId']}", json={key: "x", "tags": ["a"]})
        assert resp.status_code == 403
        body = resp.json()
        assert body["code"] == "CONTENT_IS_VERSION_CONTROLLED"
        assert body["field"] == key

    @pytest.mark.asyncio
    async def test_nothing_allowed(self, client):
        created = await _create_label(client)
        resp = await client.patch(f"/api/labels/{created['labelId']}", json={"color": "red"})
        assert resp.status_code == 200
        assert resp.json()["updated"] is False
        assert resp.json()["reason"]


# ═══════════════════════════════════════════════════════════════════
#  Wizard gate
# ═══════════════════════════════════════════════════════════════════

class TestWizardGate:

    @pytest.mark.asyncio
    async def test_missing_key_forbidden(self, client):
        resp = await client.post("/api/labels", json=BRIEF)
        assert resp.status_code == 403
        assert resp.json()["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_wrong_key_forbidden(self, client):
        resp = await client.post("/api/labels", json=BRIEF, headers={"X-Wizard-Key": "nope"})
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_unset_key_is_misconfiguration(self, app, client):
        app.state.settings = app.state.settings.model_copy(update={"WIZARD_KEY": ""})
        resp = await client.post("/api/labels", json=BRIEF, headers=WIZARD_HEADERS)
        assert resp.status_code == 500
        assert resp.json()["code"] == "SERVER_MISCONFIGURED"


# ═══════════════════════════════════════════════════════════════════
#  Versions + drafts
# ═══════════════════════════════════════════════════════════════════

class TestVersionsAndDrafts:

    @pytest.mark.asyncio
    async def test_history_feed_and_limit(self, client):
        for _ in range(3):
            await _create_label(client)
        feed = (await client.get("/api/labels/history", params={"limit": 2})).json()
        assert feed["total"] == 2
        assert feed["versions"][0]["id"] > feed["versions"][1]["id"]

    @pytest.mark.asyncio
    async def test_draft_publish_flow(self, client):
        created = await _create_label(client)
        label_id = created["labelId"]

        draft = (await client.get(f"/api/labels/{label_id}/draft")).json()
        assert draft["labelId"] == label_id
        assert draft["frontCopy"] is None

        resp = await client.put(
            f"/api/labels/{label_id}/draft",
            json={"frontCopy": "F-draft", "region": None},
            headers=WIZARD_HEADERS,
        )
        assert resp.json()["frontCopy"] == "F-draft"

        resp = await client.post(f"/api/labels/{label_id}/publish", headers=WIZARD_HEADERS)
        assert resp.status_code == 201
        version = resp.json()["version"]
        assert version["frontCopy"] == "F-draft"
        assert version["backCopy"] == "B0"
        assert version["statusCode"] == "PREPARING"

    @pytest.mark.asyncio
    async def test_publish_without_draft(self, client):
        created = await _create_label(client)
        resp = await client.post(f"/api/labels/{created['labelId']}/publish", headers=WIZARD_HEADERS)
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_edit_in_place(self, client):
        created = await _create_label(client)
        resp = await client.put(
            f"/api/versions/{created['versionId']}",
            json={"backCopy": "B1"},
            headers=WIZARD_HEADERS,
        )
        assert resp.status_code == 200
        assert resp.json()["backCopy"] == "B1"
        assert resp.json()["frontCopy"] == "F0"


# ═══════════════════════════════════════════════════════════════════
#  End-to-end: review gate on regulatory status
# ═══════════════════════════════════════════════════════════════════

class TestReviewAndStatusFlow:

    @pytest.mark.asyncio
    async def test_full_flow(self, app, client):
        await _seed_rules(app)
        created = await _create_label(client)
        version_id = created["versionId"]

        rules = (await client.get("/api/compliance/rules", params={"category": "bourbon"})).json()
        assert rules["total"] == 2

        # Forward status is gated
        resp = await client.post(
            f"/api/versions/{version_id}/status-events",
            json={"statusCode": "SUBMITTED", "statusLabel": "Submitted"},
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "COMPLIANCE_NOT_FINALIZED"
        assert resp.json()["statusCode"] == "SUBMITTED"

        # PREPARING is not
        resp = await client.post(
            f"/api/versions/{version_id}/status-events",
            json={"statusCode": "preparing", "statusLabel": "Preparing"},
        )
        assert resp.status_code == 201

        start = (await client.post(
            "/api/compliance/review/start",
            json={"versionId": version_id, "category": "Bourbon", "reviewerId": "alice"},
        )).json()
        assert start["reused"] is False
        session_id = start["session"]["id"]

        again = (await client.post(
            "/api/compliance/review/start", json={"versionId": version_id, "category": "Bourbon"}
        )).json()
        assert again["reused"] is True
        assert again["session"]["id"] == session_id

        resp = await client.post("/api/compliance/review/event", json={
            "sessionId": session_id, "ruleCode": "R1", "ruleVersion": 1, "decision": "PASS",
        })
        assert resp.status_code == 201
        assert resp.json()["ruleTitle"] == "Rule R1"

        resp = await client.post("/api/compliance/review/finalize", json={"sessionId": session_id})
        assert resp.status_code == 422
        assert resp.json()["missing"] == [{"ruleCode": "R2", "ruleVersion": "1"}]

        await client.post("/api/compliance/review/event", json={
            "sessionId": session_id, "ruleCode": "R2", "ruleVersion": "1", "decision": "FAIL",
        })
        resp = await client.post("/api/compliance/review/finalize", json={"sessionId": session_id})
        assert resp.status_code == 200
        assert resp.json()["status"] == "FINALIZED"
        assert resp.json()["finalizedAt"]

        resp = await client.post("/api/compliance/review/finalize", json={"sessionId": session_id})
        assert resp.status_code == 409

        status = (await client.get("/api/compliance/review/status", params={"versionId": version_id})).json()
        assert status["hasFinalizedReview"] is True
        assert status["finalizedAt"]

        resp = await client.post(
            f"/api/versions/{version_id}/status-events",
            json={"statusCode": "SUBMITTED", "statusLabel": "Submitted", "externalApplicationId": "APP-1"},
        )
        assert resp.status_code == 201

        timeline = (await client.get(f"/api/versions/{version_id}/status-events")).json()
        assert [e["statusCode"] for e in timeline["events"]] == ["PREPARING", "SUBMITTED"]
        assert timeline["currentStatus"]["statusCode"] == "SUBMITTED"

        version = (await client.get(f"/api/versions/{version_id}")).json()
        assert version["statusCode"] == "SUBMITTED"
        assert version["externalApplicationId"] == "APP-1"

        # Frozen now
        resp = await client.put(
            f"/api/versions/{version_id}", json={"frontCopy": "late"}, headers=WIZARD_HEADERS
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "VERSION_LOCKED"

        session_view = (await client.get(
            "/api/compliance/review/session", params={"versionId": version_id}
        )).json()
        assert session_view["session"]["status"] == "FINALIZED"
        assert len(session_view["latestDecisions"]) == 2

        events = (await client.get(f"/api/compliance/review/session/{session_id}/events")).json()
        assert events["sessionId"] == session_id
        assert [e["ruleCode"] for e in events["events"]] == ["R1", "R2"]
        assert events["events"][1]["decision"] == "FAIL"

        summary = (await client.get("/api/labels/status-summary")).json()
        assert [(i["versionId"], i["statusCode"]) for i in summary["items"]] == [(version_id, "SUBMITTED")]

    @pytest.mark.asyncio
    async def test_decision_on_unknown_rule(self, client):
        created = await _create_label(client)
        start = (await client.post(
            "/api/compliance/review/start",
            json={"versionId": created["versionId"], "category": "Bourbon"},
        )).json()
        resp = await client.post("/api/compliance/review/event", json={
            "sessionId": start["session"]["id"], "ruleCode": "NOPE", "ruleVersion": "1", "decision": "PASS",
        })
        assert resp.status_code == 422
        assert resp.json()["code"] == "RULE_NOT_ACTIVE"

    @pytest.mark.asyncio
    async def test_decision_outside_allowed_set(self, app, client):
        await _seed_rules(app)
        created = await _create_label(client)
        start = (await client.post(
            "/api/compliance/review/start",
            json={"versionId": created["versionId"], "category": "Bourbon"},
        )).json()
        resp = await client.post("/api/compliance/review/event", json={
            "sessionId": start["session"]["id"], "ruleCode": "R1", "ruleVersion": "1", "decision": "MAYBE",
        })
        assert resp.status_code == 422
        assert resp.json()["code"] == "INVALID_DECISION"
        assert "NOT_APPLICABLE" in resp.json()["allowed"]

    @pytest.mark.asyncio
    async def test_session_view_empty(self, client):
        created = await _create_label(client)
        body = (await client.get(
            "/api/compliance/review/session", params={"versionId": created["versionId"]}
        )).json()
        assert body == {"session": None, "events": [], "latestDecisions": []}

"""API tests for the intellectuals programme."""

import io
import json

import pytest


APPLICATION = {
    "category": "professor",
    "profile": {
        "full_name": "Dr. Asha Rao",
        "headline": "Professor of Design",
        "socials": {"linkedin": "https://linkedin.com/in/asharao"},
    },
    "professor": {"institution": "IISc", "department": "Design", "publications": 12},
}


@pytest.fixture
def enabled(settings):
    settings.flags["FLAG_INTELLECTUALS"] = True
    return settings


class TestFlag:
    def test_disabled_by_default(self, client):
        response = client.get("/api/intellectuals")
        assert response.status_code == 403
        assert response.get_json() == {"success": False, "error": "Feature FLAG_INTELLECTUALS is disabled"}


class TestApplications:
    def test_submit_review_and_publish(self, client, register, admin_headers, enabled):
        _, headers = register()
        response = client.post("/api/intellectuals/applications", json=APPLICATION, headers=headers)
        assert response.status_code == 201
        application = response.get_json()["application"]
        assert application["status"] == "submitted"
        assert application["details"]["institution"] == "IISc"

        again = client.post("/api/intellectuals/applications", json=APPLICATION, headers=headers)
        assert again.get_json()["application"]["id"] == application["id"]

        mine = client.get("/api/intellectuals/applications/mine", headers=headers).get_json()["applications"]
        assert len(mine) == 1
        assert client.get("/api/intellectuals").get_json()["intellectuals"] == []

        search = client.get("/api/intellectuals/admin/applications?q=asha", headers=admin_headers).get_json()
        assert search["total"] == 1

        client.post(
            f"/api/intellectuals/admin/applications/{application['id']}/notes",
            json={"note": "Verified faculty page"},
            headers=admin_headers,
        )
        response = client.patch(
            f"/api/intellectuals/admin/applications/{application['id']}/status",
            json={"status": "approved"},
            headers=admin_headers,
        )
        assert response.get_json()["application"]["status"] == "approved"

        listed = client.get("/api/intellectuals?category=professor").get_json()["intellectuals"]
        assert [a["id"] for a in listed] == [application["id"]]
        assert "user_id" not in listed[0]
        assert "review_notes" not in listed[0]

    def test_duplicate_submission_keeps_no_files(self, client, register, settings, enabled):
        _, headers = register()
        first = client.post("/api/intellectuals/applications", json=APPLICATION, headers=headers)
        assert first.status_code == 201

        response = client.post(
            "/api/intellectuals/applications",
            data={
                "category": APPLICATION["category"],
                "profile": json.dumps(APPLICATION["profile"]),
                "professor": json.dumps(APPLICATION["professor"]),
                "attachments": (io.BytesIO(b"%PDF"), "cv.pdf", "application/pdf"),
            },
            headers=headers,
            content_type="multipart/form-data",
        )
        assert response.get_json()["application"]["id"] == first.get_json()["application"]["id"]
        assert response.get_json()["application"]["attachments"] == []
        folder = settings.uploads_dir / "intellectuals"
        assert not folder.exists() or list(folder.iterdir()) == []

    def test_category_block_required(self, client, register, enabled):
        _, headers = register()
        body = {**APPLICATION, "category": "coach"}
        response = client.post("/api/intellectuals/applications", json=body, headers=headers)
        assert response.status_code == 400

    def test_social_links_must_be_urls(self, client, register, enabled):
        _, headers = register()
        body = {**APPLICATION, "profile": {"full_name": "Asha", "socials": {"twitter": "@asha"}}}
        response = client.post("/api/intellectuals/applications", json=body, headers=headers)
        assert response.status_code == 400

    def test_other_users_cannot_read(self, client, register, enabled):
        _, owner_headers = register()
        _, other_headers = register()
        application_id = client.post(
            "/api/intellectuals/applications", json=APPLICATION, headers=owner_headers,
        ).get_json()["application"]["id"]

        response = client.get(f"/api/intellectuals/applications/{application_id}", headers=other_headers)
        assert response.status_code == 403

    def test_invalid_review_status(self, client, register, admin_headers, enabled):
        _, headers = register()
        application_id = client.post(
            "/api/intellectuals/applications", json=APPLICATION, headers=headers,
        ).get_json()["application"]["id"]

        response = client.patch(
            f"/api/intellectuals/admin/applications/{application_id}/status",
            json={"status": "draft"},
            headers=admin_headers,
        )
        assert response.status_code == 400

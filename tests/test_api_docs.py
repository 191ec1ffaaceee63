import json
import uuid

from app.models.docman import Document


class TestDocumentEndpoints:
    def test_create_multipart(self, client, auth_headers, viewer, category):
        resp = client.post(
            "/api/docs",
            data={
                "title": "Onboarding Guide",
                "category_id": str(category.id),
                "stakeholders": json.dumps([str(viewer.id)]),
                "external_contacts": json.dumps([{"name": "HR Partner"}]),
                "review_interval": "quarterly",
            },
            files={"file": ("guide.txt", b"welcome aboard", "text/plain")},
            headers=auth_headers,
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["title"] == "Onboarding Guide"
        assert data["category"]["id"] == str(category.id)
        assert [s["id"] for s in data["stakeholders"]] == [str(viewer.id)]
        assert data["file_name"] == "guide.txt"
        assert data["version_history"][0]["version_number"] == 1
        assert data["review_interval"] == "quarterly"

    def test_create_requires_editor(self, client, viewer_headers):
        resp = client.post("/api/docs", data={"title": "Nope"}, headers=viewer_headers)
        assert resp.status_code == 403

    def test_create_bad_json_field(self, client, auth_headers):
        resp = client.post(
            "/api/docs",
            data={"title": "Guide", "owners": "[oops"},
            headers=auth_headers,
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid owners format"

    def test_create_invalid_enum(self, client, auth_headers):
        resp = client.post(
            "/api/docs",
            data={"title": "Guide", "review_interval": "weekly"},
            headers=auth_headers,
        )
        assert resp.status_code == 400
        assert "review_interval" in resp.json()["details"]

    def test_get(self, client, auth_headers, document):
        resp = client.get(f"/api/docs/{document.id}", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["author"]["id"] == str(document.author_id)

    def test_get_forbidden(self, client, viewer_headers, document):
        resp = client.get(f"/api/docs/{document.id}", headers=viewer_headers)
        assert resp.status_code == 403

    def test_get_not_found(self, client, auth_headers):
        resp = client.get(f"/api/docs/{uuid.uuid4()}", headers=auth_headers)
        assert resp.status_code == 404
        assert resp.json()["message"] == "Document not found"

    def test_list_paged_envelope(self, client, auth_headers, document):
        resp = client.get("/api/docs?sortBy=title&sortOrder=asc", headers=auth_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["pagination"]["total"] == 1
        assert data["items"][0]["id"] == str(document.id)

    def test_list_filter_by_author(self, client, admin_headers, document, admin, db_session):
        db_session.add(Document(title="Admin notes", author_id=admin.id))
        db_session.commit()
        resp = client.get(
            f"/api/docs?author={document.author_id}", headers=admin_headers
        )
        assert [d["title"] for d in resp.json()["items"]] == ["Security Policy"]

    def test_search(self, client, auth_headers, document):
        resp = client.get("/api/docs/search?search=Security", headers=auth_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 1
        assert data["page"] == 1
        assert data["has_next_page"] is False

    def test_update(self, client, auth_headers, document):
        resp = client.put(
            f"/api/docs/{document.id}",
            data={"description": "Rewritten"},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["description"] == "Rewritten"

    def test_update_clears_stakeholders(
        self, client, auth_headers, document, viewer, db_session
    ):
        document.stakeholders = [viewer]
        db_session.commit()
        resp = client.put(
            f"/api/docs/{document.id}",
            data={"stakeholders": "[]"},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["stakeholders"] == []

    def test_update_nothing(self, client, auth_headers, document):
        resp = client.put(f"/api/docs/{document.id}", data={}, headers=auth_headers)
        assert resp.status_code == 400
        assert resp.json()["message"] == "No fields were changed"

    def test_upload_and_download(self, client, auth_headers, document):
        resp = client.post(
            f"/api/docs/{document.id}/upload",
            data={"change_log": "Scanned copy"},
            files={"file": ("scan.pdf", b"%PDF-1.7", "application/pdf")},
            headers=auth_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["version_number"] == 1

        files = client.get(f"/api/docs/{document.id}/files", headers=auth_headers)
        assert [f["original_name"] for f in files.json()] == ["scan.pdf"]

        download = client.get(f"/api/docs/{document.id}/download", headers=auth_headers)
        assert download.status_code == 200
        assert download.json()["file_name"] == "scan.pdf"

    def test_toggle_review(self, client, auth_headers, document):
        resp = client.put(
            f"/api/docs/{document.id}/review",
            json={"completed": True, "notes": "Checked"},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["review_completed"] is True
        assert resp.json()["review_notes"] == "Checked"

    def test_delete(self, client, auth_headers, document, db_session):
        resp = client.delete(f"/api/docs/{document.id}", headers=auth_headers)
        assert resp.status_code == 204
        db_session.expire_all()
        assert db_session.get(Document, document.id) is None

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException
from sqlalchemy import text

from app.models.docman import (
    Document,
    Project,
    ReviewAssignment,
    Team,
    TeamInvitation,
    TeamMember,
    TeamRole,
)
from app.models.user import User, UserRole
from app.schemas.user import UserUpdate
from app.services.auth import verify_password
from app.services.storage import UploadedFile
from app.services.user import serialize_user, users

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


class TestUserFilters:
    def test_single_term_search(self, db_session, viewer, editor, superadmin):
        result = users.list(db_session, {"search": "vera"}, superadmin)
        assert [u["id"] for u in result["items"]] == [str(viewer.id)]
        assert result["pagination"]["total"] == 1

    def test_full_name_search(self, db_session, viewer, editor, superadmin):
        result = users.list(db_session, {"search": "Editor Eddie"}, superadmin)
        assert [u["id"] for u in result["items"]] == [str(editor.id)]

    def test_role_filter_and_sort(self, db_session, viewer, editor, admin, superadmin):
        result = users.list(db_session, {"role": "editor"}, superadmin)
        assert [u["role"] for u in result["items"]] == ["editor"]
        ignored = users.list(db_session, {"role": "wizard"}, superadmin)
        assert ignored["pagination"]["total"] == 4

        by_name = users.list(
            db_session, {"sort_by": "firstname", "sort_order": "desc"}, superadmin
        )
        assert [u["firstname"] for u in by_name["items"]] == ["Vera", "Sam", "Eddie", "Ada"]

    def test_paging(self, db_session, viewer, editor, admin):
        result = users.list(db_session, {}, admin, page=2, limit=2)
        assert len(result["items"]) == 1
        assert result["pagination"] == {"total": 3, "page": 2, "limit": 2, "pages": 2}

    def test_private_fields_hidden_from_peers(self, db_session, viewer, make_user):
        other = make_user(UserRole.viewer, department="Legal", telephone="+15551234567")
        assert serialize_user(other, viewer)["department"] is None
        assert serialize_user(other, other)["department"] == "Legal"


class TestUsersService:
    def test_get_any_user(self, db_session, editor):
        assert users.get(db_session, str(editor.id)).id == editor.id

    def test_get_missing(self, db_session):
        with pytest.raises(HTTPException) as exc:
            users.get(db_session, str(uuid.uuid4()))
        assert exc.value.detail == "User not found"

    def test_update_profile(self, db_session, viewer, published_events):
        updated = users.update(
            db_session,
            str(viewer.id),
            UserUpdate(firstname="Veronica", department="Finance", bio=""),
            viewer,
        )
        assert updated.firstname == "Veronica"
        assert updated.department == "Finance"
        assert updated.bio is None
        assert updated.last_updated_by_id == viewer.id
        kwargs = published_events.call_args.kwargs
        assert kwargs["event_type"] == "user.updated"
        assert kwargs["payload"] == {"fields": ["bio", "department", "firstname"]}

    def test_update_validation_errors(self, db_session, viewer):
        with pytest.raises(HTTPException) as exc:
            users.update(
                db_session, str(viewer.id), UserUpdate(email="nope", username="x"), viewer
            )
        assert exc.value.status_code == 400
        assert exc.value.detail.startswith("Validation failed:")

    def test_update_email_taken(self, db_session, viewer, editor):
        with pytest.raises(HTTPException) as exc:
            users.update(db_session, str(viewer.id), UserUpdate(email=editor.email), viewer)
        assert exc.value.status_code == 409
        assert exc.value.detail == "Email already in use"

    def test_update_password(self, db_session, viewer):
        users.update(db_session, str(viewer.id), UserUpdate(password="Fresh@Pass9"), viewer)
        db_session.refresh(viewer)
        assert verify_password("Fresh@Pass9", viewer.password_hash)

    def test_self_promotion_ignored(self, db_session, viewer):
        updated = users.update(db_session, str(viewer.id), UserUpdate(role="admin"), viewer)
        assert updated.role == UserRole.viewer

    def test_superadmin_assigns_role(self, db_session, viewer, superadmin):
        updated = users.update(
            db_session, str(viewer.id), UserUpdate(role="editor"), superadmin
        )
        assert updated.role == UserRole.editor

    def test_admin_sets_role_and_password_of_other_user(
        self, db_session, viewer, admin
    ):
        updated = users.update(
            db_session,
            str(viewer.id),
            UserUpdate(role="editor", password="Fresh@Pass9"),
            admin,
        )
        assert updated.role == UserRole.editor
        assert updated.last_updated_by_id == admin.id
        assert verify_password("Fresh@Pass9", updated.password_hash)

    def test_admin_cannot_grant_superadmin(self, db_session, viewer, admin):
        updated = users.update(
            db_session, str(viewer.id), UserUpdate(role="superadmin"), admin
        )
        assert updated.role == UserRole.viewer

    def test_admin_limited_to_role_and_password(self, db_session, viewer, admin):
        with pytest.raises(HTTPException) as exc:
            users.update(db_session, str(viewer.id), UserUpdate(bio="Hi"), admin)
        assert exc.value.status_code == 403
        assert exc.value.detail == (
            "Admins may only change the role and password of other users"
        )

    def test_admin_cannot_edit_superadmin(self, db_session, admin, superadmin):
        with pytest.raises(HTTPException) as exc:
            users.update(db_session, str(superadmin.id), UserUpdate(role="viewer"), admin)
        assert exc.value.status_code == 403

    def test_peer_cannot_edit_other_user(self, db_session, viewer, editor):
        with pytest.raises(HTTPException) as exc:
            users.update(db_session, str(viewer.id), UserUpdate(role="viewer"), editor)
        assert exc.value.detail == "Access denied"

    def test_images_are_self_service(self, db_session, viewer, admin):
        upload = UploadedFile(filename="me.png", content_type="image/png", content=PNG_BYTES)
        with pytest.raises(HTTPException) as exc:
            users.upload_image(db_session, str(viewer.id), upload, "profile", admin)
        assert exc.value.status_code == 403

    def test_delete(self, db_session, viewer, admin, superadmin):
        with pytest.raises(HTTPException) as exc:
            users.delete(db_session, str(viewer.id), admin)
        assert exc.value.detail == "Insufficient permissions"
        with pytest.raises(HTTPException) as exc:
            users.delete(db_session, str(superadmin.id), superadmin)
        assert exc.value.detail == "Cannot delete your own account"

        users.delete(db_session, str(viewer.id), superadmin)
        assert db_session.get(User, viewer.id) is None

    def test_delete_hands_owned_rows_to_deleting_superadmin(
        self, db_session, document, editor, viewer, superadmin
    ):
        due = datetime.now(timezone.utc) + timedelta(days=7)
        team = Team(name="Platform", owner_id=editor.id)
        team.members = [
            TeamMember(user_id=editor.id, role=TeamRole.admin),
            TeamMember(user_id=viewer.id, role=TeamRole.member),
        ]
        db_session.add(team)
        db_session.flush()
        project = Project(name="Audit", team_id=team.id, owner_id=editor.id)
        assignment = ReviewAssignment(
            document_id=document.id,
            assignee_id=viewer.id,
            assigned_by_id=editor.id,
            due_date=due,
        )
        invitation = TeamInvitation(
            team_id=team.id,
            email="new@example.com",
            invited_by_id=editor.id,
            token="b" * 64,
            expires_at=due,
        )
        db_session.add_all([project, assignment, invitation])
        db_session.commit()

        users.delete(db_session, str(editor.id), superadmin)

        assert db_session.get(User, editor.id) is None
        assert db_session.get(Document, document.id).author_id == superadmin.id
        assert db_session.get(ReviewAssignment, assignment.id).assigned_by_id == superadmin.id
        assert db_session.get(TeamInvitation, invitation.id).invited_by_id == superadmin.id
        assert db_session.get(Project, project.id).owner_id == superadmin.id
        team = db_session.get(Team, team.id)
        assert team.owner_id == superadmin.id
        roles = {m.user_id: m.role for m in team.members}
        assert roles == {viewer.id: TeamRole.member, superadmin.id: TeamRole.admin}

    def test_foreign_keys_enforced(self, db_session):
        assert db_session.execute(text("PRAGMA foreign_keys")).scalar() == 1

    def test_profile_picture_replace_and_remove(self, db_session, viewer):
        upload = UploadedFile(filename="me.png", content_type="image/png", content=PNG_BYTES)
        first = users.upload_image(db_session, str(viewer.id), upload, "profile", viewer)
        first_url = first.profile_picture
        assert first_url.endswith(".png")

        second = users.upload_image(db_session, str(viewer.id), upload, "profile", viewer)
        assert second.profile_picture != first_url

        cleared = users.delete_image(db_session, str(viewer.id), "profile", viewer)
        assert cleared.profile_picture is None
        with pytest.raises(HTTPException) as exc:
            users.delete_image(db_session, str(viewer.id), "profile", viewer)
        assert exc.value.detail == "Image not found"


class TestUserEndpoints:
    def test_list(self, client, viewer_headers, viewer, editor):
        resp = client.get("/api/users?sortBy=firstname", headers=viewer_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert [u["firstname"] for u in data["items"]] == ["Eddie", "Vera"]
        assert data["pagination"]["total"] == 2

    def test_get_self(self, client, viewer_headers, viewer):
        resp = client.get(f"/api/users/{viewer.id}", headers=viewer_headers)
        assert resp.status_code == 200
        assert resp.json()["email"] == viewer.email

    def test_get_other_user_masks_private_fields(
        self, client, viewer_headers, make_user
    ):
        other = make_user(UserRole.editor, department="Legal")
        resp = client.get(f"/api/users/{other.id}", headers=viewer_headers)
        assert resp.status_code == 200
        assert resp.json()["email"] == other.email
        assert resp.json()["department"] is None

    def test_admin_updates_role(self, client, admin_headers, viewer):
        resp = client.put(
            f"/api/users/{viewer.id}", json={"role": "editor"}, headers=admin_headers
        )
        assert resp.status_code == 200
        assert resp.json()["role"] == "editor"

    def test_update_self(self, client, viewer_headers, viewer):
        resp = client.put(
            f"/api/users/{viewer.id}", json={"theme": "dark"}, headers=viewer_headers
        )
        assert resp.status_code == 200
        assert resp.json()["theme"] == "dark"

    def test_delete_requires_superadmin(
        self, client, admin_headers, superadmin_headers, viewer
    ):
        assert client.delete(f"/api/users/{viewer.id}", headers=admin_headers).status_code == 403
        resp = client.delete(f"/api/users/{viewer.id}", headers=superadmin_headers)
        assert resp.status_code == 204

    def test_upload_background_image(self, client, viewer_headers, viewer):
        resp = client.post(
            f"/api/users/{viewer.id}/background-image",
            files={"backgroundImage": ("bg.png", PNG_BYTES, "image/png")},
            headers=viewer_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["background_image"].endswith(".png")

    def test_upload_rejects_non_image(self, client, viewer_headers, viewer):
        resp = client.post(
            f"/api/users/{viewer.id}/profile-picture",
            files={"profilePicture": ("cv.pdf", b"%PDF-1.4", "application/pdf")},
            headers=viewer_headers,
        )
        assert resp.status_code == 400

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from app.models.docman import (
    Book,
    CollaboratorRole,
    Project,
    ProjectCollaborator,
    ProjectPriority,
    ProjectStatus,
    Team,
    TeamMember,
    TeamRole,
)
from app.models.user import UserRole
from app.schemas.collaboration import CollaboratorRequest, ProjectCreate, ProjectUpdate
from app.services.project import projects


@pytest.fixture()
def team(db_session, editor, viewer):
    t = Team(name="Platform", owner_id=editor.id)
    t.members = [
        TeamMember(user_id=editor.id, role=TeamRole.admin),
        TeamMember(user_id=viewer.id, role=TeamRole.member),
    ]
    db_session.add(t)
    db_session.commit()
    db_session.refresh(t)
    return t


@pytest.fixture()
def project(db_session, team, editor):
    p = Project(name="Audit 2026", team_id=team.id, owner_id=editor.id)
    p.collaborators = [
        ProjectCollaborator(user_id=editor.id, role=CollaboratorRole.manager)
    ]
    db_session.add(p)
    db_session.commit()
    db_session.refresh(p)
    return p


class TestProjectCrud:
    def test_create_adds_manager(self, db_session, team, editor):
        project = projects.create(
            db_session,
            ProjectCreate(name="  Rollout ", team_id=team.id, tags=["q3", " ", "ops"]),
            editor,
        )
        assert project.name == "Rollout"
        assert project.tags == ["q3", "ops"]
        assert project.status == ProjectStatus.active
        assert [(c.user_id, c.role) for c in project.collaborators] == [
            (editor.id, CollaboratorRole.manager)
        ]
        assert project.start_date is not None

    def test_create_rejects_inverted_dates(self, db_session, team, editor):
        start = datetime.now(timezone.utc)
        with pytest.raises(HTTPException) as exc:
            projects.create(
                db_session,
                ProjectCreate(
                    name="Backwards",
                    team_id=team.id,
                    start_date=start,
                    end_date=start - timedelta(days=1),
                ),
                editor,
            )
        assert exc.value.status_code == 400
        assert exc.value.detail == "Validation failed: End date must be after start date"

    def test_create_requires_team_access(self, db_session, team, make_user):
        outsider = make_user(UserRole.editor)
        with pytest.raises(HTTPException) as exc:
            projects.create(db_session, ProjectCreate(name="Side", team_id=team.id), outsider)
        assert exc.value.status_code == 403

    def test_create_unknown_team(self, db_session, editor):
        with pytest.raises(HTTPException) as exc:
            projects.create(
                db_session, ProjectCreate(name="Lost", team_id=uuid.uuid4()), editor
            )
        assert exc.value.detail == "Team not found"

    def test_list_mine_and_for_team(self, db_session, project, team, editor, viewer):
        db_session.add(
            Project(
                name="Migration",
                team_id=team.id,
                owner_id=editor.id,
                priority=ProjectPriority.high,
            )
        )
        db_session.commit()

        mine = projects.list_mine(db_session, {"sort_by": "name", "sort_order": "asc"}, editor)
        assert [p.name for p in mine] == ["Audit 2026", "Migration"]
        assert projects.list_mine(db_session, {}, viewer) == []

        high = projects.list_for_team(db_session, str(team.id), {"priority": "high"}, viewer)
        assert [p.name for p in high] == ["Migration"]
        found = projects.list_for_team(db_session, str(team.id), {"search": "audit"}, viewer)
        assert [p.id for p in found] == [project.id]

    def test_list_for_team_denied(self, db_session, team, make_user):
        with pytest.raises(HTTPException) as exc:
            projects.list_for_team(db_session, str(team.id), {}, make_user(UserRole.editor))
        assert exc.value.status_code == 403

    def test_team_member_can_view(self, db_session, project, viewer):
        assert projects.get(db_session, str(project.id), viewer).id == project.id

    def test_update(self, db_session, project, editor):
        updated = projects.update(
            db_session,
            str(project.id),
            ProjectUpdate(status=ProjectStatus.on_hold, tags=["paused"]),
            editor,
        )
        assert updated.status == ProjectStatus.on_hold
        assert updated.tags == ["paused"]

    def test_update_denied_for_member(self, db_session, project, viewer):
        with pytest.raises(HTTPException) as exc:
            projects.update(db_session, str(project.id), ProjectUpdate(name="Mine"), viewer)
        assert exc.value.status_code == 403

    def test_update_inverted_dates(self, db_session, project, editor):
        with pytest.raises(HTTPException) as exc:
            projects.update(
                db_session,
                str(project.id),
                ProjectUpdate(end_date=datetime.now(timezone.utc) - timedelta(days=30)),
                editor,
            )
        assert exc.value.status_code == 400

    def test_delete(self, db_session, project, editor):
        projects.delete(db_session, str(project.id), editor)
        assert db_session.get(Project, project.id) is None


class TestCollaborators:
    def test_add_team_member(self, db_session, project, editor, viewer):
        result = projects.add_collaborator(
            db_session, str(project.id), CollaboratorRequest(user_id=viewer.id), editor
        )
        roles = {c.user_id: c.role for c in result.collaborators}
        assert roles[viewer.id] == CollaboratorRole.contributor
        assert result.collaborator_count == 2

    def test_add_non_member(self, db_session, project, editor, admin):
        with pytest.raises(HTTPException) as exc:
            projects.add_collaborator(
                db_session, str(project.id), CollaboratorRequest(user_id=admin.id), editor
            )
        assert exc.value.detail == "User must be a team member"

    def test_add_twice(self, db_session, project, editor):
        with pytest.raises(HTTPException) as exc:
            projects.add_collaborator(
                db_session, str(project.id), CollaboratorRequest(user_id=editor.id), editor
            )
        assert exc.value.status_code == 409

    def test_collaborator_leaves(self, db_session, project, viewer):
        project.collaborators.append(ProjectCollaborator(user_id=viewer.id))
        db_session.commit()
        result = projects.remove_collaborator(
            db_session, str(project.id), str(viewer.id), viewer
        )
        assert result.collaborator_count == 1

    def test_cannot_remove_owner(self, db_session, project, editor):
        with pytest.raises(HTTPException) as exc:
            projects.remove_collaborator(db_session, str(project.id), str(editor.id), editor)
        assert exc.value.detail == "Cannot remove project owner"

    def test_remove_unknown(self, db_session, project, editor):
        with pytest.raises(HTTPException) as exc:
            projects.remove_collaborator(
                db_session, str(project.id), str(uuid.uuid4()), editor
            )
        assert exc.value.detail == "Collaborator not found"


class TestProjectItems:
    def test_documents(self, db_session, project, editor, document):
        result = projects.add_document(db_session, str(project.id), document.id, editor)
        assert result.document_count == 1
        with pytest.raises(HTTPException) as exc:
            projects.add_document(db_session, str(project.id), document.id, editor)
        assert exc.value.detail == "Document already in project"

        result = projects.remove_document(db_session, str(project.id), document.id, editor)
        assert result.documents == []

    def test_books(self, db_session, project, editor, book_category):
        book = Book(title="Runbooks", category_id=book_category.id)
        db_session.add(book)
        db_session.commit()

        result = projects.add_book(db_session, str(project.id), book.id, editor)
        assert [b.id for b in result.books] == [book.id]
        with pytest.raises(HTTPException) as exc:
            projects.add_book(db_session, str(project.id), book.id, editor)
        assert exc.value.status_code == 409

        result = projects.remove_book(db_session, str(project.id), str(book.id), editor)
        assert result.books == []

    def test_progress_counts_upcoming_reviews(self, db_session, project, editor, document):
        assert project.progress == 0
        document.opens_for_review = datetime.now(timezone.utc) + timedelta(days=10)
        db_session.commit()
        result = projects.add_document(db_session, str(project.id), document.id, editor)
        assert result.progress == 100


class TestProjectEndpoints:
    def test_create_and_get(self, client, auth_headers, team):
        resp = client.post(
            "/api/projects",
            json={"name": "Rollout", "team_id": str(team.id), "priority": "critical"},
            headers=auth_headers,
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["priority"] == "critical"
        assert data["collaborator_count"] == 1

        resp = client.get(f"/api/projects/{data['id']}", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["owner"]["id"] == data["owner"]["id"]

    def test_my_projects_filter(self, client, auth_headers, project):
        resp = client.get("/api/projects/my-projects?status=active", headers=auth_headers)
        assert [p["id"] for p in resp.json()] == [str(project.id)]
        resp = client.get("/api/projects/my-projects?status=archived", headers=auth_headers)
        assert resp.json() == []

    def test_team_projects(self, client, viewer_headers, project, team):
        resp = client.get(f"/api/projects/team/{team.id}", headers=viewer_headers)
        assert resp.status_code == 200
        assert len(resp.json()) == 1

    def test_collaborators(self, client, auth_headers, project, viewer):
        resp = client.post(
            f"/api/projects/{project.id}/collaborators",
            json={"user_id": str(viewer.id), "role": "viewer"},
            headers=auth_headers,
        )
        assert resp.status_code == 200

        resp = client.get(f"/api/projects/{project.id}/collaborators", headers=auth_headers)
        roles = {c["user"]["id"]: c["role"] for c in resp.json()}
        assert roles[str(viewer.id)] == "viewer"

    def test_attach_document(self, client, auth_headers, project, document):
        resp = client.post(
            f"/api/projects/{project.id}/documents",
            json={"document_id": str(document.id)},
            headers=auth_headers,
        )
        assert resp.json()["document_count"] == 1
        resp = client.delete(
            f"/api/projects/{project.id}/documents/{document.id}", headers=auth_headers
        )
        assert resp.json()["document_count"] == 0

    def test_delete(self, client, auth_headers, project):
        resp = client.delete(f"/api/projects/{project.id}", headers=auth_headers)
        assert resp.status_code == 204

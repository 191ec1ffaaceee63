import pytest
from fastapi import HTTPException

from app.models.docman import ChartDataSource, ChartType, CustomChart, Document
from app.models.user import UserRole
from app.schemas.analytics import CustomChartCreate, CustomChartUpdate
from app.services.chart import chart_data, charts


def _chart_payload(**overrides) -> CustomChartCreate:
    values = dict(
        name="Docs by author",
        chart_type=ChartType.bar,
        data_source=ChartDataSource.documents,
        group_by_field="author",
    )
    values.update(overrides)
    return CustomChartCreate(**values)


@pytest.fixture()
def chart(db_session, editor):
    c = CustomChart(
        name="Users by role",
        chart_type=ChartType.pie,
        data_source=ChartDataSource.users,
        group_by_field="role",
        created_by_id=editor.id,
    )
    db_session.add(c)
    db_session.commit()
    db_session.refresh(c)
    return c


class TestChartData:
    def test_group_by_reference_uses_names(self, db_session, document, editor, admin):
        db_session.add_all(
            [
                Document(title="Second", author_id=editor.id),
                Document(title="Third", author_id=admin.id),
            ]
        )
        db_session.commit()
        chart = CustomChart(
            name="x",
            chart_type=ChartType.bar,
            data_source=ChartDataSource.documents,
            group_by_field="author",
        )
        assert chart_data(db_session, chart) == [
            {"label": editor.full_name, "value": 2},
            {"label": admin.full_name, "value": 1},
        ]

    def test_group_by_enum(self, db_session, viewer, editor, make_user):
        make_user(UserRole.viewer)
        chart = CustomChart(
            name="x",
            chart_type=ChartType.pie,
            data_source=ChartDataSource.users,
            group_by_field="role",
        )
        points = {p["label"]: p["value"] for p in chart_data(db_session, chart)}
        assert points == {"viewer": 2, "editor": 1}

    def test_boolean_and_missing_values(self, db_session, document, category):
        db_session.add(Document(title="Loose", author_id=document.author_id))
        db_session.commit()
        by_done = CustomChart(
            name="x",
            chart_type=ChartType.bar,
            data_source=ChartDataSource.documents,
            group_by_field="review_completed",
        )
        assert chart_data(db_session, by_done) == [{"label": "false", "value": 2}]

        by_category = CustomChart(
            name="x",
            chart_type=ChartType.bar,
            data_source=ChartDataSource.documents,
            group_by_field="category",
        )
        labels = sorted(p["label"] for p in chart_data(db_session, by_category))
        assert labels == ["Policies", "Unknown"]

    def test_total_without_group(self, db_session, document):
        chart = CustomChart(
            name="x",
            chart_type=ChartType.bar,
            data_source=ChartDataSource.documents,
            group_by_field="",
            filters={"review_completed": False},
        )
        assert chart_data(db_session, chart) == [{"label": "total", "value": 1}]

    def test_filter_on_enum(self, db_session, viewer, editor):
        chart = CustomChart(
            name="x",
            chart_type=ChartType.bar,
            data_source=ChartDataSource.users,
            group_by_field="role",
            filters={"role": "editor"},
        )
        assert chart_data(db_session, chart) == [{"label": "editor", "value": 1}]

    def test_bad_filter_value(self, db_session):
        chart = CustomChart(
            name="x",
            chart_type=ChartType.bar,
            data_source=ChartDataSource.users,
            group_by_field="role",
            filters={"role": "wizard"},
        )
        with pytest.raises(HTTPException) as exc:
            chart_data(db_session, chart)
        assert exc.value.detail == "Invalid value for filter role: wizard"


class TestChartsService:
    def test_create(self, db_session, editor):
        chart = charts.create(db_session, _chart_payload(name="  Authors  by   role "), editor)
        assert chart.name == "Authors by role"
        assert chart.created_by_id == editor.id

    def test_create_rejects_unknown_group(self, db_session, editor):
        with pytest.raises(HTTPException) as exc:
            charts.create(db_session, _chart_payload(group_by_field="password_hash"), editor)
        assert exc.value.status_code == 400
        assert exc.value.detail.startswith("Invalid group_by field for documents")

    def test_create_rejects_unknown_filter(self, db_session, editor):
        with pytest.raises(HTTPException) as exc:
            charts.create(db_session, _chart_payload(filters={"title": "x"}), editor)
        assert exc.value.detail == "Invalid filter field: title"

    def test_list_own_first_then_public(self, db_session, chart, editor, admin):
        shared = CustomChart(
            name="Shared",
            chart_type=ChartType.line,
            data_source=ChartDataSource.projects,
            group_by_field="status",
            created_by_id=admin.id,
            is_public=True,
        )
        hidden = CustomChart(
            name="Hidden",
            chart_type=ChartType.line,
            data_source=ChartDataSource.projects,
            created_by_id=admin.id,
        )
        db_session.add_all([shared, hidden])
        db_session.commit()
        assert [c.name for c in charts.list(db_session, editor)] == ["Users by role", "Shared"]

    def test_get_private_chart(self, db_session, chart, viewer, admin):
        with pytest.raises(HTTPException) as exc:
            charts.get(db_session, str(chart.id), viewer)
        assert exc.value.status_code == 403
        assert charts.get(db_session, str(chart.id), admin).id == chart.id

    def test_update_owner_only(self, db_session, chart, editor, admin):
        with pytest.raises(HTTPException) as exc:
            charts.update(db_session, str(chart.id), CustomChartUpdate(is_public=True), admin)
        assert exc.value.detail == "Access denied: You can only update your own charts"

        updated = charts.update(
            db_session,
            str(chart.id),
            CustomChartUpdate(data_source=ChartDataSource.teams, group_by_field="owner"),
            editor,
        )
        assert updated.data_source == ChartDataSource.teams

    def test_update_validates_against_current_source(self, db_session, chart, editor):
        with pytest.raises(HTTPException):
            charts.update(
                db_session, str(chart.id), CustomChartUpdate(group_by_field="priority"), editor
            )

    def test_delete(self, db_session, chart, editor):
        charts.delete(db_session, str(chart.id), editor)
        assert db_session.get(CustomChart, chart.id) is None

    def test_data(self, db_session, chart, editor, viewer):
        result = charts.data(db_session, str(chart.id), editor)
        assert result["group_by"] == "role"
        assert {p["label"] for p in result["data"]} == {"viewer", "editor"}


class TestChartEndpoints:
    def test_create_and_fetch_data(self, client, auth_headers, document):
        resp = client.post(
            "/api/charts",
            json={
                "name": "Docs by author",
                "chart_type": "polarArea",
                "data_source": "documents",
                "group_by_field": "author",
            },
            headers=auth_headers,
        )
        assert resp.status_code == 201
        chart_id = resp.json()["id"]

        resp = client.get(f"/api/charts/{chart_id}/data", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["data"] == [{"label": "Eddie Editor", "value": 1}]

    def test_viewer_cannot_create(self, client, viewer_headers):
        resp = client.post(
            "/api/charts",
            json={"name": "x", "chart_type": "bar", "data_source": "users"},
            headers=viewer_headers,
        )
        assert resp.status_code == 403

    def test_list(self, client, auth_headers, chart):
        resp = client.get("/api/charts", headers=auth_headers)
        assert [c["id"] for c in resp.json()] == [str(chart.id)]

import os
import unittest
import uuid

from fastapi.testclient import TestClient
from sqlalchemy import Column, Integer, MetaData, String, Table, create_engine, delete, insert
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from app.main import app
from app.db.session import Base, get_db
from app.models.custom_field import CustomField
from app.models.form_section import FormSection
from app.models.process_template import ProcessTemplate, SubProcessTemplate
from app.models.request_field_value import RequestFieldValue
from app.models.table_lookup_config import TableLookupConfig

REFERENCE_METADATA = MetaData()
COMPANIES = Table(
    "companies",
    REFERENCE_METADATA,
    Column("id", Integer, primary_key=True),
    Column("name", String(200), nullable=False),
    Column("city", String(200), nullable=True),
)
ENGINE_MODELS = [ProcessTemplate, SubProcessTemplate, FormSection, CustomField, TableLookupConfig, RequestFieldValue]


class FormsApiTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autocommit=False, autoflush=False)
        Base.metadata.create_all(bind=cls.engine, tables=[model.__table__ for model in ENGINE_MODELS])
        REFERENCE_METADATA.create_all(bind=cls.engine)

    @classmethod
    def tearDownClass(cls):
        REFERENCE_METADATA.drop_all(bind=cls.engine)
        Base.metadata.drop_all(bind=cls.engine, tables=[model.__table__ for model in ENGINE_MODELS])
        cls.engine.dispose()

    def setUp(self):
        with self.SessionLocal() as db:
            for model in ENGINE_MODELS:
                db.execute(delete(model))
            db.execute(delete(COMPANIES))
            db.commit()
            self._seed(db)

        def override_get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)

    def tearDown(self):
        self.client.close()
        app.dependency_overrides.clear()

    def _seed(self, db):
        process = ProcessTemplate(name="Procurement")
        db.add(process)
        db.flush()
        sub = SubProcessTemplate(process_template_id=process.id, name="Purchase")
        db.add(sub)
        db.flush()
        section = FormSection(process_template_id=process.id, name="details", label="Details", order_index=1)
        db.add(section)
        db.flush()

        title = CustomField(name="title", label="Title", field_type="text", required=True, is_common=True)
        kind = CustomField(
            name="kind",
            label="Kind",
            field_type="select",
            options=["X", "Y"],
            process_template_id=process.id,
            order_index=0,
        )
        db.add_all([title, kind])
        db.flush()
        reason = CustomField(
            name="reason",
            label="Reason",
            field_type="textarea",
            required=True,
            process_template_id=process.id,
            order_index=1,
            section_id=section.id,
            condition_field_id=kind.id,
            condition_operator="equals",
            condition_value="X",
        )
        lines = CustomField(
            name="lines",
            label="Lines",
            field_type="repeatable_table",
            sub_process_template_id=sub.id,
            options=[
                {
                    "key": "supplier",
                    "label": "Supplier",
                    "columnType": "table_lookup",
                    "lookupTable": "companies",
                    "lookupDisplayColumns": ["city"],
                },
            ],
        )
        disabled = CustomField(name="legacy", label="Legacy", enabled=False, is_common=True)
        db.add_all([reason, lines, disabled])
        db.add(TableLookupConfig(table_name="companies", value_column="id", display_column="name", label="Companies"))
        db.execute(
            insert(COMPANIES),
            [{"id": 1, "name": "Globex", "city": "Lyon"}, {"id": 2, "name": "Acme", "city": "Paris"}],
        )
        db.commit()

        self.process_id = str(process.id)
        self.sub_id = str(sub.id)
        self.ids = {
            "title": str(title.id),
            "kind": str(kind.id),
            "reason": str(reason.id),
            "lines": str(lines.id),
            "legacy": str(disabled.id),
        }

    def _context(self, **extra):
        return {"process_id": self.process_id, "sub_process_ids": [self.sub_id], **extra}

    def test_resolve_groups_fields_by_scope_and_section(self):
        response = self.client.post("/api/forms/resolve", json=self._context())
        self.assertEqual(response.status_code, 200)
        body = response.json()
        fields = body["fields"]
        self.assertEqual([f["id"] for f in fields["common_fields"]], [self.ids["title"]])
        self.assertEqual([f["id"] for f in fields["process_fields"]], [self.ids["kind"], self.ids["reason"]])
        self.assertEqual(len(fields["sub_process_groups"]), 1)
        group = fields["sub_process_groups"][0]
        self.assertEqual(group["sub_process_name"], "Purchase")
        self.assertEqual([f["id"] for f in group["fields"]], [self.ids["lines"]])
        self.assertEqual([s["label"] for s in body["sections"]], ["General", "Details"])
        self.assertEqual([f["id"] for f in body["sections"][1]["fields"]], [self.ids["reason"]])

    def test_resolve_rejects_malformed_identifiers(self):
        response = self.client.post("/api/forms/resolve", json={"process_id": "not-a-uuid"})
        self.assertEqual(response.status_code, 400)

    def test_visibility_follows_answers(self):
        hidden = self.client.post("/api/forms/visibility", json=self._context(answers={self.ids["kind"]: "Y"}))
        self.assertEqual(hidden.status_code, 200)
        self.assertFalse(hidden.json()[self.ids["reason"]])
        self.assertTrue(hidden.json()[self.ids["title"]])

        shown = self.client.post("/api/forms/visibility", json=self._context(answers={self.ids["kind"]: "X"}))
        self.assertTrue(shown.json()[self.ids["reason"]])

    def test_validate_reports_first_invalid_field(self):
        response = self.client.post("/api/forms/validate", json=self._context(answers={self.ids["kind"]: "X"}))
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertFalse(body["valid"])
        self.assertEqual(set(body["errors"]), {self.ids["title"], self.ids["reason"]})
        self.assertEqual(body["first_invalid_field_id"], self.ids["title"])

        ok = self.client.post(
            "/api/forms/validate",
            json=self._context(answers={self.ids["title"]: "Laptop", self.ids["kind"]: "Y"}),
        )
        self.assertEqual(ok.json(), {"valid": True, "errors": {}, "first_invalid_field_id": None})

    def test_lookup_rows_are_ordered_by_label(self):
        response = self.client.get("/api/forms/lookup/companies", params={"display_columns": "city"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(),
            [{"id": 2, "name": "Acme", "city": "Paris"}, {"id": 1, "name": "Globex", "city": "Lyon"}],
        )
        limited = self.client.get("/api/forms/lookup/companies", params={"limit": 1})
        self.assertEqual(len(limited.json()), 1)

    def test_lookup_failures_yield_empty_lists(self):
        not_configured = self.client.get("/api/forms/lookup/process_templates")
        self.assertEqual(not_configured.json(), [])
        missing_column = self.client.get("/api/forms/lookup/companies", params={"display_columns": "siret"})
        self.assertEqual(missing_column.json(), [])

    def test_table_columns(self):
        response = self.client.get(f"/api/forms/tables/{self.ids['lines']}/columns")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([c["key"] for c in body["columns"]], ["supplier", "supplier__city"])
        self.assertEqual(body["editable"], ["supplier"])

        self.assertEqual(self.client.get(f"/api/forms/tables/{self.ids['kind']}/columns").status_code, 400)
        self.assertEqual(self.client.get(f"/api/forms/tables/{uuid.uuid4()}/columns").status_code, 404)
        self.assertEqual(self.client.get(f"/api/forms/tables/{self.ids['legacy']}/columns").status_code, 404)

    def test_lookup_select_fills_display_columns(self):
        payload = {
            "rows": [{"id": "row-1", "values": {"supplier": ""}}],
            "row_id": "row-1",
            "column_key": "supplier",
            "label": "Acme",
        }
        response = self.client.post(f"/api/forms/tables/{self.ids['lines']}/lookup-select", json=payload)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json()["rows"],
            [{"id": "row-1", "values": {"supplier": "Acme", "supplier__city": "Paris"}}],
        )

        payload["column_key"] = "nope"
        bad = self.client.post(f"/api/forms/tables/{self.ids['lines']}/lookup-select", json=payload)
        self.assertEqual(bad.status_code, 400)

    def test_request_answers_round_trip(self):
        empty = self.client.get("/api/forms/requests/REQ-1/answers")
        self.assertEqual(empty.json(), {"request_id": "REQ-1", "answers": {}})

        invalid = self.client.put("/api/forms/requests/REQ-1/answers", json=self._context(answers={}))
        self.assertEqual(invalid.status_code, 400)
        detail = invalid.json()["detail"]
        self.assertEqual(detail["first_invalid_field_id"], self.ids["title"])

        answers = {
            self.ids["title"]: "Laptop",
            self.ids["kind"]: "Y",
            self.ids["lines"]: [{"id": "row-1", "values": {"supplier": "Acme", "supplier__city": "Paris"}}],
        }
        saved = self.client.put("/api/forms/requests/REQ-1/answers", json=self._context(answers=answers))
        self.assertEqual(saved.status_code, 200)
        self.assertEqual(saved.json()["answers"], answers)

        answers[self.ids["title"]] = "Desktop"
        self.client.put("/api/forms/requests/REQ-1/answers", json=self._context(answers=answers))
        loaded = self.client.get("/api/forms/requests/REQ-1/answers").json()
        self.assertEqual(loaded["answers"][self.ids["title"]], "Desktop")
        with self.SessionLocal() as db:
            self.assertEqual(db.query(RequestFieldValue).count(), 3)

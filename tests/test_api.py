# tests/test_api.py
import json
import os
import shutil
import sys
import tempfile
import unittest

os.environ.setdefault("BCRYPT_ROUNDS", "4")

# Add parent directory to path to import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import httpx
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

import config_env
from backend.app import app
from backend.database import get_session, init_db, make_engine
from backend.models import Achievement, RevenueEntry
from backend.routes.startups import content_disposition
from backend.services.accounts import ensure_admin

STARTUP = {
    "companyName": "Acme",
    "founderName": "Jane",
    "founderEmail": "jane@acme.io",
    "sector": "AI",
    "stage": "S1",
}


class ApiTestCase(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.engine = make_engine(
            "sqlite+aiosqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        await init_db(bind=self.engine)
        self.sessionmaker = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

        async def override_session():
            async with self.sessionmaker() as session:
                yield session

        app.dependency_overrides[get_session] = override_session

        async with self.sessionmaker() as session:
            await ensure_admin(session, "admin", "magic2024", "admin@magic.com")

        self.upload_dir = tempfile.mkdtemp()
        self._upload_dir = config_env.UPLOAD_DIR
        config_env.UPLOAD_DIR = self.upload_dir

        self.client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")
        self.admin = await self.login("admin", "magic2024")

    async def asyncTearDown(self):
        await self.client.aclose()
        app.dependency_overrides.clear()
        config_env.UPLOAD_DIR = self._upload_dir
        shutil.rmtree(self.upload_dir, ignore_errors=True)
        await self.engine.dispose()

    async def login(self, username, password):
        resp = await self.client.post("/auth/login", json={"username": username, "password": password})
        self.assertEqual(resp.status_code, 200, resp.text)
        return {"Authorization": f"Bearer {resp.json()['token']}"}

    async def create_startup(self, **overrides):
        body = dict(STARTUP, **overrides)
        resp = await self.client.post("/startups", json=body, headers=self.admin)
        self.assertEqual(resp.status_code, 201, resp.text)
        return resp.json()

    async def create_guest(self, **body):
        resp = await self.client.post("/guests", json=body, headers=self.admin)
        self.assertEqual(resp.status_code, 201, resp.text)
        return resp.json()["guest"]


class TestContentDisposition(unittest.TestCase):

    def test_ascii_name_unchanged(self):
        self.assertEqual(
            content_disposition("MAGIC-Startups-2024-03-05.csv"),
            "attachment; filename=\"MAGIC-Startups-2024-03-05.csv\"; "
            "filename*=UTF-8''MAGIC-Startups-2024-03-05.csv",
        )

    def test_header_is_latin1_safe(self):
        for name in ("MAGIC-Мэджик-Лабс-Details-2024-03-05.pdf", "MAGIC-₹-Fund-2024-03-05.csv",
                     "MAGIC-स्टार्टअप-2024-03-05.pdf", 'MAGIC-a\\b"c-2024-03-05.csv'):
            header = content_disposition(name)
            header.encode("latin-1")
            fallback = header.split('filename="', 1)[1].split('"', 1)[0]
            self.assertNotIn("\\", fallback)
            self.assertTrue(fallback.isascii())


class TestAuth(ApiTestCase):

    async def test_me_and_logout(self):
        resp = await self.client.get("/auth/me", headers=self.admin)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["username"], "admin")
        self.assertNotIn("password", resp.json())

        resp = await self.client.post("/auth/logout", headers=self.admin)
        self.assertEqual(resp.status_code, 200)
        resp = await self.client.get("/auth/me", headers=self.admin)
        self.assertEqual(resp.status_code, 401)

    async def test_missing_or_bad_token(self):
        resp = await self.client.get("/startups")
        self.assertEqual(resp.status_code, 401)
        resp = await self.client.get("/startups", headers={"Authorization": "Bearer nope"})
        self.assertEqual(resp.status_code, 401)

    async def test_bad_credentials(self):
        resp = await self.client.post("/auth/login", json={"username": "admin", "password": "wrong"})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["message"], "Invalid credentials")

    async def test_username_is_case_insensitive(self):
        await self.login("ADMIN", "magic2024")

    async def test_change_password(self):
        resp = await self.client.post(
            "/auth/change-password",
            json={"currentPassword": "wrong", "newPassword": "another1"},
            headers=self.admin,
        )
        self.assertEqual(resp.status_code, 400)
        resp = await self.client.post(
            "/auth/change-password",
            json={"currentPassword": "magic2024", "newPassword": "another1"},
            headers=self.admin,
        )
        self.assertEqual(resp.status_code, 200)
        await self.login("admin", "another1")


class TestStartups(ApiTestCase):

    async def test_create_maps_legacy_fields(self):
        created = await self.create_startup()
        self.assertEqual(created["name"], "Acme")
        self.assertEqual(created["companyName"], "Acme")
        self.assertEqual(created["founder"], "Jane")
        self.assertEqual(created["email"], "jane@acme.io")
        self.assertEqual(created["status"], "Active")
        self.assertEqual(created["magicCode"], created["id"][-6:].upper())

    async def test_required_field_message(self):
        resp = await self.client.post("/startups", json={"founderName": "J", "sector": "AI"}, headers=self.admin)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Company name is required")

    async def test_duplicate_email(self):
        await self.create_startup()
        resp = await self.client.post(
            "/startups", json=dict(STARTUP, founderEmail="JANE@acme.io"), headers=self.admin
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Startup with this email already exists")

    async def test_update_and_missing(self):
        created = await self.create_startup()
        resp = await self.client.put(f"/startups/{created['id']}", json={"city": "Pune"}, headers=self.admin)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["city"], "Pune")
        self.assertEqual(resp.json()["name"], "Acme")

        resp = await self.client.delete("/startups/doesnotexist", headers=self.admin)
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["message"], "Startup not found")

    async def test_nested_collections_and_cascade(self):
        created = await self.create_startup()
        sid = created["id"]
        resp = await self.client.post(f"/startups/{sid}/achievements", json={"title": "Won pitch"}, headers=self.admin)
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["type"], "General")
        resp = await self.client.post(f"/startups/{sid}/progress", json={"metric": "Users", "value": 120}, headers=self.admin)
        self.assertEqual(resp.status_code, 201)
        resp = await self.client.post(f"/startups/{sid}/revenue", json={"amount": 100}, headers=self.admin)
        self.assertEqual(resp.status_code, 201)
        resp = await self.client.post(f"/startups/{sid}/revenue", json={"amount": 250}, headers=self.admin)
        self.assertEqual(resp.status_code, 201)

        detail = (await self.client.get(f"/startups/{sid}", headers=self.admin)).json()
        self.assertEqual(len(detail["achievements"]), 1)
        self.assertEqual(len(detail["progressHistory"]), 1)
        self.assertEqual(sum(r["amount"] for r in detail["revenueHistory"]), 350)

        resp = await self.client.delete(f"/startups/{sid}", headers=self.admin)
        self.assertEqual(resp.status_code, 200)
        async with self.sessionmaker() as session:
            self.assertEqual((await session.execute(select(func.count(Achievement.id)))).scalar(), 0)
            self.assertEqual((await session.execute(select(func.count(RevenueEntry.id)))).scalar(), 0)

    async def test_delete_achievement(self):
        sid = (await self.create_startup())["id"]
        ach = (await self.client.post(f"/startups/{sid}/achievements", json={"title": "A"}, headers=self.admin)).json()
        resp = await self.client.delete(f"/startups/{sid}/achievements/{ach['id']}", headers=self.admin)
        self.assertEqual(resp.status_code, 200)
        resp = await self.client.delete(f"/startups/{sid}/achievements/{ach['id']}", headers=self.admin)
        self.assertEqual(resp.status_code, 404)

    async def test_list_filters_and_stats(self):
        await self.create_startup()
        await self.create_startup(companyName="Beta", founderEmail="b@beta.io", stage="S0", sector="Fintech")

        resp = await self.client.get("/startups", params={"stage": "S0"}, headers=self.admin)
        self.assertEqual([r["name"] for r in resp.json()], ["Beta"])
        resp = await self.client.get("/startups", params={"search": "acm", "sector": "all"}, headers=self.admin)
        self.assertEqual([r["name"] for r in resp.json()], ["Acme"])

        stats = (await self.client.get("/startups/stats/overview", headers=self.admin)).json()
        self.assertEqual(stats["totalCount"], 2)
        self.assertEqual({s["_id"]: s["count"] for s in stats["stageStats"]}, {"S0": 1, "S1": 1})

    async def test_upload_document(self):
        sid = (await self.create_startup())["id"]
        resp = await self.client.post(
            f"/startups/{sid}/upload",
            files={"document": ("mou.pdf", b"%PDF-1.4 test", "application/pdf")},
            data={"title": "MoU", "type": "Agreement"},
            headers=self.admin,
        )
        self.assertEqual(resp.status_code, 201, resp.text)
        self.assertTrue(resp.json()["fileUrl"].startswith("/uploads/"))
        self.assertEqual(len(os.listdir(self.upload_dir)), 1)


class TestExportAndImport(ApiTestCase):

    async def test_export_csv(self):
        await self.create_startup()
        resp = await self.client.get("/startups/export", params={"format": "csv"}, headers=self.admin)
        self.assertEqual(resp.status_code, 200)
        self.assertIn("attachment;", resp.headers["content-disposition"])
        self.assertIn("MAGIC-Startups-", resp.headers["content-disposition"])
        self.assertTrue(resp.text.startswith("Magic Code,Company Name"))

    async def test_export_json_and_detail_pdf(self):
        created = await self.create_startup()
        resp = await self.client.get("/startups/export", params={"format": "json"}, headers=self.admin)
        self.assertEqual(resp.json()["totalCount"], 1)
        resp = await self.client.get(f"/startups/{created['id']}/export", headers=self.admin)
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.content.startswith(b"%PDF"))

    async def test_non_latin_name_exports_with_encoded_filename(self):
        created = await self.create_startup(companyName="Мэджик Лабс")
        resp = await self.client.get(f"/startups/{created['id']}/export", headers=self.admin)
        self.assertEqual(resp.status_code, 200, resp.text)
        disposition = resp.headers["content-disposition"]
        self.assertIn('filename="MAGIC-Details-', disposition)
        self.assertIn("filename*=UTF-8''MAGIC-%D0%9C%D1%8D%D0%B4%D0%B6%D0%B8%D0%BA-", disposition)
        self.assertTrue(resp.content.startswith(b"%PDF"))

        resp = await self.client.get(
            "/startups/export", params={"format": "csv", "title": "Стартапы"}, headers=self.admin
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertIn("filename*=UTF-8''MAGIC-%D0%A1", resp.headers["content-disposition"])

    async def test_quote_in_title_keeps_header_well_formed(self):
        await self.create_startup()
        resp = await self.client.get(
            "/startups/export", params={"format": "csv", "title": 'Q"4'}, headers=self.admin
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        disposition = resp.headers["content-disposition"]
        self.assertTrue(disposition.startswith('attachment; filename="MAGIC-Q4-'))
        self.assertIn("filename*=UTF-8''MAGIC-Q%224-", disposition)

    async def test_empty_export_and_bad_format(self):
        resp = await self.client.get("/startups/export", params={"format": "csv"}, headers=self.admin)
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["message"], "No startups to export")

        await self.create_startup()
        resp = await self.client.get("/startups/export", params={"format": "docx"}, headers=self.admin)
        self.assertEqual(resp.status_code, 400)

    async def test_reports(self):
        resp = await self.client.get("/startups/reports/revenue", headers=self.admin)
        self.assertEqual(resp.status_code, 404)
        sid = (await self.create_startup())["id"]
        await self.client.post(f"/startups/{sid}/achievements", json={"title": "Won"}, headers=self.admin)
        resp = await self.client.get("/startups/reports/achievements", params={"format": "csv"}, headers=self.admin)
        self.assertEqual(resp.status_code, 200)
        self.assertIn("Won", resp.text)

    async def test_import_csv(self):
        content = (
            "Company Name,Founder,Email,Sector\n"
            "Alpha,Ann,ann@alpha.io,AI\n"
            ",NoName,x@y.io,AI\n"
            "Alpha Two,Bob,ann@alpha.io,AI\n"
        ).encode("utf-8")
        resp = await self.client.post(
            "/startups/import",
            files={"file": ("startups.csv", content, "text/csv")},
            headers=self.admin,
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        summary = resp.json()
        self.assertEqual(summary["total"], 3)
        self.assertEqual(summary["created"], 1)
        self.assertEqual(summary["results"][1]["message"], "Company name is required")
        self.assertEqual(summary["results"][2]["message"], "Startup with this email already exists")

    async def test_import_json_envelope(self):
        content = json.dumps({"startups": [dict(STARTUP)]}).encode("utf-8")
        resp = await self.client.post(
            "/startups/import",
            files={"file": ("dump.json", content, "application/json")},
            headers=self.admin,
        )
        self.assertEqual(resp.json()["created"], 1)


class TestGuests(ApiTestCase):

    async def test_create_uses_placeholder_email(self):
        guest = await self.create_guest(username="Mentor1", password="secret1")
        self.assertEqual(guest["username"], "mentor1")
        self.assertEqual(guest["email"], "mentor1@guest.magic.com")
        self.assertEqual(guest["role"], "guest")
        self.assertTrue(guest["isActive"])

    async def test_reserved_and_short_values(self):
        resp = await self.client.post("/guests", json={"username": "Admin", "password": "secret1"}, headers=self.admin)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], 'Cannot use "admin" as guest username')

        resp = await self.client.post("/guests", json={"username": "mentor", "password": "123"}, headers=self.admin)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Password must be at least 6 characters")

    async def test_conflicts(self):
        await self.create_guest(username="mentor1", password="secret1", email="m1@x.io")
        other = await self.create_guest(username="mentor2", password="secret1")

        resp = await self.client.post("/guests", json={"username": "MENTOR1", "password": "secret1"}, headers=self.admin)
        self.assertEqual(resp.json()["message"], "Username already exists")
        resp = await self.client.post(
            "/guests", json={"username": "mentor3", "password": "secret1", "email": "m1@x.io"}, headers=self.admin
        )
        self.assertEqual(resp.json()["message"], "Email already exists")

        resp = await self.client.put(f"/guests/{other['id']}", json={"email": "m1@x.io"}, headers=self.admin)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Email already exists")

        resp = await self.client.put(f"/guests/{other['id']}", json={"name": "Mentor Two"}, headers=self.admin)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["guest"]["name"], "Mentor Two")

    async def test_toggle_and_inactive_login(self):
        guest = await self.create_guest(username="mentor1", password="secret1")
        headers = await self.login("mentor1", "secret1")

        resp = await self.client.post(f"/guests/{guest['id']}/toggle-status", headers=self.admin)
        self.assertEqual(resp.json()["message"], "Guest user deactivated successfully")
        self.assertFalse(resp.json()["guest"]["isActive"])

        resp = await self.client.get("/startups", headers=headers)
        self.assertEqual(resp.status_code, 401)
        resp = await self.client.post("/auth/login", json={"username": "mentor1", "password": "secret1"})
        self.assertEqual(resp.status_code, 403)

        resp = await self.client.post(f"/guests/{guest['id']}/toggle-status", headers=self.admin)
        self.assertEqual(resp.json()["message"], "Guest user activated successfully")

    async def test_guest_is_read_only(self):
        await self.create_guest(username="mentor1", password="secret1")
        headers = await self.login("mentor1", "secret1")

        resp = await self.client.get("/startups", headers=headers)
        self.assertEqual(resp.status_code, 200)
        for method, url in (("POST", "/startups"), ("GET", "/guests"), ("GET", "/startups/export")):
            resp = await self.client.request(method, url, json=STARTUP, headers=headers)
            self.assertEqual(resp.status_code, 403, url)
            self.assertEqual(resp.json()["message"], "Access denied. Admin only.")

    async def test_delete(self):
        guest = await self.create_guest(username="mentor1", password="secret1")
        resp = await self.client.delete(f"/guests/{guest['id']}", headers=self.admin)
        self.assertEqual(resp.json()["message"], "Guest user deleted successfully")
        resp = await self.client.delete(f"/guests/{guest['id']}", headers=self.admin)
        self.assertEqual(resp.status_code, 404)

    async def test_linked_startup_gets_guest_email(self):
        guest = await self.create_guest(username="founder1", password="secret1")
        created = await self.create_startup(founderEmail="", guestId=guest["id"])
        self.assertEqual(created["email"], "founder1@guest.magic.com")


if __name__ == '__main__':
    unittest.main()

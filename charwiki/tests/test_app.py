import io
import json
import os
import shutil
import tempfile
import unittest

from fastapi.testclient import TestClient
from PIL import Image as PIL_Image

from charwiki.app import create_app
from charwiki.config import Settings
from charwiki.db import InMemoryDbClient
from charwiki.results import Messages


def png_bytes(size=(64, 64)):
    buf = io.BytesIO()
    PIL_Image.new("RGB", size, color=(200, 100, 50)).save(buf, format="PNG")
    return buf.getvalue()


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        self.static_dir = tempfile.mkdtemp()
        self.settings = Settings(
            use_in_memory_backends=True,
            bcrypt_rounds=4,
            jwt_secret="test-secret",
            static_dir=self.static_dir,
            admin_username="admin",
            admin_password="letmein",
            upload_max_files=3,
            port=3100,
        )
        self.app = create_app(self.settings)
        self.client = TestClient(self.app)
        self.db = self.app.state.db = InMemoryDbClient()

    def tearDown(self):
        shutil.rmtree(self.static_dir)

    def register(self, username="kim", password="pw", email="kim@example.com"):
        return self.client.post(
            "/api/register",
            json={"username": username, "password": password, "email": email},
        )

    def login(self, username="kim", password="pw"):
        return self.client.post(
            "/api/login", json={"username": username, "password": password}
        )

    def auth_headers(self, username="kim", password="pw"):
        token = self.login(username, password).json()["authorization"]
        return {"Authorization": f"Bearer {token}"}

    def test_status(self):
        response = self.client.get("/api")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["message"], Messages.SERVER_RUNNING)
        self.assertEqual(payload["port"], 3100)
        self.assertIn("time", payload)

    def test_register_and_login(self):
        self.assertEqual(self.register().json(), {"message": Messages.REGISTERED})
        self.assertEqual(self.register().json(), {"message": Messages.USERNAME_TAKEN})

        response = self.login()
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["message"], Messages.LOGGED_IN)
        self.assertEqual(payload["username"], "kim")
        self.assertEqual(payload["loginCount"], 1)
        self.assertEqual(payload["editPermission"], 1)
        self.assertTrue(payload["authorization"])

    def test_failed_login_only_returns_message(self):
        self.register()
        response = self.login(password="wrong")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": Messages.WRONG_PASSWORD})

    def test_reset_password(self):
        self.register(password="old")
        response = self.client.post(
            "/api/reset",
            json={"username": "kim", "email": "kim@example.com", "password": "new"},
        )
        self.assertEqual(response.json(), {"message": Messages.PASSWORD_RESET})
        self.assertEqual(self.login(password="new").json()["message"], Messages.LOGGED_IN)

    def test_missing_body_field_is_rejected(self):
        response = self.client.post("/api/login", json={"username": "kim"})
        self.assertEqual(response.status_code, 422)

    def test_get_missing_page(self):
        response = self.client.get("/api/page", headers={"route": "/character/none"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"data": []})

    def test_save_page_requires_token(self):
        response = self.client.post("/api/page", headers={"route": "/character/filia"})
        self.assertEqual(response.status_code, 401)

        response = self.client.post(
            "/api/page",
            headers={"route": "/character/filia", "Authorization": "Bearer not-a-token"},
        )
        self.assertEqual(response.status_code, 401)

    def test_save_and_read_character_page(self):
        self.register()
        headers = {**self.auth_headers(), "route": "/character/filia"}
        document = [
            {"type": "profile", "title": "Filia", "portraitImg": "", "basicInfo": []},
            {
                "type": "content",
                "title": "Story",
                "content": [
                    {"type": "p", "text": "Hair"},
                    {"type": "h3", "text": "Samson"},
                    {"type": "img", "src": ""},
                ],
            },
        ]

        response = self.client.post(
            "/api/page",
            headers=headers,
            data={"data": json.dumps(document)},
            files=[
                ("files", ("profile_0_portrait.png", png_bytes(), "image/png")),
                ("files", ("content_1_2_pic.jpg", png_bytes(), "image/jpeg")),
                ("files", ("notes.txt", b"plain", "text/plain")),
            ],
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": Messages.DOCUMENT_SAVED})

        page = self.client.get("/api/character/filia").json()
        self.assertEqual(page["route"], "/character/filia")
        self.assertEqual(page["data"][0]["portraitImg"], "/static/profile_0_portrait.png")
        self.assertEqual(page["data"][1]["content"][2]["src"], "/static/content_1_2_pic.jpg")
        self.assertEqual(page["data"][1]["content"][1], {"type": "h3", "text": "Samson"})

        same = self.client.get("/api/page", headers={"route": "/character/filia"}).json()
        self.assertEqual(same, page)

        for name in ("profile_0_portrait.png", "profile_0_portrait_Min.png", "content_1_2_pic_Min.jpg", "notes.txt"):
            self.assertTrue(os.path.exists(os.path.join(self.static_dir, name)), name)

        served = self.client.get("/static/profile_0_portrait.png")
        self.assertEqual(served.status_code, 200)

    def test_upload_without_document(self):
        self.register()
        headers = {**self.auth_headers(), "route": "/character/filia"}
        response = self.client.post(
            "/api/page",
            headers=headers,
            files=[("files", ("x.png", png_bytes(), "image/png"))],
        )
        self.assertEqual(response.json(), {"message": Messages.FILES_UPLOADED})
        self.assertEqual(self.db.get_user("kim").edit_count, 1)

    def test_save_page_message_failures(self):
        self.register()
        headers = self.auth_headers()

        missing_route = self.client.post("/api/page", headers=headers, data={"data": "[]"})
        self.assertEqual(missing_route.status_code, 200)
        self.assertEqual(missing_route.json(), {"message": Messages.MISSING_ROUTE})

        bad_json = self.client.post(
            "/api/page", headers={**headers, "route": "/r"}, data={"data": "{not json"}
        )
        self.assertEqual(bad_json.json(), {"message": Messages.INVALID_DATA_JSON})

    def test_too_many_files(self):
        self.register()
        headers = {**self.auth_headers(), "route": "/r"}
        files = [("files", (f"f{i}.txt", b"x", "text/plain")) for i in range(4)]
        response = self.client.post("/api/page", headers=headers, files=files)
        self.assertEqual(response.status_code, 413)

    def test_save_page_without_permission(self):
        self.register()
        headers = {**self.auth_headers(), "route": "/character/filia"}
        self.client.put("/api/user/permission", json={"username": "kim", "editPermission": 0})

        response = self.client.post(
            "/api/page", headers=headers, data={"data": json.dumps([{"type": "profile"}])}
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": Messages.NO_EDIT_PERMISSION})
        self.assertIsNone(self.db.get_page("/character/filia"))

    def test_user_info(self):
        self.register()
        response = self.client.get("/api/user/info", headers=self.auth_headers())
        self.assertEqual(response.json(), {"message": Messages.USER_INFO_OK})
        self.assertEqual(self.client.get("/api/user/info").status_code, 401)

    def test_admin_roster_and_permission_toggle(self):
        self.register("admin", "x", "ops@example.com")
        self.register()

        toggled = self.client.put(
            "/api/user/permission", json={"username": "kim", "editPermission": 0}
        )
        self.assertEqual(toggled.json(), {"message": Messages.permission_changed("kim", False)})

        response = self.client.post(
            "/api/admin", json={"username": "admin", "password": "letmein"}
        )
        payload = response.json()
        self.assertEqual(payload["message"], Messages.ADMIN_LOGGED_IN)
        rows = {row["username"]: row for row in payload["data"]}
        self.assertEqual(rows["kim"]["editPermission"], 0)
        self.assertEqual(rows["kim"]["editCount"], 0)
        self.assertIsNone(rows["kim"]["lastEditTime"])

        wrong = self.client.post("/api/admin", json={"username": "admin", "password": "no"})
        self.assertEqual(wrong.json(), {"message": Messages.ADMIN_WRONG_PASSWORD})

    def test_permission_for_unknown_user(self):
        response = self.client.put(
            "/api/user/permission", json={"username": "ghost", "editPermission": 1}
        )
        self.assertEqual(response.json(), {"message": Messages.USER_NOT_FOUND})


if __name__ == "__main__":
    unittest.main()

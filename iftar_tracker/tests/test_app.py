import unittest
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from iftar_tracker.app import create_app
from iftar_tracker.catalog import CatalogError, InMemoryCatalogClient
from iftar_tracker.controller import TrackerController
from iftar_tracker.dependencies import get_controller
from iftar_tracker.markers import InMemoryVoteMarkerStore, MarkerStoreError


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        self.catalog = InMemoryCatalogClient(start_id=7)
        self.controller = TrackerController(
            catalog=self.catalog, markers=InMemoryVoteMarkerStore(), mode="memory"
        )
        app = create_app()
        app.dependency_overrides[get_controller] = lambda: self.controller
        self.client = TestClient(app)

    def test_status(self):
        response = self.client.get("/api/status")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["mode"], "memory")
        self.assertFalse(payload["read_only"])

    def test_list_and_search(self):
        response = self.client.get("/api/mosques")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["total"], 6)
        self.assertIn("map_link", payload["mosques"][0])

        response = self.client.get("/api/mosques", params={"search": "কান্দিরপাড়"})
        self.assertEqual([m["id"] for m in response.json()["mosques"]], ["1"])

        response = self.client.get("/api/mosques", params={"search": "nowhere"})
        self.assertEqual(response.json()["mosques"], [])

    def test_vote_once_per_client_cookie(self):
        first = self.client.post("/api/mosques/3/votes", json={"vote_type": "true"})
        self.assertEqual(first.status_code, 200)
        self.assertTrue(first.json()["accepted"])
        self.assertEqual(first.json()["mosque"]["true_count"], 1)
        self.assertIn("iftar_client_id", self.client.cookies)

        second = self.client.post("/api/mosques/3/votes", json={"vote_type": "fake"})
        self.assertEqual(second.status_code, 200)
        self.assertFalse(second.json()["accepted"])
        self.assertEqual(second.json()["vote_type"], "true")
        self.assertEqual(second.json()["mosque"]["fake_count"], 0)
        self.assertEqual(len(self.catalog.votes), 1)

        mine = self.client.get("/api/votes/mine")
        self.assertEqual(mine.json()["votes"], {"3": "true"})

        listing = self.client.get("/api/mosques").json()["mosques"]
        self.assertEqual(listing[0]["id"], "3")
        self.assertEqual(listing[0]["my_vote"], "true")

    def test_client_id_header(self):
        headers = {"X-Client-Id": "browser-1"}
        self.client.post("/api/mosques/2/votes", json={"vote_type": "fake"}, headers=headers)
        response = self.client.post(
            "/api/mosques/2/votes",
            json={"vote_type": "fake"},
            headers={"X-Client-Id": "browser-2"},
        )
        self.assertTrue(response.json()["accepted"])
        self.assertEqual(response.json()["mosque"]["fake_count"], 2)
        self.assertEqual(response.json()["mosque"]["net_score"], -2)

    def test_vote_errors(self):
        response = self.client.post("/api/mosques/99/votes", json={"vote_type": "true"})
        self.assertEqual(response.status_code, 404)

        response = self.client.post("/api/mosques/1/votes", json={"vote_type": "maybe"})
        self.assertEqual(response.status_code, 422)

        self.catalog.insert_vote = MagicMock(side_effect=CatalogError("down"))
        response = self.client.post("/api/mosques/1/votes", json={"vote_type": "true"})
        self.assertEqual(response.status_code, 502)

    def test_add_mosque(self):
        response = self.client.post(
            "/api/mosques",
            json={
                "name": "  Kotbari Mosque ",
                "location": "Kotbari",
                "has_biryani": True,
                "menu_items": "ছোলা, মুড়ি, , খেজুর",
                "latitude": 23.43,
                "longitude": 91.13,
            },
        )
        self.assertEqual(response.status_code, 201)
        created = response.json()
        self.assertEqual(created["id"], "7")
        self.assertEqual(created["name"], "Kotbari Mosque")
        self.assertEqual(created["menu_items"], ["ছোলা", "মুড়ি", "খেজুর"])
        self.assertEqual(created["true_count"], 0)

        fetched = self.client.get("/api/mosques/7")
        self.assertEqual(fetched.status_code, 200)

    def test_add_mosque_validation(self):
        response = self.client.post("/api/mosques", json={"name": " ", "location": "X"})
        self.assertEqual(response.status_code, 422)

        response = self.client.post(
            "/api/mosques", json={"name": "A", "location": "X", "latitude": 23.4}
        )
        self.assertEqual(response.status_code, 422)

    def test_map(self):
        response = self.client.get("/api/map")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["zoom"], 13)
        self.assertEqual(len(payload["markers"]), 6)
        self.assertTrue(payload["markers"][0]["map_link"].startswith("https://www.google.com/maps"))

    def test_refresh_reports_failure(self):
        self.catalog.list_mosques = MagicMock(side_effect=CatalogError("offline"))
        response = self.client.post("/api/refresh")
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()["refreshed"])
        self.assertEqual(response.json()["last_error"], "offline")

    def test_blank_id_is_not_found(self):
        response = self.client.get("/api/mosques/%20")
        self.assertEqual(response.status_code, 404)

        response = self.client.post("/api/mosques/%20/votes", json={"vote_type": "true"})
        self.assertEqual(response.status_code, 404)

    def test_marker_store_failure_is_bad_gateway(self):
        self.controller.markers.claim = MagicMock(side_effect=MarkerStoreError("timeout"))

        response = self.client.post("/api/mosques/1/votes", json={"vote_type": "true"})

        self.assertEqual(response.status_code, 502)
        self.assertEqual(self.catalog.votes, [])

    def test_unreadable_markers_still_list(self):
        self.controller.markers.all_for = MagicMock(side_effect=MarkerStoreError("timeout"))

        response = self.client.get("/api/mosques/1")

        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.json()["my_vote"])


class StaticModeApiTests(unittest.TestCase):
    def setUp(self):
        self.controller = TrackerController(catalog=None, markers=InMemoryVoteMarkerStore())
        app = create_app()
        app.dependency_overrides[get_controller] = lambda: self.controller
        self.client = TestClient(app)

    def test_seed_listing_is_read_only(self):
        payload = self.client.get("/api/mosques").json()
        self.assertTrue(payload["read_only"])
        self.assertEqual(payload["total"], 6)
        self.assertTrue(all(m["true_count"] == 0 for m in payload["mosques"]))

    def test_writes_return_service_unavailable(self):
        response = self.client.post("/api/mosques/1/votes", json={"vote_type": "true"})
        self.assertEqual(response.status_code, 503)
        response = self.client.post("/api/mosques", json={"name": "A", "location": "B"})
        self.assertEqual(response.status_code, 503)


if __name__ == "__main__":
    unittest.main()

"""
Tests for the read-only monitoring API.
"""

import pytest
from fastapi.testclient import TestClient

from cinbox.inbox import Inbox
from cinbox.monitoring import create_app


@pytest.fixture
def inbox(inbox_tree):
    """Inbox with one finished item and one waiting item."""
    inbox_tree.write_config(inbox="TOKEN_DONE = [@ITEM_ID@].done")
    inbox_tree.add_item("ITEM001", {"a.wav": b"first", "docs/readme.txt": "read me"})
    inbox = Inbox(inbox_tree.inbox).init()
    inbox.run()
    inbox_tree.add_item("ITEM002", {"b.wav": b"second"})
    return inbox


@pytest.fixture
def client(inbox):
    """Test client for the monitoring app."""
    return TestClient(create_app(inbox))


class TestMonitoringEndpoints:
    """Tests for /monitor endpoints."""

    def test_root(self, client):
        """The root names the service and the inbox."""
        response = client.get("/")

        assert response.status_code == 200
        assert response.json() == {"service": "cinbox-monitor", "inbox": "Test Inbox"}

    def test_health(self, client):
        """Health check always answers ok."""
        response = client.get("/monitor/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_inbox_state(self, client):
        """Counts per status folder."""
        data = client.get("/monitor/inbox").json()

        assert data["name"] == "Test Inbox"
        assert data["counts"] == {"todo": 1, "in_progress": 0, "done": 1, "error": 0}
        assert data["running"] is False
        assert data["last_run"] is not None

    def test_list_items(self, client):
        """All items, in status folder order."""
        data = client.get("/monitor/items").json()

        assert data["total_count"] == 2
        assert [(i["item_id"], i["status"]) for i in data["items"]] == [
            ("ITEM002", "todo"),
            ("ITEM001", "done"),
        ]

    def test_list_items_by_status(self, client):
        """The status filter limits the listing."""
        data = client.get("/monitor/items", params={"status": "done"}).json()

        assert [i["item_id"] for i in data["items"]] == ["ITEM001"]

    def test_list_items_invalid_status(self, client):
        """Unknown statuses are rejected by validation."""
        response = client.get("/monitor/items", params={"status": "lost"})

        assert response.status_code == 422

    def test_item_detail(self, client, inbox_tree):
        """Detail counts files, folders and bytes of the item folder."""
        data = client.get("/monitor/items/ITEM001").json()

        assert data["status"] == "done"
        assert data["file_count"] == 2
        assert data["folder_count"] == 1
        assert data["total_bytes"] == len(b"first") + len("read me")
        assert data["logfile"] == str(inbox_tree.done.resolve() / "ITEM001.log")
        assert data["processing"] is False

    def test_item_not_found(self, client):
        """Unknown items answer 404."""
        response = client.get("/monitor/items/NOPE")

        assert response.status_code == 404
        assert "NOPE" in response.json()["detail"]

    def test_item_token(self, client, inbox_tree):
        """The DONE token is returned parsed."""
        data = client.get("/monitor/items/ITEM001/token").json()

        assert data["status"] == "done"
        assert data["payload"]["itemId"] == "ITEM001"
        assert data["payload"]["targetFolders"][0]["value"] == str(inbox_tree.archive / "ITEM001")

    def test_token_not_configured(self, client):
        """No TOKEN_TODO means no token for waiting items."""
        response = client.get("/monitor/items/ITEM002/token")

        assert response.status_code == 404

    def test_token_unknown_item(self, client):
        """Token lookups for unknown items answer 404."""
        response = client.get("/monitor/items/NOPE/token")

        assert response.status_code == 404

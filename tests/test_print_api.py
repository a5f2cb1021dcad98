"""
Tests for the print API blueprint and the app factory.

Uses the Flask test client with TestingConfig: the queue worker is not
started, so submitted jobs stay queued until a test drains them.
"""

import pytest

from app import create_app
from conftest import FakeDispatcher, make_pdf


API_KEY = "test-api-key"
AUTH = {"X-API-Key": API_KEY}


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def make_app(tmp_path, dispatcher, local_fetcher):
    def factory(**overrides):
        config = {
            "QUEUE_FILE": str(tmp_path / "print-queue.json"),
            "TEMP_DIR": str(tmp_path / "temp"),
        }
        config.update(overrides)
        return create_app(
            "config.TestingConfig",
            config_overrides=config,
            dispatcher=dispatcher,
            fetcher=local_fetcher,
        )
    return factory


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    return app.test_client()


def _queued_jobs(client):
    return client.get("/api/queue/status", headers=AUTH).get_json()["jobs"]


class TestAuthentication:
    """Test the API key check."""

    def test_liveness_needs_no_key(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.get_json()["status"] == "ok"

    def test_missing_key(self, client):
        response = client.get("/api/queue/status")

        assert response.status_code == 401
        assert response.get_json()["error"] == "Unauthorized: Invalid API key"

    def test_wrong_key(self, client):
        response = client.get("/api/queue/status", headers={"X-API-Key": "nope"})
        assert response.status_code == 401

    def test_header_key(self, client):
        assert client.get("/api/queue/status", headers=AUTH).status_code == 200

    def test_bearer_key(self, client):
        response = client.get("/api/queue/status", headers={"Authorization": f"Bearer {API_KEY}"})
        assert response.status_code == 200

    def test_unset_key_is_configuration_error(self, make_app):
        client = make_app(API_KEY="").test_client()

        response = client.get("/api/queue/status", headers=AUTH)

        assert response.status_code == 500
        assert response.get_json()["error"] == "Server configuration error"


class TestSubmit:
    """Test POST /api/print."""

    def test_legacy_single_file(self, client):
        response = client.post("/api/print", headers=AUTH, json={
            "fileUrl": "https://storage.example.com/a.pdf",
            "fileName": "a.pdf",
            "printingOptions": {"color": "color", "copies": 2},
            "printerIndex": 2,
        })

        body = response.get_json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["message"] == "Print job added to queue"
        assert body["jobIds"] == [body["jobId"]]
        assert "deliveryNumber" not in body

        jobs = _queued_jobs(client)
        assert len(jobs) == 1
        assert jobs[0]["printerIndex"] == 2
        assert jobs[0]["job"]["printingOptions"]["copies"] == 2
        assert jobs[0]["job"]["printingOptions"]["pageSize"] == "A4"

    def test_multi_file(self, client):
        response = client.post("/api/print", headers=AUTH, json={
            "fileURLs": ["https://s/1.pdf", "https://s/2.pdf", "https://s/3.docx"],
            "originalFileNames": ["one.pdf", "two.pdf", "three.docx"],
            "fileTypes": ["application/pdf", "application/pdf"],
            "orderId": "ord_7",
        })

        body = response.get_json()
        assert response.status_code == 200
        assert body["message"] == "3 print jobs added to queue"
        assert len(body["jobIds"]) == 3

        jobs = _queued_jobs(client)
        assert [job["id"] for job in jobs] == body["jobIds"]
        assert [job["job"]["fileName"] for job in jobs] == ["one.pdf", "two.pdf", "three.docx"]
        assert jobs[2]["job"]["fileType"] == "application/octet-stream"
        assert all(job["job"]["orderId"] == "ord_7" for job in jobs)

    def test_multi_file_default_names(self, client):
        client.post("/api/print", headers=AUTH, json={"fileURLs": ["https://s/1.pdf", "https://s/2.pdf"]})

        assert [job["job"]["fileName"] for job in _queued_jobs(client)] == ["File 1", "File 2"]

    def test_per_file_page_colors(self, client):
        client.post("/api/print", headers=AUTH, json={
            "fileURLs": ["https://s/1.pdf", "https://s/2.pdf"],
            "originalFileNames": ["one.pdf", "two.pdf"],
            "printingOptions": {
                "color": "mixed",
                "pageColors": [
                    {"colorPages": [1], "bwPages": []},
                    {"colorPages": [2], "bwPages": []},
                ],
            },
        })

        jobs = _queued_jobs(client)
        assert jobs[0]["job"]["printingOptions"]["pageColors"] == {"colorPages": [1], "bwPages": []}
        assert jobs[1]["job"]["printingOptions"]["pageColors"] == {"colorPages": [2], "bwPages": []}

    def test_mismatched_arrays(self, client):
        response = client.post("/api/print", headers=AUTH, json={
            "fileURLs": ["https://s/1.pdf", "https://s/2.pdf"],
            "originalFileNames": ["one.pdf"],
        })

        assert response.status_code == 400
        assert "same length" in response.get_json()["error"]
        assert _queued_jobs(client) == []

    def test_missing_file(self, client):
        response = client.post("/api/print", headers=AUTH, json={"fileName": "a.pdf"})

        assert response.status_code == 400
        assert response.get_json()["error"].startswith("Missing required fields")

    def test_not_json(self, client):
        response = client.post("/api/print", headers=AUTH, data="fileUrl=x")
        assert response.status_code == 400

    @pytest.mark.parametrize("options", [
        {"copies": 0},
        {"color": "sepia"},
        {"pageSize": "Letter"},
    ])
    def test_invalid_options_queue_nothing(self, client, options):
        response = client.post("/api/print", headers=AUTH, json={
            "fileURLs": ["https://s/1.pdf", "https://s/2.pdf"],
            "printingOptions": options,
        })

        assert response.status_code == 400
        assert _queued_jobs(client) == []

    def test_invalid_printer_index(self, client):
        response = client.post("/api/print", headers=AUTH, json={
            "fileUrl": "https://s/1.pdf",
            "printerIndex": "first",
        })
        assert response.status_code == 400

    def test_text_fields_sanitized(self, client):
        client.post("/api/print", headers=AUTH, json={
            "fileUrl": "https://s/1.pdf",
            "fileName": "<script>x</script>report.pdf",
            "customerInfo": {"name": "<b>Asha</b>", "email": "a@example.com", "phone": "555"},
        })

        job = _queued_jobs(client)[0]["job"]
        assert "<" not in job["fileName"]
        assert job["fileName"].endswith("report.pdf")
        assert job["customerInfo"]["name"] == "Asha"

    def test_write_failure_queues_no_file(self, app, client, monkeypatch):
        job_queue = app.config["JOB_QUEUE"]
        client.post("/api/print", headers=AUTH, json={"fileUrl": "https://s/0.pdf"})
        save = job_queue._store.save

        def refuse_more_than_one(jobs):
            if len(jobs) > 1:
                raise OSError(28, "No space left on device")
            save(jobs)

        monkeypatch.setattr(job_queue._store, "save", refuse_more_than_one)

        response = client.post("/api/print", headers=AUTH, json={
            "fileURLs": ["https://s/1.pdf", "https://s/2.pdf"],
        })

        assert response.status_code == 500
        assert response.get_json()["error"] == "Failed to add print job"
        assert [job["job"]["fileUrl"] for job in _queued_jobs(client)] == ["https://s/0.pdf"]

    def test_delivery_numbers_on_submit(self, make_app):
        client = make_app(ASSIGN_DELIVERY_ON_SUBMIT=True).test_client()

        body = client.post("/api/print", headers=AUTH, json={
            "fileURLs": ["https://s/1.pdf", "https://s/2.pdf"],
        }).get_json()

        assert len(body["deliveryNumbers"]) == 2
        assert body["deliveryNumber"] == body["deliveryNumbers"][0]
        assert body["deliveryNumbers"][0].startswith("A")
        assert body["deliveryNumbers"][0].endswith("11")
        assert body["deliveryNumbers"][1].endswith("12")


class TestQueueRoutes:
    def test_clear(self, client):
        client.post("/api/print", headers=AUTH, json={"fileURLs": ["https://s/1.pdf", "https://s/2.pdf"]})

        response = client.post("/api/queue/clear", headers=AUTH)

        assert response.get_json()["removed"] == 2
        assert _queued_jobs(client) == []

    def test_status_shape(self, client):
        client.post("/api/print", headers=AUTH, json={"fileUrl": "https://s/1.pdf"})

        body = client.get("/api/queue/status", headers=AUTH).get_json()

        assert body["success"] is True
        assert body["total"] == body["pending"] == 1
        assert body["jobs"][0]["attempts"] == 0
        assert body["jobs"][0]["lastAttemptAt"] is None

    def test_health(self, client, dispatcher):
        dispatcher.available = False
        client.post("/api/print", headers=AUTH, json={"fileUrl": "https://s/1.pdf"})

        body = client.get("/api/health", headers=AUTH).get_json()

        assert body["status"] == "healthy"
        assert body["printer"]["available"] is False
        assert body["queue"]["total"] == 1
        assert body["deliveryNumber"]["current_letter"] == "A"

    def test_not_found_is_json(self, client):
        response = client.get("/api/nothing-here", headers=AUTH)

        assert response.status_code == 404
        assert response.get_json()["success"] is False


class TestEndToEnd:
    """Submit over HTTP, then run the queue in the test thread."""

    def test_submitted_job_prints(self, app, client, dispatcher, tmp_path):
        document = make_pdf(tmp_path / "upload.pdf", 4)
        client.post("/api/print", headers=AUTH, json={
            "fileUrl": str(document),
            "fileName": "upload.pdf",
            "printingOptions": {
                "color": "mixed",
                "pageColors": {"colorPages": [4], "bwPages": [1, 2, 3]},
            },
        })

        attempts = app.config["JOB_QUEUE"].drain()

        assert attempts == 1
        assert _queued_jobs(client) == []
        names = dispatcher.names
        assert names[0].startswith("letter_")
        assert names[1] == "file_1.pdf"
        assert names[2:] == ["group_4-4.pdf", "group_1-3.pdf"]

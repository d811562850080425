"""Tests for the grading API client, using httpx's mock transport."""

from unittest.mock import Mock

import httpx
import pytest

from exam_results.errors import GradingServiceError
from exam_results.grading_client import GradingApiClient, HttpGradingProvider
from exam_results.schemas import Exam, Submission

API_BASE = "http://grader.test"


class RecordingHandler:
    """Answers like the grading API and records every request it sees."""

    def __init__(self, results=None, status_code=200):
        self.requests = []
        self.bodies = []
        self.results = results if results is not None else {"resultat": {}}
        self.status_code = status_code

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.bodies.append(request.read())
        if request.url.host == "files.test":
            return httpx.Response(200, content=b"%PDF-1.4 " + request.url.path.encode(),
                                  headers={"content-type": "application/pdf"})
        return httpx.Response(self.status_code, json=self.results)


def make_client(handler):
    return GradingApiClient(base_url=API_BASE, transport=httpx.MockTransport(handler))


def test_submit_files_posts_multipart_in_order(tmp_path):
    first = tmp_path / "alice.pdf"
    second = tmp_path / "bob.pdf"
    first.write_bytes(b"alice")
    second.write_bytes(b"bob")
    handler = RecordingHandler(results={"resultat": {"copie_1": {"note_totale": 12}}})

    with make_client(handler) as client:
        payload = client.submit_files([first, second])

    assert payload == {"resultat": {"copie_1": {"note_totale": 12}}}
    request = handler.requests[0]
    assert request.method == "POST"
    assert request.url == f"{API_BASE}/api/full"
    body = handler.bodies[0]
    assert body.count(b'name="files"') == 2
    assert body.index(b'filename="alice.pdf"') < body.index(b'filename="bob.pdf"')


def test_submit_remote_urls_downloads_then_submits():
    handler = RecordingHandler()
    with make_client(handler) as client:
        client.submit_remote_urls([
            ("https://files.test/uploads/a1.pdf", "alice.pdf"),
            ("https://files.test/uploads/b2.pdf", None),
        ])

    assert [str(r.url) for r in handler.requests[:2]] == [
        "https://files.test/uploads/a1.pdf",
        "https://files.test/uploads/b2.pdf",
    ]
    post_body = handler.bodies[2]
    assert b'filename="alice.pdf"' in post_body
    assert b'filename="b2.pdf"' in post_body
    assert b"%PDF-1.4 /uploads/a1.pdf" in post_body


def test_get_results():
    handler = RecordingHandler(results={"resultat": {"copie_1": {"note_totale": 9}}})
    with make_client(handler) as client:
        assert client.get_results()["resultat"]["copie_1"]["note_totale"] == 9
    assert handler.requests[0].url == f"{API_BASE}/api/results"


def test_http_error_status_raises_service_error():
    with make_client(RecordingHandler(status_code=500)) as client:
        with pytest.raises(GradingServiceError, match="500") as excinfo:
            client.get_results()
    assert isinstance(excinfo.value.__cause__, httpx.HTTPStatusError)


def test_transport_error_raises_service_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    with make_client(refuse) as client:
        with pytest.raises(GradingServiceError) as excinfo:
            client.get_results()
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


def test_invalid_json_raises_service_error():
    def not_json(request):
        return httpx.Response(200, content=b"<html>oops</html>")

    with make_client(not_json) as client:
        with pytest.raises(GradingServiceError, match="invalid JSON"):
            client.get_results()


def test_submitting_nothing_is_refused():
    with make_client(RecordingHandler()) as client:
        with pytest.raises(ValueError):
            client.submit_files([])


def test_base_url_from_environment(monkeypatch):
    monkeypatch.setenv("GRADING_API_URL", "http://env-grader.test/")
    client = GradingApiClient()
    try:
        assert client.base_url == "http://env-grader.test"
    finally:
        client.close()


class TestHttpGradingProvider:
    def test_submits_storage_locations_in_submission_order(self):
        client = Mock()
        client.submit_remote_urls.return_value = {"resultat": {}}
        exam = Exam(
            id="e1",
            title="Exam",
            submissions=[
                Submission(id="s1", display_name="alice.pdf", storage_location="https://files.test/1"),
                Submission(id="s2", display_name="", storage_location="https://files.test/2"),
            ],
        )

        assert HttpGradingProvider(client).grade(exam) == {"resultat": {}}
        client.submit_remote_urls.assert_called_once_with([
            ("https://files.test/1", "alice.pdf"),
            ("https://files.test/2", None),
        ])

    def test_missing_storage_location_is_refused(self):
        client = Mock()
        exam = Exam(id="e1", title="Exam", submissions=[Submission(id="s1", display_name="a.pdf")])
        with pytest.raises(ValueError, match="s1"):
            HttpGradingProvider(client).grade(exam)
        client.submit_remote_urls.assert_not_called()

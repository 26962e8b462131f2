"""HTTP 端點測試：以 dependency_overrides 注入記憶體替身。"""
from __future__ import annotations

from collections.abc import Iterator
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from app.api.v1.dependencies import get_library_service
from app.core.config import settings
from app.core.security import require_current_user_id
from app.main import create_app
from app.schemas.account import SignupRequest, UserResource
from app.services.account_service import get_account_service
from conftest import OTHER_USER_ID, TEST_USER_ID

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * (2 * 1024 * 1024)


@pytest.fixture
def client(library_service, sent_tasks) -> Iterator[TestClient]:
    app = create_app()
    app.dependency_overrides[get_library_service] = lambda: library_service
    app.dependency_overrides[require_current_user_id] = lambda: UUID(TEST_USER_ID)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _upload(client: TestClient, name: str = "etude.png") -> dict:
    response = client.post("/v1/scores/upload", files={"file": (name, PNG_BYTES, "image/png")})
    assert response.status_code == 201, response.text
    return response.json()


def _convert(client: TestClient, score_id: str, **payload) -> dict:
    body = {"instruments": ["piano"], **payload}
    response = client.post(f"/v1/scores/{score_id}/convert", json=body)
    assert response.status_code == 202, response.text
    return response.json()


def test_upload_returns_score_metadata(client: TestClient) -> None:
    """上傳 2MB PNG 應回傳 scoreId、簽名網址與 camelCase 中繼資料。"""

    body = _upload(client)

    assert body["scoreId"].startswith(f"score_{TEST_USER_ID}_")
    assert body["url"].startswith("https://demo.supabase.co/storage/v1/")
    metadata = body["metadata"]
    assert metadata["userId"] == TEST_USER_ID
    assert metadata["fileName"] == "etude.png"
    assert metadata["fileType"] == "image/png"
    assert metadata["fileSize"] == len(PNG_BYTES)
    assert "uploadedAt" in metadata


def test_upload_rejects_unsupported_type(client: TestClient) -> None:
    response = client.post("/v1/scores/upload", files={"file": ("notes.txt", b"hello", "text/plain")})

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "UNSUPPORTED_MEDIA_TYPE"
    assert "JPG, PNG, or PDF" in error["message"]


def test_upload_without_file(client: TestClient) -> None:
    response = client.post("/v1/scores/upload", data={"note": "nothing attached"})

    assert response.status_code == 400
    assert response.json() == {"error": {"code": "VALIDATION_ERROR", "message": "No file provided"}}


def test_convert_and_poll_status(client: TestClient, sent_tasks) -> None:
    """轉換立即回 202，狀態查詢看得到 processing。"""

    score_id = _upload(client)["scoreId"]
    accepted = _convert(client, score_id, tempo=96)

    assert accepted["status"] == "processing"
    assert accepted["conversionId"].startswith(f"conversion_{TEST_USER_ID}_")
    assert len(sent_tasks) == 1

    response = client.get(f"/v1/conversions/{accepted['conversionId']}")
    body = response.json()

    assert response.status_code == 200
    assert body["status"] == "processing"
    assert body["scoreId"] == score_id
    assert body["tempo"] == 96
    assert "audioUrl" not in body
    assert "completedAt" not in body


def test_convert_with_satb_config(client: TestClient) -> None:
    score_id = _upload(client)["scoreId"]
    satb = {"soprano": {"enabled": True, "solo": True, "volume": 80}, "bass": {"enabled": False}}

    response = client.post(f"/v1/scores/{score_id}/convert", json={"satbConfig": satb})
    conversion = client.get(f"/v1/conversions/{response.json()['conversionId']}").json()

    assert response.status_code == 202
    assert conversion["satbConfig"]["soprano"]["volume"] == 80
    assert conversion["satbConfig"]["bass"]["enabled"] is False
    assert conversion["tempo"] == 120


@pytest.mark.parametrize("payload", [{"instruments": ["piano"], "tempo": 300}, {"instruments": ["piano"], "tempo": "fast"}, {}])
def test_convert_invalid_payload_is_400(client: TestClient, payload: dict) -> None:
    score_id = _upload(client)["scoreId"]

    response = client.post(f"/v1/scores/{score_id}/convert", json=payload)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_foreign_score_is_not_found(client: TestClient, library_service) -> None:
    """他人的樂譜與不存在的樂譜回應一致。"""

    foreign = library_service.upload_score(
        user_id=OTHER_USER_ID, file_name="x.png", content_type="image/png", data=b"\x89PNG"
    ).score

    convert = client.post(f"/v1/scores/{foreign.id}/convert", json={"instruments": ["piano"]})
    delete = client.delete(f"/v1/scores/{foreign.id}")
    missing = client.delete("/v1/scores/score_missing")

    for response in (convert, delete, missing):
        assert response.status_code == 404
        assert response.json() == {"error": {"code": "NOT_FOUND", "message": "Score not found or access denied"}}


def test_unknown_conversion_is_not_found(client: TestClient) -> None:
    response = client.get("/v1/conversions/conversion_missing")

    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Conversion not found or access denied"


def test_library_lists_scores_with_conversions(client: TestClient) -> None:
    first = _upload(client, "first.png")["scoreId"]
    second = _upload(client, "second.png")["scoreId"]
    conversion_id = _convert(client, first)["conversionId"]

    response = client.get("/v1/library")
    library = response.json()["library"]

    assert response.status_code == 200
    assert {item["id"] for item in library} == {first, second}
    by_id = {item["id"]: item for item in library}
    assert [item["id"] for item in by_id[first]["conversions"]] == [conversion_id]
    assert by_id[second]["conversions"] == []


def test_delete_score_cascades(client: TestClient) -> None:
    score_id = _upload(client)["scoreId"]
    conversion_id = _convert(client, score_id)["conversionId"]

    response = client.delete(f"/v1/scores/{score_id}")

    assert response.status_code == 200
    assert response.json() == {"message": "Score and all conversions deleted successfully"}
    assert client.get(f"/v1/conversions/{conversion_id}").status_code == 404
    assert client.get("/v1/library").json() == {"library": []}


def test_reindex_returns_counts(client: TestClient, kv_store) -> None:
    score_id = _upload(client)["scoreId"]
    _convert(client, score_id)
    kv_store.delete(f"user_scores_{TEST_USER_ID}")

    response = client.post("/v1/library/reindex")

    assert response.status_code == 200
    assert response.json() == {"scores": 1, "conversions": 1}
    assert [item["id"] for item in client.get("/v1/library").json()["library"]] == [score_id]


def test_complete_requires_worker_token(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    """完成回呼需帶正確的 X-Worker-Token。"""

    monkeypatch.setattr(settings, "worker_callback_token", "s3cret")
    score_id = _upload(client)["scoreId"]
    conversion_id = _convert(client, score_id)["conversionId"]
    payload = {"audioPath": f"{TEST_USER_ID}/{conversion_id}.mp3", "midiPath": f"{TEST_USER_ID}/{conversion_id}.mid"}

    missing = client.post(f"/v1/conversions/{conversion_id}/complete", json=payload)
    wrong = client.post(
        f"/v1/conversions/{conversion_id}/complete", json=payload, headers={"X-Worker-Token": "nope"}
    )
    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert client.get(f"/v1/conversions/{conversion_id}").json()["status"] == "processing"

    accepted = client.post(
        f"/v1/conversions/{conversion_id}/complete", json=payload, headers={"X-Worker-Token": "s3cret"}
    )
    body = client.get(f"/v1/conversions/{conversion_id}").json()

    assert accepted.status_code == 202
    assert body["status"] == "completed"
    assert body["audioUrl"].endswith(f"{conversion_id}.mp3?token=abc")
    assert "completedAt" in body


def test_complete_without_paths_marks_failed(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "worker_callback_token", "s3cret")
    conversion_id = _convert(client, _upload(client)["scoreId"])["conversionId"]

    client.post(f"/v1/conversions/{conversion_id}/complete", json={}, headers={"X-Worker-Token": "s3cret"})
    body = client.get(f"/v1/conversions/{conversion_id}").json()

    assert body["status"] == "failed"
    assert body["error"] == "Conversion processing failed"


def test_complete_rejected_when_token_not_configured(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "worker_callback_token", None)

    response = client.post("/v1/conversions/whatever/complete", json={}, headers={"X-Worker-Token": "anything"})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


def test_endpoints_require_bearer_token() -> None:
    """未帶 Authorization 時回傳 401 與統一錯誤格式。"""

    app = create_app()
    app.dependency_overrides[get_library_service] = lambda: None
    client = TestClient(app)

    for method, path in (("get", "/v1/library"), ("get", "/v1/conversions/x"), ("delete", "/v1/scores/x")):
        response = getattr(client, method)(path)
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"
        assert response.headers["www-authenticate"] == "Bearer"


class FakeAccountService:
    def __init__(self) -> None:
        self.requests: list[SignupRequest] = []

    def sign_up(self, payload: SignupRequest) -> UserResource:
        self.requests.append(payload)
        return UserResource(id=TEST_USER_ID, email=payload.email, name=payload.name or "ada")


def test_signup_creates_account() -> None:
    service = FakeAccountService()
    app = create_app()
    app.dependency_overrides[get_account_service] = lambda: service
    try:
        client = TestClient(app)
        response = client.post("/v1/signup", json={"email": "ada@example.com", "password": "pw123456"})
    finally:
        app.dependency_overrides.pop(get_account_service, None)

    assert response.status_code == 201
    assert response.json() == {
        "user": {"id": TEST_USER_ID, "email": "ada@example.com", "name": "ada"},
        "message": "Account created successfully",
    }
    assert service.requests[0].password == "pw123456"


def test_instruments_catalogue_filters_by_category() -> None:
    client = TestClient(create_app())

    everything = client.get("/v1/instruments").json()["data"]
    brass = client.get("/v1/instruments", params={"category": "brass"}).json()["data"]

    assert {"id": "piano", "name": "Piano", "category": "keyboards"} in everything
    assert brass and all(item["category"] == "brass" for item in brass)


def test_convert_when_queue_unavailable(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    """佇列故障時回傳 503 錯誤格式，且轉換紀錄已標記 failed。"""

    from app.core.celery_app import celery_app

    score_id = _upload(client)["scoreId"]

    def broker_down(*args, **kwargs):
        raise ConnectionError("Error 111 connecting to localhost:6379")

    monkeypatch.setattr(celery_app, "send_task", broker_down)

    response = client.post(f"/v1/scores/{score_id}/convert", json={"instruments": ["piano"]})
    [entry] = client.get("/v1/library").json()["library"]

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "DISPATCH_ERROR"
    assert [item["status"] for item in entry["conversions"]] == ["failed"]


def test_unexpected_errors_use_error_envelope(library_service, monkeypatch: pytest.MonkeyPatch) -> None:
    """未預期例外回傳 500 與通用訊息，不洩漏內部細節。"""

    def explode(**kwargs):
        raise RuntimeError("connection string postgres://secret")

    monkeypatch.setattr(library_service, "list_library", explode)
    app = create_app()
    app.dependency_overrides[get_library_service] = lambda: library_service
    app.dependency_overrides[require_current_user_id] = lambda: UUID(TEST_USER_ID)

    response = TestClient(app, raise_server_exceptions=False).get("/v1/library")

    assert response.status_code == 500
    assert response.json() == {"error": {"code": "INTERNAL_ERROR", "message": "Internal server error"}}


def test_oversized_upload_is_read_only_up_to_limit(
    kv_store, supabase_client, sent_tasks, monkeypatch: pytest.MonkeyPatch
) -> None:
    """超過上限的檔案只讀取上限加一個位元組即回應 413。"""

    from starlette.datastructures import UploadFile

    from app.repositories.library import LibraryRepository
    from app.services.library_service import LibraryService
    from conftest import build_storage_service

    service = LibraryService(LibraryRepository(kv_store), build_storage_service(supabase_client, max_bytes=1024))
    read_sizes = []
    original_read = UploadFile.read

    async def recording_read(self, size: int = -1) -> bytes:
        read_sizes.append(size)
        return await original_read(self, size)

    monkeypatch.setattr(UploadFile, "read", recording_read)
    app = create_app()
    app.dependency_overrides[get_library_service] = lambda: service
    app.dependency_overrides[require_current_user_id] = lambda: UUID(TEST_USER_ID)

    response = TestClient(app).post(
        "/v1/scores/upload", files={"file": ("big.png", b"\x89PNG" + b"\x00" * 8192, "image/png")}
    )

    assert response.status_code == 413
    assert response.json()["error"]["code"] == "UPLOAD_LIMIT_EXCEEDED"
    assert read_sizes == [1025]
    assert kv_store.data == {}

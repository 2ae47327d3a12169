"""HTTP-level tests for the upload endpoints."""

import pytest

API = "/api/v1/upload"


def _start(client, total_chunks=3, file_name="photo.png"):
    response = client.post(
        f"{API}/start",
        data={
            "fileName": file_name,
            "fileSize": "300",
            "fileType": "image/png",
            "totalChunks": str(total_chunks),
        },
    )
    assert response.status_code == 200, response.text
    return response.json()["identifier"]


def _send(client, identifier, chunk_number, payload):
    return client.post(
        f"{API}/chunk",
        data={"identifier": identifier, "chunkNumber": str(chunk_number)},
        files={"chunk": ("blob", payload, "application/octet-stream")},
    )


def test_start_session(client):
    response = client.post(
        f"{API}/start",
        data={"fileName": "photo.png", "fileSize": "300", "fileType": "image/png", "totalChunks": "3"},
    )

    assert response.status_code == 200
    body = response.json()
    assert len(body["identifier"]) == 32
    assert body["fileName"] == "photo.png"
    assert body["totalChunks"] == 3
    assert body["status"] == "created"


@pytest.mark.parametrize("missing", ["fileName", "fileSize", "fileType", "totalChunks"])
def test_start_session_missing_parameter(client, missing):
    data = {"fileName": "photo.png", "fileSize": "300", "fileType": "image/png", "totalChunks": "3"}
    del data[missing]

    response = client.post(f"{API}/start", data=data)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_start_session_malformed_number(client):
    response = client.post(
        f"{API}/start",
        data={"fileName": "photo.png", "fileSize": "lots", "fileType": "image/png", "totalChunks": "3"},
    )

    assert response.status_code == 400


def test_start_session_too_large(client):
    response = client.post(
        f"{API}/start",
        data={"fileName": "huge.iso", "fileSize": str(10 ** 12), "fileType": "application/x-iso9660-image",
              "totalChunks": "3"},
    )

    assert response.status_code == 413
    assert response.json()["error"]["code"] == "FILE_TOO_LARGE"


def test_out_of_order_upload_over_http(client, upload_dir, chunks):
    identifier = _start(client)

    assert _send(client, identifier, 2, chunks[1]).json()["receivedChunks"] == [2]
    assert _send(client, identifier, 1, chunks[0]).json()["receivedChunks"] == [1, 2]
    final = _send(client, identifier, 3, chunks[2])

    assert final.status_code == 200
    assert final.json()["status"] == "completed"
    assert final.json()["receivedChunks"] == [1, 2, 3]

    merged = [p for p in upload_dir.iterdir() if p.is_file()]
    assert len(merged) == 1
    assert merged[0].name.endswith("_photo.png")
    assert merged[0].read_bytes() == b"".join(chunks)


def test_duplicate_chunk_is_a_client_error(client, chunks):
    identifier = _start(client)
    assert _send(client, identifier, 1, chunks[0]).status_code == 200

    response = _send(client, identifier, 1, chunks[0])

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "CHUNK_ALREADY_UPLOADED"
    status = client.get(f"{API}/status/{identifier}").json()
    assert status["receivedChunks"] == [1]


def test_chunk_missing_parameters(client, chunks):
    identifier = _start(client)

    no_number = client.post(
        f"{API}/chunk",
        data={"identifier": identifier},
        files={"chunk": ("blob", chunks[0], "application/octet-stream")},
    )
    no_file = client.post(f"{API}/chunk", data={"identifier": identifier, "chunkNumber": "1"})
    no_identifier = client.post(
        f"{API}/chunk",
        data={"chunkNumber": "1"},
        files={"chunk": ("blob", chunks[0], "application/octet-stream")},
    )

    assert no_number.status_code == 400
    assert no_file.status_code == 400
    assert no_identifier.status_code == 400


def test_chunk_out_of_range(client, chunks):
    identifier = _start(client)

    assert _send(client, identifier, 4, chunks[0]).status_code == 400


def test_pause_and_resume_over_http(client, chunks):
    identifier = _start(client, total_chunks=2)

    paused = client.post(f"{API}/pause/{identifier}")
    assert paused.status_code == 200
    assert paused.json() == {
        "identifier": identifier,
        "status": "paused",
        "receivedChunks": [],
        "totalChunks": 2,
    }

    rejected = _send(client, identifier, 1, chunks[0])
    assert rejected.status_code == 409
    assert rejected.json()["error"]["code"] == "SESSION_PAUSED"

    resumed = client.post(f"{API}/resume/{identifier}")
    assert resumed.status_code == 200
    assert resumed.json()["status"] == "in_progress"

    accepted = _send(client, identifier, 1, chunks[0])
    assert accepted.status_code == 200
    assert accepted.json()["receivedChunks"] == [1]
    assert accepted.json()["status"] == "in_progress"


def test_resume_without_pause_conflicts(client):
    identifier = _start(client)

    response = client.post(f"{API}/resume/{identifier}")

    assert response.status_code == 409


def test_unknown_identifier_is_not_found(client, chunks):
    unknown = "a" * 32

    assert client.get(f"{API}/status/{unknown}").status_code == 404
    assert client.post(f"{API}/pause/{unknown}").status_code == 404
    assert client.post(f"{API}/resume/{unknown}").status_code == 404
    assert client.delete(f"{API}/{unknown}").status_code == 404
    response = _send(client, unknown, 1, chunks[0])
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "SESSION_NOT_FOUND"


def test_status(client, chunks):
    identifier = _start(client)
    _send(client, identifier, 3, chunks[2])

    response = client.get(f"{API}/status/{identifier}")

    assert response.status_code == 200
    assert response.json() == {
        "identifier": identifier,
        "status": "in_progress",
        "receivedChunks": [3],
        "totalChunks": 3,
    }


def test_cancel(client, chunks):
    identifier = _start(client)
    _send(client, identifier, 1, chunks[0])

    response = client.delete(f"{API}/{identifier}")

    assert response.status_code == 200
    assert response.json() == {"status": "cancelled", "identifier": identifier}
    assert client.get(f"{API}/status/{identifier}").status_code == 404


def test_stats(client, chunks):
    first = _start(client)
    _start(client)
    _send(client, first, 1, chunks[0])

    response = client.get(f"{API}/stats")

    assert response.status_code == 200
    body = response.json()
    assert body["totalSessions"] == 2
    assert body["sessionsByStatus"]["created"] == 1
    assert body["sessionsByStatus"]["in_progress"] == 1
    assert body["bytesReceived"] == len(chunks[0])


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_list_files_shows_completed_uploads_only(client, upload_dir, chunks):
    done = _start(client, total_chunks=1, file_name="report.pdf")
    _send(client, done, 1, chunks[0])
    pending = _start(client, total_chunks=2, file_name="draft.pdf")
    _send(client, pending, 1, chunks[0])

    response = client.get(f"{API}/files")

    assert response.status_code == 200
    files = response.json()["files"]
    assert len(files) == 1
    listed = files[0]
    assert listed["identifier"] == done
    assert listed["fileName"] == "report.pdf"
    assert listed["fileSize"] == 300
    assert listed["fileType"] == "image/png"
    assert listed["storedName"] == f"{done[:12]}_report.pdf"
    assert (upload_dir / listed["storedName"]).read_bytes() == chunks[0]


def test_list_files_empty(client):
    response = client.get(f"{API}/files")

    assert response.status_code == 200
    assert response.json() == {"files": []}

"""
Tests for order attachments and signed download URLs
"""

import pytest

from labflow.config import settings
from labflow.utils.error_handler import StorageError

JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg-content"
STL_BYTES = b"solid scan\nendsolid scan\n"


def upload(client, order_id, kind, filename, content, content_type):
    return client.post(
        f"/api/v1/orders/{order_id}/files/{kind}",
        files={"file": (filename, content, content_type)},
    )


class TestUpload:

    def test_upload_smile_photo(self, client, created_order, storage):
        response = upload(client, created_order["id"], "smile", "Sorriso.JPG", JPEG_BYTES, "image/jpeg")
        assert response.status_code == 201

        path = response.json()["path"]
        assert path == f"{created_order['order_number']}/smile.jpg"
        assert storage.open_path(path).read_bytes() == JPEG_BYTES

    def test_upload_scan_file(self, client, created_order, storage):
        response = upload(client, created_order["id"], "scan", "arcada.stl", STL_BYTES, "application/octet-stream")
        assert response.status_code == 201
        assert response.json()["path"].endswith("/scan.stl")

    def test_smile_must_be_image(self, client, created_order, storage):
        response = upload(client, created_order["id"], "smile", "notes.pdf", b"%PDF-1.4", "application/pdf")
        assert response.status_code == 400

    def test_empty_file_rejected(self, client, created_order, storage):
        response = upload(client, created_order["id"], "scan", "arcada.stl", b"", "application/octet-stream")
        assert response.status_code == 400

    def test_unknown_kind(self, client, created_order, storage):
        response = upload(client, created_order["id"], "xray", "x.png", JPEG_BYTES, "image/png")
        assert response.status_code == 404

    def test_unknown_order(self, client, storage):
        response = upload(client, "missing", "scan", "arcada.stl", STL_BYTES, "application/octet-stream")
        assert response.status_code == 404

    def test_attached_file_cannot_be_replaced(self, client, created_order, storage):
        order_id = created_order["id"]
        path = upload(client, order_id, "smile", "a.jpg", b"original", "image/jpeg").json()["path"]

        response = upload(client, order_id, "smile", "b.png", b"replacement", "image/png")
        assert response.status_code == 409

        assert storage.open_path(path).read_bytes() == b"original"
        assert not storage.exists(f"{created_order['order_number']}/smile.png")

    def test_upload_rejected_once_order_left_pending(self, client, created_order, storage, admin_headers):
        order_id = created_order["id"]
        client.post(f"/api/v1/orders/{order_id}/accept", headers=admin_headers)
        client.post(f"/api/v1/orders/{order_id}/status", json={"status": "completed"}, headers=admin_headers)

        response = upload(client, order_id, "scan", "arcada.stl", STL_BYTES, "application/octet-stream")
        assert response.status_code == 409
        assert not storage.exists(f"{created_order['order_number']}/scan.stl")

        order = client.get(f"/api/v1/orders/{order_id}", headers=admin_headers).json()
        assert order["scan_file_url"] is None

    def test_oversized_file_rejected(self, client, created_order, storage, monkeypatch):
        monkeypatch.setattr(settings, "max_upload_bytes", 16)

        response = upload(client, created_order["id"], "scan", "arcada.stl", b"x" * 17, "application/octet-stream")
        assert response.status_code == 413
        assert not storage.exists(f"{created_order['order_number']}/scan.stl")

    def test_file_at_size_limit_accepted(self, client, created_order, storage, monkeypatch):
        monkeypatch.setattr(settings, "max_upload_bytes", 16)

        response = upload(client, created_order["id"], "scan", "arcada.stl", b"x" * 16, "application/octet-stream")
        assert response.status_code == 201


class TestSignedUrls:

    def test_signed_url_downloads_file(self, client, created_order, storage, user_headers):
        upload(client, created_order["id"], "smile", "sorriso.jpg", JPEG_BYTES, "image/jpeg")

        response = client.get(
            f"/api/v1/orders/{created_order['id']}/files/smile/signed-url", headers=user_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["expires_in"] == 3600

        download = client.get(data["signed_url"])
        assert download.status_code == 200
        assert download.content == JPEG_BYTES
        assert download.headers["content-type"] == "image/jpeg"

    def test_signed_url_requires_auth(self, client, created_order, storage):
        response = client.get(f"/api/v1/orders/{created_order['id']}/files/smile/signed-url")
        assert response.status_code in (401, 403)

    def test_no_file_attached(self, client, created_order, storage, user_headers):
        response = client.get(
            f"/api/v1/orders/{created_order['id']}/files/scan/signed-url", headers=user_headers
        )
        assert response.status_code == 404

    def test_expired_token_rejected(self, client, created_order, storage):
        path = upload(client, created_order["id"], "scan", "a.stl", STL_BYTES, "model/stl").json()["path"]
        token = storage.create_signed_token(path, expires_in=-10)

        response = client.get(f"/api/v1/files/{token}")
        assert response.status_code == 403

    def test_tampered_token_rejected(self, client, created_order, storage):
        path = upload(client, created_order["id"], "scan", "a.stl", STL_BYTES, "model/stl").json()["path"]
        token = storage.create_signed_token(path, expires_in=60)

        response = client.get(f"/api/v1/files/{token[:-4]}abcd")
        assert response.status_code == 403

    def test_delete_order_removes_files(self, client, created_order, storage, admin_headers):
        path = upload(client, created_order["id"], "scan", "a.stl", STL_BYTES, "model/stl").json()["path"]
        assert storage.exists(path)

        client.delete(f"/api/v1/orders/{created_order['id']}", headers=admin_headers)
        assert not storage.exists(path)


class TestStoragePaths:

    def test_path_traversal_rejected(self, storage):
        with pytest.raises(StorageError):
            storage.upload_bytes("../outside.txt", b"x")

    def test_build_path_without_extension(self, storage):
        assert storage.build_path("OS-1", "scan", "arcada") == "OS-1/scan"

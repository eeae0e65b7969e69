import io
import uuid

import pytest
from PIL import Image


def png_bytes():
    buf = io.BytesIO()
    Image.new("RGB", (64, 32), (200, 40, 40)).save(buf, format="PNG")
    return buf.getvalue()


async def create_trade(client, headers, trade_id="t1"):
    response = await client.post(
        "/api/trades",
        json={"id": trade_id, "date": "2024-01-02", "name": "ACME"},
        headers=headers,
    )
    assert response.status_code == 200


async def upload(client, headers, trade_id="t1", image_type="beforeEntry", data=None, mime="image/png"):
    return await client.post(
        f"/api/trades/{trade_id}/charts/{image_type}",
        files={"file": ("chart.png", data if data is not None else png_bytes(), mime)},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_upload_get_and_delete_chart(client, auth_headers):
    await create_trade(client, auth_headers)

    response = await upload(client, auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["chart_image"]["storage"] == "blob"
    assert body["chart_image"]["mimeType"] == "image/jpeg"

    trade = (await client.get("/api/trades/t1", headers=auth_headers)).json()
    assert trade["chartAttachments"]["beforeEntry"]["blobId"] == body["chart_image"]["blobId"]

    image = await client.get("/api/trades/t1/charts/beforeEntry", headers=auth_headers)
    assert image.status_code == 200
    assert image.headers["content-type"] == "image/jpeg"
    assert image.content.startswith(b"\xff\xd8")

    response = await client.delete("/api/trades/t1/charts/beforeEntry", headers=auth_headers)
    assert response.status_code == 200
    assert (await client.get("/api/trades/t1/charts/beforeEntry", headers=auth_headers)).status_code == 404


@pytest.mark.asyncio
async def test_upload_requires_existing_trade(client, auth_headers):
    response = await upload(client, auth_headers, trade_id="missing")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_upload_rejects_unsupported_type(client, auth_headers):
    await create_trade(client, auth_headers)

    response = await upload(client, auth_headers, data=b"plain text", mime="text/plain")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_unknown_image_type(client, auth_headers):
    await create_trade(client, auth_headers)

    response = await upload(client, auth_headers, image_type="duringTrade")
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_guest_cannot_upload(client):
    response = await upload(client, {})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_deleting_trade_removes_its_images(client, auth_headers):
    await create_trade(client, auth_headers)
    await upload(client, auth_headers)
    await upload(client, auth_headers, image_type="afterExit")

    stats = (await client.get("/api/charts/stats", headers=auth_headers)).json()
    assert stats["blob_images"] == 2

    await client.delete("/api/trades/t1", headers=auth_headers)

    stats = (await client.get("/api/charts/stats", headers=auth_headers)).json()
    assert stats["total_images"] == 0


@pytest.mark.asyncio
async def test_cleanup_and_reconcile(client, auth_headers):
    await create_trade(client, auth_headers)
    await upload(client, auth_headers)

    response = await client.post("/api/charts/cleanup", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"blobs_cleaned": 0, "attachments_cleaned": 0, "errors": 0}

    response = await client.post("/api/charts/reconcile", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"updated": 0, "errors": 0}


@pytest.mark.asyncio
async def test_cleanup_keeps_images_uploaded_through_uppercase_uuid(client, auth_headers):
    trade_id = str(uuid.uuid4())
    await create_trade(client, auth_headers, trade_id)

    response = await upload(client, auth_headers, trade_id=trade_id.upper())
    assert response.status_code == 200

    cleanup = (await client.post("/api/charts/cleanup", headers=auth_headers)).json()
    assert cleanup == {"blobs_cleaned": 0, "attachments_cleaned": 0, "errors": 0}

    image = await client.get(f"/api/trades/{trade_id}/charts/beforeEntry", headers=auth_headers)
    assert image.status_code == 200

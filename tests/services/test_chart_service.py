import io
import uuid
from datetime import date, datetime, timezone

import pytest
from PIL import Image
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from tradejournal.models.chart_image import ChartImageBlob
from tradejournal.models.enums import ChartImageType
from tradejournal.schemas.chart_image import ChartImageBlobData
from tradejournal.schemas.trade import TradeIn
from tradejournal.services import trade_store
from tradejournal.services.charts import blob_store
from tradejournal.services.charts.service import ChartImageService, validate_chart_attachments
from tradejournal.services.ids import convert_to_uuid

BEFORE = ChartImageType.BEFORE_ENTRY
AFTER = ChartImageType.AFTER_EXIT


# -------------------------------------------------
# Helpers
# -------------------------------------------------
def png_bytes(color=(10, 120, 200)):
    buf = io.BytesIO()
    Image.new("RGB", (40, 20), color).save(buf, format="PNG")
    return buf.getvalue()


def make_blob(trade_id, data=b"img"):
    return ChartImageBlobData(
        id=str(uuid.uuid4()),
        trade_id=trade_id,
        image_type=BEFORE,
        filename="chart.png",
        mime_type="image/png",
        size_bytes=len(data),
        uploaded_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        data=data,
    )


async def save_trade(db, user_id, trade_id="trade_1", **extra):
    trade = TradeIn(id=trade_id, date=date(2024, 1, 1), name="ACME", **extra)
    assert await trade_store.save_trade(db, user_id, trade)


@pytest.fixture
def service(async_session, user_id, chart_cache):
    return ChartImageService(async_session, user_id, chart_cache)


# =================================================
# Attach / read
# =================================================
@pytest.mark.asyncio
async def test_attach_saves_local_and_cloud_and_records_attachment(service, async_session, user_id, chart_cache):
    await save_trade(async_session, user_id)

    result = await service.attach_chart_image("trade_1", BEFORE, "setup.png", "image/png", png_bytes())

    assert result.success
    image = result.chart_image
    assert image.storage == "blob"

    assert await chart_cache.get(user_id, image.blob_id) is not None
    cloud = await blob_store.get_chart_image_blob(async_session, user_id, image.blob_id)
    assert cloud.trade_id == convert_to_uuid("trade_1")

    trade = await trade_store.get_trade(async_session, user_id, "trade_1")
    attachments = trade.chart_attachments
    assert attachments["beforeEntry"]["blobId"] == image.blob_id
    assert attachments["metadata"]["totalSize"] == image.size
    assert validate_chart_attachments(attachments)


@pytest.mark.asyncio
async def test_attach_invalid_upload_returns_error(service, async_session, user_id):
    await save_trade(async_session, user_id)

    result = await service.attach_chart_image("trade_1", BEFORE, "notes.txt", "text/plain", b"hi")

    assert not result.success
    assert "not supported" in result.error


@pytest.mark.asyncio
async def test_replacing_an_image_drops_the_old_blob(service, async_session, user_id):
    await save_trade(async_session, user_id)

    first = await service.attach_chart_image("trade_1", BEFORE, "a.png", "image/png", png_bytes())
    second = await service.attach_chart_image("trade_1", BEFORE, "b.png", "image/png", png_bytes((1, 2, 3)))

    blobs = await blob_store.get_all_chart_image_blobs(async_session, user_id)
    assert [b.id for b in blobs] == [second.chart_image.blob_id]
    assert first.chart_image.blob_id != second.chart_image.blob_id


@pytest.mark.asyncio
async def test_read_falls_back_to_cloud_and_backfills_local(service, async_session, user_id, chart_cache):
    await save_trade(async_session, user_id)
    result = await service.attach_chart_image("trade_1", BEFORE, "setup.png", "image/png", png_bytes())
    blob_id = result.chart_image.blob_id

    await chart_cache.delete(user_id, blob_id)

    data, mime_type = await service.get_trade_chart_image("trade_1", BEFORE)
    assert mime_type == "image/jpeg"
    assert data.startswith(b"\xff\xd8")
    assert await chart_cache.get(user_id, blob_id) is not None


@pytest.mark.asyncio
async def test_inline_images_decode_base64(service):
    from tradejournal.schemas.chart_image import ChartImage

    image = ChartImage(
        id="x",
        filename="a.png",
        mime_type="image/png",
        size=3,
        uploaded_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        storage="inline",
        data="aW1n",
    )
    assert await service.get_chart_image_data(image) == (b"img", "image/png")


@pytest.mark.asyncio
async def test_guest_images_stay_local(async_session, chart_cache):
    guest = ChartImageService(async_session, None, chart_cache)

    result = await guest.attach_chart_image("trade_1", BEFORE, "setup.png", "image/png", png_bytes())

    assert result.success
    assert (await async_session.execute(select(ChartImageBlob))).first() is None
    assert (await guest.get_chart_image_data(result.chart_image))[1] == "image/jpeg"


# =================================================
# Delete
# =================================================
@pytest.mark.asyncio
async def test_delete_chart_image_removes_blob_and_attachment(service, async_session, user_id, chart_cache):
    await save_trade(async_session, user_id)
    result = await service.attach_chart_image("trade_1", BEFORE, "setup.png", "image/png", png_bytes())

    assert await service.delete_chart_image("trade_1", BEFORE) is True

    trade = await trade_store.get_trade(async_session, user_id, "trade_1")
    assert trade.chart_attachments == {}
    assert await chart_cache.get(user_id, result.chart_image.blob_id) is None
    assert await blob_store.get_chart_image_blob(async_session, user_id, result.chart_image.blob_id) is None

    assert await service.delete_chart_image("trade_1", BEFORE) is False


@pytest.mark.asyncio
async def test_delete_one_of_two_keeps_metadata(service, async_session, user_id):
    await save_trade(async_session, user_id)
    await service.attach_chart_image("trade_1", BEFORE, "a.png", "image/png", png_bytes())
    after = await service.attach_chart_image("trade_1", AFTER, "b.png", "image/png", png_bytes())

    await service.delete_chart_image("trade_1", BEFORE)

    attachments = (await trade_store.get_trade(async_session, user_id, "trade_1")).chart_attachments
    assert "beforeEntry" not in attachments
    assert attachments["metadata"]["totalSize"] == after.chart_image.size


@pytest.mark.asyncio
async def test_delete_trade_chart_images_covers_legacy_and_uuid_ids(service, async_session, user_id, chart_cache):
    await chart_cache.save(user_id, make_blob("trade_1"))
    await chart_cache.save(user_id, make_blob(convert_to_uuid("trade_1")))
    await blob_store.save_chart_image_blob(async_session, user_id, make_blob(convert_to_uuid("trade_1")))
    keep = make_blob(convert_to_uuid("trade_2"))
    await blob_store.save_chart_image_blob(async_session, user_id, keep)

    assert await service.delete_trade_chart_images("trade_1") is True

    assert await chart_cache.list_all(user_id) == []
    remaining = await blob_store.get_all_chart_image_blobs(async_session, user_id)
    assert [b.id for b in remaining] == [keep.id]


# =================================================
# Stats / maintenance
# =================================================
@pytest.mark.asyncio
async def test_storage_stats_counts_blobs_and_inline(service, async_session, user_id):
    inline = {
        "afterExit": {
            "id": "x",
            "filename": "a.png",
            "mimeType": "image/png",
            "size": 100,
            "uploadedAt": "2024-01-01T00:00:00Z",
            "storage": "inline",
            "data": "AAAA",
        }
    }
    await save_trade(async_session, user_id, chart_attachments=inline)
    result = await service.attach_chart_image("trade_1", BEFORE, "setup.png", "image/png", png_bytes())

    stats = await service.get_storage_stats()

    assert stats.blob_images == 1
    assert stats.blob_size == result.chart_image.size
    assert stats.inline_images == 1
    assert stats.inline_size == 100
    assert stats.total_images == 2
    assert stats.total_size == result.chart_image.size + 100


@pytest.mark.asyncio
async def test_cleanup_orphaned_blobs(service, async_session, user_id, chart_cache):
    await save_trade(async_session, user_id, trade_id="trade_1")

    by_legacy = make_blob("trade_1")
    by_uuid = make_blob(convert_to_uuid("trade_1"))
    orphan = make_blob("deleted_trade")
    for blob in (by_legacy, by_uuid, orphan):
        await blob_store.save_chart_image_blob(async_session, user_id, blob)
    await chart_cache.save(user_id, orphan)

    result = await service.cleanup_orphaned_blobs()

    assert result.cleaned == 1
    assert result.errors == 0
    remaining = {b.id for b in await blob_store.get_all_chart_image_blobs(async_session, user_id)}
    assert remaining == {by_legacy.id, by_uuid.id}
    assert await chart_cache.list_all(user_id) == []


@pytest.mark.asyncio
async def test_cleanup_orphaned_attachments(service, async_session, user_id):
    dangling = {
        "beforeEntry": {
            "id": "x",
            "filename": "a.png",
            "mimeType": "image/png",
            "size": 10,
            "uploadedAt": "2024-01-01T00:00:00Z",
            "storage": "blob",
            "blobId": str(uuid.uuid4()),
        },
        "metadata": {"totalSize": 10},
    }
    await save_trade(async_session, user_id, chart_attachments=dangling)

    result = await service.cleanup_orphaned_attachments()

    assert result.cleaned == 1
    trade = await trade_store.get_trade(async_session, user_id, "trade_1")
    assert trade.chart_attachments == {}


@pytest.mark.asyncio
async def test_cleanup_all_orphaned_data(service, async_session, user_id):
    await blob_store.save_chart_image_blob(async_session, user_id, make_blob("gone"))

    result = await service.cleanup_all_orphaned_data()

    assert result.blobs_cleaned == 1
    assert result.attachments_cleaned == 0
    assert result.errors == 0


@pytest.mark.asyncio
async def test_reconcile_legacy_trade_ids(service, async_session, user_id, chart_cache):
    legacy_local = make_blob("trade_7")
    legacy_cloud = make_blob("trade_7")
    current = make_blob(str(uuid.uuid4()))
    await chart_cache.save(user_id, legacy_local)
    await blob_store.save_chart_image_blob(async_session, user_id, legacy_cloud)
    await blob_store.save_chart_image_blob(async_session, user_id, current)

    result = await service.reconcile_legacy_trade_ids()

    assert result.updated == 2
    assert result.errors == 0
    assert (await chart_cache.get(user_id, legacy_local.id)).trade_id == convert_to_uuid("trade_7")
    cloud = await blob_store.get_chart_image_blob(async_session, user_id, legacy_cloud.id)
    assert cloud.trade_id == convert_to_uuid("trade_7")


# =================================================
# Validation
# =================================================
def test_validate_chart_attachments():
    good = {
        "beforeEntry": {
            "id": "x",
            "filename": "a.png",
            "mimeType": "image/png",
            "size": 10,
            "uploadedAt": "2024-01-01T00:00:00Z",
            "storage": "blob",
        }
    }
    assert validate_chart_attachments(good)

    bad_type = {"beforeEntry": {**good["beforeEntry"], "mimeType": "image/gif"}}
    assert not validate_chart_attachments(bad_type)

    missing_field = {"beforeEntry": {"id": "x"}}
    assert not validate_chart_attachments(missing_field)

    assert not validate_chart_attachments(None)
    assert not validate_chart_attachments("nope")


# =================================================
# Trade id case
# =================================================
@pytest.mark.asyncio
async def test_uppercase_trade_uuid_is_stored_lowercase(service, async_session, user_id, chart_cache):
    trade_id = str(uuid.uuid4())
    await save_trade(async_session, user_id, trade_id=trade_id)

    result = await service.attach_chart_image(trade_id.upper(), BEFORE, "a.png", "image/png", png_bytes())

    assert result.success
    cloud = await blob_store.get_chart_image_blob(async_session, user_id, result.chart_image.blob_id)
    assert cloud.trade_id == trade_id
    assert (await chart_cache.get(user_id, result.chart_image.blob_id)).trade_id == trade_id

    cleanup = await service.cleanup_all_orphaned_data()
    assert cleanup.blobs_cleaned == 0
    assert cleanup.attachments_cleaned == 0
    assert await service.get_trade_chart_image(trade_id, BEFORE) is not None


@pytest.mark.asyncio
async def test_uppercase_blob_trade_id_is_not_an_orphan(service, async_session, user_id):
    trade_id = str(uuid.uuid4())
    await save_trade(async_session, user_id, trade_id=trade_id)
    await blob_store.save_chart_image_blob(async_session, user_id, make_blob(trade_id.upper()))

    assert (await service.cleanup_orphaned_blobs()).cleaned == 0


@pytest.mark.asyncio
async def test_delete_trade_images_ignores_id_case(service, async_session, user_id, chart_cache):
    trade_id = str(uuid.uuid4())
    await save_trade(async_session, user_id, trade_id=trade_id)
    await service.attach_chart_image(trade_id, BEFORE, "a.png", "image/png", png_bytes())
    # blob stored by an older client under the uppercase id
    await blob_store.save_chart_image_blob(async_session, user_id, make_blob(trade_id.upper()))

    assert await service.delete_trade_chart_images(trade_id.upper())

    assert await blob_store.get_all_chart_image_blobs(async_session, user_id) == []
    assert await chart_cache.list_all(user_id) == []


@pytest.mark.asyncio
async def test_reconcile_lowercases_uuid_trade_ids(service, async_session, user_id):
    trade_id = str(uuid.uuid4())
    shouting = make_blob(trade_id.upper())
    await blob_store.save_chart_image_blob(async_session, user_id, shouting)

    result = await service.reconcile_legacy_trade_ids()

    assert result.updated == 1
    cloud = await blob_store.get_chart_image_blob(async_session, user_id, shouting.id)
    assert cloud.trade_id == trade_id


# =================================================
# Replacing an image
# =================================================
@pytest.mark.asyncio
async def test_failed_attachment_update_keeps_previous_blob(
    service, async_session, user_id, chart_cache, monkeypatch
):
    await save_trade(async_session, user_id)
    first = await service.attach_chart_image("trade_1", BEFORE, "a.png", "image/png", png_bytes())

    async def failing_store(row, attachments):
        raise SQLAlchemyError("database unavailable")

    monkeypatch.setattr(service, "_store_attachments", failing_store)

    second = await service.attach_chart_image("trade_1", BEFORE, "b.png", "image/png", png_bytes((1, 2, 3)))

    assert not second.success
    blobs = await blob_store.get_all_chart_image_blobs(async_session, user_id)
    assert [b.id for b in blobs] == [first.chart_image.blob_id]
    assert [b.id for b in await chart_cache.list_all(user_id)] == [first.chart_image.blob_id]
    trade = await trade_store.get_trade(async_session, user_id, "trade_1")
    assert trade.chart_attachments["beforeEntry"]["blobId"] == first.chart_image.blob_id

import datetime as dt
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from tradejournal.models.enums import ChartImageType
from tradejournal.schemas.trade import CamelModel


class ImageDimensions(BaseModel):
    width: int
    height: int


class ChartImage(CamelModel):
    """Attachment descriptor stored inside trade.chart_attachments."""

    id: str
    filename: str
    mime_type: str
    size: int
    uploaded_at: dt.datetime
    storage: Literal["inline", "blob"] = "blob"
    blob_id: Optional[str] = None
    data: Optional[str] = None  # base64, inline storage only
    dimensions: Optional[ImageDimensions] = None
    compressed: bool = False
    original_size: Optional[int] = None


class ChartImageBlobData(BaseModel):
    """A chart image blob as held by the local cache or the database."""

    id: str
    trade_id: str
    image_type: ChartImageType
    filename: str
    mime_type: str
    size_bytes: int
    uploaded_at: dt.datetime
    compressed: bool = False
    original_size: Optional[int] = None
    data: Optional[bytes] = Field(default=None, exclude=True)


class AttachResult(BaseModel):
    success: bool
    chart_image: Optional[ChartImage] = None
    error: Optional[str] = None


class StorageStats(BaseModel):
    total_images: int = 0
    total_size: int = 0
    inline_images: int = 0
    inline_size: int = 0
    blob_images: int = 0
    blob_size: int = 0


class CleanupResult(BaseModel):
    cleaned: int = 0
    errors: int = 0


class FullCleanupResult(BaseModel):
    blobs_cleaned: int = 0
    attachments_cleaned: int = 0
    errors: int = 0


class ReconcileResult(BaseModel):
    updated: int = 0
    errors: int = 0


class ImageValidationResult(BaseModel):
    is_valid: bool = True
    error: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

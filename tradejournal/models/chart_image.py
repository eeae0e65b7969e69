import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, LargeBinary, String, Uuid, func
from sqlalchemy.orm import Mapped, deferred, mapped_column

from tradejournal.db.database import Base


class ChartImageBlob(Base):
    """
    Binary chart image stored in the database ("cloud" copy).

    trade_id is a plain string: older attachments reference legacy
    (non-UUID) trade ids until they are reconciled.
    """

    __tablename__ = "chart_image_blobs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True)
    trade_id: Mapped[str] = mapped_column(String(128), index=True)

    image_type: Mapped[str] = mapped_column(String(16))
    filename: Mapped[str] = mapped_column(String(255))
    mime_type: Mapped[str] = mapped_column(String(32))
    size_bytes: Mapped[int] = mapped_column(Integer)

    # Deferred so listings never pull the image bytes
    data: Mapped[bytes] = deferred(mapped_column(LargeBinary))

    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    compressed: Mapped[bool] = mapped_column(Boolean, default=False)
    original_size: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

"""
Document model — storage for the JSON document store.

Every record is addressed by (collection, doc_id), the same way a hosted
document database addresses "users/{uid}" or "settings/admin_config".
The unique constraint on that pair is what guarantees a single profile per
identity: writers can only merge into the existing row, never add a second.
"""

from datetime import datetime, timezone

from sqlalchemy import String, DateTime, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class Document(Base):
    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("collection", "doc_id", name="uq_documents_collection_doc_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    collection: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    doc_id: Mapped[str] = mapped_column(String(128), nullable=False)

    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

"""Title authorship model for co-authored titles."""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Numeric, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from royalty_engine.core.database import Base

if TYPE_CHECKING:
    from royalty_engine.models.author import Author
    from royalty_engine.models.title import Title


class TitleAuthorship(Base):
    """
    Credits an author on a title with an ownership percentage.

    Ownership percentages are expressed out of 100. For a title, the active
    rows must sum to 100 (checked by the split allocator, not the database).

    Example:
    - Author A: 60.00 (primary)
    - Author B: 40.00
    """

    __tablename__ = "title_authors"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    title_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("titles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("authors.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    ownership_percentage: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=2),  # 0.00 to 100.00
        nullable=False,
    )
    # Primary author's contract supplies the tiers for the title-level calculation
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    # Relationships
    title: Mapped["Title"] = relationship(
        "Title",
        back_populates="authorships",
    )
    author: Mapped["Author"] = relationship(
        "Author",
        back_populates="authorships",
    )

    __table_args__ = (
        UniqueConstraint("title_id", "author_id", name="title_authors_title_author_unique"),
        CheckConstraint(
            "ownership_percentage >= 0 AND ownership_percentage <= 100",
            name="check_ownership_percentage_range",
        ),
    )

    def __repr__(self) -> str:
        return f"<TitleAuthorship title={self.title_id} author={self.author_id} share={self.ownership_percentage}>"

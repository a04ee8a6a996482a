"""Title model."""
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from royalty_engine.core.database import Base

if TYPE_CHECKING:
    from royalty_engine.models.contract import Contract
    from royalty_engine.models.title_authorship import TitleAuthorship


class Title(Base):
    """A published work whose sales generate royalties."""

    __tablename__ = "titles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    isbn: Mapped[str] = mapped_column(String(17), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    # Relationships
    authorships: Mapped[List["TitleAuthorship"]] = relationship(
        "TitleAuthorship",
        back_populates="title",
        cascade="all, delete-orphan",
    )
    contracts: Mapped[List["Contract"]] = relationship(
        "Contract",
        back_populates="title",
    )

    def __repr__(self) -> str:
        return f"<Title {self.id} title={self.title}>"

"""Author model for royalty tracking."""
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from royalty_engine.core.database import Base

if TYPE_CHECKING:
    from royalty_engine.models.contract import Contract
    from royalty_engine.models.statement import Statement
    from royalty_engine.models.title_authorship import TitleAuthorship


class Author(Base):
    """
    Author (contact with the author role) who earns royalties.

    Contact details are owned by the contacts module; this table only
    carries what statements need to reference.
    """

    __tablename__ = "authors"

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
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=True)

    # Timestamps
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
    contracts: Mapped[List["Contract"]] = relationship(
        "Contract",
        back_populates="author",
    )
    authorships: Mapped[List["TitleAuthorship"]] = relationship(
        "TitleAuthorship",
        back_populates="author",
    )
    statements: Mapped[List["Statement"]] = relationship(
        "Statement",
        back_populates="author",
    )

    def __repr__(self) -> str:
        return f"<Author {self.id} name={self.name}>"

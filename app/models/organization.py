from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.core import ids
from app.models.base import Base


class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=ids.id_factory(ids.ORGANIZATION))
    name: Mapped[str] = mapped_column(String(200), nullable=False)

"""SQLAlchemy models for the member directory (read-only from this service)."""
from sqlalchemy import Column, Integer, String, Text, TIMESTAMP, BigInteger, Boolean, Index
from sqlalchemy.sql import func

from community_search.database.connection import Base


class Member(Base):
    """
    One community member with the profile fields search needs.

    search_text aggregates name, skills, services, organization, designation,
    city, degree and branch and carries the FULLTEXT index used by keyword search.
    """
    __tablename__ = "members"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    city = Column(String(255), nullable=True)
    organization = Column(String(255), nullable=True)
    designation = Column(String(255), nullable=True)
    skills = Column(Text, nullable=True)  # Comma separated
    services = Column(Text, nullable=True)  # Comma separated
    graduation_year = Column(Integer, nullable=True)
    degree = Column(String(100), nullable=True)
    branch = Column(String(100), nullable=True)
    annual_turnover = Column(BigInteger, nullable=True)  # Rupees
    search_text = Column(Text, nullable=False, server_default="")
    is_active = Column(Boolean, nullable=False, server_default="1")
    updated_at = Column(
        TIMESTAMP,
        nullable=True,
        server_default=func.current_timestamp(),
        onupdate=func.current_timestamp()
    )

    __table_args__ = (
        Index("ft_members_search_text", "search_text", mysql_prefix="FULLTEXT"),
        Index("idx_members_graduation_year", "graduation_year"),
        Index("idx_members_city", "city"),
    )

    def __repr__(self) -> str:
        return f"<Member(id={self.id}, name={self.name}, city={self.city}, graduation_year={self.graduation_year})>"

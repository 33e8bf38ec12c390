"""Database table definitions for locally stored content nodes"""

from typing import Any, List, Optional

from sqlalchemy import JSON, Column, Text
from sqlmodel import Field, SQLModel


class NodeRow(SQLModel, table=True):
    """A published content node; tags are stored as an ordered list of [key, value] pairs"""
    __tablename__ = "nodes"
    id: str = Field(primary_key=True)
    kind: int = Field(..., index=True, nullable=False, description="Wire kind number, e.g. 30040 or 30041")
    owner_key: str = Field(..., index=True, nullable=False)
    d: Optional[str] = Field(default=None, index=True, description="Replaceable identifier ('d' tag)")
    tags: List[List[Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    body: str = Field(default="", sa_column=Column(Text, nullable=False))
    created_at: int = Field(default=0, nullable=False)

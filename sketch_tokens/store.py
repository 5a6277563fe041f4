"""
Token store — SQLAlchemy 持久化

colors 只新增不更新；typographies 以 (project_id, key) 為自然鍵。
每次寫入各自 commit，失敗時 rollback 後把例外往上丟，由 synchronizer 決定
是否繼續處理同批其他 token。
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import ColorToken, TypographyToken

Base = declarative_base()

COLOR_NATURAL_KEYS = {
    "value": ("value",),
    "value+ogName": ("value", "og_name"),
    "ogName": ("og_name",),
}


def _utcnow():
    return datetime.now(timezone.utc)


class ColorRecord(Base):
    __tablename__ = "colors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, nullable=False, index=True)
    name = Column(String, nullable=False)
    og_name = Column(String, nullable=False)
    value = Column(String(7), nullable=False)
    checked = Column(Boolean, nullable=False, default=False)
    double_name = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=_utcnow)


class TypographyRecord(Base):
    __tablename__ = "typographies"
    __table_args__ = (UniqueConstraint("project_id", "key", name="uq_typography_project_key"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, nullable=False, index=True)
    key = Column(String(2), nullable=False)
    colors = Column(JSON, nullable=False, default=list)
    min_size = Column(Float, nullable=True)
    base_size = Column(Float, nullable=True)
    has_italic = Column(Boolean, nullable=False, default=False)
    weight = Column(JSON, nullable=False, default=list)
    family = Column(String, nullable=True)
    checked = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class TokenStore:
    def __init__(self, db: Session):
        self.db = db

    # ─── colors ──────────────────────────────────────────────────────────

    def find_color(self, project_id, natural_key: str = "value", **fields) -> Optional[ColorRecord]:
        query = self.db.query(ColorRecord).filter(ColorRecord.project_id == project_id)
        for column in COLOR_NATURAL_KEYS[natural_key]:
            query = query.filter(getattr(ColorRecord, column) == fields[column])
        return self._first(query)

    def create_color(self, token: ColorToken) -> ColorRecord:
        record = ColorRecord(
            project_id=token.project_id,
            name=token.name,
            og_name=token.og_name,
            value=token.value,
            checked=token.checked,
            double_name=token.double_name,
        )
        return self._commit(record)

    def list_colors(self, project_id) -> list:
        return (
            self.db.query(ColorRecord)
            .filter(ColorRecord.project_id == project_id)
            .order_by(ColorRecord.id)
            .all()
        )

    # ─── typography ──────────────────────────────────────────────────────

    def find_typography(self, project_id, key: str) -> Optional[TypographyRecord]:
        query = self.db.query(TypographyRecord).filter(
            TypographyRecord.project_id == project_id, TypographyRecord.key == key
        )
        return self._first(query)

    def create_typography(self, token: TypographyToken) -> TypographyRecord:
        record = TypographyRecord(project_id=token.project_id, key=token.key)
        _apply_typography(record, token)
        record.checked = token.checked
        return self._commit(record)

    def update_typography(self, record: TypographyRecord, token: TypographyToken) -> TypographyRecord:
        """覆寫全部欄位，checked 一律重設為 False（來源變動需重新確認）."""
        _apply_typography(record, token)
        record.checked = False
        return self._commit(record)

    def list_typography(self, project_id) -> list:
        return (
            self.db.query(TypographyRecord)
            .filter(TypographyRecord.project_id == project_id)
            .order_by(TypographyRecord.key)
            .all()
        )

    def _first(self, query):
        # 查詢失敗也要 rollback，session 才能繼續處理下一個 token
        try:
            return query.first()
        except Exception:
            self.db.rollback()
            raise

    def _commit(self, record):
        try:
            self.db.add(record)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(record)
        return record


def _apply_typography(record: TypographyRecord, token: TypographyToken) -> None:
    record.colors = list(token.colors)
    record.min_size = token.min_size
    record.base_size = token.base_size
    record.has_italic = token.has_italic
    record.weight = list(token.weight)
    record.family = token.family


def create_session_factory(database_url: str, echo: bool = False) -> sessionmaker:
    kwargs = {"echo": echo}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # 記憶體 DB 需共用同一條連線，否則每個 session 看到的是空 DB
        kwargs.update(connect_args={"check_same_thread": False}, poolclass=StaticPool)
    engine = create_engine(database_url, **kwargs)
    Base.metadata.create_all(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_store(database_url: str, echo: bool = False) -> TokenStore:
    return TokenStore(create_session_factory(database_url, echo)())

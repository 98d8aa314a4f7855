from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UsernameTakenError(ValueError):
    pass


# --- plain records handed to the rest of the app ---


@dataclass
class UserRecord:
    id: str
    username: str
    password: str


@dataclass
class AnalysisRecord:
    id: int
    repo_url: str
    owner: str
    repo: str
    analysis_data: dict
    user_id: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)


# --- tables ---


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    username = Column(String, unique=True, nullable=False)
    password = Column(Text, nullable=False)


class Analysis(Base):
    __tablename__ = "analyses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    repo_url = Column(Text, nullable=False)
    owner = Column(String, nullable=False, index=True)
    repo = Column(String, nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    analysis_data = Column(JSON, nullable=False)
    created_at = Column(DateTime, nullable=False, default=_utcnow)


def _user(row: User) -> UserRecord:
    return UserRecord(id=row.id, username=row.username, password=row.password)


def _analysis(row: Analysis) -> AnalysisRecord:
    return AnalysisRecord(
        id=row.id,
        repo_url=row.repo_url,
        owner=row.owner,
        repo=row.repo,
        user_id=row.user_id,
        analysis_data=row.analysis_data,
        created_at=row.created_at,
    )


def _pg8000_url(database_url: str) -> str:
    """postgres:// and postgresql:// URLs are routed through the pg8000 driver."""
    for prefix in ("postgres://", "postgresql://"):
        if database_url.startswith(prefix):
            return "postgresql+pg8000://" + database_url[len(prefix):]
    return database_url


class Storage(ABC):
    @abstractmethod
    def get_user(self, user_id: str) -> Optional[UserRecord]: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[UserRecord]: ...

    @abstractmethod
    def create_user(self, username: str, password_hash: str) -> UserRecord: ...

    @abstractmethod
    def get_analysis(self, analysis_id: int) -> Optional[AnalysisRecord]: ...

    @abstractmethod
    def get_analysis_by_repo(self, owner: str, repo: str) -> Optional[AnalysisRecord]:
        """Latest analysis for owner/repo."""

    @abstractmethod
    def get_analyses_by_user(self, user_id: str) -> list[AnalysisRecord]:
        """Newest first."""

    @abstractmethod
    def create_analysis(
        self,
        repo_url: str,
        owner: str,
        repo: str,
        analysis_data: dict[str, Any],
        user_id: Optional[str] = None,
    ) -> AnalysisRecord: ...


class DatabaseStorage(Storage):
    def __init__(self, database_url: str):
        kwargs: dict[str, Any] = {"pool_pre_ping": True}
        if database_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
        else:
            database_url = _pg8000_url(database_url)
            if database_url.startswith("postgresql+pg8000://"):
                # fail in 10s instead of hanging forever
                kwargs["connect_args"] = {"timeout": 10}

        self.engine = create_engine(database_url, **kwargs)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)
        logger.info("[DB] Using %s", self.engine.url.render_as_string(hide_password=True))

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.get(User, user_id)
            return _user(row) if row else None

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.query(User).filter(User.username == username).first()
            return _user(row) if row else None

    def create_user(self, username: str, password_hash: str) -> UserRecord:
        with self.Session() as session:
            row = User(username=username, password=password_hash)
            session.add(row)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise UsernameTakenError("Username already taken") from e
            return _user(row)

    def get_analysis(self, analysis_id: int) -> Optional[AnalysisRecord]:
        with self.Session() as session:
            row = session.get(Analysis, analysis_id)
            return _analysis(row) if row else None

    def get_analysis_by_repo(self, owner: str, repo: str) -> Optional[AnalysisRecord]:
        with self.Session() as session:
            row = (
                session.query(Analysis)
                .filter(Analysis.owner == owner, Analysis.repo == repo)
                .order_by(Analysis.created_at.desc(), Analysis.id.desc())
                .first()
            )
            return _analysis(row) if row else None

    def get_analyses_by_user(self, user_id: str) -> list[AnalysisRecord]:
        with self.Session() as session:
            rows = (
                session.query(Analysis)
                .filter(Analysis.user_id == user_id)
                .order_by(Analysis.created_at.desc(), Analysis.id.desc())
                .all()
            )
            return [_analysis(r) for r in rows]

    def create_analysis(
        self,
        repo_url: str,
        owner: str,
        repo: str,
        analysis_data: dict[str, Any],
        user_id: Optional[str] = None,
    ) -> AnalysisRecord:
        with self.Session() as session:
            row = Analysis(
                repo_url=repo_url,
                owner=owner,
                repo=repo,
                user_id=user_id,
                analysis_data=analysis_data,
            )
            session.add(row)
            session.commit()
            return _analysis(row)


class MemoryStorage(Storage):
    """Process-local store; everything is lost on restart."""

    def __init__(self):
        self._lock = threading.Lock()
        self._users: dict[str, UserRecord] = {}
        self._analyses: dict[int, AnalysisRecord] = {}
        self._counter = 0

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self._users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        for user in list(self._users.values()):
            if user.username == username:
                return user
        return None

    def create_user(self, username: str, password_hash: str) -> UserRecord:
        with self._lock:
            if any(u.username == username for u in self._users.values()):
                raise UsernameTakenError("Username already taken")
            user = UserRecord(id=str(uuid4()), username=username, password=password_hash)
            self._users[user.id] = user
            return user

    def get_analysis(self, analysis_id: int) -> Optional[AnalysisRecord]:
        return self._analyses.get(analysis_id)

    def _newest_first(self, records: list[AnalysisRecord]) -> list[AnalysisRecord]:
        return sorted(records, key=lambda a: (a.created_at, a.id), reverse=True)

    def get_analysis_by_repo(self, owner: str, repo: str) -> Optional[AnalysisRecord]:
        matches = [a for a in list(self._analyses.values()) if a.owner == owner and a.repo == repo]
        return self._newest_first(matches)[0] if matches else None

    def get_analyses_by_user(self, user_id: str) -> list[AnalysisRecord]:
        return self._newest_first([a for a in list(self._analyses.values()) if a.user_id == user_id])

    def create_analysis(
        self,
        repo_url: str,
        owner: str,
        repo: str,
        analysis_data: dict[str, Any],
        user_id: Optional[str] = None,
    ) -> AnalysisRecord:
        with self._lock:
            self._counter += 1
            record = AnalysisRecord(
                id=self._counter,
                repo_url=repo_url,
                owner=owner,
                repo=repo,
                user_id=user_id,
                analysis_data=analysis_data,
            )
            self._analyses[record.id] = record
            return record


def create_storage(backend: str, database_url: str) -> Storage:
    if backend == "memory":
        logger.info("[DB] Using in-memory storage")
        return MemoryStorage()
    if backend == "database":
        return DatabaseStorage(database_url)
    raise ValueError(f"Unknown STORAGE_BACKEND: {backend!r} (expected database or memory)")

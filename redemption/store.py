"""
Redemption store: the durable, single-use record of redeemed transaction ids.

Uniqueness is enforced where the data lives (the primary key in SQL, a locked
compare-and-insert in memory), so two requests that both passed `has` cannot
both record the same transaction.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy import Column, DateTime, String, create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .errors import AlreadyRedeemedError, StoreError
from .models import RedemptionRecord

logger = logging.getLogger(__name__)

Base = declarative_base()


class RedemptionRow(Base):
    __tablename__ = "redemptions"

    transaction_id = Column(String, primary_key=True)
    redeemed_by = Column(String, nullable=False)
    redeemed_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return f"<RedemptionRow(transaction_id='{self.transaction_id}', redeemed_by='{self.redeemed_by}')>"


class RedemptionStore(Protocol):
    def has(self, transaction_id: str) -> bool: ...

    def record(self, transaction_id: str, requester: str) -> RedemptionRecord: ...

    def get(self, transaction_id: str) -> Optional[RedemptionRecord]: ...


class InMemoryRedemptionStore:
    def __init__(self):
        self.records: dict[str, RedemptionRecord] = {}
        self._lock = threading.Lock()

    def has(self, transaction_id: str) -> bool:
        return transaction_id in self.records

    def record(self, transaction_id: str, requester: str) -> RedemptionRecord:
        with self._lock:
            if transaction_id in self.records:
                raise AlreadyRedeemedError(transaction_id)
            record = RedemptionRecord(
                transaction_id=transaction_id,
                redeemed_by=requester,
                redeemed_at=datetime.now(timezone.utc),
            )
            self.records[transaction_id] = record
        return record

    def get(self, transaction_id: str) -> Optional[RedemptionRecord]:
        return self.records.get(transaction_id)


class SqlRedemptionStore:
    """SQLAlchemy-backed store. Call `open()` once at startup and `close()` on shutdown."""

    def __init__(self, database_url: str):
        self.database_url = database_url
        self._engine = None
        self._sessionmaker = None

    def open(self) -> None:
        if self._engine is not None:
            return
        kwargs = {}
        if self.database_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if self.database_url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
        try:
            self._engine = create_engine(self.database_url, **kwargs)
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            self._engine = None
            raise StoreError(f"Could not open redemption store: {e}") from e
        self._sessionmaker = sessionmaker(bind=self._engine, expire_on_commit=False)
        logger.info(f"[Store] Opened redemption store at {self._engine.url!r}")

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._sessionmaker = None

    def _session(self):
        if self._sessionmaker is None:
            raise StoreError("Redemption store is not open")
        return self._sessionmaker()

    def has(self, transaction_id: str) -> bool:
        try:
            with self._session() as session:
                return session.get(RedemptionRow, transaction_id) is not None
        except (SQLAlchemyError, UnicodeError) as e:
            raise StoreError(f"Could not read redemption {transaction_id}: {e}") from e

    def record(self, transaction_id: str, requester: str) -> RedemptionRecord:
        row = RedemptionRow(
            transaction_id=transaction_id,
            redeemed_by=requester,
            redeemed_at=datetime.now(timezone.utc),
        )
        with self._session() as session:
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                raise AlreadyRedeemedError(transaction_id)
            except (SQLAlchemyError, UnicodeError) as e:
                session.rollback()
                raise StoreError(f"Could not record redemption {transaction_id}: {e}") from e
            return RedemptionRecord.model_validate(row)

    def get(self, transaction_id: str) -> Optional[RedemptionRecord]:
        try:
            with self._session() as session:
                row = session.get(RedemptionRow, transaction_id)
                return RedemptionRecord.model_validate(row) if row else None
        except (SQLAlchemyError, UnicodeError) as e:
            raise StoreError(f"Could not read redemption {transaction_id}: {e}") from e

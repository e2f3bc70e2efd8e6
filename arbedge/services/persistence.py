"""
Data persistence service.

Stores the latest quote per (event_id, bookmaker) and every detected
opportunity. SQLite through SQLAlchemy for local use.
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from arbedge.core.config import Settings, get_settings, load_yaml_config
from arbedge.core.errors import StoreError
from arbedge.core.logging import get_logger
from arbedge.core.timeutil import (
    from_naive_utc,
    hours_ago,
    minutes_ago,
    now_utc,
    to_naive_utc,
)
from arbedge.domain.models import Event, Leg, Opportunity, Quote

logger = get_logger("persistence")

Base = declarative_base()


class QuoteRecord(Base):
    """Latest quote of one bookmaker for one event."""

    __tablename__ = "quotes"
    __table_args__ = (
        UniqueConstraint("event_id", "bookmaker", name="uq_quotes_event_bookmaker"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    sport = Column(String(50), nullable=False, index=True)
    event_id = Column(String(255), nullable=False, index=True)
    event_name = Column(String(500), nullable=False)
    side_a = Column(String(255), nullable=False)
    side_b = Column(String(255), nullable=False)
    bookmaker = Column(String(100), nullable=False)
    price_a = Column(Float, nullable=True)
    price_b = Column(Float, nullable=True)
    price_draw = Column(Float, nullable=True)
    event_time = Column(DateTime, nullable=True)
    observed_at = Column(DateTime, nullable=False, index=True)


class OpportunityRecord(Base):
    """Detected arbitrage; legs are kept as a JSON list."""

    __tablename__ = "opportunities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(255), nullable=False, index=True)
    sport = Column(String(50), nullable=False, index=True)
    event_name = Column(String(500), nullable=False)
    side_a = Column(String(255), nullable=False)
    side_b = Column(String(255), nullable=False)
    profit_percent = Column(Float, nullable=False, index=True)
    legs_json = Column(Text, nullable=False)
    detected_at = Column(DateTime, nullable=False, index=True)
    expired = Column(Boolean, nullable=False, default=False)


class PersistenceService(ABC):
    """Abstract base class for quote and opportunity storage."""

    @abstractmethod
    def upsert_quotes(self, quotes: Iterable[Quote]) -> int:
        """Store a batch atomically; latest observed_at per (event, bookmaker) wins."""
        pass

    @abstractmethod
    def quotes_for_event(self, event_id: str) -> list[Quote]:
        """All stored quotes of one event."""
        pass

    @abstractmethod
    def active_events(
        self,
        window_hours: Optional[float] = None,
        sport: Optional[str] = None,
    ) -> list[Event]:
        """Events with at least one recently observed quote."""
        pass

    @abstractmethod
    def insert_opportunity(self, opportunity: Opportunity) -> int:
        """Store an opportunity and return its id."""
        pass

    @abstractmethod
    def expire_opportunities(self, event_ids: Iterable[str]) -> int:
        """Mark the current opportunities of these events as expired."""
        pass

    @abstractmethod
    def list_opportunities(
        self,
        sport: Optional[str] = None,
        min_profit_percent: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> list[Opportunity]:
        """Live opportunities, most profitable first."""
        pass

    @abstractmethod
    def get_opportunity(self, opportunity_id: int) -> Optional[Opportunity]:
        """A single live opportunity."""
        pass

    @abstractmethod
    def cleanup_old_data(self) -> dict[str, int]:
        """Apply the retention horizons."""
        pass


class SQLitePersistence(PersistenceService):
    """
    SQLite-based persistence.

    Every public method opens its own session; upsert_quotes commits the
    whole batch or nothing.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        settings: Optional[Settings] = None,
        config: Optional[dict] = None,
    ):
        if database_url is None:
            settings = settings or get_settings()
            database_url = settings.database_url
        self.database_url = database_url

        config = config if config is not None else load_yaml_config()
        store_config = config.get("store", {})
        self.active_window_hours = store_config.get("active_window_hours", 2)
        self.opportunity_max_age_minutes = store_config.get("opportunity_max_age_minutes", 60)
        self.page_size = store_config.get("page_size", 50)
        self.quote_retention_hours = store_config.get("quote_retention_hours", 3)
        self.opportunity_retention_hours = store_config.get("opportunity_retention_hours", 24)

        connect_args = {}
        if self.database_url.startswith("sqlite"):
            # Sessions are opened from scheduler and request threads alike
            connect_args["check_same_thread"] = False

        if self.database_url.startswith("sqlite:///"):
            db_path = Path(self.database_url.replace("sqlite:///", ""))
            db_path.parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(self.database_url, connect_args=connect_args)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine)

        logger.info(f"Initialized SQLite persistence: {self.database_url}")

    # ==============================================
    # Quotes
    # ==============================================

    def upsert_quotes(self, quotes: Iterable[Quote]) -> int:
        """
        Store a batch of quotes.

        Within the batch and against stored rows, the quote with the latest
        observed_at wins for each (event_id, bookmaker).

        Args:
            quotes: Quotes from one refresh

        Returns:
            Number of rows inserted or updated
        """
        latest: dict[tuple[str, str], Quote] = {}
        for quote in quotes:
            key = (quote.event_id, quote.bookmaker)
            current = latest.get(key)
            if current is None or quote.observed_at >= current.observed_at:
                latest[key] = quote

        session = self.Session()
        try:
            written = 0
            for (event_id, bookmaker), quote in latest.items():
                observed_at = to_naive_utc(quote.observed_at)
                record = (
                    session.query(QuoteRecord)
                    .filter_by(event_id=event_id, bookmaker=bookmaker)
                    .first()
                )

                if record is None:
                    record = QuoteRecord(event_id=event_id, bookmaker=bookmaker)
                    session.add(record)
                elif record.observed_at > observed_at:
                    continue

                record.sport = quote.sport
                record.event_name = quote.event_name
                record.side_a = quote.side_a
                record.side_b = quote.side_b
                record.price_a = quote.price_a
                record.price_b = quote.price_b
                record.price_draw = quote.price_draw
                record.event_time = to_naive_utc(quote.event_time) if quote.event_time else None
                record.observed_at = observed_at
                written += 1

            session.commit()
            logger.info(f"Stored {written} quote records")
            return written

        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to store quotes: {e}")
            raise StoreError(f"Failed to store quotes: {e}", operation="upsert_quotes") from e
        finally:
            session.close()

    def quotes_for_event(self, event_id: str) -> list[Quote]:
        session = self.Session()
        try:
            records = (
                session.query(QuoteRecord)
                .filter_by(event_id=event_id)
                .order_by(QuoteRecord.bookmaker)
                .all()
            )
            return [_to_quote(r) for r in records]
        finally:
            session.close()

    def active_events(
        self,
        window_hours: Optional[float] = None,
        sport: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> list[Event]:
        """
        Events with a quote observed inside the recency window.

        Args:
            window_hours: Recency window, defaults to store.active_window_hours
            sport: Restrict to one sport
            now: Reference time (tests)

        Returns:
            One Event per event_id, ordered by event_time
        """
        window = window_hours if window_hours is not None else self.active_window_hours
        cutoff = to_naive_utc(hours_ago(window, now or now_utc()))

        session = self.Session()
        try:
            query = session.query(QuoteRecord).filter(QuoteRecord.observed_at > cutoff)
            if sport:
                query = query.filter(QuoteRecord.sport == sport)
            records = query.order_by(QuoteRecord.event_time, QuoteRecord.id).all()

            events: dict[str, Event] = {}
            for record in records:
                if record.event_id not in events:
                    events[record.event_id] = Event.from_quote(_to_quote(record))
            return list(events.values())
        finally:
            session.close()

    # ==============================================
    # Opportunities
    # ==============================================

    def insert_opportunity(self, opportunity: Opportunity) -> int:
        record = OpportunityRecord(
            event_id=opportunity.event_id,
            sport=opportunity.sport,
            event_name=opportunity.event_name,
            side_a=opportunity.side_a,
            side_b=opportunity.side_b,
            profit_percent=opportunity.profit_percent,
            legs_json=json.dumps([leg.to_dict() for leg in opportunity.legs]),
            detected_at=to_naive_utc(opportunity.detected_at),
            expired=False,
        )

        session = self.Session()
        try:
            session.add(record)
            session.commit()
            opportunity.id = record.id
            logger.debug(f"Stored opportunity {record.id} for {opportunity.event_id}")
            return record.id

        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to store opportunity: {e}")
            raise StoreError(f"Failed to store opportunity: {e}", operation="insert_opportunity") from e
        finally:
            session.close()

    def expire_opportunities(self, event_ids: Iterable[str]) -> int:
        event_ids = list(event_ids)
        if not event_ids:
            return 0

        session = self.Session()
        try:
            count = (
                session.query(OpportunityRecord)
                .filter(
                    OpportunityRecord.event_id.in_(event_ids),
                    OpportunityRecord.expired.is_(False),
                )
                .update({OpportunityRecord.expired: True}, synchronize_session=False)
            )
            session.commit()
            return count

        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to expire opportunities: {e}")
            raise StoreError(f"Failed to expire opportunities: {e}", operation="expire_opportunities") from e
        finally:
            session.close()

    def _live_opportunities(self, session, now: Optional[datetime]):
        cutoff = to_naive_utc(minutes_ago(self.opportunity_max_age_minutes, now or now_utc()))
        return session.query(OpportunityRecord).filter(
            OpportunityRecord.expired.is_(False),
            OpportunityRecord.detected_at > cutoff,
        )

    def list_opportunities(
        self,
        sport: Optional[str] = None,
        min_profit_percent: Optional[float] = None,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> list[Opportunity]:
        """
        List live opportunities.

        Live means not expired and detected within
        store.opportunity_max_age_minutes.

        Args:
            sport: Restrict to one sport
            min_profit_percent: Lower bound on profit_percent (inclusive)
            limit: Page size, defaults to store.page_size
            now: Reference time (tests)

        Returns:
            Opportunities ordered by profit_percent descending
        """
        session = self.Session()
        try:
            query = self._live_opportunities(session, now)
            if sport:
                query = query.filter(OpportunityRecord.sport == sport)
            if min_profit_percent is not None:
                query = query.filter(OpportunityRecord.profit_percent >= min_profit_percent)

            records = (
                query.order_by(
                    OpportunityRecord.profit_percent.desc(),
                    OpportunityRecord.detected_at.desc(),
                )
                .limit(limit or self.page_size)
                .all()
            )
            return [_to_opportunity(r) for r in records]
        finally:
            session.close()

    def get_opportunity(
        self,
        opportunity_id: int,
        now: Optional[datetime] = None,
    ) -> Optional[Opportunity]:
        session = self.Session()
        try:
            record = (
                self._live_opportunities(session, now)
                .filter(OpportunityRecord.id == opportunity_id)
                .first()
            )
            return _to_opportunity(record) if record else None
        finally:
            session.close()

    # ==============================================
    # Maintenance
    # ==============================================

    def cleanup_old_data(self, now: Optional[datetime] = None) -> dict[str, int]:
        """
        Delete quotes and opportunities past their retention horizons.

        Returns:
            Deleted row counts by table
        """
        now = now or now_utc()
        quote_cutoff = to_naive_utc(hours_ago(self.quote_retention_hours, now))
        opportunity_cutoff = to_naive_utc(hours_ago(self.opportunity_retention_hours, now))

        session = self.Session()
        try:
            quotes_deleted = (
                session.query(QuoteRecord)
                .filter(QuoteRecord.observed_at < quote_cutoff)
                .delete(synchronize_session=False)
            )
            opportunities_deleted = (
                session.query(OpportunityRecord)
                .filter(OpportunityRecord.detected_at < opportunity_cutoff)
                .delete(synchronize_session=False)
            )
            session.commit()

            logger.info(
                f"Cleanup: deleted {quotes_deleted} old quotes, "
                f"{opportunities_deleted} old opportunities"
            )
            return {"quotes": quotes_deleted, "opportunities": opportunities_deleted}

        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Cleanup failed: {e}")
            raise StoreError(f"Cleanup failed: {e}", operation="cleanup_old_data") from e
        finally:
            session.close()

    def stats(self) -> dict[str, Any]:
        """Row counts for status displays."""
        session = self.Session()
        try:
            return {
                "quotes": session.query(QuoteRecord).count(),
                "opportunities": session.query(OpportunityRecord).count(),
                "live_opportunities": self._live_opportunities(session, None).count(),
            }
        finally:
            session.close()


def _to_quote(record: QuoteRecord) -> Quote:
    return Quote(
        sport=record.sport,
        event_id=record.event_id,
        event_name=record.event_name,
        side_a=record.side_a,
        side_b=record.side_b,
        bookmaker=record.bookmaker,
        price_a=record.price_a,
        price_b=record.price_b,
        price_draw=record.price_draw,
        event_time=from_naive_utc(record.event_time),
        observed_at=from_naive_utc(record.observed_at),
    )


def _to_opportunity(record: OpportunityRecord) -> Opportunity:
    return Opportunity(
        id=record.id,
        event_id=record.event_id,
        sport=record.sport,
        event_name=record.event_name,
        side_a=record.side_a,
        side_b=record.side_b,
        profit_percent=record.profit_percent,
        legs=[Leg.from_dict(leg) for leg in json.loads(record.legs_json)],
        detected_at=from_naive_utc(record.detected_at),
    )


def create_persistence_service(
    settings: Optional[Settings] = None,
    config: Optional[dict] = None,
) -> PersistenceService:
    """Create the persistence service for the configured database."""
    settings = settings or get_settings()
    return SQLitePersistence(settings=settings, config=config)

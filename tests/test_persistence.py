"""Tests for SQLite persistence."""

from datetime import timedelta

import pytest

from arbedge.core.errors import StoreError
from arbedge.core.timeutil import now_utc
from arbedge.domain.models import Leg, Opportunity, build_quote
from tests.conftest import arb_quotes


def make_opportunity(event_id, sport="tennis", profit=5.0, detected_at=None):
    return Opportunity(
        event_id=event_id,
        sport=sport,
        event_name=f"{event_id} name",
        side_a="A",
        side_b="B",
        profit_percent=profit,
        legs=[Leg("A", "B1", 2.1, 50.0), Leg("B", "B2", 2.1, 50.0)],
        detected_at=detected_at or now_utc(),
    )


class TestUpsertQuotes:
    """Tests for quote upserts."""

    def test_insert_then_update_keeps_one_row(self, persistence):
        """Upserting the same event and bookmaker twice updates in place."""
        now = now_utc()
        first = build_quote("tennis", "A", "B", "B1", 2.0, 1.8, observed_at=now)
        second = build_quote("tennis", "A", "B", "B1", 2.2, 1.7, observed_at=now + timedelta(minutes=5))

        persistence.upsert_quotes([first])
        persistence.upsert_quotes([second])

        stored = persistence.quotes_for_event(first.event_id)
        assert len(stored) == 1
        assert stored[0].price_a == 2.2
        assert stored[0].price_b == 1.7
        assert persistence.stats()["quotes"] == 1

    def test_older_quote_does_not_overwrite(self, persistence):
        now = now_utc()
        newer = build_quote("tennis", "A", "B", "B1", 2.2, 1.7, observed_at=now)
        older = build_quote("tennis", "A", "B", "B1", 2.0, 1.8, observed_at=now - timedelta(minutes=5))

        persistence.upsert_quotes([newer])
        written = persistence.upsert_quotes([older])

        assert written == 0
        assert persistence.quotes_for_event(newer.event_id)[0].price_a == 2.2

    def test_latest_in_batch_wins(self, persistence):
        now = now_utc()
        batch = [
            build_quote("tennis", "A", "B", "B1", 2.5, 1.5, observed_at=now),
            build_quote("tennis", "A", "B", "B1", 2.0, 1.8, observed_at=now - timedelta(minutes=1)),
        ]

        written = persistence.upsert_quotes(batch)

        assert written == 1
        assert persistence.quotes_for_event(batch[0].event_id)[0].price_a == 2.5

    def test_round_trip_keeps_fields(self, persistence):
        quote = build_quote("soccer", "Arsenal", "Chelsea", "Bet365", 2.5, 2.9, 3.4)

        persistence.upsert_quotes([quote])
        stored = persistence.quotes_for_event(quote.event_id)[0]

        assert stored.event_name == "Arsenal vs Chelsea"
        assert stored.price_draw == 3.4
        assert stored.observed_at.tzinfo is not None
        assert abs((stored.observed_at - quote.observed_at).total_seconds()) < 1

    def test_quotes_ordered_by_bookmaker(self, persistence):
        persistence.upsert_quotes(list(reversed(arb_quotes())))

        stored = persistence.quotes_for_event(arb_quotes()[0].event_id)

        assert [q.bookmaker for q in stored] == ["B1", "B2"]

    def test_failed_batch_is_rolled_back(self, persistence):
        good = build_quote("tennis", "A", "B", "B1", 2.0, 1.8)
        bad = build_quote("tennis", "C", "D", "B1", 2.0, 1.8)
        bad.sport = None

        with pytest.raises(StoreError):
            persistence.upsert_quotes([good, bad])

        assert persistence.quotes_for_event(good.event_id) == []


class TestActiveEvents:
    """Tests for active_events."""

    def test_only_recent_events(self, persistence):
        now = now_utc()
        persistence.upsert_quotes([
            build_quote("tennis", "A", "B", "B1", 2.0, 1.8, observed_at=now - timedelta(minutes=10)),
            build_quote("tennis", "C", "D", "B1", 2.0, 1.8, observed_at=now - timedelta(hours=3)),
            build_quote("soccer", "E", "F", "B1", 2.0, 1.8, 3.0, observed_at=now - timedelta(minutes=30)),
        ])

        events = persistence.active_events(now=now)
        assert {e.event_id for e in events} == {"match_a_b", "match_e_f"}

        tennis = persistence.active_events(sport="tennis", now=now)
        assert [e.event_id for e in tennis] == ["match_a_b"]

        wide = persistence.active_events(window_hours=4, now=now)
        assert len(wide) == 3

    def test_one_event_per_id(self, persistence):
        persistence.upsert_quotes(arb_quotes())

        assert len(persistence.active_events()) == 1


class TestOpportunities:
    """Tests for opportunity storage and listing."""

    def test_insert_sets_id(self, persistence):
        opportunity = make_opportunity("match_a_b")

        opportunity_id = persistence.insert_opportunity(opportunity)

        assert opportunity.id == opportunity_id
        stored = persistence.get_opportunity(opportunity_id)
        assert stored.legs == opportunity.legs
        assert stored.profit_percent == 5.0

    def test_list_orders_and_filters(self, persistence):
        now = now_utc()
        persistence.insert_opportunity(make_opportunity("match_a_b", profit=1.5, detected_at=now))
        persistence.insert_opportunity(make_opportunity("match_c_d", profit=4.0, detected_at=now))
        persistence.insert_opportunity(make_opportunity("match_e_f", sport="soccer", profit=2.5, detected_at=now))

        listed = persistence.list_opportunities(now=now)
        assert [o.profit_percent for o in listed] == [4.0, 2.5, 1.5]

        assert [o.event_id for o in persistence.list_opportunities(sport="soccer", now=now)] == ["match_e_f"]
        assert len(persistence.list_opportunities(min_profit_percent=2.5, now=now)) == 2
        assert len(persistence.list_opportunities(limit=1, now=now)) == 1

    def test_old_opportunities_are_not_live(self, persistence):
        now = now_utc()
        old_id = persistence.insert_opportunity(
            make_opportunity("match_a_b", detected_at=now - timedelta(hours=2))
        )

        assert persistence.list_opportunities(now=now) == []
        assert persistence.get_opportunity(old_id, now=now) is None

    def test_expire_hides_opportunities(self, persistence):
        opportunity_id = persistence.insert_opportunity(make_opportunity("match_a_b"))
        persistence.insert_opportunity(make_opportunity("match_c_d"))

        expired = persistence.expire_opportunities(["match_a_b"])

        assert expired == 1
        assert persistence.get_opportunity(opportunity_id) is None
        assert [o.event_id for o in persistence.list_opportunities()] == ["match_c_d"]
        assert persistence.expire_opportunities([]) == 0

    def test_missing_opportunity(self, persistence):
        assert persistence.get_opportunity(999) is None


class TestCleanup:
    """Tests for cleanup_old_data."""

    def test_deletes_past_retention(self, persistence):
        now = now_utc()
        persistence.upsert_quotes([
            build_quote("tennis", "A", "B", "B1", 2.0, 1.8, observed_at=now - timedelta(hours=4)),
            build_quote("tennis", "C", "D", "B1", 2.0, 1.8, observed_at=now - timedelta(hours=1)),
        ])
        persistence.insert_opportunity(make_opportunity("match_a_b", detected_at=now - timedelta(hours=25)))
        persistence.insert_opportunity(make_opportunity("match_c_d", detected_at=now - timedelta(hours=1)))

        deleted = persistence.cleanup_old_data(now=now)

        assert deleted == {"quotes": 1, "opportunities": 1}
        stats = persistence.stats()
        assert stats["quotes"] == 1
        assert stats["opportunities"] == 1

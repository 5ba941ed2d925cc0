"""Integration tests for SqlAlchemySubscriptionRepository"""

import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock
from sqlalchemy import update
from sqlmodel import select

from src.adapter.repositories import SqlAlchemySubscriptionRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.use_cases.subscriptions import StartTrial, StartTrialCommandDTO
from src.domain.errors import ConcurrentModificationError, StateConflictError
from src.domain.plan import PlanType
from src.domain.subscription import Subscription, SubscriptionStatus
from src.domain.subscription_lifecycle import Pause, SubscriptionState, transition

NOW = datetime(2024, 3, 15, 12, 0, 0)


def make_subscription(owner_id, status=SubscriptionStatus.ACTIVE, **overrides):
    values = {
        "owner_id": owner_id,
        "plan_type": PlanType.BASIC,
        "status": status,
        "start_date": NOW - timedelta(days=30),
        "trial_end_date": NOW - timedelta(days=23),
    }
    values.update(overrides)
    return Subscription(**values)


class TestSubscriptionRepositoryIntegration:
    @pytest.mark.asyncio
    async def test_save_state_bumps_version(self, db_session):
        repo = SqlAlchemySubscriptionRepository(db_session)
        subscription = await repo.create(make_subscription("owner_save"))
        await db_session.commit()

        result = transition(SubscriptionState.of(subscription), Pause(), NOW)
        saved = await repo.save_state(subscription, result.state)
        await db_session.commit()

        assert saved.status == SubscriptionStatus.PAUSED
        assert saved.paused_at == NOW
        assert saved.version == 1

    @pytest.mark.asyncio
    async def test_save_state_detects_concurrent_write(self, db_session):
        """
        Given: Subscription read at version 0
        When: Another writer bumps the row before our conditional write
        Then: ConcurrentModificationError, the other writer's change stands
        """
        repo = SqlAlchemySubscriptionRepository(db_session)
        subscription = await repo.create(make_subscription("owner_race"))
        await db_session.commit()
        subscription_id = subscription.id

        await db_session.execute(
            update(Subscription)
            .where(Subscription.id == subscription_id)
            .values(version=5)
            .execution_options(synchronize_session=False)
        )
        await db_session.commit()

        result = transition(SubscriptionState.of(subscription), Pause(), NOW)
        with pytest.raises(ConcurrentModificationError):
            await repo.save_state(subscription, result.state)
        await db_session.rollback()

        stored = await repo.get_by_id(subscription_id)
        assert stored.status == SubscriptionStatus.ACTIVE
        assert stored.version == 5

    @pytest.mark.asyncio
    async def test_get_by_owner_prefers_open_subscription(self, db_session):
        repo = SqlAlchemySubscriptionRepository(db_session)
        await repo.create(make_subscription(
            "owner_history", SubscriptionStatus.EXPIRED, created_at=NOW - timedelta(days=1)
        ))
        open_subscription = await repo.create(make_subscription(
            "owner_history", SubscriptionStatus.TRIAL, created_at=NOW - timedelta(days=40)
        ))
        await db_session.commit()

        found = await repo.get_by_owner_id("owner_history")

        assert found.id == open_subscription.id
        assert (await repo.get_open_by_owner_id("owner_history")).id == open_subscription.id

    @pytest.mark.asyncio
    async def test_get_by_owner_falls_back_to_latest_terminal(self, db_session):
        repo = SqlAlchemySubscriptionRepository(db_session)
        await repo.create(make_subscription(
            "owner_gone", SubscriptionStatus.EXPIRED, created_at=NOW - timedelta(days=60)
        ))
        latest = await repo.create(make_subscription(
            "owner_gone", SubscriptionStatus.CANCELLED, created_at=NOW - timedelta(days=2)
        ))
        await db_session.commit()

        assert (await repo.get_by_owner_id("owner_gone")).id == latest.id
        assert await repo.get_open_by_owner_id("owner_gone") is None

    @pytest.mark.asyncio
    async def test_list_due_for_expiration(self, db_session):
        repo = SqlAlchemySubscriptionRepository(db_session)
        lapsed_grace = await repo.create(make_subscription(
            "owner_1", SubscriptionStatus.GRACE_PERIOD, grace_period_end_date=NOW - timedelta(hours=1)
        ))
        ended = await repo.create(make_subscription(
            "owner_2", SubscriptionStatus.ACTIVE, end_date=NOW - timedelta(days=1)
        ))
        await repo.create(make_subscription(
            "owner_3", SubscriptionStatus.GRACE_PERIOD, grace_period_end_date=NOW + timedelta(days=3)
        ))
        await repo.create(make_subscription("owner_4", SubscriptionStatus.ACTIVE))
        await repo.create(make_subscription(
            "owner_5", SubscriptionStatus.TRIAL, trial_end_date=NOW - timedelta(days=1)
        ))
        await db_session.commit()

        due = await repo.list_due_for_expiration(NOW)

        assert {s.id for s in due} == {lapsed_grace.id, ended.id}

    @pytest.mark.asyncio
    async def test_lookup_by_provider_ids(self, db_session):
        repo = SqlAlchemySubscriptionRepository(db_session)
        subscription = await repo.create(make_subscription(
            "owner_linked", provider_subscription_id="sub_stripe_9", provider_session_id="cs_plan_9"
        ))
        await db_session.commit()

        assert (await repo.get_by_provider_subscription_id("sub_stripe_9")).id == subscription.id
        assert (await repo.get_by_provider_session_id("cs_plan_9")).id == subscription.id
        assert await repo.get_by_provider_subscription_id("sub_unknown") is None


class TestOneOpenSubscriptionPerOwner:
    @pytest.mark.asyncio
    async def test_second_open_subscription_is_rejected(self, db_session):
        repo = SqlAlchemySubscriptionRepository(db_session)
        await repo.create(make_subscription("owner_dup", SubscriptionStatus.TRIAL))
        await db_session.commit()

        with pytest.raises(StateConflictError):
            await repo.create(make_subscription("owner_dup", SubscriptionStatus.ACTIVE))
        await db_session.rollback()

        result = await db_session.execute(select(Subscription).where(Subscription.owner_id == "owner_dup"))
        assert [s.status for s in result.scalars().all()] == [SubscriptionStatus.TRIAL]

    @pytest.mark.asyncio
    async def test_racing_signups_create_one_trial(self, db_session):
        """
        Given: Two signups for the same owner that both saw no open subscription
        When: Both try to start a trial
        Then: One trial is created, the other gets STATE_CONFLICT
        """
        first = await StartTrial(
            SqlAlchemyUnitOfWork(db_session), SqlAlchemySubscriptionRepository(db_session)
        ).execute(StartTrialCommandDTO(owner_id="owner_signup", plan_type=PlanType.BASIC), now=NOW)

        racing_repo = SqlAlchemySubscriptionRepository(db_session)
        racing_repo.get_open_by_owner_id = AsyncMock(return_value=None)
        second = await StartTrial(SqlAlchemyUnitOfWork(db_session), racing_repo).execute(
            StartTrialCommandDTO(owner_id="owner_signup", plan_type=PlanType.PREMIUM), now=NOW
        )

        assert first.is_ok()
        assert second.is_err()
        assert second.error.code == "STATE_CONFLICT"

        result = await db_session.execute(select(Subscription).where(Subscription.owner_id == "owner_signup"))
        stored = list(result.scalars().all())
        assert len(stored) == 1
        assert stored[0].plan_type == PlanType.BASIC

    @pytest.mark.asyncio
    async def test_new_trial_allowed_after_terminal(self, db_session):
        repo = SqlAlchemySubscriptionRepository(db_session)
        await repo.create(make_subscription("owner_back", SubscriptionStatus.EXPIRED))
        await repo.create(make_subscription("owner_back", SubscriptionStatus.CANCELLED))
        await db_session.commit()

        result = await StartTrial(SqlAlchemyUnitOfWork(db_session), repo).execute(
            StartTrialCommandDTO(owner_id="owner_back", plan_type=PlanType.BASIC), now=NOW
        )

        assert result.is_ok()
        assert result.value.status == SubscriptionStatus.TRIAL


class TestTimestampStorage:
    @pytest.mark.asyncio
    async def test_datetimes_round_trip_naive(self, db_session):
        repo = SqlAlchemySubscriptionRepository(db_session)
        subscription = await repo.create(make_subscription(
            "owner_clock", SubscriptionStatus.GRACE_PERIOD, grace_period_end_date=NOW + timedelta(days=7)
        ))
        await db_session.commit()
        subscription_id = subscription.id
        db_session.expunge_all()

        stored = await repo.get_by_id(subscription_id)

        assert stored.start_date == NOW - timedelta(days=30)
        assert stored.start_date.tzinfo is None
        assert stored.grace_period_end_date == NOW + timedelta(days=7)
        assert stored.grace_period_end_date.tzinfo is None
        assert Subscription.__table__.c.trial_end_date.type.timezone is False

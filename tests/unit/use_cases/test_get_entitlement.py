"""Unit tests for GetEntitlement use case"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from src.app.services.usage_meter import UsageMeter
from src.app.use_cases.usage import GetEntitlement
from src.domain.add_on_credit import AddOnCredit, AddOnStatus
from src.domain.entitlement import UsageHealth
from src.domain.errors import ConcurrentModificationError
from src.domain.plan import PlanType
from src.domain.subscription import Subscription, SubscriptionStatus
from src.domain.subscription_lifecycle import AccessTier

NOW = datetime(2024, 3, 15, 12, 0, 0)


def make_subscription(status=SubscriptionStatus.ACTIVE, **overrides):
    values = {
        "id": "sub-1",
        "owner_id": "owner_1",
        "plan_type": PlanType.BASIC,
        "status": status,
        "trial_end_date": NOW - timedelta(days=20),
    }
    values.update(overrides)
    return Subscription(**values)


async def apply_state(subscription, state, **fields):
    for name, value in state.model_dump().items():
        setattr(subscription, name, value)
    return subscription


@pytest.fixture
def mock_subscription_repo():
    repo = MagicMock()
    repo.save_state = AsyncMock(side_effect=apply_state)
    return repo


@pytest.fixture
def mock_add_on_repo():
    repo = MagicMock()
    repo.list_active = AsyncMock(return_value=[])
    return repo


@pytest.fixture
def mock_message_log():
    log = MagicMock()
    log.count_outbound_messages = AsyncMock(return_value=0)
    return log


@pytest.fixture
def use_case(mock_uow, mock_subscription_repo, mock_add_on_repo, mock_message_log):
    return GetEntitlement(
        uow=mock_uow,
        subscription_repo=mock_subscription_repo,
        add_on_repo=mock_add_on_repo,
        usage_meter=UsageMeter(mock_message_log, ["whatsapp"]),
    )


@pytest.mark.asyncio
class TestGetEntitlement:
    async def test_new_basic_owner(self, use_case, mock_subscription_repo, mock_uow):
        mock_subscription_repo.get_by_owner_id = AsyncMock(return_value=make_subscription())

        result = await use_case.execute("owner_1", now=NOW)

        assert result.is_ok()
        assert result.value.monthly.used == 0
        assert result.value.monthly.limit == 450
        assert result.value.monthly.remaining == 450
        assert result.value.status == UsageHealth.HEALTHY
        assert result.value.can_send is True
        mock_subscription_repo.save_state.assert_not_called()
        mock_uow.commit.assert_not_called()

    async def test_add_on_raises_monthly_limit(
        self, use_case, mock_subscription_repo, mock_add_on_repo, mock_message_log
    ):
        mock_subscription_repo.get_by_owner_id = AsyncMock(return_value=make_subscription())
        mock_add_on_repo.list_active = AsyncMock(return_value=[
            AddOnCredit(
                owner_id="owner_1",
                plan_type_at_purchase=PlanType.BASIC,
                credits_granted=500,
                amount_paid=Decimal("30.00"),
                currency="USD",
                status=AddOnStatus.COMPLETED,
                effective_date=datetime(2024, 3, 15),
                expiration_date=datetime(2024, 4, 1),
            )
        ])
        mock_message_log.count_outbound_messages = AsyncMock(side_effect=[400, 5])

        result = await use_case.execute("owner_1", now=NOW)

        assert result.value.monthly.limit == 950
        assert result.value.monthly.remaining == 550
        assert result.value.monthly.percentage == 42
        assert result.value.status == UsageHealth.HEALTHY

    async def test_counts_current_month_and_day(self, use_case, mock_subscription_repo, mock_message_log):
        mock_subscription_repo.get_by_owner_id = AsyncMock(return_value=make_subscription())

        await use_case.execute("owner_1", now=NOW)

        monthly_call, daily_call = mock_message_log.count_outbound_messages.await_args_list
        assert monthly_call.args == ("owner_1", ("whatsapp",), datetime(2024, 3, 1), datetime(2024, 4, 1))
        assert daily_call.args == ("owner_1", ("whatsapp",), datetime(2024, 3, 15), datetime(2024, 3, 16))

    async def test_lapsed_grace_period_expires_on_read(self, use_case, mock_subscription_repo, mock_uow):
        """
        Given: Subscription in grace_period whose window ended yesterday
        When: Querying the entitlement
        Then: Subscription is persisted as expired and the fallback tier applies
        """
        subscription = make_subscription(
            SubscriptionStatus.GRACE_PERIOD,
            grace_period_end_date=NOW - timedelta(days=1),
            cancelled_at=NOW - timedelta(days=8),
        )
        mock_subscription_repo.get_by_owner_id = AsyncMock(return_value=subscription)

        result = await use_case.execute("owner_1", now=NOW)

        assert result.value.monthly.limit == 10
        assert result.value.daily.limit == 1
        assert result.value.access_tier == AccessTier.LAPSED
        assert subscription.status == SubscriptionStatus.EXPIRED
        mock_subscription_repo.save_state.assert_awaited_once()
        mock_uow.commit.assert_called_once()

    async def test_lost_expiration_race_does_not_fail_read(
        self, use_case, mock_subscription_repo, mock_uow
    ):
        mock_subscription_repo.get_by_owner_id = AsyncMock(return_value=make_subscription(
            SubscriptionStatus.GRACE_PERIOD,
            grace_period_end_date=NOW - timedelta(days=1),
        ))
        mock_subscription_repo.save_state = AsyncMock(
            side_effect=ConcurrentModificationError("Subscription sub-1 was modified concurrently")
        )

        result = await use_case.execute("owner_1", now=NOW)

        assert result.is_ok()
        assert result.value.monthly.limit == 10
        mock_uow.rollback.assert_called_once()
        mock_uow.commit.assert_not_called()

    async def test_owner_without_subscription_gets_fallback(self, use_case, mock_subscription_repo):
        mock_subscription_repo.get_by_owner_id = AsyncMock(return_value=None)

        result = await use_case.execute("nobody", now=NOW)

        assert result.is_ok()
        assert result.value.monthly.limit == 10
        assert result.value.access_tier == AccessTier.LAPSED

    async def test_daily_cap_blocks_sending(self, use_case, mock_subscription_repo, mock_message_log):
        mock_subscription_repo.get_by_owner_id = AsyncMock(return_value=make_subscription())
        mock_message_log.count_outbound_messages = AsyncMock(side_effect=[100, 20])

        result = await use_case.execute("owner_1", now=NOW)

        assert result.value.can_send is False
        assert result.value.daily.remaining == 0
        assert result.value.status == UsageHealth.CRITICAL

    async def test_storage_failure_is_internal_error(self, use_case, mock_subscription_repo):
        mock_subscription_repo.get_by_owner_id = AsyncMock(side_effect=RuntimeError("connection reset"))

        result = await use_case.execute("owner_1", now=NOW)

        assert result.is_err()
        assert result.error.code == "INTERNAL_ERROR"

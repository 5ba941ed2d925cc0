"""Unit tests for add-on use cases

Tests cover:
- PurchaseAddOn: eligibility, pending row, checkout metadata, provider failure
- ConfirmAddOnCheckout: completion on paid session, idempotency, ownership
- ListActiveAddOns
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from src.app.services.billing_provider import CheckoutSession, call_with_retry
from src.app.use_cases.add_ons import (
    ConfirmAddOnCheckout,
    ConfirmAddOnCheckoutCommandDTO,
    ListActiveAddOns,
    PurchaseAddOn,
    PurchaseAddOnCommandDTO,
)
from src.domain.add_on_credit import AddOnCredit, AddOnSource, AddOnStatus
from src.domain.errors import UpstreamBillingError
from src.domain.plan import PlanType
from src.domain.subscription import Subscription, SubscriptionStatus

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


def make_add_on(status=AddOnStatus.PENDING, **overrides):
    values = {
        "id": "addon-1",
        "owner_id": "owner_1",
        "plan_type_at_purchase": PlanType.BASIC,
        "credits_granted": 500,
        "amount_paid": Decimal("30.00"),
        "currency": "USD",
        "status": status,
        "provider_session_id": "cs_test_1",
        "effective_date": NOW,
        "expiration_date": datetime(2024, 4, 1),
    }
    values.update(overrides)
    return AddOnCredit(**values)


@pytest.fixture
def mock_subscription_repo():
    return MagicMock()


@pytest.fixture
def mock_add_on_repo():
    repo = MagicMock()
    repo.create = AsyncMock(side_effect=lambda a: a)
    repo.update = AsyncMock(side_effect=lambda a: a)
    return repo


@pytest.fixture
def mock_billing_provider():
    provider = MagicMock()
    provider.create_add_on_checkout = AsyncMock(
        return_value=CheckoutSession(session_id="cs_test_1", url="https://checkout.stripe.com/c/pay/cs_test_1")
    )
    return provider


@pytest.fixture
def purchase_use_case(mock_uow, mock_subscription_repo, mock_add_on_repo, mock_billing_provider):
    return PurchaseAddOn(
        uow=mock_uow,
        subscription_repo=mock_subscription_repo,
        add_on_repo=mock_add_on_repo,
        billing_provider=mock_billing_provider,
        credits_granted=500,
        amount=Decimal("30.00"),
        currency="USD",
    )


@pytest.mark.asyncio
class TestPurchaseAddOn:
    async def test_opens_checkout_for_active_owner(
        self, purchase_use_case, mock_subscription_repo, mock_add_on_repo, mock_billing_provider, mock_uow
    ):
        """
        Given: Owner with an active subscription
        When: Purchasing an add-on from the dashboard
        Then: Pending add-on valid until month end, checkout opened, committed
        """
        mock_subscription_repo.get_open_by_owner_id = AsyncMock(return_value=make_subscription())

        result = await purchase_use_case.execute(
            PurchaseAddOnCommandDTO(owner_id="owner_1", source=AddOnSource.PREVENTIVE_DASHBOARD),
            now=NOW,
        )

        assert result.is_ok()
        assert result.value.session_id == "cs_test_1"
        assert result.value.credits_granted == 500
        assert result.value.amount == Decimal("30.00")
        assert result.value.expiration_date == datetime(2024, 4, 1)

        created = mock_add_on_repo.create.call_args.args[0]
        assert created.status == AddOnStatus.PENDING
        assert created.effective_date == NOW
        assert created.source_tag == AddOnSource.PREVENTIVE_DASHBOARD
        assert created.provider_session_id == "cs_test_1"

        metadata = mock_billing_provider.create_add_on_checkout.call_args.kwargs["metadata"]
        assert metadata["kind"] == "add_on"
        assert metadata["add_on_id"] == created.id
        assert metadata["source"] == "preventive_dashboard"
        mock_uow.commit.assert_called_once()

    @pytest.mark.parametrize("status,extra", [
        (SubscriptionStatus.TRIAL, {"trial_end_date": NOW + timedelta(days=3)}),
        (SubscriptionStatus.PAUSED, {}),
        (SubscriptionStatus.PAST_DUE, {}),
        (SubscriptionStatus.GRACE_PERIOD, {"grace_period_end_date": NOW + timedelta(days=3)}),
    ])
    async def test_requires_active_subscription(
        self, status, extra, purchase_use_case, mock_subscription_repo, mock_add_on_repo, mock_billing_provider
    ):
        mock_subscription_repo.get_open_by_owner_id = AsyncMock(
            return_value=make_subscription(status, **extra)
        )

        result = await purchase_use_case.execute(PurchaseAddOnCommandDTO(owner_id="owner_1"), now=NOW)

        assert result.is_err()
        assert result.error.code == "STATE_CONFLICT"
        mock_add_on_repo.create.assert_not_called()
        mock_billing_provider.create_add_on_checkout.assert_not_called()

    async def test_no_subscription(self, purchase_use_case, mock_subscription_repo):
        mock_subscription_repo.get_open_by_owner_id = AsyncMock(return_value=None)

        result = await purchase_use_case.execute(PurchaseAddOnCommandDTO(owner_id="owner_1"), now=NOW)

        assert result.is_err()
        assert result.error.code == "SUBSCRIPTION_NOT_FOUND"

    async def test_provider_failure_leaves_nothing_committed(
        self, purchase_use_case, mock_subscription_repo, mock_billing_provider, mock_uow
    ):
        mock_subscription_repo.get_open_by_owner_id = AsyncMock(return_value=make_subscription())
        mock_billing_provider.create_add_on_checkout = AsyncMock(
            side_effect=UpstreamBillingError("Billing provider checkout creation failed")
        )

        result = await purchase_use_case.execute(PurchaseAddOnCommandDTO(owner_id="owner_1"), now=NOW)

        assert result.is_err()
        assert result.error.code == "UPSTREAM_BILLING_ERROR"
        mock_uow.rollback.assert_called_once()
        mock_uow.commit.assert_not_called()


@pytest.mark.asyncio
class TestConfirmAddOnCheckout:
    async def test_paid_session_completes_add_on(self, mock_uow, mock_add_on_repo):
        add_on = make_add_on()
        mock_add_on_repo.get_by_provider_session_id = AsyncMock(return_value=add_on)
        provider = MagicMock()
        provider.retrieve_checkout_session = AsyncMock(
            return_value=CheckoutSession(session_id="cs_test_1", payment_status="paid", payment_intent="pi_1")
        )
        use_case = ConfirmAddOnCheckout(mock_uow, mock_add_on_repo, provider)

        result = await use_case.execute(
            ConfirmAddOnCheckoutCommandDTO(owner_id="owner_1", session_id="cs_test_1"), now=NOW
        )

        assert result.is_ok()
        assert result.value.status == AddOnStatus.COMPLETED
        assert add_on.external_payment_ref == "pi_1"
        mock_uow.commit.assert_called_once()

    async def test_retries_lookup_once(self, mock_uow, mock_add_on_repo):
        mock_add_on_repo.get_by_provider_session_id = AsyncMock(return_value=make_add_on())
        provider = MagicMock()
        provider.retrieve_checkout_session = AsyncMock(side_effect=[
            UpstreamBillingError("Billing provider checkout lookup failed"),
            CheckoutSession(session_id="cs_test_1", payment_status="paid", payment_intent="pi_1"),
        ])
        use_case = ConfirmAddOnCheckout(mock_uow, mock_add_on_repo, provider)

        result = await use_case.execute(
            ConfirmAddOnCheckoutCommandDTO(owner_id="owner_1", session_id="cs_test_1"), now=NOW
        )

        assert result.is_ok()
        assert provider.retrieve_checkout_session.await_count == 2

    async def test_lookup_gives_up_after_second_failure(self, mock_uow, mock_add_on_repo):
        add_on = make_add_on()
        mock_add_on_repo.get_by_provider_session_id = AsyncMock(return_value=add_on)
        provider = MagicMock()
        provider.retrieve_checkout_session = AsyncMock(
            side_effect=UpstreamBillingError("Billing provider checkout lookup failed")
        )
        use_case = ConfirmAddOnCheckout(mock_uow, mock_add_on_repo, provider)

        result = await use_case.execute(
            ConfirmAddOnCheckoutCommandDTO(owner_id="owner_1", session_id="cs_test_1"), now=NOW
        )

        assert result.is_err()
        assert result.error.code == "UPSTREAM_BILLING_ERROR"
        assert provider.retrieve_checkout_session.await_count == 2
        assert add_on.status == AddOnStatus.PENDING
        mock_uow.commit.assert_not_called()

    async def test_unpaid_session_stays_pending(self, mock_uow, mock_add_on_repo):
        mock_add_on_repo.get_by_provider_session_id = AsyncMock(return_value=make_add_on())
        provider = MagicMock()
        provider.retrieve_checkout_session = AsyncMock(
            return_value=CheckoutSession(session_id="cs_test_1", payment_status="unpaid")
        )
        use_case = ConfirmAddOnCheckout(mock_uow, mock_add_on_repo, provider)

        result = await use_case.execute(
            ConfirmAddOnCheckoutCommandDTO(owner_id="owner_1", session_id="cs_test_1"), now=NOW
        )

        assert result.is_ok()
        assert result.value.status == AddOnStatus.PENDING
        mock_uow.commit.assert_not_called()

    async def test_already_completed_skips_provider(self, mock_uow, mock_add_on_repo):
        mock_add_on_repo.get_by_provider_session_id = AsyncMock(
            return_value=make_add_on(AddOnStatus.COMPLETED)
        )
        provider = MagicMock()
        provider.retrieve_checkout_session = AsyncMock()
        use_case = ConfirmAddOnCheckout(mock_uow, mock_add_on_repo, provider)

        result = await use_case.execute(
            ConfirmAddOnCheckoutCommandDTO(owner_id="owner_1", session_id="cs_test_1"), now=NOW
        )

        assert result.is_ok()
        provider.retrieve_checkout_session.assert_not_called()

    async def test_other_owners_session_is_not_found(self, mock_uow, mock_add_on_repo):
        mock_add_on_repo.get_by_provider_session_id = AsyncMock(
            return_value=make_add_on(owner_id="someone_else")
        )
        use_case = ConfirmAddOnCheckout(mock_uow, mock_add_on_repo, MagicMock())

        result = await use_case.execute(
            ConfirmAddOnCheckoutCommandDTO(owner_id="owner_1", session_id="cs_test_1"), now=NOW
        )

        assert result.is_err()
        assert result.error.code == "ADD_ON_NOT_FOUND"


@pytest.mark.asyncio
class TestListActiveAddOns:
    async def test_lists_add_ons_in_force(self, mock_add_on_repo):
        mock_add_on_repo.list_active = AsyncMock(return_value=[
            make_add_on(AddOnStatus.COMPLETED, id="addon-2", credits_granted=250),
            make_add_on(AddOnStatus.COMPLETED),
        ])

        result = await ListActiveAddOns(mock_add_on_repo).execute("owner_1", now=NOW)

        assert result.is_ok()
        assert [a.id for a in result.value.add_ons] == ["addon-2", "addon-1"]
        assert result.value.total_credits == 750

    async def test_empty(self, mock_add_on_repo):
        mock_add_on_repo.list_active = AsyncMock(return_value=[])

        result = await ListActiveAddOns(mock_add_on_repo).execute("owner_1", now=NOW)

        assert result.value.add_ons == []
        assert result.value.total_credits == 0

    async def test_storage_failure_is_internal_error(self, mock_add_on_repo):
        mock_add_on_repo.list_active = AsyncMock(side_effect=Exception("connection reset"))

        result = await ListActiveAddOns(mock_add_on_repo).execute("owner_1", now=NOW)

        assert result.is_err()
        assert result.error.code == "INTERNAL_ERROR"


@pytest.mark.asyncio
class TestCallWithRetry:
    async def test_returns_first_success(self):
        func = AsyncMock(return_value="ok")

        assert await call_with_retry(func, "cs_1") == "ok"
        func.assert_awaited_once_with("cs_1")

    async def test_other_errors_are_not_retried(self):
        func = AsyncMock(side_effect=KeyError("id"))

        with pytest.raises(KeyError):
            await call_with_retry(func, "cs_1")

        assert func.await_count == 1

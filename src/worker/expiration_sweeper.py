"""Subscription Expiration Sweeper

Periodically expires subscriptions whose grace period or end date has
elapsed so reports and dashboards see current statuses. Entitlement reads do
not depend on it: they expire subscriptions lazily.

Disabled unless EXPIRATION_SWEEP_ENABLED is set.
"""

import asyncio
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.adapter.repositories.subscription_repository import SqlAlchemySubscriptionRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.use_cases.subscriptions import ExpireLapsedSubscriptions, ExpirationSweepResultDTO
from src.domain.base import utcnow

logger = logging.getLogger(__name__)


class ExpirationSweeperWorker:
    """
    Background worker for batch subscription expiration

    Usage:
        worker = ExpirationSweeperWorker()
        result = await worker.run_once()

        await worker.run_forever(interval_seconds=3600)
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
        batch_size: Optional[int] = None,
    ):
        self.db_uri = db_uri or ApplicationConfig.DB_URI
        self.batch_size = batch_size or ApplicationConfig.EXPIRATION_SWEEP_BATCH_SIZE

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

        logger.info("ExpirationSweeperWorker initialized")

    async def run_once(self) -> ExpirationSweepResultDTO:
        if not ApplicationConfig.EXPIRATION_SWEEP_ENABLED:
            logger.info("Expiration sweep is disabled, skipping")
            return ExpirationSweepResultDTO(
                checked=0,
                expired=0,
                conflicts=0,
                swept_at=utcnow(),
                execution_time_ms=0,
            )

        async with self.async_session_factory() as session:
            uow = SqlAlchemyUnitOfWork(session)
            subscription_repo = SqlAlchemySubscriptionRepository(session)

            use_case = ExpireLapsedSubscriptions(
                uow=uow,
                subscription_repo=subscription_repo,
                batch_size=self.batch_size,
            )
            result = await use_case.execute()

            if result.is_err():
                logger.error(f"Expiration sweep failed: {result.error.message}")
                raise RuntimeError(f"Expiration sweep failed: {result.error.message}")

            return result.value

    async def run_forever(self, interval_seconds: int = 3600):
        logger.info(f"Starting expiration sweep with {interval_seconds}s interval")

        while True:
            try:
                result = await self.run_once()
                logger.info(
                    f"Expiration sweep complete. Checked {result.checked}, "
                    f"expired {result.expired}, conflicts {result.conflicts} "
                    f"in {result.execution_time_ms}ms"
                )
            except Exception as e:
                logger.error(f"Expiration sweep cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        await self.engine.dispose()
        logger.info("ExpirationSweeperWorker shutdown complete")


async def main():
    """
    Usage:
        python -m src.worker.expiration_sweeper --once
        python -m src.worker.expiration_sweeper --interval 3600
    """
    import argparse

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Subscription Expiration Sweeper")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.EXPIRATION_SWEEP_INTERVAL_SECONDS,
        help="Interval between runs in seconds"
    )
    args = parser.parse_args()

    worker = ExpirationSweeperWorker()

    try:
        if args.once:
            result = await worker.run_once()
            print("Expiration sweep complete:")
            print(f"  Checked: {result.checked}")
            print(f"  Expired: {result.expired}")
            print(f"  Conflicts: {result.conflicts}")
            print(f"  Execution time: {result.execution_time_ms}ms")
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())

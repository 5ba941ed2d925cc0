"""Background workers for the entitlement service"""
from .expiration_sweeper import ExpirationSweeperWorker

__all__ = ["ExpirationSweeperWorker"]

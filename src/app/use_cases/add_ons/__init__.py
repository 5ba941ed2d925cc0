"""Add-on ledger use cases"""
from .purchase_add_on import PurchaseAddOn
from .list_active_add_ons import ListActiveAddOns
from .confirm_add_on_checkout import ConfirmAddOnCheckout
from .dtos import (
    PurchaseAddOnCommandDTO,
    ConfirmAddOnCheckoutCommandDTO,
    AddOnCheckoutResponseDTO,
    AddOnDTO,
    ActiveAddOnsResponseDTO,
)

__all__ = [
    "PurchaseAddOn",
    "ListActiveAddOns",
    "ConfirmAddOnCheckout",
    "PurchaseAddOnCommandDTO",
    "ConfirmAddOnCheckoutCommandDTO",
    "AddOnCheckoutResponseDTO",
    "AddOnDTO",
    "ActiveAddOnsResponseDTO",
]

"""Application service: Component Configuration (query).

Static per-component settings read by the front-ends.  Names are matched
case-insensitively; an unknown component has an empty configuration.
"""

from __future__ import annotations

import copy
from typing import Any

from polimarket.domain.exceptions import ValidationError


def _defaults(low_stock_threshold: int) -> dict[str, dict[str, Any]]:
    return {
        "Authorization": {
            "MaxLoginAttempts": 3,
            "TokenExpirationMinutes": 480,
            "RequireEmailVerification": True,
        },
        "Sales": {
            "MaxDiscountPercentage": 20.0,
            "TaxRate": 0.19,
            "AllowNegativeInventory": False,
        },
        "Inventory": {
            "LowStockThreshold": low_stock_threshold,
            "AutoReorderEnabled": True,
            "ReorderQuantity": 100,
        },
        "Notifications": {
            "EmailEnabled": True,
            "SMSEnabled": False,
            "PushNotificationsEnabled": True,
        },
    }


class ComponentConfiguration:

    def __init__(self, low_stock_threshold: int = 10) -> None:
        self._settings = _defaults(low_stock_threshold)

    def get(self, component_name: str) -> dict[str, Any]:
        if not component_name or not component_name.strip():
            raise ValidationError("Component name is required")
        wanted = component_name.strip().lower()
        for name, settings in self._settings.items():
            if name.lower() == wanted:
                return copy.deepcopy(settings)
        return {}

    def components(self) -> list[str]:
        return list(self._settings)

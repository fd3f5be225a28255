# Importing the module registers tables with Base for create_all()
from .core import (  # noqa: F401
    # Enums
    BookingStatus, BookingType, PaymentStatus, PaymentMethod, FoodKind, RuleKind,

    # Configuration
    DeviceConfig, PricingRule, HappyHourWindow,

    # Inventory
    FoodItem, StockBatch,

    # Sessions
    SessionGroup, Booking, BookingFoodOrder, BookingHistory,

    # Audit & payments
    ActivityLog, PaymentLog,
)

__all__ = [
    # Enums
    "BookingStatus", "BookingType", "PaymentStatus", "PaymentMethod", "FoodKind", "RuleKind",

    # Configuration
    "DeviceConfig", "PricingRule", "HappyHourWindow",

    # Inventory
    "FoodItem", "StockBatch",

    # Sessions
    "SessionGroup", "Booking", "BookingFoodOrder", "BookingHistory",

    # Audit & payments
    "ActivityLog", "PaymentLog",
]

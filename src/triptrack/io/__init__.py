from .location_source import LocationSource, ReplayLocationSource, Subscription, SubscriptionRequest, read_fixes

__all__ = [
    "LocationSource",
    "ReplayLocationSource",
    "Subscription",
    "SubscriptionRequest",
    "read_fixes",
]

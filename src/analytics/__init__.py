"""
Analytics package for the booking funnel event stream.
"""
from .events import DOMAIN, BookingEvent
from .emitter import AnalyticsEmitter, Dispatcher

__all__ = [
    "DOMAIN",
    "BookingEvent",
    "AnalyticsEmitter",
    "Dispatcher",
]

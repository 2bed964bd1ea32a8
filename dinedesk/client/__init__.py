"""Async Python client mirroring the admin dashboard: order state, realtime stream, cart and session."""

from .api import ApiError, DineDeskClient, SessionExpired
from .context import AppContext
from .notifications import AlertKind, LoggingNotifier, Notifier, OrderAlert, synthesize_cue
from .orders import InvalidTransition, OrderStore, OrderSync
from .realtime import BackoffPolicy, ConnectionState, HttpEventSource, RealtimeConnection
from .storage import Cart, LocalStore

__all__ = [
    "AlertKind",
    "ApiError",
    "AppContext",
    "BackoffPolicy",
    "Cart",
    "ConnectionState",
    "DineDeskClient",
    "HttpEventSource",
    "InvalidTransition",
    "LocalStore",
    "LoggingNotifier",
    "Notifier",
    "OrderAlert",
    "OrderStore",
    "OrderSync",
    "RealtimeConnection",
    "SessionExpired",
    "synthesize_cue",
]

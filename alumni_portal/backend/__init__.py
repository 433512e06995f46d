"""ALUMNI PORTAL BACKEND MODULE

Adapters for the hosted auth and data API. The application builds them
through the factories below so tests can hand in in-memory stores instead.
"""

from typing import NamedTuple

from alumni_portal.backend.base import (
    AdminAuth,
    AuthEvent,
    ChangeType,
    ObserverRegistry,
    ProfileStore,
    SessionStore,
    Subscription,
)


class Backend(NamedTuple):
    session_store: SessionStore
    profile_store: ProfileStore


class ServiceBackend(NamedTuple):
    admin_auth: AdminAuth
    profile_store: ProfileStore


def supabase_backend_factory(ledger):
    """Stores acting as the browser identified by ``ledger``."""
    from alumni_portal.backend.supabase_backend import (
        SupabaseProfileStore,
        SupabaseSessionStore,
        create_user_client,
    )

    client = create_user_client()
    return Backend(SupabaseSessionStore(client, ledger), SupabaseProfileStore(client))


def supabase_service_backend_factory():
    """Stores acting with the service role, for the deletion batch."""
    from alumni_portal.backend.supabase_backend import (
        SupabaseAdminAuth,
        SupabaseProfileStore,
        create_service_client,
    )

    client = create_service_client()
    return ServiceBackend(SupabaseAdminAuth(client), SupabaseProfileStore(client))


__all__ = [
    "AdminAuth",
    "AuthEvent",
    "Backend",
    "ChangeType",
    "ObserverRegistry",
    "ProfileStore",
    "ServiceBackend",
    "SessionStore",
    "Subscription",
    "supabase_backend_factory",
    "supabase_service_backend_factory",
]

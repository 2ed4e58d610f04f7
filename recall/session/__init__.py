"""
Session lifecycles.

- SessionLifecycle: server-authoritative, drives a SessionStore
- LocalSessionLifecycle: client-local, builds sessions from a CardStore
"""

from recall.session.base import BaseSessionLifecycle
from recall.session.lifecycle import SessionLifecycle
from recall.session.local import LocalSessionLifecycle, derive_session_identity


__all__ = [
    "BaseSessionLifecycle",
    "SessionLifecycle",
    "LocalSessionLifecycle",
    "derive_session_identity",
]

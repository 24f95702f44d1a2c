"""
Bootstrap Module
================

Process lifecycle and composition root.

Contains:
- ApplicationContext / ContextBuilder: explicit, named component registry
- compose(): registration of every component of the service
- ApplicationHost: start / wait / stop state machine around the HTTP server
"""

from src.bootstrap.context import (
    ApplicationContext,
    ComponentRegistration,
    ContextBuilder,
    has_active_context,
)
from src.bootstrap.composition import compose
from src.bootstrap.host import ApplicationHost, HostState

__all__ = [
    "ApplicationContext",
    "ComponentRegistration",
    "ContextBuilder",
    "has_active_context",
    "compose",
    "ApplicationHost",
    "HostState",
]

"""Route Dependencies — collaborator handles read from app.state.

Invariants:
    - Collaborators are created once in the lifespan (main.attach_collaborators)
      and never constructed per request
"""

from fastapi import Request
from fastapi.requests import HTTPConnection

from couponhub.core.repository_protocols import CacheBackend, EntityStore
from couponhub.services.subscriber_registry import SubscriberRegistry
from couponhub.services.write_orchestrator import WriteOrchestrator


def get_orchestrator(request: Request) -> WriteOrchestrator:
    return request.app.state.orchestrator


def get_entity_store(request: Request) -> EntityStore:
    return request.app.state.entity_store


def get_cache(request: Request) -> CacheBackend:
    return request.app.state.cache


def get_registry(connection: HTTPConnection) -> SubscriberRegistry:
    """Typed on HTTPConnection so WebSocket endpoints can depend on it."""
    return connection.app.state.registry

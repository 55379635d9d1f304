"""Service factory — builds one tracksort application from settings.

Every collaborator (store, assigner, reconciler, broadcaster, translator,
gateway, tunnel) is constructed exactly once here and handed to the
objects that need it; nothing is kept at module level.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from fastapi import FastAPI

from tracksort.api.app import create_app
from tracksort.config.settings import TracksortSettings
from tracksort.infra.github_client import GitHubClient
from tracksort.infra.ngrok_client import NgrokClient
from tracksort.ordering.assigner import OrderAssigner
from tracksort.ordering.reconciler import Reconciler
from tracksort.services.broadcaster import EventBroadcaster
from tracksort.services.issue_service import IssueService, SourceGateway
from tracksort.services.webhook import WebhookTranslator
from tracksort.storage.position_store import PositionStore

logger = structlog.get_logger()


@dataclass
class Components:
    """Everything ``build_app`` wires together, exposed for tests and the CLI."""

    store: PositionStore
    broadcaster: EventBroadcaster
    service: IssueService
    gateway: SourceGateway


def build_components(
    settings: TracksortSettings,
    *,
    gateway: SourceGateway | None = None,
    store: PositionStore | None = None,
) -> Components:
    """Construct and connect the core objects.

    Loads the positions snapshot. A GitHubClient is created from the
    settings' token unless ``gateway`` is given.

    Raises:
        ConfigurationError: If no gateway is given and the token is missing.
        FormatError: If the snapshot on disk is corrupt.
        PersistenceError: If the snapshot exists but cannot be read.
    """
    if gateway is None:
        gateway = GitHubClient(
            token=settings.require_token(),
            base_url=settings.github_api_url,
            timeout=settings.request_timeout,
        )

    if store is None:
        store = PositionStore(persist_path=settings.positions_path)
        store.load()

    assigner = OrderAssigner()
    broadcaster = EventBroadcaster(queue_size=settings.subscriber_queue_size)
    service = IssueService(
        store=store,
        reconciler=Reconciler(store, assigner),
        gateway=gateway,
        broadcaster=broadcaster,
        translator=WebhookTranslator(store, assigner),
    )
    return Components(store=store, broadcaster=broadcaster, service=service, gateway=gateway)


def build_app(
    settings: TracksortSettings,
    *,
    gateway: SourceGateway | None = None,
    store: PositionStore | None = None,
) -> FastAPI:
    """Build the FastAPI application for ``settings``."""
    components = build_components(settings, gateway=gateway, store=store)

    tunnel = None
    if settings.tunnel:
        tunnel = NgrokClient(api_url=settings.ngrok_api_url, timeout=settings.request_timeout)

    closers = [components.gateway] if hasattr(components.gateway, "close") else []

    logger.info(
        "Application built",
        positions=len(components.store),
        positions_path=str(settings.positions_path),
        tunnel=settings.tunnel,
        static_dir=str(settings.static_dir) if settings.static_dir else None,
    )
    return create_app(
        components.service,
        public_port=settings.port,
        tunnel=tunnel,
        static_dir=settings.static_dir,
        on_shutdown=closers,
    )

"""Read-only access to the Appmixer apps catalog."""
from __future__ import annotations
import logging
from typing import List

from .client import AppmixerClient
from .exceptions import AppmixerAPIError, AppmixerTransportError, OperationError
from .models import App, Component

logger = logging.getLogger(__name__)


class CatalogService:
    """Service for listing apps and their component manifests."""

    def __init__(self, client: AppmixerClient):
        """Initialize catalog service.

        Args:
            client: Authenticated Appmixer client
        """
        self.client = client

    def list_apps(self) -> List[App]:
        """List available apps, sorted by name.

        GET /apps answers with a map keyed by app name (e.g., "appmixer.asana").
        """
        logger.debug("Reading Appmixer apps catalog")
        try:
            apps = self.client.get("/apps") or {}
        except (AppmixerAPIError, AppmixerTransportError) as exc:
            raise OperationError("app", "list", "", str(exc)) from exc

        return [
            App(
                name=name,
                label=details.get("label") or "",
                category=details.get("category") or "",
                description=details.get("description") or "",
                icon=details.get("icon") or "",
            )
            for name, details in sorted(apps.items())
        ]

    def list_components(self, app_id: str) -> List[Component]:
        """List component manifests of one app.

        Args:
            app_id: App identifier (e.g., "appmixer.dropbox")
        """
        logger.debug("Reading Appmixer app components app_id=%s", app_id)
        try:
            components = self.client.get("/apps/components", params={"app": app_id}) or []
        except (AppmixerAPIError, AppmixerTransportError) as exc:
            raise OperationError("app", "list components for", app_id, str(exc)) from exc
        return [Component.from_api(component) for component in components]

"""Core service for the dashboard audit log.

Thin wrappers over the ApiClient for listing, creating, deleting and
exporting log entries. Filter names follow the backend's query parameters.
"""

import logging
from typing import Any, Dict, Iterable, Mapping, Optional

from dashlink.core.services.api_client import ApiClient
from dashlink.domain.models.api import RequestOptions, ResponseEnvelope

logger = logging.getLogger(__name__)

DASHBOARD_LOGS_PATH = "/api/dashboard-logs"
DASHBOARD_LOGS_EXPORT_PATH = "/api/dashboard-logs/export"
EXPORT_FORMATS = ("csv", "json")


class DashboardLogService:
    """Audit log operations against the dashboard backend."""

    def __init__(self, api_client: ApiClient):
        self.api_client = api_client

    async def get_logs(
        self,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        user_id: Optional[str] = None,
        action_type: Optional[str] = None,
        guild_id: Optional[str] = None,
    ) -> ResponseEnvelope[Any]:
        """Lists log entries. Unset filters are not sent."""
        filters = {
            "page": page,
            "limit": limit,
            "user_id": user_id,
            "action_type": action_type,
            "guild_id": guild_id,
        }
        return await self.api_client.get(DASHBOARD_LOGS_PATH, filters)

    async def create_log(self, entry: Mapping[str, Any]) -> ResponseEnvelope[Any]:
        return await self.api_client.post(DASHBOARD_LOGS_PATH, dict(entry))

    async def delete_logs(self, ids: Iterable[Any]) -> ResponseEnvelope[Any]:
        """Bulk delete. Never shared with a concurrent identical call."""
        ids = list(ids)
        logger.info(f"Deleting {len(ids)} dashboard log entries")
        return await self.api_client.delete(
            DASHBOARD_LOGS_PATH,
            {"ids": ids},
            options=RequestOptions(skip_deduplication=True),
        )

    async def export_logs(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        format: str = "csv",
    ) -> ResponseEnvelope[Any]:
        """Downloads the log as CSV or JSON.

        Raises:
            ValueError: If the format is not csv or json.
        """
        if format not in EXPORT_FORMATS:
            raise ValueError(f"Unsupported export format: {format}. Use one of: {', '.join(EXPORT_FORMATS)}")
        params: Dict[str, Any] = dict(filters or {})
        params["format"] = format
        return await self.api_client.get(DASHBOARD_LOGS_EXPORT_PATH, params)

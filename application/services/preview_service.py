"""Preview resolver: one relay call per presigned GET URL."""
from __future__ import annotations

from application.dto import PreviewRequest, PreviewResult
from application.ports.storage import RelayPort
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException, InvalidRequest, PreviewFailed
from domain.upload import PreviewGrant

logger = get_logger(__name__)


class PreviewService:
    def __init__(self, relay: RelayPort):
        self._relay = relay

    async def grant(self, key: str) -> PreviewGrant:
        if not isinstance(key, str) or not key.strip():
            raise InvalidRequest("Object key is required", field="key")
        try:
            response = await self._relay.preview(PreviewRequest(key=key))
        except BusinessException as exc:
            logger.warning("preview_failed", key=key, error=str(exc))
            raise PreviewFailed(key, cause=exc) from exc
        return PreviewGrant(key=response.key or key, url=response.url, expires_at=response.expires_at)

    async def get(self, key: str) -> PreviewResult:
        grant = await self.grant(key)
        return PreviewResult(url=grant.url, expires_at=grant.expires_at)

"""Variant results client used after (re)processing to load the session's variants."""

import logging
from typing import Any, Dict, List, Optional

from ..pipeline_core.cancellation import CancellationToken
from ..pipeline_core.error_handling import ServiceError
from .client import ServiceClient

logger = logging.getLogger(__name__)


class VariantsClient(ServiceClient):
    service = "variants"

    async def load_all(
        self, session_id: str, token: Optional[CancellationToken] = None
    ) -> List[Dict[str, Any]]:
        payload = await self.fetch_results(session_id, "variants", token)
        if isinstance(payload, dict):
            payload = payload.get("variants")
        if not isinstance(payload, list):
            raise ServiceError(self.service, "Variant results payload must be a list")
        logger.info(f"Loaded {len(payload)} variants for session {session_id}")
        return payload

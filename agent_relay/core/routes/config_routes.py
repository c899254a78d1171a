"""Configuration API routes.

POST /config replaces the stored agent configuration, GET /config returns it.
The configuration is read when the agent stream session is created, so a
change only affects sessions started afterwards.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from agent_relay.core.config_store import ConfigStore
from agent_relay.core.message_converter import loads_strict

logger = logging.getLogger(__name__)


def create_config_router(config_store: ConfigStore) -> APIRouter:
    """
    Create the /config router bound to ``config_store``.

    Args:
        config_store: Store shared with the agent session factory
    """
    router = APIRouter(tags=["config"])

    @router.post("/config")
    async def set_config(request: Request):
        """Replace the stored configuration with the JSON object in the body"""
        body = await request.body()
        try:
            config = loads_strict(body)
        except ValueError as e:
            logger.warning(f"⚠️ [CONFIG] Rejected invalid JSON: {e}")
            return JSONResponse({"error": "Invalid JSON"}, status_code=400)

        if not isinstance(config, dict):
            logger.warning(
                f"⚠️ [CONFIG] Rejected non-object configuration: {type(config).__name__}"
            )
            return JSONResponse(
                {"error": "Configuration must be a JSON object"},
                status_code=400,
            )

        config_store.set(config)
        return JSONResponse({"success": True, "config": config_store.get()})

    @router.get("/config")
    async def get_config():
        """Return the stored configuration"""
        return JSONResponse({"config": config_store.get()})

    return router

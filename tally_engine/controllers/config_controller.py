"""
Config Controller
Handles configuration API endpoints
"""

from fastapi import APIRouter, HTTPException

from ..config import config, env_settings, save_config
from ..services.dispatcher import sessions
from ..utils.logger import logger

router = APIRouter()

EDITABLE_SECTIONS = ("tally", "report", "profiler", "export")


@router.get("")
async def get_config():
    """Get current configuration"""
    return config.model_dump()


@router.put("")
async def update_config(new_config: dict):
    """Update configuration"""
    try:
        for section in EDITABLE_SECTIONS:
            if section not in new_config:
                continue
            target = getattr(config, section)
            for key, value in new_config[section].items():
                if hasattr(target, key):
                    setattr(target, key, value)

        # Sessions hold services built from the old values
        if "tally" in new_config:
            sessions.clear()

        save_config(config, env_settings.config_path)

        logger.info("Configuration updated")
        return {"status": "success", "message": "Configuration updated"}
    except Exception as e:
        logger.error(f"Failed to update config: {e}")
        raise HTTPException(status_code=500, detail=str(e))

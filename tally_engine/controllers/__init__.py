# Controllers Package
# MVC Controller Layer

from .action_controller import router as action_router
from .config_controller import router as config_router
from .health_controller import router as health_router

__all__ = [
    "action_router",
    "config_router",
    "health_router"
]

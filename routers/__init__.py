from .assets_api import router as assets_api_router
from .fleet_api import router as fleet_api_router
from .handouts_api import router as handouts_api_router
from .repairs_api import router as repairs_api_router

ALL_ROUTERS = (
    assets_api_router,
    handouts_api_router,
    repairs_api_router,
    fleet_api_router,
)

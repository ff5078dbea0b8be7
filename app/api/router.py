from fastapi import APIRouter

from app.api.routes.auth import router as auth_router
from app.api.routes.health import router as health_router
from app.api.routes.reminders import router as reminders_router
from app.api.routes.standups import router as standups_router
from app.api.routes.stats import router as stats_router
from app.api.routes.summaries import router as summaries_router
from app.api.routes.teams import router as teams_router
from app.api.routes.users import router as users_router
from app.api.routes.weekly_summaries import router as weekly_summaries_router

api_router = APIRouter()
v1_router = APIRouter(prefix="/v1")

api_router.include_router(health_router)

_feature_routers = (
    auth_router,
    users_router,
    teams_router,
    standups_router,
    summaries_router,
    weekly_summaries_router,
    stats_router,
    reminders_router,
)

# Unversioned routes used by the current frontend.
for feature_router in _feature_routers:
    api_router.include_router(feature_router)

# Versioned routes for long-term API evolution.
for feature_router in _feature_routers:
    v1_router.include_router(feature_router)
api_router.include_router(v1_router)

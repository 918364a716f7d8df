import logging
from typing import Dict

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .cache import session_cache
from .config import Settings, get_settings
from .logging_config import configure_logging
from .plan_routes import router as plan_router


configure_logging()
logger = logging.getLogger(__name__)
app = FastAPI(title="Study Plan Backend", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(plan_router)

settings_snapshot = get_settings()
logger.info("Backend starting with persistence mode: %s", settings_snapshot.persistence_mode)
logger.info("Sticky replanning flag: %s", settings_snapshot.sticky_replanning)


@app.get("/healthz")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, object]:
    return {
        "status": "ok",
        "persistence": settings.persistence_mode,
        "plans": len(session_cache.plan_ids()),
    }

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from branch_helper.api.routes import router
from branch_helper.core.config import APP_VERSION, settings
from branch_helper.core.errors import register_exception_handlers
from branch_helper.services.repository_service import repository_service

logger = logging.getLogger(__name__)

# Browser extensions call the service from their own origin scheme.
_EXTENSION_ORIGIN_REGEX = r"^(chrome|moz)-extension://.*$"


@asynccontextmanager
async def _app_lifespan(app: FastAPI):
    _startup()
    yield
    logger.info("Branch helper shutting down")


def _startup() -> None:
    installation = repository_service.check_git_installation()
    logger.info(
        "Branch helper %s starting platform=%s windows=%s config=%s git=%s",
        APP_VERSION,
        settings.platform,
        settings.is_windows,
        settings.config_file,
        installation.version if installation.installed else "missing",
    )
    if not installation.installed:
        logger.warning("git is not available: %s", installation.message)


app = FastAPI(
    title="Branch Helper",
    version=APP_VERSION,
    lifespan=_app_lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=_EXTENSION_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)
register_exception_handlers(app)
app.include_router(router)

import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

load_dotenv(Path(__file__).resolve().parents[1] / ".env")

import messenger_crm.config.config as configs
from messenger_crm.api.v1.route import api_router as MainRouter
from messenger_crm.db import models  # noqa: F401
from messenger_crm.db.session import Base, engine
from messenger_crm.errors import ConfigurationError, ConversationNotFoundError, CrmError, MetaApiError
from messenger_crm.service.webhook.messenger import router as messenger_router

logging.basicConfig(
    level=configs.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="messenger_crm", version="0.1.0")
app.include_router(router=MainRouter, prefix="/api/v1")
app.include_router(messenger_router)


def _status_for(exc: CrmError) -> int:
    if isinstance(exc, ConfigurationError):
        return 400
    if isinstance(exc, ConversationNotFoundError):
        return 404
    if isinstance(exc, MetaApiError):
        return 502
    return 500


@app.exception_handler(CrmError)
async def crm_error_handler(request: Request, exc: CrmError) -> JSONResponse:
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.code)
    return JSONResponse(status_code=status_code, content={"error": exc.message, "code": exc.code})


@app.on_event("startup")
def create_tables() -> None:
    Base.metadata.create_all(bind=engine)

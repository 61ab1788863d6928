import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from simbank.core.config import settings
from simbank.core.logging import configure_logging
from simbank.api.routes.auth import router as auth_router
from simbank.api.routes.accounts import router as accounts_router
from simbank.api.routes.transactions import router as tx_router
from simbank.api.routes.chat import router as chat_router
from simbank.api.routes.audit import router as audit_router
from simbank.services.chat import get_chat_engine

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="SimBank")

origins = [o.strip() for o in (settings.cors_origins or "").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "internal_server_error"})

@app.get("/health")
@app.get("/api/health")
def health():
    return {"status": "ok"}

app.include_router(auth_router)
app.include_router(accounts_router)
app.include_router(tx_router)
app.include_router(chat_router)
app.include_router(audit_router)

@app.on_event("startup")
def _build_chat_engine():
    get_chat_engine()

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from simbank.schemas.chat import ChatIn, ChatOut, ChatError
from simbank.services.chat import ChatEngine, get_chat_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

FAILED = "Failed to fetch AI response"


@router.post(
    "/openai",
    response_model=ChatOut,
    responses={400: {"model": ChatError}, 500: {"model": ChatError}},
    openapi_extra={
        "requestBody": {"content": {"application/json": {"schema": ChatIn.model_json_schema()}}}
    },
)
async def chat(request: Request, engine: ChatEngine = Depends(get_chat_engine)):
    # the body is parsed by hand so malformed input still gets an {error} object
    try:
        raw = await request.body()
        body = ChatIn.model_validate_json(raw) if raw.strip() else ChatIn()
    except ValidationError:
        logger.exception("unreadable chat request body")
        return JSONResponse(status_code=500, content={"error": FAILED})

    prompt = body.prompt
    logger.info("prompt received: %r", prompt)

    if not prompt or not prompt.strip():
        return JSONResponse(status_code=400, content={"error": "Prompt is required"})

    try:
        answer = await run_in_threadpool(engine.chat, prompt)
    except Exception:
        logger.exception("chat engine failed")
        return JSONResponse(status_code=500, content={"error": FAILED})

    return {"result": answer}

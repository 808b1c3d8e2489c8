import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from legal_research.core import config
from legal_research.services import kanoon_client as kanoon_service
from legal_research.services.tools import (
    TOOLS,
    describe_tools,
    execute_tool,
    parse_arguments,
    text_envelope,
    validation_message,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/tools")
async def list_tools():
    return {"tools": describe_tools()}


@router.post("/tools/{name}")
async def call_tool(name: str, request: Request):
    """Invoke one tool with a JSON object of arguments.

    The body of every response is the tool envelope
    `{"content": [{"type": "text", "text": ...}], "isError": bool}`;
    the status code only distinguishes unknown tool (404), bad arguments
    (422) and an unconfigured service (503).
    """
    tool = TOOLS.get(name)
    if tool is None:
        known = ", ".join(TOOLS)
        return JSONResponse(text_envelope(f"Unknown tool '{name}'. Available tools: {known}", True), status_code=404)

    raw = await request.body()
    try:
        arguments = await request.json() if raw.strip() else {}
    except ValueError:
        return JSONResponse(text_envelope("Invalid parameters: request body is not valid JSON", True), status_code=422)
    if not isinstance(arguments, dict):
        return JSONResponse(text_envelope("Invalid parameters: expected a JSON object", True), status_code=422)

    try:
        params = parse_arguments(tool, arguments)
    except ValidationError as e:
        logger.info(f"[TOOLS] Rejected arguments for {name}: {e.error_count()} errors")
        return JSONResponse(text_envelope(validation_message(e), True), status_code=422)

    settings = config.SETTINGS
    client = kanoon_service.KANOON_CLIENT
    if settings is None or client is None:
        err = config.SETTINGS_ERROR
        text = err.user_message(tool.context) if err else "Service not initialized: IndianKanoon client is unavailable"
        return JSONResponse(text_envelope(text, True), status_code=503)

    logger.info(f"[TOOLS] Calling {name}")
    return await execute_tool(tool, params, client, settings)

import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, NamedTuple, Optional, Type

from pydantic import BaseModel, ValidationError

from legal_research.core.config import Settings
from legal_research.core.errors import KanoonError, describe_error
from legal_research.services.citation_lookup import (
    FormatCitationsParams,
    VerifyCitationsParams,
    format_citations,
    verify_citations,
)
from legal_research.services.compilation import CaseCompilationParams, build_case_compilation
from legal_research.services.kanoon_client import IndianKanoonClient
from legal_research.services.principles import ExtractPrinciplesParams, extract_legal_principles
from legal_research.services.search import SearchPrecedentsParams, search_legal_precedents

logger = logging.getLogger(__name__)

ToolHandler = Callable[[IndianKanoonClient, Settings, Any], Awaitable[Any]]


class Tool(NamedTuple):
    name: str
    description: str
    params_model: Type[BaseModel]
    handler: ToolHandler
    # Used in "Error in <context>" messages.
    context: str


TOOLS: Dict[str, Tool] = {
    t.name: t for t in (
        Tool(
            "search_legal_precedents",
            "Intelligently search IndianKanoon for relevant cases with smart ranking and filtering",
            SearchPrecedentsParams, search_legal_precedents, "legal precedent search",
        ),
        Tool(
            "extract_legal_principles",
            "Extract specific legal principles and relevant paragraphs from cases with pinpoint citations",
            ExtractPrinciplesParams, extract_legal_principles, "legal principle extraction",
        ),
        Tool(
            "build_case_compilation",
            "Automatically compile comprehensive legal research memos with organized cases and citations",
            CaseCompilationParams, build_case_compilation, "case compilation",
        ),
        Tool(
            "format_citations",
            "Generate properly formatted legal citations in various Indian citation styles",
            FormatCitationsParams, format_citations, "citation formatting",
        ),
        Tool(
            "verify_citations",
            "Validate citation accuracy and find missing information",
            VerifyCitationsParams, verify_citations, "citation verification",
        ),
    )
}


def text_envelope(text: str, is_error: bool = False) -> Dict[str, Any]:
    return {"content": [{"type": "text", "text": text}], "isError": is_error}


def result_envelope(result: Any) -> Dict[str, Any]:
    if isinstance(result, str):
        return text_envelope(result)
    return text_envelope(json.dumps(result, indent=2, ensure_ascii=False, default=str))


def describe_tools() -> List[Dict[str, Any]]:
    return [
        {
            "name": t.name,
            "description": t.description,
            "inputSchema": t.params_model.model_json_schema(by_alias=True),
        }
        for t in TOOLS.values()
    ]


def validation_message(error: ValidationError) -> str:
    lines = []
    for err in error.errors():
        field = ".".join(str(p) for p in err.get("loc", ())) or "body"
        lines.append(f"- {field}: {err.get('msg')}")
    return "Invalid parameters:\n" + "\n".join(lines)


def parse_arguments(tool: Tool, arguments: Optional[Dict[str, Any]]) -> BaseModel:
    """Validate raw tool arguments. Raises pydantic.ValidationError."""
    return tool.params_model.model_validate(arguments or {})


async def execute_tool(tool: Tool, params: BaseModel, client: IndianKanoonClient,
                       settings: Settings) -> Dict[str, Any]:
    """Run a tool and wrap whatever happens in the response envelope. Never raises."""
    try:
        result = await tool.handler(client, settings, params)
    except KanoonError as e:
        logger.error(f"[TOOLS] {tool.name} failed: {e}")
        return text_envelope(describe_error(e, tool.context), is_error=True)
    except Exception as e:
        logger.exception(f"[TOOLS] {tool.name} crashed: {e}")
        return text_envelope(describe_error(e, tool.context), is_error=True)
    logger.info(f"[TOOLS] {tool.name} completed")
    return result_envelope(result)

import json
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from cricstats.application.api.dependencies import AgentContainer, get_container
from cricstats.domain.errors import InputValidationError
from cricstats.domain.models.session_state import SessionSnapshot

router = APIRouter(tags=["agent"])

ASK_PATH = "/ask"
NDJSON = "application/x-ndjson"


class AskRequest(BaseModel):
    """Question submitted by a caller; the question is validated by the pipeline"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    question: Any = Field(None, description="Natural-language question")
    user_id: Optional[str] = Field(None, description="Owner of the conversation memory")
    session_id: Optional[str] = Field(None, description="Conversation thread identifier")


# Streams newline-delimited JSON snapshots, one per pipeline step
@router.post(ASK_PATH)
async def ask_question(
    request: AskRequest,
    container: Annotated[AgentContainer, Depends(get_container)]
):
    lines = container.streaming_handler.ndjson_lines(
        request.question,
        user_id=request.user_id,
        session_id=request.session_id,
    )
    return StreamingResponse(lines, media_type=NDJSON)


async def ask_validation_error_handler(request: Request, exc: RequestValidationError):
    """Unparseable ``/ask`` bodies get the same single error line as a blank question"""

    if request.url.path != ASK_PATH:
        return await request_validation_exception_handler(request, exc)

    errors = exc.errors()
    detail = errors[0].get("msg", "invalid value") if errors else "invalid value"
    error = InputValidationError(f"Invalid request: {detail}")
    snapshot = SessionSnapshot(error=error.message, error_type=error.error_type)

    async def single_line():
        yield json.dumps(snapshot.to_payload()) + "\n"

    return StreamingResponse(single_line(), media_type=NDJSON)

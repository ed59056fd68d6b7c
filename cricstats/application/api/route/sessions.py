from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from cricstats.application.api.dependencies import AgentContainer, get_container

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("/{user_id}")
async def list_sessions(
    user_id: str,
    container: Annotated[AgentContainer, Depends(get_container)]
):
    sessions = await container.memory.list_sessions(user_id)
    return {"user_id": user_id, "sessions": [session.model_dump(mode="json") for session in sessions]}


@router.get("/{user_id}/summary")
async def get_summary(
    user_id: str,
    container: Annotated[AgentContainer, Depends(get_container)]
):
    summary = await container.memory.get_summary(user_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="No summary for this user")
    return summary.model_dump(mode="json")


@router.get("/{user_id}/{session_id}/history")
async def get_history(
    user_id: str,
    session_id: str,
    container: Annotated[AgentContainer, Depends(get_container)]
):
    turns = await container.memory.session_history(user_id, session_id)
    return {
        "user_id": user_id,
        "session_id": session_id,
        "turns": [turn.model_dump(mode="json", exclude={"id"}) for turn in turns],
    }


@router.delete("/{user_id}/{session_id}")
async def delete_session(
    user_id: str,
    session_id: str,
    container: Annotated[AgentContainer, Depends(get_container)]
):
    deleted = await container.memory.delete_session(user_id, session_id)
    return {"user_id": user_id, "session_id": session_id, "deleted": deleted}

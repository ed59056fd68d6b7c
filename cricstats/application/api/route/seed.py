from typing import Annotated

from fastapi import APIRouter, Depends

from cricstats.application.api.dependencies import AgentContainer, get_container
from cricstats.infrastructure.persistence.seed import seed_collections

router = APIRouter(prefix="/seed", tags=["seed"])


@router.post("/run")
async def run_seed(container: Annotated[AgentContainer, Depends(get_container)]):
    results = await seed_collections(container.store, container.settings.seed_data_dir)
    # Field lists may have changed with the new data
    await container.catalog.invalidate()
    return {"results": results}

"""Main API router: aggregates all endpoint modules."""

from fastapi import APIRouter

from prompt_keeper.api.backups import router as backups_router
from prompt_keeper.api.bulk import router as bulk_router
from prompt_keeper.api.impact import router as impact_router
from prompt_keeper.api.prompts import router as prompts_router
from prompt_keeper.api.tags import router as tags_router
from prompt_keeper.api.teams import router as teams_router
from prompt_keeper.api.transfer import router as transfer_router
from prompt_keeper.api.usage import router as usage_router

api_router = APIRouter()

api_router.include_router(impact_router, prefix="/prompts", tags=["impact"])
api_router.include_router(bulk_router, prefix="/prompts", tags=["bulk"])
api_router.include_router(prompts_router, prefix="/prompts", tags=["prompts"])
api_router.include_router(backups_router, prefix="/backups", tags=["backups"])
api_router.include_router(usage_router, prefix="/usage", tags=["usage"])
api_router.include_router(tags_router, prefix="/tags", tags=["tags"])
api_router.include_router(teams_router, prefix="/teams", tags=["teams"])
api_router.include_router(transfer_router, prefix="/transfer", tags=["transfer"])

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from skillswap.core.config import get_settings
from skillswap.lifecycle.transitions import BidNotFound, InvalidTransition, MilestoneNotFound
from skillswap.realtime import server as realtime_server
from skillswap.routers import bids as bids_router
from skillswap.routers import messaging as messaging_router
from skillswap.routers import projects as projects_router
from skillswap.routers import reviews as reviews_router
from skillswap.routers import users as users_router

settings = get_settings()


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    logger.info("Starting %s (%s)", settings.app_name, settings.environment)
    yield
    await realtime_server.manager.close_all()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

app.include_router(projects_router.router, prefix=settings.api_prefix)
app.include_router(bids_router.router, prefix=settings.api_prefix)
app.include_router(reviews_router.router, prefix=settings.api_prefix)
app.include_router(users_router.router, prefix=settings.api_prefix)
app.include_router(messaging_router.router, prefix=settings.api_prefix)
app.include_router(realtime_server.router)


@app.exception_handler(InvalidTransition)
async def invalid_transition_handler(request: Request, exc: InvalidTransition):
    # current_status lets the caller tell a stale read from an invalid request.
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": exc.message, "current_status": exc.current_status, "subject": exc.subject},
    )


@app.exception_handler(BidNotFound)
async def bid_not_found_handler(request: Request, exc: BidNotFound):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Bid not found"})


@app.exception_handler(MilestoneNotFound)
async def milestone_not_found_handler(request: Request, exc: MilestoneNotFound):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Milestone not found"})


@app.get(f"{settings.api_prefix}/health")
async def health_check():
    return {"status": "ok", "service": settings.app_name}


def main():
    """Run the FastAPI application."""
    uvicorn.run(
        "skillswap.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

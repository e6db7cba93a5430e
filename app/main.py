from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger
from tortoise.contrib.fastapi import RegisterTortoise

from app import settings
from app.routers import booking, listing, profile, role

TORTOISE_MODULES = {"models": ["app.models"]}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting marketplace bookings service")
    async with RegisterTortoise(
        app,
        db_url=settings.db_url,
        modules=TORTOISE_MODULES,
        generate_schemas=True,
    ):
        yield
    logger.info("Marketplace bookings service stopped")


def create_app() -> FastAPI:
    app = FastAPI(title="Marketplace Bookings", lifespan=lifespan)
    app.include_router(profile.router)
    app.include_router(role.router)
    app.include_router(listing.router)
    app.include_router(booking.router)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.errors import ImageHostError, image_host_error_handler
from app.middleware import BodySizeLimitMiddleware
from app.routes.image_routes import router
from app.services.auth import BasicAuthGate
from app.services.image_store import ImageStore
from app.services.pages import PageRenderer
from config import Settings
from logger_config import setup_logger


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application around one Settings object."""
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Logging is configured at startup so importing this module has no side effects
        logger = setup_logger(settings.log_dir, settings.log_level)
        logger.info("Starting Image Host server...")
        logger.info(f"Upload directory: {settings.upload_dir}")
        logger.info(f"Base URL: {settings.base_url}")
        logger.info(f"Maximum upload size: {settings.max_upload_size / (1024*1024):.2f} MB")
        await app.state.image_store.initialize()
        yield

    app = FastAPI(title="Image Host", lifespan=lifespan)

    app.state.settings = settings
    app.state.image_store = ImageStore(settings.upload_dir, settings.temp_dir, settings.max_upload_size)
    app.state.auth_gate = BasicAuthGate(settings.admin_user, settings.admin_pass)
    app.state.pages = PageRenderer(settings.base_url)

    app.add_exception_handler(ImageHostError, image_host_error_handler)

    app.add_middleware(BodySizeLimitMiddleware, max_body_size=settings.max_upload_size)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    settings: Settings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port)

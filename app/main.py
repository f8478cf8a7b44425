import uvicorn
from fastapi import FastAPI

from app.api.routes.admin_keys import router as admin_keys_router
from app.api.routes.assistant import router as assistant_router
from app.api.routes.auth import router as auth_router
from app.api.routes.courses import router as courses_router
from app.api.routes.health import router as health_router
from app.api.routes.keys import router as keys_router
from app.api.routes.quizzes import router as quizzes_router
from app.api.routes.recommendations import router as recommendations_router
from app.api.routes.subscriptions import router as subscriptions_router
from app.core.config import get_settings
from app.core.logging import configure_logging


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    docs_enabled = settings.app_env != "prod"
    app = FastAPI(
        title="Entitlement & Progression API",
        version="0.1.0",
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(keys_router)
    app.include_router(admin_keys_router)
    app.include_router(subscriptions_router)
    app.include_router(courses_router)
    app.include_router(quizzes_router)
    app.include_router(assistant_router)
    app.include_router(recommendations_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()

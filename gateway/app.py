from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gateway.core.config import get_settings
from gateway.routers import accounts as accounts_router


def create_app() -> FastAPI:
    """Factory compatível com uvicorn/gunicorn."""
    settings = get_settings()
    app = FastAPI(title="Account Gateway API")

    allowed_cors = set()
    if settings.app_env != "prod":
        allowed_cors.update(
            {
                "http://localhost:5173",
                "http://127.0.0.1:5173",
                "http://localhost:8080",
            }
        )
    if allowed_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=sorted(allowed_cors),
            allow_credentials=True,
            allow_methods=["POST", "OPTIONS"],
            allow_headers=["*"],
        )

    app.include_router(accounts_router.router)

    @app.get("/health")
    def health():
        return {"ok": True, "backend": "table"}

    return app

"""FastAPI application entrypoint. No business logic; only wiring and middleware."""

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vulnradar.api.v1 import router as v1_router
from vulnradar.core.config import APP_VERSION, settings

app = FastAPI(
    title="VulnRadar API",
    version=APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

if settings.CORS_ALLOW_ORIGINS:
    allowed_origins = settings.CORS_ALLOW_ORIGINS
else:
    allowed_origins = ["*"] if settings.APP_ENV == "dev" else []

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(v1_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
def root() -> dict[str, str]:
    """Discovery payload; frontends read the API base URL from here instead of hard-coding it."""
    return {
        "message": "VulnRadar API",
        "api_base_url": f"{settings.PUBLIC_API_BASE_URL}{settings.API_V1_PREFIX}",
    }

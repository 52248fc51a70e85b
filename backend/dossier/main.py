from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import get_settings
from .core.logging import configure_logging
from .api.routes_research import router as research_router
from .api.routes_prompts import router as prompts_router

configure_logging()
settings = get_settings()

app = FastAPI(title="Dossier Company Research API")


def _split_origins(raw: str) -> list[str]:
    return [o.strip() for o in raw.split(",") if o.strip()]


# CORS:
# - In prod, FRONTEND_ORIGIN is required and we never fall back to "*".
# - In non-prod, "*" unless FRONTEND_ORIGIN narrows it and CORS_ALLOW_ALL_ORIGINS is off.
if settings.ENV.lower() == "prod":
    if not settings.FRONTEND_ORIGIN:
        raise RuntimeError(
            "FRONTEND_ORIGIN must be set in production; refusing to start with wide-open CORS."
        )
    origins = _split_origins(settings.FRONTEND_ORIGIN)
elif settings.FRONTEND_ORIGIN and not settings.CORS_ALLOW_ALL_ORIGINS:
    origins = _split_origins(settings.FRONTEND_ORIGIN)
else:
    origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    allow_credentials=False,
)

app.include_router(research_router, prefix=settings.API_PREFIX)
app.include_router(prompts_router, prefix=settings.API_PREFIX)


@app.get("/health")
def health():
    return {"status": "ok"}

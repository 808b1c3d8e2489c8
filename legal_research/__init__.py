import os
import logging
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load environment variables early (before importing local services)
load_dotenv()

# Local imports
from .core import config
from .core.middleware import RateLimitMiddleware
from .routers.health import router as health_router
from .routers.tools import router as tools_router
from .services.kanoon_client import init_kanoon_service, shutdown_kanoon_service

# Configure logging
_handlers = [logging.StreamHandler()]
_log_file = os.getenv("LOG_FILE", "").strip()
if _log_file:
    _handlers.append(logging.FileHandler(_log_file))

logging.basicConfig(
    level=logging.DEBUG if os.getenv("DEBUG", "").strip().lower() in ("1", "true", "yes", "on") else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=_handlers,
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Indian Legal Research", version="1.0.0")

# Rate limiting on tool calls
app.add_middleware(
    RateLimitMiddleware,
    max_requests=int(os.getenv("TOOLS_RATE_LIMIT", "60")),
    window=int(os.getenv("TOOLS_RATE_WINDOW", "60")),
)

# CORS configuration
origins_env = os.getenv("FRONTEND_ORIGINS", "http://localhost:3000").strip()
if origins_env == "*":
    cors_allow_origins = ["*"]
    cors_allow_credentials = False
else:
    cors_allow_origins = [o.strip() for o in origins_env.split(",") if o.strip()]
    cors_allow_credentials = True

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_allow_origins,
    allow_credentials=cors_allow_credentials,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    max_age=600,
)

# Routers
app.include_router(health_router, tags=["health"])  # /health
app.include_router(tools_router, tags=["tools"])    # /tools, /tools/{name}


# Startup / Shutdown
@app.on_event("startup")
async def on_startup():
    settings = config.init_settings()
    if settings is None:
        # Keep serving; tool calls answer with the configuration error.
        logger.error("[STARTUP] Invalid configuration, tools are disabled until it is fixed")
        return
    if settings.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    await init_kanoon_service(settings)


@app.on_event("shutdown")
async def on_shutdown():
    await shutdown_kanoon_service()

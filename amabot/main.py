from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import chat, health
from .config import settings
from .logging_config import setup_logging
from .services.runtime import create_runtime


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    runtime = await create_runtime(settings)
    app.state.bot_service = runtime.service
    app.state.health_providers = runtime.health_providers
    try:
        yield
    finally:
        await runtime.close()


# Create FastAPI app
app = FastAPI(
    title="AMA Wallet Bot API",
    description="Custodial AMA wallet agent with paid tool calling",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(chat.router, tags=["Chat"])


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "AMA Wallet Bot API",
        "version": "0.1.0",
        "description": "Custodial AMA wallet agent with paid tool calling",
        "docs": "/docs",
        "health": "/healthz"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "amabot.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower()
    )

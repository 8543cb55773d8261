"""
FastAPI Application Entry Point.
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import router
from .config import settings
from .services.session_controller import controller_registry


logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Unsubscribe every client from auth and close HTTP clients
    await controller_registry.close_all()


# Create FastAPI app
app = FastAPI(
    title="Smart Voyage",
    description="AI-powered travel planning with itineraries, surprise destinations and packing lists",
    version="1.0.0",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "auth_provider": settings.auth_provider,
        "functions_provider": settings.functions_provider
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "smart_voyage.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )

"""GrowWise Financial Chat - FastAPI Application Entry Point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.growwise.api.database import db_manager
from src.growwise.api.errors import register_exception_handlers
from src.growwise.api.routes import router
from src.growwise.api.waitlist import router as waitlist_router
from src.growwise.config import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Set up the database on startup and dispose of the engine on shutdown.
    Without DATABASE_URL an in-memory SQLite database is used.
    """
    db_manager.init(settings.database_url, echo=settings.database_echo)
    await db_manager.create_tables()
    yield
    await db_manager.close()


app = FastAPI(
    title="GrowWise Financial Chat",
    description="Personal-finance chat backend with actionable suggestions",
    version="0.1.0",
    lifespan=lifespan,
)

# Browser clients call the functions directly
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

register_exception_handlers(app)

# Include API routes
app.include_router(router)
app.include_router(waitlist_router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "service": "growwise-financial-chat"}


@app.get("/")
async def root():
    """Root endpoint with service information."""
    return {
        "service": "GrowWise Financial Chat",
        "version": "0.1.0",
        "description": "Financial chat with approve / deny / know-more suggestions",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )

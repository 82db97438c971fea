"""FastAPI application entry point for the patient read API."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from navigator.clients import close_clients
from navigator.config import settings
from navigator.logging_config import configure_logging
from navigator.routers.patients import router as patients_router
from navigator.routers.similarity import router as similarity_router

configure_logging(debug=settings.debug)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    close_clients()


app = FastAPI(
    title="Care Navigator",
    description="Patient records and similar-patient search for care navigators",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_credentials=True,
    allow_headers=["*"],
)

app.include_router(patients_router)
app.include_router(similarity_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}

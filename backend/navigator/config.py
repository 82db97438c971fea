"""Application configuration via environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env")

    debug: bool = False

    # Vector index / Qdrant
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str = ""
    qdrant_collection: str = "patients"
    vector_distance: str = "Cosine"

    # Embeddings
    # "openai" calls the REST endpoint directly; "vertex" uses google-genai (ADC),
    # or the Vertex predict endpoint when google_api_key is set.
    embedding_provider: Literal["openai", "vertex"] = "openai"
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    embedding_model: str = "text-embedding-ada-002"
    embedding_dimensions: int = 1536
    embedding_max_input_chars: int = 30000
    embedding_truncate: bool = False
    embedding_max_retries: int = 2
    gcp_project_id: str = ""
    gcp_location: str = "us-central1"
    google_api_key: str = ""

    # Seconds; applies to embedding and index calls alike
    request_timeout: float = 30.0

    # Ingestion
    fhir_dir: str = "fhir"
    document_extension: str = ".json"
    ingest_concurrency: int = 1

    # Read API
    blob_base_url: str = "https://storage.googleapis.com/general-medicine"
    cors_origins: list[str] = ["http://localhost:3000"]


settings = Settings()

"""
Configuration utilities.
"""

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel


class Config(BaseModel):
    """Base configuration class."""

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    @classmethod
    def from_file(cls, path: str | Path) -> "Config":
        """Load configuration from file (YAML or JSON)."""
        path = Path(path)

        if path.suffix in (".yaml", ".yml"):
            return cls.from_yaml(path)
        elif path.suffix == ".json":
            import json
            with open(path) as f:
                data = json.load(f)
            return cls(**data)
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")


class Settings(Config):
    """Configuration for the knowledge base service."""

    # Embedding / LLM provider
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    embedding_model: str = "text-embedding-3-small"
    embedding_dimension: int | None = None
    llm_model: str = "gpt-3.5-turbo"
    temperature: float = 0.7
    max_tokens: int = 2000

    # Vector store
    vector_store: Literal["qdrant", "chroma", "memory"] = "qdrant"
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str | None = None
    chroma_path: str | None = None
    collection_name: str = "knowledge-base"
    distance: str = "cosine"

    # Search
    search_limit: int = 10
    text_weight: float = 0.8
    concurrent_search: bool = False

    # Service
    port: int = 3000
    log_level: str = "INFO"


# Environment variable -> Settings field
ENV_VARS = {
    "OPENAI_API_KEY": "openai_api_key",
    "OPENAI_BASE_URL": "openai_base_url",
    "EMBEDDING_MODEL": "embedding_model",
    "EMBEDDING_DIMENSION": "embedding_dimension",
    "LLM_MODEL": "llm_model",
    "TEMPERATURE": "temperature",
    "MAX_TOKENS": "max_tokens",
    "VECTOR_STORE": "vector_store",
    "QDRANT_URL": "qdrant_url",
    "QDRANT_API_KEY": "qdrant_api_key",
    "CHROMA_PATH": "chroma_path",
    "COLLECTION_NAME": "collection_name",
    "DISTANCE": "distance",
    "SEARCH_LIMIT": "search_limit",
    "TEXT_WEIGHT": "text_weight",
    "CONCURRENT_SEARCH": "concurrent_search",
    "PORT": "port",
    "LOG_LEVEL": "log_level",
}


def env_overrides(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Collect settings overrides from environment variables."""
    environ = os.environ if environ is None else environ
    return {
        field: environ[name]
        for name, field in ENV_VARS.items()
        if environ.get(name)
    }


def load_config(
    path: str | Path = "kbchat.yaml",
    environ: dict[str, str] | None = None,
) -> Settings:
    """
    Load service settings.

    Values come from the config file when it exists, then environment
    variables (including a ``.env`` file) override them.

    Args:
        path: Path to config file
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Settings instance
    """
    if environ is None:
        load_dotenv()

    path = Path(path)
    data: dict[str, Any] = {}

    if path.exists():
        data = Settings.from_file(path).model_dump(exclude_unset=True)

    data.update(env_overrides(environ))
    return Settings(**data)

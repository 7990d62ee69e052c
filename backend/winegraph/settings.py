"""
Graph store connection settings.

Uses pydantic-settings for typed, validated, environment-variable-backed
settings. Override via NEO4J_URI, NEO4J_USER, NEO4J_PASSWORD, NEO4J_DATABASE.
"""

from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings


class GraphSettings(BaseSettings):
    """Neo4j connection settings backed by environment variables."""

    uri: str = "bolt://localhost:7687"
    user: str = "neo4j"
    password: SecretStr
    database: str = "neo4j"
    max_connection_pool_size: int = 50
    connection_timeout: float = 30.0

    model_config = {
        "env_prefix": "NEO4J_",
        "case_sensitive": False,
    }

    @property
    def auth(self) -> tuple[str, str]:
        return (self.user, self.password.get_secret_value())


@lru_cache()
def get_graph_settings() -> GraphSettings:
    """Cached singleton. Use FastAPI Depends() for injection."""
    return GraphSettings()

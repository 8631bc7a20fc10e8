from pydantic_settings import BaseSettings


class Settings(BaseSettings):

    llm_base_url: str | None = None
    llm_api_key: str = ""
    llm_model: str = "gpt-4o-mini"
    llm_max_tokens: int = 1000
    llm_temperature: float = 0.7

    embedding_backend: str = "openai"  # "openai" | "sentence-transformers"
    embedding_model: str = "text-embedding-3-small"
    embedding_query_prefix: str = ""

    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str = ""
    qdrant_collection: str = "documents"
    qdrant_timeout: float = 10.0

    opensearch_url: str = "http://localhost:9200"
    opensearch_username: str = "admin"
    opensearch_password: str = "admin"
    opensearch_index: str = "documents"
    opensearch_verify_tls: bool = False
    opensearch_timeout: float = 10.0

    rag_top_k: int = 5

    # Streaming protocol
    ws_chunk_size: int = 200
    ws_rate_limit_per_second: int = 5
    ws_turn_timeout_seconds: float = 120.0
    ws_max_pending_events: int = 64
    conversation_shards: int = 16

    # Vector queries / projection
    vector_query_default_limit: int = 50
    vector_query_max_limit: int = 512
    projection_default_limit: int = 200

    server_host: str = "0.0.0.0"
    server_port: int = 8080
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()

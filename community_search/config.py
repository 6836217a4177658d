"""Configuration management using Pydantic Settings."""
from typing import Optional
from urllib.parse import quote_plus
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings


class PipelineConfig(BaseModel):
    """
    Tunables of the query-understanding and retrieval pipeline.

    One frozen instance is built at startup and handed to every component,
    so thresholds and weights stay data rather than code.
    Override from the environment with PIPELINE__<FIELD>, e.g. PIPELINE__LLM_TIMEOUT_SECONDS=8.
    """
    model_config = ConfigDict(frozen=True)

    # Query understanding
    llm_fallback_threshold: float = 0.7
    low_confidence_threshold: float = 0.3
    llm_confidence_cap: float = 0.95
    llm_empty_entities_discount: float = 0.5
    intent_disagreement_penalty: float = 0.2
    llm_degradation_penalty: float = 0.0
    followup_confidence: float = 0.6

    # Intent classifier
    default_intent_confidence: float = 0.3
    ambiguous_intent_confidence: float = 0.6
    single_intent_base_confidence: float = 0.8
    single_intent_term_bonus: float = 0.05
    single_intent_confidence_cap: float = 0.95

    # Regex extractor slot weights
    year_weight: float = 0.3
    location_weight: float = 0.25
    degree_branch_weight: float = 0.25
    skill_service_weight: float = 0.2
    turnover_weight: float = 0.1
    name_weight: float = 0.3
    multi_slot_bonus: float = 0.15

    # LLM fallback
    llm_timeout_seconds: float = 5.0
    llm_temperature: float = 0.1
    llm_max_history_turns: int = 5
    llm_circuit_failure_threshold: int = 5
    llm_circuit_reset_seconds: float = 60.0

    # Retrieval
    semantic_weight: float = 0.7
    keyword_weight: float = 0.3
    search_deadline_seconds: float = 3.0
    candidate_pool_size: int = 100
    default_page_size: int = 10
    max_page_size: int = 50
    max_query_length: int = 500

    # Embeddings
    embedding_timeout_seconds: float = 10.0
    embedding_retries: int = 1
    embedding_cache_size: int = 1000
    embedding_cache_ttl_seconds: int = 300

    # Conversation sessions
    session_ttl_minutes: int = 30
    max_history_entries: int = 5
    session_sweep_interval_minutes: int = 10

    @property
    def session_ttl_ms(self) -> int:
        return self.session_ttl_minutes * 60 * 1000


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # MySQL Configuration (member directory)
    mysql_host: str = Field(..., alias="MYSQL_HOST")
    mysql_user: str = Field(..., alias="MYSQL_USER")
    mysql_password: str = Field(..., alias="MYSQL_PASSWORD")
    mysql_database: str = Field(..., alias="MYSQL_DATABASE")
    mysql_port: int = Field(3306, alias="MYSQL_PORT")

    # Embeddings (must match the vectors written by the backfill job)
    embedding_dimension: int = Field(768, alias="EMBEDDING_DIMENSION")

    # Pinecone Configuration
    pinecone_api_key: Optional[str] = Field(None, alias="PINECONE_API_KEY")
    pinecone_index_name: str = Field("community-members", alias="PINECONE_INDEX_NAME")
    pinecone_namespace: Optional[str] = Field(None, alias="PINECONE_NAMESPACE")

    # FAISS fallback (index built by the embedding backfill job)
    faiss_index_path: str = Field("faiss_members.index", alias="FAISS_INDEX_PATH")
    faiss_metadata_path: str = Field("faiss_members_metadata.pkl", alias="FAISS_METADATA_PATH")

    # OLLAMA Configuration
    ollama_host: str = Field("http://localhost:11434", alias="OLLAMA_HOST")
    ollama_api_key: Optional[str] = Field(None, alias="OLLAMA_API_KEY")
    llm_model: str = Field("llama3.1", alias="LLM_MODEL")
    # Optional second OLLAMA endpoint tried when the primary fails
    llm_fallback_host: Optional[str] = Field(None, alias="LLM_FALLBACK_HOST")
    llm_fallback_model: Optional[str] = Field(None, alias="LLM_FALLBACK_MODEL")
    llm_fallback_api_key: Optional[str] = Field(None, alias="LLM_FALLBACK_API_KEY")
    embedding_model: str = Field("nomic-embed-text", alias="EMBEDDING_MODEL")

    # Monitoring
    sentry_dsn: Optional[str] = Field(None, alias="SENTRY_DSN")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # SQL Logging (for debugging)
    sql_echo: bool = Field(False, alias="SQL_ECHO")  # Enable SQL query logging
    sql_log_level: str = Field("INFO", alias="SQL_LOG_LEVEL")  # SQL log level: DEBUG, INFO, WARNING

    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)

    @field_validator("mysql_host", "mysql_user", "mysql_database")
    @classmethod
    def validate_mysql_fields(cls, v: str) -> str:
        """Validate critical MySQL fields are not empty."""
        if not v or not v.strip():
            raise ValueError("MySQL configuration fields cannot be empty")
        return v.strip()

    @property
    def mysql_url(self) -> str:
        """Generate MySQL connection URL."""
        encoded_user = quote_plus(self.mysql_user)
        encoded_password = quote_plus(self.mysql_password) if self.mysql_password else ""

        if encoded_password:
            auth = f"{encoded_user}:{encoded_password}"
        else:
            auth = encoded_user

        return (
            f"mysql+aiomysql://{auth}"
            f"@{self.mysql_host}:{self.mysql_port}/{self.mysql_database}"
            "?charset=utf8mb4"
        )

    @property
    def use_pinecone(self) -> bool:
        """Check if Pinecone should be used."""
        return bool(self.pinecone_api_key and self.pinecone_api_key.strip())

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"
        env_nested_delimiter = "__"


# Global settings instance
settings = Settings()

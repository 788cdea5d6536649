from pydantic_settings import BaseSettings, NoDecode
from pydantic import Field, field_validator, ConfigDict
from functools import lru_cache
from typing import Annotated, Optional, Tuple
import os
import json
import boto3

from domain.policies import DedupPolicy, OrchestrationPolicy, ParsePolicy, TriggerPolicy
from shared_utils.constants import Defaults, LogScope, ModelIDs
from shared_utils.logging_utils import get_scoped_logger

logger = get_scoped_logger(LogScope.CONFIG)


def get_secret_from_aws(secret_name: str, region: str = Defaults.AWS_REGION) -> str:
    """Fetch the OpenAI key from AWS Secrets Manager.

    Args:
        secret_name: Name of the secret in Secrets Manager
        region: AWS region

    Returns:
        Secret value or empty string if fetch fails
    """
    try:
        client = boto3.client("secretsmanager", region_name=region)
        response = client.get_secret_value(SecretId=secret_name)
        if "SecretString" in response:
            secret = json.loads(response["SecretString"])
            return secret.get("openai_api_key", "")
        return ""
    except Exception as e:
        logger.warning("secret_fetch_failed", secret_name=secret_name, error=str(e))
        return ""


class Settings(BaseSettings):
    """Application configuration with environment variable precedence.

    Precedence: 1) Environment Variables > 2) .env file > 3) Class defaults
    """
    # Application metadata
    app_name: str = "Brainstorm Relay"
    app_version: str = "0.3.0"
    app_description: str = "Live meeting brainstorming suggestions"

    # API
    api_host: str = "localhost"
    api_port: int = 8000
    webhook_rate_limit: str = "60/minute"

    # LLM Configuration
    llm_provider: str = "openai"  # "openai" or "bedrock"
    openai_llm_model_id: str = ModelIDs.OPENAI_GPT_4
    openai_api_key: Optional[str] = None
    openai_secret_name: Optional[str] = None
    bedrock_region: str = Defaults.AWS_REGION
    bedrock_llm_model_id: str = ModelIDs.BEDROCK_CLAUDE_3_HAIKU
    llm_temperature: float = Field(default=Defaults.LLM_TEMPERATURE, ge=0.0, le=2.0)
    generation_timeout_seconds: float = Field(default=Defaults.GENERATION_TIMEOUT, gt=0)

    # Pipeline policies
    transcript_window_size: int = Field(default=Defaults.TRANSCRIPT_WINDOW, ge=1)
    min_trigger_length: int = Field(default=Defaults.MIN_TRIGGER_LENGTH, ge=0)
    trigger_phrases: Annotated[Tuple[str, ...], NoDecode] = Defaults.TRIGGER_PHRASES
    min_context_length: int = Field(default=Defaults.MIN_CONTEXT_LENGTH, ge=0)
    min_suggestion_length: int = Field(default=Defaults.MIN_SUGGESTION_LENGTH, ge=0)
    max_suggestions_per_trigger: int = Field(default=Defaults.MAX_SUGGESTIONS_PER_TRIGGER, ge=1)
    dedup_prefix_overlap: int = Field(default=Defaults.DEDUP_PREFIX_OVERLAP, ge=1)

    # Environment
    environment: str = "development"

    model_config = ConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @field_validator('llm_provider')
    @classmethod
    def validate_llm_provider(cls, v: str) -> str:
        """Validate LLM provider is supported."""
        valid_providers = {"openai", "bedrock"}
        if v.lower() not in valid_providers:
            raise ValueError(f"llm_provider must be one of {valid_providers}, got {v}")
        return v.lower()

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is recognized."""
        valid_envs = {"development", "staging", "production"}
        if v.lower() not in valid_envs:
            raise ValueError(f"environment must be one of {valid_envs}, got {v}")
        return v.lower()

    @field_validator('trigger_phrases', mode='before')
    @classmethod
    def split_trigger_phrases(cls, v):
        """Accept a comma-separated string as well as a list."""
        if isinstance(v, str):
            stripped = v.strip()
            if stripped.startswith("["):
                return tuple(json.loads(stripped))
            return tuple(p for p in (s.strip() for s in stripped.split(",")) if p)
        return v

    def trigger_policy(self) -> TriggerPolicy:
        return TriggerPolicy(phrases=self.trigger_phrases, min_length=self.min_trigger_length)

    def parse_policy(self) -> ParsePolicy:
        return ParsePolicy(min_suggestion_length=self.min_suggestion_length)

    def dedup_policy(self) -> DedupPolicy:
        return DedupPolicy(prefix_overlap=self.dedup_prefix_overlap)

    def orchestration_policy(self) -> OrchestrationPolicy:
        return OrchestrationPolicy(
            window_size=self.transcript_window_size,
            min_context_length=self.min_context_length,
            max_suggestions=self.max_suggestions_per_trigger,
            generation_timeout=self.generation_timeout_seconds,
        )


@lru_cache()
def get_settings() -> Settings:
    """Load and cache application settings.

    If the OpenAI provider is configured and OPENAI_SECRET_NAME is provided,
    fetches the API key from AWS Secrets Manager.

    Returns:
        Validated Settings instance

    Raises:
        ValueError: If settings are invalid
    """
    settings = Settings()

    needs_openai = settings.llm_provider == "openai" and not settings.openai_api_key

    if needs_openai and settings.openai_secret_name:
        secret_key = get_secret_from_aws(settings.openai_secret_name, settings.bedrock_region)
        if secret_key:
            settings.openai_api_key = secret_key
            os.environ["OPENAI_API_KEY"] = secret_key
            logger.debug("fetched_openai_key_from_secrets_manager")

    # Sensitive values are never logged
    logger.info(
        "configuration_loaded",
        environment=settings.environment,
        llm_provider=settings.llm_provider,
        window_size=settings.transcript_window_size,
        trigger_phrase_count=len(settings.trigger_phrases),
    )

    return settings

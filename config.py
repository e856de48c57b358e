"""
Configuration module for Bedrock Planner.
Handles environment variables, model specifications, and application settings.
"""

import logging
import os
from dataclasses import dataclass
from typing import List, Dict, Any, Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


@dataclass
class AWSConfig:
    """AWS-specific configuration"""
    region: str = os.getenv("AWS_REGION", "us-east-1")
    access_key_id: str = os.getenv("AWS_ACCESS_KEY_ID", "")
    secret_access_key: str = os.getenv("AWS_SECRET_ACCESS_KEY", "")
    session_token: str = os.getenv("AWS_SESSION_TOKEN", "")
    profile_name: str = os.getenv("AWS_PROFILE", "")

    def has_explicit_credentials(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)

    def has_session_token(self) -> bool:
        return bool(self.session_token)

    def has_profile(self) -> bool:
        return bool(self.profile_name)


@dataclass
class ModelConfig:
    """Model-specific configuration"""
    model_id: str = os.getenv("BEDROCK_MODEL_ID", "us.anthropic.claude-sonnet-4-5-20250929-v1:0")
    max_tokens: int = int(os.getenv("MAX_TOKENS", "8000"))
    # Question turns are exploratory; readiness checks should be close to deterministic
    temperature: float = float(os.getenv("TEMPERATURE", "0.5"))
    readiness_temperature: float = float(os.getenv("READINESS_TEMPERATURE", "0"))
    generation_temperature: float = float(os.getenv("GENERATION_TEMPERATURE", "0.7"))
    throughput_mode: str = os.getenv("THROUGHPUT_MODE", "cross-region")


@dataclass
class AppConfig:
    """Application-specific configuration"""
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    max_turns: int = int(os.getenv("MAX_TURNS", "10"))
    # Per-project state lives under <project>/<state_dir_name>/
    state_dir_name: str = os.getenv("PLANNER_STATE_DIR", ".bedrock-planner")
    pack_command: str = os.getenv("PACK_COMMAND", "repomix")
    pack_timeout: int = int(os.getenv("PACK_TIMEOUT", "300"))
    fingerprint_sample_limit: int = int(os.getenv("FINGERPRINT_SAMPLE_LIMIT", "100"))
    default_workflow: str = os.getenv("DEFAULT_WORKFLOW", "adr")


# ============================================================
# Model Specifications -- Anthropic Claude on Bedrock
# Planning needs tool_use, so only Claude models are listed.
# ============================================================
AVAILABLE_MODELS: List[Dict[str, Any]] = [
    {
        "id": "us.anthropic.claude-sonnet-4-5-20250929-v1:0",
        "base_id": "anthropic.claude-sonnet-4-5-20250929-v1:0",
        "name": "Claude Sonnet 4.5",
        "context_window": 200000,
        "max_output_tokens": 64000,
        "requires_profile": True,
        "supports_caching": True,
        "cache_ttl_options": ["5m", "1h"],
    },
    {
        "id": "us.anthropic.claude-haiku-4-5-20251001-v1:0",
        "base_id": "anthropic.claude-haiku-4-5-20251001-v1:0",
        "name": "Claude Haiku 4.5",
        "context_window": 200000,
        "max_output_tokens": 64000,
        "requires_profile": True,
        "supports_caching": True,
        "cache_ttl_options": ["5m", "1h"],
    },
    {
        "id": "us.anthropic.claude-sonnet-4-20250514-v1:0",
        "base_id": "anthropic.claude-sonnet-4-20250514-v1:0",
        "name": "Claude Sonnet 4",
        "context_window": 200000,
        "max_output_tokens": 64000,
        "requires_profile": True,
        "supports_caching": True,
        "cache_ttl_options": ["5m"],
    },
    {
        "id": "anthropic.claude-3-5-sonnet-20241022-v2:0",
        "base_id": "anthropic.claude-3-5-sonnet-20241022-v2:0",
        "name": "Claude 3.5 Sonnet v2",
        "context_window": 200000,
        "max_output_tokens": 8192,
        "requires_profile": False,
        "supports_caching": True,
        "cache_ttl_options": ["5m"],
    },
]


# Create global config instances
aws_config = AWSConfig()
model_config = ModelConfig()
app_config = AppConfig()


def get_model_by_id(model_id: str) -> Optional[Dict[str, Any]]:
    """Get model configuration by ID"""
    for model in AVAILABLE_MODELS:
        if model["id"] == model_id or model.get("base_id") == model_id:
            return model
    return None


def get_model_config(model_id: str) -> Dict[str, Any]:
    """Get the full configuration for a model. Unknown IDs get a minimal fallback dict."""
    model = get_model_by_id(model_id)
    if model:
        return model
    return {
        "id": model_id,
        "base_id": model_id,
        "name": model_id,
        "context_window": 200000,
        "max_output_tokens": 8192,
        "requires_profile": False,
        "supports_caching": False,
        "cache_ttl_options": ["5m"],
    }


def get_model_name(model_id: str) -> str:
    return get_model_config(model_id).get("name", model_id)


def get_max_output_tokens(model_id: str) -> int:
    return get_model_config(model_id).get("max_output_tokens", 4096)


def requires_inference_profile(model_id: str) -> bool:
    return get_model_config(model_id).get("requires_profile", False)


def supports_caching(model_id: str) -> bool:
    """Check if model supports prompt caching"""
    return get_model_config(model_id).get("supports_caching", False)


def get_cache_ttl_options(model_id: str) -> List[str]:
    return get_model_config(model_id).get("cache_ttl_options", ["5m"])


def get_credentials_info() -> str:
    if aws_config.has_profile():
        return f"Using AWS profile: {aws_config.profile_name}"
    elif aws_config.has_explicit_credentials():
        if aws_config.has_session_token():
            return "Using temporary credentials (with session token)"
        return "Using explicit credentials"
    return "Using default AWS credential chain"


def configure_logging(filename: Optional[str] = None) -> None:
    """Configure root logging. Pass a filename to keep logs out of an interactive terminal."""
    kwargs: Dict[str, Any] = {
        "level": getattr(logging, app_config.log_level.upper(), logging.INFO),
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    }
    if filename:
        kwargs["filename"] = filename
    logging.basicConfig(**kwargs)

"""
Amazon Bedrock service module.
Handles all interactions with the Bedrock runtime API for planning turns.
"""

import boto3
import json
import logging
from typing import List, Dict, Optional, Any
from botocore.exceptions import ClientError, NoCredentialsError
from dataclasses import dataclass, field
from config import (
    aws_config,
    model_config,
    get_model_config,
    get_model_name,
    get_credentials_info,
    get_max_output_tokens,
    requires_inference_profile,
    supports_caching,
    get_cache_ttl_options,
)


logger = logging.getLogger(__name__)


class BedrockError(Exception):
    """Custom exception for Bedrock service errors"""
    pass


@dataclass
class GenerationConfig:
    """Configuration for a single generation request"""
    max_tokens: int = 8000
    temperature: Optional[float] = None
    stop_sequences: Optional[List[str]] = None
    throughput_mode: str = "cross-region"


@dataclass
class ToolUseBlock:
    """Represents a tool_use block from the response"""
    id: str = ""
    name: str = ""
    input: Dict = field(default_factory=dict)


@dataclass
class GenerationResult:
    """Result from a generation request"""
    content: str = ""
    tool_uses: List[ToolUseBlock] = field(default_factory=list)
    stop_reason: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0


class BedrockService:
    """
    Service class for Amazon Bedrock interactions.
    """

    def __init__(
        self,
        model_id: Optional[str] = None,
        region: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        self.model_id = model_id or model_config.model_id
        self.region = region or aws_config.region

        self.client = client or self._create_client()
        logger.info(f"BedrockService initialized with model: {get_model_name(self.model_id)}")

    def _create_client(self) -> Any:
        """Create and configure the Bedrock runtime client"""
        try:
            session_kwargs = {"region_name": self.region}

            if aws_config.has_profile():
                session_kwargs["profile_name"] = aws_config.profile_name
            elif aws_config.has_explicit_credentials():
                session_kwargs["aws_access_key_id"] = aws_config.access_key_id
                session_kwargs["aws_secret_access_key"] = aws_config.secret_access_key
                if aws_config.has_session_token():
                    session_kwargs["aws_session_token"] = aws_config.session_token

            logger.info(get_credentials_info())
            session = boto3.Session(**session_kwargs)
            return session.client("bedrock-runtime")

        except NoCredentialsError:
            raise BedrockError("AWS credentials not configured.")
        except Exception as e:
            raise BedrockError(f"Failed to initialize Bedrock client: {e}")

    def _get_model_identifier(self, model_id: str, config: GenerationConfig) -> str:
        """Get the appropriate model identifier based on throughput mode"""
        if config.throughput_mode == "cross-region":
            if model_id.startswith(("us.", "eu.", "ap.")):
                return model_id
            elif requires_inference_profile(model_id):
                region_prefix = "us" if self.region.startswith("us-") else "eu" if self.region.startswith("eu-") else "us"
                return f"{region_prefix}.{model_id}"

        model_config_data = get_model_config(model_id)
        return model_config_data.get("base_id", model_id)

    def _cache_control(self, model_id: str) -> Dict[str, Any]:
        ctrl: Dict[str, Any] = {"type": "ephemeral"}
        if "1h" in get_cache_ttl_options(model_id):
            ctrl["ttl"] = "1h"
        return ctrl

    def _format_request_body(
        self,
        messages: List[Dict],
        system_prompt: Optional[str],
        model_id: str,
        config: GenerationConfig,
        tools: Optional[List[Dict]] = None
    ) -> Dict[str, Any]:
        """Format request body for Anthropic Claude models with tool_use and prompt caching"""
        use_cache = supports_caching(model_id)

        formatted_messages = []
        for msg in messages:
            if msg["role"] == "system":
                continue
            content = msg.get("content")
            if isinstance(content, str) and not content.strip():
                # API requires non-empty content for every message
                content = "(no content)"
            formatted_messages.append({"role": msg["role"], "content": content})

        max_output = get_max_output_tokens(model_id)
        body: Dict[str, Any] = {
            "anthropic_version": "bedrock-2023-05-31",
            "max_tokens": min(config.max_tokens, max_output),
            "messages": formatted_messages,
            "temperature": config.temperature if config.temperature is not None else 1.0,
        }

        if config.stop_sequences:
            body["stop_sequences"] = config.stop_sequences

        # The system prompt is identical on every planning turn, so it is the
        # cheapest thing to cache.
        if system_prompt:
            if use_cache:
                body["system"] = [{
                    "type": "text",
                    "text": system_prompt,
                    "cache_control": self._cache_control(model_id),
                }]
            else:
                body["system"] = system_prompt

        if tools:
            if use_cache:
                cached_tools = [dict(t) for t in tools]
                cached_tools[-1] = {**cached_tools[-1], "cache_control": self._cache_control(model_id)}
                body["tools"] = cached_tools
            else:
                body["tools"] = tools

        logger.debug(f"Request body keys: {list(body.keys())}, caching: {use_cache}")
        return body

    def _parse_response(self, response_body: Dict) -> GenerationResult:
        """Parse the Anthropic response body, extracting text and tool_use blocks"""
        result = GenerationResult()

        try:
            for block in response_body.get("content", []):
                block_type = block.get("type", "")
                if block_type == "text":
                    result.content += block.get("text", "")
                elif block_type == "tool_use":
                    result.tool_uses.append(ToolUseBlock(
                        id=block.get("id", ""),
                        name=block.get("name", ""),
                        input=block.get("input", {}) or {},
                    ))

            usage = response_body.get("usage", {})
            result.input_tokens = usage.get("input_tokens", 0)
            result.output_tokens = usage.get("output_tokens", 0)
            result.stop_reason = response_body.get("stop_reason")

        except (KeyError, IndexError, AttributeError) as e:
            logger.error(f"Error parsing response: {e}")
            raise BedrockError(f"Failed to parse model response: {e}")

        return result

    def generate_response(
        self,
        messages: List[Dict],
        system_prompt: Optional[str] = None,
        model_id: Optional[str] = None,
        config: Optional[GenerationConfig] = None,
        tools: Optional[List[Dict]] = None
    ) -> GenerationResult:
        """
        Generate a response using Amazon Bedrock.
        Returns a GenerationResult with content and optional tool_use blocks.
        """
        current_model = model_id or self.model_id
        gen_config = config or GenerationConfig()

        try:
            model_identifier = self._get_model_identifier(current_model, gen_config)
            request_body = self._format_request_body(
                messages, system_prompt, current_model, gen_config, tools=tools
            )

            logger.info(f"Invoking model: {model_identifier}")

            response = self.client.invoke_model(
                modelId=model_identifier,
                body=json.dumps(request_body),
                contentType="application/json",
                accept="application/json"
            )

            response_body = json.loads(response["body"].read())
            result = self._parse_response(response_body)
            logger.debug(
                f"Model returned {len(result.content)} chars, {len(result.tool_uses)} tool calls, "
                f"stop_reason={result.stop_reason}"
            )
            return result

        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            error_message = e.response.get('Error', {}).get('Message', str(e))
            logger.error(f"Bedrock API error: {error_code} - {error_message}")

            if error_code in ['ExpiredTokenException', 'InvalidSignatureException']:
                raise BedrockError("AWS credentials expired. Please refresh.")

            raise BedrockError(f"Bedrock API error: {error_message}")

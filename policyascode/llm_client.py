"""
LLM Client Module

Sends a system prompt, user content and a JSON schema to the Anthropic
Messages API and returns the schema-conforming tool input:
- The schema is offered as a single forced tool (``provide_output``)
- The tool input is validated against a pydantic response model
- Any failure surfaces as ``ApiError``; nothing is retried
"""

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

import requests
from pydantic import BaseModel, ValidationError

from policyascode.config import Settings
from policyascode.document_loader import DocumentContent
from policyascode.exceptions import ApiError
from policyascode.utils import timeit

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)

ContentPart = Union[str, DocumentContent, Dict[str, Any]]


class LLMClient:
    """Issues structured-output requests to the Messages API."""

    TOOL_NAME = "provide_output"
    MESSAGES_PATH = "/v1/messages"

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        """
        Initialize the client.

        Args:
            settings: Resolved configuration (API key, endpoint, model, limits)
            session: Optional pre-built HTTP session

        Raises:
            ConfigError: If no API key is configured
        """
        self.settings = settings
        self.api_key = settings.require_api_key()
        self.model = settings.model
        self.endpoint = f"{settings.base_url}{self.MESSAGES_PATH}"
        self.timeout = settings.llm_timeout
        self.max_tokens = settings.llm_max_tokens
        self.temperature = settings.llm_temperature

        self.session = session or requests.Session()
        self.session.headers.update({
            "x-api-key": self.api_key,
            "anthropic-version": settings.api_version,
            "content-type": "application/json",
        })

    @timeit
    def request_structured(
        self,
        system_prompt: str,
        content: Union[ContentPart, List[ContentPart]],
        schema: Dict[str, Any],
        response_model: Type[ResponseT],
    ) -> ResponseT:
        """
        Ask the model for a response conforming to ``schema``.

        Args:
            system_prompt: System instructions
            content: User content (text, loaded documents or raw content blocks)
            schema: JSON schema of the required response
            response_model: Pydantic model mirroring ``schema``

        Returns:
            The validated response

        Raises:
            ApiError: On transport errors, non-2xx status, or a response that
                does not match the schema
        """
        payload = self._build_payload(system_prompt, content, schema)
        logger.debug(f"POST {self.endpoint} (model={self.model})")

        try:
            response = self.session.post(self.endpoint, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise ApiError(f"Request to {self.endpoint} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise ApiError(self._error_message(response), status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise ApiError(f"Response is not valid JSON: {e}", status_code=response.status_code) from e

        tool_input = self._extract_tool_input(data)

        try:
            return response_model.model_validate(tool_input)
        except ValidationError as e:
            raise ApiError(f"Response does not match the {response_model.__name__} schema: {e}") from e

    def _build_payload(
        self,
        system_prompt: str,
        content: Union[ContentPart, List[ContentPart]],
        schema: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Build the Messages API request body."""
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "system": system_prompt,
            "messages": [
                {"role": "user", "content": self._content_blocks(content)},
            ],
            "tools": [
                {
                    "name": self.TOOL_NAME,
                    "description": "Provide structured output",
                    "input_schema": schema,
                },
            ],
            "tool_choice": {"type": "tool", "name": self.TOOL_NAME},
        }

    @staticmethod
    def _content_blocks(content: Union[ContentPart, List[ContentPart]]) -> List[Dict[str, Any]]:
        """Normalize user content to a list of content blocks."""
        parts = content if isinstance(content, list) else [content]
        blocks = []
        for part in parts:
            if isinstance(part, DocumentContent):
                blocks.append(part.to_content_block())
            elif isinstance(part, str):
                blocks.append({"type": "text", "text": part})
            elif isinstance(part, dict):
                blocks.append(part)
            else:
                raise TypeError(f"Unsupported content part: {type(part).__name__}")
        return blocks

    def _extract_tool_input(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Pull the forced tool call's input out of a Messages API response."""
        if not isinstance(data, dict):
            raise ApiError("Unexpected response body")

        if data.get("type") == "error":
            error = data.get("error")
            if isinstance(error, dict):
                raise ApiError(error.get("message") or "Unknown provider error")
            raise ApiError(str(error or "Unknown provider error"))

        if data.get("stop_reason") == "max_tokens":
            raise ApiError(
                f"Response truncated at max_tokens={self.max_tokens}; "
                "the structured output is incomplete"
            )

        content = data.get("content")
        if not isinstance(content, list):
            content = []

        for block in content:
            if not isinstance(block, dict):
                continue
            if block.get("type") == "tool_use" and block.get("name") == self.TOOL_NAME:
                tool_input = block.get("input")
                if not isinstance(tool_input, dict):
                    raise ApiError("Tool call carried no input object")
                return tool_input

        raise ApiError("Response did not contain a structured tool call")

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        """Best-effort provider error message for a failed request."""
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return error["message"]
        text = (response.text or "").strip()
        return text[:500] or f"HTTP {response.status_code}"

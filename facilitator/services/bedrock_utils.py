from __future__ import annotations

import json
from typing import Any

import boto3

from facilitator.config import Settings, get_settings

ANTHROPIC_VERSION = "bedrock-2023-05-31"
# Anthropic models on Bedrock that only accept the messages API.
_MESSAGES_MODELS = ("claude-3", "claude-sonnet", "claude-haiku")


def bedrock_runtime_client(settings: Settings | None = None):
    """Build a bedrock-runtime client on its own boto3 session.

    Create it on one thread and hand it to worker threads; a shared
    ``boto3.Session`` must not be used to create clients concurrently.
    """
    settings = settings or get_settings()
    credentials = {}
    if settings.aws_access_key_id and settings.aws_secret_access_key:
        credentials = {
            "aws_access_key_id": settings.aws_access_key_id,
            "aws_secret_access_key": settings.aws_secret_access_key,
        }
    session = boto3.session.Session(region_name=settings.aws_region, **credentials)
    return session.client("bedrock-runtime")


def build_request(
    model_id: str,
    prompt: str,
    system: str = "",
    max_tokens: int = 200,
    temperature: float = 0.7,
) -> dict[str, Any]:
    """Keyword arguments for ``invoke_model``."""
    if any(marker in model_id.lower() for marker in _MESSAGES_MODELS):
        body: dict[str, Any] = {
            "anthropic_version": ANTHROPIC_VERSION,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": [{"type": "text", "text": prompt}]}],
        }
        if system:
            body["system"] = system
    else:
        # Titan-style text models take a single prompt string.
        body = {
            "prompt": "\n\n".join(part for part in (system, prompt) if part),
            "maxTokens": max_tokens,
            "temperature": temperature,
        }
    return {
        "modelId": model_id,
        "contentType": "application/json",
        "accept": "application/json",
        "body": json.dumps(body),
    }


def read_response_text(response: dict[str, Any]) -> str:
    body = response.get("body")
    raw = body.read() if hasattr(body, "read") else body
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if not raw:
        return ""
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return str(raw).strip()
    if not isinstance(payload, dict):
        return str(raw).strip()

    blocks = payload.get("content")
    if isinstance(blocks, list):
        texts = [block.get("text") for block in blocks if isinstance(block, dict)]
        return "\n".join(text.strip() for text in texts if isinstance(text, str) and text.strip())

    results = payload.get("results")
    if isinstance(results, list) and results and isinstance(results[0], dict):
        payload = results[0]
    for key in ("completion", "outputText", "generation", "response"):
        if isinstance(payload.get(key), str):
            return payload[key].strip()
    return ""


def complete_text(
    client: Any,
    prompt: str,
    *,
    model_id: str,
    system: str = "",
    max_tokens: int = 200,
    temperature: float = 0.7,
) -> str:
    """Blocking; run it off the event loop."""
    request = build_request(model_id, prompt, system=system, max_tokens=max_tokens, temperature=temperature)
    return read_response_text(client.invoke_model(**request))

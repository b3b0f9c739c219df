"""
Process configuration for the mention webhook agent.

Everything is read once at startup from the environment (a local .env file is
honoured through python-dotenv) and frozen; request handlers only ever read it.
"""

import json
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional
from uuid import UUID

from dotenv import load_dotenv

from mention_agent.errors import ConfigError

DEFAULT_API_URL = "https://api.common.xyz/api/v1"
DEFAULT_WEBHOOK_PORT = 3001
DEFAULT_SIGNATURE_HEADER = "x-signature"


@dataclass(frozen=True)
class Settings:
    api_key: str
    wallet_address: str
    api_url: str = DEFAULT_API_URL
    webhook_host: str = "0.0.0.0"
    webhook_port: int = DEFAULT_WEBHOOK_PORT
    # community id -> shared secret; empty means signature checks are skipped
    signing_keys: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    signature_header: str = DEFAULT_SIGNATURE_HEADER
    ollama_base: str = "http://127.0.0.1:11434"
    ollama_model: str = "qwen2.5:7b-instruct"
    ollama_small_model: str = "qwen2.5:3b-instruct"
    agent_name: Optional[str] = None
    agent_id: Optional[str] = None
    request_timeout: float = 30.0
    log_level: str = "INFO"


def _parse_signing_keys(raw: str, problems: list) -> Mapping[str, str]:
    if not raw.strip():
        return MappingProxyType({})
    try:
        data = json.loads(raw)
    except ValueError:
        problems.append("COMMON_WEBHOOK_SIGNING_KEYS: must be a JSON object of community_id -> key")
        return MappingProxyType({})
    if not isinstance(data, dict) or not all(isinstance(v, str) and v for v in data.values()):
        problems.append("COMMON_WEBHOOK_SIGNING_KEYS: must map community ids to non-empty strings")
        return MappingProxyType({})
    return MappingProxyType({str(k): v for k, v in data.items()})


def _env_number(env, name, default, cast, problems):
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        problems.append(f"{name}: expected a number, got {raw!r}")
        return default


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from `env` (defaults to os.environ after loading .env).

    Raises ConfigError listing every invalid or missing value, one per line.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    problems = []
    api_key = (env.get("COMMON_API_KEY") or "").strip()
    if not api_key:
        problems.append("COMMON_API_KEY: Common API key is required")
    wallet = (env.get("COMMON_WALLET_ADDRESS") or "").strip()
    if not wallet:
        problems.append("COMMON_WALLET_ADDRESS: Common wallet address is required")

    signing_keys = _parse_signing_keys(env.get("COMMON_WEBHOOK_SIGNING_KEYS") or "", problems)
    port = _env_number(env, "COMMON_WEBHOOK_PORT", DEFAULT_WEBHOOK_PORT, int, problems)
    timeout = _env_number(env, "REQUEST_TIMEOUT", 30.0, float, problems)
    agent_id = (env.get("AGENT_ID") or "").strip() or None
    if agent_id is not None:
        try:
            agent_id = str(UUID(agent_id))
        except ValueError:
            problems.append(f"AGENT_ID: expected a UUID, got {agent_id!r}")

    if problems:
        raise ConfigError("Common configuration validation failed:\n" + "\n".join(problems))

    return Settings(
        api_key=api_key,
        wallet_address=wallet,
        api_url=(env.get("COMMON_API_URL") or DEFAULT_API_URL).rstrip("/"),
        webhook_host=env.get("COMMON_WEBHOOK_HOST") or "0.0.0.0",
        webhook_port=port,
        signing_keys=signing_keys,
        signature_header=(env.get("COMMON_SIGNATURE_HEADER") or DEFAULT_SIGNATURE_HEADER).lower(),
        ollama_base=(env.get("OLLAMA_BASE") or "http://127.0.0.1:11434").rstrip("/"),
        ollama_model=env.get("OLLAMA_MODEL") or "qwen2.5:7b-instruct",
        ollama_small_model=env.get("OLLAMA_SMALL_MODEL") or env.get("OLLAMA_MODEL") or "qwen2.5:3b-instruct",
        agent_name=env.get("AGENT_NAME") or None,
        agent_id=agent_id,
        request_timeout=timeout,
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )

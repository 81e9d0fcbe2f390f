from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping

import httpx

from chat_actions.chat_model import ProviderChatModel, ProviderEmbeddings

MODEL_ADDED = "model-added"
MODEL_REMOVED = "model-removed"

ModelListener = Callable[[str, str], None]


@dataclass(frozen=True)
class ProviderModel:
    provider_id: str
    model_id: str
    label: str
    model_type: str = "llm"
    max_context_tokens: int = 8192
    max_tokens: int | None = None
    vision: bool = False

    @property
    def full_id(self) -> str:
        return f"{self.provider_id}:{self.model_id}"

    @property
    def label_full(self) -> str:
        return f"{self.provider_id} / {self.label}"


@dataclass(frozen=True)
class ProviderConfig:
    provider_id: str
    label: str
    base_url: str
    tls_ca_cert_path: str | None
    auth_mode: str
    api_key: str | None
    endpoints: dict[str, str]
    models: list[ProviderModel] = field(default_factory=list)


DEFAULT_ENDPOINTS = {
    "chat": "/chat/completions",
    "embeddings": "/embeddings",
}


def _parse_model(provider_id: str, raw: Any, path: Path, logger: logging.Logger) -> ProviderModel | None:
    if not isinstance(raw, dict):
        logger.error("Provider %s has malformed model entry in %s", provider_id, path)
        return None
    model_id = str(raw.get("id", "")).strip()
    if not model_id:
        logger.error("Provider %s has model without id in %s", provider_id, path)
        return None
    model_type = str(raw.get("type", "llm")).strip().lower()
    if model_type not in {"llm", "embeddings"}:
        logger.warning("Provider %s model %s has invalid type %r, using llm", provider_id, model_id, model_type)
        model_type = "llm"
    max_tokens = raw.get("max_tokens")
    if max_tokens is not None:
        try:
            max_tokens = int(max_tokens)
        except (TypeError, ValueError):
            max_tokens = None
    return ProviderModel(
        provider_id=provider_id,
        model_id=model_id,
        label=str(raw.get("label", model_id)),
        model_type=model_type,
        max_context_tokens=int(raw.get("max_context_tokens", 8192)),
        max_tokens=max_tokens,
        vision=bool(raw.get("vision", False)),
    )


def _parse_provider_file(path: Path, env: Mapping[str, str], logger: logging.Logger) -> ProviderConfig | None:
    try:
        raw = json.loads(path.read_text())
    except Exception:
        logger.exception("Failed to read provider config: %s", path)
        return None

    provider_id = str(raw.get("id", "")).strip()
    if not provider_id:
        logger.error("Provider config missing id: %s", path)
        return None
    base_url = str(raw.get("base_url", "")).strip()
    if not base_url:
        logger.error("Provider %s missing base_url", provider_id)
        return None

    tls = raw.get("tls", {}) or {}
    auth = raw.get("auth", {}) or {}
    auth_mode = str(auth.get("mode", "none")).lower()
    api_key: str | None = None
    if auth_mode == "bearer":
        env_name = str(auth.get("env", "")).strip()
        api_key = env.get(env_name) if env_name else auth.get("token")
        if not api_key:
            logger.warning("Provider %s uses bearer auth but %s is not set", provider_id, env_name or "token")
    elif auth_mode != "none":
        logger.warning("Provider %s has unsupported auth mode %r, using none", provider_id, auth_mode)
        auth_mode = "none"

    endpoints = dict(DEFAULT_ENDPOINTS)
    endpoints.update({str(k): str(v) for k, v in (raw.get("endpoints", {}) or {}).items()})

    models: list[ProviderModel] = []
    for item in raw.get("models", []) or []:
        model = _parse_model(provider_id, item, path, logger)
        if model:
            models.append(model)

    return ProviderConfig(
        provider_id=provider_id,
        label=str(raw.get("label", provider_id)),
        base_url=base_url,
        tls_ca_cert_path=tls.get("ca_cert_path"),
        auth_mode=auth_mode,
        api_key=api_key,
        endpoints=endpoints,
        models=models,
    )


def load_provider_registry(
    providers_dir: Path,
    env: Mapping[str, str] | None = None,
) -> tuple[dict[str, ProviderConfig], list[ProviderModel]]:
    logger = logging.getLogger("llm_providers")
    registry: dict[str, ProviderConfig] = {}
    models: list[ProviderModel] = []

    if not providers_dir.exists() or not providers_dir.is_dir():
        logger.info("Providers dir not found: %s", providers_dir)
        return registry, models

    for path in sorted(providers_dir.glob("*.json")):
        config = _parse_provider_file(path, env or {}, logger)
        if not config:
            continue
        if config.provider_id in registry:
            logger.error("Duplicate provider id '%s' in %s", config.provider_id, path)
            continue
        registry[config.provider_id] = config
        models.extend(config.models)

    logger.info("Loaded providers=%s models=%s from %s", len(registry), len(models), providers_dir)
    return registry, models


class ModelProvider:
    """Resolves ``provider:model`` references to stable model handles.

    One handle object exists per model reference for as long as its provider
    stays registered, so identity comparison tells whether a handle was
    replaced. Listeners are told about provider changes synchronously.
    """

    def __init__(self, timeout_sec: float = 600) -> None:
        self._timeout_sec = timeout_sec
        self._providers: dict[str, ProviderConfig] = {}
        self._clients: dict[str, httpx.AsyncClient] = {}
        self._chat_models: dict[str, ProviderChatModel] = {}
        self._embeddings: dict[str, ProviderEmbeddings] = {}
        self._listeners: list[ModelListener] = []
        self._logger = logging.getLogger("llm_providers")

    @property
    def providers(self) -> dict[str, ProviderConfig]:
        return dict(self._providers)

    def subscribe(self, listener: ModelListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: ModelListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: str, provider_id: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, provider_id)
            except Exception:
                self._logger.exception("Model listener failed event=%s provider=%s", event, provider_id)

    def _build_client(self, provider: ProviderConfig) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=provider.base_url.rstrip("/"),
            timeout=self._timeout_sec,
            verify=provider.tls_ca_cert_path or True,
        )

    async def register_provider(self, provider: ProviderConfig, client: httpx.AsyncClient | None = None) -> None:
        if provider.provider_id in self._providers:
            await self.unregister_provider(provider.provider_id)
        http_client = client or self._build_client(provider)
        self._providers[provider.provider_id] = provider
        self._clients[provider.provider_id] = http_client
        for model in provider.models:
            if model.model_type == "embeddings":
                self._embeddings[model.full_id] = ProviderEmbeddings(provider, model, http_client)
            else:
                self._chat_models[model.full_id] = ProviderChatModel(provider, model, http_client)
        self._logger.info("Provider registered id=%s models=%s", provider.provider_id, len(provider.models))
        self._emit(MODEL_ADDED, provider.provider_id)

    async def unregister_provider(self, provider_id: str) -> None:
        provider = self._providers.pop(provider_id, None)
        if provider is None:
            return
        for model in provider.models:
            self._chat_models.pop(model.full_id, None)
            self._embeddings.pop(model.full_id, None)
        client = self._clients.pop(provider_id, None)
        self._logger.info("Provider removed id=%s", provider_id)
        self._emit(MODEL_REMOVED, provider_id)
        if client is not None:
            await client.aclose()

    def _lookup(self, model_ref: str | None, table: Mapping[str, Any]) -> Any:
        if not model_ref:
            return None
        ref = model_ref.strip()
        if ":" in ref:
            return table.get(ref)
        matches = [handle for full_id, handle in table.items() if full_id.split(":", 1)[1] == ref]
        if len(matches) > 1:
            self._logger.warning("Ambiguous model reference %r, use provider:model", ref)
            return None
        return matches[0] if matches else None

    def resolve(self, model_ref: str | None) -> ProviderChatModel | None:
        return self._lookup(model_ref, self._chat_models)

    def resolve_embeddings(self, model_ref: str | None) -> ProviderEmbeddings | None:
        return self._lookup(model_ref, self._embeddings)

    def list_models(self, model_type: str = "llm") -> list[str]:
        table = self._embeddings if model_type == "embeddings" else self._chat_models
        return sorted(table.keys())

    async def aclose(self) -> None:
        for provider_id in list(self._providers):
            await self.unregister_provider(provider_id)
        self._listeners.clear()

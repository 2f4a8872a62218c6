from __future__ import annotations

from functools import lru_cache

from vendor_request_app.backend.lifecycle import RequestLifecycleController
from vendor_request_app.backend.repository import VendorRequestRepository
from vendor_request_app.core.config import AppConfig
from vendor_request_app.core.env import (
    VREQ_ALLOW_ROLE_OVERRIDE,
    VREQ_TRUST_FORWARDED_IDENTITY_HEADERS,
    get_env_bool,
)
from vendor_request_app.engine.memo import ViewBuilder
from vendor_request_app.infrastructure.blob_store import LocalBlobStore


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    return AppConfig.from_env()


@lru_cache(maxsize=1)
def get_repo() -> VendorRequestRepository:
    return VendorRequestRepository(get_config())


@lru_cache(maxsize=1)
def get_blob_store() -> LocalBlobStore:
    return LocalBlobStore.from_config(get_config())


@lru_cache(maxsize=1)
def get_view_builder() -> ViewBuilder:
    return ViewBuilder.from_config(get_config())


def get_controller() -> RequestLifecycleController:
    return RequestLifecycleController(get_repo(), get_blob_store())


def reset_runtime_caches() -> None:
    if get_repo.cache_info().currsize:
        get_repo().close()
    get_repo.cache_clear()
    get_blob_store.cache_clear()
    get_view_builder.cache_clear()
    get_config.cache_clear()


def trust_forwarded_identity_headers() -> bool:
    # The app proxy injects x-forwarded-* identity; disable when exposed without it.
    return get_env_bool(VREQ_TRUST_FORWARDED_IDENTITY_HEADERS, default=True)


def role_override_enabled(config: AppConfig) -> bool:
    return get_env_bool(VREQ_ALLOW_ROLE_OVERRIDE, default=config.is_dev_env)

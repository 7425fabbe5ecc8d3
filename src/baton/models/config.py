from __future__ import annotations
import os

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

"""
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ModelConfig:
    # Models
    default_model: str = "gpt-4.1-mini"

    # Reliability
    timeout_s: float | None = 60.0
    max_retries: int = 3
    backoff_base_s: float = 0.5
    backoff_jitter_s: float = 0.15

    # Transport
    api_base_url: str | None = None
    api_key: str | None = None

    @staticmethod
    def from_env() -> "ModelConfig":
        timeout = os.getenv("BATON_MODEL_TIMEOUT_S", "60")
        return ModelConfig(
            default_model=os.getenv("BATON_MODEL", "gpt-4.1-mini"),
            api_base_url=os.getenv("BATON_MODEL_API_BASE_URL"),
            api_key=os.getenv("BATON_MODEL_API_KEY"),
            timeout_s=float(timeout) if timeout.strip() else None,
            max_retries=int(os.getenv("BATON_MODEL_MAX_RETRIES", "3")),
            backoff_base_s=float(os.getenv("BATON_MODEL_BACKOFF_BASE_S", "0.5")),
            backoff_jitter_s=float(os.getenv("BATON_MODEL_BACKOFF_JITTER_S", "0.15")),
        )

"""
Enhancer configuration.

Reads environment variables (a `.env` file is loaded by the CLI entry point
via python-dotenv). Every knob has a working default except the pooled
operator key, which is only required when the pooled path is used.

  GEMINI_API_KEY            — pooled (operator-funded) key
  ENHANCER_VISION_MODEL     — text/vision model for analysis + captions
  ENHANCER_IMAGE_MODEL      — image-editing model
  ENHANCER_MAX_ATTEMPTS     — pooled-path attempts (retry budget)
  ENHANCER_RETRY_DELAY      — fixed backoff between attempts, seconds
  ENHANCER_CREDIT_COST      — credits charged per pooled generation
  ENHANCER_CANVAS_WIDTH     — width of the prepared source canvas
  ENHANCER_REST_BASE_URL    — REST base for the user-key path
  ENHANCER_REQUEST_TIMEOUT  — REST timeout, seconds
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


DEFAULT_VISION_MODEL = "gemini-2.5-flash"
DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"
DEFAULT_REST_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models/"


@dataclass(frozen=True)
class EnhancerConfig:
    pooled_api_key: Optional[str] = None
    vision_model: str = DEFAULT_VISION_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    max_attempts: int = 2
    retry_delay: float = 1.5
    credit_cost: int = 5
    canvas_width: int = 1024
    rest_base_url: str = DEFAULT_REST_BASE_URL
    request_timeout: float = 120.0


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def get_config() -> EnhancerConfig:
    """Build the config from the current environment."""
    max_attempts = _env_int("ENHANCER_MAX_ATTEMPTS", 2)
    if max_attempts < 1:
        raise ValueError("ENHANCER_MAX_ATTEMPTS must be at least 1")

    return EnhancerConfig(
        pooled_api_key=os.environ.get("GEMINI_API_KEY") or None,
        vision_model=os.environ.get("ENHANCER_VISION_MODEL") or DEFAULT_VISION_MODEL,
        image_model=os.environ.get("ENHANCER_IMAGE_MODEL") or DEFAULT_IMAGE_MODEL,
        max_attempts=max_attempts,
        retry_delay=_env_float("ENHANCER_RETRY_DELAY", 1.5),
        credit_cost=_env_int("ENHANCER_CREDIT_COST", 5),
        canvas_width=_env_int("ENHANCER_CANVAS_WIDTH", 1024),
        rest_base_url=os.environ.get("ENHANCER_REST_BASE_URL") or DEFAULT_REST_BASE_URL,
        request_timeout=_env_float("ENHANCER_REQUEST_TIMEOUT", 120.0),
    )

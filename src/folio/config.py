"""Centralized configuration constants for Folio.

This module provides a single source of truth for:
- Timeouts (LLM round-trips, health checks)
- Editor limits (restructure input size, autosave quiet period)
- Model defaults for the restructuring prompt

Constants can be overridden via environment variables where noted.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


# =============================================================================
# Helper functions
# =============================================================================


def _env_int(name: str, default: int, min_val: int | None = None) -> int:
    """Get integer from environment with optional minimum enforcement."""
    val = int(os.environ.get(name, str(default)))
    if min_val is not None and val < min_val:
        return min_val
    return val


def _env_float(name: str, default: float, min_val: float | None = None) -> float:
    """Get float from environment with optional minimum enforcement."""
    val = float(os.environ.get(name, str(default)))
    if min_val is not None and val < min_val:
        return min_val
    return val


# =============================================================================
# Timeouts (in seconds)
# =============================================================================


@dataclass(frozen=True)
class Timeouts:
    """Timeout values for external round-trips."""

    # Structuring a whole note can take a while on local models
    LLM_DEFAULT: float = _env_float("FOLIO_LLM_TIMEOUT", 120.0, min_val=10.0)
    OLLAMA_CHECK: float = 2.0
    OLLAMA_MODELS: float = 5.0


TIMEOUTS = Timeouts()


# =============================================================================
# Editor Limits
# =============================================================================


@dataclass(frozen=True)
class EditorLimits:
    """Structural limits of the block editor."""

    # Flattened note text sent to the structuring model
    MAX_RESTRUCTURE_CHARS: int = _env_int("FOLIO_MAX_RESTRUCTURE_CHARS", 60_000, min_val=1000)

    # Minimum quiet period; anything lower turns autosave into save-per-keystroke
    MIN_AUTOSAVE_QUIET_MS: int = 50


LIMITS = EditorLimits()


# =============================================================================
# Model Defaults
# =============================================================================


@dataclass(frozen=True)
class ModelDefaults:
    """Default model configurations."""

    # Restructuring should be faithful rather than creative
    RESTRUCTURE_TEMPERATURE: float = 0.2


MODELS = ModelDefaults()

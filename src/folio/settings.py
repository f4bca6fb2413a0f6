from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    val = raw.strip().lower()
    if val in {"1", "true", "yes", "y", "on"}:
        return True
    if val in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclass(frozen=True)
class Settings:
    """Static settings for the note editor core.

    Keep defaults local and auditable; the only network endpoint is the
    local Ollama server used for AI restructuring.
    """

    root_dir: Path = Path(__file__).resolve().parents[2]
    data_dir: Path = Path(os.environ.get("FOLIO_DATA_DIR", str(root_dir / ".folio-data")))
    log_path: Path = data_dir / "folio.log"
    log_level: str = os.environ.get("FOLIO_LOG_LEVEL", "INFO")
    log_max_bytes: int = int(os.environ.get("FOLIO_LOG_MAX_BYTES", str(1_000_000)))
    log_backup_count: int = int(os.environ.get("FOLIO_LOG_BACKUP_COUNT", "3"))
    log_to_stderr: bool = _env_bool("FOLIO_LOG_STDERR", True)

    ollama_url: str = os.environ.get("FOLIO_OLLAMA_URL", "http://127.0.0.1:11434")
    ollama_model: str | None = os.environ.get("FOLIO_OLLAMA_MODEL")

    # Quiet period before a burst of edits is written to the note store.
    autosave_quiet_ms: int = int(os.environ.get("FOLIO_AUTOSAVE_QUIET_MS", "1000"))


settings = Settings()

# config.py
# Runtime settings. Values come from the environment (and a .env file when
# present); anything missing or unparseable falls back to the default.
#
# The API credential is deliberately absent: entry points take it as an
# explicit argument.

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

ENV_PREFIX = "CODE_HELPER_"

DEFAULT_MODEL = "google/gemini-2.0-flash-001"
DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"


class Settings(BaseModel):
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    timeout: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=2, ge=0)
    backoff_base: float = Field(default=1.0, ge=0)
    max_thinking_iterations: int = Field(default=5, ge=1)
    context_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    iteration_delay: float = Field(default=1.0, ge=0)
    review_max_code_chars: int = Field(default=10_000, ge=1)
    project_root: str = "."

    @classmethod
    def from_env(cls, *, load_dotenv_file: bool = True) -> "Settings":
        if load_dotenv_file:
            load_dotenv()

        defaults = cls()
        values: dict[str, object] = {}
        for name in cls.model_fields:
            raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if raw is None or not raw.strip():
                continue
            parsed = _coerce(raw.strip(), type(getattr(defaults, name)))
            if parsed is not None:
                values[name] = parsed

        try:
            return cls(**values)
        except ValueError:
            # One out-of-range value should not discard the others.
            valid = {}
            for name, value in values.items():
                try:
                    cls(**{name: value})
                except ValueError:
                    continue
                valid[name] = value
            return cls(**valid)


def _coerce(raw: str, target: type) -> object | None:
    try:
        if target is int:
            return int(raw)
        if target is float:
            return float(raw)
    except ValueError:
        return None
    return raw

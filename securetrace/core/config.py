"""securetrace.core.config

Two config surfaces only:
1) `config/default.yaml` + `config/presets/*.yaml`
2) Environment variables (secrets only, plus ad-hoc overrides)

Everything else is derived.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from securetrace.core.exceptions import ConfigError

DEFAULT_KEYWORDS = ["leak", "hack", "password", "bribe", "confidential", "off the record"]

DEFAULT_ECHO_RESPONSES = [
    "I've received the documents. Verifying signatures now.",
    "Understood. Ensure the logs are flushed after the operation.",
    "We need to be careful with this channel.",
    "Confirmed.",
    "Can you send the financial report for Q3?",
]


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = dict(base)
    for k, v in overlay.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


class DLPConfig(BaseModel):
    """Initial DLP keyword set. The live set is mutable at runtime."""

    keywords: list[str] = Field(default_factory=lambda: list(DEFAULT_KEYWORDS))

    @field_validator("keywords")
    @classmethod
    def keywords_are_lowercase_and_non_empty(cls, v: list[str]) -> list[str]:
        out: list[str] = []
        for kw in v:
            norm = str(kw).strip().lower()
            if not norm:
                raise ValueError("DLP keywords must be non-empty")
            if norm not in out:
                out.append(norm)
        return out


class HandshakeConfig(BaseModel):
    rsa_key_size: int = 2048
    public_exponent: int = 65537
    timeout_s: float = 10.0
    fingerprint_chars: int = 16
    fingerprint_group: int = 4

    @field_validator("rsa_key_size")
    @classmethod
    def rsa_key_size_floor(cls, v: int) -> int:
        if v < 2048:
            raise ValueError("rsa_key_size must be >= 2048")
        return v

    @field_validator("timeout_s")
    @classmethod
    def timeout_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout_s must be > 0")
        return v

    @field_validator("fingerprint_chars")
    @classmethod
    def fingerprint_fits_digest(cls, v: int) -> int:
        if not 4 <= v <= 64:
            raise ValueError("fingerprint_chars must be within [4, 64]")
        return v


class IntegrityConfig(BaseModel):
    # ciphertext: sha256 of the base64 ciphertext text, compatible with the reference client
    # envelope: sha256(nonce || ciphertext || sender_id)
    mode: Literal["ciphertext", "envelope"] = "ciphertext"


class EchoConfig(BaseModel):
    enabled: bool = True
    delay_s: float = 1.5
    responses: list[str] = Field(default_factory=lambda: list(DEFAULT_ECHO_RESPONSES))

    @field_validator("responses")
    @classmethod
    def responses_not_empty(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("echo.responses must contain at least one reply")
        return v


class SummarizerConfig(BaseModel):
    enabled: bool = False
    url: str = ""
    model: str = "forensic-summary-v1"
    api_key: str = ""  # env only: SECURETRACE_SUMMARIZER__API_KEY
    timeout_s: float = 20.0
    max_retries: int = 2
    circuit_breaker_threshold: int = 3
    circuit_breaker_cooldown_s: float = 30.0
    hash_prefix_chars: int = 8


class LoggingConfig(BaseModel):
    level: str = "INFO"
    json_output: bool = False


class Config(BaseSettings):
    """Root configuration. Single source of truth."""

    config_dir: Path = Path("config")

    preset: Literal["standard", "strict", "custom"] = "standard"

    dlp: DLPConfig = Field(default_factory=DLPConfig)
    handshake: HandshakeConfig = Field(default_factory=HandshakeConfig)
    integrity: IntegrityConfig = Field(default_factory=IntegrityConfig)
    echo: EchoConfig = Field(default_factory=EchoConfig)
    summarizer: SummarizerConfig = Field(default_factory=SummarizerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"env_prefix": "SECURETRACE_", "env_nested_delimiter": "__"}

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        try:
            raw = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Config file is not valid YAML: {path}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Config root must be a mapping: {path}")

        preset_name = raw.get("preset", "standard")
        preset_path = path.parent / "presets" / f"{preset_name}.yaml"
        if preset_path.exists():
            preset_data = yaml.safe_load(preset_path.read_text()) or {}
            raw = _deep_merge(preset_data, raw)

        raw.setdefault("config_dir", path.parent)
        return cls(**raw)

    @classmethod
    def from_repo_defaults(cls, repo_root: Path | None = None) -> Config:
        root = repo_root or Path.cwd()
        return cls.from_yaml(root / "config" / "default.yaml")

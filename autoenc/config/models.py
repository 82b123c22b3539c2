from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .source_dirs import normalize_source_dir_entries

SOURCE_PLACEHOLDER = "{source}"
DESTINATION_PLACEHOLDER = "{destination}"


def _normalize_extension(value: str) -> str:
    value = value.strip()
    if not value or value == ".":
        raise ValueError("Extension must not be empty")
    return value if value.startswith(".") else f".{value}"


class GeneralConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    debug: bool = False
    log_path: Optional[str] = None
    poll_interval_s: float = Field(default=1.0, gt=0)
    cleanup_temp_on_start: bool = True


class EncoderConfig(BaseModel):
    """External encoder invocation and output naming."""
    model_config = ConfigDict(frozen=True)

    command: str
    output_extension: str = ".m4v"
    temp_suffix: str = ".encoding.tmp"
    abort_on_failure: bool = False  # False: publish even when the encoder exits non-zero
    forward_output: bool = False

    @field_validator("command")
    @classmethod
    def validate_placeholders(cls, v: str) -> str:
        missing = [p for p in (SOURCE_PLACEHOLDER, DESTINATION_PLACEHOLDER) if p not in v]
        if missing:
            raise ValueError(f"Encoder command is missing placeholder(s): {', '.join(missing)}")
        return v

    @field_validator("output_extension")
    @classmethod
    def validate_output_extension(cls, v: str) -> str:
        return _normalize_extension(v)

    @field_validator("temp_suffix")
    @classmethod
    def validate_temp_suffix(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("temp_suffix must not be empty")
        return v.strip()


class AppConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    source_dirs: List[str] = Field(default_factory=list)
    archive_dir_name: str = "originals"
    source_extension: str = ".MOV"
    encoder: EncoderConfig

    @field_validator("source_dirs", mode="before")
    @classmethod
    def expand_source_dirs(cls, v):
        return normalize_source_dir_entries(v)

    @field_validator("archive_dir_name")
    @classmethod
    def validate_archive_dir_name(cls, v: str) -> str:
        v = v.strip()
        if not v or v in (".", "..") or "/" in v or "\\" in v:
            raise ValueError(f"archive_dir_name must be a single directory name, got {v!r}")
        return v

    @field_validator("source_extension")
    @classmethod
    def validate_source_extension(cls, v: str) -> str:
        return _normalize_extension(v)

import yaml
from pathlib import Path
from .models import AppConfig

def load_config(config_path: Path) -> AppConfig:
    """Loads the YAML config and parses it into the AppConfig Pydantic model."""
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping at the top level: {config_path}")

    # A bare template string is accepted in place of the encoder section
    encoder = data.get("encoder")
    if isinstance(encoder, str):
        data["encoder"] = {"command": encoder}

    return AppConfig(**data)

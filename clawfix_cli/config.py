"""
ClawFix CLI settings.

Values are layered: dataclass defaults, then ~/.clawfix/config.json (or an
explicit path), then a local .env, then CLAWFIX_* environment variables.
"""

import os
import json
from pathlib import Path
from dataclasses import dataclass, field, asdict, fields
from typing import Any, Callable, Dict, Optional, Tuple

from dotenv import load_dotenv


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


# env var -> (attribute, converter)
ENV_OVERRIDES: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "CLAWFIX_API_URL": ("api_base_url", str),
    "CLAWFIX_TIMEOUT": ("timeout", float),
    "CLAWFIX_OUTPUT_FORMAT": ("output_format", str),
    "CLAWFIX_VERBOSE": ("verbose", _parse_bool),
}


@dataclass
class CLIConfig:
    """Where the CLI talks to and how it prints"""

    api_base_url: str = "http://localhost:3001/api"
    timeout: float = 60.0  # diagnose waits on the AI pass
    output_format: str = "text"  # text | json
    verbose: bool = False
    config_dir: str = field(default_factory=lambda: str(Path.home() / ".clawfix"))

    @property
    def config_file(self) -> Path:
        return Path(self.config_dir) / "config.json"

    def load_from_file(self, config_path: str) -> None:
        """Apply known keys from a JSON file; unknown keys are ignored"""
        source = Path(config_path)
        if not source.exists():
            return
        known = {f.name for f in fields(self)}
        stored = json.loads(source.read_text())
        for name in known.intersection(stored):
            setattr(self, name, stored[name])

    def save_to_file(self, config_path: Optional[str] = None) -> None:
        target = Path(config_path) if config_path else self.config_file
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(self.to_dict(), indent=2))

    def apply_env(self) -> None:
        for env_var, (name, convert) in ENV_OVERRIDES.items():
            raw = os.environ.get(env_var)
            if raw:
                setattr(self, name, convert(raw))
        self.api_base_url = self.api_base_url.rstrip("/")

    @classmethod
    def load_default(cls, config_path: Optional[str] = None) -> "CLIConfig":
        config = cls()
        config.load_from_file(config_path or str(config.config_file))
        load_dotenv()
        config.apply_env()
        return config

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

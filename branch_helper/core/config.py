import os
import sys
from dataclasses import dataclass
from pathlib import Path

APP_VERSION = "1.1.0"
DEFAULT_GIT_TIMEOUT_SECONDS = 30.0
DEFAULT_GIT_MAX_OUTPUT_BYTES = 1024 * 1024


def _load_local_dotenv() -> None:
    """
    Load the project-root `.env` into the process environment at startup.

    Rules:
    1) Only set keys that are not already present, so explicit values win.
    2) Accept both `KEY=VALUE` and `export KEY=VALUE`.
    3) Skip blank lines and `#` comments.
    """
    env_file = Path(__file__).resolve().parents[2] / ".env"
    if not env_file.exists():
        return

    for raw_line in env_file.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if not key:
            continue
        os.environ.setdefault(key, value)


@dataclass(frozen=True)
class Settings:
    host: str
    port: int
    log_level: str
    config_file: Path
    git_executable: str
    git_timeout_seconds: float
    git_max_output_bytes: int
    platform: str
    is_windows: bool
    is_macos: bool
    is_linux: bool


def _resolve_port() -> int:
    raw = os.getenv("PORT", "3000")
    try:
        parsed = int(raw)
    except ValueError:
        return 3000
    if parsed < 1 or parsed > 65535:
        return 3000
    return parsed


def _resolve_positive_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        parsed = float(raw)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _resolve_positive_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        parsed = int(raw)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _resolve_config_file() -> Path:
    raw_path = os.getenv("CONFIG_FILE", "./config.json")
    return Path(raw_path).expanduser().resolve()


def _resolve_log_level() -> str:
    level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        return "INFO"
    return level


_load_local_dotenv()
settings = Settings(
    # Loopback only: the service has no authentication layer.
    host=os.getenv("HOST", "127.0.0.1"),
    port=_resolve_port(),
    log_level=_resolve_log_level(),
    config_file=_resolve_config_file(),
    git_executable=os.getenv("GIT_EXECUTABLE", "git").strip() or "git",
    git_timeout_seconds=_resolve_positive_float(
        "GIT_TIMEOUT_SECONDS", DEFAULT_GIT_TIMEOUT_SECONDS
    ),
    git_max_output_bytes=_resolve_positive_int(
        "GIT_MAX_OUTPUT_BYTES", DEFAULT_GIT_MAX_OUTPUT_BYTES
    ),
    platform=sys.platform,
    is_windows=sys.platform.startswith("win"),
    is_macos=sys.platform == "darwin",
    is_linux=sys.platform.startswith("linux"),
)

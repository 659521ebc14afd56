from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from branch_helper.core.config import settings
from branch_helper.core.errors import ConfigInvalidError, ConfigNotFoundError

logger = logging.getLogger(__name__)

API_KEY_PLACEHOLDER = 'PASTE_YOUR_GEMINI_API_KEY_HERE'
PROJECT_PATH_PLACEHOLDER = '/path/to/your/project'


@dataclass(frozen=True)
class HelperConfig:
    """Immutable snapshot of config.json taken for a single request."""

    source: Path
    api_key: str | None
    project_path: str | None
    default_base_branch: str | None
    strict_branch_names: bool
    settings: Mapping[str, Any] = field(default_factory=dict)
    advanced: Mapping[str, Any] = field(default_factory=dict)

    @property
    def has_api_key(self) -> bool:
        return self.api_key is not None

    @property
    def has_project_path(self) -> bool:
        return self.project_path is not None


class ConfigService:
    def __init__(self, config_file: Path) -> None:
        self._config_file = config_file

    @property
    def config_file(self) -> Path:
        return self._config_file

    def load(self) -> HelperConfig:
        # Read from disk on every call; edits take effect on the next request.
        if not self._config_file.exists():
            raise ConfigNotFoundError(str(self._config_file))
        try:
            raw = json.loads(self._config_file.read_text(encoding='utf-8'))
        except json.JSONDecodeError as exc:
            raise ConfigInvalidError(str(self._config_file), str(exc)) from exc
        except OSError as exc:
            raise ConfigInvalidError(str(self._config_file), f'failed to read config: {exc}') from exc
        if not isinstance(raw, dict):
            raise ConfigInvalidError(str(self._config_file), 'top-level value must be an object')

        section = raw.get('settings') or {}
        advanced = raw.get('advanced') or {}
        if not isinstance(section, dict) or not isinstance(advanced, dict):
            raise ConfigInvalidError(
                str(self._config_file),
                '"settings" and "advanced" must be objects',
            )

        return HelperConfig(
            source=self._config_file,
            api_key=self._normalize(raw.get('geminiApiKey'), API_KEY_PLACEHOLDER),
            project_path=self._normalize(raw.get('projectPath'), PROJECT_PATH_PLACEHOLDER),
            default_base_branch=self._normalize(section.get('defaultBaseBranch')),
            strict_branch_names=bool(section.get('strictBranchNames', False)),
            settings=MappingProxyType(dict(section)),
            advanced=MappingProxyType(dict(advanced)),
        )

    def try_load(self) -> HelperConfig | None:
        """Like load(), but a missing or broken file yields None."""
        try:
            return self.load()
        except (ConfigNotFoundError, ConfigInvalidError) as exc:
            logger.info('config unavailable code=%s path=%s', exc.code, self._config_file)
            return None

    def _normalize(self, value: Any, placeholder: str | None = None) -> str | None:
        if not isinstance(value, str):
            return None
        normalized = value.strip()
        if not normalized or normalized == placeholder:
            return None
        return normalized


config_service = ConfigService(settings.config_file)

from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str
    message: str
    version: str
    timestamp: str


class ConfigResponse(BaseModel):
    config_path: str
    has_api_key: bool
    has_project_path: bool
    api_key: str | None = None
    project_path: str | None = None
    default_base_branch: str | None = None
    strict_branch_names: bool = False
    settings: dict[str, Any] = Field(default_factory=dict)
    advanced: dict[str, Any] = Field(default_factory=dict)


class RepositoryRequest(BaseModel):
    # Falls back to projectPath from config.json when omitted.
    project_path: str | None = Field(default=None, max_length=4096)


class CreateBranchRequest(BaseModel):
    branch_name: str = Field(min_length=1, max_length=255)
    project_path: str | None = Field(default=None, max_length=4096)
    auto_checkout: bool = True
    base_branch: str | None = Field(default=None, max_length=255)


class RepositoryValidationResponse(BaseModel):
    valid: bool
    path: str
    git_version: str
    message: str


class RepoStatusResponse(BaseModel):
    path: str
    current_branch: str
    detached: bool
    has_changes: bool
    is_clean: bool
    changed_files: list[str]
    last_commit: str | None = None
    remote_status: str | None = None


class BranchSetResponse(BaseModel):
    path: str
    current: str
    detached: bool
    local: list[str]
    remote: list[str]
    all: list[str]
    count: int


class BranchCreationResponse(BaseModel):
    path: str
    branch_name: str
    previous_branch: str
    current_branch: str
    created: bool
    checked_out: bool
    base_branch: str | None = None
    message: str


class SystemInfoResponse(BaseModel):
    platform: str
    is_windows: bool
    is_macos: bool
    is_linux: bool
    python_version: str
    working_dir: str
    home_dir: str
    git_installed: bool
    git_version: str | None = None
    git_message: str

from datetime import datetime, timezone
import logging
from pathlib import Path
import platform

from fastapi import APIRouter, Depends

from branch_helper.api.deps import get_config_snapshot
from branch_helper.core.config import APP_VERSION, settings
from branch_helper.core.errors import ProjectPathRequiredError
from branch_helper.models.schemas import (
    BranchCreationResponse,
    BranchSetResponse,
    ConfigResponse,
    CreateBranchRequest,
    HealthResponse,
    RepoStatusResponse,
    RepositoryRequest,
    RepositoryValidationResponse,
    SystemInfoResponse,
)
from branch_helper.services.branch_service import branch_service
from branch_helper.services.config_service import HelperConfig, config_service
from branch_helper.services.repository_service import repository_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(
        status="OK",
        message="Local Git server working",
        version=APP_VERSION,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.get("/load-config", response_model=ConfigResponse)
def load_config(include_secrets: bool = False) -> ConfigResponse:
    config = config_service.load()
    return ConfigResponse(
        config_path=str(config.source),
        has_api_key=config.has_api_key,
        has_project_path=config.has_project_path,
        # Presence flags by default; the literal key only on explicit request.
        api_key=config.api_key if include_secrets else None,
        project_path=config.project_path,
        default_base_branch=config.default_base_branch,
        strict_branch_names=config.strict_branch_names,
        settings=dict(config.settings),
        advanced=dict(config.advanced),
    )


@router.get("/system-info", response_model=SystemInfoResponse)
def system_info() -> SystemInfoResponse:
    installation = repository_service.check_git_installation()
    return SystemInfoResponse(
        platform=settings.platform,
        is_windows=settings.is_windows,
        is_macos=settings.is_macos,
        is_linux=settings.is_linux,
        python_version=platform.python_version(),
        working_dir=str(Path.cwd()),
        home_dir=str(Path.home()),
        git_installed=installation.installed,
        git_version=installation.version,
        git_message=installation.message,
    )


@router.post("/validate-repo", response_model=RepositoryValidationResponse)
def validate_repo(
    body: RepositoryRequest,
    config: HelperConfig | None = Depends(get_config_snapshot),
) -> RepositoryValidationResponse:
    validation = repository_service.validate_repository(
        _resolve_project_path(body.project_path, config)
    )
    return RepositoryValidationResponse(
        valid=True,
        path=str(validation.path),
        git_version=validation.git_version,
        message=validation.message,
    )


@router.post("/git-status", response_model=RepoStatusResponse)
def git_status(
    body: RepositoryRequest,
    config: HelperConfig | None = Depends(get_config_snapshot),
) -> RepoStatusResponse:
    project_path = _resolve_project_path(body.project_path, config)
    status = repository_service.get_status(project_path)
    return RepoStatusResponse(
        path=project_path,
        current_branch=status.current_branch,
        detached=status.detached,
        has_changes=status.is_dirty,
        is_clean=status.is_clean,
        changed_files=list(status.changed_files),
        last_commit=status.last_commit,
        remote_status=status.remotes,
    )


@router.post("/list-branches", response_model=BranchSetResponse)
def list_branches(
    body: RepositoryRequest,
    config: HelperConfig | None = Depends(get_config_snapshot),
) -> BranchSetResponse:
    project_path = _resolve_project_path(body.project_path, config)
    branches = repository_service.list_branches(project_path)
    return BranchSetResponse(
        path=project_path,
        current=branches.current,
        detached=branches.detached,
        local=list(branches.local),
        remote=list(branches.remote),
        all=list(branches.all),
        count=len(branches.all),
    )


@router.post("/create-branch", response_model=BranchCreationResponse)
def create_branch(
    body: CreateBranchRequest,
    config: HelperConfig | None = Depends(get_config_snapshot),
) -> BranchCreationResponse:
    project_path = _resolve_project_path(body.project_path, config)
    result = branch_service.create_branch(
        branch_name=body.branch_name,
        project_path=project_path,
        auto_checkout=body.auto_checkout,
        base_branch=body.base_branch,
        strict_names=config.strict_branch_names if config else False,
    )
    return BranchCreationResponse(
        path=project_path,
        branch_name=result.branch_name,
        previous_branch=result.previous_branch,
        current_branch=result.current_branch,
        created=result.created,
        checked_out=result.checked_out,
        base_branch=result.base_branch,
        message=result.message,
    )


def _resolve_project_path(project_path: str | None, config: HelperConfig | None) -> str:
    if project_path and project_path.strip():
        return project_path.strip()
    if config is not None and config.project_path:
        logger.debug("using configured project path %s", config.project_path)
        return config.project_path
    raise ProjectPathRequiredError()

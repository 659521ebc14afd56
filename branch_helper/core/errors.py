import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    def __init__(self, code: str, message: str, details: Any = None, status_code: int = 400):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code


class InvalidPathError(AppError):
    def __init__(self, path: str):
        super().__init__(
            code="INVALID_PATH",
            message=f"Project path must be an absolute path: {path}",
            details={"path": path},
            status_code=400,
        )


class PathNotFoundError(AppError):
    def __init__(self, path: str):
        super().__init__(
            code="PATH_NOT_FOUND",
            message=f"Path does not exist: {path}",
            details={"path": path},
            status_code=404,
        )


class PathNotADirectoryError(AppError):
    def __init__(self, path: str):
        super().__init__(
            code="NOT_A_DIRECTORY",
            message=f"Path is not a directory: {path}",
            details={"path": path},
            status_code=400,
        )


class NotAGitRepositoryError(AppError):
    def __init__(self, path: str):
        super().__init__(
            code="NOT_A_GIT_REPOSITORY",
            message='Directory is not a Git repository (.git not found). Run "git init" first or check the path',
            details={"path": path},
            status_code=400,
        )


class GitNotInstalledError(AppError):
    def __init__(self, executable: str, reason: str | None = None):
        super().__init__(
            code="GIT_NOT_INSTALLED",
            message="Git was not found. Install Git and make sure it is on PATH",
            details={"executable": executable, "reason": reason},
            status_code=503,
        )


class BranchAlreadyExistsError(AppError):
    def __init__(self, branch: str, path: str | None = None):
        super().__init__(
            code="BRANCH_ALREADY_EXISTS",
            message=f'Branch "{branch}" already exists. Choose a different name or check out the existing branch',
            details={"branch": branch, "path": path},
            status_code=409,
        )


class UncommittedChangesError(AppError):
    def __init__(self, path: str | None, reason: str):
        super().__init__(
            code="UNCOMMITTED_CHANGES",
            message="There are uncommitted changes. Commit or stash them first",
            details={"path": path, "reason": reason},
            status_code=409,
        )


class PermissionDeniedError(AppError):
    def __init__(self, path: str | None, reason: str):
        super().__init__(
            code="PERMISSION_DENIED",
            message="Permission denied. Check the permissions of the repository directory",
            details={"path": path, "reason": reason},
            status_code=403,
        )


class CommandTimeoutError(AppError):
    def __init__(self, command: str, timeout_seconds: float):
        super().__init__(
            code="COMMAND_TIMEOUT",
            message=f"Git command timed out after {timeout_seconds:g}s",
            details={"command": command, "timeout_seconds": timeout_seconds},
            status_code=504,
        )


class CommandOutputLimitError(AppError):
    def __init__(self, command: str, max_output_bytes: int):
        super().__init__(
            code="COMMAND_OUTPUT_LIMIT",
            message=f"Git command produced more than {max_output_bytes} bytes of output",
            details={"command": command, "max_output_bytes": max_output_bytes},
            status_code=500,
        )


class UnknownGitError(AppError):
    def __init__(self, command: str, reason: str, path: str | None = None):
        super().__init__(
            code="UNKNOWN_GIT_ERROR",
            message=reason or "Unknown Git error",
            details={"command": command, "path": path, "reason": reason},
            status_code=500,
        )


class InvalidBranchNameError(AppError):
    def __init__(self, branch: str, reason: str):
        super().__init__(
            code="INVALID_BRANCH_NAME",
            message=f'Invalid branch name "{branch}": {reason}',
            details={"branch": branch, "reason": reason},
            status_code=400,
        )


class InvalidBaseBranchError(AppError):
    def __init__(self, path: str | None, reason: str):
        super().__init__(
            code="INVALID_BASE_BRANCH",
            message="Base branch does not exist. Make sure you are on a valid branch",
            details={"path": path, "reason": reason},
            status_code=400,
        )


class BranchStateMismatchError(AppError):
    def __init__(self, branch: str, expected_branch: str, actual_branch: str, reason: str):
        super().__init__(
            code="BRANCH_STATE_MISMATCH",
            message=f'Branch "{branch}" was requested but the repository did not reach the expected state',
            details={
                "branch": branch,
                "expected_branch": expected_branch,
                "actual_branch": actual_branch,
                "reason": reason,
            },
            status_code=500,
        )


class ProjectPathRequiredError(AppError):
    def __init__(self):
        super().__init__(
            code="PROJECT_PATH_REQUIRED",
            message="project_path is required when no default project path is configured",
            status_code=400,
        )


class ConfigNotFoundError(AppError):
    def __init__(self, path: str):
        super().__init__(
            code="CONFIG_NOT_FOUND",
            message="config.json not found",
            details={"path": path},
            status_code=404,
        )


class ConfigInvalidError(AppError):
    def __init__(self, path: str, reason: str):
        super().__init__(
            code="CONFIG_INVALID",
            message="Invalid JSON format in config.json",
            details={"path": path, "reason": reason},
            status_code=400,
        )


def _error_payload(code: str, message: str, details: Any = None) -> dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details,
        }
    }


def _available_endpoints(app: FastAPI) -> list[str]:
    endpoints: list[str] = []
    _collect_endpoints(app.routes, endpoints)
    return endpoints


def _collect_endpoints(routes: Any, endpoints: list[str], prefix: str = "") -> None:
    for route in routes:
        # Included routers may be kept as nested containers instead of flattened.
        nested = getattr(route, "routes", None)
        if nested is None and getattr(route, "router", None) is not None:
            nested = getattr(route.router, "routes", None)
        methods = getattr(route, "methods", None)
        if nested is not None and not methods:
            nested_prefix = getattr(route, "prefix", None) or getattr(route, "path", None) or ""
            _collect_endpoints(nested, endpoints, prefix + nested_prefix)
            continue
        path = getattr(route, "path", None)
        if not methods or not path:
            continue
        path = prefix + path
        if path.startswith(("/docs", "/redoc", "/openapi")):
            continue
        for method in sorted(methods - {"HEAD", "OPTIONS"}):
            endpoint = f"{method} {path}"
            if endpoint not in endpoints:
                endpoints.append(endpoint)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        logger.warning(
            "AppError on %s %s: code=%s message=%s details=%s",
            request.method,
            request.url.path,
            exc.code,
            exc.message,
            exc.details,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(exc.code, exc.message, exc.details),
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_error_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        if exc.status_code == 404:
            return JSONResponse(
                status_code=404,
                content=_error_payload(
                    code="NOT_FOUND",
                    message="Endpoint not found",
                    details={"available_endpoints": _available_endpoints(app)},
                ),
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(code="HTTP_ERROR", message=str(exc.detail)),
        )

    @app.exception_handler(Exception)
    async def _internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
        )
        return JSONResponse(
            status_code=500,
            content=_error_payload(
                code="INTERNAL_SERVER_ERROR",
                message="Unexpected server error",
                details={"reason": str(exc)},
            ),
        )

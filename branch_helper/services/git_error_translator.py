from __future__ import annotations

from pathlib import Path

from branch_helper.core.errors import (
    AppError,
    BranchAlreadyExistsError,
    CommandOutputLimitError,
    CommandTimeoutError,
    GitNotInstalledError,
    InvalidBaseBranchError,
    InvalidBranchNameError,
    NotAGitRepositoryError,
    PermissionDeniedError,
    UncommittedChangesError,
    UnknownGitError,
)
from branch_helper.services.git_command_service import GitCommandError

_NOT_A_REPOSITORY = ('not a git repository',)
_ALREADY_EXISTS = ('already exists',)
# 'refs/heads/feat' exists; cannot create 'refs/heads/feat/login'
_REF_PATH_CONFLICT = ('exists; cannot create',)
_BAD_BASE_BRANCH = (
    'not a valid object name',
    'invalid object name',
    'invalid reference',
    'is not a commit and a branch',
    'cannot update paths and switch to branch',
)
_UNCOMMITTED_CHANGES = (
    'would be overwritten',
    'commit your changes or stash them',
    'uncommitted changes',
    'working tree clean',
)
_PERMISSION_DENIED = ('permission denied', 'access denied')
_GIT_NOT_FOUND = ('command not found', 'is not recognized')
_INVALID_BRANCH_NAME = ('not a valid branch name',)


def _matches(text: str, patterns: tuple[str, ...]) -> bool:
    return any(pattern in text for pattern in patterns)


def translate_git_error(
    exc: GitCommandError,
    path: Path | None = None,
    branch: str | None = None,
) -> AppError:
    """Map a raw git failure onto the user-facing error taxonomy.

    Heuristic: checks run in a fixed order and the first match wins. Anything
    unmatched becomes UnknownGitError and keeps git's own message.
    """
    location = str(path or exc.cwd)
    if exc.timed_out:
        return CommandTimeoutError(exc.command, exc.timeout_seconds or 0.0)
    if exc.output_limit_exceeded:
        return CommandOutputLimitError(exc.command, exc.max_output_bytes or 0)

    reason = exc.reason
    text = f'{exc.stderr}\n{exc.stdout}'.lower()

    if _matches(text, _NOT_A_REPOSITORY):
        return NotAGitRepositoryError(location)
    if _matches(text, _ALREADY_EXISTS):
        return BranchAlreadyExistsError(branch or '', location)
    if _matches(text, _REF_PATH_CONFLICT):
        return InvalidBranchNameError(branch or '', reason)
    if _matches(text, _BAD_BASE_BRANCH):
        return InvalidBaseBranchError(location, reason)
    if _matches(text, _UNCOMMITTED_CHANGES):
        return UncommittedChangesError(location, reason)
    if _matches(text, _PERMISSION_DENIED):
        return PermissionDeniedError(location, reason)
    if _matches(text, _GIT_NOT_FOUND):
        return GitNotInstalledError(exc.executable, reason)
    if _matches(text, _INVALID_BRANCH_NAME):
        return InvalidBranchNameError(branch or '', reason)
    return UnknownGitError(exc.command, reason, location)

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from pathlib import Path
import re
from typing import Callable

from branch_helper.core.errors import (
    AppError,
    BranchAlreadyExistsError,
    BranchStateMismatchError,
    InvalidBaseBranchError,
    InvalidBranchNameError,
)
from branch_helper.services.repository_service import (
    RepositoryService,
    repository_service,
)

logger = logging.getLogger(__name__)

# <category>/<slug>, e.g. feat/login-form
STRICT_BRANCH_NAME = re.compile(r'^[a-z0-9]+(?:-[a-z0-9]+)*/[a-z0-9]+(?:-[a-z0-9]+)*$')


class BranchCreationStage(str, Enum):
    VALIDATING = 'validating'
    ENUMERATING = 'enumerating'
    CREATING = 'creating'
    VERIFYING = 'verifying'
    DONE = 'done'


@dataclass(frozen=True)
class BranchCreationResult:
    branch_name: str
    previous_branch: str
    current_branch: str
    created: bool
    checked_out: bool
    base_branch: str | None
    message: str


@dataclass
class _CreationState:
    requested_name: str
    project_path: str | Path
    auto_checkout: bool
    base_branch: str | None
    strict_names: bool
    stage: BranchCreationStage = BranchCreationStage.VALIDATING
    branch_name: str = ''
    repo_dir: Path | None = None
    previous_branch: str = ''
    current_branch: str = ''


class BranchService:
    """Creates a branch at the repository's current position.

    Runs as a fixed stage sequence (validating, enumerating, creating,
    verifying). Each stage either advances the state or raises a typed
    AppError, which ends the request. The final state is re-read from git
    rather than inferred from the create command exiting cleanly.
    """

    def __init__(self, repository_service: RepositoryService | None = None) -> None:
        self._repos = repository_service or RepositoryService()

    def create_branch(
        self,
        branch_name: str,
        project_path: str | Path,
        auto_checkout: bool = True,
        base_branch: str | None = None,
        strict_names: bool = False,
    ) -> BranchCreationResult:
        state = _CreationState(
            requested_name=branch_name,
            project_path=project_path,
            auto_checkout=auto_checkout,
            base_branch=(base_branch or '').strip() or None,
            strict_names=strict_names,
        )
        steps: list[tuple[BranchCreationStage, Callable[[_CreationState], None]]] = [
            (BranchCreationStage.VALIDATING, self._validate),
            (BranchCreationStage.ENUMERATING, self._enumerate),
            (BranchCreationStage.CREATING, self._create),
            (BranchCreationStage.VERIFYING, self._verify),
        ]
        for stage, step in steps:
            state.stage = stage
            logger.debug('create branch stage=%s branch=%s', stage.value, branch_name)
            try:
                step(state)
            except AppError as exc:
                logger.warning(
                    'create branch failed stage=%s branch=%s path=%s code=%s',
                    stage.value,
                    branch_name,
                    project_path,
                    exc.code,
                )
                raise

        state.stage = BranchCreationStage.DONE
        logger.info(
            'branch created branch=%s path=%s previous=%s current=%s',
            state.branch_name,
            state.repo_dir,
            state.previous_branch,
            state.current_branch,
        )
        return self._result(state)

    def _validate(self, state: _CreationState) -> None:
        name = state.requested_name.strip()
        if not name:
            raise InvalidBranchNameError(state.requested_name, 'branch name must not be empty')
        # Leading "-" would be parsed by git as an option.
        if name.startswith('-'):
            raise InvalidBranchNameError(name, 'branch name must not start with "-"')
        if state.base_branch and state.base_branch.startswith('-'):
            raise InvalidBaseBranchError(str(state.project_path), f'invalid base branch: {state.base_branch}')

        state.repo_dir = self._repos.validate_repository(state.project_path).path

        if state.strict_names and not STRICT_BRANCH_NAME.match(name):
            raise InvalidBranchNameError(
                name,
                'expected "<category>/<slug>" using lowercase letters, digits and hyphens',
            )
        self._repos.run_git(
            state.repo_dir,
            ['check-ref-format', '--branch', name],
            branch=name,
        )
        state.branch_name = name

    def _enumerate(self, state: _CreationState) -> None:
        branches = self._repos.list_branches(state.repo_dir)
        if branches.contains(state.branch_name):
            raise BranchAlreadyExistsError(state.branch_name, str(state.repo_dir))
        # Unborn HEAD: "checkout -b" would only repoint HEAD and no ref would exist.
        if not branches.detached and branches.current not in branches.local and not state.base_branch:
            raise InvalidBaseBranchError(
                str(state.repo_dir),
                f'"{branches.current}" has no commits yet; create an initial commit first',
            )
        state.previous_branch = branches.current

    def _create(self, state: _CreationState) -> None:
        if state.auto_checkout:
            args = ['checkout', '-b', state.branch_name]
        else:
            args = ['branch', state.branch_name]
        if state.base_branch:
            args.append(state.base_branch)
            if state.auto_checkout:
                # Without "--" an unknown start point is retried as a pathspec.
                args.append('--')
        self._repos.run_git(state.repo_dir, args, branch=state.branch_name)

    def _verify(self, state: _CreationState) -> None:
        state.current_branch = self._repos.current_branch(state.repo_dir)
        expected = state.branch_name if state.auto_checkout else state.previous_branch

        if not self._repos.has_local_branch(state.repo_dir, state.branch_name):
            raise BranchStateMismatchError(
                state.branch_name,
                expected,
                state.current_branch,
                'branch reference was not found after creation',
            )
        if state.current_branch != expected:
            raise BranchStateMismatchError(
                state.branch_name,
                expected,
                state.current_branch,
                f'HEAD is on "{state.current_branch}" instead of "{expected}"',
            )

    def _result(self, state: _CreationState) -> BranchCreationResult:
        source = state.base_branch or state.previous_branch
        if state.auto_checkout:
            message = f'Branch "{state.branch_name}" created and checked out from "{source}"'
        else:
            message = f'Branch "{state.branch_name}" created from "{source}" without checkout'
        return BranchCreationResult(
            branch_name=state.branch_name,
            previous_branch=state.previous_branch,
            current_branch=state.current_branch,
            created=True,
            checked_out=state.auto_checkout,
            base_branch=state.base_branch,
            message=message,
        )


branch_service = BranchService(repository_service)

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path

from branch_helper.core.errors import (
    GitNotInstalledError,
    InvalidPathError,
    NotAGitRepositoryError,
    PathNotADirectoryError,
    PathNotFoundError,
)
from branch_helper.services.git_command_service import (
    CommandOutcome,
    GitCommandError,
    GitCommandRunner,
    git_command_runner,
)
from branch_helper.services.git_error_translator import translate_git_error

logger = logging.getLogger(__name__)

# git refuses to create a branch literally named HEAD, so this cannot collide.
DETACHED_HEAD = 'HEAD'


@dataclass(frozen=True)
class RepositoryHandle:
    path: Path
    exists: bool
    is_directory: bool
    has_git_dir: bool

    @classmethod
    def inspect(cls, raw_path: str | Path) -> RepositoryHandle:
        path = Path(raw_path)
        if not str(raw_path).strip() or not path.is_absolute():
            raise InvalidPathError(str(raw_path))
        exists = path.exists()
        is_directory = exists and path.is_dir()
        return cls(
            path=path,
            exists=exists,
            is_directory=is_directory,
            has_git_dir=is_directory and (path / '.git').exists(),
        )


@dataclass(frozen=True)
class RepositoryValidation:
    path: Path
    git_version: str
    message: str


@dataclass(frozen=True)
class RepoStatus:
    current_branch: str
    detached: bool
    is_dirty: bool
    changed_files: tuple[str, ...]
    last_commit: str | None
    remotes: str | None

    @property
    def is_clean(self) -> bool:
        return not self.is_dirty


@dataclass(frozen=True)
class BranchSet:
    current: str
    detached: bool
    local: tuple[str, ...]
    remote: tuple[str, ...]
    all: tuple[str, ...]

    def contains(self, branch: str) -> bool:
        return branch in self.all


@dataclass(frozen=True)
class GitInstallation:
    installed: bool
    version: str | None
    message: str


class RepositoryService:
    """Read-only repository introspection.

    Every public method validates the path first and never mutates the
    repository. Optional reads (last commit, remotes, remote branches) degrade
    to empty values instead of failing the request.
    """

    def __init__(self, runner: GitCommandRunner | None = None) -> None:
        self._runner = runner or git_command_runner

    @property
    def runner(self) -> GitCommandRunner:
        return self._runner

    def validate_repository(self, raw_path: str | Path) -> RepositoryValidation:
        handle = RepositoryHandle.inspect(raw_path)
        location = str(handle.path)
        if not handle.exists:
            raise PathNotFoundError(location)
        if not handle.is_directory:
            raise PathNotADirectoryError(location)
        if not handle.has_git_dir:
            raise NotAGitRepositoryError(location)

        try:
            outcome = self._runner.run(['--version'], handle.path)
        except GitCommandError as exc:
            raise GitNotInstalledError(self._runner.git_executable, exc.reason) from exc

        return RepositoryValidation(
            path=handle.path,
            git_version=outcome.stdout.strip(),
            message='Valid Git repository',
        )

    def get_status(self, raw_path: str | Path) -> RepoStatus:
        repo_dir = self.validate_repository(raw_path).path

        current_branch = self.current_branch(repo_dir)
        porcelain = self.run_git(repo_dir, ['status', '--porcelain']).stdout
        changed_files = self._parse_porcelain(porcelain)

        last_commit = self._try_git(repo_dir, ['log', '--oneline', '-1'])
        remotes = self._try_git(repo_dir, ['remote', '-v'])

        return RepoStatus(
            current_branch=current_branch,
            detached=current_branch == DETACHED_HEAD,
            is_dirty=bool(porcelain.strip()),
            changed_files=changed_files,
            last_commit=last_commit or None,
            remotes=remotes or None,
        )

    def list_branches(self, raw_path: str | Path) -> BranchSet:
        repo_dir = self.validate_repository(raw_path).path

        local_refs = self.run_git(
            repo_dir,
            ['for-each-ref', '--format=%(refname)', 'refs/heads'],
        ).stdout
        local = tuple(
            sorted(
                ref[len('refs/heads/') :]
                for ref in self._lines(local_refs)
                if ref.startswith('refs/heads/')
            )
        )

        remote_refs = self._try_git(
            repo_dir,
            ['for-each-ref', '--format=%(refname)', 'refs/remotes'],
        )
        remote = self._strip_remote_prefixes(remote_refs or '')

        current = self.current_branch(repo_dir)
        return BranchSet(
            current=current,
            detached=current == DETACHED_HEAD,
            local=local,
            remote=remote,
            all=tuple(sorted(set(local) | set(remote))),
        )

    def current_branch(self, repo_dir: Path) -> str:
        branch = self.run_git(repo_dir, ['branch', '--show-current']).stdout.strip()
        return branch or DETACHED_HEAD

    def has_local_branch(self, repo_dir: Path, branch: str) -> bool:
        try:
            self._runner.run(
                ['show-ref', '--verify', '--quiet', f'refs/heads/{branch}'],
                repo_dir,
            )
            return True
        except GitCommandError as exc:
            if exc.timed_out or exc.returncode is None:
                raise translate_git_error(exc, path=repo_dir, branch=branch) from exc
            return False

    def check_git_installation(self, cwd: Path | None = None) -> GitInstallation:
        try:
            outcome = self._runner.run(['--version'], cwd or Path.cwd())
        except GitCommandError as exc:
            logger.warning('git installation check failed: %s', exc.reason)
            return GitInstallation(
                installed=False,
                version=None,
                message=f'Git not found or not working: {exc.reason}',
            )
        return GitInstallation(
            installed=True,
            version=outcome.stdout.strip(),
            message='Git installed and working',
        )

    def run_git(
        self,
        repo_dir: Path,
        args: list[str],
        branch: str | None = None,
    ) -> CommandOutcome:
        try:
            return self._runner.run(args, repo_dir)
        except GitCommandError as exc:
            raise translate_git_error(exc, path=repo_dir, branch=branch) from exc

    def _try_git(self, repo_dir: Path, args: list[str]) -> str | None:
        try:
            return self._runner.run(args, repo_dir).stdout.strip()
        except GitCommandError as exc:
            # e.g. "log" on a repository with no commits yet.
            logger.debug('optional git read failed command=%s reason=%s', exc.command, exc.reason)
            return None

    def _strip_remote_prefixes(self, output: str) -> tuple[str, ...]:
        branches: set[str] = set()
        for ref in self._lines(output):
            if not ref.startswith('refs/remotes/'):
                continue
            # refs/remotes/<remote>/<branch>
            parts = ref[len('refs/remotes/') :].split('/', 1)
            if len(parts) != 2:
                continue
            name = parts[1].strip()
            if not name or name == 'HEAD':
                continue
            branches.add(name)
        return tuple(sorted(branches))

    def _parse_porcelain(self, output: str) -> tuple[str, ...]:
        files: list[str] = []
        for line in output.splitlines():
            text = line.rstrip()
            if not text:
                continue
            # porcelain v1: two status columns, a space, then the path.
            if len(text) > 3:
                files.append(text[3:].strip())
            else:
                files.append(text.strip())
        return tuple(files)

    def _lines(self, output: str) -> list[str]:
        return [line.strip() for line in output.splitlines() if line.strip()]


repository_service = RepositoryService(git_command_runner)

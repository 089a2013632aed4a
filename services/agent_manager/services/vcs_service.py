"""
Git operations inside agent containers.

Commands run as ``git`` in the agent workspace (``/app``). Any failure other
than a lookup error surfaces as ``BadRequestError("Failed to <op>: ...")``.
"""

import base64
import logging
import re
import shlex
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.orm import Session

from shared.errors import APIException, BadRequestError

from ..config import ManagerSettings
from ..schemas import CreateBranchRequest, GitBranch, GitDiff, GitFileStatus, GitStatus, ResolveConflictRequest
from .common import require_container
from .docker_service import DockerService
from .files_service import BASE_PATH, AgentFileSystemService

logger = logging.getLogger(__name__)

BRANCH_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9/_-]+$")
_BRANCH_CHARS = re.compile(r"^[a-zA-Z0-9._\-/]+$")

CREDENTIAL_ERRORS = (
    "Authentication failed",
    "fatal: could not read Username",
    "fatal: could not read Password",
    "Permission denied",
)
CREDENTIALS_HINT = (
    "No valid credentials available. Please configure Git credentials (GIT_USERNAME and GIT_TOKEN) "
    "or SSH key (GIT_PRIVATE_KEY)."
)


def clean_output(output: str, trim: bool = True) -> str:
    """Keep printable ASCII, tabs and newlines."""
    if not output:
        return ""
    cleaned = "".join(c for c in output.replace("\0", "").replace("\r", "") if 32 <= ord(c) <= 126 or c in "\t\n")
    cleaned = cleaned.rstrip("\n")
    return cleaned.strip() if trim else cleaned


def is_valid_branch_name(name: str) -> bool:
    if not name or name.strip() != name:
        return False
    if name.startswith(".") or name.endswith((".", "/")) or ".." in name:
        return False
    return bool(_BRANCH_CHARS.match(name))


def clean_branch_name(name: str) -> str:
    cleaned = clean_output(name).strip(" \t*")
    return cleaned if is_valid_branch_name(cleaned) else ""


def parse_porcelain_line(line: str) -> tuple[str, str, str] | None:
    """``(status, path, type)`` for one ``git status --porcelain`` line."""
    if len(line) < 4:
        return None
    status = line[:2]
    path = line[2:].strip()
    if not path:
        return None
    staged, unstaged = status[0], status[1]
    if staged == "?" and unstaged == "?":
        kind = "untracked"
    elif staged != " " and unstaged != " ":
        kind = "both"
    elif staged != " ":
        kind = "staged"
    else:
        kind = "unstaged"
    return status, path, kind


@contextmanager
def vcs_operation(action: str, agent_id: uuid.UUID, credentials_hint: bool = False) -> Iterator[None]:
    try:
        yield
    except APIException:
        raise
    except Exception as e:
        message = str(e) or "Unknown error"
        logger.error(f"Error during '{action}' for agent {agent_id}: {message}")
        if credentials_hint and any(marker in message for marker in CREDENTIAL_ERRORS):
            raise BadRequestError(f"Failed to {action}: {CREDENTIALS_HINT}")
        raise BadRequestError(f"Failed to {action}: {message}")


class AgentsVcsService:
    def __init__(self, session: Session, docker_service: DockerService, settings: ManagerSettings):
        self.session = session
        self.docker_service = docker_service
        self.settings = settings
        self.files = AgentFileSystemService(session, docker_service)

    def _git(
        self,
        container_id: str,
        args: str,
        *,
        trim: bool = True,
        no_prompt: bool = False,
        check_exit_code: bool = False,
    ) -> str:
        env = "GIT_TERMINAL_PROMPT=0 GIT_ASKPASS=false " if no_prompt else ""
        script = f"cd {BASE_PATH} && {env}git {args}"
        output = self.docker_service.send_command_to_container(
            container_id, f"sh -c {shlex.quote(script)}", check_exit_code=check_exit_code
        )
        return clean_output(output, trim)

    def _current_branch(self, container_id: str) -> str:
        return clean_branch_name(self._git(container_id, "rev-parse --abbrev-ref HEAD"))

    def _default_branch(self, container_id: str) -> str:
        output = self._git(
            container_id,
            "symbolic-ref refs/remotes/origin/HEAD 2>/dev/null | sed 's@^refs/remotes/origin/@@' || echo main",
        )
        return clean_branch_name(output) or "main"

    def _ahead_behind(self, container_id: str, branch: str) -> tuple[int, int]:
        quoted = shlex.quote(branch)
        remote = self._git(container_id, f'ls-remote --heads origin {quoted} 2>/dev/null || echo ""')
        if remote.strip():
            output = self._git(
                container_id, f'rev-list --left-right --count {quoted}...origin/{quoted} 2>/dev/null || echo "0 0"'
            )
            numbers = [int(n) if n.isdigit() else 0 for n in output.split()[:2]]
            numbers += [0] * (2 - len(numbers))
            return numbers[0], numbers[1]

        default = shlex.quote(self._default_branch(container_id))
        output = self._git(container_id, f'rev-list --count {quoted} --not origin/{default} 2>/dev/null || echo "0"')
        return (int(output) if output.isdigit() else 0), 0

    def _is_binary(self, container_id: str, path: str) -> bool:
        output = self._git(container_id, f"check-attr binary -- {shlex.quote(path)}")
        return "binary: set" in output

    def _file_size(self, container_id: str, path: str, revision: str | None) -> int | None:
        quoted = shlex.quote(path)
        if revision is None:
            script = f"cd {BASE_PATH} && stat -c %s {quoted} 2>/dev/null || echo 0"
            output = self.docker_service.send_command_to_container(container_id, f"sh -c {shlex.quote(script)}")
        else:
            output = self._git(container_id, f'cat-file -s {revision}:{quoted} 2>/dev/null || echo "0"')
        output = output.strip()
        return int(output) if output.isdigit() else None

    # =========================================================================
    # Read
    # =========================================================================

    def get_status(self, agent_id: uuid.UUID) -> GitStatus:
        container_id = require_container(self.session, agent_id)
        with vcs_operation("get git status", agent_id):
            branch = self._current_branch(container_id)
            try:
                ahead, behind = self._ahead_behind(container_id, branch)
            except RuntimeError:
                ahead, behind = 0, 0

            files = []
            for line in self._git(container_id, "status --porcelain", trim=False).split("\n"):
                parsed = parse_porcelain_line(line)
                if parsed is None:
                    continue
                status, path, kind = parsed
                files.append(
                    GitFileStatus(path=path, status=status, type=kind, is_binary=self._is_binary(container_id, path))
                )

            return GitStatus(
                current_branch=branch,
                is_clean=not files,
                has_unpushed_commits=ahead > 0,
                ahead_count=ahead,
                behind_count=behind,
                files=files,
            )

    def _last_commit(self, container_id: str, ref: str) -> tuple[str, str]:
        output = self._git(container_id, f"log -1 --format=%h%x7c%s {shlex.quote(ref)}")
        commit, _, message = output.partition("|")
        return clean_output(commit), clean_output(message)

    def get_branches(self, agent_id: uuid.UUID) -> list[GitBranch]:
        container_id = require_container(self.session, agent_id)
        with vcs_operation("get branches", agent_id):
            current = self._current_branch(container_id)
            local_names = [n for n in map(clean_branch_name, self._git(container_id, "branch").split("\n")) if n]
            remote_refs = [
                n
                for n in map(clean_branch_name, self._git(container_id, "branch -r").split("\n"))
                if n and "HEAD" not in n
            ]

            branches = []
            for name in local_names:
                commit, message = self._last_commit(container_id, name)
                try:
                    ahead, behind = self._ahead_behind(container_id, name)
                except RuntimeError:
                    ahead, behind = None, None
                branches.append(
                    GitBranch(
                        name=name,
                        ref=f"refs/heads/{name}",
                        is_current=name == current,
                        is_remote=False,
                        commit=commit,
                        message=message,
                        ahead_count=ahead,
                        behind_count=behind,
                    )
                )

            for remote_ref in remote_refs:
                remote, _, name = remote_ref.removeprefix("remotes/").partition("/")
                name = clean_branch_name(name)
                if not name or name in local_names:
                    continue
                commit, message = self._last_commit(container_id, remote_ref)
                branches.append(
                    GitBranch(
                        name=name,
                        ref=f"refs/remotes/{remote_ref}",
                        is_current=False,
                        is_remote=True,
                        remote=remote,
                        commit=commit,
                        message=message,
                    )
                )
            return branches

    def get_file_diff(self, agent_id: uuid.UUID, path: str) -> GitDiff:
        container_id = require_container(self.session, agent_id)
        with vcs_operation("get file diff", agent_id):
            if self._is_binary(container_id, path):
                return GitDiff(
                    path=path,
                    original_content="",
                    modified_content="",
                    encoding="base64",
                    is_binary=True,
                    original_size=self._file_size(container_id, path, "HEAD"),
                    modified_size=self._file_size(container_id, path, None),
                )

            original = self._git(container_id, f'show HEAD:{shlex.quote(path)} 2>/dev/null || echo ""', trim=False)
            modified = self.files.read_file(agent_id, path)
            return GitDiff(
                path=path,
                original_content=base64.b64encode(original.encode("utf-8")).decode("ascii"),
                modified_content=modified.content,
                encoding="utf-8",
                is_binary=False,
            )

    # =========================================================================
    # Index and commits
    # =========================================================================

    def stage_files(self, agent_id: uuid.UUID, files: list[str]) -> None:
        container_id = require_container(self.session, agent_id)
        with vcs_operation("stage files", agent_id):
            args = "add -A" if not files else "add -- " + " ".join(shlex.quote(f) for f in files)
            self._git(container_id, args, check_exit_code=True)

    def unstage_files(self, agent_id: uuid.UUID, files: list[str]) -> None:
        container_id = require_container(self.session, agent_id)
        with vcs_operation("unstage files", agent_id):
            args = "reset HEAD" if not files else "reset HEAD -- " + " ".join(shlex.quote(f) for f in files)
            self._git(container_id, args, check_exit_code=True)

    def commit(self, agent_id: uuid.UUID, message: str) -> None:
        container_id = require_container(self.session, agent_id)
        if not message or not message.strip():
            raise BadRequestError("Commit message is required")
        with vcs_operation("commit", agent_id):
            author = shlex.quote(f"user.name={self.settings.GIT_COMMIT_AUTHOR_NAME}")
            email = shlex.quote(f"user.email={self.settings.GIT_COMMIT_AUTHOR_EMAIL}")
            self._git(container_id, f"-c {author} -c {email} commit -m {shlex.quote(message)}", check_exit_code=True)

    # =========================================================================
    # Remote
    # =========================================================================

    def push(self, agent_id: uuid.UUID, force: bool = False) -> None:
        container_id = require_container(self.session, agent_id)
        with vcs_operation("push (force)" if force else "push", agent_id, credentials_hint=True):
            branch = self._current_branch(container_id)
            remote = self._git(container_id, f'ls-remote --heads origin {shlex.quote(branch)} 2>/dev/null || echo ""')
            flags = []
            if force:
                flags.append("--force-with-lease")
            if not remote.strip():
                flags.append("-u")
            args = " ".join(["push", *flags, "origin", shlex.quote(branch)])
            self._git(container_id, args, no_prompt=True, check_exit_code=True)

    def pull(self, agent_id: uuid.UUID) -> None:
        container_id = require_container(self.session, agent_id)
        with vcs_operation("pull", agent_id, credentials_hint=True):
            branch = self._current_branch(container_id)
            self._git(container_id, f"pull origin {shlex.quote(branch)}", no_prompt=True, check_exit_code=True)

    def fetch(self, agent_id: uuid.UUID) -> None:
        container_id = require_container(self.session, agent_id)
        with vcs_operation("fetch", agent_id, credentials_hint=True):
            self._git(container_id, "fetch origin", no_prompt=True, check_exit_code=True)

    def rebase(self, agent_id: uuid.UUID, branch: str) -> None:
        container_id = require_container(self.session, agent_id)
        with vcs_operation("rebase", agent_id):
            self._git(container_id, f"rebase {shlex.quote(clean_branch_name(branch))}", check_exit_code=True)

    # =========================================================================
    # Branches
    # =========================================================================

    def switch_branch(self, agent_id: uuid.UUID, branch: str) -> None:
        container_id = require_container(self.session, agent_id)
        with vcs_operation("switch branch", agent_id):
            self._git(container_id, f"checkout {shlex.quote(clean_branch_name(branch))}", check_exit_code=True)

    def create_branch(self, agent_id: uuid.UUID, dto: CreateBranchRequest) -> None:
        container_id = require_container(self.session, agent_id)
        name = dto.name.strip()
        if dto.use_conventional_prefix and dto.conventional_type:
            prefix = f"{dto.conventional_type}/"
            if not name.startswith(prefix):
                name = prefix + name
        if not BRANCH_NAME_PATTERN.match(name):
            raise BadRequestError("Invalid branch name. Only alphanumeric characters, /, _, and - are allowed.")

        with vcs_operation("create branch", agent_id):
            base = shlex.quote(dto.base_branch or "HEAD")
            self._git(container_id, f"checkout -b {shlex.quote(name)} {base}", check_exit_code=True)

    def delete_branch(self, agent_id: uuid.UUID, branch: str) -> None:
        container_id = require_container(self.session, agent_id)
        with vcs_operation("delete branch", agent_id):
            name = clean_branch_name(branch)
            if name == self._current_branch(container_id):
                raise BadRequestError("Cannot delete the current branch")
            self._git(container_id, f"branch -D {shlex.quote(name)}", check_exit_code=True)

    def resolve_conflict(self, agent_id: uuid.UUID, dto: ResolveConflictRequest) -> None:
        container_id = require_container(self.session, agent_id)
        checkout_flags = {"yours": "--theirs", "mine": "--ours", "both": None}
        if dto.strategy not in checkout_flags:
            raise BadRequestError(f"Unknown conflict resolution strategy: {dto.strategy}")

        with vcs_operation("resolve conflict", agent_id):
            path = shlex.quote(dto.path)
            flag = checkout_flags[dto.strategy]
            if flag:
                self._git(container_id, f"checkout {flag} -- {path}", check_exit_code=True)
            self._git(container_id, f"add -- {path}", check_exit_code=True)

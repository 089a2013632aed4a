"""
File access inside agent containers.

Paths are relative to the agent workspace (``/app``). File content always
travels base64-encoded; ``encoding`` tells the client whether the decoded
bytes are text (``utf-8``) or binary (``base64``).
"""

import base64
import binascii
import logging
import shlex
import uuid
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from shared.errors import BadRequestError, NotFoundError

from ..schemas import FileContent, FileNode
from .common import require_container
from .docker_service import DockerService

logger = logging.getLogger(__name__)

BASE_PATH = "/app"
MAX_FILE_SIZE = 10 * 1024 * 1024

BINARY_EXTENSIONS = (
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".svg", ".ico", ".webp", ".pdf",
    ".zip", ".tar", ".gz", ".exe", ".dll", ".so", ".dylib", ".bin",
    ".woff", ".woff2", ".ttf", ".eot", ".otf",
)

CONTROL_CHAR_THRESHOLD = 0.1


def sanitize_path(path: str) -> str:
    if not path or not path.strip():
        raise BadRequestError("Path cannot be empty")
    normalized = path.lstrip("/").strip()
    if ".." in normalized:
        raise BadRequestError("Path traversal is not allowed")
    if "\0" in normalized:
        raise BadRequestError("Path cannot contain null bytes")
    return normalized


def container_path(path: str) -> str:
    return f"{BASE_PATH}/{sanitize_path(path)}"


def is_likely_binary_path(path: str) -> bool:
    return path.lower().endswith(BINARY_EXTENSIONS)


def _is_control(char: str) -> bool:
    code = ord(char)
    return code <= 8 or code in (11, 12) or 14 <= code <= 31 or 127 <= code <= 159


def looks_binary(data: bytes) -> bool:
    """More than 10% control characters in the first 512 characters."""
    sample = data.decode("utf-8", errors="replace")[:512]
    if not sample:
        return False
    return sum(1 for c in sample if _is_control(c)) / len(sample) > CONTROL_CHAR_THRESHOLD


def _not_found(error: Exception) -> bool:
    message = str(error)
    return "No such file" in message or "not found" in message


def _sh(script: str) -> str:
    return f"sh -c {shlex.quote(script)}"


class AgentFileSystemService:
    def __init__(self, session: Session, docker_service: DockerService):
        self.session = session
        self.docker_service = docker_service

    def read_file(self, agent_id: uuid.UUID, path: str) -> FileContent:
        container_id = require_container(self.session, agent_id)
        target = shlex.quote(container_path(path))
        script = f'[ -f {target} ] || {{ echo "No such file"; exit 1; }}; base64 {target} | tr -d "\\n"'
        try:
            output = self.docker_service.send_command_to_container(container_id, _sh(script), check_exit_code=True)
        except RuntimeError as e:
            if _not_found(e):
                raise NotFoundError(f"File not found: {path}")
            raise

        encoded = "".join(output.split())
        try:
            data = base64.b64decode(encoded, validate=True)
        except binascii.Error:
            logger.warning(f"Invalid base64 content detected for {path}, attempting to clean")
            encoded = "".join(c for c in encoded if c.isalnum() or c in "+/=")
            data = base64.b64decode(encoded + "=" * (-len(encoded) % 4))

        if len(data) > MAX_FILE_SIZE:
            raise BadRequestError(f"File size exceeds maximum allowed size of {MAX_FILE_SIZE} bytes")

        encoding = "base64" if is_likely_binary_path(path) or looks_binary(data) else "utf-8"
        return FileContent(content=base64.b64encode(data).decode("ascii"), encoding=encoding)

    def write_file(self, agent_id: uuid.UUID, path: str, content: str, encoding: str | None = None) -> None:
        container_id = require_container(self.session, agent_id)
        target = container_path(path)
        if len(content) * 3 / 4 > MAX_FILE_SIZE:
            raise BadRequestError(f"File content size exceeds maximum allowed size of {MAX_FILE_SIZE} bytes")

        quoted = shlex.quote(target)
        script = f'mkdir -p "$(dirname {quoted})" && base64 -d > {quoted}'
        self.docker_service.send_command_to_container(container_id, _sh(script), input=content, check_exit_code=True)
        logger.debug(f"File written: {path} for agent {agent_id} (encoding: {encoding or 'utf-8'})")

    def list_directory(self, agent_id: uuid.UUID, path: str = ".") -> list[FileNode]:
        container_id = require_container(self.session, agent_id)
        directory = shlex.quote(container_path(path))
        script = (
            f'dir={directory}; [ -d "$dir" ] || {{ echo "No such file or directory"; exit 1; }}; '
            'ls -1A "$dir" | while IFS= read -r item; do full="$dir/$item"; '
            'if [ -d "$full" ]; then echo "directory|$item|0|$(stat -c %Y "$full" 2>/dev/null || echo 0)"; '
            'else echo "file|$item|$(stat -c %s "$full" 2>/dev/null || echo 0)|$(stat -c %Y "$full" 2>/dev/null || echo 0)"; '
            "fi; done"
        )
        try:
            output = self.docker_service.send_command_to_container(container_id, _sh(script), check_exit_code=True)
        except RuntimeError as e:
            if _not_found(e):
                raise NotFoundError(f"Directory not found: {path}")
            raise

        prefix = "" if sanitize_path(path) in (".", "./") else sanitize_path(path).rstrip("/")
        nodes = []
        for line in output.splitlines():
            entry_type, sep, rest = line.strip().partition("|")
            if not sep or entry_type not in ("file", "directory") or rest.count("|") < 2:
                if line.strip():
                    logger.warning(f"Skipping invalid directory entry: {line!r}")
                continue
            name, size, mtime = rest.rsplit("|", 2)
            modified = int(mtime) if mtime.isdigit() else 0
            nodes.append(
                FileNode(
                    name=name,
                    type=entry_type,
                    path=f"{prefix}/{name}" if prefix else name,
                    size=int(size) if entry_type == "file" and size.isdigit() else None,
                    modified_at=datetime.fromtimestamp(modified, UTC) if modified > 0 else None,
                )
            )

        nodes.sort(key=lambda node: (node.type != "directory", node.name))
        return nodes

    def create_file_or_directory(
        self, agent_id: uuid.UUID, path: str, entry_type: str, content: str | None = None
    ) -> None:
        container_id = require_container(self.session, agent_id)
        target = shlex.quote(container_path(path))
        if entry_type == "directory":
            self.docker_service.send_command_to_container(container_id, f"mkdir -p {target}", check_exit_code=True)
        elif content is not None:
            self.write_file(agent_id, path, content, "utf-8")
        else:
            script = f'mkdir -p "$(dirname {target})" && touch {target}'
            self.docker_service.send_command_to_container(container_id, _sh(script), check_exit_code=True)
        logger.debug(f"Created {entry_type}: {path} for agent {agent_id}")

    def delete_file_or_directory(self, agent_id: uuid.UUID, path: str) -> None:
        container_id = require_container(self.session, agent_id)
        self.docker_service.send_command_to_container(
            container_id, f"rm -rf {shlex.quote(container_path(path))}", check_exit_code=True
        )
        logger.debug(f"Deleted: {path} for agent {agent_id}")

    def move_file_or_directory(self, agent_id: uuid.UUID, source: str, destination: str) -> None:
        container_id = require_container(self.session, agent_id)
        src = shlex.quote(container_path(source))
        dest = shlex.quote(container_path(destination))
        script = (
            f'[ -e {src} ] || {{ echo "No such file or directory"; exit 1; }}; '
            f'mkdir -p "$(dirname {dest})" && mv {src} {dest}'
        )
        try:
            self.docker_service.send_command_to_container(container_id, _sh(script), check_exit_code=True)
        except RuntimeError as e:
            if _not_found(e):
                raise NotFoundError(f"File or directory not found: {source}")
            raise
        logger.debug(f"Moved {source} -> {destination} for agent {agent_id}")

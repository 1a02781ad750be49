"""Repository gap scanner.

Fetches a repository's recursive tree and its ``package.json`` and reports
which of four DevOps artifacts are present: a root Dockerfile, a GitHub
Actions workflow, a root README and a declared test script. A fuller
inspection also detects a Node backend or React frontend and the
environment variables the code expects.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

import httpx

from shipiq.config import Settings
from shipiq.exceptions import (
    ConfigurationError,
    InvalidRepositoryUrlError,
    RepositoryNotFoundError,
    UpstreamError,
)
from shipiq.github_auth import TokenBroker
from shipiq.github_client import DEFAULT_API_URL, DEFAULT_TIMEOUT, GitHubClient
from shipiq.models.scan import (
    GapReport,
    RepoRef,
    RepositoryTree,
    RepoUrlParse,
    ScanResult,
    StackReport,
    TreeEntry,
)

logger = logging.getLogger(__name__)

GITHUB_HOSTS = {"github.com", "www.github.com"}
CI_WORKFLOW_PREFIX = ".github/workflows/"
FALLBACK_BRANCHES = ("master", "main")
DEFAULT_MANIFEST = "package.json"

ROOT_BACKEND_ENTRY = re.compile(r"^(?:src/)?(?:server|index|app|main)\.(?:js|ts)$|^bin/www$")
ROOT_FRONTEND_MARKER = re.compile(
    r"^(?:vite|next|webpack)\.config\.(?:js|ts|mjs|cjs)$"
    r"|^src/(?:App|index|main)\.(?:jsx|tsx|js|ts)$"
    r"|^public/index\.html$"
)
ENV_TEMPLATE_NAMES = (".env.example", ".env.sample")
CODE_FILE_PATTERN = re.compile(r"\.(?:js|ts|jsx|tsx)$")
PROCESS_ENV_PATTERN = re.compile(r"process\.env\.([A-Z0-9_]+)")
MAX_CODE_FILES = 30
# Every detected backend listens on a port.
IMPLIED_BACKEND_VARS = ("PORT",)


def parse_repo_url(url: Any) -> RepoUrlParse:
    """Extract owner/repo from a GitHub URL. Never raises."""
    if not isinstance(url, str) or not url.strip():
        return RepoUrlParse.failure("Repository URL is empty")
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return RepoUrlParse.failure(f"Unparsable repository URL: {url}")

    if parsed.scheme not in ("http", "https"):
        return RepoUrlParse.failure(f"Unsupported URL scheme: {parsed.scheme or '<none>'}")
    if (parsed.hostname or "").lower() not in GITHUB_HOSTS:
        return RepoUrlParse.failure(f"Not a GitHub URL: {parsed.hostname}")

    parts = [p for p in parsed.path.strip("/").split("/") if p]
    if len(parts) < 2:
        return RepoUrlParse.failure("URL does not name an owner and a repository")

    owner = parts[0]
    repo = parts[1][: -len(".git")] if parts[1].endswith(".git") else parts[1]
    if not repo:
        return RepoUrlParse.failure("URL does not name a repository")
    return RepoUrlParse.success(owner, repo)


def branch_candidates(branch: Optional[str]) -> List[str]:
    """Requested branch first, then master, then main, without duplicates."""
    candidates: List[str] = []
    for ref in (branch, *FALLBACK_BRANCHES):
        if ref and ref not in candidates:
            candidates.append(ref)
    return candidates


def decode_manifest(payload: Any) -> Optional[Dict[str, Any]]:
    """Decode a contents API payload (base64 JSON envelope or raw text)."""
    if isinstance(payload, dict):
        content = payload.get("content")
        if content is None:
            return None
        if payload.get("encoding", "base64") == "base64":
            try:
                text = base64.b64decode(content).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError, ValueError):
                return None
        else:
            text = content
    elif isinstance(payload, str):
        text = payload
    else:
        return None

    try:
        manifest = json.loads(text)
    except json.JSONDecodeError:
        return None
    return manifest if isinstance(manifest, dict) else None


def _is_file(entry: TreeEntry) -> bool:
    return entry.type != "tree"


def has_root_dockerfile(entries: Iterable[TreeEntry]) -> bool:
    return any(_is_file(e) and e.path.lower() == "dockerfile" for e in entries)


def has_ci_workflow(entries: Iterable[TreeEntry]) -> bool:
    # The directory marker itself (zero-length remainder) does not count.
    return any(
        _is_file(e)
        and e.path.startswith(CI_WORKFLOW_PREFIX)
        and len(e.path) > len(CI_WORKFLOW_PREFIX)
        for e in entries
    )


def has_root_readme(entries: Iterable[TreeEntry]) -> bool:
    for e in entries:
        name = e.path.lower()
        if not _is_file(e) or "/" in name:
            continue
        if name == "readme" or name.startswith("readme."):
            return True
    return False


def has_test_script(manifest: Optional[Dict[str, Any]]) -> bool:
    if not manifest:
        return False
    scripts = manifest.get("scripts")
    if not isinstance(scripts, dict):
        return False
    test = scripts.get("test")
    return isinstance(test, str) and bool(test.strip())


def build_gap_report(
    entries: Sequence[TreeEntry], manifest: Optional[Dict[str, Any]]
) -> GapReport:
    return GapReport(
        dockerfile=has_root_dockerfile(entries),
        ci=has_ci_workflow(entries),
        readme=has_root_readme(entries),
        tests=has_test_script(manifest),
    )


def _has_folder(paths: Sequence[str], folder: str) -> bool:
    return any(p == folder or p.startswith(folder + "/") for p in paths)


def detect_stack(entries: Iterable[TreeEntry]) -> StackReport:
    """Detect a Node backend and a React frontend, in a folder or at the root."""
    paths = [e.path for e in entries]
    has_root_manifest = DEFAULT_MANIFEST in paths

    backend_folder = _has_folder(paths, "backend")
    root_backend = has_root_manifest and any(ROOT_BACKEND_ENTRY.match(p) for p in paths)
    frontend_folder = _has_folder(paths, "frontend")
    root_frontend = has_root_manifest and any(ROOT_FRONTEND_MARKER.match(p) for p in paths)

    has_backend = backend_folder or root_backend
    has_frontend = frontend_folder or root_frontend
    return StackReport(
        has_backend=has_backend,
        has_frontend=has_frontend,
        has_backend_folder=backend_folder,
        has_frontend_folder=frontend_folder,
        backend_path=("backend/" if backend_folder else "") if has_backend else None,
        frontend_path=("frontend/" if frontend_folder else "") if has_frontend else None,
        backend_type="node" if has_backend else None,
        frontend_type="react" if has_frontend else None,
    )


def parse_env_file(content: str) -> List[str]:
    """Variable names declared in a ``.env`` style template."""
    names: List[str] = []
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        name = line.split("=", 1)[0].strip()
        if name:
            names.append(name)
    return names


def extract_env_vars_from_code(content: str) -> List[str]:
    return PROCESS_ENV_PATTERN.findall(content)


def _is_code_file(entry: TreeEntry) -> bool:
    return (
        _is_file(entry)
        and CODE_FILE_PATTERN.search(entry.path) is not None
        and not entry.path.startswith("node_modules/")
    )


class GapScanner:
    """Reads repository contents from GitHub and derives a ``GapReport``.

    Reads are authenticated with an installation token when an installation
    id is passed, anonymous otherwise (public repositories only).
    """

    def __init__(
        self,
        broker: Optional[TokenBroker] = None,
        api_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        default_branch: str = "main",
        manifest_path: str = DEFAULT_MANIFEST,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.broker = broker
        self.api_url = api_url
        self.timeout = timeout
        self.default_branch = default_branch
        self.manifest_path = manifest_path
        self._transport = transport

    @classmethod
    def from_settings(
        cls, settings: Settings, broker: Optional[TokenBroker] = None
    ) -> "GapScanner":
        return cls(
            broker=broker,
            api_url=settings.github.api_url,
            timeout=settings.github.request_timeout,
            default_branch=settings.scanner.default_branch,
            manifest_path=settings.scanner.manifest_path,
        )

    def _client(self, installation_id: Optional[int]) -> GitHubClient:
        token = None
        if installation_id is not None:
            if self.broker is None:
                raise ConfigurationError(
                    "A token broker is required for authenticated repository reads"
                )
            token = self.broker.get_installation_token(installation_id)
        return GitHubClient(
            token=token,
            api_url=self.api_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    def fetch_tree(
        self,
        owner: str,
        repo: str,
        branch: Optional[str] = None,
        installation_id: Optional[int] = None,
    ) -> RepositoryTree:
        with self._client(installation_id) as gh:
            return self._fetch_tree(gh, owner, repo, branch or self.default_branch)

    def fetch_manifest(
        self,
        owner: str,
        repo: str,
        candidates: Optional[Sequence[str]] = None,
        installation_id: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        refs = list(candidates) if candidates else branch_candidates(self.default_branch)
        with self._client(installation_id) as gh:
            return self._fetch_manifest(gh, owner, repo, refs)

    def detect_gaps(
        self,
        owner: str,
        repo: str,
        branch: Optional[str] = None,
        installation_id: Optional[int] = None,
    ) -> GapReport:
        requested = branch or self.default_branch
        with self._client(installation_id) as gh:
            tree, manifest = self._read_repository(gh, owner, repo, requested)

        report = build_gap_report(tree.entries, manifest)
        logger.info(
            "Scanned %s/%s@%s: missing=%s", owner, repo, tree.ref, report.missing
        )
        return report

    def inspect(
        self,
        owner: str,
        repo: str,
        branch: Optional[str] = None,
        installation_id: Optional[int] = None,
    ) -> ScanResult:
        """Gap report plus the detected stack and its required variables."""
        requested = branch or self.default_branch
        with self._client(installation_id) as gh:
            tree, manifest = self._read_repository(gh, owner, repo, requested)
            stack = detect_stack(tree.entries)
            env_vars = self._discover_env_vars(gh, owner, repo, tree, stack)

        gaps = build_gap_report(tree.entries, manifest)
        logger.info(
            "Inspected %s/%s@%s: missing=%s backend=%s frontend=%s env_vars=%d",
            owner,
            repo,
            tree.ref,
            gaps.missing,
            stack.has_backend,
            stack.has_frontend,
            len(env_vars),
        )
        return ScanResult(
            ref=RepoRef(owner=owner, repo=repo),
            branch=tree.ref,
            gaps=gaps,
            stack=stack,
            env_vars=env_vars,
        )

    def scan(
        self,
        repo_url: str,
        branch: Optional[str] = None,
        installation_id: Optional[int] = None,
    ) -> GapReport:
        ref = self._parse(repo_url)
        return self.detect_gaps(ref.owner, ref.repo, branch, installation_id=installation_id)

    def inspect_url(
        self,
        repo_url: str,
        branch: Optional[str] = None,
        installation_id: Optional[int] = None,
    ) -> ScanResult:
        ref = self._parse(repo_url)
        return self.inspect(ref.owner, ref.repo, branch, installation_id=installation_id)

    @staticmethod
    def _parse(repo_url: str) -> RepoRef:
        parsed = parse_repo_url(repo_url)
        if not parsed.ok or parsed.ref is None:
            raise InvalidRepositoryUrlError(parsed.error or "Invalid GitHub repository URL")
        return parsed.ref

    def _read_repository(
        self, gh: GitHubClient, owner: str, repo: str, branch: str
    ) -> Tuple[RepositoryTree, Optional[Dict[str, Any]]]:
        tree = self._fetch_tree(gh, owner, repo, branch)
        # The ref that produced the tree is tried first for the manifest.
        refs = branch_candidates(tree.ref)
        for ref in branch_candidates(branch):
            if ref not in refs:
                refs.append(ref)
        return tree, self._fetch_manifest(gh, owner, repo, refs)

    def _discover_env_vars(
        self,
        gh: GitHubClient,
        owner: str,
        repo: str,
        tree: RepositoryTree,
        stack: StackReport,
    ) -> List[str]:
        names: List[str] = []
        template = next(
            (
                e.path
                for e in tree.entries
                if _is_file(e) and e.path.lower() in ENV_TEMPLATE_NAMES
            ),
            None,
        )
        if template is not None:
            content = self._read_raw(gh, owner, repo, template, tree.ref)
            if content:
                names.extend(parse_env_file(content))

        # Source files are only read when no template declares anything.
        if not names:
            code_files = [e.path for e in tree.entries if _is_code_file(e)]
            for path in code_files[:MAX_CODE_FILES]:
                content = self._read_raw(gh, owner, repo, path, tree.ref)
                if content:
                    names.extend(extract_env_vars_from_code(content))

        if stack.has_backend:
            names.extend(IMPLIED_BACKEND_VARS)
        return list(dict.fromkeys(names))

    def _read_raw(
        self, gh: GitHubClient, owner: str, repo: str, path: str, ref: str
    ) -> Optional[str]:
        try:
            return gh.get_raw_contents(owner, repo, path, ref)
        except UpstreamError as exc:
            logger.debug("Skipping %s in %s/%s@%s: %s", path, owner, repo, ref, exc)
            return None

    def _fetch_tree(
        self, gh: GitHubClient, owner: str, repo: str, branch: str
    ) -> RepositoryTree:
        for ref in branch_candidates(branch):
            try:
                data = gh.get_tree(owner, repo, ref)
            except UpstreamError as exc:
                logger.debug("Tree fetch for %s/%s@%s failed: %s", owner, repo, ref, exc)
                continue

            raw_entries = data.get("tree") if isinstance(data, dict) else None
            if not isinstance(raw_entries, list):
                logger.debug("Tree for %s/%s@%s is malformed", owner, repo, ref)
                continue
            if data.get("truncated"):
                logger.warning("Tree for %s/%s@%s was truncated by GitHub", owner, repo, ref)

            entries = [
                TreeEntry(path=item["path"], type=item.get("type", "blob"))
                for item in raw_entries
                if isinstance(item, dict) and item.get("path")
            ]
            return RepositoryTree(ref=ref, entries=entries)

        raise RepositoryNotFoundError(
            f"Repository {owner}/{repo} or branch {branch} not found"
        )

    def _fetch_manifest(
        self, gh: GitHubClient, owner: str, repo: str, refs: Sequence[str]
    ) -> Optional[Dict[str, Any]]:
        for ref in refs:
            try:
                payload = gh.get_contents(owner, repo, self.manifest_path, ref)
            except UpstreamError as exc:
                logger.debug(
                    "No %s for %s/%s@%s: %s", self.manifest_path, owner, repo, ref, exc
                )
                continue
            manifest = decode_manifest(payload)
            if manifest is not None:
                return manifest
        return None

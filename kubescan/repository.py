"""Listing of the YAML files held in a hosted Git repository."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import requests

from .getter import http_get


def _parse_json_object(body: str, url: str) -> dict[str, Any]:
    try:
        data = json.loads(body)
    except ValueError as err:
        raise ValueError(f"failed to unmarshal response body from '{url}', reason: {err}") from err
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"failed to unmarshal response body from '{url}', reason: expected a JSON object")
    return data


@dataclass
class GitHubRepository:
    """A GitHub repository, named ``<org>/<repo>``."""

    name: str
    host: str = "github"
    branch: str = ""
    tree: list[str] = field(default_factory=list)
    session: requests.Session = field(default_factory=requests.Session, repr=False, compare=False)

    def default_branch_api(self) -> str:
        return f"https://api.github.com/repos/{self.name}"

    def tree_api(self) -> str:
        return f"https://api.github.com/repos/{self.name}/git/trees/{self.branch}?recursive=1"

    def raw_yaml_url(self) -> str:
        return f"https://raw.githubusercontent.com/{self.name}/{self.branch}"

    def set_branch(self, branch: str) -> None:
        """Use ``branch``, or ask the host for the default branch when it is empty."""
        if branch:
            self.branch = branch
            return
        url = self.default_branch_api()
        data = _parse_json_object(http_get(self.session, url), url)
        default_branch = data.get("default_branch") or ""
        if not isinstance(default_branch, str):
            raise ValueError(f"failed to unmarshal response body from '{url}', reason: bad default_branch")
        self.branch = default_branch

    def set_tree(self) -> None:
        """Fetch the recursive file tree of the current branch."""
        url = self.tree_api()
        data = _parse_json_object(http_get(self.session, url), url)
        entries = data.get("tree") or []
        if not isinstance(entries, list):
            raise ValueError(f"failed to unmarshal response body from '{url}', reason: bad tree")
        self.tree = [
            str(entry.get("path", "")) for entry in entries if isinstance(entry, dict)
        ]

    def yaml_urls(self) -> list[str]:
        """Return raw download URLs of every ``.yaml`` file in the tree."""
        base = self.raw_yaml_url()
        return [f"{base}/{path}" for path in self.tree if path.endswith(".yaml")]


def get_host_and_repo_name(url: str) -> tuple[str, str]:
    """Split ``https://<host>/<org>/<repo>[.git]`` into host and ``<org>/<repo>``."""
    parts = url.split("/")
    if len(parts) != 5:
        raise ValueError(f"failed to parse url: {url}")
    host = parts[2]
    repository = parts[3] + "/" + parts[4].split(".")[0]
    return host, repository


def get_repository(url: str) -> GitHubRepository:
    """Return the repository object matching the URL's host."""
    host, name = get_host_and_repo_name(url)
    repo_host = host.split(".")[0]
    if repo_host == "github":
        return GitHubRepository(name)
    raise ValueError(f"unknown repository host: {repo_host}")


def scan_repository(url: str, branch: str = "") -> list[str]:
    """Return raw URLs of all YAML files in the repository at ``url``."""
    repo = get_repository(url)
    repo.set_branch(branch)
    repo.set_tree()
    return repo.yaml_urls()
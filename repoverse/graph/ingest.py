"""Convert pre-fetched repository payloads into graph and commit records."""
from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional

from repoverse.core.logging import get_logger
from repoverse.graph.model import (
    ROOT_ID,
    Commit,
    CommitAuthor,
    CommitFileChange,
    GraphEdge,
    GraphNode,
    NodeKind,
    RepoTree,
)

logger = get_logger(__name__)

DEFAULT_MAX_NODES = 2000
COMMIT_STATUSES = frozenset({"added", "removed", "modified", "renamed"})

_KIND_ALIASES = {
    "file": NodeKind.FILE,
    "blob": NodeKind.FILE,
    "directory": NodeKind.DIRECTORY,
    "dir": NodeKind.DIRECTORY,
    "tree": NodeKind.DIRECTORY,
}


def parse_kind(value: Any) -> Optional[NodeKind]:
    if isinstance(value, NodeKind):
        return value
    return _KIND_ALIASES.get(str(value or "").lower())


def file_extension(name: str) -> Optional[str]:
    """Lower-cased suffix after the last dot, if any."""

    if "." not in name:
        return None
    suffix = name.rsplit(".", 1)[-1].lower()
    return suffix or None


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_repo_tree(payload: Mapping[str, Any]) -> RepoTree:
    """Build a :class:`RepoTree` from ``{"nodes": [...], "links": [...]}``.

    Records without an id or with an unknown kind are skipped.
    """

    nodes: List[GraphNode] = []
    for raw in payload.get("nodes", []) or []:
        node_id = raw.get("id")
        kind = parse_kind(raw.get("kind", raw.get("type")))
        if not node_id or kind is None:
            logger.warning("Skipping malformed tree node: %r", raw)
            continue
        path = str(raw.get("path", "" if node_id == ROOT_ID else node_id))
        name = str(raw.get("name") or path.rsplit("/", 1)[-1] or node_id)
        extension = raw.get("extension")
        if extension is None and kind is NodeKind.FILE:
            extension = file_extension(name)
        nodes.append(
            GraphNode(
                id=str(node_id),
                name=name,
                kind=kind,
                path=path,
                size=_optional_int(raw.get("size")),
                extension=extension,
                parent_id=raw.get("parentId", raw.get("parent_id")) or None,
            )
        )

    links: List[GraphEdge] = []
    for raw in payload.get("links", payload.get("edges", [])) or []:
        source, target = raw.get("source"), raw.get("target")
        if not source or not target:
            logger.warning("Skipping malformed tree link: %r", raw)
            continue
        links.append(GraphEdge(str(source), str(target)))

    return RepoTree(nodes=nodes, links=links)


def parse_commit(raw: Mapping[str, Any]) -> Optional[Commit]:
    sha = raw.get("sha")
    if not sha:
        logger.warning("Skipping commit without sha")
        return None
    author_raw = raw.get("author") or {}
    files: List[CommitFileChange] = []
    for entry in raw.get("files", []) or []:
        filename = entry.get("filename")
        status = str(entry.get("status", "modified")).lower()
        if not filename:
            continue
        if status not in COMMIT_STATUSES:
            logger.debug("Unknown file status %s in %s; treating as modified", status, sha)
            status = "modified"
        files.append(
            CommitFileChange(
                filename=str(filename),
                status=status,
                additions=_optional_int(entry.get("additions")) or 0,
                deletions=_optional_int(entry.get("deletions")) or 0,
            )
        )
    return Commit(
        sha=str(sha),
        message=str(raw.get("message", "")),
        timestamp=str(raw.get("timestamp", raw.get("date", ""))),
        author=CommitAuthor(
            name=str(author_raw.get("name") or "Unknown"),
            email=str(author_raw.get("email") or ""),
            avatar=str(author_raw.get("avatar") or ""),
        ),
        files=files,
    )


def parse_commit_history(payload: Mapping[str, Any] | Iterable[Mapping[str, Any]]) -> List[Commit]:
    """Build commits from ``{"commits": [...]}`` or a bare list."""

    records = payload.get("commits", []) if isinstance(payload, Mapping) else payload
    commits: List[Commit] = []
    for raw in records or []:
        commit = parse_commit(raw)
        if commit is not None:
            commits.append(commit)
    return commits


def tree_from_listing(
    items: Iterable[Mapping[str, Any]],
    repo_name: str,
    max_nodes: int = DEFAULT_MAX_NODES,
) -> RepoTree:
    """Turn a flat recursive path listing into a rooted tree.

    Each item carries ``path``, ``type`` (blob/tree) and an optional ``size``.
    Oversized listings keep every directory and fill the remaining slots with
    files; entries whose parent was dropped hang off ``ROOT``.
    """

    listing = [item for item in items if item.get("path") and parse_kind(item.get("type")) is not None]
    if len(listing) > max_nodes:
        folders = [item for item in listing if parse_kind(item.get("type")) is NodeKind.DIRECTORY]
        files = [item for item in listing if parse_kind(item.get("type")) is NodeKind.FILE]
        remaining = max(0, max_nodes - len(folders))
        logger.info(
            "Tree truncated: listed=%d folders=%d files_included=%d",
            len(listing),
            len(folders),
            min(len(files), remaining),
        )
        listing = folders + files[:remaining]

    root = GraphNode(id=ROOT_ID, name=repo_name, kind=NodeKind.DIRECTORY, path="")
    nodes: List[GraphNode] = [root]
    links: List[GraphEdge] = []
    known = {""}

    for item in listing:
        path = str(item["path"]).strip("/")
        if not path:
            continue
        kind = parse_kind(item.get("type"))
        name = path.rsplit("/", 1)[-1]
        parent_path = path.rsplit("/", 1)[0] if "/" in path else ""
        parent_id = parent_path if parent_path in known and parent_path else ROOT_ID
        nodes.append(
            GraphNode(
                id=path,
                name=name,
                kind=kind,
                path=path,
                size=_optional_int(item.get("size")),
                extension=file_extension(name) if kind is NodeKind.FILE else None,
                parent_id=parent_id,
            )
        )
        links.append(GraphEdge(parent_id, path))
        known.add(path)

    return RepoTree(nodes=nodes, links=links)

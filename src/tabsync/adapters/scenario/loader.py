"""Loading scenario files into tree nodes, and dumping trees back out."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from tabsync.domain.model import NodeKind, TreeNode

from .schema import Scenario

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tabsync.adapters.memory_tree import InMemoryArchive, InMemoryPageTree

    from .schema import ScenarioNode


def load_scenario(path: str | Path) -> Scenario:
    """Read and validate a scenario file; raises ``pydantic.ValidationError``."""

    return Scenario.model_validate_json(Path(path).read_text(encoding="utf-8"))


def node_from_scenario(spec: ScenarioNode) -> TreeNode:
    kind = NodeKind.WINDOW if spec.kind == "window" else NodeKind.PAGE
    node = TreeNode(
        kind=kind,
        id=spec.id or "",
        live_id=spec.live_id,
        window_id=spec.window_id,
        index=spec.index,
        hibernated=spec.hibernated,
        restorable=spec.restorable,
        title=spec.title,
        incognito=spec.incognito,
        url=spec.url,
        referrer=spec.referrer,
        history_length=spec.history_length,
        pinned=spec.pinned,
        session_guid=spec.session_guid,
        window_type=spec.window_type,
        old=spec.old,
    )
    for child_spec in spec.children:
        child = node_from_scenario(child_spec)
        child.parent = node
        node.children.append(child)
    return node


def build_tree(
    nodes: Iterable[ScenarioNode],
    tree: InMemoryPageTree,
    *,
    archive: Iterable[ScenarioNode] = (),
    into: InMemoryArchive | None = None,
) -> InMemoryPageTree:
    for spec in nodes:
        tree.add_node(node_from_scenario(spec))
    target = into or tree.archive
    for spec in archive:
        target.add(node_from_scenario(spec))
    return tree


def dump_node(node: TreeNode) -> dict[str, object]:
    data: dict[str, object] = {
        "kind": node.kind.value,
        "id": node.id,
        "live_id": node.live_id,
        "hibernated": node.hibernated,
        "restorable": node.restorable,
    }
    if node.is_page:
        data.update(
            url=node.url,
            index=node.index,
            window_id=node.window_id,
            pinned=node.pinned,
            referrer=node.referrer,
            historylength=node.history_length,
        )
    else:
        data["title"] = node.title
    if node.children:
        data["children"] = [dump_node(child) for child in node.children]
    return data


def dump_tree(tree: InMemoryPageTree) -> list[dict[str, object]]:
    return [dump_node(node) for node in tree.root.children]

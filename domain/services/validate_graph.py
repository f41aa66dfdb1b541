from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from pydantic import ValidationError

from domain.models import Graph


class IssueKind(str, Enum):
    STRUCTURAL = "StructuralError"
    REFERENTIAL = "ReferentialError"
    PRECONDITION_TYPE_CONFLICT = "PreconditionTypeConflict"


@dataclass(frozen=True)
class ValidationIssue:
    kind: IssueKind
    message: str
    location: str = ""
    ref: Optional[str] = None

    def __str__(self) -> str:
        prefix = f"{self.location}: " if self.location else ""
        return f"[{self.kind.value}] {prefix}{self.message}"


@dataclass(frozen=True)
class ValidationReport:
    graph: Optional[Graph]
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.graph is not None and not self.issues

    def of_kind(self, kind: IssueKind) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.kind == kind]


class GraphValidationError(ValueError):
    def __init__(self, issues: Iterable[ValidationIssue]) -> None:
        self.issues = list(issues)
        lines = "\n".join(f"  {issue}" for issue in self.issues)
        super().__init__(f"Graph has {len(self.issues)} validation issue(s):\n{lines}")


def format_location(parts: Iterable[object]) -> str:
    rendered = ""
    for part in parts:
        if isinstance(part, int):
            rendered += f"[{part}]"
        elif rendered:
            rendered += f".{part}"
        else:
            rendered = str(part)
    return rendered


def structural_issues(exc: ValidationError) -> List[ValidationIssue]:
    return [
        ValidationIssue(
            kind=IssueKind.STRUCTURAL,
            message=error["msg"],
            location=format_location(error["loc"]),
        )
        for error in exc.errors()
    ]


class GraphValidator:
    """Structural and referential checks for a raw graph payload.

    Every check runs even when an earlier one failed, so an importer gets the
    complete list of problems in one pass.
    """

    def check(self, raw: object) -> ValidationReport:
        issues: List[ValidationIssue] = []
        graph: Optional[Graph] = None
        try:
            graph = Graph.model_validate(raw)
        except ValidationError as exc:
            issues.extend(structural_issues(exc))

        view: Mapping[str, Any] = graph.to_payload() if graph is not None else _as_mapping(raw)
        issues.extend(self._referential_issues(view))
        issues.extend(self._precondition_issues(view))
        return ValidationReport(graph=graph if not issues else None, issues=issues)

    def validate(self, raw: object) -> Graph:
        report = self.check(raw)
        if not report.ok or report.graph is None:
            raise GraphValidationError(report.issues)
        return report.graph

    def _referential_issues(self, view: Mapping[str, Any]) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        nodes = _as_list(view.get("nodes"))
        agents = _as_list(view.get("agents"))

        node_ids = self._collect_ids(nodes, "nodes", "node", issues)
        agent_ids = self._collect_ids(agents, "agents", "agent", issues)

        for idx, edge in enumerate(_as_list(view.get("edges"))):
            if not isinstance(edge, Mapping):
                continue
            for alias, name in (("from", "source"), ("to", "target")):
                key, endpoint = _lookup(edge, alias, name)
                if isinstance(endpoint, str) and endpoint not in node_ids:
                    issues.append(
                        ValidationIssue(
                            kind=IssueKind.REFERENTIAL,
                            message=f"Edge endpoint '{endpoint}' does not match any node",
                            location=format_location(("edges", idx, key)),
                            ref=endpoint,
                        )
                    )

        start_key, start_node = _lookup(view, "startNode", "start_node")
        if isinstance(start_node, str) and start_node and start_node not in node_ids:
            issues.append(
                ValidationIssue(
                    kind=IssueKind.REFERENTIAL,
                    message=f"startNode '{start_node}' does not match any node",
                    location=start_key,
                    ref=start_node,
                )
            )

        for idx, node in enumerate(nodes):
            if not isinstance(node, Mapping):
                continue
            agent = node.get("agent")
            if isinstance(agent, str) and agent not in agent_ids:
                issues.append(
                    ValidationIssue(
                        kind=IssueKind.REFERENTIAL,
                        message=f"Node agent '{agent}' does not match any agent",
                        location=format_location(("nodes", idx, "agent")),
                        ref=agent,
                    )
                )
        return issues

    def _collect_ids(
        self,
        items: List[Any],
        collection: str,
        label: str,
        issues: List[ValidationIssue],
    ) -> set[str]:
        seen: set[str] = set()
        for idx, item in enumerate(items):
            if not isinstance(item, Mapping):
                continue
            item_id = item.get("id")
            if not isinstance(item_id, str):
                continue
            if item_id in seen:
                issues.append(
                    ValidationIssue(
                        kind=IssueKind.REFERENTIAL,
                        message=f"Duplicate {label} id: {item_id}",
                        location=format_location((collection, idx, "id")),
                        ref=item_id,
                    )
                )
                continue
            seen.add(item_id)
        return seen

    def _precondition_issues(self, view: Mapping[str, Any]) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        for edge_idx, edge in enumerate(_as_list(view.get("edges"))):
            if not isinstance(edge, Mapping):
                continue
            locked: Optional[str] = None
            for pre_idx, precondition in enumerate(_as_list(edge.get("preconditions"))):
                if not isinstance(precondition, Mapping):
                    continue
                pre_type = precondition.get("type")
                if not isinstance(pre_type, str):
                    continue
                if locked is None:
                    locked = pre_type
                    continue
                if pre_type != locked:
                    issues.append(
                        ValidationIssue(
                            kind=IssueKind.PRECONDITION_TYPE_CONFLICT,
                            message=(
                                f"Precondition type '{pre_type}' conflicts with the edge's "
                                f"locked type '{locked}'"
                            ),
                            location=format_location(
                                ("edges", edge_idx, "preconditions", pre_idx, "type")
                            ),
                            ref=pre_type,
                        )
                    )
        return issues


def _as_mapping(value: object) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _as_list(value: object) -> List[Any]:
    return value if isinstance(value, list) else []


def _lookup(item: Mapping[str, Any], alias: str, name: str) -> tuple[str, Any]:
    # Raw payloads may use either the JSON alias or the field name.
    if alias in item:
        return alias, item[alias]
    return name, item.get(name)

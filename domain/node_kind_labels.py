from __future__ import annotations

from domain.models import NODE_KIND_AGENT, NODE_KIND_AGENT_DECISION

_HEADER_LABEL_BY_KIND: dict[str, str] = {
    NODE_KIND_AGENT: "Agent Node",
    NODE_KIND_AGENT_DECISION: "Agent Decision",
}
_PRECONDITION_LABEL_BY_TYPE: dict[str, str] = {
    "user_said": "User said",
    "agent_decision": "Agent decision",
    "tool_call": "Tool call",
}


def header_label_for_kind(kind: str) -> str:
    try:
        return _HEADER_LABEL_BY_KIND[kind]
    except KeyError:
        msg = f"Unsupported node kind: {kind}"
        raise ValueError(msg) from None


def humanize_precondition_type(precondition_type: str | None) -> str:
    normalized = str(precondition_type or "").strip()
    if not normalized:
        return normalized
    return _PRECONDITION_LABEL_BY_TYPE.get(normalized, normalized)

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

NODE_KIND_AGENT = "agent"
NODE_KIND_AGENT_DECISION = "agent_decision"
NODE_KINDS = (NODE_KIND_AGENT, NODE_KIND_AGENT_DECISION)

PreconditionType = Literal["user_said", "agent_decision", "tool_call"]

VISUAL_EDGE_TYPE = "precondition"


class SchemaModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Position(SchemaModel):
    x: float
    y: float


class Precondition(SchemaModel):
    type: PreconditionType
    value: str = Field(..., min_length=1)
    description: Optional[str] = None


# Evaluated by the external runtime; kept verbatim.
ContextPreconditions = Dict[str, Any]


class Agent(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)


def dump_agents(agents: List[Agent]) -> List[Dict[str, Any]]:
    # Free-form agent fields keep explicit nulls.
    return [agent.model_dump(mode="json") for agent in agents]


class BaseNode(SchemaModel):
    id: str = Field(..., min_length=1)
    text: str
    description: str
    agent: Optional[str] = None
    next_node_is_user: Optional[bool] = Field(default=None, alias="nextNodeIsUser")
    position: Optional[Position] = None


class AgentNode(BaseNode):
    kind: Literal["agent"] = NODE_KIND_AGENT


class AgentDecisionNode(BaseNode):
    kind: Literal["agent_decision"] = NODE_KIND_AGENT_DECISION


Node = Annotated[Union[AgentNode, AgentDecisionNode], Field(discriminator="kind")]
NODE_MODEL_BY_KIND: Dict[str, type[BaseNode]] = {
    NODE_KIND_AGENT: AgentNode,
    NODE_KIND_AGENT_DECISION: AgentDecisionNode,
}


class Edge(SchemaModel):
    source: str = Field(..., alias="from", min_length=1)
    target: str = Field(..., alias="to", min_length=1)
    preconditions: Optional[List[Precondition]] = None
    context_preconditions: Optional[ContextPreconditions] = Field(
        default=None, alias="contextPreconditions"
    )

    def locked_precondition_type(self) -> Optional[str]:
        if not self.preconditions:
            return None
        return self.preconditions[0].type


class Graph(SchemaModel):
    start_node: str = Field(..., alias="startNode", min_length=1)
    agents: List[Agent] = Field(default_factory=list)
    nodes: List[Node] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)

    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]

    def find_node(self, node_id: str) -> Optional[BaseNode]:
        return next((node for node in self.nodes if node.id == node_id), None)

    def has_all_positions(self) -> bool:
        return all(node.position is not None for node in self.nodes)

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["agents"] = dump_agents(self.agents)
        return payload


def build_node(payload: Dict[str, Any]) -> BaseNode:
    kind = payload.get("kind", NODE_KIND_AGENT)
    model = NODE_MODEL_BY_KIND.get(kind)
    if model is None:
        msg = f"Unsupported node kind: {kind}"
        raise ValueError(msg)
    return model.model_validate(payload)


class VisualModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class VisualNodeData(VisualModel):
    node_id: str = Field(..., alias="nodeId")
    text: str = ""
    description: str = ""
    agent: Optional[str] = None
    next_node_is_user: Optional[bool] = Field(default=None, alias="nextNodeIsUser")
    node_width: Optional[float] = Field(default=None, alias="nodeWidth")


class VisualNode(VisualModel):
    id: str
    type: str = NODE_KIND_AGENT
    position: Position
    source_position: str = Field(default="right", alias="sourcePosition")
    target_position: str = Field(default="left", alias="targetPosition")
    data: VisualNodeData


class VisualEdgeData(VisualModel):
    preconditions: Optional[List[Precondition]] = None
    context_preconditions: Optional[ContextPreconditions] = Field(
        default=None, alias="contextPreconditions"
    )


class VisualEdge(VisualModel):
    id: str
    source: str
    target: str
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")
    target_handle: Optional[str] = Field(default=None, alias="targetHandle")
    type: str = VISUAL_EDGE_TYPE
    data: VisualEdgeData = Field(default_factory=VisualEdgeData)


class VisualGraph(VisualModel):
    start_node: str = Field(default="", alias="startNode")
    agents: List[Agent] = Field(default_factory=list)
    nodes: List[VisualNode] = Field(default_factory=list)
    edges: List[VisualEdge] = Field(default_factory=list)
    node_width: Optional[float] = Field(default=None, alias="nodeWidth")

    @field_validator("edges", mode="after")
    @classmethod
    def ensure_unique_edge_ids(cls, edges: List[VisualEdge]) -> List[VisualEdge]:
        seen: set[str] = set()
        for edge in edges:
            if edge.id in seen:
                msg = f"Duplicate visual edge id found: {edge.id}"
                raise ValueError(msg)
            seen.add(edge.id)
        return edges

    def find_node(self, node_id: str) -> Optional[VisualNode]:
        return next((node for node in self.nodes if node.id == node_id), None)

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["agents"] = dump_agents(self.agents)
        return payload


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Size:
    width: float
    height: float


@dataclass(frozen=True)
class HandlePair:
    source_handle: str
    target_handle: str

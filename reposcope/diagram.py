from __future__ import annotations

from reposcope.render import group_endpoints
from reposcope.schemas import AnalysisResult, FlowEdge, FlowGraph, FlowNode, Position

# Column x-offsets of the architecture flow, left to right:
# frontend | groups/endpoints | database | external services
X_FRONTEND = 0
X_API = 300
X_DATABASE = X_API + 350
X_EXTERNAL = X_API + 700

ENDPOINT_SPACING = 70
GROUP_HEADER = 60
GROUP_GAP = 40
FRONTEND_SPACING = 80
MODEL_SPACING = 60
EXTERNAL_SPACING = 80

MAX_FRONTEND = 8
MAX_MODELS = 6
MAX_EXTERNAL = 6


def api_node_id(method: str, path: str) -> str:
    return f"api-{method}-{path}"


def build_flow_elements(a: AnalysisResult) -> FlowGraph:
    """
    Lays the analysis out as a column graph for the architecture tab.
    Positions are absolute pixels; ids are stable for the same analysis.
    """
    nodes: list[FlowNode] = []
    edges: list[FlowEdge] = []

    def add_node(id_: str, label: str, kind: str, x: float, y: float) -> None:
        nodes.append(FlowNode(id=id_, label=label, kind=kind, position=Position(x=x, y=y)))

    y_offset = 0
    placed: set[str] = set()
    for group, endpoints in group_endpoints(a.api_endpoints).items():
        group_id = f"group-{group}"
        add_node(group_id, group, "group", X_API - 40, y_offset)
        y_offset += GROUP_HEADER

        # the same METHOD path listed twice gets one node
        count = 0
        for ep in endpoints:
            node_id = api_node_id(ep.method, ep.path)
            if node_id in placed:
                continue
            placed.add(node_id)
            add_node(node_id, f"{ep.method} {ep.path}", "api", X_API, y_offset + count * ENDPOINT_SPACING)
            edges.append(FlowEdge(
                id=f"edge-group-{group}-{node_id}", source=group_id, target=node_id, kind="group",
            ))
            count += 1
        y_offset += count * ENDPOINT_SPACING + GROUP_GAP

    api_ids = {n.id for n in nodes if n.kind == "api"}
    for i, flow in enumerate(a.frontend_backend_flows[:MAX_FRONTEND]):
        node_id = f"frontend-{i}"
        add_node(node_id, flow.frontend_component, "frontend", X_FRONTEND, i * FRONTEND_SPACING)
        for call in flow.api_calls:
            target = api_node_id(call.method, call.path)
            if target in api_ids:
                edges.append(FlowEdge(
                    id=f"edge-fe-{i}-{call.method}-{call.path}",
                    source=node_id,
                    target=target,
                    kind="frontend",
                    animated=True,
                ))

    db = a.database_mapping
    if db.models:
        label = f"{db.database or 'Database'} ({db.orm or 'ORM'})"
        add_node("database-node", label, "database", X_DATABASE, 0)
        for i, model in enumerate(db.models[:MAX_MODELS]):
            model_id = f"model-{i}"
            add_node(model_id, f"{model.name} → {model.table}", "model", X_DATABASE + 40, 60 + i * MODEL_SPACING)
            edges.append(FlowEdge(
                id=f"edge-db-{model_id}", source="database-node", target=model_id, kind="database",
            ))

    for i, svc in enumerate(a.external_services[:MAX_EXTERNAL]):
        add_node(f"ext-{i}", f"{svc.name} ({svc.type})", "external", X_EXTERNAL, i * EXTERNAL_SPACING)

    # dependency ends may name a node by id or by its label
    lookup: dict[str, str] = {}
    for n in nodes:
        lookup.setdefault(n.label, n.id)
        lookup[n.id] = n.id

    for i, dep in enumerate(a.dependency_graph):
        src, dst = lookup.get(dep.source), lookup.get(dep.target)
        if src and dst:
            edges.append(FlowEdge(id=f"dep-edge-{i}", source=src, target=dst, kind="dependency"))

    return FlowGraph(nodes=nodes, edges=edges)

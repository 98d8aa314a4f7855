from __future__ import annotations

import re
from collections import OrderedDict

from reposcope.schemas import AnalysisResult, ApiEndpoint

_NON_ID = re.compile(r"[^A-Za-z0-9_]")


def group_endpoints(endpoints: list[ApiEndpoint]) -> "OrderedDict[str, list[ApiEndpoint]]":
    groups: OrderedDict[str, list[ApiEndpoint]] = OrderedDict()
    for ep in endpoints:
        groups.setdefault(ep.group.strip() or "Other", []).append(ep)
    return groups


def _mid(prefix: str, raw: str) -> str:
    return f"{prefix}_{_NON_ID.sub('_', raw)}".rstrip("_")


def _label(text: str) -> str:
    return '"' + text.replace('"', "#quot;") + '"'


def to_mermaid(a: AnalysisResult) -> str:
    """
    Deterministic flowchart of the analysis. Returns "" when there is
    nothing to draw.
    """
    lines: list[str] = []
    edges: list[str] = []
    # label/alias -> node id, used to resolve dependency edges
    index: dict[str, str] = {}

    for gi, (group, eps) in enumerate(group_endpoints(a.api_endpoints).items()):
        gid = f"G{gi}"
        lines.append(f"  {gid}[{_label(group)}]")
        index[group] = gid
        for ep in eps:
            eid = _mid("API", f"{ep.method}_{ep.path}")
            if eid in index.values():
                continue
            lines.append(f"  {eid}[{_label(f'{ep.method} {ep.path}')}]")
            edges.append(f"  {gid} --> {eid}")
            index[f"{ep.method} {ep.path}"] = eid
            index.setdefault(ep.path, eid)

    for fi, flow in enumerate(a.frontend_backend_flows[:8]):
        fid = f"FE{fi}"
        lines.append(f"  {fid}([{_label(flow.frontend_component)}])")
        index[flow.frontend_component] = fid
        for call in flow.api_calls:
            target = index.get(f"{call.method} {call.path}")
            if target:
                edges.append(f"  {fid} --> {target}")

    db = a.database_mapping
    if db.models:
        db_label = "{} ({})".format(db.database or "Database", db.orm or "ORM")
        lines.append(f"  DB[({_label(db_label)})]")
        index[db.database] = "DB"
        for mi, m in enumerate(db.models[:6]):
            mid = f"M{mi}"
            lines.append(f"  {mid}[{_label(f'{m.name} → {m.table}')}]")
            edges.append(f"  DB --> {mid}")
            index[m.name] = mid

    for xi, svc in enumerate(a.external_services[:6]):
        xid = f"EXT{xi}"
        lines.append(f"  {xid}{{{{{_label(f'{svc.name} ({svc.type})')}}}}}")
        index[svc.name] = xid
        index.setdefault(f"{svc.name} ({svc.type})", xid)

    for dep in a.dependency_graph:
        src, dst = index.get(dep.source), index.get(dep.target)
        if src and dst:
            edges.append(f"  {src} -.->|{dep.type}| {dst}")

    if not lines:
        return ""
    return "\n".join(["graph TD", *lines, *edges])


def to_architecture_md(a: AnalysisResult) -> str:
    r = a.repo_info
    lines: list[str] = []
    lines.append(f"# Architecture — {r.owner}/{r.name}\n")

    # ---------------- Overview ----------------
    lines.append("## Overview\n")
    lines.append((r.description or "No description provided.").strip() + "\n")
    lines.append(f"- Repository: {r.url}")
    lines.append(f"- Primary language: {r.language}")
    lines.append(f"- Stars: {r.stars} · Forks: {r.forks}")
    lines.append("")

    # ---------------- Tech Stack ----------------
    lines.append("## Tech Stack\n")
    ts = a.tech_stack
    if ts.languages:
        lines.append("**Languages:** " + ", ".join(f"{l.name} ({l.percentage}%)" for l in ts.languages))
    for title, items in (
        ("Frameworks", ts.frameworks),
        ("Libraries", ts.libraries),
        ("Build tools", ts.build_tools),
        ("Testing", ts.testing),
        ("Deployment", ts.deployment),
    ):
        if items:
            lines.append(f"**{title}:** " + ", ".join(items))
    if not (ts.languages or ts.frameworks or ts.libraries or ts.build_tools or ts.testing or ts.deployment):
        lines.append("- Not confirmed in code")
    lines.append("")

    # ---------------- API Endpoints ----------------
    lines.append("## API Endpoints\n")
    if a.api_endpoints:
        for group, eps in group_endpoints(a.api_endpoints).items():
            lines.append(f"### {group}\n")
            lines.append("| Method | Path | File | Description |")
            lines.append("|---|---|---|---|")
            for ep in eps:
                desc = ep.description.replace("|", "\\|")
                lines.append(f"| {ep.method} | `{ep.path}` | `{ep.file}` | {desc} |")
            lines.append("")
    else:
        lines.append("No API endpoints were identified.\n")

    # ---------------- Frontend → Backend ----------------
    lines.append("## Frontend → Backend Flows\n")
    if a.frontend_backend_flows:
        for f in a.frontend_backend_flows:
            lines.append(f"### {f.frontend_component}")
            if f.frontend_file:
                lines.append(f"`{f.frontend_file}`\n")
            for call in f.api_calls:
                purpose = f" — {call.purpose}" if call.purpose else ""
                lines.append(f"- {call.method} `{call.path}`{purpose}")
            lines.append("")
    else:
        lines.append("No frontend-to-backend calls were traced.\n")

    # ---------------- Database ----------------
    lines.append("## Database\n")
    db = a.database_mapping
    if db.database and db.database != "None":
        lines.append(f"**Database:** {db.database} · **ORM:** {db.orm or 'None'}\n")
        for m in db.models:
            lines.append(f"- `{m.name}` → `{m.table}` (`{m.file}`)")
        if db.services:
            lines.append("\n**Services using the database:** " + ", ".join(db.services))
        lines.append("")
    else:
        lines.append("No database detected.\n")

    # ---------------- External Services ----------------
    lines.append("## External Services\n")
    if a.external_services:
        for s in a.external_services:
            where = f" (`{s.file}`)" if s.file else ""
            lines.append(f"- **{s.name}** [{s.type}]{where}: {s.description}")
    else:
        lines.append("- None detected")
    lines.append("")

    # ---------------- Env ----------------
    lines.append("## Environment Variables\n")
    if a.env_variables:
        lines.append("| Name | Required | File | Description |")
        lines.append("|---|---|---|---|")
        for v in a.env_variables:
            lines.append(f"| `{v.name}` | {'yes' if v.required else 'no'} | `{v.file}` | {v.description} |")
    else:
        lines.append("No environment variables were identified.")
    lines.append("")

    # ---------------- Versioning ----------------
    if a.api_versioning:
        lines.append("## API Versions\n")
        for v in a.api_versioning:
            lines.append(f"- {v.version}: `{v.base_path}` ({v.endpoints} endpoints)")
        lines.append("")

    # ---------------- Diagram ----------------
    lines.append("## Diagram\n")
    mermaid = (a.mermaid_diagram or "").strip() or to_mermaid(a)
    if mermaid:
        lines.append("```mermaid")
        lines.append(mermaid)
        lines.append("```")
        lines.append("")
    else:
        lines.append("Diagram not available (insufficient evidence).\n")

    # ---------------- Contributing ----------------
    lines.append("## Contribution Suggestions\n")
    if a.contribution_suggestions:
        for i, s in enumerate(a.contribution_suggestions, 1):
            lines.append(f"{i}. **{s.title}** ({s.difficulty})")
            if s.description:
                lines.append(f"   {s.description}")
            if s.files:
                lines.append("   Files: " + ", ".join(f"`{f}`" for f in s.files))
            if s.reason:
                lines.append(f"   Why: {s.reason}")
    else:
        lines.append("- Not provided")
    lines.append("")

    if a.readme_architecture.strip():
        lines.append("## Notes\n")
        lines.append(a.readme_architecture.strip())
        lines.append("")

    return "\n".join(lines)

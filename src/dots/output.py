"""CLI output formatting — JSON by default, readable text with --human."""
from __future__ import annotations

import json
import sys
from typing import Any

import click

from dots.store.models import Status


def output(data: dict[str, Any], human: bool = False) -> None:
    """Print result as JSON (default) or human-readable text. Errors exit 1."""
    if "error" in data:
        click.echo(json.dumps(data, indent=2, default=str), err=True)
        sys.exit(1)
    if human:
        click.echo(format_human(data))
    else:
        click.echo(json.dumps(data, indent=2, default=str))


def _status_char(status: str) -> str:
    try:
        return Status(status).char
    except ValueError:
        return "?"


def format_issue_line(item: dict[str, Any]) -> str:
    line = f"[{item['id']}] {_status_char(item['status'])} {item['title']}"
    if item.get("blocked"):
        line += " (blocked)"
    return line


def format_tree(nodes: list[dict[str, Any]]) -> str:
    lines: list[str] = []

    def walk(node: dict[str, Any], prefix: str, connector: str, child_prefix: str) -> None:
        symbol = Status(node["status"]).symbol
        suffix = " (blocked)" if node.get("blocked") else ""
        lines.append(f"{prefix}{connector}[{node['id']}] {symbol} {node['title']}{suffix}")
        children = node.get("children", [])
        for i, child in enumerate(children):
            last = i == len(children) - 1
            walk(child, prefix + child_prefix, "└─ " if last else "├─ ", "   " if last else "│  ")

    for node in nodes:
        walk(node, "", "", "  ")
    return "\n".join(lines)


def format_human(data: dict[str, Any]) -> str:
    if "tree" in data:
        return format_tree(data["tree"])
    if "issues" in data and len(data) == 1:
        return "\n".join(format_issue_line(i) for i in data["issues"])

    lines: list[str] = []
    for k, v in data.items():
        if k == "issue" and isinstance(v, dict):
            lines.append(format_issue_line(v))
            for field_name in ("kind", "priority", "parent", "assignee", "created_at", "closed_at", "close_reason"):
                if field_name in v:
                    lines.append(f"  {field_name}: {v[field_name]}")
            if v.get("blocks"):
                lines.append(f"  blocks: {', '.join(v['blocks'])}")
            if v.get("description"):
                lines.append("")
                lines.append(v["description"].rstrip())
                lines.append("")
        elif k == "children" and isinstance(v, list):
            if v:
                lines.append("children:")
                lines.extend(f"  {format_issue_line(c)}" for c in v)
        elif isinstance(v, (list, dict)):
            lines.append(f"{k}: {json.dumps(v, indent=2, default=str)}")
        else:
            lines.append(f"{k}: {v}")
    return "\n".join(lines)

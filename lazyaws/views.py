"""Plain-text content for list rows, detail documents and help.

Kept free of ANSI styling so the core can measure document length for
scrolling; ``render`` adds colour on top.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from .providers.base import Account, Bucket, Cluster, Instance, S3Object
from .state import AppState, ListKind, Screen

HELP_SECTIONS: tuple[tuple[str, tuple[tuple[str, str], ...]], ...] = (
    (
        "NAVIGATION",
        (
            ("j/k Up/Down", "move"),
            ("g / G", "top / bottom"),
            ("Ctrl+U / Ctrl+D", "half page"),
            ("Ctrl+B / Ctrl+F", "page"),
            ("Enter", "open"),
            ("Esc", "back / clear search"),
            ("Tab", "next service (EC2, S3, EKS)"),
        ),
    ),
    (
        "SEARCH + COMMANDS",
        (
            ("/", "search current list"),
            ("n / N", "next / previous match"),
            (":", "command line (Tab completes)"),
            (":ec2 :s3 :eks", "switch service"),
            (":region :account", "switch region / account"),
            (":sa :da :cf", "select all / deselect all / clear filter"),
            (":q :qa", "back / quit"),
        ),
    ),
    (
        "EC2",
        (
            ("Space / x", "toggle / clear selection"),
            ("s S R t", "start stop reboot terminate"),
            ("a", "auto-refresh on/off"),
            ("C", "SSM shell (detail view)"),
        ),
    ),
    (
        "S3",
        (
            ("h / Backspace", "parent folder"),
            ("n", "next page when no search is active"),
            ("d / e", "download / edit object"),
            ("D", "delete (type name to confirm)"),
            ("p / v", "policy or presigned URL / versioning"),
            (":upload PATH [KEY]", "upload a local file"),
        ),
    ),
    (
        "EKS",
        (
            ("K", "update kubeconfig"),
            ("9", "launch k9s"),
        ),
    ),
    (
        "GENERAL",
        (
            ("r", "refresh"),
            ("c", "cycle region"),
            ("?", "toggle help"),
            ("q / Ctrl+C", "back / quit"),
        ),
    ),
)

AUTH_METHOD_LABELS: dict[str, str] = {
    "env": "Environment variables (AWS_ACCESS_KEY_ID, ...)",
    "profile": "Named profile from ~/.aws/config",
    "sso": "AWS IAM Identity Center (SSO)",
}

COLUMN_HEADERS: dict[ListKind, str] = {
    ListKind.AUTH_METHODS: "AUTH METHOD",
    ListKind.ACCOUNTS: f"{'ACCOUNT ID':<14} {'NAME':<30} ROLE",
    ListKind.REGIONS: "REGION",
    ListKind.INSTANCES: f"  {'INSTANCE ID':<21} {'NAME':<28} {'STATE':<11} {'TYPE':<12} {'PUBLIC IP':<16} PRIVATE IP",
    ListKind.BUCKETS: f"{'BUCKET':<50} {'REGION':<16} CREATED",
    ListKind.OBJECTS: f"{'KEY':<50} {'SIZE':>10}  {'MODIFIED':<20} CLASS",
    ListKind.CLUSTERS: f"{'CLUSTER':<36} {'VERSION':<9} {'STATUS':<12} REGION",
}


def help_lines() -> list[str]:
    lines: list[str] = []
    for title, entries in HELP_SECTIONS:
        if lines:
            lines.append("")
        lines.append(title)
        lines.extend(f"  {keys:<20} {description}" for keys, description in entries)
    return lines


def human_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if value < 1024 or unit == "TB":
            return f"{int(value)} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def row_text(kind: ListKind, item: Any) -> str:
    """One list row, without selection markers."""
    if kind is ListKind.AUTH_METHODS:
        return AUTH_METHOD_LABELS.get(str(item), str(item))
    if isinstance(item, Account):
        return f"{item.account_id:<14} {item.account_name:<30} {item.role_name}"
    if isinstance(item, Instance):
        return (
            f"{item.instance_id:<21} {item.name[:28]:<28} {item.state:<11} "
            f"{item.instance_type:<12} {item.public_ip or '-':<16} {item.private_ip or '-'}"
        )
    if isinstance(item, Bucket):
        return f"{item.name:<50} {item.region or '-':<16} {item.created}"
    if isinstance(item, S3Object):
        size = "" if item.is_folder else human_size(item.size)
        return f"{item.display_name:<50} {size:>10}  {item.last_modified:<20} {item.storage_class}"
    if isinstance(item, Cluster):
        return f"{item.name:<36} {item.version:<9} {item.status:<12} {item.region}"
    return str(item)


def _value_lines(value: Any, indent: int) -> list[str]:
    pad = " " * indent
    if isinstance(value, Mapping):
        lines: list[str] = []
        for key, inner in value.items():
            if isinstance(inner, (Mapping, list, tuple)) and inner:
                lines.append(f"{pad}{key}:")
                lines.extend(_value_lines(inner, indent + 2))
            else:
                lines.append(f"{pad}{key}: {_scalar(inner)}")
        return lines
    if isinstance(value, (list, tuple)):
        lines = []
        for inner in value:
            if isinstance(inner, Mapping):
                nested = _value_lines(inner, indent + 2)
                if nested:
                    lines.append(f"{pad}- {nested[0].strip()}")
                    lines.extend(nested[1:])
            else:
                lines.append(f"{pad}- {_scalar(inner)}")
        return lines
    return [f"{pad}{_scalar(value)}"]


def _scalar(value: Any) -> str:
    if value is None or value == "" or value == () or value == []:
        return "-"
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)


def metrics_summary(metrics: Mapping[str, Any] | None) -> dict[str, str] | None:
    """Readable CloudWatch figures for the instance detail screen."""
    if not metrics:
        return None

    def volume(key: str) -> str:
        value = metrics.get(key)
        return "-" if value is None else human_size(int(value))

    cpu = metrics.get("cpu_utilization")
    failed = metrics.get("status_check_failed")
    return {
        "period": str(metrics.get("period", "")),
        "cpu": "-" if cpu is None else f"{cpu:.1f}%",
        "network_in": volume("network_in"),
        "network_out": volume("network_out"),
        "disk_read": volume("disk_read_bytes"),
        "disk_write": volume("disk_write_bytes"),
        "status_check_failed": "-" if failed is None else str(int(failed)),
    }


def section_lines(sections: Sequence[tuple[str, Any]]) -> list[str]:
    lines: list[str] = []
    for title, payload in sections:
        if payload is None:
            continue
        if lines:
            lines.append("")
        lines.append(title)
        lines.extend(_value_lines(payload, 2))
    return lines


def document_lines(state: AppState) -> list[str]:
    """Scrollable lines for the current document screen or info overlay."""
    details = state.details
    if details.info_text:
        return details.info_text.splitlines()
    lines: list[str]
    if state.screen is Screen.HELP:
        return help_lines()
    if state.screen is Screen.EC2_DETAIL:
        data = details.instance
        lines = section_lines(
            (
                ("INSTANCE", data.get("details")),
                ("STATUS CHECKS", data.get("status")),
                ("SYSTEMS MANAGER", data.get("ssm")),
                ("METRICS", metrics_summary(data.get("metrics"))),
            )
        )
    elif state.screen is Screen.EKS_DETAIL:
        data = details.cluster
        lines = section_lines(
            (
                ("CLUSTER", data.get("cluster")),
                ("NODE GROUPS", data.get("node_groups")),
                ("ADD-ONS", data.get("addons")),
            )
        )
    elif state.screen is Screen.S3_OBJECT:
        lines = section_lines((("OBJECT", dict(details.obj) or None),))
    else:
        return []
    if details.error:
        lines = [f"! {details.error}", "", *lines]
    return lines


def breadcrumb(state: AppState) -> str:
    screen = state.screen
    if screen in (Screen.S3_BROWSE, Screen.S3_OBJECT):
        path = f"s3://{state.bucket}/{state.prefix}"
        if screen is Screen.S3_OBJECT and state.object_key:
            path = f"s3://{state.bucket}/{state.object_key}"
        return path
    if screen is Screen.EC2_DETAIL:
        return f"EC2 > {state.instance_id}"
    if screen is Screen.EKS_DETAIL:
        return f"EKS > {state.cluster}"
    titles = {
        Screen.AUTH_METHOD: "Choose how to authenticate",
        Screen.AUTH_PROFILE: "Profile name",
        Screen.SSO_CONFIG: "SSO start URL",
        Screen.ACCOUNTS: "Accounts",
        Screen.REGIONS: "Regions",
        Screen.EC2: "EC2 instances",
        Screen.S3: "S3 buckets",
        Screen.EKS: "EKS clusters",
        Screen.HELP: "Help",
    }
    return titles.get(screen, screen.value)

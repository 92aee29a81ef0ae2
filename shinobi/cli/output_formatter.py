# CUI // SP-CTI
"""
Shinobi CLI Output Formatter
============================

Human-friendly terminal output for the Shinobi CLIs: tables, banners,
key-value blocks and section headers, plus renderers for synthesis reports
and precedence explanations. ``--json`` output bypasses this module.

Usage::

    from shinobi.cli.output_formatter import (
        format_table, format_banner, format_kv, format_section, format_list,
        format_report, format_explain,
    )
"""

from __future__ import annotations

import json
import os
import re
import sys
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

CUI_BANNER = "# CUI // SP-CTI"

# ---------------------------------------------------------------------------
# ANSI color support
# ---------------------------------------------------------------------------

def _is_tty() -> bool:
    """Return True if stdout is connected to a terminal."""
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


# Also respect NO_COLOR (https://no-color.org/) and FORCE_COLOR env vars.
_COLORS_ENABLED: bool = (
    os.environ.get("FORCE_COLOR", "") == "1"
    or (_is_tty() and os.environ.get("NO_COLOR") is None)
)


class _Ansi:
    """ANSI escape-code helpers. Plain text when color is disabled."""

    _CODES = {
        "reset":     "\033[0m",
        "bold":      "\033[1m",
        "dim":       "\033[2m",
        "underline": "\033[4m",
        "red":       "\033[31m",
        "green":     "\033[32m",
        "yellow":    "\033[33m",
        "blue":      "\033[34m",
        "magenta":   "\033[35m",
        "cyan":      "\033[36m",
    }

    @classmethod
    def wrap(cls, text: str, *styles: str) -> str:
        """Wrap *text* with one or more ANSI styles."""
        if not _COLORS_ENABLED or not styles:
            return text
        prefix = "".join(cls._CODES.get(s, "") for s in styles)
        return f"{prefix}{text}{cls._CODES['reset']}"

    @classmethod
    def strip(cls, text: str) -> str:
        """Remove all ANSI escape sequences from *text*."""
        return re.sub(r"\033\[[0-9;]*m", "", text)


C = _Ansi  # short alias

# ---------------------------------------------------------------------------
# Value-based auto-coloring
# ---------------------------------------------------------------------------

_VALUE_COLORS: List[Tuple[str, List[str]]] = [
    # (pattern_substring, [ansi_styles])
    ("error",       ["red"]),
    ("failed",      ["red"]),
    ("rejected",    ["red"]),
    ("block",       ["red", "bold"]),
    ("violation",   ["red", "bold"]),
    ("warning",     ["yellow"]),
    ("advisory",    ["yellow"]),
    ("skipped",     ["dim"]),
    ("applied",     ["green"]),
    ("resolved",    ["green"]),
    ("succeeded",   ["green"]),
    ("info",        ["blue"]),
]


def _auto_color_value(value: str) -> str:
    """Apply color to *value* if it matches a known status pattern."""
    lower = value.lower().strip()
    for pattern, styles in _VALUE_COLORS:
        if pattern in lower:
            return C.wrap(value, *styles)
    return value


def _visible_len(text: str) -> int:
    """Return the display width of *text*, ignoring ANSI codes."""
    return len(C.strip(str(text)))

# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------

def format_table(
    headers: Sequence[str],
    rows: Sequence[Sequence[Any]],
    title: Optional[str] = None,
) -> str:
    """Render an ASCII table with box-drawing characters and auto-width columns.

    Values matching known status patterns are automatically colorized.
    """
    str_rows = [[str(c) for c in row] for row in rows]

    widths = [len(h) for h in headers]
    for row in str_rows:
        for i, cell in enumerate(row):
            if i < len(widths):
                widths[i] = max(widths[i], len(cell))

    def _hline(left: str, mid: str, right: str, fill: str = "─") -> str:
        return left + mid.join(fill * (w + 2) for w in widths) + right

    top    = _hline("┌", "┬", "┐")
    sep    = _hline("├", "┼", "┤")
    bottom = _hline("└", "┴", "┘")

    def _row_str(cells: List[str], color_fn: Optional[Callable] = None) -> str:
        parts = []
        for i, cell in enumerate(cells):
            w = widths[i] if i < len(widths) else 0
            display = color_fn(cell) if color_fn else cell
            pad = w - len(cell)
            parts.append(f" {display}{' ' * pad} ")
        return "│" + "│".join(parts) + "│"

    lines: List[str] = []
    if title:
        lines.append(C.wrap(f"  {title}", "bold", "underline"))
        lines.append("")
    lines.append(top)
    lines.append(_row_str(list(headers), lambda c: C.wrap(c, "bold", "cyan")))
    lines.append(sep)
    for row in str_rows:
        lines.append(_row_str(row, _auto_color_value))
    lines.append(bottom)
    return "\n".join(lines)


_BANNER_STYLES = {
    "succeeded": ("green",),
    "failed":    ("red", "bold"),
    "info":      ("blue",),
}


def format_banner(status: str, message: str) -> str:
    """Full-width colored status banner (succeeded, failed, info)."""
    styles = _BANNER_STYLES.get(status.lower(), ("blue",))
    icon_map = {"succeeded": "[OK]", "failed": "[XX]", "info": "[ii]"}
    icon = icon_map.get(status.lower(), "[--]")
    width = max(60, len(message) + 12)
    rule = "═" * width
    inner = f"  {icon}  {message}"
    pad = width - _visible_len(inner)
    return "\n".join([
        C.wrap(rule, *styles),
        C.wrap(f"{inner}{' ' * max(pad, 0)}", *styles),
        C.wrap(rule, *styles),
    ])


def format_kv(
    pairs: Union[Dict[str, Any], List[Tuple[str, Any]]],
    title: Optional[str] = None,
) -> str:
    """Formatted key-value display with aligned colons and colored values."""
    items = list(pairs.items()) if isinstance(pairs, dict) else list(pairs)
    if not items:
        return ""

    max_key = max(len(str(k)) for k, _ in items)
    lines: List[str] = []
    if title:
        lines.append(C.wrap(f"  {title}", "bold", "underline"))
        lines.append("")
    for key, val in items:
        k_str = str(key).ljust(max_key)
        lines.append(f"  {C.wrap(k_str, 'cyan')} : {_auto_color_value(str(val))}")
    return "\n".join(lines)


def format_section(title: str, width: int = 60) -> str:
    """Decorated section header with horizontal rules."""
    rule = "─" * width
    return "\n".join([
        C.wrap(rule, "dim"),
        C.wrap(f"  {title}", "bold", "magenta"),
        C.wrap(rule, "dim"),
    ])


def format_list(items: Sequence[str], numbered: bool = False, bullet: str = "•") -> str:
    """Bulleted or numbered list."""
    lines: List[str] = []
    for i, item in enumerate(items, start=1):
        prefix = f"  {i}." if numbered else f"  {bullet}"
        lines.append(f"{prefix} {_auto_color_value(str(item))}")
    return "\n".join(lines)


def _short(value: Any, limit: int = 48) -> str:
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    return text if len(text) <= limit else text[: limit - 3] + "..."

# ---------------------------------------------------------------------------
# Synthesis renderers
# ---------------------------------------------------------------------------

def format_report(report: Dict[str, Any]) -> str:
    """Render a SynthesisReport.to_dict() for the terminal."""
    context = report.get("context", {})
    status = "succeeded" if report.get("success") else "failed"
    blocks: List[str] = [
        CUI_BANNER,
        format_banner(status, f"Synthesis {status}: {context.get('service_name')} "
                              f"({context.get('compliance_framework')}, {context.get('environment')})"),
        format_kv({"run id": report.get("run_id"), **report.get("summary", {})}, title="Summary"),
    ]

    components = report.get("components", {})
    if components:
        rows = [(name, c.get("type"), "resolved", c.get("fingerprint"), len(c.get("warnings", [])))
                for name, c in components.items()]
        blocks.append(format_table(["Component", "Type", "Status", "Fingerprint", "Warnings"],
                                   rows, title="Components"))

    bindings = report.get("bindings", [])
    if bindings:
        rows = []
        for b in bindings:
            d = b["directive"]
            rows.append((f"{d['source']} -> {d['target']}", d["capability"], d["access"],
                         b["strategy"], len(b["environment_variables"]), len(b["permissions"]),
                         len(b["network_rules"])))
        blocks.append(format_table(["Binding", "Capability", "Access", "Strategy", "Env",
                                    "Statements", "Rules"], rows, title="Bindings"))

        actions = [
            f"{a['severity']}: [{a['rule_id']}] {a['message']}"
            for b in bindings for a in b["compliance_actions"] if a["severity"] != "info"
        ]
        if actions:
            blocks.append(format_section("Compliance actions"))
            blocks.append(format_list(actions))

    errors = report.get("errors", [])
    if errors:
        blocks.append(format_section(f"Errors ({len(errors)})"))
        blocks.append(format_list(
            [f"{e['error_type']} [{e['scope']}] {e.get('name') or '-'}: {e['message']}" for e in errors],
            numbered=True,
        ))
    return "\n\n".join(b for b in blocks if b)


def format_explain(explanation: Dict[str, Any]) -> str:
    """Render ConfigBuilder.explain() as a per-key precedence table."""
    rows = []
    for key, entry in explanation.get("trace", {}).items():
        contributions = entry.get("values", [])
        final = contributions[-1]["value"] if contributions and entry.get("winner") else None
        layers = ", ".join(c["layer"] for c in contributions)
        rows.append((key, _short(final), entry.get("winner") or "-", layers))
    blocks = [
        format_section(f"Precedence for {explanation.get('component')} ({explanation.get('type')})"),
        format_table(["Key", "Value", "Winner", "Set by"], rows),
    ]
    conflicts = explanation.get("conflicts", [])
    if conflicts:
        blocks.append(format_list(
            [f"{c['key']}: {' < '.join(v['layer'] for v in c['values'])}" for c in conflicts]))
    return "\n\n".join(blocks)

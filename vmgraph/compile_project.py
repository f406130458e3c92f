"""
compile_project.py: CLI for the vmgraph module compiler
====================================================
Compiles a saved project JSON file into the Python source of one module class.

Usage
-----
    vmgraph-compile <project.json> [options]
    python -m vmgraph.compile_project <project.json> [options]

Options
-------
    --out     <dir>     Output directory (default: VMGRAPH_OUTPUT_DIR or compiled/)
    --print             Print the generated source to stdout instead of writing a file
    --strict            Treat unknown node types as errors (default: warnings only)
    --script            Emit the editable graph script instead of module source

Examples
--------
    vmgraph-compile projects/speedy.json
    vmgraph-compile projects/speedy.json --out build/ --strict
    vmgraph-compile projects/speedy.json --script --print
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from vmgraph.compiler.schema import SchemaError, validate_file
from vmgraph.compiler.templates import sanitize_identifier
from vmgraph.config import settings
from vmgraph.core.Session import EditorSession


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="vmgraph-compile",
        description="Compile a vmgraph project JSON file to a Python module class.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    p.add_argument(
        "project_json",
        metavar="project.json",
        help="Path to the project JSON file to compile.",
    )
    p.add_argument(
        "--out",
        metavar="DIR",
        default=None,
        help=f"Output directory for the compiled file (default: {settings.output_dir}/).",
    )
    p.add_argument(
        "--print",
        dest="print_only",
        action="store_true",
        help="Print generated source to stdout instead of writing a file.",
    )
    p.add_argument(
        "--strict",
        action="store_true",
        help="Treat unknown node types as errors rather than warnings.",
    )
    p.add_argument(
        "--script",
        action="store_true",
        help="Write the graph script (editable text form) instead of module source.",
    )
    return p


def _module_filename(module_name: str, script: bool) -> str:
    """'Speedy Ship' -> 'speedy_ship.py' (or 'speedy_ship.graph.py' for scripts)."""
    safe = sanitize_identifier(module_name, "module").lower()
    return f"{safe}.graph.py" if script else f"{safe}.py"


def main(argv=None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=settings.log_level)

    json_path = Path(args.project_json)
    if not json_path.exists():
        print(f"[error] File not found: {json_path}", file=sys.stderr)
        return 1

    # ── Validate JSON ────────────────────────────────────────────────────────
    try:
        data = validate_file(json_path, strict=args.strict)
    except json.JSONDecodeError as exc:
        print(f"[error] Invalid JSON: {exc}", file=sys.stderr)
        return 1
    except SchemaError as exc:
        print(f"[error] Schema validation failed: {exc}", file=sys.stderr)
        return 1

    # ── Load ─────────────────────────────────────────────────────────────────
    session = EditorSession(history_limit=settings.history_limit)
    session.load_project(data)
    name = session.metadata.name
    print(f"[vmgraph-compile] module : {name}", file=sys.stderr)
    print(f"[vmgraph-compile] nodes  : {len(session.root.nodes)}", file=sys.stderr)
    print(f"[vmgraph-compile] edges  : {len(session.root.connections)}", file=sys.stderr)

    for issue in session.validate():
        print(f"[vmgraph-compile] {issue.severity}: {issue.node_id}: {issue.message}", file=sys.stderr)

    # ── Emit ─────────────────────────────────────────────────────────────────
    source = session.generate_script() if args.script else session.generate()

    # ── Output ───────────────────────────────────────────────────────────────
    if args.print_only:
        print(source)
        return 0

    out_dir = Path(args.out) if args.out else settings.output_dir
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / _module_filename(name, args.script)
    out_path.write_text(source, encoding="utf-8")

    print(f"[vmgraph-compile] wrote  : {out_path}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())

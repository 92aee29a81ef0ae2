#!/usr/bin/env python3
# CUI // SP-CTI
"""Plan a service manifest: resolve configs, bind components, report.

Exit code 0 when every component and binding resolved, 1 otherwise.

Usage:
    python -m shinobi.cli.plan --file service.yml
    python -m shinobi.cli.plan --dir services/orders --json
    python -m shinobi.cli.plan --file service.yml --explain api
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from shinobi.cli.output_formatter import format_explain, format_list, format_report
from shinobi.core.correlation import CorrelationLogFilter
from shinobi.core.errors import ShinobiError
from shinobi.project.manifest_loader import load_manifest
from shinobi.synthesis.planner import SynthesisPlanner

logger = logging.getLogger("shinobi.cli.plan")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(name)s] [%(correlation_id)s] %(levelname)s: %(message)s",
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(CorrelationLogFilter())


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Plan a Shinobi service manifest")
    parser.add_argument("--file", help="Path to service.yml")
    parser.add_argument("--dir", help="Service directory containing service.yml")
    parser.add_argument("--args-dir", type=Path, help="Directory holding the layer YAML files")
    parser.add_argument("--audit-db", type=Path, help="Append audit events to this SQLite file")
    parser.add_argument("--explain", metavar="COMPONENT",
                        help="Show the per-key precedence trace for one component")
    parser.add_argument("--lenient-enums", action="store_true",
                        help="Replace invalid enum values with schema defaults (reported as warnings)")
    parser.add_argument("--json", action="store_true", dest="json_output", help="JSON output")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    manifest = load_manifest(directory=args.dir, file_path=args.file)
    if not manifest["valid"]:
        if args.json_output:
            print(json.dumps({"success": False, "file_path": manifest["file_path"],
                              "errors": manifest["errors"], "warnings": manifest["warnings"]},
                             indent=2))
        else:
            print(f"Manifest {manifest['file_path']} is invalid:")
            print(format_list(manifest["errors"], numbered=True))
        return 1
    for warning in manifest["warnings"]:
        logger.warning("%s: %s", manifest["file_path"], warning)

    try:
        planner = SynthesisPlanner.from_directory(args.args_dir, args.audit_db, args.lenient_enums)
    except ShinobiError as exc:
        print(json.dumps(exc.to_dict(), indent=2) if args.json_output else f"ERROR: {exc.message}")
        return 1

    if args.explain:
        spec = next((c for c in manifest["components"] if c.name == args.explain), None)
        if spec is None:
            print(f"ERROR: no component named '{args.explain}' in {manifest['file_path']}")
            return 1
        try:
            explanation = planner.explain(manifest["context"], spec)
        except ShinobiError as exc:
            print(json.dumps(exc.to_dict(), indent=2) if args.json_output else f"ERROR: {exc.message}")
            return 1
        print(json.dumps(explanation, indent=2, default=str) if args.json_output
              else format_explain(explanation))
        return 0

    report = planner.plan(manifest["context"], manifest["components"], manifest["bindings"])
    if args.json_output:
        print(json.dumps(report.to_dict(), indent=2, default=str))
    else:
        print(format_report(report.to_dict()))
    return 0 if report.success else 1


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Backup CLI

Usage:
    python -m backup.cli export [--output PATH] [--config PATH]
    python -m backup.cli import FILE [--config PATH]
    python -m backup.cli inspect FILE
    python -m backup.cli resume [--config PATH]

Exit codes: 0 success, 1 restore/export failure, 2 usage error.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from backup.errors import ExportError, RestoreError
from backup.snapshot import REQUIRED_COLLECTIONS, validate_snapshot
from engine import build_engine
from engine.config import EngineConfig, load_config, merge_env_overrides

logger = logging.getLogger(__name__)


def _load(config_path: Optional[str]) -> EngineConfig:
    if config_path:
        return load_config(config_path)
    default = Path("config/engine.defaults.yml")
    if default.exists():
        return load_config(default)
    return EngineConfig.from_dict(merge_env_overrides({}))


def cmd_export(args: argparse.Namespace, config: EngineConfig) -> int:
    engine = build_engine(config)
    try:
        text = engine.snapshots.create_snapshot()
        if args.output:
            output = Path(args.output)
            path = engine.snapshots.export_to_file(text, filename=output.name, directory=output.parent)
        else:
            path = engine.snapshots.export_to_file(text)
    except ExportError as e:
        logger.error(f"Export failed: {e}")
        print(e.user_message, file=sys.stderr)
        return 1
    finally:
        engine.close()
    print(path)
    return 0


def cmd_import(args: argparse.Namespace, config: EngineConfig) -> int:
    engine = build_engine(config)
    try:
        snapshot = asyncio.run(engine.snapshots.import_from_file(args.file))
    except RestoreError as e:
        logger.error(f"Import failed: {e}")
        print(e.user_message, file=sys.stderr)
        return 1
    finally:
        engine.close()
    print(f"Restored backup from {snapshot.timestamp} (version {snapshot.version})")
    return 0


def cmd_resume(args: argparse.Namespace, config: EngineConfig) -> int:
    engine = build_engine(config)
    try:
        snapshot = engine.snapshots.resume_restore()
    except RestoreError as e:
        logger.error(f"Resume failed: {e}")
        print(e.user_message, file=sys.stderr)
        return 1
    finally:
        engine.close()
    if snapshot is None:
        print("No interrupted restore found")
    else:
        print(f"Resumed restore of backup from {snapshot.timestamp}")
    return 0


def cmd_inspect(args: argparse.Namespace, config: EngineConfig) -> int:
    """Describe a backup file without applying it."""
    try:
        payload = json.loads(Path(args.file).read_text(encoding="utf-8"))
        validate_snapshot(payload)
    except (OSError, UnicodeDecodeError) as e:
        print(f"Cannot read {args.file}: {e}", file=sys.stderr)
        return 1
    except (json.JSONDecodeError, RecursionError) as e:
        print(f"Not valid JSON: {e}", file=sys.stderr)
        return 1
    except RestoreError as e:
        print(e.user_message, file=sys.stderr)
        return 1

    print(f"version:   {payload['version']}")
    print(f"timestamp: {payload.get('timestamp', '')}")
    for name in REQUIRED_COLLECTIONS:
        value = payload["collections"][name]
        size = len(value) if isinstance(value, (list, dict)) else 1
        print(f"{name:<10} {size}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="backup", description="Export and import data backups")
    parser.add_argument("--config", help="Path to engine YAML config")
    sub = parser.add_subparsers(dest="command", required=True)

    export = sub.add_parser("export", help="Write a backup of the current state")
    export.add_argument("--output", help="Backup file path (default: laundry-backup-<date>.json)")
    export.set_defaults(func=cmd_export)

    imp = sub.add_parser("import", help="Restore state from a backup file")
    imp.add_argument("file")
    imp.set_defaults(func=cmd_import)

    inspect = sub.add_parser("inspect", help="Show a backup's metadata without applying it")
    inspect.add_argument("file")
    inspect.set_defaults(func=cmd_inspect)

    resume = sub.add_parser("resume", help="Finish an interrupted restore")
    resume.set_defaults(func=cmd_resume)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = _load(args.config)

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    return args.func(args, config)


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""Register video files with the library database and list what is there."""
from __future__ import annotations

import argparse
import importlib
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from player.fmt import format_duration, format_file_size, format_views  # noqa: E402

APP = None  # populated lazily


def import_app_module():
    global APP
    if APP is None:
        APP = importlib.import_module("app")
    return APP


def _configure(app_mod, root: Optional[str], db_path: Optional[str]) -> None:
    if root:
        app_mod.STATE["root"] = Path(root).expanduser().resolve()
    if db_path:
        app_mod.STATE["db_path"] = Path(db_path).expanduser()
    app_mod.STATE["db_ready"] = False


def _parse_variants(values: Sequence[str]) -> List[Dict[str, str]]:
    out: List[Dict[str, str]] = []
    for raw in values:
        label, sep, rel = raw.partition("=")
        if not sep or not label.strip() or not rel.strip():
            raise SystemExit(f"invalid --variant {raw!r}; expected LABEL=PATH")
        out.append({"quality": label.strip(), "path": rel.strip()})
    return out


def cmd_add(args: argparse.Namespace) -> int:
    app_mod = import_app_module()
    _configure(app_mod, args.root, args.db)
    payload: Dict[str, Any] = {
        "title": args.title or Path(args.path).stem,
        "video_path": args.path,
        "thumbnail_path": args.thumbnail,
        "duration": args.duration,
        "resolutions": _parse_variants(args.variant or []),
    }
    try:
        item = app_mod.create_item(app_mod.ItemCreate(**payload))
    except ValueError as e:
        sys.stderr.write(f"[items] invalid item: {e}\n")
        return 1
    except app_mod.HTTPException as e:
        detail = e.detail.get("message") if isinstance(e.detail, dict) else e.detail
        sys.stderr.write(f"[items] {detail}\n")
        return 1
    if args.json:
        print(json.dumps(item, indent=2))
    else:
        print(f"{item['id']}  {item['title']}")
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    app_mod = import_app_module()
    _configure(app_mod, args.root, args.db)
    items = app_mod.list_items()
    if args.json:
        print(json.dumps(items, indent=2))
        return 0
    for it in items:
        qualities = ",".join(r["quality"] for r in it.get("resolutions") or []) or "-"
        print(
            f"{it['id']}  {it['title']:<40.40}  {format_duration(it.get('duration')):>9}"
            f"  {format_file_size(it.get('file_size')):>10}  {format_views(it.get('views')):>5} views  [{qualities}]"
        )
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description=__doc__)
    ap.add_argument("--root", default=os.environ.get("MEDIA_ROOT"), help="Media root (default: MEDIA_ROOT)")
    ap.add_argument("--db", default=os.environ.get("MEDIA_DB"), help="SQLite file (default: <root>/.state/library.db)")
    ap.add_argument("--json", action="store_true", help="Emit JSON instead of a table")
    sub = ap.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Register a file that already lives under the media root")
    add.add_argument("path", help="Video path relative to the media root")
    add.add_argument("--title")
    add.add_argument("--duration", type=float)
    add.add_argument("--thumbnail", help="Thumbnail path relative to the media root")
    add.add_argument("--variant", action="append", metavar="LABEL=PATH", help="Extra quality variant; repeatable")
    add.set_defaults(func=cmd_add)

    ls = sub.add_parser("list", help="List registered items, newest first")
    ls.set_defaults(func=cmd_list)
    return ap


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())

#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Parallel stacks view for managed runtime snapshots.
- Input is a JSON snapshot document: one record per thread with raw frame
  signatures, ids, the current exception and the lock count
- Demangles compiler generated names (closures, lambdas, async state
  machines, local functions) and generic instantiations
- Groups threads with identical stacks; biggest groups first
- Optional JSON export of the groups
"""
import argparse
import json
import os
import sys
from typing import List, Optional

from parallel_threads import ParallelThreadGroup, ParallelThreads, create_parallel_threads
from text_renderer import MAX_WIDTH, TextRenderer
from thread_registry import EmptyThreadRegistry, FieldNameCache, ThreadRegistry


def parse_args(argv: Optional[List[str]] = None):
    ap = argparse.ArgumentParser(description="Group managed threads with identical stacks into a parallel stacks view.")
    ap.add_argument("input", help="Path to a JSON snapshot document (or - for stdin).")
    ap.add_argument("-n", "--top", type=int, default=None, help="Show only the N biggest groups.")
    ap.add_argument("--raw", action="store_true", help="Also render the raw (not demangled) stack frames.")
    ap.add_argument("--no-color", action="store_true", help="Disable ANSI color.")
    ap.add_argument("-w", "--width", type=int, default=MAX_WIDTH, help="Width of the rendered table.")
    ap.add_argument("-j", "--jobs", type=int, default=1, help="Demangle threads on N worker threads.")
    ap.add_argument("--json", dest="json_out", help="Export the groups as JSON to this path.")
    ap.add_argument("--debug", action="store_true", help="Debug parsing.")
    return ap.parse_args(argv)


def load_snapshot(path: str) -> dict:
    try:
        if path == "-":
            data = json.load(sys.stdin)
        else:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
    except OSError as e:
        sys.stderr.write(f"[error] can't read snapshot: {e}\n")
        sys.exit(2)
    except json.JSONDecodeError as e:
        sys.stderr.write(f"[error] invalid snapshot document: {e}\n")
        sys.exit(2)

    if not isinstance(data, dict) or not isinstance(data.get("threads"), list):
        sys.stderr.write("[error] invalid snapshot document: expected an object with a 'threads' list\n")
        sys.exit(2)
    return data


def build_registry(data: dict, debug: bool = False):
    objects = data.get("thread_objects")
    if not objects:
        return EmptyThreadRegistry()
    try:
        live_ids = [int(t["managed_id"]) for t in data["threads"] if t.get("alive", True) and "managed_id" in t]
        return ThreadRegistry.from_thread_objects(objects, FieldNameCache(), live_ids=live_ids, debug=debug)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        sys.stderr.write(f"[error] invalid thread objects: {e!r}\n")
        sys.exit(2)


def group_to_json(group: ParallelThreadGroup) -> dict:
    info = group.thread_info
    data = {
        "kind": group.kind.value,
        "header": group.header,
        "thread_count": group.thread_count,
        "managed_ids": [t.thread_id.managed_id for t in group.threads],
        "frames": [
            {"type": sf.type_name, "method": sf.method, "arguments": sf.arguments, "signature": sf.signature}
            for sf in info.stack_frames
        ],
    }
    if info.exception is not None:
        data["exception"] = {"type": info.exception.type_name, "message": info.exception.message}
    if info.lock_count.is_valid:
        data["lock_count"] = info.lock_count.count
    return data


def export_json(path: str, threads: ParallelThreads):
    data = {
        "thread_count": threads.thread_count,
        "unique_stacks": threads.unique_stacks,
        "groups": [group_to_json(g) for g in threads.groups],
    }
    odir = os.path.dirname(path)
    if odir and not os.path.isdir(odir):
        os.makedirs(odir, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def main(argv: Optional[List[str]] = None):
    args = parse_args(argv)

    # 1) read the snapshot
    data = load_snapshot(args.input)

    # 2) thread names, if the snapshot carries thread objects
    registry = build_registry(data, debug=args.debug)

    # 3) demangle + group
    try:
        threads = create_parallel_threads(data["threads"], registry, jobs=max(args.jobs, 1), debug=args.debug)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        sys.stderr.write(f"[error] invalid thread record: {e!r}\n")
        sys.exit(2)

    if not threads.groups:
        print("No managed stacks found. Ensure the snapshot contains live threads with frames.", file=sys.stderr)
        sys.exit(1)

    # 4) render
    renderer = TextRenderer(sys.stdout, color=not args.no_color, render_raw_stack_frames=args.raw,
                            max_width=args.width)
    renderer.render(threads, top=args.top)

    # 5) optionally export
    if args.json_out:
        export_json(args.json_out, threads)


if __name__ == "__main__":
    main()

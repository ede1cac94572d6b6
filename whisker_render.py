#!/usr/bin/env python3
"""
Render a Mustache-like template file against JSON data.

Usage:
  python whisker_render.py --template page.mustache.html --data page.json --output page.html
  echo '{"msg": "hi"}' | python whisker_render.py --template t.txt --data - --delimiters "<% %>"

The data file holds any JSON value; an object is the usual root context, an array renders the
template once per element. Without --data the template is rendered against an empty object.
Without --output the result goes to stdout.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from whisker import RenderError, RenderOptions, Renderer

logger = logging.getLogger(__name__)

# -----------------------------
# Inputs
# -----------------------------
def load_data(source: Optional[str]) -> Any:
    if source is None:
        return {}
    if source == "-":
        return json.loads(sys.stdin.read())
    return json.loads(Path(source).read_text(encoding="utf-8"))


def _options(args: argparse.Namespace) -> RenderOptions:
    if args.delimiters:
        return RenderOptions.from_delimiters(args.delimiters)
    return RenderOptions()


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

# -----------------------------
# CLI
# -----------------------------
def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="whisker-render", description="Render a Mustache-like template.")
    ap.add_argument("--template", required=True, help="Path to the template file")
    ap.add_argument("--data", default=None, help="Path to JSON data file ('-' reads stdin)")
    ap.add_argument("--output", default=None, help="Path to write rendered text (default: stdout)")
    ap.add_argument("--delimiters", default=None, help="Open and close delimiters, e.g. \"<% %>\"")
    ap.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-vv for debug)")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    _setup_logging(args.verbose)

    try:
        options = _options(args)
    except ValueError as e:
        ap.error(str(e))

    try:
        template = Path(args.template).read_text(encoding="utf-8")
        data = load_data(args.data)
        rendered = Renderer(options).render(template, data)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON data: {e}")
        return 1
    except RenderError as e:
        logger.error(f"Failed to render {args.template}: {e}")
        return 1
    except UnicodeDecodeError as e:
        logger.error(f"Input is not valid UTF-8: {e}")
        return 1
    except OSError as e:
        logger.error(str(e))
        return 1

    if args.output:
        out_path = Path(args.output)
        out_path.write_text(rendered, encoding="utf-8")
        print(f"Wrote: {out_path}")
    else:
        sys.stdout.write(rendered)
    return 0


if __name__ == "__main__":
    sys.exit(main())

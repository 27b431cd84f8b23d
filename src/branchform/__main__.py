"""cli entrypoint for branchform."""

import argparse
import json
import logging
import sys
from pathlib import Path

from rich.console import Console

from .core.render import export_mermaid, export_outline, render_tree
from .core.schema import SchemaError, parse_graph, validate_graph

console = Console()


def _load(path: str):
    p = Path(path).expanduser()
    try:
        data = json.loads(p.read_text())
    except OSError as e:
        console.print(f"[red]cannot read {path}: {e}[/red]")
        sys.exit(1)
    except json.JSONDecodeError as e:
        console.print(f"[red]{path} is not json: {e}[/red]")
        sys.exit(1)
    try:
        return parse_graph(data)
    except SchemaError as e:
        console.print(f"[red]{path}: {e}[/red]")
        for err in e.errors[1:]:
            console.print(f"  [dim]{err}[/dim]")
        sys.exit(1)


def cmd_show(args) -> None:
    graph = _load(args.form)
    if args.format == "outline":
        print(export_outline(graph))
    elif args.format == "mermaid":
        print(export_mermaid(graph))
    else:
        console.print(render_tree(graph))


def cmd_validate(args) -> None:
    graph = _load(args.form)
    problems = validate_graph(graph)
    if not problems:
        console.print(f"[green]ok[/green] {args.form} ({len(graph)} steps)")
        return
    for problem in problems:
        console.print(f"[yellow]warning[/yellow] {problem}")
    if args.strict:
        sys.exit(1)


def cmd_serve(args, extra: list[str]) -> None:
    from .api.server import main as serve_main
    serve_main(extra)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="branchform - branching questionnaire editor"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="enable debug logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    show = sub.add_parser("show", help="print a form as a tree")
    show.add_argument("form", help="path to form json file")
    show.add_argument(
        "--format",
        "-f",
        choices=["tree", "outline", "mermaid"],
        default="tree",
    )

    validate = sub.add_parser("validate", help="check a form file")
    validate.add_argument("form", help="path to form json file")
    validate.add_argument(
        "--strict",
        action="store_true",
        help="exit non-zero on warnings such as orphan steps",
    )

    sub.add_parser("serve", help="run the api server (extra args go to the server)")

    args, extra = parser.parse_known_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "serve":
        cmd_serve(args, extra)
        return
    if extra:
        parser.error(f"unrecognized arguments: {' '.join(extra)}")
    if args.command == "show":
        cmd_show(args)
    else:
        cmd_validate(args)


if __name__ == "__main__":
    main()

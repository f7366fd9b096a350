from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Sequence

from pile.foundation.config_io import find_repo_root
from pile.foundation.errors import PileError
from pile.foundation.logging_utils import setup_logger
from pile.framework.template import DEFAULT_TEMPLATE
from pile.framework.vcs import GitAdapter
from pile.framework.version import VersionResolver


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pile", add_help=True)
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--git-timeout",
        type=float,
        default=None,
        help="Timeout in seconds for each git call (default: PILE_GIT_TIMEOUT or 30).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    version = sub.add_parser("version", help="Print the version string for one or more paths")
    version.add_argument("paths", nargs="*", default=["."], help="Paths inside one git work tree")
    version.add_argument("--template", default=DEFAULT_TEMPLATE, help="Version template")

    images = sub.add_parser("images", help="Print the image name of every buildable project")
    images.add_argument("dirs", nargs="*", help="Project directories (default: discovered under --root)")
    images.add_argument("--root", default=None, help="Tree root holding the defaults pile.yml (default: git work tree root)")
    images.add_argument("--jobs", "-j", type=int, default=None, help="Projects resolved in parallel")

    return parser


def _resolver(cwd: str, timeout_s: float | None) -> VersionResolver:
    return VersionResolver(GitAdapter(cwd, timeout_s=timeout_s))


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    logger = setup_logger(verbose=args.verbose)

    if args.command == "version":
        try:
            resolver = _resolver(os.getcwd(), args.git_timeout)
            record = resolver.resolve_projects(args.paths)
            print(record.format(args.template))
        except PileError as exc:
            logger.error("%s", exc)
            return 1
        return 0

    if args.command == "images":
        from pile.app.images import discover_projects, load_defaults, resolve_projects

        if args.root:
            root = os.path.abspath(args.root)
        else:
            try:
                root = find_repo_root()
            except FileNotFoundError as exc:
                logger.error("%s", exc)
                return 1
        try:
            resolver = _resolver(root, args.git_timeout)
        except PileError as exc:
            logger.error("%s", exc)
            return 1
        dirs = args.dirs or discover_projects(root)
        result = resolve_projects(
            dirs,
            load_defaults(root),
            resolver=resolver,
            max_workers=args.jobs,
        )
        for project in result.buildable():
            print(f"{os.path.relpath(project.dir, root)}\t{project.image_with_registry}")
        for path, exc in result.errors.items():
            logger.error("%s: %s", os.path.relpath(path, root), exc)
        return 0 if result.ok else 1

    raise AssertionError(f"Unhandled command: {args.command}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))

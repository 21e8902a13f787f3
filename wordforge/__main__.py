"""Command-line entry point: inspect or re-save an existing package."""

import argparse
import logging
import sys
from typing import List, Optional

from wordforge.core.exceptions import WordforgeError
from wordforge.core.services import PackageService
from wordforge.logging_config import setup_logging


def _inspect(service: PackageService, path: str) -> int:
    context = service.load(path)
    print(f"Blocks:      {len(context.body)}")
    print(f"Styles:      {context.styles.get_count()}")
    print(f"Lists:       {context.numbering.get_instance_count()} instance(s), "
          f"{context.numbering.get_abstract_count()} definition(s)")
    print(f"Comments:    {context.comments.get_count()}")
    print(f"Images:      {context.images.get_image_count()}")
    print(f"Other parts: {len(context.preserved_parts)}")
    return 0


def _resave(service: PackageService, source: str, target: str, cleanup: bool) -> int:
    context = service.load(source)
    if cleanup:
        removed = context.cleanup()
        logging.info("Cleanup: %s", removed)
    service.save(context, target)
    print(f"Wrote {target}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Configure logging and dispatch the sub-command."""
    setup_logging()
    parser = argparse.ArgumentParser(prog="wordforge")
    commands = parser.add_subparsers(dest="command", required=True)
    inspect_cmd = commands.add_parser("inspect", help="summarize a .docx package")
    inspect_cmd.add_argument("path")
    resave_cmd = commands.add_parser("resave", help="load a .docx package and write it back")
    resave_cmd.add_argument("source")
    resave_cmd.add_argument("target")
    resave_cmd.add_argument("--cleanup", action="store_true", help="drop unused lists and styles")
    args = parser.parse_args(argv)

    service = PackageService()
    try:
        if args.command == "inspect":
            return _inspect(service, args.path)
        return _resave(service, args.source, args.target, args.cleanup)
    except WordforgeError as exc:
        logging.getLogger("wordforge").error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())

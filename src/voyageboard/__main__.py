"""cli entrypoint for voyageboard."""

import argparse
import logging


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="voyageboard - visual trip planning whiteboard"
    )
    parser.add_argument(
        "command",
        nargs="?",
        choices=["tui", "serve"],
        default="tui",
        help="tui (default) or serve the REST api",
    )
    parser.add_argument(
        "--data-dir",
        "-d",
        help="storage directory for board and settings (default: ~/.voyageboard)",
    )
    parser.add_argument(
        "--mock",
        "-m",
        action="store_true",
        help="use mock client (no api calls, for testing)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="logging level (default: WARNING)",
    )
    parser.add_argument("--host", default="127.0.0.1", help="host to bind (serve)")
    parser.add_argument("--port", "-p", type=int, default=8000, help="port to bind (serve)")
    parser.add_argument("--reload", action="store_true", help="enable auto-reload (serve)")

    args = parser.parse_args(argv)

    # the tui owns the terminal, so its log goes to a file
    log_file = None
    if args.command == "tui":
        from .core.config import get_data_dir

        log_file = get_data_dir(args.data_dir) / "voyageboard.log"
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        filename=log_file,
    )

    if args.command == "serve":
        from .api.server import main as serve

        serve_args = ["--host", args.host, "--port", str(args.port)]
        if args.data_dir:
            serve_args += ["--data-dir", args.data_dir]
        if args.mock:
            serve_args.append("--mock")
        if args.reload:
            serve_args.append("--reload")
        serve(serve_args)
    else:
        from .tui.app import run

        run(data_dir=args.data_dir, mock=args.mock)


if __name__ == "__main__":
    main()

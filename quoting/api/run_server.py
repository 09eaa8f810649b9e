import argparse
import os

import uvicorn
from dotenv import load_dotenv

APP_PATH = "quoting.api.app:app"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve the energy proposal quoting API")
    parser.add_argument("--host", default=os.getenv("QUOTING_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("QUOTING_PORT", "8080")))
    return parser


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    args = build_parser().parse_args(argv)
    # The app's own configure_logging owns the handlers.
    uvicorn.run(APP_PATH, host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()

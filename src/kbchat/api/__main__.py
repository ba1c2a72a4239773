"""Run the API server: ``python -m kbchat.api [config.yaml]``."""

import sys

import uvicorn

from kbchat.api.app import create_app
from kbchat.utils.config import load_config
from kbchat.utils.logging import configure_logging


def main() -> None:
    settings = load_config(sys.argv[1] if len(sys.argv) > 1 else "kbchat.yaml")
    configure_logging(settings)

    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()

"""
Run the spanwise demo server.

Usage:
    python -m spanwise --config spanwise_config.yaml --port 8080
"""

import argparse
import logging

import uvicorn

from spanwise.bootstrap import build_app, configure_logging
from spanwise.config import load_config

logger = logging.getLogger("spanwise")


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(
        prog="spanwise",
        description="Observed user-name service over HTTP",
    )
    parser.add_argument("--config", default="spanwise_config.yaml", help="YAML config file")
    parser.add_argument("--host", default=None, help="Bind address (overrides web.host)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (overrides web.port)")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    configure_logging(config)

    host = args.host or config["web"]["host"]
    port = args.port or config["web"]["port"]
    logger.info(f"Starting spanwise on {host}:{port}")
    uvicorn.run(build_app(config), host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()

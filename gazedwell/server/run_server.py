#!/usr/bin/env python3
"""
CLI entry point for the gaze dwell WebSocket server.

Usage:
    gazedwell-server [--host HOST] [--port PORT] [--config CONFIG]
    python -m gazedwell.server.run_server --port 9000
"""

import argparse
import sys

from gazedwell.server.websocket_server import run_server


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Gaze dwell WebSocket server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    Start server on default port (8765):
        gazedwell-server

    Start server on custom port:
        gazedwell-server --port 9000

    Use custom config file:
        gazedwell-server --config my_config.yaml

Clients stream gaze samples to ws://localhost:8765 and receive dwell
progress, activations and recalibration requests.
        """
    )

    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host address to bind to (default: 127.0.0.1 for localhost only)"
    )

    parser.add_argument(
        "--port",
        type=int,
        default=8765,
        help="Port to listen on (default: 8765)"
    )

    parser.add_argument(
        "--config",
        type=str,
        default="config/config.yaml",
        help="Path to configuration file (default: config/config.yaml)"
    )

    args = parser.parse_args(argv)

    print(f"Gaze dwell server: ws://{args.host}:{args.port} (config: {args.config})")

    try:
        run_server(host=args.host, port=args.port, config_path=args.config)
    except Exception as e:
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

import argparse
import logging
import sys
import asyncio
from project_maps.mcp_server.server import server
from project_maps.core.config import load_config


def main():
    parser = argparse.ArgumentParser(
        description="ProjectMaps MCP Server - Structural maps and search for a project",
        epilog="Example: python -m project_maps.mcp_server --project-root . --config project-maps.config.yaml"
    )
    parser.add_argument(
        "--config",
        help="Path to configuration YAML file (default: project-maps.config.yaml)"
    )
    parser.add_argument(
        "--project-root",
        default=".",
        help="Root directory of the project to map (default: current directory)"
    )
    parser.add_argument(
        "--show-progress",
        action="store_true",
        default=None,
        help="Show progress bars while scanning"
    )

    args = parser.parse_args()

    # Only settings the config model knows are passed as overrides
    cli_args = {"show_progress": args.show_progress}
    config = load_config(config_path=args.config, cli_args=cli_args)

    logging.basicConfig(level=logging.INFO, stream=sys.stderr)

    server.config = config
    server.project_root = args.project_root

    logging.info(f"Server starting for {args.project_root} with maps in {config.maps_dir}")
    logging.info("Server running on stdio")
    try:
        asyncio.run(server.run_stdio_async())
    except KeyboardInterrupt:
        logging.info("Server stopped")


if __name__ == "__main__":
    main()

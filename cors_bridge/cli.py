#!/usr/bin/env python3
"""
CORS proxy server for development.

Usage:
    cors-bridge --port 3001 --origin "https://myapp.com"
    curl "http://localhost:3001/https://api.example.com/data"
"""

import argparse
import dataclasses
from importlib.metadata import PackageNotFoundError, version

import uvicorn

from cors_bridge import vars as env
from cors_bridge.config import ProxyConfig


def package_version() -> str:
    try:
        return version("cors-bridge")
    except PackageNotFoundError:
        return "0.0.0"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="cors-bridge",
        description="CORS proxy server for development",
        epilog='example: cors-bridge --port 3001 --origin "https://myapp.com"',
    )
    parser.add_argument("-H", "--host", default=env.HOST, help="host to bind to")
    parser.add_argument(
        "-p", "--port", type=int, default=env.PORT, help="port to listen on"
    )
    parser.add_argument(
        "-o", "--origin", default=env.ALLOWED_ORIGIN, help="allowed origin for CORS"
    )
    parser.add_argument(
        "--fix-cookies",
        action=argparse.BooleanOptionalAction,
        default=env.FIX_COOKIES,
        help="fix cookie domains for localhost development",
    )
    parser.add_argument(
        "--cookie-domain",
        default=env.COOKIE_DOMAIN,
        help="domain to replace in cookies",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=env.PROXY_TIMEOUT,
        help="upstream HTTP timeout in seconds",
    )
    parser.add_argument(
        "--log-level",
        default=env.LOG_LEVEL,
        choices=["critical", "error", "warning", "info", "debug", "trace"],
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {package_version()}"
    )
    return parser.parse_args(argv)


def build_config(args) -> ProxyConfig:
    return dataclasses.replace(
        ProxyConfig.from_env(),
        host=args.host,
        port=args.port,
        allowed_origin=args.origin,
        fix_cookies=args.fix_cookies,
        cookie_domain=args.cookie_domain,
        timeout=args.timeout,
    )


def main(argv=None):
    args = parse_args(argv)
    config = build_config(args)

    from cors_bridge.server import create_app

    app = create_app(config)
    uvicorn.run(app, host=config.host, port=config.port, log_level=args.log_level)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""Main entry point for viewport-cli"""

import argparse
import logging
import sys
from typing import List, Optional, Tuple
from urllib.parse import urlparse

from viewport_core.client import ViewportClient
from viewport_core.config import config
from viewport_core.errors import ViewportError
from viewport_core.models import ScanResult, ScanStatus
from viewport_core.results import save_scan_result
from viewport_core.supervisor import ServiceSupervisor
from viewport_core.tunnel import TunnelBridge

logger = logging.getLogger(__name__)

LOCAL_HOSTS = ("localhost", "127.0.0.1")


def resolve_target(target: Optional[str], port: Optional[int]) -> str:
    if not target and port:
        target = f"http://localhost:{port}"
    if not target:
        raise ValueError("either --target or --port must be specified")
    parsed = urlparse(target)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValueError(f"invalid target URL: {target}")
    return target


def tunnel_target(target: str) -> Optional[Tuple[int, str]]:
    """(local port, path) when ``target`` points at this machine, else None"""
    parsed = urlparse(target)
    if parsed.hostname not in LOCAL_HOSTS:
        return None
    port = parsed.port or (443 if parsed.scheme == "https" else 80)
    path = parsed.path
    if parsed.query:
        path = f"{path}?{parsed.query}"
    return port, path


def print_results(result: ScanResult) -> None:
    print("Results:")
    print("┌──────────┬────────────┬──────────┐")
    print("│ Device   │ Size       │ Status   │")
    print("├──────────┼────────────┼──────────┤")
    for r in result.results:
        size = f"{r.width}×{r.height}"
        status = "ok" if r.ok else (r.error_code or "error")
        print(f"│ {r.device:<8} │ {size:<10} │ {status:<8} │")
    print("└──────────┴────────────┴──────────┘")
    for r in result.failed:
        print(f"   ⚠️  {r.device}: {r.error}")


def cmd_scan(args: argparse.Namespace) -> int:
    try:
        target = resolve_target(args.target, args.port)
    except ValueError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    viewports = [v.strip().lower() for v in args.viewports.split(",")] if args.viewports else config.default_viewports
    output = args.output or config.output_dir

    supervisor = ServiceSupervisor(args.server_port, verbose=args.verbose)
    tunnel: Optional[TunnelBridge] = None
    try:
        print(f"⏳ Ensuring screenshot server on port {supervisor.port}...")
        server_url = supervisor.ensure_running(auto_start=not args.no_spawn)
        print(f"✅ Screenshot server ready on {server_url}\n")

        local = tunnel_target(target) if args.tunnel else None
        if local:
            local_port, path = local
            print("🌐 Setting up tunnel...")
            tunnel = TunnelBridge()
            public_url = tunnel.start(local_port)
            print(f"✅ Tunnel created: {public_url}\n")
            target = public_url + path

        print("🎯 Viewport Scan")
        print(f"Target: {target}")
        print(f"Viewports: {', '.join(viewports)}")
        print(f"Output: {output}\n")
        print("📸 Capturing screenshots...")

        client = ViewportClient(server_url, timeout=args.timeout)
        result = client.scan(target, viewports)
    except ViewportError as e:
        print(f"❌ Scan failed: {e}", file=sys.stderr)
        help_text = getattr(e, "help", None)
        if help_text:
            print(f"   {help_text}", file=sys.stderr)
        return 1
    finally:
        if tunnel is not None:
            tunnel.stop()
        supervisor.stop()

    print(f"\n✅ Scan {result.status.value}")
    print(f"Scan ID: {result.scan_id}\n")
    print_results(result)

    print(f"\n💾 Saving results to {output}/")
    try:
        scan_dir = save_scan_result(result, output)
    except OSError as e:
        print(f"⚠️  Warning: Failed to save results: {e}")
    else:
        print(f"✅ Results saved to {scan_dir}")

    return 2 if result.status == ScanStatus.FAILED else 0


def cmd_status(args: argparse.Namespace) -> int:
    supervisor = ServiceSupervisor(args.server_port)
    status = supervisor.probe()
    if status == 200:
        print(f"✅ Screenshot server is running on {supervisor.url}")
        return 0
    if status == 503:
        print(f"⚠️  Screenshot server on {supervisor.url} is up but degraded (browser not ready)")
        return 0
    print(f"❌ Screenshot server is not running on port {supervisor.port}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="viewport-cli", description="Capture a page at multiple viewport sizes")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    sub = parser.add_subparsers(dest="command")

    # Accept -v after the subcommand too; SUPPRESS keeps a root-level -v from being reset
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true", default=argparse.SUPPRESS, help="Verbose logging")

    scan = sub.add_parser("scan", parents=[common], help="Scan a website across viewports")
    scan.add_argument("--target", help="Target URL (e.g. http://localhost:3000)")
    scan.add_argument("--port", type=int, help="Local port to scan when --target is omitted")
    scan.add_argument("--viewports", help="Comma-separated viewports (default: %s)" % ",".join(config.default_viewports))
    scan.add_argument("--output", help="Output directory for results")
    scan.add_argument("--tunnel", action="store_true", help="Expose a localhost target through a public tunnel")
    scan.add_argument("--server-port", type=int, default=config.server_port, help="Screenshot server port")
    scan.add_argument("--no-spawn", action="store_true", help="Fail instead of starting the screenshot server")
    scan.add_argument("--timeout", type=float, default=config.timeout_seconds, help="Whole-scan timeout in seconds")
    scan.set_defaults(func=cmd_scan)

    server = sub.add_parser("server", help="Screenshot server utilities")
    server_sub = server.add_subparsers(dest="server_command")
    status = server_sub.add_parser("status", parents=[common], help="Check whether the screenshot server is reachable")
    status.add_argument("--server-port", type=int, default=config.server_port)
    status.set_defaults(func=cmd_status)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, config.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    if not hasattr(args, "func"):
        parser.print_help()
        return 1
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())

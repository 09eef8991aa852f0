"""
Command line entry point.

Usage:
    solana-deploy-finder get-timestamp <program_id> [-v] [--human] [--force-refresh]

Examples:
    # ISO-8601 timestamp of the first deployment of the SPL token program
    solana-deploy-finder get-timestamp TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA

    # Skip the cache and trust the oldest signature instead of classifying
    solana-deploy-finder get-timestamp <program_id> --force-refresh --best-effort
"""

import sys
import copy
import argparse
import logging

from rich.console import Console
from rich.markup import escape

from solana_deploy_finder.auto_config.environment import get_config
from solana_deploy_finder.auto_config.logging_config import setup_logging, verbosity_to_level
from solana_deploy_finder.deployments.resolver import DeploymentResolver
from solana_deploy_finder.errors import BlockTimeUnavailable, DeploymentLookupError
from solana_deploy_finder.utils.deployment_cache import InMemoryDeploymentCache, JsonFileDeploymentCache
from solana_deploy_finder.utils.solana_rpc import RpcError, SolanaRpcClient

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_BLOCK_TIME_UNAVAILABLE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="solana-deploy-finder",
        description="Find when a Solana program was first deployed.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    get_timestamp = subparsers.add_parser(
        "get-timestamp",
        help="Get the first deployment timestamp of a Solana program",
    )
    get_timestamp.add_argument("program_id", help="The public key of the program")
    get_timestamp.add_argument("-v", "--verbose", action="count", default=0,
                               help="Run with verbose logging (repeat for debug output)")
    get_timestamp.add_argument("--human", action="store_true",
                               help="Print 'YYYY-MM-DD HH:MM:SS UTC' instead of ISO-8601")
    get_timestamp.add_argument("--force-refresh", action="store_true",
                               help="Ignore the cached answer and query the RPC node")
    get_timestamp.add_argument("--best-effort", action="store_true",
                               help="Take the oldest signature without classifying transactions")
    get_timestamp.add_argument("--rpc-url", help="RPC endpoint (default: SOLANA_RPC_URL)")
    cache_group = get_timestamp.add_mutually_exclusive_group()
    cache_group.add_argument("--cache-path", help="Cache file (default: DEPLOYMENT_CACHE_PATH)")
    cache_group.add_argument("--no-cache", action="store_true", help="Neither read nor write the cache file")
    return parser


def get_timestamp(args, stderr: Console) -> int:
    config = get_config()
    if args.rpc_url:
        config = copy.copy(config)
        config.solana_rpc_url = args.rpc_url
    setup_logging(verbosity_to_level(args.verbose, default=config.log_level), log_dir=config.log_dir)
    config.log_config()

    if args.no_cache:
        cache = InMemoryDeploymentCache()
    else:
        cache = JsonFileDeploymentCache(args.cache_path or config.cache_path)

    with SolanaRpcClient(config.solana_rpc_url, timeout=config.rpc_timeout) as client:
        resolver = DeploymentResolver.from_config(config, client=client, cache=cache)
        try:
            result = resolver.resolve_first_deployment(
                args.program_id,
                force_refresh=args.force_refresh,
                strict=not args.best_effort,
            )
        except BlockTimeUnavailable as e:
            stderr.print(f"[yellow]Warning:[/yellow] {escape(str(e))}", highlight=False)
            return EXIT_BLOCK_TIME_UNAVAILABLE
        except (DeploymentLookupError, RpcError) as e:
            stderr.print(f"[red]Error:[/red] {escape(str(e))}", highlight=False)
            return EXIT_FATAL
        finally:
            logger.debug(f"Remote calls made: {resolver.remote_calls}")

    timestamp = result.render(human=args.human)
    if args.verbose:
        source = " (cached)" if result.from_cache else ""
        print(f"Program deployment timestamp: {timestamp}{source}")
        print(f"Deployment transaction: {result.earliest_signature}")
        print(f"View on explorer: {result.explorer_url}")
    else:
        print(timestamp)
    return EXIT_OK


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    stderr = Console(stderr=True, soft_wrap=True)
    try:
        return get_timestamp(args, stderr)
    except KeyboardInterrupt:
        stderr.print("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())

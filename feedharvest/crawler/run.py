# feedharvest/crawler/run.py
# Command line entry point.
#   crawl  - run the harvest loop until interrupted (optionally log in first)
#   proof  - build and upload the manifest for a round, print its CID
#   login  - run the credential login flow once and report the outcome

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import List, Optional

from feedharvest.core.config import Config, get_config
from feedharvest.core.logging import get_logger, setup_logging
from feedharvest.crawler.archive import ArchivePipeline
from feedharvest.crawler.harvester import FeedHarvester, HarvestSettings
from feedharvest.crawler.manifest import ManifestBuilder
from feedharvest.crawler.rounds import make_round_source
from feedharvest.crawler.session import Credentials, LoginSettings, LoginState, make_session_manager
from feedharvest.db.record_store import open_record_stores
from feedharvest.storage.blob_store import make_blob_store

logger = get_logger(__name__)


def build_harvester(config: Config, round: Optional[int] = None) -> FeedHarvester:
    """Wire a FeedHarvester from configuration."""
    stores = open_record_stores(config)
    blob_store = make_blob_store(config)
    return FeedHarvester(
        session=make_session_manager(config),
        pipeline=ArchivePipeline(blob_store, stores.cids, stores.records),
        manifest=ManifestBuilder(blob_store, stores.cids, stores.proofs),
        rounds=make_round_source(config, fixed=round),
        settings=HarvestSettings.from_config(config),
    )


async def _login(harvester: FeedHarvester, config: Config) -> LoginState:
    if not config.login_username or not config.login_password:
        logger.error("LOGIN_USERNAME and LOGIN_PASSWORD must be set to log in")
        return LoginState.INVALID
    return await harvester.session.login(
        Credentials(config.login_username, config.login_password),
        LoginSettings.from_config(config),
    )


async def _crawl(harvester: FeedHarvester, config: Config, login_first: bool) -> int:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, lambda: asyncio.ensure_future(harvester.stop()))
        except NotImplementedError:
            # Not available on Windows event loops; KeyboardInterrupt still ends the run
            pass

    try:
        if login_first and await _login(harvester, config) is not LoginState.VALID:
            logger.error("Login failed; not starting crawl")
            return 1
        await harvester.crawl()
    finally:
        await harvester.session.invalidate()
    return 0


async def _proof(harvester: FeedHarvester, round: int) -> int:
    cid = await harvester.get_submission_cid(round)
    if cid is None:
        print(f"No CIDs recorded for round {round}")
        return 0
    print(cid)
    return 0


async def _login_only(harvester: FeedHarvester, config: Config) -> int:
    try:
        state = await _login(harvester, config)
    finally:
        await harvester.session.invalidate()
    print(state.value)
    return 0 if state is LoginState.VALID else 1


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(prog="feedharvest", description="Harvest and archive a session-gated feed.")
    ap.add_argument("--env", type=Path, default=None, help="Path to .env file (default: configs/.env)")
    ap.add_argument("--verbose", "-v", action="store_true", help="DEBUG logging")
    sub = ap.add_subparsers(dest="command", required=True)

    crawl = sub.add_parser("crawl", help="Run the harvest loop until interrupted")
    crawl.add_argument("--feed-url", default=None, help="Override FEED_URL")
    crawl.add_argument("--round", type=int, default=None, help="Tag everything with a fixed round")
    crawl.add_argument("--login", action="store_true", help="Run the credential login flow first")
    crawl.add_argument("--headed", action="store_true", help="Show the browser window")

    proof = sub.add_parser("proof", help="Build the submission manifest for a round")
    proof.add_argument("round", type=int)

    login = sub.add_parser("login", help="Run the credential login flow once")
    login.add_argument("--headed", action="store_true", help="Show the browser window")

    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config = get_config(env_path=args.env)
    setup_logging(level="DEBUG" if args.verbose or config.log_verbose else config.log_level, log_dir=config.log_dir)

    if getattr(args, "feed_url", None):
        config.feed_url = args.feed_url
    if getattr(args, "headed", False):
        config.headless = False

    try:
        if args.command == "crawl":
            config.validate()
    except ValueError as e:
        logger.error(str(e))
        return 2

    harvester = build_harvester(config, round=getattr(args, "round", None))

    try:
        if args.command == "crawl":
            return asyncio.run(_crawl(harvester, config, login_first=args.login))
        if args.command == "proof":
            return asyncio.run(_proof(harvester, args.round))
        return asyncio.run(_login_only(harvester, config))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""Main entry point for the roadmap bot."""

import argparse
import asyncio
import logging
import sys

from .config import Config, load_config
from .llm_gateway import LLMGateway
from .neynar_client import NeynarClient
from .processor import MentionEvent, OutcomeKind, Processor
from .services import TagService, get_db_service, init_db_service
from .webhook_server import create_webhook_app


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)


async def build_processor(config: Config, logger) -> tuple[Processor, NeynarClient]:
    """Initialize the database and wire the processor to its collaborators."""
    logger.info("Initializing database at %s", config.bot.database_path)
    db = await init_db_service(config.bot.database_path, timeout_seconds=config.bot.request_timeout_seconds)
    await TagService(db).seed_predefined()
    logger.info("Database initialized successfully")

    social = NeynarClient(config.farcaster, timeout_seconds=config.bot.request_timeout_seconds)
    gateway = LLMGateway(config.llm)
    return Processor(config, social, gateway, db), social


async def run_webhook_server(args, logger, config: Config) -> int:
    """Run the webhook server until interrupted."""
    import uvicorn

    processor, social = await build_processor(config, logger)
    try:
        app = create_webhook_app(config, processor)

        logger.info("Starting webhook server on %s:%d...", args.host, args.port)
        uvicorn_config = uvicorn.Config(
            app,
            host=args.host,
            port=args.port,
            log_level="info" if args.verbose else "warning",
        )
        server = uvicorn.Server(uvicorn_config)
        await server.serve()
        return 0
    finally:
        await social.close()


async def run_trigger(args, logger, config: Config) -> int:
    """Process a single mention given on the command line."""
    processor, social = await build_processor(config, logger)
    try:
        event = MentionEvent(
            cast_hash=args.cast_hash,
            author_fid=args.author_fid,
            parent_hash=args.parent_hash,
        )
        outcome = await processor.process(event)
        logger.info("Outcome: %s", outcome.kind.value)
        return 1 if outcome.kind == OutcomeKind.ERROR else 0
    finally:
        await social.close()


async def async_main(args, logger) -> int:
    """Async main function."""
    try:
        logger.info("Loading configuration from %s", args.config)
        config = load_config(args.config)

        if args.mode == "trigger":
            if not args.cast_hash:
                logger.error("--cast-hash is required in trigger mode")
                return 2
            return await run_trigger(args, logger, config)
        return await run_webhook_server(args, logger, config)

    except FileNotFoundError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1
    finally:
        # Clean up database connection
        try:
            db = get_db_service()
            await db.close()
            logger.info("Database connection closed")
        except RuntimeError:
            # Database wasn't initialized (error during startup)
            pass


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Farcaster bot that turns feedback into roadmap features",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                              # Run the webhook server with config.yaml
  %(prog)s -c myconfig.yaml --port 9000 # Custom config and port
  %(prog)s -v                           # Verbose logging
  %(prog)s --mode trigger --cast-hash 0xabc --parent-hash 0xdef --author-fid 42
        """,
    )

    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )
    parser.add_argument(
        "--mode",
        choices=["webhook", "trigger"],
        default="webhook",
        help="Run mode: webhook server (default) or a single manual trigger",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Webhook server host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=3000, help="Webhook server port (default: 3000)")
    parser.add_argument("--cast-hash", help="Mention cast hash (trigger mode)")
    parser.add_argument("--parent-hash", help="Parent cast hash (trigger mode)")
    parser.add_argument("--author-fid", type=int, default=1, help="Mention author fid (trigger mode)")

    args = parser.parse_args()

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    return asyncio.run(async_main(args, logger))


if __name__ == "__main__":
    sys.exit(main())

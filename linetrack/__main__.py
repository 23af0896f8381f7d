import argparse
import logging
import sys
from pathlib import Path

from .core.config import get_settings
from .core.db.db import DatabaseManager, wait_for_db
from .core.engine import LineTrackerEngine


def setup_logging(log_level: str = "INFO") -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )
    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.ERROR)
    logging.getLogger("sqlalchemy.engine.Engine").setLevel(logging.ERROR)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.orm").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)


logger = logging.getLogger(__name__)


def _ensure_sqlite_dir(database_url: str) -> None:
    prefix = "sqlite:///"
    if database_url.startswith(prefix) and database_url != "sqlite:///:memory:":
        Path(database_url[len(prefix):]).parent.mkdir(parents=True, exist_ok=True)


def main():
    """Main entry point for linetrack."""
    parser = argparse.ArgumentParser(description="linetrack - repository line-count history")
    parser.add_argument(
        "--port",
        type=int,
        default=9010,
        help="Port for the API server"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Verbose logging (forces DEBUG level)"
    )
    parser.add_argument(
        "--no-scheduler",
        action="store_true",
        help="Do not start the failed-operation retry scheduler"
    )
    args = parser.parse_args()

    log_level = "DEBUG" if args.debug else args.log_level
    setup_logging(log_level)

    settings = get_settings()
    logger.info("Starting linetrack")

    # Ensure directories exist
    Path(settings.git.repos_dir).mkdir(parents=True, exist_ok=True)
    _ensure_sqlite_dir(settings.database.url)

    db_manager = DatabaseManager(settings.database.url, echo=settings.database.echo)
    if not wait_for_db(db_manager):
        sys.exit(1)
    db_manager.create_tables()

    engine = LineTrackerEngine(db_manager, settings=settings)
    if not args.no_scheduler:
        engine.start_scheduler()

    # Build FastAPI app
    from .api.app import create_app
    app = create_app(engine=engine, db_manager=db_manager)

    # Launch with uvicorn
    import uvicorn

    logger.info(f"Starting FastAPI server on http://0.0.0.0:{args.port}")
    print(f"\n  linetrack is running at: http://localhost:{args.port}")
    print(f"  API docs at: http://localhost:{args.port}/docs\n")

    try:
        uvicorn.run(
            app,
            host="0.0.0.0",
            port=args.port,
            log_level=log_level.lower(),
        )
    finally:
        engine.stop_scheduler()
        db_manager.dispose()


if __name__ == "__main__":
    main()

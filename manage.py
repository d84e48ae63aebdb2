"""
Operational commands.

    python manage.py migrate            create missing tables/indexes
    python manage.py send-report        mail the applications report
    python manage.py purge-duplicates   dedupe forum image titles
    python manage.py serve              run the API with uvicorn

``send-report`` is meant for the host cron, e.g.::

    CRON_TZ=America/Santiago
    0 9 1 * *  cd /srv/orasystem && python manage.py send-report
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from config import load_settings
from database import create_db_engine, init_db, make_session_factory
from forum_images import purge_duplicates
from mailer import Mailer
from reports import send_applications_report

logger = logging.getLogger("manage")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Orasystem web backend")
    parser.add_argument("--env-file", type=str, help="Path to a .env file to load")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("migrate", help="Create missing tables and indexes")
    sub.add_parser("send-report", help="Mail the job applications report")
    sub.add_parser("purge-duplicates", help="Remove duplicate and orphan forum images")
    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=3001)
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = load_settings(args.env_file)
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL, logging.INFO))

    if args.command == "serve":
        import uvicorn

        uvicorn.run("app:app", host=args.host, port=args.port)
        return 0

    engine = create_db_engine(settings)
    try:
        init_db(engine)
        if args.command == "migrate":
            return 0
        db = make_session_factory(engine)()
        try:
            if args.command == "send-report":
                result = send_applications_report(db, Mailer.from_settings(settings), settings)
                logger.info(result["message"])
            elif args.command == "purge-duplicates":
                result = purge_duplicates(db)
                logger.info("Removed %(deletedByTitle)s duplicate(s) and %(deletedOrphans)s orphan(s)", result)
        finally:
            db.close()
    finally:
        engine.dispose()
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as err:
        logging.error("Command failed", exc_info=err)
        sys.exit(2)

#!/usr/bin/env python3
"""
Ludexicon - Game catalog, library tracker and social reviews.
Command-line entry point: database setup, RAWG catalog import, quick
recommendations from the terminal and the web server.
"""

import argparse
import json
import logging
import os
import sys
from typing import Dict

from colorama import init, Fore, Style
from dotenv import load_dotenv

# Initialize colorama for cross-platform colored terminal output
init(autoreset=True)

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def setup_logging(level: str = 'WARNING') -> logging.Logger:
    """Configure the root Ludexicon logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to WARNING so normal use is quiet.

    Returns:
        Configured logger instance.
    """
    numeric = getattr(logging, level.upper(), logging.WARNING)
    logger = logging.getLogger('ludexicon')
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
        logger.addHandler(handler)
    logger.setLevel(numeric)
    return logger


logger = setup_logging()

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

# config key -> environment variable that overrides it
ENV_OVERRIDES = {
    'database_url': 'DATABASE_URL',
    'rawg_api_key': 'RAWG_API_KEY',
    'secret_key': 'LUDEXICON_SECRET_KEY',
    'log_level': 'LUDEXICON_LOG_LEVEL',
}


def load_config(config_path: str = 'config.json') -> Dict:
    """Load configuration from *config_path* and the environment.

    A missing or unreadable file yields an empty base config.  Environment
    variables (including those from a ``.env`` file) win over file values.
    """
    load_dotenv()

    config: Dict = {}
    if os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not load %s: %s", config_path, e)
            config = {}

    for key, env_name in ENV_OVERRIDES.items():
        if os.getenv(env_name):
            config[key] = os.getenv(env_name)
    return config


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_init_db(config: Dict, args) -> int:
    import database
    database.configure(config.get('database_url'))
    if database.init_db():
        print(f"{Fore.GREEN}Database tables created")
        return 0
    print(f"{Fore.RED}Database initialization failed (see log)")
    return 1


def cmd_fetch_games(config: Dict, args) -> int:
    import database
    from rawg_client import RawgAPIClient, RawgGameImporter

    api_key = config.get('rawg_api_key')
    if not api_key:
        print(f"{Fore.RED}Error: RAWG_API_KEY is not configured")
        print(f"{Fore.YELLOW}Get your API key at: https://rawg.io/apidocs")
        return 1

    database.configure(config.get('database_url'))
    database.init_db()
    importer = RawgGameImporter(RawgAPIClient(api_key), database.session_scope)
    print(f"{Fore.CYAN}Fetching {args.pages} page(s) of {args.page_size} games from RAWG...")
    stats = importer.run(pages=args.pages, page_size=args.page_size)

    print(f"\n{Style.BRIGHT}Final statistics:")
    print(f"  Processed: {stats['processed']}")
    print(f"{Fore.GREEN}  Inserted:  {stats['inserted']}")
    print(f"{Fore.YELLOW}  Updated:   {stats['updated']}")
    print(f"{Fore.RED}  Errors:    {stats['errors']}")
    return 0


def cmd_recommend(config: Dict, args) -> int:
    import database
    from app.services import RecommendationService

    database.configure(config.get('database_url'))
    with database.session_scope() as db:
        result = RecommendationService(database).get_for_user(db, args.user_id)

    if not result['recommendations']:
        print(f"{Fore.YELLOW}{result.get('message', 'No matching games found')}")
        return 0

    print(f"{Fore.CYAN}{Style.BRIGHT}Top {result['count']} picks for {args.user_id}\n")
    for rank, rec in enumerate(result['recommendations'], 1):
        genres = ', '.join(rec['matchedGenres'])
        print(f"{Fore.WHITE}{rank:2d}. {Style.BRIGHT}{rec['name']}{Style.RESET_ALL}"
              f"  {Fore.GREEN}{rec['score']:.2f}{Style.RESET_ALL}  ({genres})")
    return 0


def cmd_serve(config: Dict, args) -> int:
    import ludexicon_web
    ludexicon_web.app.run(host=args.host, port=args.port, debug=args.debug)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Ludexicon - game catalog, library tracker and social reviews',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python3 ludexicon.py init-db
  python3 ludexicon.py fetch-games --pages 5 --page-size 40
  python3 ludexicon.py recommend 3f2b...-user-id
  python3 ludexicon.py serve --port 5000
        """
    )
    parser.add_argument(
        '--config', '-c',
        default='config.json',
        help='Path to config file (default: config.json)'
    )
    parser.add_argument(
        '--log-level',
        help='Override the log level (DEBUG, INFO, WARNING, ERROR)'
    )
    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('init-db', help='Create database tables')

    fetch = sub.add_parser('fetch-games', help='Import games from the RAWG API')
    fetch.add_argument('--pages', type=int, default=10,
                       help='Number of pages to fetch (default: 10)')
    fetch.add_argument('--page-size', type=int, default=20,
                       help='Games per page, max 40 (default: 20)')

    rec = sub.add_parser('recommend', help='Print recommendations for a user')
    rec.add_argument('user_id', help='User id to recommend games for')

    serve = sub.add_parser('serve', help='Run the web server')
    serve.add_argument('--host', default='127.0.0.1')
    serve.add_argument('--port', type=int, default=5000)
    serve.add_argument('--debug', action='store_true')
    return parser


COMMANDS = {
    'init-db': cmd_init_db,
    'fetch-games': cmd_fetch_games,
    'recommend': cmd_recommend,
    'serve': cmd_serve,
}


def main(argv=None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)
    config = load_config(args.config)
    setup_logging(args.log_level or config.get('log_level', 'WARNING'))
    return COMMANDS[args.command](config, args)


if __name__ == '__main__':
    sys.exit(main())

#!/usr/bin/env python3
"""
Book Database Management Utility

This script provides utilities to manage the book service:
- Create the books table
- Show book statistics
- Issue a development access token for a configured user
"""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from api.auth import ConfigurationError, TokenService, make_identity
from api.config import APIConfig
from api.database import BookStore, build_engine, build_session_factory, init_db
from utilities.logger import setup_logging


def init_database(config: APIConfig) -> None:
    """Create the books table."""
    engine = build_engine(config.database_url)
    try:
        init_db(engine)
        print(f"✅ Books table ready in {config.database_url}")
    finally:
        engine.dispose()


def show_statistics(config: APIConfig) -> None:
    """Show book statistics."""
    print("\n" + "=" * 80)
    print("📊 BOOK STATISTICS")
    print("=" * 80)

    engine = build_engine(config.database_url)
    session = build_session_factory(engine)()
    try:
        store = BookStore(session)
        health = store.health_check()
        if health["status"] != "healthy":
            print(f"❌ Database unavailable: {health.get('error')}")
            sys.exit(1)

        books = store.list_all()
        print(f"📚 Total books: {len(books)}")
        titled = [book for book in books if book.title]
        print(f"🏷️  Books with a title: {len(titled)}")
        if books:
            years = [book.year for book in books if book.year]
            if years:
                print(f"📅 Publication years: {min(years)} - {max(years)}")
            print(f"🆔 Highest ID: {books[-1].id}")
    finally:
        session.close()
        engine.dispose()


def issue_token(config: APIConfig, username: str) -> None:
    """Print an access token for a configured user."""
    if username not in config.get_user_credentials():
        print(f"❌ Unknown user: {username}")
        print("Add it to AUTH_USERS first.")
        sys.exit(1)

    try:
        service = TokenService(config)
    except ConfigurationError as e:
        print(f"❌ {e}")
        sys.exit(1)

    identity = make_identity(username)
    print(service.build_token(identity))


def main():
    """Main function."""
    if len(sys.argv) < 2:
        print("Usage: python manage_books.py [init|stats|token] [username]")
        print()
        print("Commands:")
        print("  init     - Create the books table")
        print("  stats    - Show book statistics")
        print("  token    - Issue an access token for a configured user")
        print()
        print("Examples:")
        print("  python manage_books.py init")
        print("  python manage_books.py stats")
        print("  python manage_books.py token alice")
        sys.exit(1)

    command = sys.argv[1].lower()
    config = APIConfig()

    # Setup logging
    setup_logging(
        log_level=config.log_level,
        log_format="console",
        log_file=config.log_file,
        debug=config.debug
    )

    if command == "init":
        init_database(config)
    elif command == "stats":
        show_statistics(config)
    elif command == "token":
        if len(sys.argv) < 3:
            print("❌ Error: username required for token command")
            print("Usage: python manage_books.py token <username>")
            sys.exit(1)
        issue_token(config, sys.argv[2])
    else:
        print(f"❌ Unknown command: {command}")
        print("Available commands: init, stats, token")
        sys.exit(1)


if __name__ == "__main__":
    main()

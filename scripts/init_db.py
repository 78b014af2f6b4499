"""Create the bandsched tables on the configured database."""
import argparse
import logging
import os

from bandsched.db import init_db, make_engine


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--database-url", default=os.environ.get("DATABASE_URL"))
    args = parser.parse_args(argv)
    logging.basicConfig(level=os.environ.get("BANDSCHED_LOG_LEVEL", "INFO").upper())
    init_db(make_engine(args.database_url))

if __name__ == "__main__":
    main()

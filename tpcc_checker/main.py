#!/usr/bin/env python3

import argparse
import logging
import sys

import yaml

from .checker import ConsistencyChecker
from .config import Settings
from .errors import CancellationError, ConsistencyCheckError
from .mysql_api import MySQLApi
from .utils import GracefulKiller

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130


def set_logging_config(tags, log_level_str=None):
    """Configure logging to output only to stderr."""
    handlers = [logging.StreamHandler(sys.stderr)]

    log_levels = {
        'critical': logging.CRITICAL,
        'error': logging.ERROR,
        'warning': logging.WARNING,
        'info': logging.INFO,
        'debug': logging.DEBUG,
    }

    log_level = log_levels.get(log_level_str)
    if log_level is None:
        logging.warning(f'Unknown log level {log_level_str}, setting info')
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format=f'[{tags} %(asctime)s %(levelname)8s] %(message)s',
        handlers=handlers,
    )


def run_check(args, config: Settings) -> int:
    tag = 'tpcc-check'
    if args.thread_index is not None:
        tag = f'tpcc-check thread_{args.thread_index}'
    set_logging_config(tag, log_level_str=config.log_level)

    killer = GracefulKiller()
    mysql_api = MySQLApi(database=config.database, mysql_settings=config.mysql)
    checker = ConsistencyChecker(
        executor=mysql_api,
        thread_count=config.threads,
        warehouse_count=config.warehouses,
    )

    logging.info(
        f'checking {config.warehouses} warehouses of database {config.database} '
        f'with {config.threads} threads'
    )
    try:
        if args.thread_index is not None:
            checker.check(args.thread_index, killer.cancel_event)
        else:
            checker.check_all(killer.cancel_event)
    except CancellationError as e:
        logging.warning(str(e))
        return EXIT_CANCELLED
    except ConsistencyCheckError as e:
        logging.error(str(e))
        return EXIT_FAILED

    logging.info('all consistency checks passed')
    return EXIT_OK


def main(argv=None):
    parser = argparse.ArgumentParser(description='TPC-C data consistency checker')
    parser.add_argument("--config", help="config file path", default='config.yaml', type=str)
    parser.add_argument("--threads", type=int, default=None, help="number of checker threads")
    parser.add_argument("--warehouses", type=int, default=None, help="number of warehouses to check")
    parser.add_argument(
        "--thread-index", type=int, default=None,
        help="run only the worker with this 0-based index",
    )
    parser.add_argument(
        "--log-level", type=str, default=None,
        choices=["critical", "error", "warning", "info", "debug"],
    )
    args = parser.parse_args(argv)

    config = Settings()
    try:
        config.load(args.config, overrides={
            'threads': args.threads,
            'warehouses': args.warehouses,
            'log_level': args.log_level,
        })
    except (OSError, TypeError, ValueError, yaml.YAMLError) as e:
        logging.error(f'invalid configuration {args.config}: {e}')
        sys.exit(EXIT_FAILED)

    sys.exit(run_check(args, config))


if __name__ == '__main__':
    main()

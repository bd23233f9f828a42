"""
Command Line Interface for derivative cache maintenance.
"""

import argparse
import logging
import sys
from typing import List, Optional

from .config import CacheConfig
from .errors import DerivativeError
from .service import DerivativeService
from .source_image import SourceImage


def setup_logging(verbose: bool) -> logging.Logger:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logging.getLogger('boto3').setLevel(logging.WARNING)
    logging.getLogger('botocore').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)

    return logging.getLogger('derivatives')


def get_cache_config(args: argparse.Namespace) -> CacheConfig:
    """Get cache configuration from environment and CLI overrides."""
    config = CacheConfig.from_env()

    if getattr(args, 'images_dir', None):
        config.images_dir = args.images_dir
    if getattr(args, 'packages_file', None):
        config.packages_file = args.packages_file
    if getattr(args, 'domain', None):
        config.domain = args.domain

    return config


def default_packages() -> dict:
    """Package definitions shipped with the server."""
    from package_definitions import PACKAGES
    return PACKAGES


def get_service(args: argparse.Namespace, logger: logging.Logger) -> DerivativeService:
    config = get_cache_config(args)
    packages = None if config.packages_file else default_packages()
    return DerivativeService.from_config(config, source_store=None, packages=packages, logger=logger)


def cmd_purge(args: argparse.Namespace) -> int:
    """Delete every cached derivative of a package."""
    logger = setup_logging(args.verbose)
    try:
        service = get_service(args, logger)
    except DerivativeError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    try:
        if args.package not in service.registry:
            logger.warning(f"Package {args.package} is not registered; purging files anyway")
        deleted = service.invalidation.sweep_package(args.package)
        print(f"Deleted {deleted} derivatives of {args.package}")
        return 0
    finally:
        service.shutdown()


def cmd_invalidate(args: argparse.Namespace) -> int:
    """Delete cached derivatives of source ids."""
    logger = setup_logging(args.verbose)
    try:
        service = get_service(args, logger)
    except DerivativeError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    try:
        for source_id in args.ids:
            try:
                removed = service.invalidation.on_source_changed(source_id)
            except DerivativeError as e:
                logger.error(f"{source_id}: {e}")
                return 1
            print(f"{source_id}: removed {len(removed)} derivatives")
        return 0
    finally:
        service.shutdown()


def cmd_urls(args: argparse.Namespace) -> int:
    """Print package URLs or cache paths of a source."""
    logger = setup_logging(args.verbose)
    try:
        service = get_service(args, logger)
    except DerivativeError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    try:
        source = SourceImage(id=args.id, filepath='', extension=args.extension.lower().lstrip('.'))
        try:
            if args.command == 'paths':
                mapping = service.paths.paths_for_source(source)
            else:
                mapping = service.paths.urls_for_source(source)
        except DerivativeError as e:
            logger.error(str(e))
            return 1

        for name, value in sorted(mapping.items()):
            print(f"{name}\t{value}")
        return 0
    finally:
        service.shutdown()


def cmd_packages(args: argparse.Namespace) -> int:
    """List registered packages."""
    logger = setup_logging(args.verbose)
    try:
        service = get_service(args, logger)
    except DerivativeError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    try:
        for package in sorted(service.registry, key=lambda p: p.name):
            size = f"{package.width}x{package.height}" if package.is_sized else '-'
            extra = f" -> .{package.force_type}" if package.force_type else ''
            print(f"{package.name}\t{package.type}\t{size}\tq{package.quality}{extra}")
        return 0
    finally:
        service.shutdown()


def add_config_arguments(parser: argparse.ArgumentParser) -> None:
    """Add cache configuration arguments to a parser."""
    group = parser.add_argument_group('Cache')
    group.add_argument('--images-dir', metavar='PATH', help='Override IMAGES_DIR')
    group.add_argument('--packages-file', metavar='PATH', help='Override PACKAGES_FILE (JSON)')
    group.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog='derivatives',
        description='Maintenance of the derivative image cache',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m derivatives purge --package thumb
  python -m derivatives invalidate 5f1c2a 5f1c2b
  python -m derivatives urls 5f1c2a --extension jpg
"""
    )

    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    purge_parser = subparsers.add_parser('purge', help='Delete all derivatives of a package')
    purge_parser.add_argument('-p', '--package', required=True, help='Package name')
    add_config_arguments(purge_parser)

    invalidate_parser = subparsers.add_parser('invalidate', help='Delete all derivatives of source ids')
    invalidate_parser.add_argument('ids', nargs='+', metavar='ID', help='Source id(s)')
    add_config_arguments(invalidate_parser)

    for name, help_text in (('urls', 'Print public URLs of a source'),
                            ('paths', 'Print cache paths of a source')):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument('id', help='Source id')
        sub.add_argument('-e', '--extension', required=True, help='Source extension')
        if name == 'urls':
            sub.add_argument('--domain', help='Override DOMAIN')
        add_config_arguments(sub)

    packages_parser = subparsers.add_parser('packages', help='List registered packages')
    add_config_arguments(packages_parser)

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    if parsed_args.command == 'purge':
        return cmd_purge(parsed_args)
    elif parsed_args.command == 'invalidate':
        return cmd_invalidate(parsed_args)
    elif parsed_args.command in ('urls', 'paths'):
        return cmd_urls(parsed_args)
    elif parsed_args.command == 'packages':
        return cmd_packages(parsed_args)

    return 1


if __name__ == '__main__':
    sys.exit(main())

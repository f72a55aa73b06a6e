"""Entry points for regenerating the event explore pages."""
import argparse
import json
import logging
import os
import sys
import time
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from feed.description_lookup import WikipediaDescriptionClient
from feed.events_feed import EventsFeedClient
from processor.geo_locale import GeoLocaleResolver
from processor.models import (
    ConfigurationError,
    FeedFetchError,
    GeneratorError,
    RegenerationResult,
)
from processor.nearby import NearbySelector
from processor.regeneration import RegenerationController, run_mapping_pass
from render.page_renderer import PageRenderer
from storage.folder_mapping import load_folder_mapping
from storage.output_store import LocalDirectoryStore
from storage.s3_store import S3OutputStore

_RESERVED_LOG_ATTRS = set(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}


class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, carrying any ``extra`` fields."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in vars(record).items():
            if key not in _RESERVED_LOG_ATTRS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


@dataclass
class Settings:
    """Configuration for a regeneration pass."""
    events_url: str = 'https://www.parkrunnertourist.com/events1.json'
    output_dir: str = 'explore'
    base_url: str = 'https://www.parkrunnertourist.com/explore'
    site_url: str = 'https://www.parkrunnertourist.com'
    sitemap_file: str = 'sitemap.events.xml'
    folder_mapping_file: str = 'folder-mapping.json'
    max_events: Optional[int] = None
    max_files_per_folder: int = 999
    nearby_count: int = 4
    timeout_seconds: int = 30
    enrich_workers: int = 4
    enrich_descriptions: bool = True
    log_level: str = 'INFO'
    s3_bucket: Optional[str] = None
    s3_prefix: str = 'explore'


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_int(env: Mapping[str, str], name: str, default: Optional[int], minimum: int) -> Optional[int]:
    """Read an integer setting, rejecting values below ``minimum``."""
    raw = env.get(name, '').strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
    if value < minimum:
        raise ConfigurationError(f"{name} must be at least {minimum}, got {value}")
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Read settings from environment variables.

    Args:
        environ: Mapping to read from (default: os.environ)

    Returns:
        Settings with defaults for anything unset

    Raises:
        ConfigurationError: If a numeric setting is malformed or out of range
    """
    env = os.environ if environ is None else environ
    defaults = Settings()
    return Settings(
        events_url=env.get('EVENTS_URL', defaults.events_url),
        output_dir=env.get('OUTPUT_DIR', defaults.output_dir),
        base_url=env.get('BASE_URL', defaults.base_url),
        site_url=env.get('SITE_URL', defaults.site_url),
        sitemap_file=env.get('SITEMAP_FILE', defaults.sitemap_file),
        folder_mapping_file=env.get('FOLDER_MAPPING_FILE', defaults.folder_mapping_file),
        max_events=_env_int(env, 'MAX_EVENTS', defaults.max_events, 0),
        max_files_per_folder=_env_int(env, 'MAX_FILES_PER_FOLDER', defaults.max_files_per_folder, 1),
        nearby_count=_env_int(env, 'NEARBY_COUNT', defaults.nearby_count, 0),
        timeout_seconds=_env_int(env, 'TIMEOUT_SECONDS', defaults.timeout_seconds, 1),
        enrich_workers=_env_int(env, 'ENRICH_WORKERS', defaults.enrich_workers, 1),
        enrich_descriptions=_env_bool(env.get('ENRICH_DESCRIPTIONS', 'true')),
        log_level=env.get('LOG_LEVEL', defaults.log_level),
        s3_bucket=env.get('S3_BUCKET') or None,
        s3_prefix=env.get('S3_PREFIX', defaults.s3_prefix),
    )


def build_store(settings: Settings):
    """S3 store when a bucket is configured, else the local output directory."""
    if settings.s3_bucket:
        return S3OutputStore(
            bucket_name=settings.s3_bucket,
            prefix=settings.s3_prefix,
            sitemap_key=os.path.basename(settings.sitemap_file)
        )
    return LocalDirectoryStore(settings.output_dir, settings.sitemap_file)


def run_regeneration(settings: Settings, run_date: Optional[date] = None) -> RegenerationResult:
    """
    Wire up the components and run one regeneration pass.

    Raises:
        FeedFetchError: If the feed fails
        OutputStoreError: If the output store fails
    """
    run_date = run_date or date.today()
    description_client = None
    if settings.enrich_descriptions:
        description_client = WikipediaDescriptionClient(timeout=settings.timeout_seconds)

    controller = RegenerationController(
        feed_client=EventsFeedClient(settings.events_url, timeout=settings.timeout_seconds),
        renderer=PageRenderer(settings.base_url, site_url=settings.site_url, run_date=run_date),
        store=build_store(settings),
        base_url=settings.base_url,
        resolver=GeoLocaleResolver(),
        selector=NearbySelector(k=settings.nearby_count),
        description_client=description_client,
        prior_mapping=load_folder_mapping(settings.folder_mapping_file),
        capacity=settings.max_files_per_folder,
        max_events=settings.max_events,
        enrich_workers=settings.enrich_workers,
        run_date=run_date
    )
    return controller.run()


def run_mapping(settings: Settings, run_date: Optional[date] = None) -> Dict[str, str]:
    """Recompute the folder mapping and full-feed sitemap."""
    return run_mapping_pass(
        EventsFeedClient(settings.events_url, timeout=settings.timeout_seconds),
        settings.folder_mapping_file,
        capacity=settings.max_files_per_folder,
        store=build_store(settings),
        base_url=settings.base_url,
        run_date=run_date
    )


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    AWS Lambda handler running one regeneration pass.

    Args:
        event: EventBridge event payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and summary statistics
    """
    logger = logging.getLogger(__name__)
    try:
        settings = load_settings()
    except ConfigurationError as e:
        setup_logging()
        logger.error(f"Invalid configuration: {e}", extra={'error_type': type(e).__name__})
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Invalid configuration',
                'error': str(e),
                'error_type': type(e).__name__
            })
        }
    setup_logging(settings.log_level)

    start_time = time.time()
    logger.info(
        "Regeneration started",
        extra={
            'events_url': settings.events_url,
            's3_bucket': settings.s3_bucket,
            'max_events': settings.max_events
        }
    )

    try:
        result = run_regeneration(settings)
    except FeedFetchError as e:
        logger.error(
            f"Failed to fetch events feed: {str(e)}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        duration = time.time() - start_time
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Failed to fetch events feed',
                'error': str(e),
                'error_type': type(e).__name__,
                'note': 'Previous output left untouched',
                'duration_seconds': round(duration, 2)
            })
        }
    except Exception as e:
        logger.error(
            f"Regeneration failed: {str(e)}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        duration = time.time() - start_time
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Regeneration failed',
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': round(duration, 2)
            })
        }

    duration = time.time() - start_time
    statistics = summarize(result)
    statistics['duration_seconds'] = round(duration, 2)
    logger.info("Regeneration completed successfully", extra=statistics)

    return {
        'statusCode': 200,
        'body': json.dumps({
            'message': 'Regeneration completed successfully',
            'statistics': statistics,
            'collisions': result.collisions,
            'enrichment_failures': result.enrichment_failures,
            'render_failures': result.render_failures
        })
    }


def summarize(result: RegenerationResult) -> Dict[str, Any]:
    """Flatten a pass result into loggable statistics."""
    reconcile = result.reconcile
    return {
        'feed_events': result.feed_events,
        'rendered_events': result.rendered_events,
        'documents_added': reconcile.added if reconcile else 0,
        'documents_updated': reconcile.updated if reconcile else 0,
        'documents_unchanged': reconcile.unchanged if reconcile else 0,
        'documents_deleted': reconcile.deleted if reconcile else 0,
        'sitemap_urls': result.sitemap_urls,
        'folders': len(result.folder_counts)
    }


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description='Generate static event pages and sitemap from the events feed.'
    )
    parser.add_argument('command', nargs='?', default='generate', choices=['generate', 'mapping'],
                        help='generate pages (default) or rebuild the folder mapping')
    parser.add_argument('--events-url', help='Feed URL or local JSON file')
    parser.add_argument('--output-dir', help='Directory holding the bucket folders')
    parser.add_argument('--sitemap-file', help='Where to write the sitemap')
    parser.add_argument('--folder-mapping', dest='folder_mapping_file',
                        help='slug -> folder mapping JSON file')
    parser.add_argument('--max-events', type=int, help='Render only the first N events')
    parser.add_argument('--no-enrich', dest='enrich_descriptions', action='store_false', default=None,
                        help='Skip Wikipedia description lookups')
    parser.add_argument('--log-level', help='DEBUG, INFO, WARNING or ERROR')
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Command-line entry point.

    Returns:
        Process exit status: 0 on success, 1 when the pass failed
    """
    args = parse_args(argv)
    overrides = {
        key: value for key, value in vars(args).items()
        if key != 'command' and value is not None
    }
    logger = logging.getLogger(__name__)
    try:
        settings = replace(load_settings(), **overrides)
    except ConfigurationError as e:
        setup_logging()
        logger.error(f"Invalid configuration: {e}", extra={'error_type': type(e).__name__})
        return 1
    setup_logging(settings.log_level)

    try:
        if args.command == 'mapping':
            mapping = run_mapping(settings)
            logger.info(f"Folder mapping rebuilt for {len(mapping)} slugs")
        else:
            result = run_regeneration(settings)
            logger.info("Regeneration completed successfully", extra=summarize(result))
    except GeneratorError as e:
        logger.error(f"Regeneration failed: {e}", extra={'error_type': type(e).__name__})
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())

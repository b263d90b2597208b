import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional

from ..config import Settings
from ..connections import Connection, active_connections
from ..errors import StorageError
from .s3_service import S3Service

logger = logging.getLogger(__name__)

ORPHANED_IMAGES_PREFIX = "entry/images/"
FIRST_MONTH_OFFSET = 2
MONTHS_TO_SWEEP = 12


@dataclass
class SweepResult:
    bucket: str
    prefix: str
    listed: int = 0
    deleted: int = 0
    pages: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class CleanupReport:
    results: List[SweepResult] = field(default_factory=list)

    @property
    def failures(self) -> List[SweepResult]:
        return [result for result in self.results if not result.ok]

    @property
    def deleted(self) -> int:
        return sum(result.deleted for result in self.results)


def sweep_prefix(
    service: S3Service,
    bucket: str,
    prefix: str,
    predicate: Callable[[Dict], bool],
    stop_on_delete_error: bool = True,
) -> SweepResult:
    """Delete every object under ``prefix`` that matches ``predicate``, one listing page at a time.

    A listing failure always ends the sweep. A failed delete batch ends it
    too unless ``stop_on_delete_error`` is False, in which case the first
    failure is recorded and the remaining pages are still processed.
    """
    result = SweepResult(bucket=bucket, prefix=prefix)
    try:
        for objects in service.iter_pages(bucket, prefix):
            result.pages += 1
            if not objects:
                break
            result.listed += len(objects)

            keys = [obj["Key"] for obj in objects if predicate(obj)]
            try:
                failed = service.delete_objects(bucket, keys)
            except StorageError as e:
                failed = [(key, str(e)) for key in keys]

            result.deleted += len(keys) - len(failed)
            if failed:
                key, message = failed[0]
                error = f"Failed to delete {len(failed)} of {len(keys)} object(s), first {key}: {message}"
                logger.error(f"s3://{bucket}/{prefix}: {error}")
                if result.error is None:
                    result.error = error
                if stop_on_delete_error:
                    break
    except StorageError as e:
        logger.error(f"s3://{bucket}/{prefix}: {str(e)}")
        result.error = str(e)
    return result


def delete_folder(service: S3Service, bucket: str, prefix: str) -> SweepResult:
    """Delete everything under a folder prefix, unconditionally"""
    if not prefix:
        raise ValueError("Refusing to delete with an empty prefix")
    logger.info(f"Deleting folder s3://{bucket}/{prefix}")
    result = sweep_prefix(service, bucket, prefix, lambda obj: True)
    _log_result(result)
    return result


def delete_orphaned_images(
    service: S3Service,
    bucket: str,
    max_age: timedelta = timedelta(hours=24),
    now: Optional[datetime] = None,
) -> SweepResult:
    """Delete images under entry/images/ last modified more than ``max_age`` ago"""
    now = now or datetime.now(timezone.utc)

    def is_expired(obj: Dict) -> bool:
        return now - obj["LastModified"] > max_age

    logger.info(f"Deleting orphaned images in s3://{bucket}/{ORPHANED_IMAGES_PREFIX} older than {max_age}")
    result = sweep_prefix(service, bucket, ORPHANED_IMAGES_PREFIX, is_expired, stop_on_delete_error=False)
    _log_result(result)
    return result


def month_prefixes(
    now: Optional[datetime] = None, start: int = FIRST_MONTH_OFFSET, count: int = MONTHS_TO_SWEEP
) -> List[str]:
    """Folder prefixes for the ``count`` months starting ``start`` months before ``now``, newest first"""
    now = now or datetime.now(timezone.utc)
    current = now.year * 12 + now.month - 1
    prefixes = []
    for offset in range(start, start + count):
        year, month = divmod(current - offset, 12)
        prefixes.append(f"entry/{year:04d}-{month + 1:02d}/")
    return prefixes


def cleanup_connection(
    service: S3Service, connection: Connection, settings: Settings, now: Optional[datetime] = None
) -> List[SweepResult]:
    now = now or datetime.now(timezone.utc)
    results = [delete_folder(service, connection.bucket, prefix) for prefix in month_prefixes(now)]
    results.append(delete_orphaned_images(service, connection.bucket, settings.orphan_max_age, now))
    return results


def cleanup_storage(
    settings: Settings,
    connections: Iterable[Connection],
    client_factory: Optional[Callable[[Settings], S3Service]] = None,
    now: Optional[datetime] = None,
) -> CleanupReport:
    """Run one cleanup pass over every active connection.

    Sweep failures are logged and recorded in the report; they never stop
    the pass.
    """
    client_factory = client_factory or S3Service
    now = now or datetime.now(timezone.utc)
    report = CleanupReport()

    for connection in active_connections(connections):
        logger.info(f"Cleaning bucket: {connection.bucket}")
        service = client_factory(settings)
        report.results.extend(cleanup_connection(service, connection, settings, now))

    if report.failures:
        logger.warning(f"Cleanup finished with {len(report.failures)} failed sweep(s)")
    logger.info(f"Deleted {report.deleted} object(s) in total")
    return report


def _log_result(result: SweepResult) -> None:
    # Failures were already logged where they happened
    status = "done" if result.ok else "incomplete"
    logger.info(
        f"s3://{result.bucket}/{result.prefix} {status}: listed {result.listed}, deleted {result.deleted}"
    )

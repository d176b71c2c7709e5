"""
SQL dump import orchestration.

`DatabaseImportService` drives one job through read -> extract -> import ->
finalize, writing progress at every step. The stores and the engine are
injected so that API handlers, background tasks and tests all share one
implementation.
"""
import logging
import uuid
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.engine import Engine

from app.core.config import settings

from .batch import BatchImporter, load_known_parent_ids
from .entities import CUSTOMERS, MAINTENANCES, SUBSCRIPTIONS, get_entity_schema
from .errors import ImportFatalError
from .extraction import extract_records
from .jobs import CancellationRegistry, ErrorCollector, ProgressTracker, ResultStore
from .outcomes import SkippedRecord

logger = logging.getLogger(__name__)

IMPORT_TYPE_CUSTOMERS_SUBSCRIPTIONS = "customers_subscriptions"
IMPORT_TYPE_MAINTENANCES = "maintenances"
IMPORT_TYPES = (IMPORT_TYPE_CUSTOMERS_SUBSCRIPTIONS, IMPORT_TYPE_MAINTENANCES)


def decode_dump(content: Union[bytes, str]) -> str:
    """Decode an uploaded dump as UTF-8, replacing undecodable bytes."""
    if content is None:
        raise ImportFatalError("Failed to read SQL file")
    if isinstance(content, str):
        return content
    return content.decode("utf-8", errors="replace")


class DatabaseImportService:
    def __init__(
        self,
        engine: Engine,
        progress: ProgressTracker,
        errors: ErrorCollector,
        results: ResultStore,
        cancellation: CancellationRegistry,
        importer: Optional[BatchImporter] = None,
    ):
        self.engine = engine
        self.progress = progress
        self.errors = errors
        self.results = results
        self.cancellation = cancellation
        self.importer = importer or BatchImporter(engine, progress, errors, cancellation)

    @staticmethod
    def new_job_id() -> str:
        return str(uuid.uuid4())

    def run_import(
        self,
        content: Union[bytes, str],
        import_type: str = IMPORT_TYPE_CUSTOMERS_SUBSCRIPTIONS,
        job_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Run a complete import and return its result object.

        Raises:
            ImportFatalError: The dump could not be read, the import type is
                unknown or the job was cancelled. Progress is left at -1.
        """
        job_id = job_id or self.new_job_id()
        self.progress.update(job_id, 0, "Starting import...")

        try:
            if import_type not in IMPORT_TYPES:
                raise ImportFatalError(f"Unsupported import type '{import_type}'")

            self.progress.update(job_id, 5, "Processing uploaded file...")
            self.progress.update(job_id, 10, "Reading SQL file...")
            dump_text = decode_dump(content)
            if not dump_text.strip():
                raise ImportFatalError("Failed to read SQL file")

            if import_type == IMPORT_TYPE_MAINTENANCES:
                result = self._import_maintenances(job_id, dump_text)
            else:
                result = self._import_customers_subscriptions(job_id, dump_text)

            self.results.put(job_id, result)
        except ImportFatalError as exc:
            self.progress.fail(job_id, f"Import failed: {exc.message}")
            logger.error("Database import %s failed: %s", job_id, exc.message, exc_info=True)
            raise
        except Exception as exc:
            self.progress.fail(job_id, f"Import failed: {exc}")
            logger.error("Database import %s failed unexpectedly", job_id, exc_info=True)
            raise ImportFatalError(str(exc)) from exc

        self.progress.update(job_id, 100, "Import completed successfully!")
        return result

    def _import_customers_subscriptions(self, job_id: str, dump_text: str) -> Dict[str, Any]:
        self.progress.update(job_id, 20, "Parsing customers data...")
        customers = extract_records(dump_text, CUSTOMERS)
        self.progress.update(job_id, 25, f"Found {len(customers.records)} customer records")

        self.progress.update(job_id, 30, "Parsing subscriptions data...")
        subscriptions = extract_records(dump_text, SUBSCRIPTIONS)
        self.progress.update(job_id, 35, f"Found {len(subscriptions.records)} subscription records")

        self.progress.update(job_id, 40, "Importing customers...")
        customer_result = self.importer.import_entity(job_id, CUSTOMERS, customers, 40, 65)
        self.progress.update(
            job_id,
            65,
            f"Customers import completed: {customer_result.imported} imported, "
            f"{customer_result.skipped} skipped",
        )

        self.progress.update(job_id, 70, "Importing subscriptions...")
        known_customer_ids = load_known_parent_ids(self.engine, CUSTOMERS)
        subscription_result = self.importer.import_entity(
            job_id, SUBSCRIPTIONS, subscriptions, 70, 95, known_parent_ids=known_customer_ids
        )
        self.progress.update(
            job_id,
            95,
            f"Subscriptions import completed: {subscription_result.imported} imported, "
            f"{subscription_result.skipped} skipped",
        )

        return {
            "progress_id": job_id,
            "customers": customer_result.to_dict(),
            "subscriptions": subscription_result.to_dict(),
        }

    def _import_maintenances(self, job_id: str, dump_text: str) -> Dict[str, Any]:
        self.progress.update(job_id, 20, "Parsing maintenances data...")
        maintenances = extract_records(dump_text, MAINTENANCES)
        self.progress.update(job_id, 25, f"Found {len(maintenances.records)} maintenance records")

        self.progress.update(job_id, 40, "Importing maintenances...")
        maintenance_result = self.importer.import_entity(job_id, MAINTENANCES, maintenances, 40, 95)
        self.progress.update(
            job_id,
            95,
            f"Maintenances import completed: {maintenance_result.imported} imported, "
            f"{maintenance_result.skipped} skipped",
        )

        return {
            "progress_id": job_id,
            "maintenances": maintenance_result.to_dict(),
        }

    def start_async_import(
        self,
        content: Union[bytes, str],
        import_type: str,
        background_tasks,
    ) -> Dict[str, Any]:
        """Allocate a job, seed its progress and schedule the run."""
        job_id = self.new_job_id()
        self.progress.update(job_id, 0, "Starting import...")
        background_tasks.add_task(self.run_in_background, job_id, content, import_type)
        logger.info("Scheduled %s import %s (%d bytes)", import_type, job_id, len(content))
        return {
            "progress_id": job_id,
            "status": "started",
            "message": "Import process started",
            "import_type": import_type,
        }

    def run_in_background(self, job_id: str, content: Union[bytes, str], import_type: str) -> None:
        """Background entry point; failures are already reflected in progress."""
        try:
            self.run_import(content, import_type, job_id=job_id)
        except ImportFatalError:
            logger.warning("Background import %s ended with a failure", job_id)

    def get_progress(self, job_id: str) -> Dict[str, Any]:
        return self.progress.get(job_id)

    def get_skipped(self, job_id: str, entity_type: str) -> List[SkippedRecord]:
        if get_entity_schema(entity_type) is None:
            raise ValueError(f"Unknown entity type '{entity_type}'")
        return self.errors.get(job_id, entity_type)

    def get_results(self, job_id: str) -> Optional[Dict[str, Any]]:
        return self.results.get(job_id)

    def cancel(self, job_id: str) -> Dict[str, Any]:
        """Ask a running job to stop before its next chunk."""
        self.cancellation.request(job_id)
        return self.progress.get(job_id)


def build_import_service(engine: Engine, store) -> DatabaseImportService:
    """Wire a service over one key-value store using the configured limits."""
    progress = ProgressTracker(store, settings.import_progress_ttl_seconds)
    errors = ErrorCollector(
        store, settings.import_progress_ttl_seconds, settings.import_skipped_retention_limit
    )
    results = ResultStore(store, settings.import_results_ttl_seconds)
    cancellation = CancellationRegistry(store, settings.import_progress_ttl_seconds)
    return DatabaseImportService(engine, progress, errors, results, cancellation)

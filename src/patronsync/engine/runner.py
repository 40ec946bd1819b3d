"""Ingest run: one district data file through validation, matching and writes.

Flow per row:
    validate fields -> checksum gate -> match engine -> payload builder
    -> create/update with retry -> audit line

Rows are processed strictly in file order, one at a time, with a single
session token for the whole run. Setup problems raise ``SetupError``;
anything that goes wrong with one row is logged, counted and reported,
and the run moves on to the next row.
"""

import csv
import smtplib
import time
import traceback
from collections.abc import Callable, Sequence
from datetime import date
from pathlib import Path

from patronsync.audit import AuditLogger, generate_run_id, row_id
from patronsync.builder import BuildMode, RecordBuilder
from patronsync.checksum import ChecksumStatus, ChecksumStore, compute_digest, student_key
from patronsync.directory import DirectoryClient, PatronDirectory, write_with_retry
from patronsync.engine.config import ClientConfig, IngestConfig, load_config
from patronsync.engine.results import IngestResult, RunCounters
from patronsync.errors import (
    DataFileError,
    DirectoryError,
    MatchUnavailableError,
    PayloadError,
    SchemaMismatchError,
)
from patronsync.matching import MatchEngine, MatchOutcome, OutcomeKind
from patronsync.models import SCHEMAS, StudentRecord
from patronsync.report import AuditCsvWriter, Mailer, RunReport
from patronsync.utils import calculate_file_sha256, local_today, report_timestamp
from patronsync.validate import FieldValidator

__all__ = ["read_data_file", "check_schema", "run_ingest", "IngestRun"]

EVENT_LOG_NAME = "patronsync.jsonl"


def read_data_file(data_path: Path) -> tuple[list[str], list[list[str]]]:
    """Read the header and data rows of a CSV file.

    Parameters
    ----------
    data_path : Path
        Uploaded data file.

    Returns
    -------
    tuple[list[str], list[list[str]]]
        Header cells and the data rows in file order, blank rows included.

    Raises
    ------
    DataFileError
        If the file cannot be read or decoded, or has no header.
    """
    try:
        with data_path.open("r", encoding="utf-8-sig", newline="") as f:
            rows = list(csv.reader(f))
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise DataFileError(f"Could not read data file {data_path}: {e}") from e

    if not rows:
        raise DataFileError(f"Data file {data_path} is empty")
    return rows[0], rows[1:]


def check_schema(header: Sequence[str], expected: Sequence[str]) -> None:
    """Compare a header with a schema, ignoring case and surrounding space.

    Raises
    ------
    SchemaMismatchError
        With the 0-based positions that differ.
    """
    names = [h.strip().lower() for h in header]
    width = max(len(names), len(expected))
    padded = names + [""] * (width - len(names))
    positions = [i for i in range(width) if i >= len(expected) or padded[i] != expected[i]]
    if positions:
        raise SchemaMismatchError(
            f"Columns {names} do not match expected schema {list(expected)}",
            positions=positions,
        )


_EXISTING_VALUE_TRANSFORMS = ("keep_barcode", "preserve_district_email")


def _fetch_fields(client: ClientConfig) -> list[str]:
    """Remote fields needed to evaluate overlay defaults and transforms."""
    fields: list[str] = []
    for spec in client.fields:
        if spec.overlay_default is None and spec.transform not in _EXISTING_VALUE_TRANSFORMS:
            continue
        fields.append(spec.name.split(".", 1)[0] if spec.type == "address" else spec.name)
    return fields


class IngestRun:
    """State of one ingest run.

    Parameters
    ----------
    config : IngestConfig
        Installation configuration.
    client : ClientConfig
        District being ingested.
    directory : PatronDirectory
        Patron directory (authenticated by ``run``).
    store : ChecksumStore
        Checksum gate.
    logger : AuditLogger
        Event log.
    audit_csv : AuditCsvWriter
        Per-row audit output.
    report : RunReport
        Text report collected for the mail.
    today : date
        Reference date for ages and checksum dates.
    sleep : Callable[[float], None], optional
        Sleep used between write retries.
    """

    def __init__(
        self,
        config: IngestConfig,
        client: ClientConfig,
        directory: PatronDirectory,
        store: ChecksumStore,
        logger: AuditLogger,
        audit_csv: AuditCsvWriter,
        report: RunReport,
        today: date,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.client = client
        self.directory = directory
        self.store = store
        self.logger = logger
        self.audit_csv = audit_csv
        self.report = report
        self.today = today
        self.sleep = sleep
        self.counters = RunCounters()
        self.validator = FieldValidator(client)
        self.builder = RecordBuilder()
        self.engine = MatchEngine(
            directory,
            search_result_cap=config.directory.search_result_cap,
            extra_fields=_fetch_fields(client),
            logger=logger,
        )
        self.token = ""

    def run(
        self, rows: Sequence[Sequence[str]], schema: Sequence[str], first_line: int = 2
    ) -> RunCounters:
        """Authenticate once and process every row in order."""
        self.token = self.directory.authenticate()
        self.logger.event("authenticated", data={"base_url": self.config.directory.base_url})
        self.report.info(f"Login to {self.config.directory.base_url} successful")

        self.logger.set_stage("rows")
        for offset, cells in enumerate(rows):
            if not any(cell.strip() for cell in cells):
                continue
            self.process_row(first_line + offset, cells, schema)
        self.logger.set_stage(None)
        return self.counters

    def process_row(self, lineno: int, cells: Sequence[str], schema: Sequence[str]) -> None:
        """Validate one row and hand it to the checksum gate and matcher."""
        self.counters.rows += 1
        if len(cells) != len(schema):
            self.counters.invalid += 1
            message = f"expected {len(schema)} columns, found {len(cells)}"
            self.logger.event(
                "row_invalid", data={"message": message}, level="WARN", rid=row_id(lineno)
            )
            self.report.error(f"Skipping line {lineno}: {message}")
            return

        validation = self.validator.validate_row(dict(zip(schema, cells, strict=True)))
        if not validation.ok or validation.record is None:
            self.counters.invalid += 1
            rid = row_id(lineno)
            for error in validation.errors:
                self.logger.row_invalid(rid, error.field, error.value)
                self.report.error(f"Invalid data in line {lineno}, {error.field}: {error.value}")
            self.report.error(f"Skipping line {lineno} due to data error(s)")
            return

        record = validation.record
        rid = row_id(lineno, record.external_id(self.client.id))
        key = student_key(self.client.namespace, self.client.id, record.student_id)

        status = self.store.check_and_update(key, compute_digest(record), today=self.today)
        if status is ChecksumStatus.UNCHANGED:
            self.counters.checksum += 1
            self.audit_csv.write_outcome("OK", "Checksum", record)
            self.logger.row_outcome(rid, "Checksum")
            return

        try:
            outcome = self.process_student(record, rid)
        except (MatchUnavailableError, DirectoryError, PayloadError) as e:
            self._fail_row(key, rid, lineno, record, e)
            return
        except Exception as e:
            self._fail_row(key, rid, lineno, record, e, trace=traceback.format_exc())
            return

        self.counters.record(outcome)

    def process_student(self, record: StudentRecord, rid: str) -> MatchOutcome:
        """Match one changed record and write it to the directory.

        Returns
        -------
        MatchOutcome
            The completed outcome.

        Raises
        ------
        MatchUnavailableError
            If every match strategy failed.
        DirectoryError
            If the create or update failed after all retries.
        PayloadError
            If a configured value fails its rule.
        """
        outcome = self.engine.resolve(record, self.client, self.token, rid=rid)
        external_id = record.external_id(self.client.id)
        for error in outcome.errors:
            self.report.error(f"Search {error.strategy} failed for {external_id}: {error.message}")

        if outcome.kind is OutcomeKind.AMBIGUOUS:
            reason = str(outcome.reason or "")
            for candidate in outcome.candidates:
                self.audit_csv.write_candidate(record, candidate, reason)
            self.audit_csv.write_outcome("Ambiguous", reason, record)
            self.logger.row_outcome(rid, "Ambiguous", reason=reason)
            self.report.info(
                f"Ambiguous: {record.last_name}, {record.first_name} ({record.student_id}) "
                f"matches {len(outcome.candidates)} records"
            )
            return outcome

        if outcome.kind is OutcomeKind.UPDATE and outcome.candidate is not None:
            key = outcome.key or ""
            matched = record.with_barcode(outcome.candidate.barcode)
            payload = self.builder.build(
                matched,
                self.client,
                BuildMode.OVERLAY,
                existing_fields=outcome.candidate.fields,
                key=key,
                today=self.today,
            )
            self._write("update", rid, lambda: self.directory.update(self.token, key, payload))
            self.audit_csv.write_outcome("Update", str(outcome.reason), record)
            self.logger.row_outcome(rid, "Update", reason=str(outcome.reason), key=key)
            return outcome

        payload = self.builder.build(record, self.client, BuildMode.CREATE, today=self.today)
        new_key = self._write("create", rid, lambda: self.directory.create(self.token, payload))
        self.audit_csv.write_outcome("Create", "", record)
        self.logger.row_outcome(rid, "Create", key=new_key)
        return outcome

    def _fail_row(
        self,
        key: str,
        rid: str,
        lineno: int,
        record: StudentRecord,
        error: Exception,
        trace: str | None = None,
    ) -> None:
        self.counters.failed += 1
        # forget the digest so the next run retries this student
        self.store.delete(key)
        self.logger.error(type(error).__name__, str(error), stage="rows", rid=rid, traceback=trace)
        external_id = record.external_id(self.client.id)
        self.report.error(f"Failed {external_id} (line {lineno}): {error}")

    def _write(self, operation: str, rid: str, call: Callable[[], str]) -> str:
        settings = self.config.directory

        def on_error(attempt: int, error: DirectoryError) -> None:
            self.logger.write_failed(rid, operation, attempt, str(error))

        return write_with_retry(
            call,
            max_retries=settings.max_retries,
            backoff=settings.retry_backoff,
            sleep=self.sleep,
            on_error=on_error,
        )


def _recipients(config: IngestConfig, client: ClientConfig) -> list[str]:
    recipients = list(config.admin_contact)
    if client.email_reports:
        recipients.extend(c for c in client.contact if c not in recipients)
    return recipients


def run_ingest(
    config: IngestConfig | Path | str,
    data_path: Path | str,
    *,
    client: str | None = None,
    directory: PatronDirectory | None = None,
    store: ChecksumStore | None = None,
    mailer: Mailer | None = None,
    today: date | None = None,
    send_mail: bool = True,
    keep_file: bool = False,
    verbose: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> IngestResult:
    """Ingest one district data file.

    Parameters
    ----------
    config : IngestConfig | Path | str
        Loaded configuration or path to the YAML file.
    data_path : Path | str
        CSV file, conventionally ``<root>/<namespace><id>/incoming/<file>.csv``.
    client : str | None, optional
        Client label (namespace + id); derived from ``data_path`` if None.
    directory : PatronDirectory | None, optional
        Directory override; an ``httpx`` client is created if None.
    store : ChecksumStore | None, optional
        Checksum store override; opened from ``database.url`` if None.
    mailer : Mailer | None, optional
        Mail sender override; built from ``smtp`` if None.
    today : date | None, optional
        Reference date; defaults to the local date.
    send_mail : bool, optional
        Mail the report to the configured contacts.
    keep_file : bool, optional
        Keep the data file after a completed run.
    verbose : bool, optional
        Write DEBUG events (including unchanged rows) to the event log.
    sleep : Callable[[float], None], optional
        Sleep used between write retries.

    Returns
    -------
    IngestResult
        Counters and output locations of the completed run.

    Raises
    ------
    SetupError
        On an invalid configuration, unknown client, unreadable data file,
        header mismatch or failed login. No row has been processed then.

    Examples
    --------
        >>> from patronsync.engine import run_ingest
        >>> result = run_ingest("config.yaml", "/srv/upload/pps01/incoming/students.csv")
        >>> result.counters.creates
        3
    """
    start = time.perf_counter()
    ingest_config = config if isinstance(config, IngestConfig) else load_config(config)
    data_file = Path(data_path)
    if client:
        client_config = ingest_config.find_client_by_label(client)
    else:
        client_config = ingest_config.client_for_path(data_file)

    header, rows = read_data_file(data_file)
    schema = SCHEMAS[client_config.schema]
    check_schema(header, schema)

    run_id = generate_run_id()
    stamp = report_timestamp()
    log_dir = ingest_config.log_dir
    audit_path = log_dir / f"{client_config.label}_{stamp}.csv"
    report_path = log_dir / f"{client_config.label}_{stamp}.log"
    event_log = log_dir / EVENT_LOG_NAME

    own_client = DirectoryClient(ingest_config.directory) if directory is None else None
    active_directory: PatronDirectory = directory or own_client  # type: ignore[assignment]
    owns_store = store is None
    active_store = store or ChecksumStore.from_url(ingest_config.database.url)

    report = RunReport(title=f"Ingest Report {client_config.name} ({client_config.label})")
    try:
        with (
            AuditLogger(run_id, event_log, min_level="DEBUG" if verbose else "INFO") as logger,
            AuditCsvWriter(audit_path) as audit_csv,
        ):
            logger.run_started(
                str(data_file),
                client_config.label,
                sha256=calculate_file_sha256(data_file),
                parameters={"rows": len(rows), "schema": client_config.schema},
            )
            active_store.create_schema()
            ingest = IngestRun(
                ingest_config,
                client_config,
                active_directory,
                active_store,
                logger,
                audit_csv,
                report,
                today=today or local_today(),
                sleep=sleep,
            )
            try:
                counters = ingest.run(rows, schema)
            except Exception as e:
                trace = traceback.format_exc() if verbose else None
                logger.error(type(e).__name__, str(e), stage="setup", traceback=trace)
                elapsed = time.perf_counter() - start
                logger.run_finished("failed", elapsed, ingest.counters.to_dict())
                raise

            report.info(f"Ingest run on {data_file} finished")
            report.info(counters.statistics_line())
            report.info(counters.matches_line())
            report.info(counters.skipped_line())
            logger.run_finished("success", time.perf_counter() - start, counters.to_dict())
    finally:
        if own_client is not None:
            own_client.close()
        if owns_store:
            active_store.close()

    report_path.write_text(report.render(), encoding="utf-8")

    mail_sent = False
    recipients = _recipients(ingest_config, client_config)
    if send_mail and recipients:
        active_mailer = mailer or Mailer.from_config(ingest_config.smtp)
        try:
            active_mailer.send(
                recipients,
                subject=f"Ingest Report {client_config.name} ({client_config.label})",
                body=report.render(),
                attachments=[report_path, audit_path],
            )
            mail_sent = True
        except (smtplib.SMTPException, OSError) as e:
            with AuditLogger(run_id, event_log) as logger:
                logger.error(type(e).__name__, f"Could not email report: {e}", stage="report")

    deleted = False
    if not keep_file:
        try:
            data_file.unlink()
            deleted = True
        except OSError as e:
            with AuditLogger(run_id, event_log) as logger:
                logger.error(type(e).__name__, f"Could not delete data file: {e}", stage="cleanup")

    return IngestResult(
        run_id=run_id,
        client=client_config.label,
        data_file=data_file,
        counters=counters,
        audit_csv=audit_path,
        report_path=report_path,
        event_log=event_log,
        mail_sent=mail_sent,
        data_file_deleted=deleted,
    )

"""Run reporting: audit CSV, text report and report mail."""

from patronsync.report.audit_csv import AUDIT_HEADER, AuditCsvWriter
from patronsync.report.mailer import Mailer
from patronsync.report.summary import ReportLine, RunReport

__all__ = ["AUDIT_HEADER", "AuditCsvWriter", "Mailer", "ReportLine", "RunReport"]

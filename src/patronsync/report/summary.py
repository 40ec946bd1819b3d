"""Human-readable run report (body of the report mail)."""

from dataclasses import dataclass, field

__all__ = ["ReportLine", "RunReport"]


@dataclass(frozen=True)
class ReportLine:
    level: str
    message: str


@dataclass
class RunReport:
    """Ordered report lines of one run.

    Attributes
    ----------
    title : str
        Report heading (client name and label).
    lines : list[ReportLine]
        Messages in the order they were added.
    """

    title: str
    lines: list[ReportLine] = field(default_factory=list)

    def add(self, level: str, message: str) -> None:
        self.lines.append(ReportLine(level=level, message=message))

    def info(self, message: str) -> None:
        self.add("INFO", message)

    def error(self, message: str) -> None:
        self.add("ERROR", message)

    @property
    def error_count(self) -> int:
        return sum(1 for line in self.lines if line.level == "ERROR")

    def render(self) -> str:
        """Render as plain text, one ``LEVEL message`` per line."""
        body = [self.title, "=" * len(self.title), ""]
        body.extend(f"{line.level:<5} {line.message}" for line in self.lines)
        return "\n".join(body) + "\n"

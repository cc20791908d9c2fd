class ConversionHunterError(Exception):
    """Base error for the pipeline. Raised errors abort the run before anything is published."""


class SourceSchemaError(ConversionHunterError):
    """A source relation is missing columns the pipeline needs."""

    def __init__(self, table, missing):
        self.table = table
        self.missing = list(missing)
        super().__init__(f"{table}: missing required columns {self.missing}")


class InvalidSourceDataError(ConversionHunterError):
    """Source values that cannot be recovered locally (e.g. unparseable signup dates)."""

    def __init__(self, table, column, keys):
        self.table = table
        self.column = column
        self.keys = list(keys)
        preview = ", ".join(str(k) for k in self.keys[:5])
        super().__init__(f"{table}.{column}: {len(self.keys)} invalid value(s) (first: {preview})")


class SummaryValidationError(ConversionHunterError):
    """The assembled summary broke one of its invariants."""

    def __init__(self, failures):
        self.failures = list(failures)
        super().__init__("user summary failed validation: " + "; ".join(self.failures))


class ConfigurationError(ConversionHunterError):
    """Run settings that contradict each other (e.g. a report column that is not tracked)."""

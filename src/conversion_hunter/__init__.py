from .conversion import detect_conversions, first_conversion_date, is_paying
from .errors import (
    ConfigurationError,
    ConversionHunterError,
    InvalidSourceDataError,
    SourceSchemaError,
    SummaryValidationError,
)
from .pipeline import build_user_summary, run_all, run_stages

__version__ = "1.0.0"

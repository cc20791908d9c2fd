import argparse
import logging
from pathlib import Path

from . import config
from .errors import ConversionHunterError
from .pipeline import run_all

LOG_FMT = "%(asctime)s [%(levelname)s] %(message)s"


def _parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Build fct_user_summary and the conversion reports")
    p.add_argument("--data-in", type=Path, default=config.DATA_IN, help=f"Raw CSV directory (default: {config.DATA_IN})")
    p.add_argument("--data-out", type=Path, default=config.DATA_OUT, help=f"Output directory (default: {config.DATA_OUT})")
    p.add_argument("--window-days", type=int, default=config.WINDOW_DAYS, help="First-week window length in days")
    p.add_argument("--rule", choices=config.CONVERSION_RULES, default=config.CONVERSION_RULE,
                   help="Conversion definition")
    p.add_argument("--measure", choices=config.USAGE_MEASURES, default=config.USAGE_MEASURE,
                   help="Sum usage_count or count events")
    p.add_argument("--threshold-column", default=config.THRESHOLD_FEATURE_COLUMN,
                   help="Tracked column bucketed by the threshold report")
    return p.parse_args(argv)


def main(argv=None) -> int:
    logging.basicConfig(level=logging.INFO, format=LOG_FMT)
    args = _parse_args(argv)
    try:
        run_all(args.data_in, args.data_out, threshold_column=args.threshold_column,
                window_days=args.window_days, rule=args.rule, measure=args.measure)
    except ConversionHunterError as exc:
        logging.getLogger("conversion_hunter").error("Run failed, nothing published: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

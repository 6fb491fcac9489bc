import logging
import sys

import orjson

from tenderwatch.core.logging import JSONFormatter, get_contextual_logger, setup_logging


def test_json_lines_carry_pipeline_context(tmp_path):
    log_file = tmp_path / "logs" / "tenderwatch.log"
    setup_logging(level="INFO", log_file=log_file, json_format=True, rich_console=False)

    log = get_contextual_logger("pipeline", trigger="scheduled").with_context(run_id=7, stage="dispatch")
    log.info("%d row(s) sent", 3)

    root = logging.getLogger("tenderwatch")
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    line = log_file.read_text(encoding="utf-8").strip().splitlines()[-1]
    entry = orjson.loads(line)

    assert entry["logger"] == "tenderwatch.pipeline"
    assert entry["message"] == "3 row(s) sent"
    assert entry["level"] == "INFO"
    assert (entry["run_id"], entry["stage"], entry["trigger"]) == (7, "dispatch", "scheduled")


def test_with_context_keeps_existing_values():
    base = get_contextual_logger("scheduler", run_id=1, trigger="manual")
    derived = base.with_context(stage="scrape")

    assert (derived.run_id, derived.stage, derived.trigger) == (1, "scrape", "manual")
    assert base.stage is None


def test_formatter_includes_exception():
    try:
        raise RuntimeError("listing down")
    except RuntimeError:
        record = logging.getLogger("tenderwatch.test").makeRecord(
            "tenderwatch.test", logging.ERROR, __file__, 1, "failed", (), exc_info=sys.exc_info()
        )

    entry = orjson.loads(JSONFormatter().format(record))
    assert "RuntimeError: listing down" in entry["exception"]
    assert "run_id" not in entry

import json

from loguru import logger

from exercise_sync.core.logger import setup_logger


def _written(path) -> list[str]:
    logger.complete()
    return path.read_text().splitlines()


def test_file_sink_keeps_job_context(tmp_path):
    log_file = tmp_path / "logs" / "sync.log"
    setup_logger(level="DEBUG", log_file=str(log_file))
    try:
        logger.info("[INTEGRATION] Pushing Exercise Alpha", msel_id="msel-1")
    finally:
        logger.remove()

    lines = _written(log_file)
    assert any("Pushing Exercise Alpha" in line and "'msel_id': 'msel-1'" in line for line in lines)


def test_json_file_sink(tmp_path):
    log_file = tmp_path / "sync.jsonl"
    setup_logger(level="INFO", log_file=str(log_file), json_file=True)
    try:
        logger.debug("hidden")
        logger.warning("[DISPATCHER] slow", queue="integration")
    finally:
        logger.remove()

    records = [json.loads(line)["record"] for line in _written(log_file)]
    assert [r["message"] for r in records][-1] == "[DISPATCHER] slow"
    assert records[-1]["extra"] == {"queue": "integration"}
    assert all(r["message"] != "hidden" for r in records)

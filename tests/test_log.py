import logging

from rhythm_scheduler.log import get_logger, setup_logging


def test_setup_logging_writes_rotating_files(tmp_path):
    logger = setup_logging(log_dir=tmp_path)
    try:
        get_logger("optimizer").error("solver gave up")
        for handler in logger.handlers:
            handler.flush()

        assert "solver gave up" in (tmp_path / "system.log").read_text(encoding="utf-8")
        assert "solver gave up" in (tmp_path / "error.log").read_text(encoding="utf-8")
    finally:
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()


def test_console_only_setup():
    logger = setup_logging(console_level=logging.ERROR)
    try:
        assert [type(h) for h in logger.handlers] == [logging.StreamHandler]
        assert get_logger().name == "rhythm_scheduler"
        assert get_logger("habits").name == "rhythm_scheduler.habits"
    finally:
        logger.handlers.clear()

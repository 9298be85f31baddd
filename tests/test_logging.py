import logging

import pytest

from pong_dqn.utils.logging import SafeCSVLogger, setup_logger


class TestSetupLogger:

    def test_file_receives_debug_records(self, tmp_path):
        log_file = tmp_path / "run" / "training.log"
        logger = setup_logger("pong_dqn.tests.file", level="INFO", log_file=log_file, console=False)

        logger.debug("episode detail")
        logger.info("progress line")

        # written through without closing the handler
        text = log_file.read_text()
        assert "episode detail" in text
        assert "progress line" in text
        assert logger.level == logging.INFO
        assert not logger.propagate

    def test_reconfiguring_replaces_handlers(self, tmp_path):
        name = "pong_dqn.tests.reconfigure"
        setup_logger(name, log_file=tmp_path / "a.log")
        logger = setup_logger(name, log_file=tmp_path / "b.log")

        assert len(logger.handlers) == 2
        logger.info("only in b")
        assert "only in b" in (tmp_path / "b.log").read_text()
        assert "only in b" not in (tmp_path / "a.log").read_text()


class TestSafeCSVLogger:

    def test_header_written_on_open(self, tmp_path):
        path = tmp_path / "log.csv"
        csv_log = SafeCSVLogger(path, ["episode", "reward"])
        assert path.read_text().strip() == "episode,reward"
        csv_log.close()

    def test_rows_flushed_every_n(self, tmp_path):
        path = tmp_path / "log.csv"
        csv_log = SafeCSVLogger(path, ["episode", "reward"], flush_every=2)

        csv_log.log({"episode": 1, "reward": -21.0})
        csv_log.log({"episode": 2, "reward": -20.0})
        assert len(path.read_text().strip().splitlines()) == 3
        csv_log.close()

    def test_log_after_close_rejected(self, tmp_path):
        with SafeCSVLogger(tmp_path / "log.csv", ["episode"]) as csv_log:
            csv_log.log({"episode": 1})
        with pytest.raises(RuntimeError):
            csv_log.log({"episode": 2})

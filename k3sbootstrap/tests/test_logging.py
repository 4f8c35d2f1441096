import logging
import logging.handlers

from k3sbootstrap.logging import bind_node, get_logger, setup_logging


def test_file_log_format(tmp_path):
    log_file = tmp_path / "logs" / "k3s-bootstrap.log"
    setup_logging(log_file)
    bind_node("node-2", "worker")
    try:
        get_logger("stages").info("Joining as worker")
    finally:
        bind_node(None, None)

    for handler in logging.getLogger("k3sbootstrap").handlers:
        handler.flush()
    line = log_file.read_text().splitlines()[-1]
    assert line.endswith("][node-2][worker] Joining as worker")
    assert line.startswith("[")


def test_unwritable_log_falls_back_to_stderr(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")

    logger = setup_logging(blocker / "k3s-bootstrap.log")

    assert not any(isinstance(h, logging.handlers.RotatingFileHandler) for h in logger.handlers)
    streams = [h for h in logger.handlers if isinstance(h, logging.StreamHandler)]
    assert len(streams) == 1
    assert streams[0].level == logging.WARNING


def test_debug_mirrors_to_stderr(tmp_path):
    logger = setup_logging(tmp_path / "k3s-bootstrap.log", debug=True)
    kinds = {type(h) for h in logger.handlers}
    assert logging.handlers.RotatingFileHandler in kinds
    assert logging.StreamHandler in kinds
    assert logger.level == logging.DEBUG

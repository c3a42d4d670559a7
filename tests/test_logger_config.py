import json
import logging
import pytest

from agrisys.utils.logger_config import setup_logging, PACKAGE_LOGGER

@pytest.fixture
def restore_logging():
    """Deshace la configuración global de logging al terminar la prueba"""
    root = logging.getLogger()
    package = logging.getLogger(PACKAGE_LOGGER)
    saved_root = (root.handlers[:], root.level)
    yield
    for logger in (root, package):
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
            handler.close()
    root.handlers[:] = saved_root[0]
    root.setLevel(saved_root[1])
    package.setLevel(logging.NOTSET)
    package.propagate = True

def read_records(log_file):
    return [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]

def test_every_agrisys_subpackage_is_routed(tmp_path, restore_logging):
    log_file = setup_logging(str(tmp_path), level="INFO", json_format=True)
    for name in ("agrisys.api.main", "agrisys.core.registry", "agrisys.bus.mqtt", "agrisys.simulator.engine"):
        logging.getLogger(name).info(f"hello from {name}")

    records = read_records(log_file)
    assert [r["name"] for r in records] == [
        "agrisys.api.main", "agrisys.core.registry", "agrisys.bus.mqtt", "agrisys.simulator.engine"
    ]
    assert all(r["level"] == "INFO" and r["thread"] for r in records)

def test_records_are_written_once(tmp_path, restore_logging):
    log_file = setup_logging(str(tmp_path), level="DEBUG")
    logging.getLogger("agrisys.simulator.sensors").debug("tick")
    assert len(read_records(log_file)) == 1

def test_third_party_loggers_are_quieter(tmp_path, restore_logging):
    log_file = setup_logging(str(tmp_path), level="DEBUG", third_party_level="WARNING")
    logging.getLogger("paho.mqtt.client").info("socket noise")
    logging.getLogger("paho.mqtt.client").warning("connection lost")
    assert [r["message"] for r in read_records(log_file)] == ["connection lost"]

def test_plain_text_format(tmp_path, restore_logging):
    log_file = setup_logging(str(tmp_path), level="INFO", json_format=False)
    logging.getLogger("agrisys.bus.publisher").error("broker down")
    line = log_file.read_text(encoding="utf-8").strip()
    assert "[ERROR]" in line
    assert line.endswith("agrisys.bus.publisher: broker down")

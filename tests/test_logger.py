# File: tests/test_logger.py
import asyncio

import pytest

from site_mirror.logger import init_logging, logger, task_context


@pytest.fixture()
def log_file(tmp_path):
    path = tmp_path / "logs" / "mirror.log"
    init_logging(level="debug", log_file=path)
    yield path
    init_logging()


def _lines(path):
    for handler in logger.handlers:
        handler.flush()
    return path.read_text(encoding="utf-8").splitlines()


def test_records_tagged_with_task_id(log_file):
    logger.info("bfs.start url=%s", "https://example.com/")
    with task_context("0123456789abcdef"):
        logger.debug("bfs.visit depth=%d", 0)
    logger.info("bfs.done")

    first, second, third = _lines(log_file)
    assert "| INFO     | - | bfs.start url=https://example.com/" in first
    assert "| DEBUG    | 01234567 | bfs.visit depth=0" in second
    assert "| - | bfs.done" in third


def test_task_id_follows_asyncio_tasks(log_file):
    async def job(task_id):
        with task_context(task_id):
            await asyncio.sleep(0)
            await asyncio.gather(asyncio.sleep(0), child())

    async def child():
        logger.info("asset.saved")

    async def main():
        await asyncio.gather(job("aaaaaaaa-1"), job("bbbbbbbb-2"))

    asyncio.run(main())

    tags = sorted(line.split(" | ")[2] for line in _lines(log_file))
    assert tags == ["aaaaaaaa", "bbbbbbbb"]


def test_reconfigure_replaces_handlers(tmp_path):
    try:
        init_logging(log_file=tmp_path / "a.log")
        lg = init_logging(level="WARNING")
        assert len(lg.handlers) == 1
        assert lg.level == 30
        assert lg.propagate is False
    finally:
        init_logging()

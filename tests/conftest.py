import logging
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

CLI_SRC = ROOT / "cli" / "src"
if str(CLI_SRC) not in sys.path:
    sys.path.insert(0, str(CLI_SRC))


from tests.helpers.certs import FakeClock, MemoryFileSystem, RecordingCommandRunner  # noqa: E402


@pytest.fixture(autouse=True)
def reset_ghttp_logger():
    """CLI が付け替えたハンドラを外し、caplog で捕捉できる状態に戻す"""

    yield
    logger = logging.getLogger("ghttp")
    for handler in list(logger.handlers):
        if getattr(handler, "_is_ghttp_handler", False):
            logger.removeHandler(handler)
            handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_fs():
    return MemoryFileSystem()


@pytest.fixture
def command_runner():
    return RecordingCommandRunner()

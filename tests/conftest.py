import pytest
from unittest.mock import MagicMock

from lila_docker.schemas import StackSettings, ServiceState


@pytest.fixture
def mock_app_context():
    """Fixture to mock the AppContext and its components."""
    mock_context = MagicMock()
    mock_context.stack_manager = MagicMock()
    mock_context.display = MagicMock()
    mock_context.config = MagicMock()
    mock_context.config.settings = StackSettings(values={"USER_ID": "1000", "GROUP_ID": "1000"})
    return mock_context


@pytest.fixture
def mock_display():
    """Fixture for a mocked Display object."""
    return MagicMock()


@pytest.fixture
def exited_services():
    """Fixture for a fully stopped stack."""
    return [
        ServiceState(service="lila", name="lila-docker-lila-1", state="exited"),
        ServiceState(service="mongodb", name="lila-docker-mongodb-1", state="exited"),
    ]


@pytest.fixture
def running_services():
    """Fixture for a fully running stack."""
    return [
        ServiceState(service="lila", name="lila-docker-lila-1", state="running"),
        ServiceState(service="mongodb", name="lila-docker-mongodb-1", state="running", health="healthy"),
    ]

import pytest

from nfa_proxy.errors import status_for
from nfa_proxy.exceptions import (
    ChatForwardError,
    ConfigurationError,
    InvalidRequestError,
    ModelFetchError,
    ModelResolutionError,
    NoModelRegisteredError,
    SessionCreationError,
    UpstreamRejectedError,
)


@pytest.mark.parametrize(
    "exc,expected",
    [
        (InvalidRequestError("Messages array cannot be empty"), 400),
        (ModelResolutionError("no matching model found"), 400),
        (NoModelRegisteredError(), 400),
        (UpstreamRejectedError("rejected", status_code=400), 400),
        (UpstreamRejectedError("unauthorized", status_code=401), 502),
        (SessionCreationError("session creation failed after 3 attempts"), 500),
        (SessionCreationError("No provider accepting session"), 400),
        (ChatForwardError("marketplace request failed, status: 500"), 500),
        (ModelFetchError("fetch models failed"), 502),
        (ConfigurationError("CONSUMER_USERNAME environment variable is required"), 500),
    ],
)
def test_status_for(exc, expected):
    assert status_for(exc) == expected

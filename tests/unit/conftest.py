import pytest

from tests.utils import example_trace


@pytest.fixture(autouse=True)
def use_80_columns(monkeypatch):
    """Override the COLUMNS environment variable to 80.

    This matches the assumed terminal width that is hardcoded in the tests.
    """
    monkeypatch.setenv("COLUMNS", "80")


@pytest.fixture
def trace_file(tmp_path):
    path = tmp_path / "profile.ebml"
    path.write_bytes(example_trace())
    return path

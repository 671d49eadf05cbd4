import pytest

from ngblocks.strictness import Strictness, set_strictness


@pytest.fixture(autouse=True)
def default_strictness():
    # Strictness is process-wide: restore the default after every test
    yield
    set_strictness(Strictness.FORBID)

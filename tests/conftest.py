import pytest

from point_of_sale import Money, Register


@pytest.fixture
def register():
    """A GBP register starting at reference 1."""
    return Register()


@pytest.fixture
def bill(register):
    return register.new_bill()


@pytest.fixture
def gbp():
    """Build GBP money from pence."""
    def make(pence):
        return Money(pence, "GBP")
    return make

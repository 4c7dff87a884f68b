"""Pytest fixtures for Gold Scheme Redemption Calculator tests."""
import pytest
from datetime import datetime, timezone

from app import create_app
from app.services.redemption import RedemptionInput
from app.services.time_provider import TimeProvider


# Fixed "now" for deterministic tests
FROZEN_NOW = datetime(2026, 1, 15, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def app(tmp_path):
    """Create application for testing with records stored under tmp_path.

    Yields:
        Flask application configured for testing.
    """
    app = create_app({
        'TESTING': True,
        'DATA_DIR': str(tmp_path),
    })
    yield app


@pytest.fixture
def client(app):
    """Create test client.

    Args:
        app: Flask application fixture.

    Yields:
        Flask test client for making requests.
    """
    with app.test_client() as client:
        yield client


@pytest.fixture
def db(app):
    """Yield the records database connection inside an app context."""
    from app.db import get_db
    with app.app_context():
        yield get_db()


@pytest.fixture
def frozen_time():
    """Fixture that freezes time to FROZEN_NOW (2026-01-15 10:30 UTC).

    Automatically resets the default TimeProvider after the test completes.
    """
    provider = TimeProvider(frozen_at=FROZEN_NOW)
    TimeProvider.set_default(provider)
    yield provider
    TimeProvider.reset_default()


@pytest.fixture
def frozen_now():
    """Returns the frozen datetime value for assertions."""
    return FROZEN_NOW


@pytest.fixture
def scenario_a_inputs():
    """5g accumulated, 6g jewellery at 7000/g, 18% making charge, standard redemption."""
    return RedemptionInput(
        accumulated_gold_grams=5,
        intended_jewellery_weight=6,
        current_gold_price=7000,
        making_charge_percentage=18,
        is_premature_redemption=False,
    )


@pytest.fixture
def scenario_a_body():
    """Scenario A as a JSON request body, numbers sent as strings like the UI does."""
    return {
        'accumulated_gold_grams': '5',
        'intended_jewellery_weight': '6',
        'current_gold_price': '7000',
        'making_charge_percentage': '18',
        'is_premature_redemption': False,
    }

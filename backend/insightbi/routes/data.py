# Overview: Flask API routes for simulated test data and data statistics.

"""
Test data routes.

Generated rows are flagged is_simulated and recorded as a "test_data"
import, so they can be told apart from real history.
"""
from flask import Blueprint, request, g, current_app

from ..decorators import require_auth, require_permission
from ..services import mock_data_service
from ..validation import ValidationError

data_bp = Blueprint("data", __name__, url_prefix="/api")


def _int_field(payload: dict, key: str, default, low: int, high: int):
    value = payload.get(key, default)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    if not low <= value <= high:
        raise ValidationError(f"{key} must be between {low} and {high}")
    return value


@data_bp.post("/generate-test-data")
@require_auth
@require_permission("GENERATE_TEST_DATA")
def generate_test_data_route():
    payload = request.get_json(silent=True) or {}
    try:
        products = _int_field(payload, "products", 50, 1, mock_data_service.MAX_PRODUCTS)
        months = _int_field(payload, "months", 12, 1, mock_data_service.MAX_MONTHS)
        sales = _int_field(payload, "sales", None, 0, 100_000)
        seed = _int_field(payload, "seed", None, 0, 2**31 - 1)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        result = mock_data_service.generate_test_data(
            g.company_id,
            products=products,
            months=months,
            sales=sales,
            seed=seed,
            user_id=g.current_user.id,
        )
    except ValueError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to generate test data")
        return {"error": "Internal server error"}, 500
    return result, 201


@data_bp.get("/data-statistics")
@require_auth
@require_permission("VIEW_ANALYTICS")
def data_statistics_route():
    return mock_data_service.data_statistics(g.company_id)

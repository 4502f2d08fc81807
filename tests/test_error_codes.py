import pytest

from core.exceptions import _CODE_TO_HTTP_STATUS, business_code_to_http_status
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


@pytest.mark.parametrize(
    "code",
    [c for c in list(BusinessCode) + list(PaymentCode) if c.name != "SUCCESS"],
    ids=lambda c: c.name,
)
def test_every_error_code_has_an_http_status(code):
    assert code in _CODE_TO_HTTP_STATUS


def test_order_lookup_codes_map_to_http_statuses():
    assert business_code_to_http_status(PaymentCode.ORDER_NOT_FOUND) == 404
    assert business_code_to_http_status(PaymentCode.OWNERSHIP_VIOLATION) == 403
    assert business_code_to_http_status(PaymentCode.UPSTREAM_UNAVAILABLE) == 502
    assert business_code_to_http_status(99999) == 400

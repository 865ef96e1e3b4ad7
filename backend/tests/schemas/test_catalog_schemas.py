"""Catalog Schemas — verifies camelCase aliases, partial updates, and coupon validation."""

import uuid

import pytest
from pydantic import ValidationError

from couponhub.schemas.catalog import (
    CouponCreate, CouponUpdate, StoreCreate, StoreUpdate, list_envelope,
)


def test_store_create_accepts_camel_case():
    body = StoreCreate.model_validate({"name": " Acme ", "isTopStore": True})
    payload, previous = body.mutation_payload()
    assert payload == {"name": "Acme", "is_top_store": True}
    assert previous is None


def test_store_update_is_partial_and_extracts_previous_version():
    body = StoreUpdate.model_validate({"name": "B", "previousVersion": 3})
    payload, previous = body.mutation_payload()
    assert payload == {"name": "B"}
    assert previous == 3


def test_blank_name_rejected():
    with pytest.raises(ValidationError):
        StoreCreate.model_validate({"name": "   "})


def test_coupon_requires_code_or_active():
    store_id = str(uuid.uuid4())
    with pytest.raises(ValidationError):
        CouponCreate.model_validate({
            "storeId": store_id, "offerDetails": "x", "active": False,
        })
    assert CouponCreate.model_validate({
        "storeId": store_id, "offerDetails": "x", "active": False, "code": "C",
    })


def test_coupon_update_checks_only_when_both_sent():
    assert CouponUpdate.model_validate({"active": False})
    with pytest.raises(ValidationError):
        CouponUpdate.model_validate({"active": False, "code": ""})


def test_list_envelope_pages():
    body = list_envelope([{}] * 3, total=21, page=1, limit=10)
    assert body["pagination"] == {"page": 1, "limit": 10, "total": 21, "pages": 3}

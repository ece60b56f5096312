"""
Tests for shared infrastructure: event schema, circuit breaker, channels,
settings and token verification.
"""

import json
import time
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import jwt
import pytest
from fastapi import HTTPException

from hotel_shared.config.constants import OrderStatus
from hotel_shared.config.logging import mask_user_id
from hotel_shared.config.settings import Settings, settings
from hotel_shared.infrastructure.events import (
    ChangeEvent,
    EventCircuitBreaker,
    channel_order_changes,
    validate_event_size,
)
from hotel_shared.infrastructure.events.circuit_breaker import CircuitState
from hotel_shared.security.auth import get_bearer_token, sign_jwt, verify_jwt
from hotel_shared.utils.schemas import Order, OrderItem


class TestChangeEvent:
    def test_creation_and_update_types(self):
        created = ChangeEvent(order_id="o-1", new_status=OrderStatus.PENDING)
        assert created.is_creation
        assert created.type == "NEW_ORDER"

        moved = ChangeEvent(
            order_id="o-1", previous_status="pending", new_status="preparing"
        )
        assert moved.type == "ORDER_UPDATE"
        assert moved.previous_status is OrderStatus.PENDING
        assert moved.new_status is OrderStatus.PREPARING

    def test_rejects_non_change(self):
        with pytest.raises(ValueError):
            ChangeEvent(
                order_id="o-1",
                previous_status=OrderStatus.PREPARING,
                new_status=OrderStatus.PREPARING,
            )

    def test_rejects_empty_order_id(self):
        with pytest.raises(ValueError):
            ChangeEvent(order_id="", new_status=OrderStatus.PENDING)

    def test_rejects_unknown_status(self):
        with pytest.raises(ValueError):
            ChangeEvent(order_id="o-1", new_status="lost")

    def test_json_preserves_fields(self):
        order = Order(
            id="o-1",
            location_id="Room 7",
            items=(OrderItem(dish_id=1, name="Adobo", quantity=2, unit_price=Decimal("120.00")),),
            status=OrderStatus.READY_FOR_DELIVERY,
            payment_method="gcash",
            tenant_id="p1",
            created_at=datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc),
            version=4,
        )
        event = ChangeEvent(
            order_id="o-1",
            previous_status=OrderStatus.PREPARING,
            new_status=OrderStatus.READY_FOR_DELIVERY,
            tenant_id="p1",
            actor_role="partner",
            order=order,
        )

        payload = json.loads(event.to_json())
        assert payload["type"] == "ORDER_UPDATE"
        assert payload["order"]["total_amount"] == "240.00"

        restored = ChangeEvent.from_json(event.to_json())
        assert restored == event
        assert restored.order.version == 4
        assert restored.order.total_amount == Decimal("240.00")
        assert restored.origin is None

    def test_origin_survives_json(self):
        event = ChangeEvent(order_id="o-1", new_status=OrderStatus.PENDING, origin="node-a")
        assert ChangeEvent.from_json(event.to_json()).origin == "node-a"


class TestCircuitBreaker:
    def test_opens_after_threshold(self):
        breaker = EventCircuitBreaker("t", failure_threshold=3)
        for _ in range(2):
            breaker.record_failure()
        assert breaker.can_execute()
        breaker.record_failure()
        assert breaker.state is CircuitState.OPEN
        assert not breaker.can_execute()
        assert breaker.get_stats()["rejected_count"] == 1

    def test_success_resets_failures(self):
        breaker = EventCircuitBreaker("t", failure_threshold=2)
        breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()
        assert breaker.state is CircuitState.CLOSED

    def test_half_open_recovery(self):
        breaker = EventCircuitBreaker("t", failure_threshold=1, recovery_timeout=10)
        with patch("hotel_shared.infrastructure.events.circuit_breaker.time.monotonic", return_value=100.0):
            breaker.record_failure()
        with patch("hotel_shared.infrastructure.events.circuit_breaker.time.monotonic", return_value=111.0):
            assert breaker.can_execute()
        assert breaker.state is CircuitState.HALF_OPEN
        breaker.record_success()
        assert breaker.state is CircuitState.CLOSED

    def test_half_open_failure_reopens(self):
        breaker = EventCircuitBreaker("t", failure_threshold=1, recovery_timeout=0)
        breaker.record_failure()
        assert breaker.can_execute()
        breaker.record_failure()
        assert breaker.state is CircuitState.OPEN


class TestChannels:
    def test_names(self):
        assert channel_order_changes("hotel-orders-dev") == "deployment:hotel-orders-dev:orders"

    @pytest.mark.parametrize("bad", ["", "a:b", "x" * 129, "with space"])
    def test_rejects_unsafe_ids(self, bad):
        with pytest.raises(ValueError):
            channel_order_changes(bad)

    def test_event_size_limit(self):
        validate_event_size("x" * 10, "NEW_ORDER", limit=10)
        with pytest.raises(ValueError):
            validate_event_size("x" * 11, "NEW_ORDER", limit=10)


class TestSettings:
    def test_cash_methods_parsed(self):
        config = Settings(cash_payment_methods=" cash, cash_php ,,")
        assert config.cash_methods == frozenset({"cash", "cash_php"})

    def test_cors_origins(self):
        assert Settings(allowed_origins="").cors_origins
        config = Settings(allowed_origins="https://a.example, https://b.example")
        assert config.cors_origins == ["https://a.example", "https://b.example"]

    def test_production_requires_real_secrets(self):
        config = Settings(environment="production", debug=True, webhook_enabled=True, webhook_url="")
        errors = config.validate_production_secrets()
        assert any("JWT_SECRET" in e for e in errors)
        assert any("DEBUG" in e for e in errors)
        assert any("WEBHOOK_URL" in e for e in errors)
        assert any("ALLOWED_ORIGINS" in e for e in errors)

    def test_production_ok(self):
        config = Settings(
            environment="production",
            debug=False,
            jwt_secret="s" * 40,
            allowed_origins="https://hotel.example",
        )
        assert config.validate_production_secrets() == []

    def test_unknown_transport(self):
        errors = Settings(broadcast_transport="carrier-pigeon").validate_production_secrets()
        assert errors == ["BROADCAST_TRANSPORT must be 'memory' or 'redis'"]


class TestTokens:
    def test_round_trip(self):
        token = sign_jwt({"sub": "u-1", "role": "partner", "tenant_id": "p1"})
        claims = verify_jwt(token)
        assert claims["role"] == "partner"
        assert claims["tenant_id"] == "p1"

    def test_expired(self):
        token = sign_jwt({"sub": "u-1", "role": "staff"}, ttl_seconds=-5)
        with pytest.raises(HTTPException) as exc_info:
            verify_jwt(token)
        assert exc_info.value.detail == "Token has expired"

    def test_wrong_secret(self):
        token = jwt.encode(
            {"sub": "u-1", "role": "staff", "iss": settings.jwt_issuer, "aud": settings.jwt_audience},
            "another-secret",
            algorithm="HS256",
        )
        with pytest.raises(HTTPException) as exc_info:
            verify_jwt(token)
        assert exc_info.value.status_code == 401

    @pytest.mark.parametrize(
        "claims",
        [
            {"role": "staff"},
            {"sub": "u-1"},
            {"sub": "u-1", "role": "partner", "tenant_id": 7},
        ],
    )
    def test_malformed_claims(self, claims):
        with pytest.raises(HTTPException) as exc_info:
            verify_jwt(sign_jwt(claims))
        assert exc_info.value.status_code == 401

    def test_refresh_token_rejected(self):
        now = int(time.time())
        token = jwt.encode(
            {
                "sub": "u-1",
                "role": "staff",
                "iss": settings.jwt_issuer,
                "aud": settings.jwt_audience,
                "exp": now + 60,
                "type": "refresh",
            },
            settings.jwt_secret,
            algorithm="HS256",
        )
        with pytest.raises(HTTPException) as exc_info:
            verify_jwt(token)
        assert "type" in exc_info.value.detail

    def test_bearer_header(self):
        assert get_bearer_token("Bearer abc ") == "abc"
        for bad in (None, "", "Basic abc"):
            with pytest.raises(HTTPException):
                get_bearer_token(bad)


class TestMaskUserId:
    @pytest.mark.parametrize(
        "user_id, masked",
        [(None, "<no-user>"), ("", "<no-user>"), ("7", "7***"), ("u-staff", "u-***"), (42, "4***")],
    )
    def test_masking(self, user_id, masked):
        assert mask_user_id(user_id) == masked

from unittest.mock import patch

import stripe
from fastapi import status

from ticketing.models import Order


def _sync(client, order_id, headers):
    return client.post(f"/checkout/sync/{order_id}", headers=headers)


def test_sync_confirms_paid_order(client, auth_headers, test_user, fixed_ticket, make_order, gateway, db):
    order = make_order(test_user, fixed_ticket, payment_reference="pi_paid", stripe_session_id="cs_paid")
    gateway.intent_statuses["pi_paid"] = "succeeded"

    response = _sync(client, order.id, auth_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"order_id": order.id, "status": "confirmed", "confirmed": True}
    db.refresh(order)
    assert order.status == "confirmed"
    assert order.confirmed_at is not None
    assert order.confirmation_event_id == "sync:pi_paid"
    assert gateway.calls == [("get_payment_intent", "pi_paid")]


def test_sync_unpaid_order_stays_pending(client, auth_headers, test_user, fixed_ticket, make_order, gateway, db):
    order = make_order(test_user, fixed_ticket, payment_reference="pi_open")
    gateway.intent_statuses["pi_open"] = "requires_payment_method"

    response = _sync(client, order.id, auth_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"order_id": order.id, "status": "pending", "confirmed": False}
    db.refresh(order)
    assert order.status == "pending"


def test_sync_falls_back_to_checkout_session(client, auth_headers, test_user, fixed_ticket, make_order, gateway, db):
    order = make_order(test_user, fixed_ticket, stripe_session_id="cs_only")
    gateway.session_statuses["cs_only"] = "paid"
    gateway.session_payment_intents["cs_only"] = "pi_from_session"

    response = _sync(client, order.id, auth_headers)

    assert response.json()["confirmed"] is True
    db.refresh(order)
    assert order.payment_reference == "pi_from_session"
    assert gateway.calls == [("get_checkout_session", "cs_only")]


def test_sync_without_provider_reference(client, auth_headers, test_user, fixed_ticket, make_order, gateway):
    order = make_order(test_user, fixed_ticket)

    response = _sync(client, order.id, auth_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "pending"
    assert gateway.calls == []


def test_sync_provider_down_returns_stored_status(
    client, auth_headers, test_user, fixed_ticket, make_order, provider_down, db
):
    order = make_order(test_user, fixed_ticket, payment_reference="pi_unknown")
    updated_at = order.updated_at

    response = _sync(client, order.id, auth_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"order_id": order.id, "status": "pending", "confirmed": False}
    db.refresh(order)
    assert order.status == "pending"
    assert order.updated_at == updated_at


def test_sync_confirmed_order_skips_provider(client, auth_headers, test_user, fixed_ticket, make_order, gateway):
    order = make_order(test_user, fixed_ticket, status="confirmed", payment_reference="pi_done")

    response = _sync(client, order.id, auth_headers)

    assert response.json() == {"order_id": order.id, "status": "confirmed", "confirmed": True}
    assert gateway.calls == []


def test_sync_other_users_order_forbidden(client, auth_headers2, test_user, fixed_ticket, make_order, gateway, db):
    order = make_order(test_user, fixed_ticket, payment_reference="pi_paid")
    gateway.intent_statuses["pi_paid"] = "succeeded"

    response = _sync(client, order.id, auth_headers2)

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json() == {"error": "Access denied"}
    assert db.query(Order).filter(Order.id == order.id).one().status == "pending"
    assert gateway.calls == []


def test_sync_unknown_order(client, auth_headers):
    response = _sync(client, 99999, auth_headers)

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json() == {"error": "Order not found"}


def test_sync_requires_auth(client, test_user, fixed_ticket, make_order):
    order = make_order(test_user, fixed_ticket)

    response = client.post(f"/checkout/sync/{order.id}")

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_sync_without_stripe_key_reports_pending(
    client, stripe_gateway, auth_headers, test_user, fixed_ticket, make_order, db, monkeypatch
):
    monkeypatch.setenv("STRIPE_SECRET_KEY", "")
    order = make_order(test_user, fixed_ticket, payment_reference="pi_1")

    response = _sync(client, order.id, auth_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"order_id": order.id, "status": "pending", "confirmed": False}
    db.refresh(order)
    assert order.status == "pending"


def test_sync_stripe_timeout_reports_pending(
    client, stripe_gateway, auth_headers, test_user, fixed_ticket, make_order, db
):
    order = make_order(test_user, fixed_ticket, payment_reference="pi_slow")

    with patch("ticketing.services.stripe_service.stripe.PaymentIntent.retrieve") as mock_retrieve:
        mock_retrieve.side_effect = stripe.APIConnectionError("Request timed out")

        response = _sync(client, order.id, auth_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"order_id": order.id, "status": "pending", "confirmed": False}
    mock_retrieve.assert_called_once_with("pi_slow")
    db.refresh(order)
    assert order.status == "pending"


def test_sync_stripe_session_timeout_reports_pending(
    client, stripe_gateway, auth_headers, test_user, fixed_ticket, make_order
):
    order = make_order(test_user, fixed_ticket, stripe_session_id="cs_slow")

    with patch("ticketing.services.stripe_service.stripe.checkout.Session.retrieve") as mock_retrieve:
        mock_retrieve.side_effect = stripe.APIConnectionError("Request timed out")

        response = _sync(client, order.id, auth_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "pending"

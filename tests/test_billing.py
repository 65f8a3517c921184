"""
Stripe billing: pricing, checkout, portal and the webhook handlers.

Stripe is never contacted; the SDK entry points are patched.
"""

import pytest
import stripe

from jury import config
from jury.utils import billing
from jury.utils.billing import handle_stripe_event, resolve_user_id

PERIOD_END = 1_800_000_000


@pytest.fixture(autouse=True)
def stripe_config(monkeypatch):
    monkeypatch.setattr(config, "STRIPE_SECRET_KEY", "sk_test_123")
    monkeypatch.setattr(config, "STRIPE_WEBHOOK_SECRET", "whsec_123")
    monkeypatch.setattr(config, "STRIPE_PRO_PRICE_ID", "price_pro")
    monkeypatch.setattr(config, "STRIPE_TEAM_PRICE_ID", "price_team")


def _subscription(price_id="price_pro", status="active", customer="cus_1"):
    return {
        "id": "sub_1",
        "status": status,
        "customer": customer,
        "items": {"data": [{"price": {"id": price_id}, "current_period_end": PERIOD_END}]},
    }


def _profile(fake_db, user_id):
    return next(p for p in fake_db.rows("profiles") if p["id"] == user_id)


class TestPricing:

    def test_public_tiers(self, client):
        tiers = client.get("/api/pricing").json()["tiers"]
        assert [t["tier"] for t in tiers] == ["free", "pro", "team"]
        assert tiers[1]["price_monthly"] == 15


class TestCheckout:

    def test_creates_customer_once(self, client, make_user, fake_db, mocker):
        user_id, headers = make_user(email="juror@example.com")
        create_customer = mocker.patch("stripe.Customer.create", return_value={"id": "cus_new"})
        create_session = mocker.patch("stripe.checkout.Session.create", return_value={"url": "https://checkout.stripe.test/s"})

        response = client.post("/api/stripe/checkout", json={"priceId": "price_pro"}, headers=headers)
        assert response.status_code == 200
        assert response.json() == {"url": "https://checkout.stripe.test/s"}
        create_customer.assert_called_once_with(email="juror@example.com", metadata={"userId": user_id})
        assert _profile(fake_db, user_id)["stripe_customer_id"] == "cus_new"

        kwargs = create_session.call_args.kwargs
        assert kwargs["customer"] == "cus_new"
        assert kwargs["line_items"] == [{"price": "price_pro", "quantity": 1}]
        assert kwargs["metadata"] == {"userId": user_id}

        client.post("/api/stripe/checkout", json={"price_id": "price_team"}, headers=headers)
        assert create_customer.call_count == 1

    def test_rejects_non_price_ids(self, client, make_user):
        _, headers = make_user()
        response = client.post("/api/stripe/checkout", json={"priceId": "prod_123"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid price ID"

    def test_not_configured(self, client, make_user, monkeypatch):
        monkeypatch.setattr(config, "STRIPE_SECRET_KEY", None)
        _, headers = make_user()
        response = client.post("/api/stripe/checkout", json={"priceId": "price_pro"}, headers=headers)
        assert response.status_code == 503

    def test_stripe_error(self, client, make_user, mocker):
        _, headers = make_user()
        mocker.patch("stripe.Customer.create", side_effect=stripe.APIConnectionError("down"))
        response = client.post("/api/stripe/checkout", json={"priceId": "price_pro"}, headers=headers)
        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to create checkout session"


class TestPortal:

    def test_requires_billing_account(self, client, make_user):
        _, headers = make_user()
        response = client.post("/api/stripe/portal", headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "No billing account found"

    def test_returns_portal_url(self, client, make_user, fake_db, mocker):
        user_id, headers = make_user("pro")
        _profile(fake_db, user_id)["stripe_customer_id"] = "cus_1"
        create = mocker.patch("stripe.billing_portal.Session.create", return_value={"url": "https://billing.stripe.test"})

        response = client.post("/api/stripe/portal", headers={**headers, "Origin": "https://thejury.app/"})
        assert response.json() == {"url": "https://billing.stripe.test"}
        create.assert_called_once_with(customer="cus_1", return_url="https://thejury.app/profile")


class TestWebhookEndpoint:

    def test_missing_signature(self, client):
        response = client.post("/api/stripe/webhook", content=b"{}")
        assert response.status_code == 400
        assert response.json()["detail"] == "Missing stripe-signature header"

    def test_bad_signature(self, client):
        response = client.post("/api/stripe/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=bad"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid signature"

    def test_verified_event_is_handled(self, client, make_user, fake_db, mocker):
        user_id, _ = make_user()
        _profile(fake_db, user_id)["stripe_customer_id"] = "cus_1"
        event = {"type": "customer.subscription.updated", "data": {"object": _subscription("price_team")}}
        construct = mocker.patch("stripe.Webhook.construct_event", return_value=event)

        response = client.post("/api/stripe/webhook", content=b"raw-body", headers={"stripe-signature": "sig"})

        assert response.json() == {"received": True}
        construct.assert_called_once_with(b"raw-body", "sig", "whsec_123")
        assert _profile(fake_db, user_id)["subscription_tier"] == "team"

    def test_handler_failure_is_500(self, client, mocker):
        mocker.patch("stripe.Webhook.construct_event", return_value={"type": "invoice.payment_failed", "data": {"object": {}}})
        mocker.patch.object(billing, "EVENT_HANDLERS", {"invoice.payment_failed": mocker.Mock(side_effect=RuntimeError("boom"))})
        response = client.post("/api/stripe/webhook", content=b"{}", headers={"stripe-signature": "sig"})
        assert response.status_code == 500


class TestEventHandlers:

    def test_checkout_completed_uses_session_metadata(self, fake_db, make_user, mocker):
        user_id, _ = make_user()
        mocker.patch("stripe.Subscription.retrieve", return_value=_subscription("price_pro"))
        session = {"id": "cs_1", "mode": "subscription", "subscription": "sub_1", "customer": "cus_9", "metadata": {"userId": user_id}}

        assert handle_stripe_event(fake_db, {"type": "checkout.session.completed", "data": {"object": session}}) is True

        profile = _profile(fake_db, user_id)
        assert profile["subscription_tier"] == "pro"
        assert profile["subscription_status"] == "active"
        assert profile["stripe_customer_id"] == "cus_9"
        assert profile["subscription_id"] == "sub_1"
        assert profile["current_period_end"] == "2027-01-15T08:00:00+00:00"

    def test_one_off_checkout_is_ignored(self, fake_db, mocker):
        retrieve = mocker.patch("stripe.Subscription.retrieve")
        handle_stripe_event(fake_db, {"type": "checkout.session.completed", "data": {"object": {"mode": "payment"}}})
        retrieve.assert_not_called()

    def test_subscription_deleted_downgrades(self, fake_db, make_user):
        user_id, _ = make_user("team")
        _profile(fake_db, user_id)["stripe_customer_id"] = "cus_1"

        handle_stripe_event(fake_db, {"type": "customer.subscription.deleted", "data": {"object": _subscription()}})

        profile = _profile(fake_db, user_id)
        assert profile["subscription_tier"] == "free"
        assert profile["subscription_status"] is None

    def test_payment_failed_marks_past_due(self, fake_db, make_user):
        user_id, _ = make_user("pro")
        _profile(fake_db, user_id)["stripe_customer_id"] = "cus_1"
        handle_stripe_event(fake_db, {"type": "invoice.payment_failed", "data": {"object": {"customer": "cus_1"}}})
        assert _profile(fake_db, user_id)["subscription_status"] == "past_due"

    def test_unknown_price_maps_to_free(self, fake_db, make_user):
        user_id, _ = make_user("pro")
        _profile(fake_db, user_id)["stripe_customer_id"] = "cus_1"
        handle_stripe_event(fake_db, {"type": "customer.subscription.updated", "data": {"object": _subscription("price_other")}})
        assert _profile(fake_db, user_id)["subscription_tier"] == "free"

    def test_ignored_event_type(self, fake_db):
        assert handle_stripe_event(fake_db, {"type": "charge.refunded", "data": {"object": {}}}) is False


class TestResolveUser:

    def test_metadata_wins(self, fake_db):
        assert resolve_user_id(fake_db, "cus_1", "user-from-metadata") == "user-from-metadata"

    def test_falls_back_to_stripe_customer(self, fake_db, mocker):
        mocker.patch("stripe.Customer.retrieve", return_value={"id": "cus_x", "metadata": {"userId": "user-7"}})
        assert resolve_user_id(fake_db, "cus_x") == "user-7"

    def test_deleted_customer(self, fake_db, mocker):
        mocker.patch("stripe.Customer.retrieve", return_value={"id": "cus_x", "deleted": True})
        assert resolve_user_id(fake_db, "cus_x") is None

    def test_unknown_user_is_acknowledged(self, fake_db, mocker):
        mocker.patch("stripe.Customer.retrieve", side_effect=stripe.InvalidRequestError("No such customer", "id"))
        assert handle_stripe_event(fake_db, {"type": "customer.subscription.updated", "data": {"object": _subscription(customer="cus_gone")}}) is True

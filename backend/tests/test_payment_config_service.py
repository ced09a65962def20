# Overview: Pytest coverage for payment model selection, lifecycle and order fees.

import pytest

from eventpay.errors import (
    AlreadyConfigured,
    AlreadySettled,
    AuthenticationRequired,
    ConfigNotFound,
    EventNotFound,
    InsufficientCredits,
    NotEventOwner,
    PaymentModelInactive,
    PaymentSetupIncomplete,
    ValidationError,
    WrongPaymentModel,
)
from eventpay.models import PaymentModelConfig
from eventpay.models.payments import MODEL_CONSIGNMENT, MODEL_CREDIT_CARD, MODEL_PREPAY, PROCESSOR_SQUARE
from eventpay.services import audit_service, payment_config_service, settlement_service


class TestSelectModel:
    def test_select_credit_card_uses_default_fees(self, db_session, organizer, event):
        config = payment_config_service.select_model(event.id, MODEL_CREDIT_CARD, caller=organizer)

        assert config.payment_model == MODEL_CREDIT_CARD
        assert config.is_active is True
        assert config.platform_fee_bps == 370
        assert config.platform_fee_fixed_cents == 179
        assert config.processing_fee_bps == 290

    def test_selection_opens_ticket_sales(self, db_session, organizer, event):
        payment_config_service.select_model(event.id, MODEL_CREDIT_CARD, caller=organizer)
        db_session.refresh(event)
        assert event.payment_model_selected is True
        assert event.tickets_visible is True

    def test_charity_discount_halves_defaults(self, db_session, organizer, event):
        config = payment_config_service.select_model(
            event.id, MODEL_CREDIT_CARD, caller=organizer, charity_discount=True
        )
        assert config.charity_discount is True
        assert config.platform_fee_bps == 185
        assert config.platform_fee_fixed_cents == 90

    def test_second_selection_rejected_regardless_of_model(self, db_session, organizer, event):
        payment_config_service.select_model(event.id, MODEL_CREDIT_CARD, caller=organizer)

        for model in (MODEL_CREDIT_CARD, MODEL_CONSIGNMENT):
            with pytest.raises(AlreadyConfigured):
                payment_config_service.select_model(
                    event.id, model, caller=organizer, floated_tickets=10
                )

        assert db_session.query(PaymentModelConfig).filter_by(event_id=event.id).count() == 1

    def test_non_owner_rejected(self, db_session, other_organizer, event):
        with pytest.raises(NotEventOwner):
            payment_config_service.select_model(event.id, MODEL_CREDIT_CARD, caller=other_organizer)

    def test_admin_may_select(self, db_session, admin, event):
        config = payment_config_service.select_model(event.id, MODEL_CONSIGNMENT, caller=admin, floated_tickets=50)
        assert config.payment_model == MODEL_CONSIGNMENT

    def test_anonymous_rejected(self, db_session, event):
        with pytest.raises(AuthenticationRequired):
            payment_config_service.select_model(event.id, MODEL_CREDIT_CARD, caller=None)

    def test_unknown_event(self, db_session, organizer):
        with pytest.raises(EventNotFound):
            payment_config_service.select_model(99999, MODEL_CREDIT_CARD, caller=organizer)

    def test_unknown_model(self, db_session, organizer, event):
        with pytest.raises(ValidationError):
            payment_config_service.select_model(event.id, "BARTER", caller=organizer)

    def test_credit_card_requires_processor_setup(self, db_session, organizer, event):
        organizer.payment_setup_complete = False
        db_session.commit()

        with pytest.raises(PaymentSetupIncomplete) as exc:
            payment_config_service.select_model(event.id, MODEL_CREDIT_CARD, caller=organizer)
        assert "guidance" in exc.value.to_dict()
        assert payment_config_service.get_config(event.id) is None

    def test_prepay_requires_credits(self, db_session, organizer, event):
        with pytest.raises(InsufficientCredits) as exc:
            payment_config_service.select_model(event.id, MODEL_PREPAY, caller=organizer, tickets_allocated=10)
        assert exc.value.shortfall == 10

    def test_prepay_with_credits(self, db_session, organizer, event, organizer_credits):
        config = payment_config_service.select_model(event.id, MODEL_PREPAY, caller=organizer, tickets_allocated=40)
        assert config.tickets_allocated == 40
        assert config.platform_fee_bps == 0
        assert config.platform_fee_fixed_cents == 0
        assert config.processing_fee_bps == 290

    def test_consignment_due_date_defaults_to_event_start(self, db_session, organizer, event):
        config = payment_config_service.select_model(event.id, MODEL_CONSIGNMENT, caller=organizer, floated_tickets=100)
        assert config.floated_tickets == 100
        assert config.settlement_due_at == event.starts_at
        assert config.consignment_settled is False

    def test_selection_is_audited(self, db_session, organizer, event):
        payment_config_service.select_model(event.id, MODEL_CREDIT_CARD, caller=organizer)
        rows = audit_service.list_audit_events(event.id)
        assert [r.action for r in rows] == [audit_service.ACTION_MODEL_SELECTED]
        assert rows[0].actor_user_id == organizer.id


class TestSetupConsignment:
    def test_creates_config_when_absent(self, db_session, organizer, event):
        config = payment_config_service.setup_consignment(event.id, 100, caller=organizer)
        assert config.payment_model == MODEL_CONSIGNMENT
        assert config.floated_tickets == 100

    def test_updates_unsettled_float(self, db_session, organizer, event):
        payment_config_service.setup_consignment(event.id, 100, caller=organizer)
        config = payment_config_service.setup_consignment(event.id, 150, caller=organizer)
        assert config.floated_tickets == 150

    def test_rejected_on_other_model(self, db_session, organizer, event):
        payment_config_service.select_model(event.id, MODEL_CREDIT_CARD, caller=organizer)
        with pytest.raises(AlreadyConfigured):
            payment_config_service.setup_consignment(event.id, 100, caller=organizer)

    def test_rejected_after_settlement(self, db_session, organizer, event):
        payment_config_service.setup_consignment(event.id, 100, caller=organizer)
        settlement_service.settle(event.id, caller=organizer)
        with pytest.raises(AlreadySettled):
            payment_config_service.setup_consignment(event.id, 200, caller=organizer)

    def test_negative_float_rejected(self, db_session, organizer, event):
        with pytest.raises(ValidationError):
            payment_config_service.setup_consignment(event.id, -5, caller=organizer)


class TestLifecycle:
    def test_deactivate_hides_tickets_and_keeps_row(self, db_session, organizer, event):
        payment_config_service.select_model(event.id, MODEL_CREDIT_CARD, caller=organizer)
        config = payment_config_service.deactivate(event.id, caller=organizer)

        assert config.is_active is False
        assert config.deactivated_at is not None
        db_session.refresh(event)
        assert event.tickets_visible is False
        assert payment_config_service.has_payment_configured(event.id) == {
            "has_config": True,
            "is_active": False,
            "payment_model": MODEL_CREDIT_CARD,
        }

    def test_deactivate_without_config(self, db_session, organizer, event):
        with pytest.raises(ConfigNotFound):
            payment_config_service.deactivate(event.id, caller=organizer)

    def test_low_price_discount_after_charity_does_not_compound(self, db_session, organizer, event):
        payment_config_service.select_model(event.id, MODEL_CREDIT_CARD, caller=organizer, charity_discount=True)
        config = payment_config_service.apply_low_price_discount(event.id, caller=organizer)

        assert config.platform_fee_bps == 185
        assert config.platform_fee_fixed_cents == 90
        assert config.low_price_discount is True

    def test_low_price_discount_reapplied_writes_same_values(self, db_session, organizer, event):
        payment_config_service.select_model(event.id, MODEL_CREDIT_CARD, caller=organizer)
        payment_config_service.apply_low_price_discount(event.id, caller=organizer)
        config = payment_config_service.apply_low_price_discount(event.id, caller=organizer)

        assert config.platform_fee_bps == 185
        assert config.platform_fee_fixed_cents == 90
        actions = [r.action for r in audit_service.list_audit_events(event.id)]
        assert actions.count(audit_service.ACTION_LOW_PRICE_DISCOUNT) == 2

    def test_low_price_discount_credit_card_only(self, db_session, organizer, event):
        payment_config_service.select_model(event.id, MODEL_CONSIGNMENT, caller=organizer, floated_tickets=10)
        with pytest.raises(WrongPaymentModel):
            payment_config_service.apply_low_price_discount(event.id, caller=organizer)

    def test_update_payment_methods(self, db_session, organizer, event):
        payment_config_service.select_model(event.id, MODEL_CREDIT_CARD, caller=organizer)
        config = payment_config_service.update_payment_methods(
            event.id,
            caller=organizer,
            merchant_processor=PROCESSOR_SQUARE,
            credit_card_enabled=True,
            cash_app_enabled=True,
        )
        assert config.merchant_processor == PROCESSOR_SQUARE
        assert config.cash_app_enabled is True

    def test_update_payment_methods_unknown_processor(self, db_session, organizer, event):
        payment_config_service.select_model(event.id, MODEL_CREDIT_CARD, caller=organizer)
        with pytest.raises(ValidationError):
            payment_config_service.update_payment_methods(
                event.id,
                caller=organizer,
                merchant_processor="VENMO",
                credit_card_enabled=True,
                cash_app_enabled=False,
            )

    def test_list_organizer_configs(self, db_session, organizer, event):
        payment_config_service.select_model(event.id, MODEL_CREDIT_CARD, caller=organizer)
        configs = payment_config_service.list_organizer_configs(organizer.id)
        assert [c.event_id for c in configs] == [event.id]


class TestOrderFees:
    def test_uses_stored_parameters(self, db_session, organizer, event):
        payment_config_service.select_model(event.id, MODEL_CREDIT_CARD, caller=organizer, charity_discount=True)
        fees = payment_config_service.calculate_order_fees(event.id, 10000)
        assert fees.total_cents == 10573
        assert fees.payment_model == MODEL_CREDIT_CARD

    def test_consignment_orders_carry_no_fees(self, db_session, organizer, event):
        payment_config_service.setup_consignment(event.id, 10, caller=organizer)
        fees = payment_config_service.calculate_order_fees(event.id, 10000)
        assert fees.total_cents == 10000

    def test_missing_config(self, db_session, event):
        with pytest.raises(ConfigNotFound):
            payment_config_service.calculate_order_fees(event.id, 10000)

    def test_inactive_config(self, db_session, organizer, event):
        payment_config_service.select_model(event.id, MODEL_CREDIT_CARD, caller=organizer)
        payment_config_service.deactivate(event.id, caller=organizer)
        with pytest.raises(PaymentModelInactive):
            payment_config_service.calculate_order_fees(event.id, 10000)

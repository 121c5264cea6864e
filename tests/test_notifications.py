"""
Tests for message rendering and the Flask-Mail gateway.
"""

import pytest

from blueprints.parking.services.notifications import (
    MailNotificationGateway, ReservationCodeMessage, SlotAvailableMessage, deliver
)
from utils.errors import DeliveryFailure


class TestMessages:
    """Message kinds render both body variants."""

    def test_reservation_code_defaults(self):
        message = ReservationCodeMessage(recipient='a@x.com', code='ABC123')

        assert message.subject == 'Código de confirmación'
        assert message.validity_minutes == 10
        assert message.metadata() == {'kind': 'reservation_code'}

        body = message.render()
        assert 'ABC123' in body['text']
        assert 'ABC123' in body['html']
        assert '10 minutos' in body['text']

    def test_reservation_code_action_url(self):
        body = ReservationCodeMessage(
            recipient='a@x.com', code='ABC123', action_url='https://parking.example.com'
        ).render()

        assert 'https://parking.example.com' in body['text']
        assert 'href="https://parking.example.com"' in body['html']

    def test_slot_available_html_is_escaped(self):
        body = SlotAvailableMessage(
            recipient='a@x.com', slot_id=7, slot_name='<b>Norte</b>'
        ).render()

        assert '&lt;b&gt;Norte&lt;/b&gt;' in body['html']
        assert '<b>Norte</b>' in body['text']
        assert 'ID: 7' in body['text']

    def test_slot_available_metadata(self):
        message = SlotAvailableMessage(recipient='a@x.com', slot_id=7)
        assert message.subject == 'Parqueo disponible'
        assert message.metadata() == {'kind': 'slot_available', 'slot_id': 7}


class TestMailGateway:
    """MailNotificationGateway over Flask-Mail (sending suppressed under test)."""

    def test_sends_both_variants(self, app):
        from extensions import mail

        gateway = MailNotificationGateway(app, mail)

        with mail.record_messages() as outbox:
            deliver(gateway, ReservationCodeMessage(recipient='a@x.com', code='XYZ789'))

        assert len(outbox) == 1
        assert outbox[0].recipients == ['a@x.com']
        assert outbox[0].subject == 'Código de confirmación'
        assert 'XYZ789' in outbox[0].body
        assert 'XYZ789' in outbox[0].html

    def test_missing_recipient(self, app):
        from extensions import mail

        gateway = MailNotificationGateway(app, mail)
        with pytest.raises(DeliveryFailure):
            gateway.send('', 'Asunto', {'text': 'x'})

    def test_transport_error_becomes_delivery_failure(self, app, monkeypatch):
        from extensions import mail

        def boom(message):
            raise OSError('connection refused')

        monkeypatch.setattr(mail, 'send', boom)
        gateway = MailNotificationGateway(app, mail)

        with pytest.raises(DeliveryFailure):
            deliver(gateway, SlotAvailableMessage(recipient='a@x.com', slot_id=1))

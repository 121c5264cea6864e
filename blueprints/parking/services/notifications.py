"""
Notification Service - outbound messages for the parking core.

Handles:
- Message kinds (reservation code, slot available) with explicit defaults
- Rendering of text/html body variants (Jinja2)
- The NotificationGateway contract and its Flask-Mail implementation
"""

import logging
from dataclasses import dataclass
from typing import Optional

from flask_mail import Message
from jinja2 import Environment

from utils.errors import DeliveryFailure

logger = logging.getLogger(__name__)

_text_env = Environment(autoescape=False, trim_blocks=True, lstrip_blocks=True)
_html_env = Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)


# =============================================================================
# TEMPLATES
# =============================================================================

_CODE_TEXT = _text_env.from_string('''{{ title }}

{% if name %}{{ name }}, {% endif %}tu código de confirmación es: {{ code }}
Vence en {{ validity_minutes }} minutos.
{% if action_url %}

Confirma aquí: {{ action_url }}
{% endif %}
''')

_CODE_HTML = _html_env.from_string('''<!doctype html>
<html lang="es">
<head><meta charset="utf-8"><meta name="viewport" content="width=device-width,initial-scale=1"></head>
<body style="margin:0;padding:0;background:#f2f4f7;font-family:Arial,sans-serif">
  <span style="display:none">Tu código es {{ code }}. Vence en {{ validity_minutes }} minutos.</span>
  <div style="max-width:560px;background:#fff;border-radius:14px;margin:30px auto;overflow:hidden">
    <div style="padding:22px;background:#111827;color:#fff;font-size:22px;font-weight:700;text-align:center">{{ title }}</div>
    <div style="padding:24px;color:#111827;font-size:16px;line-height:1.6">
      {% if name %}<div>Hola, <strong>{{ name }}</strong>.</div>{% endif %}
      <div>Tu código de confirmación:</div>
      <div style="margin-top:12px;font-family:monospace;font-size:28px;letter-spacing:3px">{{ code }}</div>
      <div style="color:#6b7280;font-size:14px;margin-top:12px">Vence en {{ validity_minutes }} minutos.</div>
      {% if action_url %}<p><a href="{{ action_url }}" target="_blank" rel="noopener">{{ action_text }}</a></p>{% endif %}
    </div>
    <div style="padding:12px 24px;color:#6b7280;font-size:12px">Si no solicitaste este código, puedes ignorar este correo.</div>
  </div>
</body>
</html>
''')

_AVAILABLE_TEXT = _text_env.from_string('''{{ title }}

Querido usuario,
{{ slot_name }} (ID: {{ slot_id }}){% if location %} en {{ location }}{% endif %} ya se encuentra disponible.
{% if action_url %}

Consulta aquí: {{ action_url }}
{% endif %}
''')

_AVAILABLE_HTML = _html_env.from_string('''<!doctype html>
<html lang="es">
<head><meta charset="utf-8"><meta name="viewport" content="width=device-width,initial-scale=1"></head>
<body style="font-family:Arial,sans-serif;background:#f4f6f8;margin:0;padding:0">
  <div style="max-width:560px;background:#fff;margin:30px auto;border-radius:12px;padding:24px">
    <div style="color:#111827;font-size:20px;font-weight:700;margin-bottom:16px;text-align:center">{{ title }}</div>
    <div style="font-size:15px;color:#333;line-height:1.6;text-align:center">
      <p>Querido usuario,</p>
      <p>Tu espacio de <strong>{{ slot_name }}</strong> (ID: <code>{{ slot_id }}</code>){% if location %} en {{ location }}{% endif %} ya se encuentra disponible.</p>
      {% if action_url %}<p><a href="{{ action_url }}" target="_blank" rel="noopener">{{ action_text }}</a></p>{% endif %}
    </div>
    <div style="font-size:12px;color:#999;text-align:center;margin-top:24px">Este mensaje fue generado automáticamente. Por favor, no respondas a este correo.</div>
  </div>
</body>
</html>
''')


# =============================================================================
# MESSAGE KINDS
# =============================================================================

@dataclass
class ReservationCodeMessage:
    """Confirmation code sent to a reservation requester."""

    recipient: str
    code: str
    validity_minutes: int = 10
    name: str = ''
    subject: str = 'Código de confirmación'
    title: str = 'Verificación'
    action_url: str = ''
    action_text: str = 'Confirmar código'

    kind = 'reservation_code'

    def render(self) -> dict:
        context = {
            'title': self.title,
            'name': self.name,
            'code': self.code,
            'validity_minutes': self.validity_minutes,
            'action_url': self.action_url,
            'action_text': self.action_text,
        }
        return {'text': _CODE_TEXT.render(context), 'html': _CODE_HTML.render(context)}

    def metadata(self) -> dict:
        return {'kind': self.kind}


@dataclass
class SlotAvailableMessage:
    """Notice that a slot is free, for immediate requesters and waitlist subscribers."""

    recipient: str
    slot_id: int
    slot_name: str = 'Parqueo'
    location: str = ''
    subject: str = 'Parqueo disponible'
    title: str = 'Notificación de disponibilidad'
    action_url: str = ''
    action_text: str = 'Ver disponibilidad'

    kind = 'slot_available'

    def render(self) -> dict:
        context = {
            'title': self.title,
            'slot_id': self.slot_id,
            'slot_name': self.slot_name,
            'location': self.location,
            'action_url': self.action_url,
            'action_text': self.action_text,
        }
        return {'text': _AVAILABLE_TEXT.render(context), 'html': _AVAILABLE_HTML.render(context)}

    def metadata(self) -> dict:
        return {'kind': self.kind, 'slot_id': self.slot_id}


# =============================================================================
# GATEWAY
# =============================================================================

class NotificationGateway:
    """
    Outbound delivery contract.

    ``send`` returns normally on success and raises DeliveryFailure on failure.
    """

    def send(self, recipient: str, subject: str, body_variants: dict, metadata: Optional[dict] = None) -> None:
        raise NotImplementedError


class MailNotificationGateway(NotificationGateway):
    """Delivers messages through Flask-Mail; safe to call from worker threads."""

    def __init__(self, app, mail):
        self._app = app
        self._mail = mail

    def send(self, recipient, subject, body_variants, metadata=None):
        if not recipient or not subject:
            raise DeliveryFailure('Faltan campos para enviar email')

        msg = Message(
            subject=subject,
            recipients=[recipient],
            body=body_variants.get('text'),
            html=body_variants.get('html'),
            sender=self._app.config['MAIL_DEFAULT_SENDER']
        )

        try:
            with self._app.app_context():
                self._mail.send(msg)
        except Exception as e:
            logger.error("Failed to send %s email to %s: %s",
                         (metadata or {}).get('kind', 'notification'), recipient, e)
            raise DeliveryFailure(f'No se pudo enviar el correo a {recipient}') from e

        logger.info("Email sent to %s (%s)", recipient, (metadata or {}).get('kind', 'notification'))


def deliver(gateway: NotificationGateway, message) -> None:
    """Render a message kind and hand it to the gateway."""
    gateway.send(message.recipient, message.subject, message.render(), message.metadata())

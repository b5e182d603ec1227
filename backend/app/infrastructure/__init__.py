"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .payment_gateway import PaymentGateway, PaymentIntent, StripeGateway, WebhookEvent

__all__ = ['PaymentGateway', 'PaymentIntent', 'StripeGateway', 'WebhookEvent']

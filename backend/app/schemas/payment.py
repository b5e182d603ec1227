from app.schemas.common import APIModel


class CreateIntentRequest(APIModel):
    booking_id: int


class PaymentIntentResponse(APIModel):
    client_secret: str
    payment_intent_id: str


class VerifyPaymentRequest(APIModel):
    payment_intent_id: str


class VerifyPaymentResponse(APIModel):
    booking_id: int
    payment_status: str
    booking_status: str

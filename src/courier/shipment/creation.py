"""Shipment creation — command and handler.

Books a shipment for a merchant and assigns it a fresh AWB.
"""

import structlog
from protean import handle
from protean.fields import DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from courier.domain import courier
from courier.shared.authorization import Actor, ensure_permitted
from courier.shipment.awb import generate_awb
from courier.shipment.shipment import DeliveryType, PaymentMethod, Shipment
from courier.utils.time import utcnow

logger = structlog.get_logger(__name__)

_AWB_ATTEMPTS = 5


@courier.command(part_of="Shipment")
class CreateShipment:
    merchant_id = Identifier(required=True)
    customer_id = Identifier()
    receiver_name = String(required=True, max_length=200)
    receiver_phone = String(required=True, max_length=30)
    receiver_address = String(required=True, max_length=500)
    delivery_area = String(max_length=100)
    weight = Float(default=0.0)
    delivery_type = String(choices=DeliveryType, default=DeliveryType.NORMAL.value)
    payment_method = String(choices=PaymentMethod, default=PaymentMethod.PREPAID.value)
    cod_amount = Float(default=0.0)
    expected_delivery_date = DateTime()
    created_at = DateTime()  # Optional: defaults to now
    actor_id = String(required=True)
    actor_role = String(required=True)


@courier.command_handler(part_of=Shipment)
class CreateShipmentHandler:
    @handle(CreateShipment)
    def create_shipment(self, command):
        ensure_permitted("shipment.create", Actor.of(command.actor_id, command.actor_role))

        repo = current_domain.repository_for(Shipment)
        now = command.created_at or utcnow()
        awb = generate_awb(now)
        for _ in range(_AWB_ATTEMPTS - 1):
            if not repo.awb_exists(awb):
                break
            awb = generate_awb(now)

        shipment = Shipment.create(
            awb=awb,
            merchant_id=command.merchant_id,
            customer_id=command.customer_id,
            receiver_name=command.receiver_name,
            receiver_phone=command.receiver_phone,
            receiver_address=command.receiver_address,
            delivery_area=command.delivery_area,
            weight=command.weight,
            delivery_type=command.delivery_type,
            payment_method=command.payment_method,
            cod_amount=command.cod_amount,
            expected_delivery_date=command.expected_delivery_date,
            created_at=now,
        )
        repo.add(shipment)
        logger.info("Shipment booked", awb=awb, merchant_id=str(command.merchant_id))
        return awb

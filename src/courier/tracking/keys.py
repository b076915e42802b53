"""Cache keys and live-update topics for shipment tracking."""

PUBLIC_TRACKING_TTL_SECONDS = 120
ALL_SHIPMENTS_TOPIC = "tracking:all"


def public_cache_key(awb: str) -> str:
    return f"tracking:public:{awb}"


def status_topics(awb: str, merchant_id: str | None) -> list[str]:
    topics = [f"tracking:{awb}", ALL_SHIPMENTS_TOPIC, f"shipment-{awb}"]
    if merchant_id:
        topics.append(f"merchant-{merchant_id}")
    return topics

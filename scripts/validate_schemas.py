"""Checks the request schemas and runs a few known payloads through them."""

from jsonschema import ValidationError

from auction_server.validation.validator import SCHEMA_DIR, SchemaRegistry

SAMPLES = {
    "bid_request": ({"user_id": "buyer_1", "amount": "110.50"}, {"amount": 110}),
    "auction_cancel": ({"seller_id": "farmer_1"}, {}),
    "buy_now": ({"buyer_id": "buyer_1"}, {"buyer_id": ""}),
}


def validate() -> None:
    registry = SchemaRegistry(SCHEMA_DIR)
    for name in registry.names:
        print(f"ok {name}")
    for name, (good, bad) in SAMPLES.items():
        registry.validate(name, good)
        try:
            registry.validate(name, bad)
        except ValidationError:
            continue
        raise SystemExit(f"{name} accepted an invalid payload: {bad}")


if __name__ == "__main__":
    validate()

"""Courier bounded context — parcel movement from merchant to receiver.

Coordinates shipments through pickup, a network of hubs and the last-mile
rider, and keeps watch over the time budgets each stage is allowed. Uses
CQRS (not event sourcing): the shipment, pickup, manifest and rider
location rows are the source of truth, and the tracking timeline is
derived from them on read.
"""

from protean.domain import Domain

courier = Domain(name="courier")

# app/cli/track_shipments.py
import asyncio
import click

from app.database import async_session
from app.services.shipment_service import ShipmentService
from app.services.shipping.factory import get_carrier


@click.command()
@click.option('--shipment-id', type=int, default=None, help='Track a single shipment instead of all in-flight ones')
def track_shipments(shipment_id):
    """Poll the carrier for in-flight shipments and apply status changes"""

    async def _track():
        carrier = get_carrier()
        try:
            async with async_session() as session:
                service = ShipmentService(session, carrier=carrier)
                if shipment_id is not None:
                    result = await service.track_and_update(shipment_id)
                    click.echo(
                        f"Shipment {shipment_id}: carrier code {result['carrier_status_code']} -> "
                        f"{result['status']} ({'updated' if result['changed'] else 'unchanged'})"
                    )
                    return

                summary = await service.refresh_in_flight()
                click.echo(
                    f"Checked {summary['checked']} shipments: {summary['updated']} updated, "
                    f"{summary['unchanged']} unchanged, {len(summary['errors'])} errors"
                )
                for error in summary["errors"]:
                    click.echo(f"  shipment {error['shipment_id']}: {error['error']}", err=True)
        finally:
            await carrier.close()

    asyncio.run(_track())

if __name__ == "__main__":
    track_shipments()

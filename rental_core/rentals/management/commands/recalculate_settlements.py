from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand
from django.db import transaction

from rentals.models import Booking, OutsourcedVehicle, Payment


class Command(BaseCommand):
    help = 'Re-saves bookings, payments and outsourced vehicles so every derived total is current'

    def add_arguments(self, parser):
        parser.add_argument(
            '--bookings-only',
            action='store_true',
            help='Only re-settle bookings.',
        )

    def handle(self, *args, **options):
        failed = 0
        for booking in Booking.objects.select_related('vehicle', 'driver').order_by('id'):
            try:
                with transaction.atomic():
                    booking.save()
            except ValidationError as exc:
                failed += 1
                self.stderr.write(self.style.ERROR(f'Skipped booking {booking.booking_number}: {exc.messages}'))
                continue
            self.stdout.write(
                self.style.SUCCESS(f'Recalculated booking {booking.booking_number} - {booking.total_amount:.2f}')
            )

        if not options['bookings_only']:
            for payment in Payment.objects.order_by('id'):
                payment.save()
            for vehicle in OutsourcedVehicle.objects.order_by('id'):
                vehicle.save()
            self.stdout.write(self.style.SUCCESS('Recalculated payment and outsourced vehicle balances'))

        if failed:
            self.stdout.write(self.style.WARNING(f'{failed} booking(s) could not be settled'))

import logging

from django.db.models.signals import post_delete, post_save, pre_save
from django.dispatch import receiver

from .models import Booking, Customer, Vehicle


logger = logging.getLogger(__name__)


# ---------- Helpers ---------------------------------------------------------

def _set_vehicle_status(vehicle_id, status, only_if=None):
    if not vehicle_id:
        return
    queryset = Vehicle.objects.filter(pk=vehicle_id)
    if only_if:
        queryset = queryset.filter(status=only_if)
    queryset.update(status=status)


def _refresh_customers(*customer_ids):
    for customer in Customer.objects.filter(pk__in={pk for pk in customer_ids if pk}):
        customer.refresh_booking_stats()


# ---------- Booking side effects --------------------------------------------

@receiver(pre_save, sender=Booking)
def remember_booking_links(sender, instance, **kwargs):
    """Keep the customer, vehicle and status a booking had before this save."""
    instance._previous_links = None
    if instance.pk:
        instance._previous_links = (
            Booking.objects.filter(pk=instance.pk)
            .values('customer_id', 'vehicle_id', 'status')
            .first()
        )


@receiver(post_save, sender=Booking)
def sync_booking_links(sender, instance, created, **kwargs):
    """Keep the vehicle's booked flag and the customer rollups in step with a booking write."""
    previous = getattr(instance, '_previous_links', None) or {}

    if created:
        if instance.is_active:
            _set_vehicle_status(instance.vehicle_id, Vehicle.STATUS_BOOKED)
        logger.info(
            "Booking %s created for customer %s (vehicle %s)",
            instance.booking_number, instance.customer_id, instance.vehicle_id,
        )
    else:
        was_active = previous.get('status') in Booking.ACTIVE_STATUSES
        moved = previous.get('vehicle_id') != instance.vehicle_id
        if was_active and (moved or not instance.is_active):
            _set_vehicle_status(previous.get('vehicle_id'), Vehicle.STATUS_AVAILABLE, only_if=Vehicle.STATUS_BOOKED)
        if instance.is_active and (moved or not was_active):
            _set_vehicle_status(instance.vehicle_id, Vehicle.STATUS_BOOKED)

    _refresh_customers(instance.customer_id, previous.get('customer_id'))


@receiver(post_delete, sender=Booking)
def release_booking_links(sender, instance, **kwargs):
    if instance.is_active:
        _set_vehicle_status(instance.vehicle_id, Vehicle.STATUS_AVAILABLE)
    _refresh_customers(instance.customer_id)
    logger.info("Booking %s deleted", instance.booking_number)

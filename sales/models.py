"""
Data models for the ticket sales portal.
"""
import secrets
import uuid

from django.db import models


def generate_sale_id() -> str:
    """Return a human-readable sale token such as ``SALE042917``."""
    return f"SALE{secrets.randbelow(1_000_000):06d}"


class Profile(models.Model):
    """
    Partner or admin identity, owned by the identity subsystem.
    The sales workflow only reads role, is_active and partner_code.
    """

    class Role(models.TextChoices):
        ADMIN = 'admin', 'Admin'
        PARTNER = 'partner', 'Partner'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    partner_code = models.CharField(max_length=32, unique=True, null=True, blank=True)
    name = models.CharField(max_length=120)
    mobile = models.CharField(max_length=10, null=True, blank=True)
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.PARTNER, db_index=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name} ({self.partner_code or self.role})"

    # Lets DRF treat a resolved profile as request.user
    @property
    def is_authenticated(self):
        return True

    @property
    def is_admin(self):
        return self.role == self.Role.ADMIN and self.is_active

    @property
    def is_partner(self):
        return self.role == self.Role.PARTNER and self.is_active


class TicketTier(models.Model):
    """
    A priced ticket category with finite remaining stock.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)
    price = models.PositiveIntegerField()
    remaining_qty = models.PositiveIntegerField(default=0)
    initial_qty = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['price']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(remaining_qty__gte=0),
                name='tier_remaining_qty_non_negative',
            ),
            models.CheckConstraint(
                condition=models.Q(remaining_qty__lte=models.F('initial_qty')),
                name='tier_remaining_qty_within_initial',
            ),
        ]

    def __str__(self):
        return f"{self.name} - {self.remaining_qty}/{self.initial_qty}"


class Sale(models.Model):
    """
    One buyer's ticket purchase, pending admin confirmation.

    ``tickets_data`` holds ``{tier_id, tier_name, price, qty}`` snapshots
    taken at submission time.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        APPROVED = 'approved', 'Approved'
        REJECTED = 'rejected', 'Rejected'

    id = models.CharField(primary_key=True, max_length=16, default=generate_sale_id, editable=False)
    partner = models.ForeignKey(
        Profile,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='sales'
    )
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )
    buyer_name = models.CharField(max_length=120)
    buyer_mobile = models.CharField(max_length=10)
    amount = models.PositiveIntegerField()
    transaction_id_last4 = models.CharField(max_length=4)
    screenshot_path = models.CharField(max_length=512, null=True, blank=True)
    tickets_data = models.JSONField(default=list)
    rejection_reason = models.TextField(null=True, blank=True)
    submitted_at = models.DateTimeField(auto_now_add=True, db_index=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-submitted_at']
        indexes = [
            models.Index(fields=['status', 'submitted_at'], name='sales_sale_status_6b1e2c_idx'),
            models.Index(fields=['partner', 'submitted_at'], name='sales_sale_partner_9d4a7f_idx'),
        ]

    def __str__(self):
        return f"Sale {self.id} - {self.status}"


class WebhookLog(models.Model):
    """
    Delivery record for one approval notification, updated in place
    as retries proceed.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        SUCCESS = 'success', 'Success'
        FAILED = 'failed', 'Failed'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    sale = models.ForeignKey(
        Sale,
        on_delete=models.CASCADE,
        related_name='webhook_logs'
    )
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )
    attempts = models.PositiveIntegerField(default=0)
    last_attempt_at = models.DateTimeField(null=True, blank=True)
    response_status = models.PositiveIntegerField(null=True, blank=True)
    response_body = models.TextField(null=True, blank=True)
    error_message = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Webhook for {self.sale_id} - {self.status} ({self.attempts} attempts)"


class AuditLog(models.Model):
    """Append-only trail of administrative and submission actions."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    actor = models.ForeignKey(
        Profile,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_entries'
    )
    action = models.CharField(max_length=50, db_index=True)
    entity_type = models.CharField(max_length=50)
    entity_id = models.CharField(max_length=64, null=True, blank=True)
    details = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.action} {self.entity_type}:{self.entity_id}"

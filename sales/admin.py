"""
Django admin configuration for sales app.
"""
from django.contrib import admin
from sales.models import AuditLog, Profile, Sale, TicketTier, WebhookLog


class WebhookLogInline(admin.TabularInline):
    """Inline display of webhook deliveries for a sale."""
    model = WebhookLog
    extra = 0
    readonly_fields = ('status', 'attempts', 'last_attempt_at', 'response_status', 'response_body', 'error_message')
    can_delete = False


@admin.register(TicketTier)
class TicketTierAdmin(admin.ModelAdmin):
    """Admin interface for TicketTier model."""

    list_display = ('name', 'price', 'remaining_qty', 'initial_qty', 'updated_at')
    readonly_fields = ('id', 'created_at', 'updated_at')


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    """Admin interface for Profile model."""

    list_display = ('name', 'partner_code', 'role', 'is_active', 'created_at')
    list_filter = ('role', 'is_active')
    search_fields = ('name', 'partner_code', 'mobile')
    readonly_fields = ('id', 'created_at', 'updated_at')


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    """
    Admin interface for Sale model.

    Status is read-only here; approve and reject go through the API so
    inventory and webhooks stay consistent.
    """

    list_display = ('id', 'status', 'partner', 'buyer_name', 'amount', 'submitted_at')
    list_filter = ('status', 'submitted_at')
    search_fields = ('id', 'buyer_name', 'buyer_mobile', 'partner__partner_code')
    readonly_fields = ('id', 'status', 'partner', 'buyer_name', 'buyer_mobile', 'amount',
                       'transaction_id_last4', 'screenshot_path', 'tickets_data', 'rejection_reason',
                       'submitted_at', 'approved_at', 'created_at', 'updated_at')

    fieldsets = (
        ('Status', {
            'fields': ('id', 'status', 'rejection_reason', 'approved_at')
        }),
        ('Buyer', {
            'fields': ('partner', 'buyer_name', 'buyer_mobile', 'transaction_id_last4', 'screenshot_path')
        }),
        ('Tickets', {
            'fields': ('tickets_data', 'amount')
        }),
        ('Timestamps', {
            'fields': ('submitted_at', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    inlines = [WebhookLogInline]

    def has_add_permission(self, request):
        """Sales are created through the submission endpoints."""
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(WebhookLog)
class WebhookLogAdmin(admin.ModelAdmin):
    """Admin interface for WebhookLog model."""

    list_display = ('id', 'sale', 'status', 'attempts', 'last_attempt_at', 'response_status')
    list_filter = ('status', 'created_at')
    search_fields = ('sale__id',)
    readonly_fields = ('sale', 'status', 'attempts', 'last_attempt_at', 'response_status',
                       'response_body', 'error_message', 'created_at')

    fieldsets = (
        ('Delivery Information', {
            'fields': ('sale', 'status', 'attempts', 'last_attempt_at')
        }),
        ('Response', {
            'fields': ('response_status', 'response_body', 'error_message')
        }),
    )

    def has_add_permission(self, request):
        """Disable manual webhook log creation through admin."""
        return False

    def has_delete_permission(self, request, obj=None):
        """Webhook logs are never deleted."""
        return False


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'action', 'entity_type', 'entity_id', 'actor')
    list_filter = ('action', 'entity_type')
    search_fields = ('entity_id',)
    readonly_fields = ('actor', 'action', 'entity_type', 'entity_id', 'details', 'created_at')

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

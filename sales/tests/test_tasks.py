"""
Unit tests for Celery tasks.
"""
import pytest
from unittest.mock import patch, Mock

from sales.models import Sale, WebhookLog
from sales.services.webhook_dispatcher import DeliveryOutcome
from sales.tasks import dispatch_sale_webhook


@pytest.mark.django_db
class TestDispatchSaleWebhook:

    @patch('sales.tasks.dispatch')
    def test_task_delegates_to_dispatcher(self, mock_dispatch):
        mock_dispatch.return_value = DeliveryOutcome(status=WebhookLog.Status.SUCCESS, attempts=1)

        assert dispatch_sale_webhook('SALE000001') == WebhookLog.Status.SUCCESS
        mock_dispatch.assert_called_once_with('SALE000001')

    @patch('sales.services.webhook_dispatcher.time.sleep')
    @patch('sales.services.webhook_dispatcher.send_webhook')
    def test_delay_runs_delivery(self, mock_send, mock_sleep, make_sale, silver_tier):
        """With eager execution, .delay() runs the full delivery in-process."""
        sale = make_sale((silver_tier, 1), status=Sale.Status.APPROVED)
        mock_response = Mock()
        mock_response.status_code = 200
        mock_response.text = 'ok'
        mock_send.return_value = mock_response

        dispatch_sale_webhook.delay(sale.id)

        log = WebhookLog.objects.get(sale=sale)
        assert log.status == WebhookLog.Status.SUCCESS
        assert log.attempts == 1

    @patch('sales.services.webhook_dispatcher.time.sleep')
    @patch('sales.services.webhook_dispatcher.send_webhook')
    def test_failed_delivery_does_not_raise(self, mock_send, mock_sleep, make_sale, silver_tier):
        sale = make_sale((silver_tier, 1), status=Sale.Status.APPROVED)
        mock_send.return_value = Mock(status_code=500, text='error')

        assert dispatch_sale_webhook(sale.id) == WebhookLog.Status.FAILED

        sale.refresh_from_db()
        assert sale.status == Sale.Status.APPROVED

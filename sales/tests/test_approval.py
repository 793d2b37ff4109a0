"""
Tests for the approval orchestrator: approve, reject and webhook replay.
"""
import threading
from unittest.mock import Mock, patch

import pytest
from django.db import connection

from sales.models import AuditLog, Profile, Sale, WebhookLog
from sales.services import audit, inventory, results
from sales.services.approval import approve_sale, decrement_plan, reject_sale, replay_webhook


@pytest.mark.django_db
class TestApproveSale:

    def test_approval_decrements_and_finalizes(self, admin_profile, silver_tier, make_sale):
        sale = make_sale((silver_tier, 2))

        result = approve_sale(sale.id, admin_profile.id)

        assert result.ok is True
        assert result.code == results.OK
        assert result.sale.status == Sale.Status.APPROVED
        assert result.sale.approved_at is not None
        silver_tier.refresh_from_db()
        assert silver_tier.remaining_qty == 3
        assert AuditLog.objects.filter(action=audit.SALE_APPROVED, entity_id=sale.id, actor=admin_profile).exists()

    def test_multi_tier_sale(self, admin_profile, silver_tier, gold_tier, make_sale):
        sale = make_sale((silver_tier, 2), (gold_tier, 1))

        result = approve_sale(sale.id, admin_profile.id)

        assert result.ok is True
        silver_tier.refresh_from_db()
        gold_tier.refresh_from_db()
        assert silver_tier.remaining_qty == 3
        assert gold_tier.remaining_qty == 99

    def test_second_approval_is_a_no_op(self, admin_profile, silver_tier, make_sale):
        sale = make_sale((silver_tier, 2))
        approve_sale(sale.id, admin_profile.id)

        result = approve_sale(sale.id, admin_profile.id)

        assert result.ok is False
        assert result.code == results.ALREADY_PROCESSED
        assert result.details['status'] == Sale.Status.APPROVED
        silver_tier.refresh_from_db()
        assert silver_tier.remaining_qty == 3

    def test_rejected_sale_cannot_be_approved(self, admin_profile, silver_tier, make_sale):
        sale = make_sale((silver_tier, 2), status=Sale.Status.REJECTED)

        result = approve_sale(sale.id, admin_profile.id)

        assert result.code == results.ALREADY_PROCESSED
        silver_tier.refresh_from_db()
        assert silver_tier.remaining_qty == 5

    def test_shortfall_reports_tier_and_changes_nothing(self, admin_profile, silver_tier, make_sale):
        sale = make_sale((silver_tier, 6))

        result = approve_sale(sale.id, admin_profile.id)

        assert result.code == results.INSUFFICIENT_INVENTORY
        assert result.details == {
            'tier_id': str(silver_tier.id),
            'tier_name': 'Silver',
            'requested': 6,
            'remaining': 5,
        }
        assert 'Silver' in result.message
        sale.refresh_from_db()
        assert sale.status == Sale.Status.PENDING

    def test_shortfall_on_later_tier_rolls_back_earlier_decrements(
        self, admin_profile, silver_tier, gold_tier, make_sale
    ):
        sale = make_sale((silver_tier, 2), (gold_tier, 101))

        result = approve_sale(sale.id, admin_profile.id)

        assert result.code == results.INSUFFICIENT_INVENTORY
        assert result.details['tier_name'] == 'Gold'
        silver_tier.refresh_from_db()
        gold_tier.refresh_from_db()
        assert silver_tier.remaining_qty == 5
        assert gold_tier.remaining_qty == 100
        sale.refresh_from_db()
        assert sale.status == Sale.Status.PENDING
        assert sale.approved_at is None

    def test_missing_tier_reported(self, admin_profile, silver_tier, make_sale):
        sale = make_sale((silver_tier, 1))
        sale.tickets_data = [dict(sale.tickets_data[0], tier_id='0b7e3f4c-1d2a-4e5f-8a9b-0c1d2e3f4a5b')]
        sale.save()

        result = approve_sale(sale.id, admin_profile.id)

        assert result.code == results.TIER_NOT_FOUND

    def test_approvals_served_until_stock_runs_out(self, admin_profile, silver_tier, make_sale):
        sales = [make_sale((silver_tier, 2)) for _ in range(3)]

        codes = [approve_sale(s.id, admin_profile.id).code for s in sales]

        assert codes == [results.OK, results.OK, results.INSUFFICIENT_INVENTORY]
        silver_tier.refresh_from_db()
        assert silver_tier.remaining_qty == 1

    def test_unknown_sale(self, admin_profile):
        assert approve_sale('SALE999999', admin_profile.id).code == results.SALE_NOT_FOUND

    def test_partner_cannot_approve(self, partner, silver_tier, make_sale):
        sale = make_sale((silver_tier, 2))

        result = approve_sale(sale.id, partner.id)

        assert result.code == results.UNAUTHORIZED
        silver_tier.refresh_from_db()
        assert silver_tier.remaining_qty == 5

    def test_inactive_admin_cannot_approve(self, silver_tier, make_sale):
        inactive = Profile.objects.create(name='Former Admin', role=Profile.Role.ADMIN, is_active=False)
        sale = make_sale((silver_tier, 2))

        assert approve_sale(sale.id, inactive.id).code == results.UNAUTHORIZED

    @pytest.mark.parametrize('actor_id', [None, 'not-a-uuid', '0b7e3f4c-1d2a-4e5f-8a9b-0c1d2e3f4a5b'])
    def test_unresolvable_actor(self, actor_id, silver_tier, make_sale):
        sale = make_sale((silver_tier, 1))

        assert approve_sale(sale.id, actor_id).code == results.UNAUTHORIZED

    def test_lost_race_rolls_back_decrements(self, admin_profile, silver_tier, make_sale):
        """Another admin finalizes the sale between our read and our update."""
        stale = make_sale((silver_tier, 2))
        Sale.objects.filter(pk=stale.id).update(status=Sale.Status.REJECTED, rejection_reason='dup')

        with patch('sales.services.approval.sale_store.get_sale', return_value=stale):
            result = approve_sale(stale.id, admin_profile.id)

        assert result.code == results.ALREADY_PROCESSED
        assert result.details['status'] == Sale.Status.REJECTED
        silver_tier.refresh_from_db()
        assert silver_tier.remaining_qty == 5
        assert not AuditLog.objects.filter(action=audit.SALE_APPROVED).exists()

    @patch('sales.services.approval.logger')
    def test_unexpected_error_is_reported_safely(self, mock_logger, admin_profile, silver_tier, make_sale):
        sale = make_sale((silver_tier, 2))

        with patch('sales.services.approval.inventory.conditional_decrement', side_effect=RuntimeError('db gone')):
            result = approve_sale(sale.id, admin_profile.id)

        assert result.code == results.INTERNAL_ERROR
        assert 'db gone' not in result.message
        mock_logger.error.assert_called_once()
        assert mock_logger.error.call_args.kwargs['exc_info'] is True
        sale.refresh_from_db()
        assert sale.status == Sale.Status.PENDING


class TestDecrementPlan:

    def test_sorted_by_tier_id(self):
        plan = decrement_plan([
            {'tier_id': 'f3a1', 'tier_name': 'Gold', 'qty': 1},
            {'tier_id': '0c2e', 'tier_name': 'Silver', 'qty': 2},
        ])

        assert plan == [
            {'tier_id': '0c2e', 'tier_name': 'Silver', 'qty': 2},
            {'tier_id': 'f3a1', 'tier_name': 'Gold', 'qty': 1},
        ]

    def test_repeated_tier_merged(self):
        plan = decrement_plan([
            {'tier_id': '0c2e', 'tier_name': 'Silver', 'qty': 2},
            {'tier_id': 'f3a1', 'tier_name': 'Gold', 'qty': 1},
            {'tier_id': '0c2e', 'tier_name': 'Silver', 'qty': 3},
        ])

        assert [(p['tier_id'], p['qty']) for p in plan] == [('0c2e', 5), ('f3a1', 1)]

    def test_empty(self):
        assert decrement_plan([]) == []


@pytest.mark.django_db
class TestApprovalDecrementOrder:

    def test_tiers_decremented_in_id_order(self, admin_profile, silver_tier, gold_tier, make_sale):
        gold_first = make_sale((gold_tier, 1), (silver_tier, 1))
        silver_first = make_sale((silver_tier, 1), (gold_tier, 1))
        expected = sorted([str(silver_tier.id), str(gold_tier.id)])

        for sale in (gold_first, silver_first):
            with patch('sales.services.approval.inventory.conditional_decrement',
                       wraps=inventory.conditional_decrement) as mock_decrement:
                assert approve_sale(sale.id, admin_profile.id).ok is True

            assert [c.args[0] for c in mock_decrement.call_args_list] == expected

    def test_repeated_tier_decremented_once(self, admin_profile, silver_tier, make_sale):
        sale = make_sale((silver_tier, 2), (silver_tier, 2))

        with patch('sales.services.approval.inventory.conditional_decrement',
                   wraps=inventory.conditional_decrement) as mock_decrement:
            result = approve_sale(sale.id, admin_profile.id)

        assert result.ok is True
        mock_decrement.assert_called_once_with(str(silver_tier.id), 4)
        silver_tier.refresh_from_db()
        assert silver_tier.remaining_qty == 1

    def test_repeated_tier_shortfall_reports_combined_quantity(self, admin_profile, silver_tier, make_sale):
        sale = make_sale((silver_tier, 3), (silver_tier, 3))

        result = approve_sale(sale.id, admin_profile.id)

        assert result.code == results.INSUFFICIENT_INVENTORY
        assert result.details['requested'] == 6
        assert result.details['remaining'] == 5
        silver_tier.refresh_from_db()
        assert silver_tier.remaining_qty == 5


@pytest.mark.skipif(connection.vendor != 'postgresql', reason='needs PostgreSQL row locking')
@pytest.mark.django_db(transaction=True)
@patch('sales.services.approval.dispatch_sale_webhook')
class TestConcurrentApprovals:
    """Approvals racing on separate connections."""

    def run_together(self, *calls):
        barrier = threading.Barrier(len(calls))
        outcomes = [None] * len(calls)

        def worker(index, fn):
            try:
                barrier.wait()
                outcomes[index] = fn()
            finally:
                connection.close()

        threads = [threading.Thread(target=worker, args=(i, fn)) for i, fn in enumerate(calls)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)
        return outcomes

    def test_crossed_tier_order_both_approved(self, mock_task, admin_profile, silver_tier, gold_tier, make_sale):
        first = make_sale((silver_tier, 1), (gold_tier, 1))
        second = make_sale((gold_tier, 1), (silver_tier, 1))

        outcomes = self.run_together(
            lambda: approve_sale(first.id, admin_profile.id),
            lambda: approve_sale(second.id, admin_profile.id),
        )

        assert [o.code for o in outcomes] == [results.OK, results.OK]
        silver_tier.refresh_from_db()
        gold_tier.refresh_from_db()
        assert silver_tier.remaining_qty == 3
        assert gold_tier.remaining_qty == 98

    def test_same_sale_approved_once(self, mock_task, admin_profile, silver_tier, make_sale):
        sale = make_sale((silver_tier, 2))

        outcomes = self.run_together(
            lambda: approve_sale(sale.id, admin_profile.id),
            lambda: approve_sale(sale.id, admin_profile.id),
        )

        assert sorted(o.code for o in outcomes) == sorted([results.OK, results.ALREADY_PROCESSED])
        silver_tier.refresh_from_db()
        assert silver_tier.remaining_qty == 3
        assert mock_task.delay.call_count == 1

    def test_last_tickets_go_to_one_sale(self, mock_task, admin_profile, silver_tier, make_sale):
        sales = [make_sale((silver_tier, 3)), make_sale((silver_tier, 3))]

        outcomes = self.run_together(*[
            (lambda sale_id=sale.id: approve_sale(sale_id, admin_profile.id)) for sale in sales
        ])

        assert sorted(o.code for o in outcomes) == sorted([results.OK, results.INSUFFICIENT_INVENTORY])
        silver_tier.refresh_from_db()
        assert silver_tier.remaining_qty == 2


@pytest.mark.django_db
class TestApprovalWebhookEnqueue:

    @patch('sales.services.approval.dispatch_sale_webhook')
    def test_webhook_enqueued_after_commit(
        self, mock_task, admin_profile, silver_tier, make_sale, django_capture_on_commit_callbacks
    ):
        sale = make_sale((silver_tier, 2))

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            result = approve_sale(sale.id, admin_profile.id)

        assert result.ok is True
        assert len(callbacks) == 1
        mock_task.delay.assert_called_once_with(sale.id)

    @patch('sales.services.approval.dispatch_sale_webhook')
    def test_nothing_enqueued_when_approval_fails(
        self, mock_task, admin_profile, silver_tier, make_sale, django_capture_on_commit_callbacks
    ):
        sale = make_sale((silver_tier, 9))

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            approve_sale(sale.id, admin_profile.id)

        assert callbacks == []
        mock_task.delay.assert_not_called()

    @patch('sales.services.approval.logger')
    @patch('sales.services.approval.dispatch_sale_webhook')
    def test_enqueue_failure_does_not_undo_approval(
        self, mock_task, mock_logger, admin_profile, silver_tier, make_sale, django_capture_on_commit_callbacks
    ):
        mock_task.delay.side_effect = ConnectionError('broker unreachable')
        sale = make_sale((silver_tier, 2))

        with django_capture_on_commit_callbacks(execute=True):
            result = approve_sale(sale.id, admin_profile.id)

        assert result.ok is True
        sale.refresh_from_db()
        assert sale.status == Sale.Status.APPROVED
        assert 'failed to enqueue webhook' in mock_logger.error.call_args.args[0]

    @patch('sales.services.webhook_dispatcher.time.sleep')
    @patch('sales.services.webhook_dispatcher.send_webhook')
    def test_end_to_end_approval_delivers_webhook(
        self, mock_send, mock_sleep, admin_profile, silver_tier, make_sale, django_capture_on_commit_callbacks
    ):
        """Tier at 5, sale for 2: tier drops to 3, sale approved, webhook log reaches success."""
        mock_send.return_value = Mock(status_code=200, text='{"received": true}')
        sale = make_sale((silver_tier, 2))

        with django_capture_on_commit_callbacks(execute=True):
            result = approve_sale(sale.id, admin_profile.id)

        assert result.ok is True
        silver_tier.refresh_from_db()
        assert silver_tier.remaining_qty == 3
        sale.refresh_from_db()
        assert sale.status == Sale.Status.APPROVED
        assert sale.approved_at is not None

        log = WebhookLog.objects.get(sale=sale)
        assert log.status == WebhookLog.Status.SUCCESS
        assert log.attempts == 1
        assert log.response_status == 200
        mock_sleep.assert_not_called()


@pytest.mark.django_db
class TestRejectSale:

    def test_reject_records_reason(self, admin_profile, silver_tier, make_sale, django_capture_on_commit_callbacks):
        sale = make_sale((silver_tier, 2))

        with django_capture_on_commit_callbacks() as callbacks:
            result = reject_sale(sale.id, admin_profile.id, '  Screenshot does not show payment  ')

        assert result.ok is True
        assert result.sale.status == Sale.Status.REJECTED
        assert result.sale.rejection_reason == 'Screenshot does not show payment'
        assert callbacks == []
        silver_tier.refresh_from_db()
        assert silver_tier.remaining_qty == 5
        assert AuditLog.objects.filter(action=audit.SALE_REJECTED, entity_id=sale.id).exists()

    @pytest.mark.parametrize('reason', [None, '', '   '])
    def test_reason_required(self, reason, admin_profile, silver_tier, make_sale):
        sale = make_sale((silver_tier, 2))

        result = reject_sale(sale.id, admin_profile.id, reason)

        assert result.code == results.REASON_REQUIRED
        assert result.details['field'] == 'reason'
        sale.refresh_from_db()
        assert sale.status == Sale.Status.PENDING

    def test_approved_sale_cannot_be_rejected(self, admin_profile, silver_tier, make_sale):
        sale = make_sale((silver_tier, 2))
        approve_sale(sale.id, admin_profile.id)

        result = reject_sale(sale.id, admin_profile.id, 'Changed my mind')

        assert result.code == results.ALREADY_PROCESSED
        sale.refresh_from_db()
        assert sale.status == Sale.Status.APPROVED
        assert sale.rejection_reason is None

    def test_reject_losing_race_to_approval(self, admin_profile, silver_tier, make_sale):
        stale = make_sale((silver_tier, 2))
        approve_sale(stale.id, admin_profile.id)

        with patch('sales.services.approval.sale_store.get_sale', return_value=stale):
            result = reject_sale(stale.id, admin_profile.id, 'Duplicate')

        assert result.code == results.ALREADY_PROCESSED
        assert result.details['status'] == Sale.Status.APPROVED
        silver_tier.refresh_from_db()
        assert silver_tier.remaining_qty == 3

    def test_partner_cannot_reject(self, partner, silver_tier, make_sale):
        sale = make_sale((silver_tier, 2))

        assert reject_sale(sale.id, partner.id, 'nope').code == results.UNAUTHORIZED


@pytest.mark.django_db
class TestReplayWebhook:

    @patch('sales.services.approval.dispatch_sale_webhook')
    def test_replay_for_approved_sale(
        self, mock_task, admin_profile, silver_tier, make_sale, django_capture_on_commit_callbacks
    ):
        sale = make_sale((silver_tier, 1), status=Sale.Status.APPROVED)

        with django_capture_on_commit_callbacks(execute=True):
            result = replay_webhook(sale.id, admin_profile.id)

        assert result.ok is True
        mock_task.delay.assert_called_once_with(sale.id)
        assert AuditLog.objects.filter(action=audit.WEBHOOK_REPLAYED, entity_id=sale.id).exists()

    @patch('sales.services.approval.dispatch_sale_webhook')
    def test_pending_sale_not_replayable(self, mock_task, admin_profile, silver_tier, make_sale):
        sale = make_sale((silver_tier, 1))

        result = replay_webhook(sale.id, admin_profile.id)

        assert result.code == results.NOT_REPLAYABLE
        mock_task.delay.assert_not_called()

    def test_partner_cannot_replay(self, partner, silver_tier, make_sale):
        sale = make_sale((silver_tier, 1), status=Sale.Status.APPROVED)

        assert replay_webhook(sale.id, partner.id).code == results.UNAUTHORIZED

    def test_unknown_sale(self, admin_profile):
        assert replay_webhook('SALE999999', admin_profile.id).code == results.SALE_NOT_FOUND

"""
API views for the ticket sales portal.
"""
import logging
import uuid
from rest_framework.exceptions import ParseError
from rest_framework.permissions import AllowAny
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from django.views.decorators.csrf import csrf_exempt
from django.utils.decorators import method_decorator

from sales.models import Sale, TicketTier
from sales.exceptions import InventoryError
from sales.permissions import IsAdminActor, IsPartnerActor
from sales.serializers import (
    SaleSerializer,
    TicketTierSerializer,
    TicketTierUpdateSerializer,
    WebhookLogSerializer,
)
from sales.services import approval, inventory, results, sale_store, submission

logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    results.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    results.SALE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    results.PARTNER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    results.PARTNER_INACTIVE: status.HTTP_403_FORBIDDEN,
    results.ALREADY_PROCESSED: status.HTTP_409_CONFLICT,
    results.INSUFFICIENT_INVENTORY: status.HTTP_409_CONFLICT,
    results.NOT_REPLAYABLE: status.HTTP_409_CONFLICT,
    results.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def http_status_for(code: str) -> int:
    if code in results.VALIDATION_CODES:
        return status.HTTP_400_BAD_REQUEST
    return STATUS_BY_CODE.get(code, status.HTTP_400_BAD_REQUEST)


def error_response(code: str, message: str, correlation_id: str, **extra) -> Response:
    body = {'error': message, 'code': code, 'correlation_id': correlation_id}
    body.update({k: v for k, v in extra.items() if v is not None})
    return Response(body, status=http_status_for(code))


def server_error(correlation_id: str) -> Response:
    return Response(
        {
            'error': 'Internal server error',
            'code': results.INTERNAL_ERROR,
            'correlation_id': correlation_id
        },
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )


def approval_response(result: results.ApprovalResult, correlation_id: str) -> Response:
    if not result.ok:
        return error_response(
            result.code, result.message, correlation_id,
            details=result.details or None,
        )
    return Response(
        {
            'status': result.sale.status,
            'message': result.message,
            'sale': SaleSerializer(result.sale).data,
            'correlation_id': correlation_id
        },
        status=status.HTTP_200_OK
    )


def submission_fields(data) -> dict:
    return {
        'buyer_name': data.get('buyer_name'),
        'buyer_mobile': data.get('buyer_mobile'),
        'reference_last4': data.get('transaction_id_last4'),
        'screenshot_path': data.get('screenshot_path'),
        'line_items': data.get('tickets_data'),
        'amount': data.get('amount'),
    }


@method_decorator(csrf_exempt, name='dispatch')
class PublicSaleSubmissionView(APIView):
    """
    Public referral form submission.

    POST /api/public/sales/
    - No credentials; the partner is resolved from ``partner_code``
    - Returns 201 with the new sale id
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        correlation_id = str(uuid.uuid4())

        try:
            payload = request.data

            if not payload or not hasattr(payload, 'get'):
                logger.warning(f"Empty submission received, correlation_id={correlation_id}")
                return error_response(
                    results.MISSING_REQUIRED_FIELD, 'Empty payload', correlation_id
                )

            result = submission.submit_public_sale(
                partner_code=payload.get('partner_code'),
                **submission_fields(payload)
            )

            if not result.ok:
                logger.info(
                    f"Public submission refused: {result.code}, "
                    f"correlation_id={correlation_id}"
                )
                return error_response(result.code, result.message, correlation_id, field=result.field)

            logger.info(f"Public sale {result.sale_id} accepted, correlation_id={correlation_id}")
            return Response(
                {
                    'status': 'submitted',
                    'sale_id': result.sale_id,
                    'message': 'Your ticket purchase has been submitted! The partner will be notified.',
                    'correlation_id': correlation_id
                },
                status=status.HTTP_201_CREATED
            )

        except ParseError as e:
            logger.warning(
                f"Malformed JSON payload: {e}, "
                f"correlation_id={correlation_id}"
            )
            return error_response(results.MISSING_REQUIRED_FIELD, 'Malformed JSON', correlation_id)
        except Exception as e:
            logger.error(
                f"Error processing public submission: {e}, "
                f"correlation_id={correlation_id}",
                exc_info=True
            )
            return server_error(correlation_id)


class TicketTierListView(APIView):
    """GET /api/tiers/ - tiers with remaining stock, cheapest first."""
    permission_classes = [AllowAny]

    def get(self, request):
        return Response(TicketTierSerializer(inventory.list_tiers(), many=True).data)


class TicketTierDetailView(APIView):
    """PATCH /api/tiers/<id>/ - admin edit of price and quantities."""
    permission_classes = [IsAdminActor]

    def patch(self, request, tier_id):
        correlation_id = str(uuid.uuid4())
        serializer = TicketTierUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {'error': serializer.errors, 'correlation_id': correlation_id},
                status=status.HTTP_400_BAD_REQUEST
            )

        try:
            tier = inventory.update_tier(tier_id, actor=request.user, **serializer.validated_data)
        except TicketTier.DoesNotExist:
            return Response(
                {'error': 'Ticket tier not found', 'correlation_id': correlation_id},
                status=status.HTTP_404_NOT_FOUND
            )
        except InventoryError as e:
            return Response(
                {'error': str(e), 'correlation_id': correlation_id},
                status=status.HTTP_400_BAD_REQUEST
            )
        except Exception as e:
            logger.error(f"Error updating tier {tier_id}: {e}, correlation_id={correlation_id}", exc_info=True)
            return server_error(correlation_id)

        return Response(TicketTierSerializer(tier).data)


class AdminSaleListView(APIView):
    """GET /api/sales/?status=pending - all sales for review."""
    permission_classes = [IsAdminActor]

    def get(self, request):
        sale_status = request.query_params.get('status')
        if sale_status in (None, '', 'all'):
            sale_status = None
        elif sale_status not in Sale.Status.values:
            return Response({'error': f"Unknown status '{sale_status}'"}, status=status.HTTP_400_BAD_REQUEST)
        return Response(SaleSerializer(sale_store.list_sales(sale_status), many=True).data)


class ApproveSaleView(APIView):
    """POST /api/sales/<id>/approve/"""
    permission_classes = [IsAdminActor]

    def post(self, request, sale_id):
        correlation_id = str(uuid.uuid4())
        result = approval.approve_sale(sale_id, request.user.id)
        logger.info(f"Approve {sale_id}: {result.code}, correlation_id={correlation_id}")
        return approval_response(result, correlation_id)


class RejectSaleView(APIView):
    """POST /api/sales/<id>/reject/ with {"reason": "..."}"""
    permission_classes = [IsAdminActor]

    def post(self, request, sale_id):
        correlation_id = str(uuid.uuid4())
        reason = request.data.get('reason') if hasattr(request.data, 'get') else None
        result = approval.reject_sale(sale_id, request.user.id, reason)
        logger.info(f"Reject {sale_id}: {result.code}, correlation_id={correlation_id}")
        return approval_response(result, correlation_id)


class ReplayWebhookView(APIView):
    """POST /api/sales/<id>/webhook/replay/"""
    permission_classes = [IsAdminActor]

    def post(self, request, sale_id):
        correlation_id = str(uuid.uuid4())
        result = approval.replay_webhook(sale_id, request.user.id)
        if not result.ok:
            return approval_response(result, correlation_id)
        return Response(
            {
                'status': 'queued',
                'sale_id': result.sale.id,
                'webhook_logs': WebhookLogSerializer(result.sale.webhook_logs.all(), many=True).data,
                'correlation_id': correlation_id
            },
            status=status.HTTP_202_ACCEPTED
        )


class PartnerSaleListView(APIView):
    """
    GET  /api/partner/sales/ - the partner's own sales, newest first
    POST /api/partner/sales/ - self-service submission
    """
    permission_classes = [IsPartnerActor]

    def get(self, request):
        return Response(SaleSerializer(sale_store.list_sales_for_partner(request.user.id), many=True).data)

    def post(self, request):
        correlation_id = str(uuid.uuid4())
        if not hasattr(request.data, 'get'):
            return error_response(results.MISSING_REQUIRED_FIELD, 'Empty payload', correlation_id)

        result = submission.submit_partner_sale(request.user.id, **submission_fields(request.data))
        if not result.ok:
            return error_response(result.code, result.message, correlation_id, field=result.field)
        return Response(
            {'status': 'submitted', 'sale_id': result.sale_id, 'correlation_id': correlation_id},
            status=status.HTTP_201_CREATED
        )


class PartnerSaleDetailView(APIView):
    """PATCH /api/partner/sales/<id>/ - edit while still pending."""
    permission_classes = [IsPartnerActor]

    def patch(self, request, sale_id):
        correlation_id = str(uuid.uuid4())
        if not hasattr(request.data, 'items') or not request.data:
            return error_response(results.MISSING_REQUIRED_FIELD, 'Empty payload', correlation_id)

        result = submission.edit_pending_sale(sale_id, request.user.id, dict(request.data.items()))
        return approval_response(result, correlation_id)

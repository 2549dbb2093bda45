"""Partner payment routes."""

from flask import request
from flask_login import login_required, current_user

from backoffice.finance import finance_bp
from backoffice.finance.services import PartnerPaymentService
from backoffice.core.auth.models import PAYMENT_ROLES
from backoffice.core.utils.api_helpers import (
    get_json_or_error, get_pagination_args, handle_api_errors, role_required, success_response,
)

_payment_service = PartnerPaymentService()


@finance_bp.route('/api/partner-payments', methods=['GET'])
@login_required
@role_required(*PAYMENT_ROLES)
@handle_api_errors
def api_list_partner_payments():
    filters = {
        'partner_id': request.args.get('partner_id', type=int),
        'status': request.args.get('status'),
        'network': request.args.get('network'),
        'currency': request.args.get('currency'),
        'date_from': request.args.get('date_from'),
        'date_to': request.args.get('date_to'),
        'search': request.args.get('search'),
    }
    page, limit = get_pagination_args()
    payments, pagination = _payment_service.payment_repo.list_payments(
        filters, page, limit,
        sort_by=request.args.get('sort_by', 'created_at'),
        order=request.args.get('order', 'desc'),
    )
    return success_response(payments, pagination=pagination)


@finance_bp.route('/api/partner-payments/stats', methods=['GET'])
@login_required
@role_required(*PAYMENT_ROLES)
@handle_api_errors
def api_partner_payment_stats():
    return success_response(_payment_service.payment_repo.get_stats())


@finance_bp.route('/api/partner-payments/stats/by-partner', methods=['GET'])
@login_required
@role_required(*PAYMENT_ROLES)
@handle_api_errors
def api_partner_payment_stats_by_partner():
    return success_response(_payment_service.payment_repo.get_stats_by_partner())


@finance_bp.route('/api/partner-payments/<int:payment_id>', methods=['GET'])
@login_required
@role_required(*PAYMENT_ROLES)
@handle_api_errors
def api_get_partner_payment(payment_id):
    return success_response(_payment_service.get(payment_id))


@finance_bp.route('/api/partner-payments', methods=['POST'])
@login_required
@role_required(*PAYMENT_ROLES)
@handle_api_errors
def api_create_partner_payment():
    data, error = get_json_or_error()
    if error:
        return error
    payment = _payment_service.create(data, current_user.id)
    return success_response(payment, 201, message='Payment created')


@finance_bp.route('/api/partner-payments/<int:payment_id>', methods=['PUT'])
@login_required
@role_required(*PAYMENT_ROLES)
@handle_api_errors
def api_update_partner_payment(payment_id):
    data, error = get_json_or_error()
    if error:
        return error
    return success_response(_payment_service.update(payment_id, data), message='Payment updated')


@finance_bp.route('/api/partner-payments/<int:payment_id>/status', methods=['PATCH'])
@login_required
@role_required(*PAYMENT_ROLES)
@handle_api_errors
def api_partner_payment_status(payment_id):
    data, error = get_json_or_error()
    if error:
        return error
    payment = _payment_service.change_status(payment_id, data, current_user.id)
    return success_response(payment, message=f"Payment status changed to {payment['status']}")


@finance_bp.route('/api/partner-payments/<int:payment_id>', methods=['DELETE'])
@login_required
@role_required(*PAYMENT_ROLES)
@handle_api_errors
def api_delete_partner_payment(payment_id):
    _payment_service.delete(payment_id)
    return success_response(message='Payment deleted')

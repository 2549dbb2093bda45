"""Brand CRUD routes."""

import logging
from flask_login import login_required, current_user

from backoffice.catalog import catalog_bp
from backoffice.catalog.repositories import BrandRepository
from backoffice.core.auth.models import CATALOG_EDITORS
from backoffice.core.utils.api_helpers import (
    admin_required, error_response, get_bool_arg, get_json_or_error, handle_api_errors,
    role_required, success_response,
)
from backoffice.core.utils.validation import FieldValidator

logger = logging.getLogger('backoffice.catalog.routes.brands')

_brand_repo = BrandRepository()


def _validate(data, partial=False):
    v = FieldValidator(data, partial=partial)
    v.string('name', required=True, min_len=2, max_len=255)
    v.string('description', max_len=2000)
    v.string('website', max_len=255)
    v.boolean('is_active')
    v.raise_if_errors()
    return v.cleaned


@catalog_bp.route('/api/brands', methods=['GET'])
@login_required
@handle_api_errors
def api_list_brands():
    """All brands; ?only_active=true hides disabled ones."""
    return success_response(_brand_repo.get_all(only_active=bool(get_bool_arg('only_active'))))


@catalog_bp.route('/api/brands/<int:brand_id>', methods=['GET'])
@login_required
@handle_api_errors
def api_get_brand(brand_id):
    brand = _brand_repo.get_by_id(brand_id)
    if not brand:
        return error_response('Brand not found', 404)
    return success_response(brand)


@catalog_bp.route('/api/brands', methods=['POST'])
@login_required
@role_required(*CATALOG_EDITORS)
@handle_api_errors
def api_create_brand():
    data, error = get_json_or_error()
    if error:
        return error

    fields = _validate(data)
    if _brand_repo.name_exists(fields['name']):
        return error_response('Brand with this name already exists', 409)

    brand = _brand_repo.create(created_by=current_user.id, **fields)
    logger.info(f'Brand {brand["id"]} created by {current_user.id}')
    return success_response(brand, 201, message='Brand created')


@catalog_bp.route('/api/brands/<int:brand_id>', methods=['PUT'])
@login_required
@role_required(*CATALOG_EDITORS)
@handle_api_errors
def api_update_brand(brand_id):
    data, error = get_json_or_error()
    if error:
        return error

    if not _brand_repo.get_by_id(brand_id):
        return error_response('Brand not found', 404)

    fields = _validate(data, partial=True)
    if fields.get('name') and _brand_repo.name_exists(fields['name'], exclude_id=brand_id):
        return error_response('Brand with this name already exists', 409)

    return success_response(_brand_repo.update(brand_id, **fields), message='Brand updated')


@catalog_bp.route('/api/brands/<int:brand_id>/status', methods=['PATCH'])
@login_required
@role_required(*CATALOG_EDITORS)
@handle_api_errors
def api_brand_status(brand_id):
    data, error = get_json_or_error()
    if error:
        return error

    v = FieldValidator(data)
    is_active = v.boolean('is_active', required=True)
    v.raise_if_errors()

    brand = _brand_repo.set_status(brand_id, is_active)
    if not brand:
        return error_response('Brand not found', 404)
    return success_response(brand, message='Brand status updated')


@catalog_bp.route('/api/brands/<int:brand_id>', methods=['DELETE'])
@login_required
@admin_required
@handle_api_errors
def api_delete_brand(brand_id):
    if not _brand_repo.get_by_id(brand_id):
        return error_response('Brand not found', 404)
    flows = _brand_repo.count_flows(brand_id)
    if flows:
        return error_response(f'Brand is used by {flows} flows and cannot be deleted', 400)
    _brand_repo.delete(brand_id)
    return success_response(message='Brand deleted')

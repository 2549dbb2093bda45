"""Geo CRUD routes."""

from flask import request
from flask_login import login_required, current_user

from backoffice.catalog import catalog_bp
from backoffice.catalog.repositories import GeoRepository
from backoffice.core.auth.models import CATALOG_EDITORS
from backoffice.core.utils.api_helpers import (
    admin_required, error_response, get_bool_arg, get_json_or_error, handle_api_errors,
    role_required, success_response,
)
from backoffice.core.utils.validation import FieldValidator

_geo_repo = GeoRepository()


def _validate(data, partial=False):
    v = FieldValidator(data, partial=partial)
    v.string('name', required=True, min_len=2, max_len=100)
    v.string('country_code', min_len=2, max_len=3, pattern=r'[A-Z]{2,3}',
             pattern_message='country_code must be 2 or 3 letters', upper=True)
    v.string('region', max_len=100)
    v.boolean('is_active')
    v.raise_if_errors()
    return v.cleaned


@catalog_bp.route('/api/geos', methods=['GET'])
@login_required
@handle_api_errors
def api_list_geos():
    return success_response(_geo_repo.get_all(
        only_active=bool(get_bool_arg('only_active')), region=request.args.get('region')))


@catalog_bp.route('/api/geos/<int:geo_id>', methods=['GET'])
@login_required
@handle_api_errors
def api_get_geo(geo_id):
    geo = _geo_repo.get_by_id(geo_id)
    if not geo:
        return error_response('Geo not found', 404)
    return success_response(geo)


@catalog_bp.route('/api/geos', methods=['POST'])
@login_required
@role_required(*CATALOG_EDITORS)
@handle_api_errors
def api_create_geo():
    data, error = get_json_or_error()
    if error:
        return error

    fields = _validate(data)
    if _geo_repo.name_exists(fields['name']):
        return error_response('Geo with this name already exists', 409)

    geo = _geo_repo.create(created_by=current_user.id, **fields)
    return success_response(geo, 201, message='Geo created')


@catalog_bp.route('/api/geos/<int:geo_id>', methods=['PUT'])
@login_required
@role_required(*CATALOG_EDITORS)
@handle_api_errors
def api_update_geo(geo_id):
    data, error = get_json_or_error()
    if error:
        return error

    if not _geo_repo.get_by_id(geo_id):
        return error_response('Geo not found', 404)

    fields = _validate(data, partial=True)
    if fields.get('name') and _geo_repo.name_exists(fields['name'], exclude_id=geo_id):
        return error_response('Geo with this name already exists', 409)

    return success_response(_geo_repo.update(geo_id, **fields), message='Geo updated')


@catalog_bp.route('/api/geos/<int:geo_id>/status', methods=['PATCH'])
@login_required
@role_required(*CATALOG_EDITORS)
@handle_api_errors
def api_geo_status(geo_id):
    data, error = get_json_or_error()
    if error:
        return error

    v = FieldValidator(data)
    is_active = v.boolean('is_active', required=True)
    v.raise_if_errors()

    geo = _geo_repo.set_status(geo_id, is_active)
    if not geo:
        return error_response('Geo not found', 404)
    return success_response(geo, message='Geo status updated')


@catalog_bp.route('/api/geos/<int:geo_id>', methods=['DELETE'])
@login_required
@admin_required
@handle_api_errors
def api_delete_geo(geo_id):
    if not _geo_repo.get_by_id(geo_id):
        return error_response('Geo not found', 404)
    flows = _geo_repo.count_flows(geo_id)
    if flows:
        return error_response(f'Geo is used by {flows} flows and cannot be deleted', 400)
    _geo_repo.delete(geo_id)
    return success_response(message='Geo deleted')

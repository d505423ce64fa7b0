from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from marketplace import storage
from marketplace.extensions import db
from marketplace.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
)
from marketplace.middleware import role_required
from marketplace.services.audit_service import log_audit
from marketplace.utils import clean_text, json_body
import logging
import re

logger = logging.getLogger(__name__)

bp = Blueprint('categories', __name__)


def _slugify(text):
    slug = re.sub(r'[^a-z0-9]+', '-', text.lower()).strip('-')
    return slug


def _get_category_or_404(category_id):
    category = storage.get_category(category_id)
    if not category:
        raise NotFoundError('Category not found')
    return category


@bp.route('/api/categories', methods=['GET'])
def list_categories():
    counts = storage.count_listings_by_category()
    result = []
    for category in storage.get_all_categories():
        payload = category.to_dict()
        payload['listingCount'] = counts.get(category.id, 0)
        result.append(payload)
    return jsonify(result)


@bp.route('/api/categories/<int:category_id>', methods=['GET'])
def get_category(category_id):
    category = _get_category_or_404(category_id)
    payload = category.to_dict()
    payload['listingCount'] = storage.count_listings_by_category().get(
        category.id, 0)
    return jsonify(payload)


@bp.route('/api/categories', methods=['POST'])
@login_required
@role_required('ADMIN')
def create_category():
    data = json_body()
    name = clean_text(data.get('name'))
    if not name:
        raise ValidationError('Category name is required')
    slug = _slugify(clean_text(data.get('slug')) or name)
    if not slug:
        raise ValidationError('Category slug is invalid')
    if storage.get_category_by_slug(slug):
        raise ConflictError('Category slug already exists')

    category = storage.create_category(
        name=name,
        slug=slug,
        description=clean_text(data.get('description')) or None,
    )
    db.session.commit()

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='CATEGORY_CREATE',
        target_type='CATEGORY',
        target_id=category.id,
        payload={'name': name, 'slug': slug}
    )
    return jsonify(category.to_dict()), 201


@bp.route('/api/categories/<int:category_id>', methods=['PATCH', 'PUT'])
@login_required
@role_required('ADMIN')
def update_category(category_id):
    category = _get_category_or_404(category_id)
    data = json_body()
    fields = {}

    if 'name' in data:
        name = clean_text(data.get('name'))
        if not name:
            raise ValidationError('Category name cannot be empty')
        fields['name'] = name
    if 'slug' in data:
        slug = _slugify(clean_text(data.get('slug')))
        if not slug:
            raise ValidationError('Category slug is invalid')
        existing = storage.get_category_by_slug(slug)
        if existing and existing.id != category.id:
            raise ConflictError('Category slug already exists')
        fields['slug'] = slug
    if 'description' in data:
        fields['description'] = clean_text(data.get('description')) or None

    storage.update_category(category, **fields)
    db.session.commit()

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='CATEGORY_UPDATE',
        target_type='CATEGORY',
        target_id=category.id,
        payload={'fields': sorted(fields)}
    )
    return jsonify(category.to_dict())


@bp.route('/api/categories/<int:category_id>', methods=['DELETE'])
@login_required
@role_required('ADMIN')
def delete_category(category_id):
    category = _get_category_or_404(category_id)
    if storage.category_in_use(category.id):
        raise ConflictError('Category is still used by listings')

    storage.delete_category(category)
    db.session.commit()

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='CATEGORY_DELETE',
        target_type='CATEGORY',
        target_id=category_id
    )
    return '', 204

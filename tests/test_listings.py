from conftest import _actor, fetch
from marketplace.models import (
    Listing,
    ListingStatus,
    OrderStatus,
    UserRole,
    VendorVerificationStatus,
)


def _new_listing(client, vendor_id, **overrides):
    payload = {
        'title': 'Design kit',
        'description': 'Icons and templates',
        'price': 19.5,
        'type': 'DIGITAL',
        'tags': ['design', 'icons'],
    }
    payload.update(overrides)
    return client.post(f'/api/vendors/{vendor_id}/listings', json=payload)


def test_search_filters(client, factory, vendor):
    category = factory.category(name='Software', slug='software')
    factory.listing(vendor.vendor_id, price='5.00', title='Cheap tool',
                    category_id=category, tags=['cli'])
    factory.listing(vendor.vendor_id, price='80.00', title='Pro suite',
                    tags=['office'])
    factory.listing(vendor.vendor_id, price='20.00', title='Hidden',
                    status=ListingStatus.PENDING)

    titles = {row['title'] for row in client.get('/api/listings').get_json()}
    assert titles == {'Cheap tool', 'Pro suite'}

    def search(query):
        rows = client.get(f'/api/listings?{query}').get_json()
        return [row['title'] for row in rows]

    assert search('category=software') == ['Cheap tool']
    assert search(f'categoryId={category}') == ['Cheap tool']
    assert search('minPrice=10') == ['Pro suite']
    assert search('maxPrice=10') == ['Cheap tool']
    assert search('search=suite') == ['Pro suite']
    assert search('tags=office,nothing') == ['Pro suite']
    assert len(search('limit=1')) == 1


def test_listing_includes_vendor_summary(client, vendor, listing_id):
    body = client.get(f'/api/listings/{listing_id}').get_json()
    assert body['vendor']['id'] == vendor.vendor_id
    assert body['isSaved'] is False


def test_featured_defaults_to_four(client, factory, vendor):
    for _ in range(6):
        factory.listing(vendor.vendor_id)
    assert len(client.get('/api/listings/featured').get_json()) == 4


def test_unpublished_listing_is_hidden(client, buyer, admin, vendor,
                                       factory):
    draft = factory.listing(vendor.vendor_id, status=ListingStatus.PENDING)

    assert client.get(f'/api/listings/{draft}').status_code == 404
    assert buyer.client.get(f'/api/listings/{draft}').status_code == 404
    assert vendor.client.get(f'/api/listings/{draft}').status_code == 200
    assert admin.client.get(f'/api/listings/{draft}').status_code == 200


def test_create_listing_goes_to_review(app, vendor, admin):
    response = _new_listing(vendor.client, vendor.vendor_id)
    assert response.status_code == 201
    body = response.get_json()
    assert body['status'] == 'PENDING'

    pending = admin.client.get('/api/admin/listings/pending').get_json()
    assert [row['id'] for row in pending] == [body['id']]

    approved = admin.client.post(f'/api/listings/{body["id"]}/approve')
    assert approved.status_code == 200
    assert fetch(app, Listing, body['id']).status == ListingStatus.ACTIVE


def test_unapproved_vendor_cannot_create(app, factory):
    newcomer = _actor(
        app, factory, 'newcomer@example.com', UserRole.VENDOR,
        vendor_status=VendorVerificationStatus.PENDING)
    response = _new_listing(newcomer.client, newcomer.vendor_id)
    assert response.status_code == 403


def test_vendor_cannot_edit_someone_elses_shop(app, factory, vendor):
    other = _actor(
        app, factory, 'rival@example.com', UserRole.VENDOR,
        vendor_status=VendorVerificationStatus.APPROVED)
    response = _new_listing(other.client, vendor.vendor_id)
    assert response.status_code == 403


def test_significant_edit_sends_active_listing_back(app, vendor,
                                                    listing_id):
    url = f'/api/vendors/{vendor.vendor_id}/listings/{listing_id}'

    response = vendor.client.put(url, json={'tags': ['new']})
    assert response.status_code == 200
    assert fetch(app, Listing, listing_id).status == ListingStatus.ACTIVE

    response = vendor.client.put(url, json={'price': 59.99})
    assert response.get_json()['status'] == 'PENDING'


def test_editing_rejected_listing_resubmits(app, admin, vendor, factory):
    listing = factory.listing(vendor.vendor_id, status=ListingStatus.PENDING)

    assert admin.client.post(
        f'/api/listings/{listing}/reject', json={}).status_code == 400
    assert admin.client.post(
        f'/api/listings/{listing}/reject',
        json={'reason': 'Blurry images'}).status_code == 200
    assert fetch(app, Listing, listing).rejection_reason == 'Blurry images'

    response = vendor.client.put(
        f'/api/vendors/{vendor.vendor_id}/listings/{listing}',
        json={'images': ['https://cdn.example.com/a.png']})
    body = response.get_json()
    assert body['status'] == 'PENDING'
    assert body['rejectionReason'] is None


def test_delete_listing_with_orders_deactivates(app, vendor, buyer, factory,
                                                listing_id):
    unsold = factory.listing(vendor.vendor_id)
    factory.order(buyer.user_id, [(listing_id, 1, '49.99')],
                  status=OrderStatus.PAID)
    base = f'/api/vendors/{vendor.vendor_id}/listings'

    assert vendor.client.delete(f'{base}/{unsold}').status_code == 204
    assert fetch(app, Listing, unsold) is None

    assert vendor.client.delete(f'{base}/{listing_id}').status_code == 204
    assert fetch(app, Listing, listing_id).status == ListingStatus.INACTIVE


def test_all_listings_is_admin_only(admin, buyer, listing_id):
    assert buyer.client.get('/api/listings/all').status_code == 403
    assert len(admin.client.get('/api/listings/all').get_json()) == 1

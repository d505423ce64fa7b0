def test_public_list_includes_active_counts(client, factory, vendor):
    software = factory.category(name='Software', slug='software')
    factory.category(name='Courses', slug='courses')
    factory.listing(vendor.vendor_id, category_id=software)
    factory.listing(vendor.vendor_id, category_id=software)

    rows = client.get('/api/categories').get_json()
    counts = {row['slug']: row['listingCount'] for row in rows}

    assert counts == {'software': 2, 'courses': 0}


def test_admin_manages_categories(admin):
    response = admin.client.post(
        '/api/categories', json={'name': 'Video Tools'})
    assert response.status_code == 201
    category = response.get_json()
    assert category['slug'] == 'video-tools'

    duplicate = admin.client.post(
        '/api/categories', json={'name': 'Other', 'slug': 'video-tools'})
    assert duplicate.status_code == 400

    renamed = admin.client.patch(
        f'/api/categories/{category["id"]}', json={'name': 'Video'})
    assert renamed.get_json()['name'] == 'Video'

    assert admin.client.delete(
        f'/api/categories/{category["id"]}').status_code == 204


def test_category_in_use_cannot_be_deleted(admin, factory, vendor):
    category = factory.category(name='Music', slug='music')
    factory.listing(vendor.vendor_id, category_id=category)

    response = admin.client.delete(f'/api/categories/{category}')
    assert response.status_code == 400


def test_category_writes_are_admin_only(buyer, client):
    assert buyer.client.post(
        '/api/categories', json={'name': 'X'}).status_code == 403
    assert client.post(
        '/api/categories', json={'name': 'X'}).status_code == 401

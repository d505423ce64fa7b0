def test_save_list_and_remove(buyer, listing_id):
    response = buyer.client.post(
        '/api/users/favorites', json={'listingId': listing_id})
    assert response.status_code == 201

    status = buyer.client.get(f'/api/users/favorites/{listing_id}')
    assert status.get_json() == {'saved': True}

    saved = buyer.client.get('/api/users/favorites').get_json()
    assert [s['id'] for s in saved] == [listing_id]
    assert saved[0]['isSaved'] is True

    assert buyer.client.delete(
        f'/api/users/favorites/{listing_id}').status_code == 204
    status = buyer.client.get(f'/api/users/favorites/{listing_id}')
    assert status.get_json() == {'saved': False}


def test_duplicate_save_is_a_conflict(buyer, listing_id):
    buyer.client.post('/api/users/favorites', json={'listingId': listing_id})
    response = buyer.client.post(
        '/api/users/favorites', json={'listingId': listing_id})
    assert response.status_code == 400


def test_unknown_listing_and_missing_favorite(buyer, listing_id):
    response = buyer.client.post(
        '/api/users/favorites', json={'listingId': 4242})
    assert response.status_code == 404

    response = buyer.client.delete(f'/api/users/favorites/{listing_id}')
    assert response.status_code == 404


def test_favorites_are_per_user(buyer, other_buyer, listing_id):
    buyer.client.post('/api/users/favorites', json={'listingId': listing_id})
    status = other_buyer.client.get(f'/api/users/favorites/{listing_id}')
    assert status.get_json() == {'saved': False}


def test_favorites_require_login(client):
    assert client.get('/api/users/favorites').status_code == 401


def test_listing_feed_marks_saved(buyer, client, listing_id):
    buyer.client.post('/api/users/favorites', json={'listingId': listing_id})

    mine = buyer.client.get('/api/listings').get_json()
    anonymous = client.get('/api/listings').get_json()

    assert mine[0]['isSaved'] is True
    assert anonymous[0]['isSaved'] is False

def test_register_then_me_returns_identity(client):
    response = client.post('/api/auth/register', json={'name': 'Alice', 'email': 'a@x.com', 'password': 'pw123456'})
    assert response.status_code == 200
    token = response.get_json()['token']

    me = client.get('/api/me', headers={'Authorization': f'Bearer {token}'})
    assert me.status_code == 200
    user = me.get_json()['user']
    assert user['name'] == 'Alice'
    assert user['email'] == 'a@x.com'
    assert isinstance(user['id'], int)


def test_duplicate_email_is_conflict(client, register):
    register()
    response = client.post('/api/auth/register', json={'name': 'Alice 2', 'email': 'a@x.com', 'password': 'other'})
    assert response.status_code == 409
    assert response.get_json() == {'error': 'email already exists'}


def test_register_requires_all_fields(client):
    response = client.post('/api/auth/register', json={'name': 'Alice', 'email': 'a@x.com'})
    assert response.status_code == 400


def test_login_with_wrong_password_is_unauthorized(client, register):
    register()
    response = client.post('/api/auth/login', json={'email': 'a@x.com', 'password': 'nope'})
    assert response.status_code == 401
    assert response.get_json() == {'error': 'invalid credentials'}

    ok = client.post('/api/auth/login', json={'email': 'a@x.com', 'password': 'pw123456'})
    assert ok.status_code == 200
    assert ok.get_json()['token']


def test_authenticated_routes_reject_missing_or_forged_tokens(client):
    assert client.get('/api/books').status_code == 401
    forged = client.get('/api/me', headers={'Authorization': 'Bearer not-a-jwt'})
    assert forged.status_code == 401
    assert forged.get_json() == {'error': 'unauthorized'}


def test_book_crud_and_partial_update(client, register):
    headers = register()
    created = client.post('/api/books', json={'title': 'Dune', 'author': 'Herbert', 'totalPages': 412,
                                              'targetDate': '2024-05-01'}, headers=headers)
    assert created.status_code == 200
    book = created.get_json()['book']
    assert book['title'] == 'Dune'
    assert book['total_pages'] == 412
    assert book['target_date'] == '2024-05-01'
    assert book['is_completed'] is False

    # Only the keys present are written; null clears a nullable column
    updated = client.put(f"/api/books/{book['id']}", json={'author': None}, headers=headers)
    assert updated.status_code == 200
    assert updated.get_json()['book']['author'] is None
    assert updated.get_json()['book']['total_pages'] == 412

    assert client.put(f"/api/books/{book['id']}", json={'title': ''}, headers=headers).status_code == 400
    assert client.put('/api/books/9999', json={'title': 'X'}, headers=headers).status_code == 404

    listed = client.get('/api/books', headers=headers).get_json()['books']
    assert [b['id'] for b in listed] == [book['id']]

    assert client.delete(f"/api/books/{book['id']}", headers=headers).get_json() == {'success': True}
    assert client.delete(f"/api/books/{book['id']}", headers=headers).status_code == 404


def test_create_book_requires_title(client, register):
    headers = register()
    response = client.post('/api/books', json={'author': 'Nobody'}, headers=headers)
    assert response.status_code == 400
    assert response.get_json() == {'error': 'title is required'}


def test_records_update_current_page_and_validate(client, register):
    headers = register()
    book = client.post('/api/books', json={'title': 'Dune'}, headers=headers).get_json()['book']
    url = f"/api/books/{book['id']}/records"

    assert client.post(url, json={'pagesRead': 0, 'percentage': 10}, headers=headers).status_code == 400
    assert client.post(url, json={'pagesRead': 10, 'percentage': 101}, headers=headers).status_code == 400
    assert client.post(url, json={'pagesRead': 10}, headers=headers).status_code == 400

    created = client.post(url, json={'pagesRead': 50, 'percentage': 50, 'notes': 'Arrakis'}, headers=headers)
    assert created.status_code == 200
    record = created.get_json()['record']
    assert record['pages_read'] == 50
    assert record['percentage'] == 50
    assert len(record['date']) == 10

    records = client.get(url, headers=headers).get_json()['records']
    assert [r['id'] for r in records] == [record['id']]
    books = client.get('/api/books', headers=headers).get_json()['books']
    assert books[0]['current_page'] == 50

    missing = client.post('/api/books/9999/records', json={'pagesRead': 5, 'percentage': 5}, headers=headers)
    assert missing.status_code == 404


def test_complete_happens_once(client, register):
    headers = register()
    book = client.post('/api/books', json={'title': 'Dune'}, headers=headers).get_json()['book']
    url = f"/api/books/{book['id']}/complete"

    done = client.post(url, json={'finalReview': 'Spice'}, headers=headers)
    assert done.status_code == 200
    completed = done.get_json()['book']
    assert completed['is_completed'] is True
    assert completed['final_review'] == 'Spice'
    assert completed['completed_at']

    assert client.post(url, json={}, headers=headers).status_code == 409
    assert client.post('/api/books/9999/complete', json={}, headers=headers).status_code == 404


def test_books_are_scoped_to_their_owner(client, register):
    alice = register()
    bob = register(name='Bob', email='b@x.com')
    book = client.post('/api/books', json={'title': 'Dune'}, headers=alice).get_json()['book']

    assert client.get('/api/books', headers=bob).get_json()['books'] == []
    assert client.put(f"/api/books/{book['id']}", json={'title': 'Mine'}, headers=bob).status_code == 404
    assert client.delete(f"/api/books/{book['id']}", headers=bob).status_code == 404


def test_wishlist_crud(client, register):
    headers = register()
    created = client.post('/api/wishlist', json={'title': 'Hyperion', 'amazonLink': 'https://a.example/h'},
                          headers=headers)
    assert created.status_code == 200
    item = created.get_json()['item']
    assert item['amazon_link'] == 'https://a.example/h'
    assert item['is_checked'] is False

    updated = client.put(f"/api/wishlist/{item['id']}", json={'isChecked': True}, headers=headers)
    assert updated.get_json()['item']['is_checked'] is True
    assert updated.get_json()['item']['title'] == 'Hyperion'

    assert client.post('/api/wishlist', json={'title': '  '}, headers=headers).status_code == 400
    assert len(client.get('/api/wishlist', headers=headers).get_json()['wishlist']) == 1
    assert client.delete(f"/api/wishlist/{item['id']}", headers=headers).get_json() == {'success': True}
    assert client.put(f"/api/wishlist/{item['id']}", json={'title': 'X'}, headers=headers).status_code == 404

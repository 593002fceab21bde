from fastapi.testclient import TestClient

from pokepals.main import app


def test_health_check() -> None:
    client = TestClient(app)

    response = client.get('/health')

    assert response.status_code == 200
    assert response.json() == {'status': 'ok'}


def test_api_routes_are_mounted() -> None:
    paths = {route.path for route in app.routes}

    assert {
        '/api/auth/signup',
        '/api/auth/login',
        '/api/auth/logout',
        '/api/auth/user',
        '/api/profile',
        '/api/profile/image',
        '/api/cards',
        '/api/cards/usage',
        '/api/cards/public',
        '/api/cards/generate',
        '/api/cards/image',
        '/api/cards/{card_id}',
        '/api/users/{user_id}',
        '/api/users/{user_id}/cards',
        '/api/objects/upload',
        '/api/objects/upload/{object_id}',
        '/objects/{object_id}',
    } <= paths


def test_current_user_requires_session_cookie() -> None:
    client = TestClient(app)

    response = client.get('/api/auth/user')

    assert response.status_code == 401
    assert response.json() == {'detail': 'Unauthorized'}

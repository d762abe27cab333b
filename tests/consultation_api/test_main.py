import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from consultation_api.auth import jwt_handler
from consultation_api.database import get_db
from consultation_api.main import app


@pytest.fixture
def client(db_engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def override_get_db():
        db = testing_session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_slots_without_date_returns_error_envelope(client) -> None:
    response = client.get('/consultations/slots')

    assert response.status_code == 400
    assert response.json() == {'error': 'Date requise'}


def test_booking_validation_failure_is_a_400(client) -> None:
    response = client.post('/consultations/book', json={'serviceId': 1, 'date': '2031-03-03'})

    assert response.status_code == 400
    assert response.json()['error'] == 'Tous les champs requis doivent être remplis'


def test_booking_flow_over_http(client, monday_rule, service) -> None:
    payload = {
        'serviceId': service.id,
        'date': '2031-03-03',
        'time': '09:40',
        'customerName': 'Awa Koné',
        'customerPhone': '2250700000001',
    }

    created = client.post('/consultations/book', json=payload)
    assert created.status_code == 201
    body = created.json()
    assert body['success'] is True
    assert body['appointment']['time'] == '09:40'
    assert body['appointment']['serviceName'] == service.name

    slots = client.get('/consultations/slots', params={'date': '2031-03-03'}).json()['slots']
    assert {'time': '09:40', 'available': False} in slots

    conflict = client.post('/consultations/book', json={**payload, 'customerName': 'Fatou Traoré'})
    assert conflict.status_code == 409
    assert conflict.json() == {'error': "Ce créneau n'est plus disponible. Veuillez en choisir un autre."}


def test_services_are_rendered_in_camel_case(client, service) -> None:
    response = client.get('/consultations/services')

    assert response.status_code == 200
    [rendered] = response.json()['services']
    assert rendered['requiresPayment'] is True
    assert rendered['sortOrder'] == 1


def test_admin_routes_require_staff_role(client, customer, admin) -> None:
    customer_headers = {'Authorization': f'Bearer {jwt_handler.create_access_token(str(customer.id))}'}
    admin_headers = {'Authorization': f'Bearer {jwt_handler.create_access_token(str(admin.id))}'}

    assert client.get('/admin/appointments/availability', headers=customer_headers).status_code == 401
    response = client.get('/admin/appointments/availability', headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {'availability': []}


def test_booking_with_stale_token_is_accepted_anonymously(client, monday_rule, service, customer) -> None:
    expired = jwt_handler.create_access_token(str(customer.id), expires_minutes=-5)

    response = client.post(
        '/consultations/book',
        json={
            'serviceId': service.id,
            'date': '2031-03-03',
            'time': '10:20',
            'customerName': 'Awa Koné',
            'customerPhone': '2250700000001',
        },
        headers={'Authorization': f'Bearer {expired}'},
    )

    assert response.status_code == 201
    assert response.json()['appointment']['time'] == '10:20'

import pytest
import requests
from unittest.mock import MagicMock

from appointments.models import Appointment, AppointmentStatus
from appointments.persistence import AppointmentApiClient, PersistenceError, TransitionIntent
from appointments.policy import AppointmentPolicy


def fake_response(payload=None, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.json.return_value = payload
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(session):
    return AppointmentApiClient(base_url="https://api.example.com/api/", token="secret", session=session)


def test_fetch_unwraps_appointment_payload(client, session, make_appointment):
    appointment = make_appointment()
    session.get.return_value = fake_response({"appointment": appointment.to_dict()})

    fetched = client.fetch_appointment(appointment.id)

    assert fetched == appointment
    url = session.get.call_args.args[0]
    assert url == "https://api.example.com/api/appointments/apt_1"
    assert session.get.call_args.kwargs["headers"]["Authorization"] == "Bearer secret"
    assert session.get.call_args.kwargs["timeout"] == AppointmentPolicy().http_timeout_s


def test_timeout_comes_from_policy(session, make_appointment):
    client = AppointmentApiClient(base_url="https://api.example.com/api", token="secret", session=session,
                                  policy=AppointmentPolicy(http_timeout_s=4.0))
    session.get.return_value = fake_response({"appointment": make_appointment().to_dict()})

    client.fetch_appointment("apt_1")

    assert session.get.call_args.kwargs["timeout"] == 4.0


def test_fetch_accepts_legacy_status_words(client, session, make_appointment):
    payload = make_appointment().to_dict()
    payload["status"] = "assigned"
    session.get.return_value = fake_response(payload)

    assert client.fetch_appointment("apt_1").status == AppointmentStatus.CONFIRMED


def test_fetch_errors_are_persistence_errors(client, session):
    session.get.return_value = fake_response({"message": "not found"}, 404)
    with pytest.raises(PersistenceError) as exc_info:
        client.fetch_appointment("apt_1")
    assert exc_info.value.status_code == 404

    session.get.return_value = fake_response({"appointment": {"id": "apt_1"}})
    with pytest.raises(PersistenceError):
        client.fetch_appointment("apt_1")

    session.get.side_effect = requests.Timeout("slow")
    with pytest.raises(PersistenceError):
        client.fetch_appointment("apt_1")


def test_save_status_puts_intent(client, session):
    session.put.return_value = fake_response({}, 200)
    intent = TransitionIntent("apt_1", AppointmentStatus.CANCELLED, 3,
                              updated_by="client_1", cancellation_reason="changed plans")

    client.save_status(intent)

    url = session.put.call_args.args[0]
    body = session.put.call_args.kwargs["json"]
    assert url == "https://api.example.com/api/appointments/apt_1/status"
    assert body["status"] == "cancelled"
    assert body["version"] == 3
    assert body["cancellationReason"] == "changed plans"


def test_save_status_failure_carries_intent(client, session):
    intent = TransitionIntent("apt_1", AppointmentStatus.CONFIRMED, 2)

    session.put.return_value = fake_response({}, 500)
    with pytest.raises(PersistenceError) as exc_info:
        client.save_status(intent)
    assert exc_info.value.intent is intent
    assert exc_info.value.status_code == 500

    session.put.side_effect = requests.ConnectionError("refused")
    with pytest.raises(PersistenceError) as exc_info:
        client.save_status(intent)
    assert exc_info.value.intent is intent


def test_appointment_dict_keeps_durable_fields(make_appointment, make_route):
    appointment = make_appointment()
    data = appointment.to_dict()

    assert data["status"] == "pending"
    assert data["pickupLocation"] == {"latitude": 19.4326, "longitude": -99.1332}
    assert "currentRoute" not in data
    assert Appointment.from_dict(data) == appointment

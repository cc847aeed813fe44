"""HTTP surface: slots and appointments."""

from tests.helpers.scheduling import (
    CLIENT_ID,
    OTHER_CLIENT_ID,
    PROVIDER_ID,
    auth_headers,
)

SLOTS_URL = "/api/v1/providers/{provider}/services/{service}/slots"


def _booking_body(service, day, start="10:00", client_id=CLIENT_ID):
    return {
        "providerId": PROVIDER_ID,
        "serviceId": service.id,
        "clientId": client_id,
        "date": day.isoformat(),
        "startTime": start,
    }


def _book(client, service, day, headers, start="10:00", client_id=CLIENT_ID):
    return client.post(
        "/api/v1/appointments", json=_booking_body(service, day, start, client_id), headers=headers
    )


class TestSlotRoutes:
    def test_list_slots(self, client, client_headers, service, monday):
        response = client.get(
            SLOTS_URL.format(provider=PROVIDER_ID, service=service.id),
            params={"date": monday.isoformat()},
            headers=client_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert [slot["startTime"] for slot in body] == [
            "09:00",
            "10:00",
            "11:00",
            "13:00",
            "14:00",
            "15:00",
            "16:00",
        ]
        assert body[0] == {"startTime": "09:00", "endTime": "10:00"}

    def test_check_slot(self, client, client_headers, service, monday):
        url = SLOTS_URL.format(provider=PROVIDER_ID, service=service.id) + "/check"

        free = client.get(
            url, params={"date": monday.isoformat(), "startTime": "09:15"}, headers=client_headers
        )
        lunch = client.get(
            url, params={"date": monday.isoformat(), "startTime": "12:00"}, headers=client_headers
        )

        assert free.json() == {"isAvailable": True, "startTime": "09:15", "endTime": "10:15"}
        assert lunch.json()["isAvailable"] is False

    def test_unknown_service_is_404(self, client, client_headers, monday):
        response = client.get(
            SLOTS_URL.format(provider=PROVIDER_ID, service="01HZZZZZZZZZZZZZZZZZZZZZZZ"),
            params={"date": monday.isoformat()},
            headers=client_headers,
        )
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_requires_authentication(self, client, service, monday):
        response = client.get(
            SLOTS_URL.format(provider=PROVIDER_ID, service=service.id),
            params={"date": monday.isoformat()},
        )
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_invalid_token(self, client, service, monday):
        response = client.get(
            SLOTS_URL.format(provider=PROVIDER_ID, service=service.id),
            params={"date": monday.isoformat()},
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401


class TestBookingRoutes:
    def test_create_appointment(self, client, client_headers, service, monday):
        response = _book(client, service, monday, client_headers)

        assert response.status_code == 201
        body = response.json()
        appointment = body["appointment"]
        assert appointment["providerId"] == PROVIDER_ID
        assert appointment["clientId"] == CLIENT_ID
        assert appointment["startTime"] == "10:00"
        assert appointment["endTime"] == "11:00"
        assert appointment["status"] == "pending"
        assert len(body["completionCode"]) == 6
        assert {"startTime": "10:15", "endTime": "11:15"} in body["blockedAdjacentSlots"]
        assert response.headers["X-Request-ID"]

    def test_same_slot_twice_is_409(self, client, client_headers, service, monday):
        assert _book(client, service, monday, client_headers).status_code == 201

        other = auth_headers(OTHER_CLIENT_ID, "client")
        response = _book(client, service, monday, other, client_id=OTHER_CLIENT_ID)

        assert response.status_code == 409
        problem = response.json()
        assert problem["status"] == 409
        assert problem["code"] == "SLOT_UNAVAILABLE"
        assert problem["instance"] == "/api/v1/appointments"

    def test_unknown_fields_rejected(self, client, client_headers, service, monday):
        body = _booking_body(service, monday)
        body["price"] = 100

        response = client.post("/api/v1/appointments", json=body, headers=client_headers)

        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"

    def test_malformed_start_time_rejected(self, client, client_headers, service, monday):
        response = _book(client, service, monday, client_headers, start="9am")
        assert response.status_code == 422

    def test_cannot_book_for_someone_else(self, client, service, monday):
        response = _book(client, service, monday, auth_headers(PROVIDER_ID, "provider"))
        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    def test_admin_may_book_for_a_client(self, client, service, monday):
        response = _book(client, service, monday, auth_headers("admin-1", "admin"))
        assert response.status_code == 201


class TestAppointmentLifecycleRoutes:
    def _created(self, client, headers, service, day):
        return _book(client, service, day, headers).json()

    def test_get_appointment_parties_only(self, client, client_headers, service, monday):
        appointment_id = self._created(client, client_headers, service, monday)["appointment"]["id"]
        url = f"/api/v1/appointments/{appointment_id}"

        assert client.get(url, headers=client_headers).status_code == 200
        assert client.get(url, headers=auth_headers(PROVIDER_ID, "provider")).status_code == 200
        assert client.get(url, headers=auth_headers("stranger", "client")).status_code == 403

    def test_confirm_and_complete(self, client, client_headers, provider_headers, service, monday):
        created = self._created(client, client_headers, service, monday)
        url = f"/api/v1/appointments/{created['appointment']['id']}/status"

        confirmed = client.put(url, json={"status": "confirmed"}, headers=provider_headers)
        assert confirmed.status_code == 200
        assert confirmed.json()["status"] == "confirmed"

        completed = client.put(
            url,
            json={"status": "completed", "completionCode": created["completionCode"]},
            headers=provider_headers,
        )
        assert completed.status_code == 200
        assert completed.json()["status"] == "completed"

    def test_cancel_without_reason_is_400(self, client, client_headers, service, monday):
        created = self._created(client, client_headers, service, monday)
        url = f"/api/v1/appointments/{created['appointment']['id']}/status"

        response = client.put(url, json={"status": "canceled"}, headers=client_headers)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_invalid_transition_is_422(
        self, client, client_headers, provider_headers, service, monday
    ):
        created = self._created(client, client_headers, service, monday)
        url = f"/api/v1/appointments/{created['appointment']['id']}/status"

        response = client.put(
            url, json={"status": "no_show", "reason": "absent"}, headers=provider_headers
        )

        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_STATUS_TRANSITION"

    def test_cancel_frees_slot(self, client, client_headers, service, monday):
        created = self._created(client, client_headers, service, monday)
        url = f"/api/v1/appointments/{created['appointment']['id']}/status"

        response = client.put(
            url, json={"status": "canceled", "reason": "plans changed"}, headers=client_headers
        )

        assert response.status_code == 200
        assert response.json()["cancellationReason"] == "plans changed"
        assert _book(client, service, monday, client_headers).status_code == 201

    def test_reschedule(self, client, client_headers, service, monday):
        created = self._created(client, client_headers, service, monday)
        url = f"/api/v1/appointments/{created['appointment']['id']}/reschedule"

        response = client.put(
            url, json={"date": monday.isoformat(), "startTime": "14:00"}, headers=client_headers
        )

        assert response.status_code == 200
        assert response.json()["appointment"]["startTime"] == "14:00"

    def test_unknown_appointment_is_404(self, client, client_headers):
        response = client.get(
            "/api/v1/appointments/01HZZZZZZZZZZZZZZZZZZZZZZZ", headers=client_headers
        )
        assert response.status_code == 404

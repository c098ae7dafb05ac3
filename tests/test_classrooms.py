from httpx import AsyncClient

from helpers import call, classroom_payload, create_classroom, create_school, create_student, get_classroom


async def test_create_classroom_starts_empty(client: AsyncClient, superadmin_token: str) -> None:
    school = await create_school(client, superadmin_token)
    classroom = await create_classroom(client, superadmin_token, school["id"], code="g5-b", capacity=25)

    assert classroom["code"] == "G5-B"
    assert classroom["currentEnrollment"] == 0
    assert classroom["capacity"] == 25
    assert classroom["resources"] == [{"name": "Projector", "quantity": 1, "condition": "good"}]


async def test_code_unique_per_school(client: AsyncClient, superadmin_token: str) -> None:
    school = await create_school(client, superadmin_token, code="UNI1")
    other = await create_school(client, superadmin_token, code="UNI2")
    await create_classroom(client, superadmin_token, school["id"], code="R1")

    duplicate = await call(client, "classrooms", "create", token=superadmin_token, json=classroom_payload(school["id"], code="R1"))
    assert duplicate.status_code == 409
    assert duplicate.json()["errors"] == "Classroom with this code already exists in this school"

    # Same code in a different school is fine
    await create_classroom(client, superadmin_token, other["id"], code="R1")


async def test_create_for_missing_school(client: AsyncClient, superadmin_token: str) -> None:
    response = await call(
        client,
        "classrooms",
        "create",
        token=superadmin_token,
        json=classroom_payload("00000000-0000-0000-0000-000000000003"),
    )
    assert response.status_code == 404


async def test_invalid_academic_year(client: AsyncClient, superadmin_token: str) -> None:
    school = await create_school(client, superadmin_token)
    response = await call(
        client,
        "classrooms",
        "create",
        token=superadmin_token,
        json=classroom_payload(school["id"], academicYear="2024-2026"),
    )
    assert response.status_code == 400


async def test_update_rejects_protected_fields(client: AsyncClient, superadmin_token: str) -> None:
    school = await create_school(client, superadmin_token, code="PRT1")
    other = await create_school(client, superadmin_token, code="PRT2")
    classroom = await create_classroom(client, superadmin_token, school["id"])

    for change in ({"currentEnrollment": 10}, {"schoolId": other["id"]}):
        response = await call(
            client, "classrooms", "update", method="PUT", token=superadmin_token, json={"id": classroom["id"], **change}
        )
        assert response.status_code == 400, change

    unchanged = await get_classroom(client, superadmin_token, classroom["id"])
    assert unchanged["currentEnrollment"] == 0
    assert unchanged["schoolId"] == school["id"]


async def test_capacity_cannot_drop_below_enrollment(client: AsyncClient, superadmin_token: str) -> None:
    school = await create_school(client, superadmin_token)
    classroom = await create_classroom(client, superadmin_token, school["id"], capacity=3)
    for student_id in ("CAP-1", "CAP-2"):
        await create_student(client, superadmin_token, school["id"], student_id=student_id, classroom_id=classroom["id"])

    too_small = await call(
        client, "classrooms", "update", method="PUT", token=superadmin_token, json={"id": classroom["id"], "capacity": 1}
    )
    assert too_small.status_code == 400
    assert too_small.json()["errors"] == "Capacity cannot be lower than the current enrollment"

    exact = await call(
        client,
        "classrooms",
        "update",
        method="PUT",
        token=superadmin_token,
        json={"id": classroom["id"], "capacity": 2, "name": "Smaller room"},
    )
    assert exact.status_code == 200
    assert exact.json()["data"]["capacity"] == 2
    assert exact.json()["data"]["name"] == "Smaller room"


async def test_stats(client: AsyncClient, superadmin_token: str) -> None:
    school = await create_school(client, superadmin_token)
    classroom = await create_classroom(client, superadmin_token, school["id"], capacity=4)
    await create_student(client, superadmin_token, school["id"], student_id="ST-1", classroom_id=classroom["id"])
    await create_student(client, superadmin_token, school["id"], student_id="ST-2", classroom_id=classroom["id"])

    response = await call(client, "classrooms", "stats", token=superadmin_token, json={"id": classroom["id"]})
    data = response.json()["data"]
    assert data["classroom"]["capacity"] == 4
    assert data["enrollment"] == {"active": 2, "total": 2, "available": 2, "utilizationRate": "50.00%"}


async def test_list_filters(client: AsyncClient, superadmin_token: str) -> None:
    school = await create_school(client, superadmin_token)
    await create_classroom(client, superadmin_token, school["id"], code="F5", grade="5")
    await create_classroom(client, superadmin_token, school["id"], code="F6", grade="6")

    response = await call(
        client, "classrooms", "list", token=superadmin_token, params={"schoolId": school["id"], "grade": "6"}
    )
    data = response.json()["data"]
    assert [c["code"] for c in data["classrooms"]] == ["F6"]
    assert data["pagination"]["total"] == 1

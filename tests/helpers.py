from typing import Any, Dict, Optional

from httpx import AsyncClient, Response

PASSWORD = "Str0ng!Pass"


async def call(
    client: AsyncClient,
    module: str,
    function: str,
    method: str = "POST",
    token: Optional[str] = None,
    json: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Response:
    request_headers = dict(headers or {})
    if token:
        request_headers["Authorization"] = f"Bearer {token}"
    return await client.request(
        method, f"/api/{module}/{function}", json=json, params=params, headers=request_headers
    )


async def register(
    client: AsyncClient,
    email: str,
    role: str = "superadmin",
    school_id: Optional[str] = None,
    password: str = PASSWORD,
) -> Dict[str, Any]:
    payload = {
        "email": email,
        "password": password,
        "firstName": "Test",
        "lastName": "Admin",
        "role": role,
    }
    if school_id:
        payload["schoolId"] = school_id
    response = await call(client, "auth", "register", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def login(client: AsyncClient, email: str, password: str = PASSWORD) -> Dict[str, Any]:
    response = await call(client, "auth", "login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["data"]


def school_payload(code: str = "GREEN01", name: str = "Greenwood High") -> Dict[str, Any]:
    return {
        "name": name,
        "code": code,
        "address": {
            "street": "1 Main Street",
            "city": "Springfield",
            "state": "IL",
            "country": "USA",
            "postalCode": "62701",
        },
        "contactInfo": {"email": "office@greenwood.edu", "phone": "+1 555 0100"},
        "principalName": "Dana Scully",
        "establishedYear": 1990,
        "totalCapacity": 500,
    }


def classroom_payload(school_id: str, code: str = "G5-A", capacity: int = 30, **extra: Any) -> Dict[str, Any]:
    payload = {
        "schoolId": school_id,
        "name": f"Classroom {code}",
        "code": code,
        "grade": "5",
        "section": "A",
        "capacity": capacity,
        "academicYear": "2024-2025",
        "resources": [{"name": "Projector", "quantity": 1, "condition": "good"}],
    }
    payload.update(extra)
    return payload


def student_payload(
    school_id: str, student_id: str = "STU-001", classroom_id: Optional[str] = None, **extra: Any
) -> Dict[str, Any]:
    payload = {
        "schoolId": school_id,
        "studentId": student_id,
        "firstName": "Alice",
        "lastName": "Walker",
        "dateOfBirth": "2014-03-15",
        "gender": "female",
        "guardianInfo": {
            "name": "Mary Walker",
            "relationship": "mother",
            "email": "mary.walker@mail.com",
            "phone": "+1 555 0199",
        },
        "academicYear": "2024-2025",
    }
    if classroom_id:
        payload["classroomId"] = classroom_id
    payload.update(extra)
    return payload


async def create_school(client: AsyncClient, token: str, code: str = "GREEN01") -> Dict[str, Any]:
    response = await call(client, "schools", "create", token=token, json=school_payload(code, name=f"School {code}"))
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def create_classroom(client: AsyncClient, token: str, school_id: str, **kwargs: Any) -> Dict[str, Any]:
    response = await call(client, "classrooms", "create", token=token, json=classroom_payload(school_id, **kwargs))
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def create_student(client: AsyncClient, token: str, school_id: str, **kwargs: Any) -> Dict[str, Any]:
    response = await call(client, "students", "create", token=token, json=student_payload(school_id, **kwargs))
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def get_classroom(client: AsyncClient, token: str, classroom_id: str) -> Dict[str, Any]:
    response = await call(client, "classrooms", "get", token=token, json={"id": classroom_id})
    assert response.status_code == 200, response.text
    return response.json()["data"]

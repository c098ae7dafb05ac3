"""Endpoint table: module name -> function name -> Endpoint, as addressed by /api/{module}/{function}."""
from schoolhub.api.v1.auth.endpoints import ENDPOINTS as AUTH_ENDPOINTS
from schoolhub.api.v1.classrooms.endpoints import ENDPOINTS as CLASSROOM_ENDPOINTS
from schoolhub.api.v1.schools.endpoints import ENDPOINTS as SCHOOL_ENDPOINTS
from schoolhub.api.v1.students.endpoints import ENDPOINTS as STUDENT_ENDPOINTS

ENDPOINTS = {
    "auth": AUTH_ENDPOINTS,
    "schools": SCHOOL_ENDPOINTS,
    "classrooms": CLASSROOM_ENDPOINTS,
    "students": STUDENT_ENDPOINTS,
}

from schoolhub.core.models.school import School
from schoolhub.core.models.classroom import Classroom
from schoolhub.core.models.student import EnrollmentHistory, Student

__all__ = [
    "Classroom",
    "EnrollmentHistory",
    "School",
    "Student",
]

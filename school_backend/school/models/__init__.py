# school/models/__init__.py

from .student import Student
from .subject import Subject

__all__ = ["Student", "Subject"]

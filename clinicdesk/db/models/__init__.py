from sqlmodel import SQLModel
from .appointment import Appointment

__all__ = [
    "SQLModel",
    "Appointment",
]

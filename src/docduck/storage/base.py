"""Declarative base shared by all DocDuck tables."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass

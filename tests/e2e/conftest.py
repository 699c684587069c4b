"""
In-memory user service and controller shared by the end-to-end tests.
"""

from dataclasses import dataclass
from typing import Dict, Optional

import pytest

from httpchain import HTTPError, Router
from httpchain.middleware import (
    json_body_encoder,
    json_body_parser,
    xml_body_encoder,
    xml_body_parser,
)


@dataclass
class User:
    id: int
    username: str
    email: str
    password: str


@dataclass
class RegisterRequest:
    username: str = ""
    email: str = ""
    password: str = ""


@dataclass
class RegisterResponse:
    id: int
    username: str
    email: str


@dataclass
class LoginRequest:
    email: str = ""
    password: str = ""


class UserService:
    """Stores users in memory; ids start at 1."""

    def __init__(self):
        self._store: Dict[int, User] = {}
        self._next_id = 1

    def create_user(self, username: str, email: str, password: str) -> User:
        user = User(id=self._next_id, username=username, email=email, password=password)
        self._store[user.id] = user
        self._next_id += 1
        return user

    def find_user_by_email(self, email: str) -> Optional[User]:
        for user in self._store.values():
            if user.email == email:
                return user
        return None


class UserController:
    def __init__(self, users: UserService):
        self.users = users

    def register(self, req, res):
        form = req.parse_body_into(RegisterRequest)

        if not (form.username and form.email and form.password):
            return HTTPError(400, "Registration's format incorrect.")

        if self.users.find_user_by_email(form.email) is not None:
            return HTTPError(400, "Duplicate email")

        user = self.users.create_user(form.username, form.email, form.password)
        res.encode(RegisterResponse(id=user.id, username=user.username, email=user.email))

    def login(self, req, res):
        form = req.parse_body_into(LoginRequest)

        if not (form.email and form.password):
            return HTTPError(400, "Login's format incorrect.")

        user = self.users.find_user_by_email(form.email)
        if user is None:
            return HTTPError(401, "User not found.")
        if user.password != form.password:
            return HTTPError(401, "Password incorrect.")

        res.encode(RegisterResponse(id=user.id, username=user.username, email=user.email))


@pytest.fixture
def users() -> UserService:
    return UserService()


@pytest.fixture
def user_app(users: UserService) -> Router:
    """Router with JSON and XML codecs and the /register and /login routes."""
    controller = UserController(users)
    app = Router()
    app.use(json_body_parser, json_body_encoder, xml_body_parser, xml_body_encoder)
    app.post("/register", controller.register)
    app.post("/login", controller.login)
    return app

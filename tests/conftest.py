"""Shared test fixtures for ormlens tests."""

import os
import textwrap

import pytest
from helpers import sel, write_files

from ormlens.config import AnalysisConfig
from ormlens.model import (
    Argument,
    Entity,
    Operation,
    OperationType,
    Partition,
    Repository,
)
from ormlens.result import AnalyzeResult


def pytest_addoption(parser):
    """Add --run-slow option for slow tests."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="run slow tests",
    )


def pytest_configure(config):
    """Configure slow marker."""
    config.addinivalue_line("markers", "slow: mark test as slow to run")


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is given."""
    if config.getoption("--run-slow"):
        return
    skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path_factory, monkeypatch):
    """Keep user config files and ORMLENS_* variables out of every test."""
    monkeypatch.setenv("HOME", str(tmp_path_factory.mktemp("home")))
    for key in list(os.environ):
        if key.startswith("ORMLENS_"):
            monkeypatch.delenv(key)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@pytest.fixture
def populated_result():
    """Result with detected and custom items in both partitions."""
    result = AnalyzeResult()
    recognized = result.get_group(Partition.RECOGNIZED)
    unknown = result.get_group(Partition.UNKNOWN)

    recognized["User"] = Entity(
        name="User",
        selection=sel("app/models.py", 3),
        operations=[
            Operation(
                name="query.filter.all",
                type=OperationType.READ,
                arguments=[Argument("User.age > 30", selection=sel("app/views.py", 7))],
                selection=sel("app/views.py", 7),
            ),
            Operation(name="add", type=OperationType.WRITE, note="@audit(a1)"),
            Operation(name="query.all", type=OperationType.READ, note="@audit(a1) !read"),
        ],
    )
    recognized["Order"] = Entity(name="Order", note="cda-tran, join")
    recognized["[transaction]"] = Entity(
        name="[transaction]",
        operations=[Operation(name="begin", type=OperationType.TRANSACTION)],
    )
    recognized["Draft"] = Entity(name="Draft", is_custom=True)
    unknown["Legacy"] = Entity(
        name="Legacy",
        operations=[Operation(name="objects.all", type=OperationType.READ, note="full-scan")],
    )
    result.add_analyzed_files(["app/models.py", "app/views.py"])
    result.set_repository(Repository(url="git@example.com:shop.git", commit_hash="abc123"))
    return result


# ---------------------------------------------------------------------------
# Workspaces
# ---------------------------------------------------------------------------


SQLALCHEMY_MODELS = textwrap.dedent(
    """
    from sqlalchemy import Column, Integer, String, ForeignKey
    from sqlalchemy.orm import DeclarativeBase


    class Base(DeclarativeBase):
        pass


    class User(Base):
        __tablename__ = "users"
        id = Column(Integer, primary_key=True)
        name = Column(String)
        age = Column(Integer)


    class Order(Base):
        __tablename__ = "orders"
        id = Column(Integer, primary_key=True)
        user_id = Column(ForeignKey("users.id"))
    """
)

SQLALCHEMY_QUERIES = textwrap.dedent(
    """
    from sqlalchemy import select, update
    from sqlalchemy.orm import joinedload

    from app.models import Order, User


    def adults(session):
        return session.query(User).filter(User.age >= 18).all()


    def everyone(session):
        return session.query(User).all()


    def with_orders(session):
        return session.execute(select(User).options(joinedload(User.orders))).scalars()


    def rename(session, user_id, name):
        session.execute(update(User).where(User.id == user_id).values(name=name))


    def place(session):
        with session.begin():
            session.add(Order(user_id=1))


    def lookup(session):
        return session.get(Invoice, 7)
    """
)


@pytest.fixture
def sqlalchemy_workspace(tmp_path):
    """Workspace with SQLAlchemy models and queries in separate modules."""
    write_files(
        tmp_path,
        {
            "app/__init__.py": "",
            "app/models.py": SQLALCHEMY_MODELS,
            "app/queries.py": SQLALCHEMY_QUERIES,
        },
    )
    return tmp_path


@pytest.fixture
def no_cache_config():
    return AnalysisConfig(cache_enabled=False)

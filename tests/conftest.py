"""Shared pytest fixtures for all tests."""
import pytest

from migrascope.models import Migration


@pytest.fixture
def risky_sql():
    """A migration that trips several lint rules."""
    return (
        "CREATE TABLE users (id serial PRIMARY KEY);\n"
        "\n"
        "-- clean up the old table\n"
        "DROP TABLE legacy_users;\n"
        "UPDATE users SET active = false;\n"
    )


@pytest.fixture
def migrations():
    """Four migrations touching users/orders, in scrambled order."""
    return [
        Migration(id="m3", version=3, description="Add email",
                  up_sql="ALTER TABLE users ADD COLUMN email text;"),
        Migration(id="m1", version=1, description="Create users",
                  up_sql="CREATE TABLE users (id int PRIMARY KEY);"),
        Migration(id="m4", version=4, description="Drop orders",
                  up_sql="DROP TABLE orders;"),
        Migration(id="m2", version=2, description="Create orders",
                  up_sql="CREATE TABLE orders (id int, user_id int REFERENCES users(id));"),
    ]


@pytest.fixture
def migrations_dir(tmp_path):
    """A Flyway-style migration directory."""
    directory = tmp_path / "migrations"
    directory.mkdir()
    (directory / "V1__Create_users.sql").write_text("CREATE TABLE users (id int PRIMARY KEY);\n")
    (directory / "V2__Create_orders.sql").write_text(
        "CREATE TABLE orders (id int, user_id int REFERENCES users(id));\n"
    )
    (directory / "U2__Create_orders.sql").write_text("DROP TABLE orders;\n")
    (directory / "README.md").write_text("not a migration\n")
    return directory

"""Pytest configuration and fixtures for wal2json-loader tests."""

import json

import pytest

from wal2json_loader import SinkError


def _docker_available():
    try:
        import docker

        docker.from_env().ping()
    except Exception:
        return False
    return True


def pytest_collection_modifyitems(config, items):
    """Skip container tests when no Docker daemon is reachable."""
    docker_items = [item for item in items if "docker" in item.keywords]
    if not docker_items or _docker_available():
        return
    skip_docker = pytest.mark.skip(reason="Docker daemon not available")
    for item in docker_items:
        item.add_marker(skip_docker)


def begin(xid=100):
    return json.dumps(
        {
            "action": "B",
            "xid": str(xid),
            "lsn": "0/16B3748",
            "timestamp": "2023-03-01 10:15:00.000000+00",
            "message": {"action": "B", "xid": xid},
        }
    )


def commit(xid=100):
    return json.dumps(
        {
            "action": "C",
            "xid": str(xid),
            "lsn": "0/16B3800",
            "timestamp": "2023-03-01 10:15:00.000000+00",
            "message": {"action": "C", "xid": xid},
        }
    )


def keepalive():
    return json.dumps({"action": "K", "lsn": "0/16B3900", "message": {"action": "K"}})


def insert(columns, schema="public", table="readings", xid=100):
    """Build an insert line from (name, type, value) triples."""
    return json.dumps(
        {
            "action": "I",
            "xid": str(xid),
            "lsn": "0/16B3780",
            "timestamp": "2023-03-01 10:15:00.000000+00",
            "message": {
                "action": "I",
                "xid": xid,
                "schema": schema,
                "table": table,
                "columns": [
                    {"name": name, "type": type_tag, "value": value}
                    for name, type_tag, value in columns
                ],
            },
        }
    )


class RecordingSink:
    """Sink that records every statement, optionally failing on demand."""

    def __init__(self, fail_with=None):
        self.calls = []
        self.fail_with = fail_with

    async def execute(self, statement, params):
        self.calls.append((statement, list(params)))
        if self.fail_with is not None:
            raise SinkError(self.fail_with)
        return statement.count("(") - 1


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture(scope="module")
def postgres_container():
    """PostgreSQL container used as the replay target."""
    from testcontainers.postgres import PostgresContainer

    postgres = PostgresContainer(
        image="postgres:18.1-alpine",
        username="test",
        password="test",
        dbname="testdb",
    )
    with postgres:
        yield postgres


@pytest.fixture
async def target_db(postgres_container):
    """asyncpg pool on the container with a fresh iot schema."""
    import asyncpg

    pool = await asyncpg.create_pool(
        host=postgres_container.get_container_host_ip(),
        port=postgres_container.get_exposed_port(5432),
        user="test",
        password="test",
        database="testdb",
        min_size=1,
        max_size=1,
    )
    try:
        await pool.execute("DROP SCHEMA IF EXISTS iot_1 CASCADE")
        await pool.execute("CREATE SCHEMA iot_1")
        await pool.execute(
            "CREATE TYPE iot_1.sensor_type AS ENUM ('temperature', 'humidity')"
        )
        await pool.execute("""
            CREATE TABLE iot_1.readings (
                id INTEGER PRIMARY KEY,
                value DOUBLE PRECISION,
                active BOOLEAN,
                recorded_at TIMESTAMP WITH TIME ZONE,
                payload JSONB,
                label CHARACTER VARYING(64),
                day DATE,
                note TEXT,
                source INET,
                kind iot_1.sensor_type
            )
        """)
        yield pool
    finally:
        await pool.execute("DROP SCHEMA IF EXISTS iot_1 CASCADE")
        await pool.close()

# tests/test_node_api.py
"""
Node Control Surface Tests
Drives the FastAPI app in-process through httpx's ASGI transport.
"""

import asyncio
import random

import httpx
import pytest

from benor.consensus import ConsensusEngine
from benor.middleware import CorrelationIdMiddleware
from benor.node import create_app


def client_for(engine: ConsensusEngine) -> httpx.AsyncClient:
    app = create_app(engine)
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://node")


class TestStatusRoutes:
    """Tests for /status and /getState"""

    @pytest.mark.asyncio
    async def test_live_status(self, make_engine):
        async with client_for(make_engine()) as client:
            response = await client.get("/status")

        assert response.status_code == 200
        assert response.text == "live"

    @pytest.mark.asyncio
    async def test_faulty_status_is_server_error(self, make_engine):
        async with client_for(make_engine(is_faulty=True)) as client:
            response = await client.get("/status")

        assert response.status_code == 500
        assert response.text == "faulty"

    @pytest.mark.asyncio
    async def test_get_state_initial(self, make_engine):
        async with client_for(make_engine(initial_value=0)) as client:
            response = await client.get("/getState")

        assert response.status_code == 200
        assert response.json() == {"killed": False, "estimate": 0, "decided": False, "round": 0}

    @pytest.mark.asyncio
    async def test_get_state_faulty_is_opaque(self, make_engine):
        async with client_for(make_engine(is_faulty=True)) as client:
            response = await client.get("/getState")

        assert response.json() == {"killed": False, "estimate": None, "decided": None, "round": None}

    @pytest.mark.asyncio
    async def test_health_reports_quorum(self, make_engine):
        async with client_for(make_engine()) as client:
            response = await client.get("/health")

        data = response.json()
        assert data["status"] == "live"
        assert data["quorum"]["threshold"] == 3
        assert data["store"]["max_rounds"] == 64


class TestControlRoutes:
    """Tests for /start and /stop"""

    @pytest.mark.asyncio
    async def test_start_runs_to_decision(self, make_engine):
        engine = make_engine(total_nodes=1, max_faulty=0, initial_value=1)
        async with client_for(engine) as client:
            response = await client.get("/start")
            assert response.text == "started"

            await engine.wait_until_done(timeout=2)
            state = (await client.get("/getState")).json()

        assert state == {"killed": False, "estimate": 1, "decided": True, "round": 0}

    @pytest.mark.asyncio
    async def test_repeated_start_is_harmless(self, make_engine):
        engine = make_engine(total_nodes=1, max_faulty=0)
        async with client_for(engine) as client:
            first = await client.get("/start")
            second = await client.get("/start")
            await engine.wait_until_done(timeout=2)

        assert first.status_code == second.status_code == 200
        assert engine.get_state()["round"] == 0

    @pytest.mark.asyncio
    async def test_stop_sets_killed(self, make_engine):
        engine = make_engine()
        async with client_for(engine) as client:
            await client.get("/start")
            await asyncio.sleep(0.03)
            response = await client.get("/stop")
            await engine.wait_until_done(timeout=2)
            state = (await client.get("/getState")).json()

        assert response.text == "stopped"
        assert state["killed"] is True
        assert engine.is_running is False

    @pytest.mark.asyncio
    async def test_faulty_start_stop_ok(self, make_engine):
        engine = make_engine(is_faulty=True)
        async with client_for(engine) as client:
            start = await client.get("/start")
            stop = await client.get("/stop")

        assert start.status_code == stop.status_code == 200
        assert engine.has_started is False
        assert engine.get_state()["killed"] is False


class TestMessageRoute:
    """Tests for POST /message"""

    @pytest.mark.asyncio
    async def test_valid_vote_recorded(self, make_engine):
        engine = make_engine()
        async with client_for(engine) as client:
            response = await client.post("/message", json={"round": 0, "value": 1})

        assert response.status_code == 200
        assert response.text == "OK"
        assert engine.store.tally(0) == (0, 1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"round": -1, "value": 0},
        {"round": 2, "value": 5},
        {"round": "0", "value": 1},
        {"round": 0, "value": True},
        {"round": 0},
        [0, 1],
    ])
    async def test_malformed_vote_rejected(self, make_engine, payload):
        engine = make_engine()
        async with client_for(engine) as client:
            response = await client.post("/message", json=payload)

        assert response.status_code == 400
        assert response.text == "Invalid message"
        assert len(engine.store) == 0

    @pytest.mark.asyncio
    async def test_non_json_body_rejected(self, make_engine):
        async with client_for(make_engine()) as client:
            response = await client.post(
                "/message", content=b"round=0&value=1",
                headers={"Content-Type": "application/json"}
            )

        assert response.status_code == 400
        assert response.text == "Invalid message"

    @pytest.mark.asyncio
    async def test_faulty_node_accepts_anything(self, make_engine):
        engine = make_engine(is_faulty=True)
        async with client_for(engine) as client:
            valid = await client.post("/message", json={"round": 0, "value": 1})
            garbage = await client.post("/message", json={"round": -3, "value": "x"})

        assert valid.status_code == garbage.status_code == 200
        assert garbage.text == "OK"
        assert len(engine.store) == 0

    @pytest.mark.asyncio
    async def test_vote_after_stop_recorded(self, make_engine):
        engine = make_engine()
        async with client_for(engine) as client:
            await client.get("/stop")
            response = await client.post("/message", json={"round": 0, "value": 0})

        assert response.text == "OK"
        assert engine.store.tally(0) == (1, 0)
        assert engine.get_state()["round"] == 0


class TestCorrelation:
    """Tests for correlation ID propagation"""

    @pytest.mark.asyncio
    async def test_generated_when_missing(self, make_engine):
        async with client_for(make_engine()) as client:
            response = await client.get("/status")

        assert response.headers[CorrelationIdMiddleware.HEADER_NAME].startswith("corr-")

    @pytest.mark.asyncio
    async def test_peer_id_preserved(self, make_engine):
        async with client_for(make_engine()) as client:
            response = await client.post(
                "/message", json={"round": 0, "value": 1},
                headers={"X-Correlation-ID": "n2-r0"}
            )

        assert response.headers["X-Correlation-ID"] == "n2-r0"


class TestTwoNodesOverHttp:
    """Two engines wired through their control surfaces without sockets"""

    @pytest.mark.asyncio
    async def test_votes_flow_between_apps(self, make_config):
        from benor.transport import HttpTransport

        engines = [
            ConsensusEngine(config=make_config(node_id=i, total_nodes=2, max_faulty=0, initial_value=1),
                            rng=random.Random(i))
            for i in range(2)
        ]
        apps = [create_app(engine) for engine in engines]

        for engine in engines:
            transport = HttpTransport(node_id=engine.node_id)
            peer = 1 - engine.node_id
            transport.register_peer(peer, "http://node")
            transport._client = httpx.AsyncClient(transport=httpx.ASGITransport(app=apps[peer]))
            engine.set_transport(transport)

        for engine in engines:
            engine.start()
        done = await asyncio.gather(*(engine.wait_until_done(timeout=5) for engine in engines))

        for engine in engines:
            await engine.transport.stop()

        assert all(done)
        assert [engine.get_state()["estimate"] for engine in engines] == [1, 1]
        assert all(engine.get_state()["decided"] for engine in engines)

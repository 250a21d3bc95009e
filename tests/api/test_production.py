import asyncio
import base64
import unittest
from typing import Any
from aioresponses import aioresponses
from neoviper import errors, settings
from neoviper.api import facade, noderpc, production
from neoviper.api.cache import CacheConfig
from neoviper.api.circuitbreaker import CircuitBreakerConfig, CircuitState
from neoviper.api.pool import PoolConfig
from neoviper.core import types

URL = "http://localhost:10332"
ADDRESS = "NM7Aky765FG8NhhwtxjXRx7jEL1cnw7PBP"
GAS = "0xd2a4cff31913016155e38e474a2c06d08be276cf"
TX_HASH = "0x7da6ae7ff9d0b7af3d32f3a2feb2aa96c2a27ef8b651f9a132cfaad6ef20724c"


def _config(**kwargs) -> production.ProductionClientConfig:
    config = production.ProductionClientConfig(
        pool=PoolConfig(max_connections=4, min_idle=0, connection_timeout=1.0, request_timeout=5.0),
        cache=CacheConfig(cleanup_interval=0),
        circuit_breaker=CircuitBreakerConfig(failure_threshold=3, timeout=60.0),
        retry=production.RetryConfig(max_retries=2, retry_delay=0.001, max_retry_delay=0.002),
    )
    for key, value in kwargs.items():
        setattr(config, key, value)
    return config


def _balances(amount: int) -> dict:
    return {"balance": [{"assethash": GAS, "amount": str(amount), "lastupdatedblock": 1}], "address": ADDRESS}


class ProductionRpcClientTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.helper = aioresponses()
        self.helper.start()
        self.client = production.ProductionRpcClient(URL, _config())

    async def asyncTearDown(self) -> None:
        self.helper.stop()
        await self.client.close()

    def mock_result(self, result: Any):
        self.helper.post(URL, payload={"jsonrpc": "2.0", "id": 1, "result": result})

    def request_count(self) -> int:
        return sum(len(calls) for calls in self.helper.requests.values())

    async def test_satisfies_facade(self):
        self.assertIsInstance(self.client, facade.Facade)
        client = noderpc.NeoRpcClient(URL)
        self.assertIsInstance(client, facade.Facade)
        await client.close()

    async def test_reads_are_cached(self):
        self.mock_result(100)
        self.assertEqual(100, await self.client.get_block_count())
        # a second network request would not be matched and fail
        self.assertEqual(100, await self.client.get_block_count())
        self.assertEqual(1, self.request_count())

        stats = self.client.get_stats()
        self.assertEqual(2, stats.total_requests)
        self.assertEqual(2, stats.successful_requests)
        self.assertEqual(1, stats.cache_hits)
        self.assertEqual(1, stats.cache_misses)
        self.assertEqual(100.0, stats.success_rate)

    async def test_cache_disabled(self):
        client = production.ProductionRpcClient(URL, _config(enable_cache=False))
        self.mock_result(100)
        self.mock_result(101)
        self.assertEqual(100, await client.get_block_count())
        self.assertEqual(101, await client.get_block_count())
        self.assertEqual(0, client.get_stats().cache_hits)
        await client.close()

    async def test_invocations_are_not_cached(self):
        result = {"state": "HALT", "gasconsumed": "10", "stack": []}
        self.mock_result(result)
        self.mock_result(result)
        await self.client.invoke_script(b"\x40")
        await self.client.invoke_script(b"\x40")
        self.assertEqual(2, self.request_count())

    async def test_send_is_not_cached_and_invalidates(self):
        gas = types.UInt160.from_string(GAS)
        self.mock_result(_balances(10))
        self.assertEqual(10, (await self.client.get_nep17_balances(ADDRESS)).balance_of(gas))

        self.mock_result({"hash": TX_HASH})
        self.mock_result({"hash": TX_HASH})
        tx = b"\x00" * 10
        self.assertEqual(types.UInt256.from_string(TX_HASH), await self.client.send_raw_transaction(tx))
        self.assertEqual(types.UInt256.from_string(TX_HASH), await self.client.send_raw_transaction(tx))
        self.assertEqual(3, self.request_count())
        self.assertEqual(2, self.client.cache.generation)

        self.mock_result(_balances(5))
        self.assertEqual(5, (await self.client.get_nep17_balances(ADDRESS)).balance_of(gas))

    async def test_send_payload(self):
        self.mock_result({"hash": TX_HASH})
        await self.client.send_raw_transaction(b"\x01\x02")
        calls = [call for calls in self.helper.requests.values() for call in calls]
        json = calls[-1].kwargs["json"]
        self.assertEqual("sendrawtransaction", json["method"])
        self.assertEqual([base64.b64encode(b"\x01\x02").decode()], json["params"])

    async def test_transport_errors_are_retried(self):
        self.helper.post(URL, status=500)
        self.mock_result(100)
        self.assertEqual(100, await self.client.get_block_count())
        stats = self.client.get_stats()
        self.assertEqual(1, stats.retries)
        self.assertEqual(0, stats.failed_requests)
        # the failed connection was discarded
        self.assertEqual(1, self.client.pool.stats.closed)

    async def test_retries_exhausted(self):
        for _ in range(3):
            self.helper.post(URL, status=500)
        with self.assertRaises(errors.TransportError):
            await self.client.get_block_count()
        stats = self.client.get_stats()
        self.assertEqual(2, stats.retries)
        self.assertEqual(1, stats.failed_requests)
        self.assertEqual(3, self.request_count())

    async def test_writes_not_retried_after_sending(self):
        self.helper.post(URL, status=500)
        self.mock_result({"hash": TX_HASH})
        with self.assertRaises(errors.TransportError):
            await self.client.send_raw_transaction(b"\x00")
        self.assertEqual(0, self.client.get_stats().retries)
        self.assertEqual(1, self.request_count())

    async def test_json_rpc_errors_not_retried(self):
        self.helper.post(URL, payload={"jsonrpc": "2.0", "id": 1, "error": {"code": -1, "message": "nope"}})
        with self.assertRaises(errors.JsonRpcError):
            await self.client.get_block_count()
        self.assertEqual(0, self.client.get_stats().retries)
        self.assertEqual(CircuitState.CLOSED, self.client.circuit_breaker.state)

    async def test_open_circuit_short_circuits(self):
        client = production.ProductionRpcClient(
            URL,
            _config(
                retry=production.RetryConfig(max_retries=0),
                circuit_breaker=CircuitBreakerConfig(failure_threshold=2, timeout=60.0),
            ),
        )
        for _ in range(2):
            self.helper.post(URL, status=503)
            with self.assertRaises(errors.TransportError):
                await client.get_block_count()
        self.assertEqual(CircuitState.OPEN, client.circuit_breaker.state)

        requests_before = self.request_count()
        with self.assertRaises(errors.CircuitOpenError):
            await client.get_block_count()
        self.assertEqual(requests_before, self.request_count())
        self.assertEqual("open", client.get_stats().circuit_breaker_state)
        await client.close()

    async def test_circuit_breaker_disabled(self):
        client = production.ProductionRpcClient(
            URL, _config(retry=production.RetryConfig(max_retries=0), enable_circuit_breaker=False)
        )
        for _ in range(5):
            self.helper.post(URL, status=503)
            with self.assertRaises(errors.TransportError):
                await client.get_block_count()
        self.assertEqual(CircuitState.CLOSED, client.circuit_breaker.state)
        await client.close()

    async def test_health_check(self):
        self.mock_result(100)
        self.assertTrue(await self.client.health_check())
        # bypasses the cache
        self.mock_result(101)
        self.assertTrue(await self.client.health_check())
        self.assertEqual(2, self.request_count())

    async def test_health_check_failure(self):
        # nothing mocked, the connection is refused
        self.assertFalse(await self.client.health_check())

    async def test_get_health(self):
        self.mock_result(100)
        health = await self.client.get_health()
        self.assertTrue(health["healthy"])
        self.assertEqual(URL, health["url"])
        self.assertEqual("closed", health["circuit_breaker"]["state"])
        for key in ("pool", "cache", "stats"):
            self.assertIn(key, health)

    async def test_context_manager_warms_up(self):
        config = _config()
        config.pool.min_idle = 2
        async with production.ProductionRpcClient(URL, config) as client:
            self.assertEqual(2, client.pool.stats.idle)
        self.assertEqual(2, client.pool.stats.closed)

    async def test_maintenance_task(self):
        config = _config()
        config.cache = CacheConfig(cleanup_interval=0.01)
        client = production.ProductionRpcClient(URL, config)
        self.mock_result(100)
        await client.get_block_count()
        self.assertIsNotNone(client._maintenance)
        await asyncio.sleep(0.05)
        await client.close()
        self.assertIsNone(client._maintenance)


class RetryTestCase(unittest.TestCase):
    def test_is_retriable(self):
        self.assertTrue(production.is_retriable("getblockcount", errors.TransportError("reset")))
        self.assertTrue(production.is_retriable("getblockcount", errors.RequestTimeoutError("slow")))
        self.assertFalse(production.is_retriable("getblockcount", errors.JsonRpcError(-1, "x")))
        self.assertFalse(production.is_retriable("getblockcount", errors.ProtocolError("x")))
        self.assertFalse(production.is_retriable("getblockcount", errors.CircuitOpenError("node")))

        self.assertTrue(production.is_retriable("sendrawtransaction", errors.ConnectionFailedError("refused")))
        self.assertTrue(production.is_retriable("sendrawtransaction", errors.PoolTimeoutError("busy")))
        self.assertFalse(production.is_retriable("sendrawtransaction", errors.TransportError("reset")))
        self.assertFalse(production.is_retriable("sendrawtransaction", errors.RequestTimeoutError("slow")))

    def test_delay_for(self):
        config = production.RetryConfig(retry_delay=1.0, max_retry_delay=5.0)
        no_jitter = lambda low, high: 1.0  # noqa: E731
        self.assertEqual([1.0, 2.0, 4.0, 5.0], [config.delay_for(i, no_jitter) for i in range(4)])
        self.assertEqual(0.8, config.delay_for(0, lambda low, high: low))
        self.assertEqual(1.2, config.delay_for(0, lambda low, high: high))
        for _ in range(20):
            self.assertTrue(0.8 <= config.delay_for(0) <= 1.2)


class ConfigTestCase(unittest.TestCase):
    def tearDown(self) -> None:
        settings.settings.reset_settings_to_default()

    def test_from_settings(self):
        settings.settings.register({"rpc": {"request_timeout": 7, "max_retries": 1}})
        config = production.ProductionClientConfig.from_settings()
        self.assertEqual(7, config.pool.request_timeout)
        self.assertEqual(1, config.retry.max_retries)
        self.assertTrue(config.enable_cache)
        self.assertTrue(config.enable_circuit_breaker)

    def test_production(self):
        config = production.ProductionClientConfig.production()
        self.assertEqual(20, config.pool.max_connections)
        self.assertEqual(5, config.pool.min_idle)
        self.assertEqual(10000, config.cache.max_entries)
        self.assertEqual(5, config.cache.method_ttls["getblockcount"])

    def test_stats_to_dict(self):
        stats = production.ClientStats(total_requests=4, successful_requests=3)
        stats.record_response_time(0.1)
        stats.record_response_time(0.3)
        info = stats.to_dict()
        self.assertEqual(75.0, info["success_rate"])
        self.assertAlmostEqual(0.2, info["average_response_time"])
        self.assertEqual(0.0, production.ClientStats().success_rate)

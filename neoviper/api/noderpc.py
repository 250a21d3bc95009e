"""
JSON-RPC client for Neo N3 nodes, and typed models of the responses it returns.
"""
from __future__ import annotations
import abc
import asyncio
import base64
import itertools
from contextlib import suppress
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, TypedDict, Any, Iterator, cast
from collections.abc import Sequence
import aiohttp
from neoviper import errors, vm, api_logger as logger
from neoviper.contracts import ContractParameter
from neoviper.core import types, cryptography
from neoviper.network.payloads import transaction, verification
from neoviper.wallet import utils as walletutils


@dataclass
class Nep17Balance:
    """
    NEP-17 balance entry.
    """

    asset_hash: types.UInt160
    amount: int
    last_updated_block: int

    def __repr__(self):
        return (
            f"{self.__class__.__name__}(asset_hash={self.asset_hash}, amount={self.amount}, "
            f"last_updated_block={self.last_updated_block})"
        )


@dataclass
class Nep17BalancesResponse:
    """
    NEP-17 balances of one account.
    """

    balances: list[Nep17Balance]
    address: str

    @classmethod
    def from_json(cls, json: dict):
        c = cls([], json["address"])
        for b in json["balance"]:
            h = types.UInt160.from_string(b["assethash"])
            a = int(b["amount"])
            c.balances.append(Nep17Balance(h, a, b["lastupdatedblock"]))
        return c

    def balance_of(self, asset_hash: types.UInt160) -> int:
        """
        Get the balance for `asset_hash`. Returns 0 if the address holds none of the asset.
        """
        for b in self.balances:
            if b.asset_hash == asset_hash:
                return b.amount
        return 0


class StackItemType(Enum):
    """
    Virtual machine item types that can be found in the `stack` property of responses when executing a script or
     transactions.
    """

    ANY = "Any"
    ARRAY = "Array"
    BOOL = "Boolean"
    BUFFER = "Buffer"
    BYTE_STRING = "ByteString"
    INTEGER = "Integer"
    INTEROP_INTERFACE = "InteropInterface"
    MAP = "Map"
    POINTER = "Pointer"
    STRUCT = "Struct"


_Item = TypedDict("_Item", {"type": str, "value": Any})


@dataclass
class StackItem:
    """
    One item of a result stack. `value` holds the decoded Python value.
    """

    type: StackItemType
    value: Any

    def __repr__(self):
        return f"{self.__class__.__name__}(type={self.type.name}, value={self.value})"

    def _expect(self, *types_: StackItemType) -> None:
        if self.type not in types_:
            expected = " or ".join(f"'{t.value}'" for t in types_)
            raise ValueError(f"item is not of type {expected} but of type '{self.type.value}'")

    def _raw_bytes(self) -> bytes:
        self._expect(StackItemType.BYTE_STRING, StackItemType.BUFFER)
        # the data may be hex-escaped
        data = self.value
        with suppress(UnicodeDecodeError, ValueError):
            data = bytes.fromhex(data.decode())
        return data

    def as_bool(self) -> bool:
        """
        Unwrap as `bool`. Integers and byte strings are converted the way the VM does.

        Raises:
            ValueError: if the item has a different type.
        """
        if self.type == StackItemType.INTEGER:
            return self.value != 0
        if self.type == StackItemType.BYTE_STRING:
            return any(self.value)
        self._expect(StackItemType.BOOL)
        return self.value

    def as_bytes(self) -> bytes:
        """
        Unwrap as `bytes`.

        Raises:
            ValueError: if the item has a different type.
        """
        self._expect(StackItemType.BYTE_STRING, StackItemType.BUFFER)
        return self.value

    def as_str(self) -> str:
        """
        Unwrap as `str`.

        Raises:
            ValueError: if the item has a different type.
        """
        self._expect(StackItemType.BYTE_STRING, StackItemType.BUFFER)
        return cast(bytes, self.value).decode()

    def as_int(self) -> int:
        """
        Unwrap as `int`. Byte strings are interpreted as little endian two's complement.

        Raises:
            ValueError: if the item has a different type.
        """
        if self.type == StackItemType.BYTE_STRING:
            return int.from_bytes(self.value, "little", signed=True)
        self._expect(StackItemType.INTEGER)
        return cast(int, self.value)

    def as_uint160(self) -> types.UInt160:
        """
        Unwrap as `UInt160`.

        Raises:
            ValueError: if the item has a different type.
        """
        return types.UInt160(self._raw_bytes())

    def as_uint256(self) -> types.UInt256:
        """
        Unwrap as `UInt256`.

        Raises:
            ValueError: if the item has a different type.
        """
        return types.UInt256(self._raw_bytes())

    def as_address(self) -> str:
        """
        Unwrap as NEO3 address.
        """
        return walletutils.script_hash_to_address(self.as_uint160())

    def as_public_key(self) -> cryptography.ECPoint:
        """
        Unwrap as `ECPoint`.

        Raises:
            ValueError: if the item has a different type.
        """
        return cryptography.ECPoint.deserialize_from_bytes(self._raw_bytes(), validate=True)

    def as_list(self) -> list[StackItem]:
        """
        Unwrap as `list`.

        Raises:
            ValueError: if the item has a different type.
        """
        self._expect(StackItemType.ARRAY, StackItemType.STRUCT)
        return cast(list, self.value)

    def as_dict(self) -> dict:
        """
        Unwrap as `dict`.

        Raises:
            ValueError: if the item has a different type.
        """
        self._expect(StackItemType.MAP)
        m = cast(MapStackItem, self)
        return dict(m.items())

    def as_none(self) -> None:
        """
        Unwrap as `None`.

        Raises:
            ValueError: if the item has a different type.
        """
        self._expect(StackItemType.ANY)
        if self.value is not None:
            raise ValueError(f"value is not None but of type '{type(self.value)}")
        return self.value

    @staticmethod
    def from_json(item: _Item) -> StackItem:
        try:
            type_ = StackItemType(item["type"])
        except ValueError:
            raise errors.ProtocolError(f"Unknown stack item type: {item['type']}") from None

        match type_:
            case StackItemType.ARRAY | StackItemType.STRUCT:
                return StackItem(type_, [StackItem.from_json(element) for element in item["value"]])
            case StackItemType.BOOL | StackItemType.POINTER:
                return StackItem(type_, item["value"])
            case StackItemType.BUFFER | StackItemType.BYTE_STRING:
                return StackItem(type_, base64.b64decode(item["value"]))
            case StackItemType.INTEGER:
                return StackItem(type_, int(item["value"]))
            case StackItemType.MAP:
                map_ = []
                for pair in item["value"]:
                    key = StackItem.from_json(pair["key"])
                    if key.type == StackItemType.BYTE_STRING:
                        key.value = key.value.decode()
                    else:
                        key.value = str(key.value)
                    map_.append((key, StackItem.from_json(pair["value"])))
                return MapStackItem(type_, map_)
            case StackItemType.ANY:
                return StackItem(type_, None)
            case StackItemType.INTEROP_INTERFACE:
                # only iterators are expanded by the node
                iterator = cast(dict, item).get("iterator", [])
                return StackItem(type_, [StackItem.from_json(element) for element in iterator])
        raise errors.ProtocolError(f"Unsupported stack item type: {type_}")


class MapStackItem(StackItem):
    def items(self) -> Iterator:
        for pair in self.value:  # type: tuple[StackItem, StackItem]
            yield pair[0].value, pair[1].value

    def keys(self) -> Iterator:
        for pair in self.value:  # type: tuple[StackItem, StackItem]
            yield pair[0].value

    def values(self) -> Iterator:
        for pair in self.value:  # type: tuple[StackItem, StackItem]
            yield pair[1].value

    def __getitem__(self, item: str):
        for pair in self.value:  # type: tuple[StackItem, StackItem]
            if pair[0].value == item:
                return pair[1].value
        raise KeyError(item)

    def __iter__(self):
        for pair in self.value:  # type: tuple[StackItem, StackItem]
            yield pair[0].value


@dataclass
class Notification:
    """
    An event emitted during execution.
    """

    contract: types.UInt160
    event_name: str
    state: StackItem

    @classmethod
    def from_json(cls, json: dict):
        c = types.UInt160.from_string(json["contract"])
        return cls(c, json["eventname"], StackItem.from_json(json["state"]))

    def __repr__(self):
        return (
            f"{self.__class__.__name__}(contract={str(self.contract)}, "
            f"event_name={self.event_name}, state={self.state})"
        )


@dataclass
class InvocationResult:
    """
    Response to `invokefunction` or `invokescript` RPC call.
    """

    state: vm.VMState
    gas_consumed: int
    exception: Optional[str]
    stack: list[StackItem]
    script: bytes = b""
    notifications: list[Notification] = field(default_factory=list)

    @property
    def is_fault(self) -> bool:
        return self.state == vm.VMState.FAULT

    @classmethod
    def from_json(cls, json: dict):
        try:
            return cls(
                vm.VMState.from_string(json["state"]),
                int(json["gasconsumed"]),
                json.get("exception", None),
                [StackItem.from_json(item) for item in json["stack"]],
                base64.b64decode(json.get("script", "")),
                [Notification.from_json(n) for n in json.get("notifications", [])],
            )
        except (KeyError, ValueError, TypeError) as e:
            raise errors.ProtocolError(f"Malformed invocation result: {e}") from None


@dataclass
class ApplicationExecution:
    """
    Execution result with trigger and notification information.
    """

    trigger: str
    state: vm.VMState
    gas_consumed: int
    exception: Optional[str]
    stack: list[StackItem]
    notifications: list[Notification]

    @classmethod
    def from_json(cls, json: dict):
        return cls(
            trigger=json["trigger"],
            state=vm.VMState.from_string(json["vmstate"]),
            gas_consumed=int(json["gasconsumed"]),
            exception=json.get("exception", None),
            stack=[StackItem.from_json(item) for item in json["stack"]],
            notifications=[Notification.from_json(n) for n in json["notifications"]],
        )


@dataclass
class ApplicationLog:
    """
    Result of persisting a transaction: one execution per trigger.
    """

    tx_hash: types.UInt256
    executions: list[ApplicationExecution]

    @property
    def execution(self) -> ApplicationExecution:
        return self.executions[0]

    @classmethod
    def from_json(cls, json: dict):
        try:
            tx_id = types.UInt256.from_string(json["txid"])
            executions = [ApplicationExecution.from_json(e) for e in json["executions"]]
        except (KeyError, ValueError, TypeError) as e:
            raise errors.ProtocolError(f"Malformed application log: {e}") from None
        return cls(tx_id, executions)

    def __repr__(self):
        return f"{self.__class__.__name__}(tx_hash={str(self.tx_hash)}, executions={self.executions})"


@dataclass
class ContractState:
    """
    Response to `getcontractstate` RPC call. The manifest is kept as the node's JSON.
    """

    id: int
    update_counter: int
    hash: types.UInt160
    nef_checksum: int
    manifest: dict

    @property
    def name(self) -> str:
        return self.manifest.get("name", "")

    @classmethod
    def from_json(cls, json: dict):
        try:
            return cls(
                json["id"],
                json["updatecounter"],
                types.UInt160.from_string(json["hash"]),
                int(json["nef"]["checksum"]),
                json["manifest"],
            )
        except (KeyError, ValueError, TypeError) as e:
            raise errors.ProtocolError(f"Malformed contract state: {e}") from None


def _tx_to_base64(tx: bytes | transaction.Transaction) -> str:
    if isinstance(tx, transaction.Transaction):
        tx = tx.to_array()
    return base64.b64encode(tx).decode()


class RPCClient:
    """
    RPC Client base. Translates transport failures into :mod:`neoviper.errors` types.
    """

    def __init__(self, url: str, timeout: float = 30.0, session: Optional[aiohttp.ClientSession] = None):
        """
        Args:
            url: host + port.
            timeout: total time in seconds a request may take.
            session: optional session to use. It is closed together with the client.
        """
        self.url = url
        self.timeout = timeout
        self._session = session

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
        return self._session

    @property
    def closed(self) -> bool:
        return self._session is not None and self._session.closed

    async def _post(self, json: dict) -> Any:
        """
        POST one JSON-RPC request to `self.url`. Transport failures become `TransportError` subclasses.

        Raises:
            ConnectionFailedError: if no connection could be established.
            RequestTimeoutError: if the request did not complete within `self.timeout`.
            TransportError: for other network or HTTP level failures.
            ProtocolError: if the body is not valid JSON.
        """
        try:
            async with self.session.post(self.url, json=json) as response:
                response.raise_for_status()
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise errors.ProtocolError(f"Invalid JSON response: {e}") from None
        except asyncio.TimeoutError:
            raise errors.RequestTimeoutError(f"Request to {self.url} timed out after {self.timeout}s") from None
        except aiohttp.ClientConnectorError as e:
            raise errors.ConnectionFailedError(f"Cannot connect to {self.url}: {e}") from e
        except aiohttp.ClientResponseError as e:
            raise errors.TransportError(f"HTTP {e.status} from {self.url}: {e.message}") from e
        except aiohttp.ClientError as e:
            raise errors.TransportError(f"Request to {self.url} failed: {e}") from e

    async def close(self):
        """
        Close the client session.
        """
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def unwrap_response(response: Any) -> Any:
    """
    Extract the `result` of a JSON-RPC response.

    Raises:
        JsonRpcError: if the response carries an `error` object.
        ProtocolError: if the response is not a JSON-RPC response.
    """
    if not isinstance(response, dict):
        raise errors.ProtocolError(f"Unexpected response type {type(response).__name__}")
    if "error" in response:
        error = response["error"]
        try:
            code, message, data = error["code"], error["message"], error.get("data")
        except (KeyError, TypeError, AttributeError):
            raise errors.ProtocolError(f"Malformed error object: {error}") from None
        raise errors.JsonRpcError(code, message, data)
    if "result" not in response:
        raise errors.ProtocolError("Response has neither 'result' nor 'error'")
    return response["result"]


class NodeApi(abc.ABC):
    """
    The node operations used by the transaction builder and fee estimator, on top of a single `_do_post` call.
    """

    @abc.abstractmethod
    async def _do_post(self, method: str, params: Optional[list] = None) -> Any:
        """Issue a JSON-RPC call and return its `result`."""

    async def get_block_count(self) -> int:
        """
        Fetch the current height of the blockchain plus one.
        """
        return int(await self._do_post("getblockcount"))

    async def get_contract_state(self, contract_hash_or_name: types.UInt160 | str) -> ContractState:
        """
        Get the deployed state (id, hash, NEF, manifest) of a contract.

        Note:
            Names only resolve for native contracts, case-insensitively.
        """
        if isinstance(contract_hash_or_name, types.UInt160):
            params = [f"0x{contract_hash_or_name}"]
        else:
            params = [contract_hash_or_name]
        return ContractState.from_json(await self._do_post("getcontractstate", params))

    async def invoke_function(
        self,
        contract_hash: types.UInt160 | str,
        name: str,
        function_params: Optional[Sequence[Any]] = None,
        signers: Optional[Sequence[verification.Signer]] = None,
    ) -> InvocationResult:
        """
        Invoke a smart contract function.

        Note:
            Nothing is persisted; the node only reports what would happen.

        Args:
            contract_hash: the hash of the smart contract to call.
            name: the name of the function to call on the smart contract.
            function_params: the arguments. Either `ContractParameter` instances or native values.
            signers: additional signers (e.g. for checkwitness passing).
        """
        if isinstance(contract_hash, str):
            contract_hash = types.UInt160.from_string(contract_hash)
        json_params = [ContractParameter.from_native(p).to_json() for p in function_params or []]
        json_signers = [s.to_json() for s in signers or []]
        result = await self._do_post("invokefunction", [f"0x{contract_hash}", name, json_params, json_signers])
        return InvocationResult.from_json(result)

    async def invoke_script(
        self, script: bytes, signers: Optional[Sequence[verification.Signer]] = None
    ) -> InvocationResult:
        """
        Execute a script in the virtual machine.

        Note:
            Nothing is persisted; the node only reports what would happen.
        """
        json_signers = [s.to_json() for s in signers or []]
        result = await self._do_post("invokescript", [base64.b64encode(script).decode(), json_signers])
        return InvocationResult.from_json(result)

    async def calculate_network_fee(self, tx: bytes | transaction.Transaction) -> int:
        """
        Network fee the node computes for `tx`: size plus verification cost of its witnesses.
        """
        result = await self._do_post("calculatenetworkfee", [_tx_to_base64(tx)])
        try:
            return int(result["networkfee"])
        except (KeyError, TypeError, ValueError):
            raise errors.ProtocolError(f"Malformed network fee response: {result}") from None

    async def send_raw_transaction(self, tx: bytes | transaction.Transaction) -> types.UInt256:
        """
        Broadcast a signed transaction to the network.

        Returns:
            the transaction hash if the node accepted it into its memory pool.
        """
        result = await self._do_post("sendrawtransaction", [_tx_to_base64(tx)])
        try:
            return types.UInt256.from_string(result["hash"])
        except (KeyError, TypeError, ValueError):
            raise errors.ProtocolError(f"Malformed send response: {result}") from None

    async def get_application_log(self, tx_hash: types.UInt256 | str) -> ApplicationLog:
        """
        Execution result and notifications of a persisted transaction.

        Raises:
            JsonRpcError: with message "Unknown transaction" while the transaction is not yet persisted.
        """
        if isinstance(tx_hash, str):
            tx_hash = types.UInt256.from_string(tx_hash)
        return ApplicationLog.from_json(await self._do_post("getapplicationlog", [f"0x{tx_hash}"]))

    async def get_nep17_balances(self, address: str | types.UInt160) -> Nep17BalancesResponse:
        """
        All NEP-17 balances of an account.
        """
        if isinstance(address, types.UInt160):
            address = walletutils.script_hash_to_address(address)
        result = await self._do_post("getnep17balances", [address])
        try:
            return Nep17BalancesResponse.from_json(result)
        except (KeyError, TypeError, ValueError) as e:
            raise errors.ProtocolError(f"Malformed balances response: {e}") from None

    async def get_transaction(self, tx_hash: types.UInt256 | str) -> transaction.Transaction:
        """
        Get a persisted or pooled transaction.
        """
        if isinstance(tx_hash, str):
            tx_hash = types.UInt256.from_string(tx_hash)
        result = await self._do_post("getrawtransaction", [f"0x{tx_hash}"])
        return transaction.Transaction.deserialize_from_bytes(base64.b64decode(result))

    async def get_transaction_height(self, tx_hash: types.UInt256 | str) -> int:
        """
        Block height that holds the transaction.
        """
        if isinstance(tx_hash, str):
            tx_hash = types.UInt256.from_string(tx_hash)
        return int(await self._do_post("gettransactionheight", [f"0x{tx_hash}"]))


class NeoRpcClient(RPCClient, NodeApi):
    """
    Specialised RPC client for NEO's Node RPC API. Each call is a single HTTP request without caching or retries.
    See :class:`~neoviper.api.production.ProductionRpcClient` for those.
    """

    def __init__(self, host: str, **kwargs):
        super(NeoRpcClient, self).__init__(host, **kwargs)
        self._ids = itertools.count(1)

    async def _do_post(
        self,
        method: str,
        params: Optional[list] = None,
        id: Optional[int] = None,
        jsonrpc_version: str = "2.0",
    ) -> Any:
        json = {
            "jsonrpc": jsonrpc_version,
            "id": next(self._ids) if id is None else id,
            "method": method,
            "params": params if params else [],
        }
        logger.debug(f"{method} -> {self.url}")
        response = await self._post(json)
        return unwrap_response(response)

from __future__ import annotations
import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from web3 import AsyncWeb3, Web3
from hexbytes import HexBytes
from web3.types import TxReceipt
from eth_account import Account
from web3.exceptions import ContractLogicError, TimeExhausted

from base_sniper.exceptions import ChainUnavailableError, NoSignerError
from base_sniper.utils.config import SniperSettings
from base_sniper.utils.constants import BASE_RPC_URL
from base_sniper.utils.load_abi import load_erc20_abi, load_factory_abi, load_pair_abi, load_router_abi
from base_sniper.utils.logger import logger_manager, log_function

logger = logger_manager.setup_logger(__name__)

TRANSFER_TOPIC = bytes(Web3.keccak(text="Transfer(address,address,uint256)"))


class Web3Service:
    """
    Async chain client: RPC reads, contract calls and signed swap submission.

    Every RPC goes through ``_rpc_call`` (retries + provider failover). Swap
    submissions from the signer are serialized so pending nonces are assigned
    one at a time.
    """

    def __init__(self, settings: SniperSettings) -> None:
        self.settings = settings
        # RPC list with failover
        self._rpc_urls: List[str] = list(settings.rpc_urls) or [BASE_RPC_URL]
        self._current_rpc_idx = 0
        self._active_rpc = self._rpc_urls[0]
        self._w3 = self._connect(self._active_rpc)

        self._account = None
        if settings.private_key and not settings.dry_run:
            self._account = Account.from_key(settings.private_key)

        self._erc20_abi = load_erc20_abi()
        self._factory_abi = load_factory_abi()
        self._pair_abi = load_pair_abi()
        self._router_abi = load_router_abi()

        self._submit_lock = asyncio.Lock()
        self._gas_mode: Optional[str] = None
        self._chain_id: Optional[int] = None
        self._decimals: dict[str, int] = {}

    # ---------- connection / failover ----------
    def _connect(self, url: str) -> AsyncWeb3:
        return AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(url, request_kwargs={"timeout": self.settings.rpc_timeout_secs}))

    @log_function
    async def connect(self) -> None:
        """Bind to the first RPC that answers and detect the gas mode."""
        last_err: Optional[Exception] = None
        for idx, url in enumerate(self._rpc_urls):
            w3 = self._connect(url)
            try:
                if await w3.is_connected():
                    self._w3 = w3
                    self._current_rpc_idx = idx
                    self._active_rpc = url
                    self._gas_mode = await self._detect_gas_mode()
                    logger.info(f"Connected to {url}; gas_mode={self._gas_mode}")
                    return
                logger.warning(f"RPC not reachable: {url}")
            except Exception as e:
                last_err = e
                logger.warning(f"RPC failed {url}: {e}")
        raise ChainUnavailableError("No RPC endpoint available", last_error=last_err)

    def _rotate(self) -> None:
        self._current_rpc_idx = (self._current_rpc_idx + 1) % len(self._rpc_urls)
        url = self._rpc_urls[self._current_rpc_idx]
        logger.info(f"Switching RPC: {url}")
        self._w3 = self._connect(url)
        self._active_rpc = url

    async def _rpc_call(self, label: str, fn: Callable[[], Awaitable[Any]], retries: Optional[int] = None) -> Any:
        """
        Run an RPC with retries and provider rotation.

        Contract reverts are deterministic and propagate at once; anything else
        is retried and finally surfaces as ``ChainUnavailableError``.
        """
        retries = retries or self.settings.rpc_retries
        last_exc: Optional[Exception] = None
        for attempt in range(1, retries + 1):
            try:
                return await fn()
            except ContractLogicError:
                raise
            except Exception as e:
                last_exc = e
                logger.warning(f"[RPC:{label}] attempt {attempt}/{retries} failed: {e}")
                if len(self._rpc_urls) > 1:
                    self._rotate()
                if attempt < retries:
                    await asyncio.sleep(self.settings.rpc_retry_backoff_secs * attempt)
        raise ChainUnavailableError(f"RPC '{label}' failed: {last_exc}", attempts=retries)

    # ---------- util ----------
    def checksum(self, address: str) -> str:
        return Web3.to_checksum_address(address)

    @property
    def has_signer(self) -> bool:
        return self._account is not None

    @property
    def address(self) -> Optional[str]:
        return self._account.address if self._account else None

    @property
    def active_rpc(self) -> str:
        return self._active_rpc

    def _require_signer(self) -> None:
        if not self._account:
            raise NoSignerError("No signer configured")

    async def get_chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = int(await self._rpc_call("chain_id", lambda: self._w3.eth.chain_id))
        return self._chain_id

    # ---------- reads ----------
    async def get_block_number(self) -> int:
        return int(await self._rpc_call("block_number", lambda: self._w3.eth.block_number))

    async def get_balance(self, address: Optional[str] = None) -> int:
        if address is None:
            self._require_signer()
            address = self._account.address
        addr = self.checksum(address)
        return int(await self._rpc_call("get_balance", lambda: self._w3.eth.get_balance(addr)))

    async def get_code(self, address: str) -> bytes:
        addr = self.checksum(address)
        return bytes(await self._rpc_call("get_code", lambda: self._w3.eth.get_code(addr)))

    async def call(self, address: str, abi: list, fn_name: str, *args: Any) -> Any:
        """Generic read-only contract call."""
        addr = self.checksum(address)

        async def _do():
            contract = self._w3.eth.contract(address=addr, abi=abi)
            return await getattr(contract.functions, fn_name)(*args).call()

        return await self._rpc_call(fn_name, _do)

    # ---------- pairs ----------
    async def get_pair(self, factory: str, token_a: str, token_b: str) -> str:
        return await self.call(factory, self._factory_abi, "getPair", self.checksum(token_a), self.checksum(token_b))

    async def get_reserves(self, pair: str) -> Tuple[int, int]:
        res = await self.call(pair, self._pair_abi, "getReserves")
        return int(res[0]), int(res[1])

    async def get_pair_tokens(self, pair: str) -> Tuple[str, str]:
        token0 = await self.call(pair, self._pair_abi, "token0")
        token1 = await self.call(pair, self._pair_abi, "token1")
        return token0, token1

    # ---------- erc20 ----------
    async def token_symbol(self, token: str) -> str:
        try:
            return str(await self.call(token, self._erc20_abi, "symbol"))
        except Exception as e:
            # some tokens return bytes32 or nothing at all
            logger.warning(f"✗ token_symbol {token}: {e}")
            return "UNKNOWN"

    async def token_decimals(self, token: str) -> int:
        key = token.lower()
        if key in self._decimals:
            return self._decimals[key]
        try:
            decimals = int(await self.call(token, self._erc20_abi, "decimals"))
        except Exception as e:
            logger.warning(f"✗ token_decimals {token}: {e}; assuming 18")
            return 18
        self._decimals[key] = decimals
        return decimals

    async def total_supply(self, token: str) -> int:
        return int(await self.call(token, self._erc20_abi, "totalSupply"))

    async def token_balance(self, token: str, owner: str) -> int:
        return int(await self.call(token, self._erc20_abi, "balanceOf", self.checksum(owner)))

    async def token_owner(self, token: str) -> str:
        return await self.call(token, self._erc20_abi, "owner")

    # ---------- gas ----------
    async def _detect_gas_mode(self) -> str:
        if self.settings.gas_mode in ("legacy", "1559"):
            return self.settings.gas_mode
        try:
            latest = await self._rpc_call("get_block_latest", lambda: self._w3.eth.get_block("latest"), retries=1)
            if latest.get("baseFeePerGas") is not None:
                return "1559"
        except ChainUnavailableError:
            pass
        return "legacy"

    async def _apply_gas_fields(self, tx: dict) -> dict:
        """
        Set only the fee fields of the active gas mode, so a transaction never
        carries both ``gasPrice`` and ``maxFeePerGas``.
        """
        tx.pop("gasPrice", None)
        tx.pop("maxFeePerGas", None)
        tx.pop("maxPriorityFeePerGas", None)

        if self._gas_mode is None:
            self._gas_mode = await self._detect_gas_mode()

        if self._gas_mode == "1559":
            tx["type"] = 2
            latest = await self._rpc_call("get_block_latest", lambda: self._w3.eth.get_block("latest"))
            base_fee = int(latest.get("baseFeePerGas") or 0)
            try:
                priority = int(await self._rpc_call("max_priority_fee", lambda: self._w3.eth.max_priority_fee, retries=1))
            except ChainUnavailableError:
                priority = int(Web3.to_wei(self.settings.priority_fee_gwei, "gwei"))
            tx["maxPriorityFeePerGas"] = priority
            tx["maxFeePerGas"] = int(base_fee * self.settings.max_fee_multiplier + priority)
        else:
            tx["type"] = 0
            tx["gasPrice"] = int(await self._rpc_call("gas_price", lambda: self._w3.eth.gas_price))
        return tx

    # ---------- swaps ----------
    def _swap_fn(self, router: str, amount_out_min: int, path: List[str], deadline: int):
        contract = self._w3.eth.contract(address=self.checksum(router), abi=self._router_abi)
        return contract.functions.swapExactETHForTokens(
            int(max(0, amount_out_min)),
            [self.checksum(p) for p in path],
            self._account.address,
            int(deadline),
        )

    async def estimate_swap_gas(self, router: str, amount_out_min: int, path: List[str], deadline: int, value_wei: int) -> int:
        self._require_signer()
        params = {"from": self._account.address, "value": int(value_wei)}
        return int(await self._rpc_call(
            "estimate_gas",
            lambda: self._swap_fn(router, amount_out_min, path, deadline).estimate_gas(params),
            retries=1,
        ))

    @log_function
    async def send_swap_exact_eth_for_tokens(
        self,
        router: str,
        amount_out_min: int,
        path: List[str],
        deadline: int,
        value_wei: int,
        gas_limit: int,
        should_submit: Optional[Callable[[], bool]] = None,
    ) -> Optional[str]:
        """Sign and broadcast ``swapExactETHForTokens``; returns the tx hash.

        ``should_submit`` is evaluated once the submit lock is held; when it
        returns False nothing is signed and None is returned.
        """
        self._require_signer()
        async with self._submit_lock:
            if should_submit is not None and not should_submit():
                logger.info("Swap submission skipped: caller withdrew before nonce assignment")
                return None
            addr = self._account.address
            nonce = await self._rpc_call("get_transaction_count", lambda: self._w3.eth.get_transaction_count(addr, "pending"))
            params = {
                "from": addr,
                "value": int(value_wei),
                "nonce": int(nonce),
                "chainId": await self.get_chain_id(),
                "gas": int(gas_limit),
            }
            params = await self._apply_gas_fields(params)
            tx = await self._rpc_call(
                "build_tx",
                lambda: self._swap_fn(router, amount_out_min, path, deadline).build_transaction(params),
            )
            signed = self._account.sign_transaction(tx)
            tx_hash = await self._rpc_call(
                "send_raw_tx",
                lambda: self._w3.eth.send_raw_transaction(signed.raw_transaction),
                retries=1,
            )
        return Web3.to_hex(tx_hash)

    async def wait_for_receipt(self, tx_hash: str, timeout: Optional[float] = None) -> TxReceipt:
        timeout = timeout or self.settings.receipt_timeout_secs
        try:
            return await self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except TimeExhausted as e:
            raise ChainUnavailableError(f"Receipt not available after {timeout}s", tx_hash=tx_hash) from e

    def received_token_amount(self, receipt: TxReceipt, token: str) -> Optional[int]:
        """Raw amount of ``token`` transferred to the signer in ``receipt``, if any."""
        if not self._account:
            return None
        wallet = self._account.address.lower()
        token_l = token.lower()
        for log in receipt.get("logs", []):
            topics = log.get("topics") or []
            if len(topics) < 3 or str(log.get("address", "")).lower() != token_l:
                continue
            if bytes(HexBytes(topics[0])) != TRANSFER_TOPIC:
                continue
            to_addr = "0x" + bytes(HexBytes(topics[2]))[-20:].hex()
            if to_addr.lower() == wallet:
                return int.from_bytes(bytes(HexBytes(log["data"])), "big")
        return None
